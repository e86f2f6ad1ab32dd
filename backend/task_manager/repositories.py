"""Repository classes encapsulating storage operations.

Two interchangeable backends implement the `TaskRepository` and
`UserRepository` ports from `domain`:

- `SqlTaskRepository` / `SqlUserRepository` store rows through SQLModel.
  Each call opens its own short `Session`, so one repository instance
  can serve every request.
- `MongoTaskRepository` / `MongoUserRepository` store documents in
  MongoDB collections through pymongo.

Repositories translate "missing" and "duplicate" into the domain
exceptions and wrap any other driver failure in `RepositoryError`.
"""

from dataclasses import replace
from typing import List

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from . import models
from .domain import Role, Task, TaskStatus, User, as_utc
from .errors import RepositoryError, TaskNotFoundError, UsernameTakenError, UserNotFoundError


# --- SQL backend ---

def _task_from_record(record: models.TaskRecord) -> Task:
    return Task(
        id=record.id,
        title=record.title,
        description=record.description or "",
        due_date=as_utc(record.due_date),
        status=TaskStatus(record.status),
    )


def _user_from_record(record: models.UserRecord) -> User:
    return User(
        id=record.id,
        username=record.username,
        password_hash=record.password_hash,
        role=Role(record.role),
    )


class SqlTaskRepository:
    """CRUD operations for tasks stored in the `tasks` table."""
    def __init__(self, engine):
        self.engine = engine

    def create_task(self, task: Task) -> Task:
        """Insert `task` and return it with its generated id."""
        record = models.TaskRecord(
            title=task.title,
            description=task.description or "",
            due_date=as_utc(task.due_date),
            status=TaskStatus(task.status).value,
        )
        try:
            with Session(self.engine) as session:
                session.add(record)
                session.commit()
                session.refresh(record)
                return _task_from_record(record)
        except SQLAlchemyError as exc:
            raise RepositoryError("failed to insert task") from exc

    def get_task_by_id(self, task_id: str) -> Task:
        try:
            with Session(self.engine) as session:
                record = session.get(models.TaskRecord, task_id)
                if record is None:
                    raise TaskNotFoundError()
                return _task_from_record(record)
        except SQLAlchemyError as exc:
            raise RepositoryError(f"failed to find task by id {task_id!r}") from exc

    def get_all_tasks(self) -> List[Task]:
        try:
            with Session(self.engine) as session:
                records = session.exec(select(models.TaskRecord)).all()
                return [_task_from_record(r) for r in records]
        except SQLAlchemyError as exc:
            raise RepositoryError("failed to list tasks") from exc

    def update_task(self, task_id: str, task: Task) -> Task:
        """Overwrite every stored field of `task_id` and return the stored row."""
        try:
            with Session(self.engine) as session:
                record = session.get(models.TaskRecord, task_id)
                if record is None:
                    raise TaskNotFoundError()
                record.title = task.title
                record.description = task.description or ""
                record.due_date = as_utc(task.due_date)
                record.status = TaskStatus(task.status).value
                session.add(record)
                session.commit()
                session.refresh(record)
                return _task_from_record(record)
        except SQLAlchemyError as exc:
            raise RepositoryError(f"failed to update task by id {task_id!r}") from exc

    def delete_task(self, task_id: str) -> None:
        try:
            with Session(self.engine) as session:
                record = session.get(models.TaskRecord, task_id)
                if record is None:
                    raise TaskNotFoundError()
                session.delete(record)
                session.commit()
        except SQLAlchemyError as exc:
            raise RepositoryError(f"failed to delete task by id {task_id!r}") from exc


class SqlUserRepository:
    """Create and look up users in the `users` table."""
    def __init__(self, engine):
        self.engine = engine

    def create_user(self, user: User) -> User:
        """Persist a new user; the unique index turns duplicates into `UsernameTakenError`."""
        record = models.UserRecord(
            username=user.username,
            password_hash=user.password_hash,
            role=Role(user.role).value,
        )
        try:
            with Session(self.engine) as session:
                session.add(record)
                session.commit()
                session.refresh(record)
                return _user_from_record(record)
        except IntegrityError as exc:
            raise UsernameTakenError() from exc
        except SQLAlchemyError as exc:
            raise RepositoryError("failed to insert user") from exc

    def get_user_by_username(self, username: str) -> User:
        stmt = select(models.UserRecord).where(models.UserRecord.username == username)
        try:
            with Session(self.engine) as session:
                record = session.exec(stmt).first()
        except SQLAlchemyError as exc:
            raise RepositoryError(f"failed to find user by username {username!r}") from exc
        if record is None:
            raise UserNotFoundError()
        return _user_from_record(record)


# --- MongoDB backend ---

def _object_id(task_id: str) -> ObjectId:
    # an id that cannot exist in the collection is reported like any other miss
    try:
        return ObjectId(task_id)
    except (InvalidId, TypeError) as exc:
        raise TaskNotFoundError() from exc


def _task_to_document(task: Task) -> dict:
    return {
        "title": task.title,
        "description": task.description or "",
        "duedate": as_utc(task.due_date),
        "status": TaskStatus(task.status).value,
    }


def _task_from_document(doc: dict) -> Task:
    return Task(
        id=str(doc["_id"]),
        title=doc.get("title", ""),
        description=doc.get("description") or "",
        due_date=as_utc(doc["duedate"]),
        status=TaskStatus(doc["status"]),
    )


def _user_from_document(doc: dict) -> User:
    return User(
        id=str(doc["_id"]),
        username=doc["username"],
        password_hash=doc.get("password", ""),
        role=Role(doc.get("role", Role.USER.value)),
    )


class MongoTaskRepository:
    """Tasks stored as documents in a MongoDB collection."""
    def __init__(self, collection: Collection):
        self.collection = collection

    def create_task(self, task: Task) -> Task:
        try:
            result = self.collection.insert_one(_task_to_document(task))
        except PyMongoError as exc:
            raise RepositoryError("failed to insert task") from exc
        return replace(task, id=str(result.inserted_id))

    def get_task_by_id(self, task_id: str) -> Task:
        oid = _object_id(task_id)
        try:
            doc = self.collection.find_one({"_id": oid})
        except PyMongoError as exc:
            raise RepositoryError(f"failed to find task by id {task_id!r}") from exc
        if doc is None:
            raise TaskNotFoundError()
        return _task_from_document(doc)

    def get_all_tasks(self) -> List[Task]:
        try:
            docs = list(self.collection.find({}))
        except PyMongoError as exc:
            raise RepositoryError("failed to list tasks") from exc
        return [_task_from_document(d) for d in docs]

    def update_task(self, task_id: str, task: Task) -> Task:
        """Set every field in one atomic find-and-update, returning the new document."""
        oid = _object_id(task_id)
        try:
            doc = self.collection.find_one_and_update(
                {"_id": oid},
                {"$set": _task_to_document(task)},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as exc:
            raise RepositoryError(f"failed to update task by id {task_id!r}") from exc
        if doc is None:
            raise TaskNotFoundError()
        return _task_from_document(doc)

    def delete_task(self, task_id: str) -> None:
        oid = _object_id(task_id)
        try:
            result = self.collection.delete_one({"_id": oid})
        except PyMongoError as exc:
            raise RepositoryError(f"failed to delete task by id {task_id!r}") from exc
        if result.deleted_count == 0:
            raise TaskNotFoundError()


class MongoUserRepository:
    """Users stored as documents; uniqueness relies on the `username` index."""
    def __init__(self, collection: Collection):
        self.collection = collection

    def ensure_indexes(self) -> None:
        """Create the unique username index (no-op if it already exists)."""
        self.collection.create_index("username", unique=True)

    def create_user(self, user: User) -> User:
        doc = {
            "username": user.username,
            "password": user.password_hash,
            "role": Role(user.role).value,
        }
        try:
            result = self.collection.insert_one(doc)
        except DuplicateKeyError as exc:
            raise UsernameTakenError() from exc
        except PyMongoError as exc:
            raise RepositoryError("failed to insert user") from exc
        return replace(user, id=str(result.inserted_id))

    def get_user_by_username(self, username: str) -> User:
        try:
            doc = self.collection.find_one({"username": username})
        except PyMongoError as exc:
            raise RepositoryError(f"failed to find user by username {username!r}") from exc
        if doc is None:
            raise UserNotFoundError()
        return _user_from_document(doc)
