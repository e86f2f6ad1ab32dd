"""Business rules for tasks and users.

Use cases coordinate repositories and the security services. They hold
no state of their own beyond the collaborators passed to `__init__` and
raise the exceptions from `errors`; translating those into HTTP
responses is left to the delivery layer.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import List, Optional

from bson import ObjectId

from .domain import (
    PasswordHasher,
    Role,
    Task,
    TaskRepository,
    TaskStatus,
    TokenIssuer,
    User,
    UserRepository,
    as_utc,
    is_past_due,
    new_task,
    new_user,
)
from .errors import (
    InvalidCredentialsError,
    PasswordHashError,
    PasswordMismatchError,
    RepositoryError,
    UsernameTakenError,
    UserNotFoundError,
    ValidationFailedError,
)

logger = logging.getLogger("task_manager.usecases")


def parse_task_id(task_id: str) -> str:
    """Return the canonical (lower-case hex) form of `task_id`.

    Raises `ValidationFailedError` when it is not a valid ObjectId.
    """
    if not isinstance(task_id, str) or not ObjectId.is_valid(task_id):
        raise ValidationFailedError("invalid task ID format")
    return str(ObjectId(task_id))


class TaskUseCase:
    """Create, read, update and delete tasks."""
    def __init__(self, task_repo: TaskRepository):
        self.task_repo = task_repo

    def create_task(self, title: str, description: Optional[str], due_date: Optional[datetime], status) -> Task:
        """Validate through `new_task` and persist the result.

        Validation problems raise `ValidationFailedError` before the
        repository is touched; storage problems surface as whatever the
        repository raised.
        """
        task = new_task(title, description, due_date, status)
        return self.task_repo.create_task(task)

    def get_task_by_id(self, task_id: str) -> Task:
        return self.task_repo.get_task_by_id(parse_task_id(task_id))

    def get_all_tasks(self) -> List[Task]:
        return self.task_repo.get_all_tasks()

    def update_task(
        self,
        task_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        due_date: Optional[datetime] = None,
        status=None,
    ) -> Task:
        """Apply a partial update; arguments left as `None` keep their stored value.

        Each supplied field is validated on its own: an empty title, a
        due date before today, an unknown status, or moving a Done task
        to any other status raise `ValidationFailedError`.
        """
        task_id = parse_task_id(task_id)
        existing = self.task_repo.get_task_by_id(task_id)

        if title is not None:
            if not title:
                raise ValidationFailedError("task title cannot be empty on update")
            existing = replace(existing, title=title)
        if description is not None:
            existing = replace(existing, description=description)
        if due_date is not None:
            if is_past_due(due_date):
                raise ValidationFailedError("updated due date cannot be in the past")
            existing = replace(existing, due_date=as_utc(due_date))
        if status is not None:
            if not TaskStatus.is_valid(status):
                raise ValidationFailedError("invalid task status for update")
            new_status = TaskStatus(status)
            if not TaskStatus(existing.status).can_transition_to(new_status):
                raise ValidationFailedError("cannot change status of a completed task")
            existing = replace(existing, status=new_status)

        return self.task_repo.update_task(task_id, existing)

    def delete_task(self, task_id: str) -> None:
        self.task_repo.delete_task(parse_task_id(task_id))


class UserUseCase:
    """Registration, login and admin bootstrapping."""
    def __init__(self, user_repo: UserRepository, token_service: TokenIssuer, password_service: PasswordHasher):
        self.user_repo = user_repo
        self.token_service = token_service
        self.password_service = password_service

    def _username_exists(self, username: str) -> bool:
        try:
            self.user_repo.get_user_by_username(username)
        except UserNotFoundError:
            return False
        return True

    def register_user(self, username: str, password: str) -> User:
        """Create a `Role.USER` account and return it without its password hash."""
        if not username or not password:
            raise ValidationFailedError("username and password are required")
        if self._username_exists(username):
            raise UsernameTakenError()
        hashed = self.password_service.hash(password)
        saved = self.user_repo.create_user(new_user(username, hashed))
        return saved.without_password()

    def login(self, username: str, password: str) -> str:
        """Return a signed token for valid credentials.

        Every failure, whether the user is unknown, the password is
        wrong, or the lookup itself broke, raises
        `InvalidCredentialsError` so callers cannot enumerate usernames.
        """
        try:
            user = self.user_repo.get_user_by_username(username)
        except UserNotFoundError as exc:
            raise InvalidCredentialsError() from exc
        except RepositoryError as exc:
            logger.error("login lookup failed for user %r: %s", username, exc)
            raise InvalidCredentialsError() from exc

        try:
            self.password_service.compare(password, user.password_hash)
        except PasswordMismatchError as exc:
            raise InvalidCredentialsError() from exc
        except PasswordHashError as exc:
            logger.error("failed to verify password for user %r: %s", username, exc)
            raise InvalidCredentialsError() from exc

        return self.token_service.issue_token(user)

    def ensure_admin(self, username: str, password: str) -> User:
        """Create the bootstrap admin account unless `username` already exists."""
        try:
            existing = self.user_repo.get_user_by_username(username)
        except UserNotFoundError:
            pass
        else:
            if existing.role is Role.ADMIN:
                logger.info("admin user %r found", username)
            else:
                logger.warning(
                    "configured admin user %r already exists with role %s; it cannot manage tasks",
                    username, Role(existing.role).value,
                )
            return existing.without_password()

        hashed = self.password_service.hash(password)
        admin = replace(new_user(username, hashed), role=Role.ADMIN)
        try:
            saved = self.user_repo.create_user(admin)
        except UsernameTakenError:
            # another worker created it between the lookup and the insert
            return self.user_repo.get_user_by_username(username).without_password()
        logger.info("created admin user %r (id=%s)", saved.username, saved.id)
        return saved.without_password()
