"""Task and user entities, their validating constructors and the ports
the use cases depend on.

Entities are plain dataclasses. Persistence adapters live in
`repositories`, hashing and token signing in `security`; both satisfy the
`Protocol` classes declared at the bottom of this module.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Protocol

from .errors import ValidationFailedError


class TaskStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In progress"
    DONE = "Done"

    @classmethod
    def is_valid(cls, value) -> bool:
        try:
            cls(value)
        except ValueError:
            return False
        return True

    def can_transition_to(self, other: "TaskStatus") -> bool:
        """Done is terminal; every other move is allowed."""
        return self is not TaskStatus.DONE or other is TaskStatus.DONE


class Role(str, Enum):
    ADMIN = "Admin"
    USER = "User"

    @classmethod
    def is_valid(cls, value) -> bool:
        try:
            cls(value)
        except ValueError:
            return False
        return True


def as_utc(value: datetime) -> datetime:
    """Return `value` as an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_today() -> datetime:
    now = datetime.now(timezone.utc)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def is_past_due(due_date: datetime) -> bool:
    """True when `due_date` falls before the start of the current UTC day."""
    return as_utc(due_date) < start_of_today()


@dataclass
class Task:
    title: str
    due_date: datetime
    status: TaskStatus = TaskStatus.PENDING
    description: str = ""
    id: Optional[str] = None


@dataclass
class User:
    """A registered account.

    `password_hash` is kept on the entity for credential checks but is
    never part of any HTTP response.
    """
    username: str
    password_hash: str = field(repr=False)
    role: Role = Role.USER
    id: Optional[str] = None

    def without_password(self) -> "User":
        return User(username=self.username, password_hash="", role=self.role, id=self.id)


@dataclass(frozen=True)
class Claims:
    """Verified token payload; produced at login, never stored."""
    user_id: str
    username: str
    role: Role
    issued_at: datetime
    expires_at: datetime


def new_task(title: str, description: Optional[str], due_date: Optional[datetime], status) -> Task:
    """Build a not-yet-persisted `Task`, raising `ValidationFailedError` on bad input."""
    if not title:
        raise ValidationFailedError("task title cannot be empty")
    if not TaskStatus.is_valid(status):
        raise ValidationFailedError("invalid task status")
    if due_date is None:
        raise ValidationFailedError("task due date cannot be empty")
    if is_past_due(due_date):
        raise ValidationFailedError("task due date cannot be in the past")
    return Task(
        title=title,
        description=description or "",
        due_date=as_utc(due_date),
        status=TaskStatus(status),
    )


def new_user(username: str, password_hash: str) -> User:
    """Build a self-registered user; the role is always `Role.USER`."""
    if not username or not password_hash:
        raise ValidationFailedError("missing required user fields for new user")
    return User(username=username, password_hash=password_hash, role=Role.USER)


# --- Ports ---

class TaskRepository(Protocol):
    """Persistence for tasks. Every lookup by id raises `TaskNotFoundError` when absent.

    Calls are synchronous and take no per-request deadline. Each adapter
    bounds its own calls instead: the MongoDB client with `timeoutMS` and
    SQLite with its busy timeout (see `database`). A call that overruns
    raises `RepositoryError`.
    """

    def create_task(self, task: Task) -> Task:
        ...

    def get_task_by_id(self, task_id: str) -> Task:
        ...

    def get_all_tasks(self) -> List[Task]:
        ...

    def update_task(self, task_id: str, task: Task) -> Task:
        """Replace the stored fields of `task_id` with those of `task`."""
        ...

    def delete_task(self, task_id: str) -> None:
        ...


class UserRepository(Protocol):

    def create_user(self, user: User) -> User:
        """Persist `user`; raises `UsernameTakenError` on a duplicate username."""
        ...

    def get_user_by_username(self, username: str) -> User:
        """Raises `UserNotFoundError` when no user has `username`."""
        ...


class PasswordHasher(Protocol):

    def hash(self, password: str) -> str:
        ...

    def compare(self, password: str, password_hash: str) -> None:
        ...


class TokenIssuer(Protocol):

    def issue_token(self, user: User) -> str:
        ...

    def verify_token(self, token: str) -> Claims:
        ...
