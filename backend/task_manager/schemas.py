"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable. They only check shape;
business rules (empty titles, past due dates, status transitions) are
enforced by the use cases so every client gets the same error.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .domain import Role, Task, TaskStatus, User


class CredentialsIn(BaseModel):
    """Payload for the register and login endpoints."""
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class TokenOut(BaseModel):
    token: str


class UserOut(BaseModel):
    """Public view of a user; the password hash is never included."""
    id: str
    username: str
    role: Role

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(id=user.id, username=user.username, role=user.role)


class TaskCreateIn(BaseModel):
    title: str
    description: str = ""
    duedate: datetime
    status: str


class TaskUpdateIn(BaseModel):
    """Partial update; omitted fields keep their stored value."""
    title: Optional[str] = None
    description: Optional[str] = None
    duedate: Optional[datetime] = None
    status: Optional[str] = None


class TaskOut(BaseModel):
    id: str
    title: str
    description: str
    duedate: datetime
    status: TaskStatus

    @classmethod
    def from_task(cls, task: Task) -> "TaskOut":
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            duedate=task.due_date,
            status=task.status,
        )
