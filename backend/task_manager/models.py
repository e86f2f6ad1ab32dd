"""SQLModel table definitions for the SQL storage backend.

Rows mirror the document layout used by the MongoDB backend. Identities
are ObjectId hex strings generated on insert, so ids look the same
whichever backend is in use.
"""

from datetime import datetime
from typing import Optional

from bson import ObjectId
from sqlmodel import Field, SQLModel


def new_object_id() -> str:
    return str(ObjectId())


class TaskRecord(SQLModel, table=True):
    """A stored task.

    Fields:
    - `status`: one of the `TaskStatus` values, stored as text
    - `due_date`: stored in UTC; SQLite drops the offset, so readers
      re-attach it
    """
    __tablename__ = "tasks"

    id: Optional[str] = Field(default_factory=new_object_id, primary_key=True, max_length=24)
    title: str
    description: str = ""
    due_date: datetime
    status: str = Field(index=True)


class UserRecord(SQLModel, table=True):
    """A registered user; `username` carries a unique index."""
    __tablename__ = "users"

    id: Optional[str] = Field(default_factory=new_object_id, primary_key=True, max_length=24)
    username: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    role: str
