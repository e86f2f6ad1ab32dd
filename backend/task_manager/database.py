"""Storage engine and client helpers.

The SQL backend uses a SQLModel/SQLAlchemy engine (a local SQLite file by
default); the document backend uses a pymongo client. Both are created
once by the application factory and handed to the repositories.
"""

from pymongo import MongoClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from . import models  # noqa: F401  registers the tables on SQLModel.metadata

MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")
SQLITE_BUSY_TIMEOUT_S = 5


def make_engine(url: str, echo: bool = False):
    """Create an engine for `url`.

    In-memory SQLite databases live inside a single connection, so they
    are pinned with a `StaticPool` to be shared by the request threads.
    """
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT_S}
        if url in MEMORY_URLS:
            return create_engine(url, echo=echo, connect_args=connect_args, poolclass=StaticPool)
        return create_engine(url, echo=echo, connect_args=connect_args)
    return create_engine(url, echo=echo, pool_pre_ping=True)


def create_db_and_tables(engine):
    """Create tables from SQLModel metadata; idempotent."""
    SQLModel.metadata.create_all(engine)


def make_mongo_client(uri: str, timeout_ms: int) -> MongoClient:
    """Create a client whose operations give up after `timeout_ms`.

    `tz_aware` makes due dates come back as UTC-aware datetimes.
    """
    return MongoClient(uri, tz_aware=True, timeoutMS=timeout_ms, serverSelectionTimeoutMS=timeout_ms)
