import os

# Settings read the environment when built, including the module-level
# app in task_manager.main; point everything at throwaway storage first.
os.environ.setdefault("DATABASE_BACKEND", "sqlite")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "a-very-secure-secret-for-testing-only")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "1000")
os.environ.setdefault("ALLOW_DEV_CORS", "false")

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from task_manager.config import Settings
from task_manager.container import build_container
from task_manager.database import create_db_and_tables, make_engine
from task_manager.main import create_app
from task_manager.repositories import SqlTaskRepository, SqlUserRepository
from task_manager.security import PasswordService, TokenService

TEST_SECRET = "a-very-secure-secret-for-testing-only"
ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "adminpassword"


def tomorrow() -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=1)


def yesterday() -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=1)


@pytest.fixture
def engine():
    """A fresh in-memory SQLite database per test."""
    eng = make_engine("sqlite://")
    create_db_and_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def task_repo(engine):
    return SqlTaskRepository(engine)


@pytest.fixture
def user_repo(engine):
    return SqlUserRepository(engine)


@pytest.fixture
def password_service():
    # a low round count keeps the suite fast
    return PasswordService(rounds=1000)


@pytest.fixture
def token_service():
    return TokenService(TEST_SECRET)


@pytest.fixture
def settings():
    return Settings(
        DATABASE_BACKEND="sqlite",
        DATABASE_URL="sqlite://",
        JWT_SECRET=TEST_SECRET,
        PASSWORD_HASH_ROUNDS=1000,
        ADMIN_USERNAME=ADMIN_USERNAME,
        ADMIN_PASSWORD=ADMIN_PASSWORD,
        ALLOW_DEV_CORS=False,
    )


@pytest.fixture
def app(settings):
    return create_app(settings, build_container(settings))


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def login(client, username, password) -> str:
    r = client.post("/user/login", json={"username": username, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["token"]


@pytest.fixture
def admin_headers(client):
    return {"Authorization": f"Bearer {login(client, ADMIN_USERNAME, ADMIN_PASSWORD)}"}


@pytest.fixture
def user_headers(client):
    r = client.post("/user/register", json={"username": "alice", "password": "s3cret"})
    assert r.status_code == 201, r.text
    return {"Authorization": f"Bearer {login(client, 'alice', 's3cret')}"}
