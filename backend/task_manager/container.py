"""Wiring of services, repositories and use cases.

`build_container` constructs every collaborator exactly once for an
application instance. Handlers reach them through `app.state.container`
instead of module-level globals, so tests can build as many isolated
applications as they like.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from .config import Settings
from .database import create_db_and_tables, make_engine, make_mongo_client
from .domain import TaskRepository, UserRepository
from .repositories import MongoTaskRepository, MongoUserRepository, SqlTaskRepository, SqlUserRepository
from .security import PasswordService, TokenService
from .usecases import TaskUseCase, UserUseCase

logger = logging.getLogger("task_manager.container")

TASK_COLLECTION = "tasks"
USER_COLLECTION = "users"


@dataclass
class Container:
    settings: Settings
    password_service: PasswordService
    token_service: TokenService
    task_repo: TaskRepository
    user_repo: UserRepository
    task_usecase: TaskUseCase
    user_usecase: UserUseCase
    close: Callable[[], None]


def _build_repositories(settings: Settings):
    if settings.DATABASE_BACKEND == "mongo":
        client = make_mongo_client(settings.MONGO_URI, settings.MONGO_TIMEOUT_MS)
        db = client[settings.MONGO_DB_NAME]
        user_repo = MongoUserRepository(db[USER_COLLECTION])
        user_repo.ensure_indexes()
        logger.info("using MongoDB database %r", settings.MONGO_DB_NAME)
        return MongoTaskRepository(db[TASK_COLLECTION]), user_repo, client.close

    engine = make_engine(settings.DATABASE_URL)
    create_db_and_tables(engine)
    logger.info("using SQL database %s", engine.url.render_as_string(hide_password=True))
    return SqlTaskRepository(engine), SqlUserRepository(engine), engine.dispose


def build_container(settings: Settings) -> Container:
    password_service = PasswordService(settings.PASSWORD_HASH_ROUNDS)
    token_service = TokenService(settings.JWT_SECRET, settings.JWT_EXPIRE_HOURS)
    task_repo, user_repo, close = _build_repositories(settings)
    return Container(
        settings=settings,
        password_service=password_service,
        token_service=token_service,
        task_repo=task_repo,
        user_repo=user_repo,
        task_usecase=TaskUseCase(task_repo),
        user_usecase=UserUseCase(user_repo, token_service, password_service),
        close=close,
    )
