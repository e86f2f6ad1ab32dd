"""FastAPI application entrypoint and HTTP controllers.

Controllers are intentionally thin: they accept requests, delegate to the
use cases, and return JSON responses. Domain exceptions are mapped to
status codes in one place (`DOMAIN_ERROR_STATUS`); anything unexpected is
logged with its traceback and answered with a generic 500.

Endpoints implemented:
- POST /user/register
- POST /user/login
- GET /tasks            (authenticated)
- GET /tasks/{id}       (authenticated)
- POST /tasks           (admin)
- PUT /tasks/{id}       (admin)
- DELETE /tasks/{id}    (admin)
- GET /health
"""

import json
import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from .auth import authenticate, require_admin
from .config import Settings
from .container import Container, build_container
from .errors import (
    DomainError,
    InvalidCredentialsError,
    TaskNotFoundError,
    UsernameTakenError,
    ValidationFailedError,
)
from .schemas import CredentialsIn, TaskCreateIn, TaskOut, TaskUpdateIn, TokenOut, UserOut
from .usecases import TaskUseCase, UserUseCase

logger = logging.getLogger("task_manager.api")

INTERNAL_ERROR = "An unexpected error occurred"

# errors the use cases let escape; token errors become 401s in auth.authenticate
DOMAIN_ERROR_STATUS = (
    (ValidationFailedError, 400),
    (TaskNotFoundError, 404),
    (UsernameTakenError, 409),
    (InvalidCredentialsError, 401),
)


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_task_usecase(container: Container = Depends(get_container)) -> TaskUseCase:
    return container.task_usecase


def get_user_usecase(container: Container = Depends(get_container)) -> UserUseCase:
    return container.user_usecase


# --- Users ---

user_router = APIRouter(prefix="/user", tags=["users"])


@user_router.post("/register", status_code=201, response_model=UserOut)
def register(payload: CredentialsIn, users: UserUseCase = Depends(get_user_usecase)):
    """Register a new account with the `User` role.

    Returns 409 when the username is already taken.
    """
    user = users.register_user(payload.username, payload.password)
    return UserOut.from_user(user)


@user_router.post("/login", response_model=TokenOut)
def login(payload: CredentialsIn, users: UserUseCase = Depends(get_user_usecase)):
    """Exchange credentials for a signed access token valid for 24 hours by default."""
    return TokenOut(token=users.login(payload.username, payload.password))


# --- Tasks ---

task_router = APIRouter(prefix="/tasks", tags=["tasks"], dependencies=[Depends(authenticate)])


@task_router.get("", response_model=List[TaskOut])
def list_tasks(tasks: TaskUseCase = Depends(get_task_usecase)):
    return [TaskOut.from_task(t) for t in tasks.get_all_tasks()]


@task_router.get("/{task_id}", response_model=TaskOut)
def get_task(task_id: str, tasks: TaskUseCase = Depends(get_task_usecase)):
    return TaskOut.from_task(tasks.get_task_by_id(task_id))


@task_router.post("", status_code=201, response_model=TaskOut, dependencies=[Depends(require_admin)])
def create_task(payload: TaskCreateIn, tasks: TaskUseCase = Depends(get_task_usecase)):
    """Create a task (admin only).

    The due date may not lie before today and the status must be one of
    `Pending`, `In progress` or `Done`.
    """
    task = tasks.create_task(payload.title, payload.description, payload.duedate, payload.status)
    return TaskOut.from_task(task)


@task_router.put("/{task_id}", response_model=TaskOut, dependencies=[Depends(require_admin)])
def update_task(task_id: str, payload: TaskUpdateIn, tasks: TaskUseCase = Depends(get_task_usecase)):
    """Partially update a task (admin only); omitted fields are left unchanged."""
    task = tasks.update_task(
        task_id,
        title=payload.title,
        description=payload.description,
        due_date=payload.duedate,
        status=payload.status,
    )
    return TaskOut.from_task(task)


@task_router.delete("/{task_id}", status_code=204, dependencies=[Depends(require_admin)])
def delete_task(task_id: str, tasks: TaskUseCase = Depends(get_task_usecase)):
    tasks.delete_task(task_id)
    return Response(status_code=204)


# --- Error mapping and request logging ---

async def domain_error_handler(request: Request, exc: DomainError):
    for exc_type, status_code in DOMAIN_ERROR_STATUS:
        if isinstance(exc, exc_type):
            return JSONResponse(status_code=status_code, content={"detail": exc.message})
    logger.error("unmapped domain error on %s %s: %r", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": INTERNAL_ERROR})


async def request_validation_handler(request: Request, exc: RequestValidationError):
    # malformed bodies are client errors like any other bad input
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    event = {
        "request_id": req_id,
        "path": request.url.path,
        "method": request.method,
        "client": request.client.host if request.client else "unknown",
    }
    try:
        response = await call_next(request)
    except Exception:
        event["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception("request_failed %s", json.dumps(event, ensure_ascii=True))
        response = JSONResponse(status_code=500, content={"detail": INTERNAL_ERROR})
    else:
        event["status_code"] = response.status_code
        event["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
        logger.info("request_done %s", json.dumps(event, ensure_ascii=True))
    response.headers["X-Request-ID"] = req_id
    return response


def configure_logging(level: str) -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level)
    logging.getLogger("task_manager").setLevel(level)


def create_app(settings: Optional[Settings] = None, container: Optional[Container] = None) -> FastAPI:
    """Build the application and its collaborators.

    `container` may be supplied by tests that want to inject their own
    repositories; otherwise one is built from `settings`. When an admin
    account is configured it is created on start-up if missing.
    """
    settings = settings or (container.settings if container else Settings())
    configure_logging(settings.LOG_LEVEL)
    container = container or build_container(settings)

    if settings.ADMIN_USERNAME and settings.ADMIN_PASSWORD:
        container.user_usecase.ensure_admin(settings.ADMIN_USERNAME, settings.ADMIN_PASSWORD)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        container.close()

    app = FastAPI(title="Task Manager API", lifespan=lifespan)
    app.state.container = container

    if settings.ALLOW_DEV_CORS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    app.middleware("http")(request_context_middleware)
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.include_router(user_router)
    app.include_router(task_router)

    @app.get("/health")
    def health():
        """Lightweight health check for uptime monitoring."""
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "task_manager.main:app",
        host=os.environ.get("HOST", "127.0.0.1"),
        port=int(os.environ.get("PORT", "8080")),
    )
