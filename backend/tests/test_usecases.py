import logging
from unittest.mock import Mock

import pytest
from bson import ObjectId

from task_manager.domain import Role, TaskStatus
from task_manager.errors import (
    InvalidCredentialsError,
    PasswordHashError,
    RepositoryError,
    TaskNotFoundError,
    UsernameTakenError,
    UserNotFoundError,
    ValidationFailedError,
)
from task_manager.usecases import TaskUseCase, UserUseCase, parse_task_id

from conftest import tomorrow, yesterday


@pytest.fixture
def task_uc(task_repo):
    return TaskUseCase(task_repo)


@pytest.fixture
def user_uc(user_repo, token_service, password_service):
    return UserUseCase(user_repo, token_service, password_service)


# --- TaskUseCase ---

def test_create_task_assigns_id(task_uc):
    task = task_uc.create_task("New Task", "Description", tomorrow(), "Pending")
    assert task.id
    assert task.title == "New Task"


def test_create_task_validation_never_reaches_repository():
    repo = Mock()
    with pytest.raises(ValidationFailedError):
        TaskUseCase(repo).create_task("", "desc", tomorrow(), "Pending")
    repo.create_task.assert_not_called()


def test_create_task_storage_error_is_not_validation():
    repo = Mock()
    repo.create_task.side_effect = RepositoryError("disk full")
    with pytest.raises(RepositoryError):
        TaskUseCase(repo).create_task("Fine", "", tomorrow(), "Pending")


def test_get_task_by_id(task_uc):
    created = task_uc.create_task("Lookup", "", tomorrow(), "Pending")
    assert task_uc.get_task_by_id(created.id).id == created.id
    # ids are hex and case-insensitive
    assert task_uc.get_task_by_id(created.id.upper()).id == created.id


def test_get_task_by_id_invalid_format(task_uc):
    with pytest.raises(ValidationFailedError):
        task_uc.get_task_by_id("this-is-not-a-valid-hex-id")


def test_get_task_by_id_not_found(task_uc):
    with pytest.raises(TaskNotFoundError):
        task_uc.get_task_by_id(str(ObjectId()))


def test_get_all_tasks(task_uc):
    task_uc.create_task("Task 1", "", tomorrow(), "Pending")
    task_uc.create_task("Task 2", "", tomorrow(), "In progress")
    assert len(task_uc.get_all_tasks()) == 2


def test_update_task_partial(task_uc):
    created = task_uc.create_task("Old Title", "keep me", tomorrow(), "Pending")
    updated = task_uc.update_task(created.id, title="New Title", status="In progress")
    assert updated.title == "New Title"
    assert updated.status is TaskStatus.IN_PROGRESS
    assert updated.description == "keep me"


def test_update_task_can_clear_description(task_uc):
    created = task_uc.create_task("T", "something", tomorrow(), "Pending")
    assert task_uc.update_task(created.id, description="").description == ""


@pytest.mark.parametrize(
    "changes",
    [{"title": ""}, {"due_date": yesterday()}, {"status": "Archived"}],
)
def test_update_task_rejects_invalid_fields(task_uc, changes):
    created = task_uc.create_task("T", "", tomorrow(), "Pending")
    with pytest.raises(ValidationFailedError):
        task_uc.update_task(created.id, **changes)
    assert task_uc.get_task_by_id(created.id).title == "T"


def test_done_task_cannot_be_reopened(task_uc):
    created = task_uc.create_task("T", "", tomorrow(), "Pending")
    task_uc.update_task(created.id, status="Done")
    for status in ("Pending", "In progress"):
        with pytest.raises(ValidationFailedError):
            task_uc.update_task(created.id, status=status)
    # Done -> Done is allowed, and other fields stay editable
    again = task_uc.update_task(created.id, status="Done", title="Still done")
    assert again.status is TaskStatus.DONE
    assert again.title == "Still done"


def test_update_missing_task(task_uc):
    with pytest.raises(TaskNotFoundError):
        task_uc.update_task(str(ObjectId()), title="x")


def test_update_invalid_id(task_uc):
    with pytest.raises(ValidationFailedError):
        task_uc.update_task("nope", title="x")


def test_delete_then_get(task_uc):
    created = task_uc.create_task("Doomed", "", tomorrow(), "Pending")
    task_uc.delete_task(created.id)
    with pytest.raises(TaskNotFoundError):
        task_uc.get_task_by_id(created.id)


def test_delete_invalid_id(task_uc):
    with pytest.raises(ValidationFailedError):
        task_uc.delete_task("123")


def test_parse_task_id_normalises_case():
    oid = str(ObjectId())
    assert parse_task_id(oid.upper()) == oid


# --- UserUseCase ---

def test_register_user(user_uc, user_repo):
    user = user_uc.register_user("erin", "plaintext-pw")
    assert user.id
    assert user.role is Role.USER
    assert user.password_hash == ""
    stored = user_repo.get_user_by_username("erin")
    assert stored.password_hash
    assert stored.password_hash != "plaintext-pw"


def test_register_taken_username(user_uc):
    user_uc.register_user("frank", "pw")
    with pytest.raises(UsernameTakenError):
        user_uc.register_user("frank", "other")


@pytest.mark.parametrize("username,password", [("", "pw"), ("gina", "")])
def test_register_requires_username_and_password(user_uc, username, password):
    with pytest.raises(ValidationFailedError):
        user_uc.register_user(username, password)


def test_register_propagates_lookup_errors(token_service, password_service):
    repo = Mock()
    repo.get_user_by_username.side_effect = RepositoryError("connection refused")
    with pytest.raises(RepositoryError):
        UserUseCase(repo, token_service, password_service).register_user("hank", "pw")
    repo.create_user.assert_not_called()


def test_login_success(user_uc, token_service):
    registered = user_uc.register_user("ivy", "correct")
    token = user_uc.login("ivy", "correct")
    assert token
    claims = token_service.verify_token(token)
    assert claims.user_id == registered.id
    assert claims.username == "ivy"
    assert claims.role is Role.USER


def test_login_wrong_password(user_uc):
    user_uc.register_user("jack", "correct")
    with pytest.raises(InvalidCredentialsError):
        user_uc.login("jack", "incorrect")


def test_login_unknown_user(user_uc):
    with pytest.raises(InvalidCredentialsError):
        user_uc.login("nobody", "whatever")


def test_login_collapses_unexpected_failures(token_service):
    repo = Mock()
    repo.get_user_by_username.side_effect = RepositoryError("timeout")
    hasher = Mock()
    with pytest.raises(InvalidCredentialsError):
        UserUseCase(repo, token_service, hasher).login("kim", "pw")

    repo.get_user_by_username.side_effect = None
    repo.get_user_by_username.return_value = Mock(password_hash="garbage")
    hasher.compare.side_effect = PasswordHashError()
    with pytest.raises(InvalidCredentialsError):
        UserUseCase(repo, token_service, hasher).login("kim", "pw")


def test_ensure_admin_creates_once(user_uc, user_repo):
    admin = user_uc.ensure_admin("root", "rootpw")
    assert admin.role is Role.ADMIN
    again = user_uc.ensure_admin("root", "different")
    assert again.id == admin.id
    assert user_uc.login("root", "rootpw")


def test_ensure_admin_keeps_existing_account(user_uc, user_repo, caplog):
    user_uc.register_user("lee", "pw")
    with caplog.at_level(logging.WARNING, logger="task_manager.usecases"):
        assert user_uc.ensure_admin("lee", "pw").role is Role.USER
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "'lee'" in warnings[0].getMessage()
    assert "role User" in warnings[0].getMessage()


def test_ensure_admin_existing_admin_is_quiet(user_uc, caplog):
    user_uc.ensure_admin("root", "rootpw")
    with caplog.at_level(logging.WARNING, logger="task_manager.usecases"):
        user_uc.ensure_admin("root", "rootpw")
    assert not [r for r in caplog.records if r.levelno >= logging.WARNING]


def test_ensure_admin_tolerates_concurrent_creation(token_service, password_service, user_repo):
    repo = Mock()
    repo.get_user_by_username.side_effect = [UserNotFoundError(), Mock(id="abc", role=Role.ADMIN)]
    repo.create_user.side_effect = UsernameTakenError()
    UserUseCase(repo, token_service, password_service).ensure_admin("root", "pw")
    assert repo.get_user_by_username.call_count == 2
