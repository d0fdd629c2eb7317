from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from app.database import Database
from app.errors import ForbiddenError, InternalError, NotFoundError, TaskManagerError, ValidationError
from app.models import Priority, TaskSort, TaskStatus
from app.tasks import TaskService, parse_sort

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
MISSING_ID = "0" * 24


@pytest.fixture()
def service(database: Database) -> TaskService:
    return TaskService(database)


def test_create_uses_defaults_and_caller_as_owner(service: TaskService, owner) -> None:
    task = service.create({"title": "  X  "}, owner.id)

    assert task.title == "X"
    assert task.priority is Priority.MEDIUM
    assert task.status is TaskStatus.PENDING
    assert task.user_id == owner.id


def test_create_ignores_owner_in_payload(service: TaskService, owner, stranger) -> None:
    task = service.create({"title": "Mine", "user_id": stranger.id, "user": stranger.id}, owner.id)
    assert task.user_id == owner.id


def test_create_accepts_iso_due_date(service: TaskService, owner) -> None:
    task = service.create({"title": "Ship", "due_date": "2026-11-01T09:30:00Z"}, owner.id)
    assert task.due_date == datetime(2026, 11, 1, 9, 30, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"title": ""},
        {"title": "   "},
        {"title": "ok", "priority": "Urgent"},
        {"title": "ok", "status": "Archived"},
        {"title": "ok", "due_date": "next tuesday"},
    ],
)
def test_create_rejects_invalid_payloads(service: TaskService, owner, payload) -> None:
    with pytest.raises(ValidationError):
        service.create(payload, owner.id)


def test_list_only_returns_callers_tasks(service: TaskService, owner, stranger) -> None:
    service.create({"title": "Mine"}, owner.id)
    service.create({"title": "Theirs"}, stranger.id)

    assert [task.title for task in service.list(owner.id)] == ["Mine"]
    assert [task.title for task in service.list(stranger.id)] == ["Theirs"]


def test_list_filters_and_sorts(service: TaskService, owner, set_store_time) -> None:
    set_store_time(NOW)
    service.create({"title": "b report", "status": TaskStatus.COMPLETED}, owner.id)
    set_store_time(NOW + timedelta(minutes=1))
    service.create({"title": "a review", "description": "weekly REPORT"}, owner.id)
    set_store_time(NOW + timedelta(minutes=2))
    service.create({"title": "c unrelated"}, owner.id)

    assert [t.title for t in service.list(owner.id)] == ["c unrelated", "a review", "b report"]
    assert [t.title for t in service.list(owner.id, status=TaskStatus.COMPLETED)] == ["b report"]
    assert [t.title for t in service.list(owner.id, search="report", sort_by="title")] == [
        "a review",
        "b report",
    ]
    assert [t.title for t in service.list(owner.id, sort_by="title:desc")] == [
        "c unrelated",
        "b report",
        "a review",
    ]
    assert [t.title for t in service.list(owner.id, sort_by="createdAt:asc")] == [
        "b report",
        "a review",
        "c unrelated",
    ]


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, TaskSort("created_at", True)),
        ("", TaskSort("created_at", True)),
        ("title", TaskSort("title", False)),
        ("dueDate:desc", TaskSort("due_date", True)),
        ("priority:asc", TaskSort("priority", False)),
        ("updatedAt:sideways", TaskSort("updated_at", False)),
    ],
)
def test_parse_sort(value, expected) -> None:
    assert parse_sort(value) == expected


def test_parse_sort_rejects_unknown_field() -> None:
    with pytest.raises(ValidationError):
        parse_sort("password:asc")


def test_get_returns_owned_task(service: TaskService, owner) -> None:
    created = service.create({"title": "Read"}, owner.id)
    assert service.get(created.id, owner.id) == created


def test_non_owner_is_forbidden_on_existing_task(service: TaskService, owner, stranger) -> None:
    task = service.create({"title": "Private"}, owner.id)

    with pytest.raises(ForbiddenError):
        service.get(task.id, stranger.id)
    with pytest.raises(ForbiddenError):
        service.update(task.id, stranger.id, {"title": "Hijacked"})
    with pytest.raises(ForbiddenError):
        service.delete(task.id, stranger.id)

    assert service.get(task.id, owner.id).title == "Private"


def test_missing_task_is_not_found_before_ownership(service: TaskService, stranger) -> None:
    with pytest.raises(NotFoundError):
        service.get(MISSING_ID, stranger.id)
    with pytest.raises(NotFoundError):
        service.update(MISSING_ID, stranger.id, {"title": "x"})
    with pytest.raises(NotFoundError):
        service.delete(MISSING_ID, stranger.id)


@pytest.mark.parametrize("task_id", ["123", "not-an-id", "Z" * 24])
def test_malformed_ids_are_validation_errors(service: TaskService, owner, task_id: str) -> None:
    with pytest.raises(ValidationError):
        service.get(task_id, owner.id)
    with pytest.raises(ValidationError):
        service.update(task_id, owner.id, {"title": "x"})
    with pytest.raises(ValidationError):
        service.delete(task_id, owner.id)


def test_update_skips_falsy_values(service: TaskService, owner) -> None:
    task = service.create(
        {
            "title": "Original",
            "description": "Keep me",
            "due_date": NOW + timedelta(days=2),
            "priority": Priority.HIGH,
        },
        owner.id,
    )

    updated = service.update(
        task.id,
        owner.id,
        {"title": "", "description": "", "due_date": None, "priority": None, "status": None},
    )

    assert updated.title == "Original"
    assert updated.description == "Keep me"
    assert updated.due_date == NOW + timedelta(days=2)
    assert updated.priority is Priority.HIGH
    assert updated.status is TaskStatus.PENDING


def test_update_overwrites_truthy_values(service: TaskService, owner, set_store_time) -> None:
    task = service.create({"title": "Original"}, owner.id)
    set_store_time(NOW + timedelta(hours=1))

    updated = service.update(
        task.id,
        owner.id,
        {
            "title": "Renamed",
            "description": "Details",
            "due_date": "2026-12-01T00:00:00+00:00",
            "priority": "Low",
            "status": TaskStatus.COMPLETED,
        },
    )

    assert updated.title == "Renamed"
    assert updated.description == "Details"
    assert updated.due_date == datetime(2026, 12, 1, tzinfo=timezone.utc)
    assert updated.priority is Priority.LOW
    assert updated.status is TaskStatus.COMPLETED
    assert updated.updated_at == NOW + timedelta(hours=1)
    assert updated.created_at == task.created_at


def test_owner_survives_any_update_payload(service: TaskService, owner, stranger) -> None:
    task = service.create({"title": "Mine"}, owner.id)

    for payload in (
        {"user_id": stranger.id},
        {"user": stranger.id, "owner": stranger.id},
        {"title": "Still mine", "user_id": stranger.id},
    ):
        updated = service.update(task.id, owner.id, payload)
        assert updated.user_id == owner.id

    with pytest.raises(ForbiddenError):
        service.get(task.id, stranger.id)


def test_update_rejects_invalid_enum(service: TaskService, owner) -> None:
    task = service.create({"title": "Mine"}, owner.id)
    with pytest.raises(ValidationError):
        service.update(task.id, owner.id, {"priority": "Urgent"})


def test_delete_is_not_repeatable(service: TaskService, owner) -> None:
    task = service.create({"title": "Temporary"}, owner.id)

    removed = service.delete(task.id, owner.id)
    assert removed.id == task.id

    with pytest.raises(NotFoundError):
        service.delete(task.id, owner.id)
    with pytest.raises(NotFoundError):
        service.get(task.id, owner.id)


def test_store_failures_surface_as_internal_error(tmp_path) -> None:
    service = TaskService(Database(tmp_path))

    with pytest.raises(InternalError) as excinfo:
        service.get(MISSING_ID, "f" * 24)

    assert isinstance(excinfo.value, TaskManagerError)
    assert excinfo.value.message == "Task store unavailable"
