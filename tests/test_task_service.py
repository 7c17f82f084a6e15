# tests/test_task_service.py

from __future__ import annotations

import pytest

from taskdesk.data.models import TaskPriority, TaskStatus
from taskdesk.errors import AuthorizationError, ValidationError
from taskdesk.tasks.task_service import TaskService
from taskdesk.tasks.validation import parse_due_date, validate_task


def test_validate_task_defaults_and_trims() -> None:
    values = validate_task({"title": "  Write report  "})
    assert values == {
        "title": "Write report",
        "status": "pending",
        "priority": "medium",
    }


def test_title_length_boundary() -> None:
    assert validate_task({"title": "x" * 200})["title"] == "x" * 200
    with pytest.raises(ValidationError) as ei:
        validate_task({"title": "x" * 201})
    assert (ei.value.field, ei.value.message) == ("title", "Title too long")


@pytest.mark.parametrize("title", [None, "", "   "])
def test_title_is_required(title) -> None:
    with pytest.raises(ValidationError) as ei:
        validate_task({"title": title})
    assert (ei.value.field, ei.value.message) == ("title", "Title is required")


def test_description_limit_and_enums() -> None:
    assert validate_task({"title": "t", "description": "d" * 1000})["description"] == "d" * 1000
    with pytest.raises(ValidationError) as ei:
        validate_task({"title": "t", "description": "d" * 1001})
    assert ei.value.field == "description"

    with pytest.raises(ValidationError) as ei:
        validate_task({"title": "t", "status": "done"})
    assert ei.value.field == "status"

    with pytest.raises(ValidationError) as ei:
        validate_task({"title": "t", "priority": "urgent"})
    assert ei.value.field == "priority"


def test_first_violation_wins_in_field_order() -> None:
    with pytest.raises(ValidationError) as ei:
        validate_task({"priority": "urgent", "title": ""})
    assert ei.value.field == "title"


def test_unknown_field_rejected() -> None:
    with pytest.raises(ValidationError) as ei:
        validate_task({"title": "t", "user_id": "someone-else"})
    assert ei.value.field == "user_id"


def test_partial_validation_only_touches_given_fields() -> None:
    assert validate_task({"status": "completed"}, partial=True) == {"status": "completed"}


def test_parse_due_date() -> None:
    assert parse_due_date("2026-03-01") == "2026-03-01T00:00:00.000Z"
    assert parse_due_date("2026-03-01T12:30:00+02:00") == "2026-03-01T10:30:00.000Z"
    assert parse_due_date("") is None
    assert parse_due_date(None) is None
    with pytest.raises(ValidationError):
        parse_due_date("next tuesday")


@pytest.mark.parametrize("raw", ["0001-01-01T00:00:00+01:00", "9999-12-31T23:30:00-01:00"])
def test_due_date_out_of_range_after_utc_shift(raw) -> None:
    with pytest.raises(ValidationError) as ei:
        validate_task({"title": "t", "due_date": raw})
    assert (ei.value.field, ei.value.message) == ("due_date", "Invalid due date")


def test_create_list_update_delete(make_user, client_for) -> None:
    a = make_user("a@example.com").user
    service = TaskService(client_for(a.id))

    first = service.create_task({"title": "first"})
    second = service.create_task({"title": "second", "priority": "high", "due_date": "2026-05-01"})

    assert first.user_id == a.id
    assert first.status is TaskStatus.PENDING
    assert first.priority is TaskPriority.MEDIUM
    assert second.due_date == "2026-05-01T00:00:00.000Z"

    # newest first
    assert [t.title for t in service.list_tasks()] == ["second", "first"]

    done = service.set_status(first.id, "completed")
    assert done.status is TaskStatus.COMPLETED
    assert done.title == "first"
    assert done.priority is TaskPriority.MEDIUM

    service.delete_task(second.id)
    assert [t.id for t in service.list_tasks()] == [first.id]
    with pytest.raises(AuthorizationError):
        service.get_task(second.id)


def test_invalid_create_writes_nothing(make_user, client_for, database) -> None:
    a = make_user("a@example.com").user
    service = TaskService(client_for(a.id))
    with pytest.raises(ValidationError):
        service.create_task({"title": "   "})
    assert database.count_rows("tasks") == 0


def test_empty_update_is_rejected(make_user, client_for) -> None:
    a = make_user("a@example.com").user
    service = TaskService(client_for(a.id))
    task = service.create_task({"title": "t"})
    with pytest.raises(ValidationError):
        service.update_task(task.id, {})


def test_update_changes_updated_at_and_keeps_created_at(make_user, client_for) -> None:
    a = make_user("a@example.com").user
    service = TaskService(client_for(a.id))
    task = service.create_task({"title": "t"})

    updated = service.update_task(task.id, {"title": "renamed", "description": "notes"})
    assert updated.title == "renamed"
    assert updated.description == "notes"
    assert updated.created_at == task.created_at
    assert updated.updated_at >= task.updated_at


def test_other_user_cannot_touch_task(make_user, client_for) -> None:
    a = make_user("a@example.com").user
    b = make_user("b@example.com").user
    task = TaskService(client_for(a.id)).create_task({"title": "private"})

    intruder = TaskService(client_for(b.id))
    assert intruder.list_tasks() == []
    with pytest.raises(AuthorizationError):
        intruder.get_task(task.id)
    with pytest.raises(AuthorizationError):
        intruder.set_status(task.id, "completed")
    with pytest.raises(AuthorizationError):
        intruder.delete_task(task.id)
    assert TaskService(client_for(a.id)).get_task(task.id).status is TaskStatus.PENDING
