# src/taskdesk/tasks/validation.py

"""Task payload validation. Runs before any write; first violation wins."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from ..data.models import TaskPriority, TaskStatus
from ..errors import ValidationError

TITLE_MAX = 200
DESCRIPTION_MAX = 1000

# Order matters: it is the order violations are reported in.
TASK_FIELDS = ("title", "description", "status", "priority", "due_date")


def format_instant(dt: datetime) -> str:
    """UTC, millisecond precision, trailing Z (same shape the database writes)."""
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_due_date(raw: Any) -> str | None:
    """
    Accept a date (YYYY-MM-DD) or an ISO-8601 instant; return a UTC instant.

    Empty values clear the due date. Naive datetimes are taken as UTC.
    """
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise ValidationError("due_date", "Due date must be a string")
    s = raw.strip()
    if not s:
        return None
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        raise ValidationError("due_date", "Invalid due date") from None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    try:
        return format_instant(dt)
    except (OverflowError, ValueError):
        # parses, but leaves datetime's range once shifted to UTC
        raise ValidationError("due_date", "Invalid due date") from None


def _title(raw: Any) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError("title", "Title is required")
    title = raw.strip()
    if len(title) > TITLE_MAX:
        raise ValidationError("title", "Title too long")
    return title


def _description(raw: Any) -> str | None:
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise ValidationError("description", "Description must be a string")
    if len(raw) > DESCRIPTION_MAX:
        raise ValidationError("description", "Description too long")
    return raw or None


def _status(raw: Any) -> str:
    try:
        return TaskStatus(raw).value
    except ValueError:
        raise ValidationError(
            "status", f"Invalid status; expected one of {', '.join(s.value for s in TaskStatus)}"
        ) from None


def _priority(raw: Any) -> str:
    try:
        return TaskPriority(raw).value
    except ValueError:
        raise ValidationError(
            "priority", f"Invalid priority; expected one of {', '.join(p.value for p in TaskPriority)}"
        ) from None


_CLEANERS = {
    "title": _title,
    "description": _description,
    "status": _status,
    "priority": _priority,
    "due_date": parse_due_date,
}


def validate_task(payload: Mapping[str, Any], *, partial: bool = False) -> dict[str, Any]:
    """
    Return the cleaned column values for a create (partial=False) or an update
    (partial=True, only the given fields).

    Raises ValidationError(field, message) for the first problem found.
    """
    for key in payload:
        if key not in TASK_FIELDS:
            raise ValidationError(key, f"Unknown field: {key}")

    values = dict(payload)
    if not partial:
        values.setdefault("title", None)
        if values.get("status") is None:
            values["status"] = TaskStatus.PENDING.value
        if values.get("priority") is None:
            values["priority"] = TaskPriority.MEDIUM.value

    clean: dict[str, Any] = {}
    for name in TASK_FIELDS:
        if name in values:
            clean[name] = _CLEANERS[name](values[name])
    return clean
