# src/taskdesk/tasks/task_service.py

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..data.client import DataClient
from ..data.models import Task, TaskStatus
from ..errors import AuthenticationError, ValidationError, not_found
from .validation import validate_task

logger = logging.getLogger(__name__)

TABLE = "tasks"


class TaskService:
    """
    Task CRUD for one caller.

    Ownership is never checked here: the tasks policies decide what the caller
    can see and change. This layer only validates input before it is written.
    """

    def __init__(self, client: DataClient) -> None:
        self._client = client

    def _caller_id(self) -> str:
        uid = self._client.ctx.uid
        if not uid:
            raise AuthenticationError("Auth session missing", code="session_missing")
        return uid

    def create_task(self, payload: Mapping[str, Any], *, owner_id: str | None = None) -> Task:
        values = validate_task(payload)
        values["user_id"] = owner_id or self._caller_id()
        row = self._client.insert(TABLE, values)
        task = Task.from_row(row)
        logger.info("Task created id=%s user_id=%s", task.id, task.user_id)
        return task

    def list_tasks(self) -> list[Task]:
        """Visible tasks, newest first."""
        rows = self._client.select(TABLE, order_by="created_at", descending=True)
        return [Task.from_row(r) for r in rows]

    def get_task(self, task_id: str) -> Task:
        row = self._client.get(TABLE, task_id)
        if row is None:
            raise not_found()
        return Task.from_row(row)

    def update_task(self, task_id: str, changes: Mapping[str, Any]) -> Task:
        """Partial update: fields not in `changes` keep their values."""
        values = validate_task(changes, partial=True)
        if not values:
            raise ValidationError("task", "No fields to update")
        row = self._client.update(TABLE, task_id, values)
        logger.info("Task updated id=%s fields=%s", task_id, sorted(values))
        return Task.from_row(row)

    def set_status(self, task_id: str, status: TaskStatus | str) -> Task:
        return self.update_task(task_id, {"status": str(status)})

    def delete_task(self, task_id: str) -> None:
        self._client.delete(TABLE, task_id)
        logger.info("Task deleted id=%s", task_id)
