# src/taskdesk/data/models.py

from __future__ import annotations

import sqlite3
from dataclasses import asdict, dataclass
from enum import StrEnum
from typing import Any


class Role(StrEnum):
    USER = "user"
    ADMIN = "admin"

    @classmethod
    def from_db(cls, raw: str | None) -> Role:
        """Unknown or missing values resolve to the default role."""
        if not raw:
            return cls.USER
        try:
            return cls(raw)
        except ValueError:
            return cls.USER


class TaskStatus(StrEnum):
    """
    Task status.

    There is no transition graph: any status may move to any other.
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True, slots=True)
class Profile:
    id: str
    email: str
    full_name: str | None
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row | dict[str, Any]) -> Profile:
        return cls(
            id=str(row["id"]),
            email=str(row["email"] or ""),
            full_name=row["full_name"],
            created_at=str(row["created_at"]),
            updated_at=str(row["updated_at"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class RoleAssignment:
    id: str
    user_id: str
    role: Role
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row | dict[str, Any]) -> RoleAssignment:
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            role=Role.from_db(row["role"]),
            created_at=str(row["created_at"]),
        )

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["role"] = self.role.value
        return d


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    user_id: str
    title: str
    description: str | None
    status: TaskStatus
    priority: TaskPriority
    due_date: str | None
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row | dict[str, Any]) -> Task:
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            title=str(row["title"]),
            description=row["description"],
            status=TaskStatus(row["status"]),
            priority=TaskPriority(row["priority"]),
            due_date=row["due_date"],
            created_at=str(row["created_at"]),
            updated_at=str(row["updated_at"]),
        )

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["status"] = self.status.value
        d["priority"] = self.priority.value
        return d
