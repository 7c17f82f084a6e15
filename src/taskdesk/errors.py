# src/taskdesk/errors.py

"""
Error taxonomy shared by every layer.

Stores raise, services propagate, surfaces (API / console) translate into the
response envelope or a printed message. Nothing here retries.
"""

from __future__ import annotations

import sqlite3
from typing import Any


class TaskdeskError(Exception):
    code = "error"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "code": self.code}


class AuthenticationError(TaskdeskError):
    """Bad credentials, missing or expired session, duplicate sign-up."""

    code = "invalid_credentials"


class ValidationError(TaskdeskError):
    """Field-level validation failure; only the first violation is reported."""

    code = "validation_failed"

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "code": self.code, "field": self.field}


class AuthorizationError(TaskdeskError):
    """
    Policy denial.

    An absent row and a row the caller may not touch produce the same error.
    """

    code = "not_found"


class StorageError(TaskdeskError):
    code = "storage_error"


NOT_FOUND_MESSAGE = "Row not found or access denied"


def not_found() -> AuthorizationError:
    return AuthorizationError(NOT_FOUND_MESSAGE, code="not_found")


def storage_error_from(exc: sqlite3.Error) -> StorageError:
    if isinstance(exc, sqlite3.IntegrityError):
        return StorageError(str(exc), code="constraint_violation")
    return StorageError(str(exc), code="storage_error")
