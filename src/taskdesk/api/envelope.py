# src/taskdesk/api/envelope.py

from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse

from ..errors import (
    AuthenticationError,
    AuthorizationError,
    StorageError,
    TaskdeskError,
    ValidationError,
)


def status_for(exc: TaskdeskError) -> int:
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, AuthenticationError):
        return 422 if exc.code == "user_already_exists" else 401
    if isinstance(exc, AuthorizationError):
        # Absent and forbidden rows answer the same way.
        return 403
    if isinstance(exc, StorageError):
        return 409 if exc.code == "constraint_violation" else 500
    return 500


def ok(data: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"data": data, "error": None})


def fail(exc: TaskdeskError) -> JSONResponse:
    return JSONResponse(status_code=status_for(exc), content={"data": None, "error": exc.to_dict()})


def internal_error() -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"data": None, "error": {"message": "Internal server error", "code": "internal_error"}},
    )
