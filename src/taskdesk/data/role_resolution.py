# src/taskdesk/data/role_resolution.py

"""
Privileged role lookup.

Policies on user_roles themselves ask "is the caller an admin?". Answering that
with a sub-query against the policy-protected table would re-enter policy
evaluation, so the lookup runs here instead:

- on its own service connection, which has no policy functions installed,
- read-only, no writes and no caching across calls,
- with a re-entrancy guard that raises instead of looping.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar

from .database import Database
from .models import Role

logger = logging.getLogger(__name__)

_resolving: ContextVar[bool] = ContextVar("taskdesk_role_resolving", default=False)


class RecursiveRoleResolution(RuntimeError):
    pass


def resolve_role(database: Database, user_id: str | None) -> Role:
    """
    Return the caller's role: admin only when an explicit assignment says so.

    A missing user id or a missing assignment row resolves to Role.USER.
    """
    if not user_id:
        return Role.USER

    if _resolving.get():
        raise RecursiveRoleResolution(f"role resolution re-entered for user_id={user_id}")

    token = _resolving.set(True)
    try:
        with database.service_connection() as conn:
            row = conn.execute(
                "SELECT role FROM user_roles WHERE user_id = ?",
                (user_id,),
            ).fetchone()
    finally:
        _resolving.reset(token)

    if row is None:
        logger.debug("No role assignment for user_id=%s; defaulting to user", user_id)
        return Role.USER
    return Role.from_db(row["role"])


def is_admin(database: Database, user_id: str | None) -> bool:
    return resolve_role(database, user_id) is Role.ADMIN
