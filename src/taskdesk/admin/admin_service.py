# src/taskdesk/admin/admin_service.py

from __future__ import annotations

import logging

from ..data.client import DataClient
from ..data.database import Database
from ..data.models import Profile, Role, RoleAssignment
from ..data.policies import AuthContext
from ..errors import ValidationError, not_found

logger = logging.getLogger(__name__)


def _parse_role(raw: object) -> Role:
    try:
        return Role(raw)
    except ValueError:
        raise ValidationError("role", f"Invalid role; expected one of {', '.join(r.value for r in Role)}") from None


class AdminService:
    """
    Profile and role listing / role changes.

    Admins see every row and may change any role; everyone else sees only
    their own profile and assignment. The policies make that call, not this class.
    """

    def __init__(self, client: DataClient) -> None:
        self._client = client

    def list_profiles(self) -> list[Profile]:
        rows = self._client.select("profiles", order_by="created_at")
        return [Profile.from_row(r) for r in rows]

    def list_roles(self) -> list[RoleAssignment]:
        rows = self._client.select("user_roles", order_by="created_at")
        return [RoleAssignment.from_row(r) for r in rows]

    def role_for_user(self, user_id: str) -> RoleAssignment | None:
        rows = self._client.select("user_roles", filters={"user_id": user_id}, limit=1)
        return RoleAssignment.from_row(rows[0]) if rows else None

    def set_role(self, assignment_id: str, role: Role | str) -> RoleAssignment:
        new_role = _parse_role(role)
        row = self._client.update("user_roles", assignment_id, {"role": new_role.value})
        assignment = RoleAssignment.from_row(row)
        logger.info(
            "Role changed assignment=%s user_id=%s role=%s by=%s",
            assignment.id,
            assignment.user_id,
            assignment.role.value,
            self._client.ctx.uid or "service",
        )
        return assignment

    def update_profile(self, profile_id: str, full_name: str | None) -> Profile:
        if full_name is not None and not isinstance(full_name, str):
            raise ValidationError("full_name", "Full name must be a string")
        name = (full_name or "").strip() or None
        row = self._client.update("profiles", profile_id, {"full_name": name})
        return Profile.from_row(row)


def grant_role(database: Database, user_id: str, role: Role | str) -> RoleAssignment:
    """
    Service-role role change, used to bootstrap the first admin.

    Bypasses the policies, so it is only reachable from the command line.
    """
    service = AdminService(DataClient(database, AuthContext.service_role()))
    assignment = service.role_for_user(user_id)
    if assignment is None:
        raise not_found()
    return service.set_role(assignment.id, role)
