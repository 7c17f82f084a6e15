# src/taskdesk/auth/identity.py

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Any

from ..data.client import DataClient
from ..data.database import Database
from ..data.models import Role
from ..data.policies import AuthContext
from ..data.role_resolution import resolve_role
from ..errors import TaskdeskError
from .provider import IdentityUser

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Identity:
    """The signed-in user as the UI sees it."""

    id: str
    email: str
    role: Role = Role.USER
    display_name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.display_name,
            "role": self.role.value,
        }


def derive_identity(database: Database, user: IdentityUser) -> Identity:
    """
    Combine the authenticated user with their role and profile.

    Neither secondary lookup may fail the whole call: a missing or unreadable
    role means Role.USER, a missing profile means no display name.
    """
    role = Role.USER
    try:
        role = resolve_role(database, user.id)
    except (TaskdeskError, sqlite3.Error):
        logger.warning("Role lookup failed user_id=%s; defaulting to user", user.id, exc_info=True)

    display_name: str | None = None
    try:
        profile = DataClient(database, AuthContext.for_user(user.id)).get("profiles", user.id)
        if profile is not None:
            display_name = profile.get("full_name")
    except TaskdeskError:
        logger.warning("Profile lookup failed user_id=%s", user.id, exc_info=True)

    return Identity(id=user.id, email=user.email, role=role, display_name=display_name)
