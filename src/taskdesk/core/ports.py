# src/taskdesk/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the session layer and the surfaces.

The client session manager depends on Protocols instead of concrete
implementations, so the identity provider and the session persistence are
swappable and easy to fake in tests.
"""

from typing import Any, Protocol

from ..auth.provider import AuthResponse, IdentityUser, Session


class IdentityProvider(Protocol):
    """The managed auth service, as seen by the client."""

    def sign_up(self, email: str, password: str, *, full_name: str | None = None) -> AuthResponse: ...
    def sign_in_with_password(self, email: str, password: str) -> Session: ...
    def refresh_session(self, refresh_token: str) -> Session: ...
    def sign_out(self, access_token: str) -> None: ...
    def get_user(self, access_token: str) -> IdentityUser: ...


class SessionStorage(Protocol):
    """Where the client keeps its session between runs."""

    def load(self) -> dict[str, Any] | None: ...
    def save(self, data: dict[str, Any]) -> None: ...
    def clear(self) -> None: ...
