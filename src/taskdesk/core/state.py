# src/taskdesk/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..auth.provider import LocalIdentityProvider
from ..auth.session import SessionManager
from ..data.client import DataClient
from ..data.database import Database
from ..data.policies import AuthContext


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    database: Database
    provider: LocalIdentityProvider

    # Only the console client has a session of its own; the API works per request.
    session_manager: SessionManager | None = None

    def client_for(self, access_token: str) -> DataClient:
        """Caller-scoped data client for a bearer token (raises AuthenticationError)."""
        user = self.provider.get_user(access_token)
        return DataClient(self.database, AuthContext.for_user(user.id))
