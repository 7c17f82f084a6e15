# src/taskdesk/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the database, identity provider and (for the console) the client
  session manager into AppState.
"""

from __future__ import annotations

import logging

from ..auth.provider import LocalIdentityProvider
from ..auth.session import SessionManager
from ..auth.storage import FileSessionStorage
from ..config import get_settings
from ..core.state import AppState
from ..data.database import Database

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.session_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, with_session: bool = False) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    database = Database(settings.db_path)
    provider = LocalIdentityProvider(database, settings)

    session_manager = None
    if with_session:
        session_manager = SessionManager(
            provider,
            database,
            FileSessionStorage(settings.session_path),
            auto_refresh=settings.auto_refresh,
        )

    return AppState(
        settings=settings,
        database=database,
        provider=provider,
        session_manager=session_manager,
    )
