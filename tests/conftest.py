# tests/conftest.py

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from types import SimpleNamespace

import pytest

from taskdesk.admin.admin_service import grant_role
from taskdesk.auth.provider import AuthResponse, LocalIdentityProvider
from taskdesk.auth.session import SessionManager
from taskdesk.auth.storage import MemorySessionStorage
from taskdesk.core.state import AppState
from taskdesk.data.client import DataClient
from taskdesk.data.database import Database
from taskdesk.data.models import Role
from taskdesk.data.policies import AuthContext

from .fakes import FakeClock

PASSWORD = "secret123"


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the auth layer.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskdesk-test",
        log_level="DEBUG",
        # Paths (tmp per test run)
        data_dir=tmp_path,
        db_path=tmp_path / "taskdesk.sqlite3",
        session_path=tmp_path / "session.json",
        log_dir=tmp_path,
        # Auth; minimum bcrypt cost keeps the suite fast
        access_token_ttl_seconds=3600,
        password_min_length=6,
        bcrypt_rounds=4,
        # Client session
        auto_refresh=True,
        refresh_interval_seconds=30,
        refresh_margin_seconds=60,
        api_host="127.0.0.1",
        api_port=8000,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def database(settings: SimpleNamespace) -> Database:
    return Database(settings.db_path)


@pytest.fixture()
def provider(database: Database, settings: SimpleNamespace, clock: FakeClock) -> LocalIdentityProvider:
    return LocalIdentityProvider(database, settings, clock=clock)


@pytest.fixture()
def manager(provider: LocalIdentityProvider, database: Database, clock: FakeClock) -> SessionManager:
    return SessionManager(provider, database, MemorySessionStorage(), clock=clock)


@pytest.fixture()
def state(settings: SimpleNamespace, database: Database, provider: LocalIdentityProvider, manager) -> AppState:
    return AppState(settings=settings, database=database, provider=provider, session_manager=manager)


@pytest.fixture()
def make_user(provider: LocalIdentityProvider, database: Database) -> Callable[..., AuthResponse]:
    """Register a user; `admin=True` promotes them through the service role."""

    def _make(email: str, *, full_name: str | None = None, admin: bool = False) -> AuthResponse:
        resp = provider.sign_up(email, PASSWORD, full_name=full_name)
        if admin:
            grant_role(database, resp.user.id, Role.ADMIN)
        return resp

    return _make


@pytest.fixture()
def client_for(database: Database) -> Callable[[str], DataClient]:
    def _client(uid: str) -> DataClient:
        return DataClient(database, AuthContext.for_user(uid))

    return _client
