# src/taskdesk/auth/session.py

"""
Client session manager.

Holds the current bearer session, persists it through a SessionStorage,
refreshes it, and tells listeners whenever it changes. Consumers must not cache
the identity it hands out: they re-derive it on every auth-state event.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from enum import StrEnum

from ..core.ports import IdentityProvider, SessionStorage
from ..data.client import DataClient
from ..data.database import Database
from ..data.policies import AuthContext
from ..errors import AuthenticationError, TaskdeskError
from .identity import Identity, derive_identity
from .provider import Session

logger = logging.getLogger(__name__)


class AuthEvent(StrEnum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"


AuthListener = Callable[[AuthEvent, Session | None], None]


class SessionManager:
    def __init__(
        self,
        provider: IdentityProvider,
        database: Database,
        storage: SessionStorage,
        *,
        auto_refresh: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._provider = provider
        self._database = database
        self._storage = storage
        self._auto_refresh = auto_refresh
        self._clock = clock
        self._lock = threading.RLock()
        self._listeners: list[AuthListener] = []
        self._session: Session | None = self._load()

    # ---- state ----

    def _load(self) -> Session | None:
        data = self._storage.load()
        if not data:
            return None
        try:
            return Session.from_dict(data)
        except (KeyError, TypeError, ValueError):
            logger.warning("Stored session is malformed; discarding it.")
            self._storage.clear()
            return None

    def _store(self, session: Session | None) -> None:
        # caller holds self._lock
        self._session = session
        if session is None:
            self._storage.clear()
        else:
            self._storage.save(session.to_dict())

    def _set(self, session: Session | None, event: AuthEvent) -> None:
        with self._lock:
            self._store(session)
        self._announce(event, session)

    def _announce(self, event: AuthEvent, session: Session | None) -> None:
        logger.info("Auth state changed: %s", event.value)
        self._emit(event, session)

    def _emit(self, event: AuthEvent, session: Session | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception:
                logger.exception("Auth listener failed for event %s", event.value)

    @property
    def session(self) -> Session | None:
        with self._lock:
            return self._session

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        """Subscribe to auth events. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ---- public API ----

    def register(self, email: str, password: str, display_name: str | None = None) -> Identity:
        resp = self._provider.sign_up(email, password, full_name=display_name)
        self._set(resp.session, AuthEvent.SIGNED_IN)
        return derive_identity(self._database, resp.user)

    def login(self, email: str, password: str) -> Identity:
        session = self._provider.sign_in_with_password(email, password)
        self._set(session, AuthEvent.SIGNED_IN)
        return derive_identity(self._database, session.user)

    def logout(self) -> None:
        session = self.session
        if session is None:
            return
        try:
            self._provider.sign_out(session.access_token)
        except TaskdeskError:
            logger.warning("Provider sign-out failed; clearing local session anyway.", exc_info=True)
        finally:
            self._set(None, AuthEvent.SIGNED_OUT)

    def refresh(self, *, stale: Session | None = None) -> Session | None:
        """
        Exchange the refresh token for a new session; None when that is not possible.

        With `stale`, only that session is exchanged: when another thread has
        already replaced it, the current session is returned and the provider
        is not called. The lock is held across the provider call so two
        refreshes never present the same refresh token.
        """
        with self._lock:
            session = self._session
            if session is None:
                return None
            if stale is not None and session.access_token != stale.access_token:
                logger.debug("Session already refreshed by another caller")
                return session
            try:
                new_session = self._provider.refresh_session(session.refresh_token)
            except AuthenticationError as e:
                logger.info("Session refresh rejected (%s); signing out.", e.code)
                self._store(None)
                new_session, event = None, AuthEvent.SIGNED_OUT
            else:
                self._store(new_session)
                event = AuthEvent.TOKEN_REFRESHED
        self._announce(event, new_session)
        return new_session

    def refresh_if_needed(self, margin_seconds: float) -> bool:
        session = self.session
        if session is None or not session.expires_within(margin_seconds, now=self._clock()):
            return False
        return self.refresh(stale=session) is not None

    def _valid_session(self) -> Session | None:
        session = self.session
        if session is None:
            return None
        if session.is_expired(now=self._clock()):
            if not self._auto_refresh:
                return None
            return self.refresh(stale=session)
        return session

    def current_identity(self) -> Identity | None:
        """
        The signed-in identity, or None when there is no usable session.

        Never raises for a missing, expired or revoked session.
        """
        session = self._valid_session()
        if session is None:
            return None
        try:
            user = self._provider.get_user(session.access_token)
        except AuthenticationError as e:
            logger.info("Stored session rejected (%s); clearing it.", e.code)
            self._set(None, AuthEvent.SIGNED_OUT)
            return None
        return derive_identity(self._database, user)

    def data_client(self) -> DataClient:
        """Caller-scoped data access for the current session."""
        session = self._valid_session()
        if session is None:
            raise AuthenticationError("Auth session missing", code="session_missing")
        user = self._provider.get_user(session.access_token)
        return DataClient(self._database, AuthContext.for_user(user.id))

    def notify_user_updated(self) -> None:
        self._emit(AuthEvent.USER_UPDATED, self.session)
