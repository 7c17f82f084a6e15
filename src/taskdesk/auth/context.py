# src/taskdesk/auth/context.py

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from .identity import Identity
from .provider import Session
from .session import AuthEvent, SessionManager

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """
    What views get instead of a global "current user".

    The identity is re-derived from the manager on every auth-state event, so a
    token refresh or a role change made elsewhere shows up on the next event.
    """

    manager: SessionManager
    identity: Identity | None = None
    _unsubscribe: Callable[[], None] | None = field(default=None, repr=False)

    @classmethod
    def bind(cls, manager: SessionManager) -> SessionContext:
        ctx = cls(manager=manager)
        ctx.rederive()
        ctx._unsubscribe = manager.on_auth_state_change(ctx._on_auth_event)
        return ctx

    def _on_auth_event(self, event: AuthEvent, session: Session | None) -> None:
        if event is AuthEvent.SIGNED_OUT or session is None:
            self.identity = None
            return
        self.rederive()

    def rederive(self) -> Identity | None:
        self.identity = self.manager.current_identity()
        logger.debug("Identity re-derived: %s", self.identity.id if self.identity else None)
        return self.identity

    @property
    def signed_in(self) -> bool:
        return self.identity is not None

    @property
    def is_admin(self) -> bool:
        return self.identity is not None and self.identity.is_admin

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
