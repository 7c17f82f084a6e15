# tests/fakes.py

from __future__ import annotations

import time
from dataclasses import dataclass, field

from taskdesk.auth.provider import Session
from taskdesk.auth.session import AuthEvent


class FakeClock:
    """
    Manually advanced clock for session expiry tests.

    Passed as `clock=` to the provider and the session manager so both agree
    on "now".
    """

    def __init__(self, start: float = 1_800_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass(slots=True)
class RecordingListener:
    """Auth-state listener that records every event it receives."""

    events: list[tuple[AuthEvent, Session | None]] = field(default_factory=list)

    def __call__(self, event: AuthEvent, session: Session | None) -> None:
        self.events.append((event, session))

    @property
    def names(self) -> list[str]:
        return [e.value for e, _ in self.events]


class SlowRefreshProvider:
    """
    Wraps a real provider and holds every refresh_session call open for a
    moment, so two threads reliably overlap.
    """

    def __init__(self, inner, delay: float = 0.05) -> None:
        self._inner = inner
        self._delay = delay
        self.refresh_calls = 0

    def refresh_session(self, refresh_token: str):
        self.refresh_calls += 1
        time.sleep(self._delay)
        return self._inner.refresh_session(refresh_token)

    def __getattr__(self, name: str):
        return getattr(self._inner, name)
