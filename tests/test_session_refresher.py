# tests/test_session_refresher.py

from __future__ import annotations

import asyncio
import time

import pytest

from taskdesk.auth.refresher import run_session_refresher, start_refresher_in_background

from .conftest import PASSWORD
from .fakes import RecordingListener


class FakeManager:
    """Counts refresh checks; optionally fails the first one."""

    def __init__(self, *, fail_first: bool = False) -> None:
        self.calls: list[float] = []
        self._fail_first = fail_first

    def refresh_if_needed(self, margin_seconds: float) -> bool:
        self.calls.append(margin_seconds)
        if self._fail_first and len(self.calls) == 1:
            raise RuntimeError("provider unavailable")
        return False


@pytest.mark.asyncio
async def test_refresher_polls_until_cancelled() -> None:
    manager = FakeManager(fail_first=True)
    runner = asyncio.create_task(run_session_refresher(manager, interval_seconds=0.01, margin_seconds=42))

    await asyncio.sleep(0.05)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    # a failing tick does not stop the loop
    assert len(manager.calls) >= 2
    assert set(manager.calls) == {42.0}


@pytest.mark.asyncio
async def test_refresher_renews_session_near_expiry(manager, clock, settings) -> None:
    manager.register("a@example.com", PASSWORD)
    old_token = manager.session.access_token
    listener = RecordingListener()
    manager.on_auth_state_change(listener)

    clock.advance(settings.access_token_ttl_seconds - 10)
    runner = asyncio.create_task(run_session_refresher(manager, interval_seconds=0.01, margin_seconds=60))

    await asyncio.sleep(0.05)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    assert manager.session.access_token != old_token
    # renewed once; the new session is far from expiry again
    assert listener.names == ["TOKEN_REFRESHED"]


def test_background_runner_stops() -> None:
    manager = FakeManager()
    runner = start_refresher_in_background(manager, interval_seconds=0.01, margin_seconds=1)
    assert runner is not None
    time.sleep(0.05)

    runner.stop()
    runner.join(timeout=5.0)
    assert not runner.thread.is_alive()
    assert manager.calls
