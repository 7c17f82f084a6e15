# src/taskdesk/auth/refresher.py

from __future__ import annotations

"""
Session refresher.

A small polling loop that keeps the client session alive:
- every interval, check how long the current session has left,
- refresh it when it is within margin_seconds of expiry.

The REPL is blocking, so the loop normally runs on its own event loop in a
background thread (start_refresher_in_background).
"""

import asyncio
import contextlib
import logging
import threading
from dataclasses import dataclass

from .session import SessionManager

logger = logging.getLogger(__name__)


async def run_session_refresher(
        manager: SessionManager,
        *,
        interval_seconds: float = 30.0,
        margin_seconds: float = 60.0,
) -> None:
    """
    Refresh the session ahead of expiry until cancelled.

    Failures are logged and retried on the next tick; a rejected refresh token
    signs the manager out (and emits SIGNED_OUT) rather than raising here.
    """
    sleep_s = max(0.01, float(interval_seconds))
    margin_s = max(0.0, float(margin_seconds))

    while True:
        try:
            if manager.refresh_if_needed(margin_s):
                logger.debug("Session refreshed ahead of expiry")
        except Exception:
            logger.exception("Session refresh tick failed")

        await asyncio.sleep(sleep_s)


@dataclass(slots=True)
class RefresherBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    task: asyncio.Task

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.task.cancel)
        except RuntimeError:
            logger.debug("Failed to signal refresher stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_refresher_in_background(
        manager: SessionManager,
        *,
        interval_seconds: float,
        margin_seconds: float,
) -> RefresherBackgroundRunner | None:
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        task = loop.create_task(
            run_session_refresher(
                manager,
                interval_seconds=interval_seconds,
                margin_seconds=margin_seconds,
            )
        )
        holder["loop"] = loop
        holder["task"] = task
        ready.set()

        try:
            with contextlib.suppress(asyncio.CancelledError):
                loop.run_until_complete(task)
        finally:
            loop.close()

    t = threading.Thread(target=runner, name="taskdesk-refresher", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    task = holder.get("task")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(task, asyncio.Task):
        logger.error("Refresher thread did not initialize properly.")
        return None

    logger.info("Session refresher started (interval=%ss margin=%ss).", interval_seconds, margin_seconds)
    return RefresherBackgroundRunner(thread=t, loop=loop, task=task)
