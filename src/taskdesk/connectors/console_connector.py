# src/taskdesk/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
from datetime import datetime

from ..auth.context import SessionContext
from ..cli.commands import registry as command_registry
from ..cli.views import render_identity
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    try:
        if sys.stdout.isatty():
            sys.stdout.write("\033[1A\033[2K\r")
            sys.stdout.write(line + "\n")
            sys.stdout.flush()
        else:
            print(line)
    except OSError:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def _prompt(ctx: SessionContext) -> str:
    if ctx.identity is None:
        return ">>> (signed out): "
    return f">>> {ctx.identity.email}: "


def run_console_loop(state: AppState) -> None:
    if state.session_manager is None:
        raise RuntimeError("Console requires a session manager (create_initial_state(with_session=True)).")

    ctx = SessionContext.bind(state.session_manager)
    logger.info("Console connector started (signed_in=%s).", ctx.signed_in)
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.")
    _print_ts(render_identity(ctx.identity) + "\n")

    def emit(text: str) -> None:
        # Immediate user-visible feedback for slow operations (password hashing).
        print(f"[{_ts_local()}] {text}", flush=True)

    try:
        while True:
            prompt = _prompt(ctx)
            try:
                user_input = input(prompt).strip()
                _rewrite_prev_line(f"[{_ts_local()}] {prompt}{user_input}")
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            if not user_input.startswith("/"):
                _print_ts("Commands start with '/'. Use /help to list them.")
                continue

            try:
                response = command_registry.handle(ctx, user_input, emit=emit)
            except Exception:
                logger.exception("Command handler crashed.")
                response = "Internal error while handling a command."

            if response is not None:
                _print_ts(response)
    finally:
        ctx.close()
        logger.info("Console connector finished.")
