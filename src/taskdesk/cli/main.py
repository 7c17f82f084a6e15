# src/taskdesk/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs one of:
- serve: the REST API under uvicorn,
- console: the interactive REPL in the main thread, with the session
  refresher in a background thread (optional),
- grant-admin: service-role role change for bootstrapping the first admin,
- init-db: create the database schema and exit.
"""

from __future__ import annotations

import argparse
import logging
import sys

from ..admin.admin_service import grant_role
from ..auth.refresher import start_refresher_in_background
from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..data.models import Role
from ..errors import TaskdeskError
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="taskdesk", description="Multi-user task manager.")
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the REST API.")
    serve.add_argument("--host", default=None, help="Bind address (default: TASKDESK_API_HOST).")
    serve.add_argument("--port", type=int, default=None, help="Port (default: TASKDESK_API_PORT).")

    sub.add_parser("console", help="Interactive console client.")

    grant = sub.add_parser("grant-admin", help="Give a registered user the admin role.")
    grant.add_argument("email")
    grant.add_argument("--revoke", action="store_true", help="Set the role back to user instead.")

    sub.add_parser("init-db", help="Create the database schema and exit.")
    return parser


def _serve(state, host: str | None, port: int | None) -> int:
    import uvicorn

    from ..api.app import create_app

    settings = state.settings
    app = create_app(state)
    uvicorn.run(
        app,
        host=host or settings.api_host,
        port=port or settings.api_port,
        log_config=None,
    )
    return 0


def _console(state) -> int:
    settings = state.settings
    runner = None
    if settings.auto_refresh and state.session_manager is not None:
        runner = start_refresher_in_background(
            state.session_manager,
            interval_seconds=settings.refresh_interval_seconds,
            margin_seconds=settings.refresh_margin_seconds,
        )
    try:
        run_console_loop(state)
    finally:
        if runner is not None:
            runner.stop()
            runner.join(timeout=5.0)
    return 0


def _grant_admin(state, email: str, revoke: bool) -> int:
    user = state.provider.get_user_by_email(email)
    if user is None:
        print(f"No registered user with email {email!r}.", file=sys.stderr)
        return 1
    role = Role.USER if revoke else Role.ADMIN
    try:
        assignment = grant_role(state.database, user.id, role)
    except TaskdeskError as e:
        logger.error("Role change failed for %s: %s", email, e.message)
        return 1
    print(f"{user.email} is now {assignment.role.value}.")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 2

    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.log_dir, console_level=console_level)

    logger.info("Starting %s %s...", settings.app_name, args.command)

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings, with_session=args.command == "console")

    try:
        if args.command == "serve":
            return _serve(state, args.host, args.port)
        if args.command == "console":
            return _console(state)
        if args.command == "grant-admin":
            return _grant_admin(state, args.email, args.revoke)
        if args.command == "init-db":
            print(f"Database ready at {state.database.path}")
            return 0
    finally:
        state.database.close()
        logger.info("Bye.")

    parser.error(f"unknown command {args.command!r}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
