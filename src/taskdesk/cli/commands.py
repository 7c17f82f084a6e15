# src/taskdesk/cli/commands.py

from __future__ import annotations

import inspect
import logging
import shlex
from collections.abc import Callable
from typing import cast

from ..admin.admin_service import AdminService
from ..auth.context import SessionContext
from ..data.models import Task
from ..errors import TaskdeskError, ValidationError
from ..tasks.task_service import TaskService
from .views import render_identity, render_profiles, render_task, render_tasks

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[SessionContext, list[str]], str]
CommandHandler3 = Callable[[SessionContext, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console client (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        ctx: SessionContext,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError:
            parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        nparams = len(inspect.signature(handler).parameters)

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(ctx, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(ctx, args)
        except ValidationError as e:
            return f"Invalid {e.field}: {e.message}"
        except TaskdeskError as e:
            logger.debug("/%s failed: %s (%s)", name, e.message, e.code)
            return f"Error: {e.message}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()

NOT_SIGNED_IN = "Not signed in. Use /login <email> <password> or /signup."
ADMIN_ONLY = "Access denied: admin role required."


def _split_options(args: list[str], allowed: tuple[str, ...]) -> tuple[list[str], dict[str, str]]:
    """Separate key=value options from positional words."""
    words: list[str] = []
    options: dict[str, str] = {}
    for arg in args:
        key, sep, value = arg.partition("=")
        if sep and key.lower() in allowed:
            options[key.lower()] = value
        else:
            words.append(arg)
    return words, options


def _task_fields(options: dict[str, str]) -> dict[str, str]:
    # The console says "due", the data model says "due_date".
    fields = dict(options)
    if "due" in fields:
        fields["due_date"] = fields.pop("due")
    return fields


def _resolve_task(service: TaskService, prefix: str) -> Task | str:
    """Find a visible task by id prefix; a string result is the error to show."""
    matches = [t for t in service.list_tasks() if t.id.startswith(prefix)]
    if not matches:
        return f"No task matching '{prefix}'."
    if len(matches) > 1:
        return f"'{prefix}' is ambiguous ({len(matches)} tasks). Use more characters."
    return matches[0]


def cmd_help(ctx: SessionContext, args: list[str]) -> str:
    return registry.build_help()


def cmd_signup(ctx: SessionContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/signup <email> <password> [full name]"""
    if len(args) < 2:
        return "Usage: /signup <email> <password> [full name]"
    full_name = " ".join(args[2:]) or None
    if emit:
        emit("Creating account...")
    ctx.manager.register(args[0], args[1], full_name)
    return f"Account created. {render_identity(ctx.identity)}"


def cmd_login(ctx: SessionContext, args: list[str]) -> str:
    if len(args) != 2:
        return "Usage: /login <email> <password>"
    ctx.manager.login(args[0], args[1])
    return render_identity(ctx.identity)


def cmd_logout(ctx: SessionContext, args: list[str]) -> str:
    if not ctx.signed_in:
        return "Already signed out."
    ctx.manager.logout()
    return "Signed out."


def cmd_whoami(ctx: SessionContext, args: list[str]) -> str:
    return render_identity(ctx.rederive())


def cmd_tasks(ctx: SessionContext, args: list[str]) -> str:
    if not ctx.signed_in:
        return NOT_SIGNED_IN
    return render_tasks(TaskService(ctx.manager.data_client()).list_tasks())


def cmd_add(ctx: SessionContext, args: list[str]) -> str:
    """
    /add <title> [description=...] [priority=low|medium|high] [status=...] [due=YYYY-MM-DD]
    """
    if not ctx.signed_in:
        return NOT_SIGNED_IN
    words, options = _split_options(args, ("description", "priority", "status", "due"))
    payload = _task_fields(options)
    payload["title"] = " ".join(words)
    task = TaskService(ctx.manager.data_client()).create_task(payload)
    return f"Added:\n{render_task(task)}"


def cmd_status(ctx: SessionContext, args: list[str]) -> str:
    if not ctx.signed_in:
        return NOT_SIGNED_IN
    if len(args) != 2:
        return "Usage: /status <task-id> <pending|in_progress|completed>"
    service = TaskService(ctx.manager.data_client())
    found = _resolve_task(service, args[0])
    if isinstance(found, str):
        return found
    task = service.set_status(found.id, args[1])
    return render_task(task)


def cmd_done(ctx: SessionContext, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /done <task-id>"
    return cmd_status(ctx, [args[0], "completed"])


def cmd_edit(ctx: SessionContext, args: list[str]) -> str:
    """/edit <task-id> field=value ..."""
    if not ctx.signed_in:
        return NOT_SIGNED_IN
    words, options = _split_options(
        args[1:], ("title", "description", "priority", "status", "due")
    )
    if not args or words or not options:
        return "Usage: /edit <task-id> title=... description=... priority=... status=... due=..."
    service = TaskService(ctx.manager.data_client())
    found = _resolve_task(service, args[0])
    if isinstance(found, str):
        return found
    task = service.update_task(found.id, _task_fields(options))
    return render_task(task)


def cmd_rm(ctx: SessionContext, args: list[str]) -> str:
    if not ctx.signed_in:
        return NOT_SIGNED_IN
    if len(args) != 1:
        return "Usage: /rm <task-id>"
    service = TaskService(ctx.manager.data_client())
    found = _resolve_task(service, args[0])
    if isinstance(found, str):
        return found
    service.delete_task(found.id)
    return f"Deleted task {found.id[:8]}."


def cmd_users(ctx: SessionContext, args: list[str]) -> str:
    # Client-side gate only; the policies enforce it again on every read.
    if not ctx.is_admin:
        return ADMIN_ONLY
    service = AdminService(ctx.manager.data_client())
    return render_profiles(service.list_profiles(), service.list_roles())


def cmd_role(ctx: SessionContext, args: list[str]) -> str:
    """/role <user-id-prefix|email> <user|admin>"""
    if not ctx.is_admin:
        return ADMIN_ONLY
    if len(args) != 2:
        return "Usage: /role <user-id|email> <user|admin>"
    service = AdminService(ctx.manager.data_client())
    target, role = args[0], args[1]

    profiles = [p for p in service.list_profiles() if p.id.startswith(target) or p.email == target]
    if len(profiles) != 1:
        return f"No single user matching '{target}'."
    assignment = service.role_for_user(profiles[0].id)
    if assignment is None:
        return f"User {profiles[0].email} has no role assignment."

    updated = service.set_role(assignment.id, role)
    if ctx.identity is not None and updated.user_id == ctx.identity.id:
        ctx.manager.notify_user_updated()
    return f"{profiles[0].email} is now {updated.role.value}."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("signup", cmd_signup, help_text="Create an account: /signup <email> <password> [full name].")
registry.register("login", cmd_login, help_text="Sign in: /login <email> <password>.")
registry.register("logout", cmd_logout, help_text="Sign out.")
registry.register("whoami", cmd_whoami, help_text="Show the signed-in user and role.", aliases=["me"])
registry.register("tasks", cmd_tasks, help_text="List your tasks, newest first.", aliases=["ls"])
registry.register(
    "add", cmd_add, help_text="Add a task: /add <title> [priority=high] [due=2026-01-31] [description=...]."
)
registry.register("status", cmd_status, help_text="Change status: /status <id> <pending|in_progress|completed>.")
registry.register("done", cmd_done, help_text="Mark a task completed: /done <id>.")
registry.register("edit", cmd_edit, help_text="Edit a task: /edit <id> title=... priority=...")
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <id>.", aliases=["del"])
registry.register("users", cmd_users, help_text="Admin: list all users and roles.", aliases=["admin"])
registry.register("role", cmd_role, help_text="Admin: change a role: /role <user-id|email> <user|admin>.")
