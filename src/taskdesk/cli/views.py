# src/taskdesk/cli/views.py

"""Plain-text rendering for the console client."""

from __future__ import annotations

from collections.abc import Iterable

from ..auth.identity import Identity
from ..data.models import Profile, RoleAssignment, Task, TaskStatus

_STATUS_MARK = {
    TaskStatus.PENDING: "[ ]",
    TaskStatus.IN_PROGRESS: "[~]",
    TaskStatus.COMPLETED: "[x]",
}


def short_id(row_id: str) -> str:
    return row_id[:8]


def render_identity(identity: Identity | None) -> str:
    if identity is None:
        return "Not signed in. Use /login <email> <password> or /signup."
    name = f" ({identity.display_name})" if identity.display_name else ""
    return f"Signed in as {identity.email}{name}, role: {identity.role.value}"


def render_task(task: Task) -> str:
    mark = _STATUS_MARK.get(task.status, "[?]")
    due = f" due {task.due_date[:10]}" if task.due_date else ""
    line = f"{mark} {short_id(task.id)}  {task.title}  ({task.priority.value}{due})"
    if task.description:
        line += f"\n      {task.description}"
    return line


def render_tasks(tasks: Iterable[Task]) -> str:
    items = list(tasks)
    if not items:
        return "No tasks yet. Add one with /add <title>."
    done = sum(1 for t in items if t.status is TaskStatus.COMPLETED)
    lines = [f"Tasks ({done}/{len(items)} completed):"]
    lines.extend(render_task(t) for t in items)
    return "\n".join(lines)


def render_profiles(profiles: Iterable[Profile], roles: Iterable[RoleAssignment]) -> str:
    role_by_user = {r.user_id: r for r in roles}
    lines = ["Users:"]
    for p in profiles:
        assignment = role_by_user.get(p.id)
        role = assignment.role.value if assignment else "user"
        name = p.full_name or "-"
        lines.append(f"  {short_id(p.id)}  {p.email:<30} {name:<20} {role}")
    if len(lines) == 1:
        return "No profiles visible."
    return "\n".join(lines)
