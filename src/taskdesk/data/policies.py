# src/taskdesk/data/policies.py

"""
Row-level access policies.

Each Policy is a declarative rule attached to one table and one command:

- using: SQL predicate an existing row must satisfy (SELECT / UPDATE / DELETE)
- check: SQL predicate a new or changed row must satisfy (INSERT / UPDATE);
  for UPDATE it falls back to `using` when absent

Predicates are plain SQL over the row's columns plus two functions installed on
the caller's connection by install_policy_functions():

- auth_uid()            caller identity id, NULL when anonymous
- has_role(uid, role)   1/0, answered by the privileged role lookup

Permissive semantics: policies for the same table+command are OR-ed, and a
command with no policy at all is denied.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from enum import StrEnum

from .database import Database
from .role_resolution import resolve_role


class Command(StrEnum):
    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    ALL = "all"


@dataclass(frozen=True, slots=True)
class Policy:
    name: str
    table: str
    command: Command
    using: str | None = None
    check: str | None = None


@dataclass(frozen=True, slots=True)
class AuthContext:
    """Who is running a data operation."""

    uid: str | None = None
    service: bool = False

    @classmethod
    def anonymous(cls) -> AuthContext:
        return cls()

    @classmethod
    def for_user(cls, uid: str) -> AuthContext:
        return cls(uid=uid)

    @classmethod
    def service_role(cls) -> AuthContext:
        """Bypasses every policy. Never derived from a client credential."""
        return cls(service=True)


PROTECTED_TABLES = ("profiles", "user_roles", "tasks")

POLICIES: tuple[Policy, ...] = (
    # profiles: rows are created by the registration trigger, never directly
    Policy("Users can view own profile", "profiles", Command.SELECT, using="id = auth_uid()"),
    Policy(
        "Admins can view all profiles",
        "profiles",
        Command.SELECT,
        using="has_role(auth_uid(), 'admin')",
    ),
    Policy("Users can update own profile", "profiles", Command.UPDATE, using="id = auth_uid()"),
    # user_roles: no insert/delete policy; admin check reads the committed role row
    Policy("Users can view own role", "user_roles", Command.SELECT, using="user_id = auth_uid()"),
    Policy(
        "Admins can view all roles",
        "user_roles",
        Command.SELECT,
        using="has_role(auth_uid(), 'admin')",
    ),
    Policy(
        "Admins can update roles",
        "user_roles",
        Command.UPDATE,
        using="has_role(auth_uid(), 'admin')",
    ),
    # tasks: strictly owner-scoped
    Policy("Users can view own tasks", "tasks", Command.SELECT, using="user_id = auth_uid()"),
    Policy("Users can create own tasks", "tasks", Command.INSERT, check="user_id = auth_uid()"),
    Policy("Users can update own tasks", "tasks", Command.UPDATE, using="user_id = auth_uid()"),
    Policy("Users can delete own tasks", "tasks", Command.DELETE, using="user_id = auth_uid()"),
)


def _applicable(table: str, command: Command, policies: tuple[Policy, ...]) -> list[Policy]:
    return [p for p in policies if p.table == table and p.command in (command, Command.ALL)]


def _or(predicates: list[str]) -> str:
    if not predicates:
        return "0"
    return " OR ".join(f"({p})" for p in predicates)


def using_clause(
    table: str, command: Command, ctx: AuthContext, policies: tuple[Policy, ...] = POLICIES
) -> str:
    if ctx.service:
        return "1"
    return _or([p.using for p in _applicable(table, command, policies) if p.using])


def check_clause(
    table: str, command: Command, ctx: AuthContext, policies: tuple[Policy, ...] = POLICIES
) -> str:
    if ctx.service:
        return "1"
    preds: list[str] = []
    for p in _applicable(table, command, policies):
        if p.check:
            preds.append(p.check)
        elif command is Command.UPDATE and p.using:
            preds.append(p.using)
    return _or(preds)


def install_policy_functions(
    conn: sqlite3.Connection, database: Database, ctx: AuthContext
) -> None:
    """
    Register auth_uid() and has_role() on a caller connection.

    Role answers are memoized for the lifetime of this connection only, which
    is a single data operation.
    """
    memo: dict[tuple[str, str], int] = {}

    def auth_uid() -> str | None:
        return ctx.uid

    def has_role(uid: str | None, role: str | None) -> int:
        if not uid or not role:
            return 0
        key = (uid, role)
        if key not in memo:
            memo[key] = int(resolve_role(database, uid).value == role)
        return memo[key]

    conn.create_function("auth_uid", 0, auth_uid)
    conn.create_function("has_role", 2, has_role)
