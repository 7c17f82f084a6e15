# src/taskdesk/data/client.py

from __future__ import annotations

import logging
import sqlite3
import uuid
from collections.abc import Iterable, Mapping
from typing import Any

from ..errors import AuthorizationError, ValidationError, not_found, storage_error_from
from .database import Database
from .policies import (
    PROTECTED_TABLES,
    AuthContext,
    Command,
    check_clause,
    install_policy_functions,
    using_clause,
)

logger = logging.getLogger(__name__)

COLUMNS: dict[str, tuple[str, ...]] = {
    "profiles": ("id", "email", "full_name", "created_at", "updated_at"),
    "user_roles": ("id", "user_id", "role", "created_at"),
    "tasks": (
        "id",
        "user_id",
        "title",
        "description",
        "status",
        "priority",
        "due_date",
        "created_at",
        "updated_at",
    ),
}

WRITABLE: dict[str, tuple[str, ...]] = {
    "profiles": ("full_name",),
    "user_roles": ("role",),
    "tasks": ("user_id", "title", "description", "status", "priority", "due_date"),
}


class DataClient:
    """
    Table access for one caller, with row-level policies applied to every
    statement.

    The caller never filters by owner itself: a select returns only the rows
    the policies let it see, and an update/delete of a row it may not touch
    fails exactly like an update/delete of a row that does not exist.

    Each method opens its own connection and runs writes in a single
    BEGIN IMMEDIATE transaction, so a failed policy check leaves nothing behind.
    """

    def __init__(self, database: Database, ctx: AuthContext) -> None:
        self._database = database
        self._ctx = ctx

    @property
    def ctx(self) -> AuthContext:
        return self._ctx

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = self._database.connect()
        if not self._ctx.service:
            install_policy_functions(conn, self._database, self._ctx)
        return conn

    @staticmethod
    def _require_table(table: str) -> None:
        if table not in PROTECTED_TABLES:
            raise ValueError(f"table is not exposed: {table}")

    @staticmethod
    def _require_columns(table: str, names: Iterable[str], allowed: tuple[str, ...]) -> list[str]:
        cols: list[str] = []
        for name in names:
            if name not in allowed:
                raise ValidationError(name, f"Unknown or read-only column for {table}: {name}")
            cols.append(name)
        return cols

    @staticmethod
    def _passes(conn: sqlite3.Connection, table: str, clause: str, row_id: str) -> bool:
        row = conn.execute(f"SELECT ({clause}) FROM {table} WHERE id = ?", (row_id,)).fetchone()
        return bool(row and row[0])

    def _deny_insert(self, table: str) -> AuthorizationError:
        logger.info("Insert denied by policy table=%s uid=%s", table, self._ctx.uid)
        return AuthorizationError(
            f'new row violates row-level security policy for table "{table}"',
            code="forbidden",
        )

    # ---- public API ----

    def select(
        self,
        table: str,
        *,
        filters: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        self._require_table(table)
        filters = dict(filters or {})
        cols = self._require_columns(table, filters, COLUMNS[table])

        where = [f"({using_clause(table, Command.SELECT, self._ctx)})"]
        params: list[Any] = []
        for col in cols:
            where.append(f"{col} = ?")
            params.append(filters[col])

        sql = f"SELECT * FROM {table} WHERE {' AND '.join(where)}"
        if order_by is not None:
            self._require_columns(table, [order_by], COLUMNS[table])
            direction = "DESC" if descending else "ASC"
            sql += f" ORDER BY {order_by} {direction}, rowid {direction}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))

        conn = self._get_conn()
        try:
            rows = conn.execute(sql, params).fetchall()
            return [dict(r) for r in rows]
        except sqlite3.Error as e:
            raise storage_error_from(e) from e
        finally:
            conn.close()

    def get(self, table: str, row_id: str) -> dict[str, Any] | None:
        rows = self.select(table, filters={"id": row_id}, limit=1)
        return rows[0] if rows else None

    def insert(self, table: str, values: Mapping[str, Any]) -> dict[str, Any]:
        self._require_table(table)
        row = dict(values)
        row_id = str(row.pop("id", None) or uuid.uuid4())
        cols = self._require_columns(table, row, WRITABLE[table])

        names = ["id", *cols]
        placeholders = ", ".join("?" for _ in names)
        params = [row_id, *(row[c] for c in cols)]

        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            conn.execute(
                f"INSERT INTO {table} ({', '.join(names)}) VALUES ({placeholders})",
                params,
            )
            if not self._passes(conn, table, check_clause(table, Command.INSERT, self._ctx), row_id):
                conn.rollback()
                raise self._deny_insert(table)
            out = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (row_id,)).fetchone()
            conn.commit()
            logger.debug("Inserted table=%s id=%s uid=%s", table, row_id, self._ctx.uid)
            return dict(out)
        except sqlite3.Error as e:
            conn.rollback()
            raise storage_error_from(e) from e
        finally:
            conn.close()

    def update(self, table: str, row_id: str, changes: Mapping[str, Any]) -> dict[str, Any]:
        """
        Partial update: only the given columns change.

        The existing row must pass USING, the resulting row must pass WITH CHECK.
        """
        self._require_table(table)
        cols = self._require_columns(table, changes, WRITABLE[table])

        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            target = conn.execute(
                f"SELECT id FROM {table} WHERE id = ? AND ({using_clause(table, Command.UPDATE, self._ctx)})",
                (row_id,),
            ).fetchone()
            if target is None:
                conn.rollback()
                logger.info("Update denied or missing table=%s id=%s uid=%s", table, row_id, self._ctx.uid)
                raise not_found()

            if cols:
                sets = ", ".join(f"{c} = ?" for c in cols)
                conn.execute(
                    f"UPDATE {table} SET {sets} WHERE id = ?",
                    [*(changes[c] for c in cols), row_id],
                )
                if not self._passes(conn, table, check_clause(table, Command.UPDATE, self._ctx), row_id):
                    conn.rollback()
                    logger.info("Update check failed table=%s id=%s uid=%s", table, row_id, self._ctx.uid)
                    raise AuthorizationError(
                        f'new row violates row-level security policy for table "{table}"',
                        code="forbidden",
                    )

            out = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (row_id,)).fetchone()
            conn.commit()
            logger.debug("Updated table=%s id=%s cols=%s uid=%s", table, row_id, cols, self._ctx.uid)
            return dict(out)
        except sqlite3.Error as e:
            conn.rollback()
            raise storage_error_from(e) from e
        finally:
            conn.close()

    def delete(self, table: str, row_id: str) -> None:
        self._require_table(table)
        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            cur = conn.execute(
                f"DELETE FROM {table} WHERE id = ? AND ({using_clause(table, Command.DELETE, self._ctx)})",
                (row_id,),
            )
            if cur.rowcount != 1:
                conn.rollback()
                logger.info("Delete denied or missing table=%s id=%s uid=%s", table, row_id, self._ctx.uid)
                raise not_found()
            conn.commit()
            logger.debug("Deleted table=%s id=%s uid=%s", table, row_id, self._ctx.uid)
        except sqlite3.Error as e:
            conn.rollback()
            raise storage_error_from(e) from e
        finally:
            conn.close()
