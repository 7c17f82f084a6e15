# src/taskdesk/data/database.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Iterator
from pathlib import Path

logger = logging.getLogger(__name__)

# Millisecond ISO-8601 UTC, e.g. 2026-01-01T12:00:00.000Z
SQL_NOW = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"

SCHEMA = f"""
CREATE TABLE IF NOT EXISTS identities (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE COLLATE NOCASE,
    password_hash TEXT NOT NULL,
    user_metadata TEXT NOT NULL DEFAULT '{{}}',
    created_at TEXT NOT NULL DEFAULT ({SQL_NOW}),
    last_sign_in_at TEXT
);

CREATE TABLE IF NOT EXISTS sessions (
    access_token TEXT PRIMARY KEY,
    refresh_token TEXT NOT NULL UNIQUE,
    user_id TEXT NOT NULL REFERENCES identities(id) ON DELETE CASCADE,
    created_at TEXT NOT NULL DEFAULT ({SQL_NOW}),
    expires_at REAL NOT NULL,
    revoked_at TEXT
);

CREATE TABLE IF NOT EXISTS profiles (
    id TEXT PRIMARY KEY REFERENCES identities(id) ON DELETE CASCADE,
    email TEXT NOT NULL,
    full_name TEXT,
    created_at TEXT NOT NULL DEFAULT ({SQL_NOW}),
    updated_at TEXT NOT NULL DEFAULT ({SQL_NOW})
);

CREATE TABLE IF NOT EXISTS user_roles (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL UNIQUE REFERENCES profiles(id) ON DELETE CASCADE,
    role TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('user', 'admin')),
    created_at TEXT NOT NULL DEFAULT ({SQL_NOW})
);

CREATE TABLE IF NOT EXISTS tasks (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
    title TEXT NOT NULL CHECK (length(trim(title)) >= 1 AND length(title) <= 200),
    description TEXT CHECK (description IS NULL OR length(description) <= 1000),
    status TEXT NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending', 'in_progress', 'completed')),
    priority TEXT NOT NULL DEFAULT 'medium'
        CHECK (priority IN ('low', 'medium', 'high')),
    due_date TEXT,
    created_at TEXT NOT NULL DEFAULT ({SQL_NOW}),
    updated_at TEXT NOT NULL DEFAULT ({SQL_NOW})
);

CREATE INDEX IF NOT EXISTS idx_sessions_user ON sessions(user_id);
CREATE INDEX IF NOT EXISTS idx_tasks_user_created ON tasks(user_id, created_at);

-- Registration side effect: every new identity gets a profile and the default role.
CREATE TRIGGER IF NOT EXISTS on_identity_created
AFTER INSERT ON identities
BEGIN
    INSERT INTO profiles(id, email, full_name)
    VALUES (NEW.id, NEW.email, json_extract(NEW.user_metadata, '$.full_name'));
    INSERT INTO user_roles(id, user_id, role)
    VALUES (lower(hex(randomblob(16))), NEW.id, 'user');
END;

CREATE TRIGGER IF NOT EXISTS profiles_touch_updated_at
AFTER UPDATE ON profiles
WHEN NEW.updated_at = OLD.updated_at
BEGIN
    UPDATE profiles SET updated_at = {SQL_NOW} WHERE id = NEW.id;
END;

CREATE TRIGGER IF NOT EXISTS tasks_touch_updated_at
AFTER UPDATE ON tasks
WHEN NEW.updated_at = OLD.updated_at
BEGIN
    UPDATE tasks SET updated_at = {SQL_NOW} WHERE id = NEW.id;
END;
"""


class Database:
    """
    SQLite database holding the auth tables (identities, sessions) and the
    policy-protected tables (profiles, user_roles, tasks).

    Thread-safety:
    - each operation opens its own SQLite connection

    Connections returned by connect() are raw: they carry no policy functions.
    Caller-scoped access goes through DataClient, which installs them.
    """

    def __init__(self, db_path: str | Path = "taskdesk.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_rows("identities")
        except sqlite3.Error:
            total = -1
        logger.info("Database ready db=%s identities=%s", self._db_path, total)

    @property
    def path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- connections ----

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        conn.execute("PRAGMA foreign_keys = ON")
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    @contextlib.contextmanager
    def service_connection(self) -> Iterator[sqlite3.Connection]:
        """
        Privileged connection: no row-level policies apply.

        Commits on success, rolls back on error, always closes.
        """
        conn = self.connect()
        try:
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        conn = self.connect()
        try:
            conn.executescript(SCHEMA)
            conn.commit()
        finally:
            conn.close()

    # ---- diagnostics ----

    def count_rows(self, table: str) -> int:
        if table not in ("identities", "sessions", "profiles", "user_roles", "tasks"):
            raise ValueError(f"unknown table: {table}")
        conn = self.connect()
        try:
            (n,) = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
            return int(n)
        finally:
            conn.close()
