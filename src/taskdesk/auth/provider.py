# src/taskdesk/auth/provider.py

"""
Local identity provider.

Plays the part of the managed auth service: it owns the identities and sessions
tables, hashes passwords with bcrypt and hands out opaque bearer tokens.
Everything else in the app only ever sees an access token and the user it maps to.
"""

from __future__ import annotations

import json
import logging
import re
import secrets
import sqlite3
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import bcrypt

from ..data.database import SQL_NOW, Database
from ..errors import AuthenticationError, ValidationError, storage_error_from

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# bcrypt only looks at the first 72 bytes; longer inputs are rejected up front.
BCRYPT_MAX_BYTES = 72


@dataclass(frozen=True, slots=True)
class IdentityUser:
    id: str
    email: str
    user_metadata: dict[str, Any] = field(default_factory=dict)
    created_at: str | None = None
    last_sign_in_at: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> IdentityUser:
        try:
            meta = json.loads(row["user_metadata"] or "{}")
        except ValueError:
            meta = {}
        return cls(
            id=str(row["id"]),
            email=str(row["email"]),
            user_metadata=meta if isinstance(meta, dict) else {},
            created_at=row["created_at"],
            last_sign_in_at=row["last_sign_in_at"],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "user_metadata": dict(self.user_metadata),
            "created_at": self.created_at,
            "last_sign_in_at": self.last_sign_in_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IdentityUser:
        meta = data.get("user_metadata")
        return cls(
            id=str(data["id"]),
            email=str(data["email"]),
            user_metadata=meta if isinstance(meta, dict) else {},
            created_at=data.get("created_at"),
            last_sign_in_at=data.get("last_sign_in_at"),
        )


@dataclass(frozen=True, slots=True)
class Session:
    access_token: str
    refresh_token: str
    expires_at: float
    user: IdentityUser
    token_type: str = "bearer"

    def expires_within(self, seconds: float, *, now: float | None = None) -> bool:
        if now is None:
            now = time.time()
        return self.expires_at - now <= seconds

    def is_expired(self, *, now: float | None = None) -> bool:
        return self.expires_within(0, now=now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
            "token_type": self.token_type,
            "user": self.user.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Session:
        return cls(
            access_token=str(data["access_token"]),
            refresh_token=str(data["refresh_token"]),
            expires_at=float(data["expires_at"]),
            token_type=str(data.get("token_type") or "bearer"),
            user=IdentityUser.from_dict(data["user"]),
        )


@dataclass(frozen=True, slots=True)
class AuthResponse:
    user: IdentityUser
    session: Session


class LocalIdentityProvider:
    """
    Identity provider backed by the identities/sessions tables.

    Sign-up auto-confirms: the response always carries a session.
    Refresh rotates both tokens and revokes the previous pair.
    """

    def __init__(
        self,
        database: Database,
        settings: Any,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._database = database
        self._ttl = float(getattr(settings, "access_token_ttl_seconds", 3600))
        self._min_password = int(getattr(settings, "password_min_length", 6))
        self._rounds = int(getattr(settings, "bcrypt_rounds", 12))
        self._clock = clock

    # ---- low-level helpers ----

    def _hash_password(self, password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self._rounds)).decode("ascii")

    @staticmethod
    def _verify_password(password: str, password_hash: str) -> bool:
        raw = password.encode("utf-8")
        if len(raw) > BCRYPT_MAX_BYTES:
            return False
        return bcrypt.checkpw(raw, password_hash.encode("ascii"))

    @staticmethod
    def _normalize_email(email: str) -> str:
        return (email or "").strip().lower()

    def _issue_session(self, conn: sqlite3.Connection, user: IdentityUser) -> Session:
        session = Session(
            access_token=secrets.token_urlsafe(32),
            refresh_token=secrets.token_urlsafe(32),
            expires_at=self._clock() + self._ttl,
            user=user,
        )
        conn.execute(
            "INSERT INTO sessions(access_token, refresh_token, user_id, expires_at) VALUES (?, ?, ?, ?)",
            (session.access_token, session.refresh_token, user.id, session.expires_at),
        )
        return session

    @staticmethod
    def _load_user(conn: sqlite3.Connection, user_id: str) -> IdentityUser | None:
        row = conn.execute("SELECT * FROM identities WHERE id = ?", (user_id,)).fetchone()
        return IdentityUser.from_row(row) if row else None

    # ---- public API ----

    def sign_up(self, email: str, password: str, *, full_name: str | None = None) -> AuthResponse:
        email = self._normalize_email(email)
        if not EMAIL_RE.match(email):
            raise ValidationError("email", "Invalid email format")
        password = password or ""
        if len(password) < self._min_password:
            raise ValidationError("password", f"Password should be at least {self._min_password} characters")
        if len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
            raise ValidationError("password", f"Password should be at most {BCRYPT_MAX_BYTES} bytes")

        metadata: dict[str, Any] = {}
        if full_name and full_name.strip():
            metadata["full_name"] = full_name.strip()

        user_id = str(uuid.uuid4())
        password_hash = self._hash_password(password)

        try:
            with self._database.service_connection() as conn:
                # The on_identity_created trigger adds the profile and the default role.
                conn.execute(
                    f"INSERT INTO identities(id, email, password_hash, user_metadata, last_sign_in_at) "
                    f"VALUES (?, ?, ?, ?, {SQL_NOW})",
                    (user_id, email, password_hash, json.dumps(metadata, ensure_ascii=False)),
                )
                user = self._load_user(conn, user_id)
                if user is None:
                    raise RuntimeError("identity row missing right after insert")
                session = self._issue_session(conn, user)
        except sqlite3.IntegrityError as e:
            logger.info("Sign-up rejected: email already registered email=%s", email)
            raise AuthenticationError("User already registered", code="user_already_exists") from e
        except sqlite3.Error as e:
            raise storage_error_from(e) from e

        logger.info("Identity registered user_id=%s", user_id)
        return AuthResponse(user=user, session=session)

    def sign_in_with_password(self, email: str, password: str) -> Session:
        email = self._normalize_email(email)
        try:
            with self._database.service_connection() as conn:
                row = conn.execute("SELECT * FROM identities WHERE email = ?", (email,)).fetchone()
                if row is None or not self._verify_password(password or "", str(row["password_hash"])):
                    logger.info("Sign-in failed email=%s", email)
                    raise AuthenticationError("Invalid login credentials", code="invalid_credentials")
                conn.execute(f"UPDATE identities SET last_sign_in_at = {SQL_NOW} WHERE id = ?", (row["id"],))
                user = self._load_user(conn, str(row["id"]))
                if user is None:
                    raise RuntimeError("identity row vanished during sign-in")
                session = self._issue_session(conn, user)
        except sqlite3.Error as e:
            raise storage_error_from(e) from e

        logger.info("Signed in user_id=%s", user.id)
        return session

    def refresh_session(self, refresh_token: str) -> Session:
        try:
            with self._database.service_connection() as conn:
                # Claim the pair first: of two concurrent refreshes only one sees rowcount 1.
                conn.execute("BEGIN IMMEDIATE")
                cur = conn.execute(
                    f"UPDATE sessions SET revoked_at = {SQL_NOW} "
                    "WHERE refresh_token = ? AND revoked_at IS NULL",
                    (refresh_token or "",),
                )
                if cur.rowcount != 1:
                    raise AuthenticationError("Invalid Refresh Token", code="refresh_token_not_found")
                row = conn.execute(
                    "SELECT user_id FROM sessions WHERE refresh_token = ?",
                    (refresh_token,),
                ).fetchone()
                user = self._load_user(conn, str(row["user_id"]))
                if user is None:
                    raise AuthenticationError("User not found", code="user_not_found")
                session = self._issue_session(conn, user)
        except sqlite3.Error as e:
            raise storage_error_from(e) from e

        logger.debug("Session refreshed user_id=%s", user.id)
        return session

    def sign_out(self, access_token: str) -> None:
        """Revoke the session. Unknown or already revoked tokens are a no-op."""
        try:
            with self._database.service_connection() as conn:
                conn.execute(
                    f"UPDATE sessions SET revoked_at = {SQL_NOW} WHERE access_token = ? AND revoked_at IS NULL",
                    (access_token or "",),
                )
        except sqlite3.Error as e:
            raise storage_error_from(e) from e

    def get_user(self, access_token: str) -> IdentityUser:
        if not access_token:
            raise AuthenticationError("Auth session missing", code="session_missing")
        try:
            with self._database.service_connection() as conn:
                row = conn.execute(
                    "SELECT user_id, expires_at FROM sessions WHERE access_token = ? AND revoked_at IS NULL",
                    (access_token,),
                ).fetchone()
                if row is None:
                    raise AuthenticationError("Invalid or revoked session", code="session_not_found")
                if float(row["expires_at"]) <= self._clock():
                    raise AuthenticationError("Session expired", code="session_expired")
                user = self._load_user(conn, str(row["user_id"]))
        except sqlite3.Error as e:
            raise storage_error_from(e) from e

        if user is None:
            raise AuthenticationError("User not found", code="user_not_found")
        return user

    def get_user_by_email(self, email: str) -> IdentityUser | None:
        try:
            with self._database.service_connection() as conn:
                row = conn.execute(
                    "SELECT * FROM identities WHERE email = ?",
                    (self._normalize_email(email),),
                ).fetchone()
        except sqlite3.Error as e:
            raise storage_error_from(e) from e
        return IdentityUser.from_row(row) if row else None

    def delete_user(self, user_id: str) -> bool:
        """Admin operation: removes the identity; profile, role, tasks and sessions cascade."""
        try:
            with self._database.service_connection() as conn:
                cur = conn.execute("DELETE FROM identities WHERE id = ?", (user_id,))
                deleted = cur.rowcount == 1
        except sqlite3.Error as e:
            raise storage_error_from(e) from e
        if deleted:
            logger.info("Identity deleted user_id=%s", user_id)
        return deleted
