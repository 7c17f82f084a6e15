# src/taskdesk/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Every component takes settings by injection; get_settings() is only the default.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKDESK"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path
    session_path: Path
    log_dir: Path

    # ---- Auth ----
    access_token_ttl_seconds: int
    password_min_length: int
    bcrypt_rounds: int

    # ---- Client session ----
    auto_refresh: bool
    refresh_interval_seconds: int
    refresh_margin_seconds: int

    # ---- API server ----
    api_host: str
    api_port: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskdesk") or "taskdesk"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskdesk"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "taskdesk.sqlite3")
        session_path = _env_path(_k("SESSION_PATH"), data_dir / "session.json")
        log_dir = _env_path(_k("LOG_DIR"), data_dir)

        access_token_ttl_seconds = _env_int(_k("ACCESS_TOKEN_TTL_SECONDS"), 3600)
        password_min_length = _env_int(_k("PASSWORD_MIN_LENGTH"), 6)
        # bcrypt accepts 4..31
        bcrypt_rounds = max(4, min(31, _env_int(_k("BCRYPT_ROUNDS"), 12)))

        auto_refresh = _env_bool(_k("AUTO_REFRESH"), True)
        refresh_interval_seconds = _env_int(_k("REFRESH_INTERVAL_SECONDS"), 30)
        refresh_margin_seconds = _env_int(_k("REFRESH_MARGIN_SECONDS"), 60)

        api_host = _env(_k("API_HOST"), "127.0.0.1")
        api_port = _env_int(_k("API_PORT"), 8000)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            db_path=db_path,
            session_path=session_path,
            log_dir=log_dir,
            access_token_ttl_seconds=access_token_ttl_seconds,
            password_min_length=password_min_length,
            bcrypt_rounds=bcrypt_rounds,
            auto_refresh=auto_refresh,
            refresh_interval_seconds=refresh_interval_seconds,
            refresh_margin_seconds=refresh_margin_seconds,
            api_host=api_host,
            api_port=api_port,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
