"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Nothing is required at import time; every value has a sane default.
- Reminder policy knobs (guard interval, fallback name) live here, not in the core.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKBELL"

# Reminders closer than this to "now" are never scheduled.
MIN_GUARD_INTERVAL_SECONDS = 60


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


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


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
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
    display_name: str

    # ---- Host capability ----
    notifications_supported: bool
    fine_grained_permissions: bool
    auto_grant_permission: bool

    # ---- Reminder policy ----
    guard_interval_seconds: int
    fallback_display_name: str
    delivery_interval_seconds: float

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    reminders_db_path: Path
    tasks_path: Path

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskbell").strip() or "taskbell"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        display_name = _env(_k("DISPLAY_NAME"), "")

        notifications_supported = _env_bool(_k("NOTIFICATIONS_SUPPORTED"), True)
        fine_grained_permissions = _env_bool(_k("FINE_GRAINED_PERMISSIONS"), False)
        auto_grant_permission = _env_bool(_k("AUTO_GRANT_PERMISSION"), False)

        guard_interval_seconds = max(
            MIN_GUARD_INTERVAL_SECONDS,
            _env_int(_k("GUARD_INTERVAL_SECONDS"), MIN_GUARD_INTERVAL_SECONDS),
        )
        fallback_display_name = _env(_k("FALLBACK_DISPLAY_NAME"), "User").strip() or "User"
        delivery_interval_seconds = max(0.5, _env_float(_k("DELIVERY_INTERVAL_SECONDS"), 5.0))

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskbell"))
        reminders_db_path = _env_path(_k("REMINDERS_DB_PATH"), data_dir / "reminders.sqlite3")
        tasks_path = _env_path(_k("TASKS_PATH"), data_dir / "tasks.json")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            display_name=display_name,
            notifications_supported=notifications_supported,
            fine_grained_permissions=fine_grained_permissions,
            auto_grant_permission=auto_grant_permission,
            guard_interval_seconds=guard_interval_seconds,
            fallback_display_name=fallback_display_name,
            delivery_interval_seconds=delivery_interval_seconds,
            data_dir=data_dir,
            reminders_db_path=reminders_db_path,
            tasks_path=tasks_path,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
