# src/taskbell/platform/request_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

from ..reminders.models import ReminderContent, ReminderTrigger, ScheduledReminder

logger = logging.getLogger(__name__)


class RequestStatus(StrEnum):
    PENDING = "pending"
    FIRED = "fired"
    CANCELLED = "cancelled"


class ReminderRequestStore:
    """
    SQLite store of scheduled reminder requests (the local platform's durable state).

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Trigger instants are naive local datetimes. `trigger_local` keeps the wall-clock value
    as written (ISO 8601) and is what reads return; `trigger_at` is its POSIX timestamp,
    used only to order and select due rows. Rows from before `trigger_local` existed fall
    back to the timestamp.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "reminders.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            pending = self.count(RequestStatus.PENDING)
        except Exception:
            pending = -1
        logger.info("ReminderRequestStore ready db=%s pending=%s", self._db_path, pending)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS reminders (
                    identity TEXT PRIMARY KEY,
                    status TEXT NOT NULL DEFAULT 'pending',
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    trigger_at REAL NOT NULL,
                    title TEXT NOT NULL,
                    body TEXT NOT NULL DEFAULT '',
                    metadata TEXT NOT NULL DEFAULT '{}',
                    sound INTEGER NOT NULL DEFAULT 1,
                    trigger_local TEXT
                )
                """
            )
            cur.execute("CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT)")

            cur.execute("PRAGMA table_info(reminders)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE reminders ADD COLUMN {name} {decl}")
                logger.info("ReminderRequestStore migration: added column %s", name)

            add_col("body", "TEXT NOT NULL DEFAULT ''")
            add_col("metadata", "TEXT NOT NULL DEFAULT '{}'")
            add_col("sound", "INTEGER NOT NULL DEFAULT 1")
            add_col("trigger_local", "TEXT")

            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_reminders_status_trigger ON reminders(status, trigger_at)"
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _meta_to_str(meta: dict[str, Any] | None) -> str:
        if not meta:
            return "{}"
        try:
            return json.dumps(meta, ensure_ascii=False)
        except Exception:
            logger.exception("Failed to JSON-encode metadata; storing {}.")
            return "{}"

    @staticmethod
    def _str_to_meta(s: str | None) -> dict[str, Any]:
        if not s:
            return {}
        try:
            val = json.loads(s)
            return val if isinstance(val, dict) else {}
        except Exception:
            return {}

    @staticmethod
    def _row_instant(row: sqlite3.Row) -> datetime:
        local = row["trigger_local"]
        if local:
            try:
                return datetime.fromisoformat(local)
            except ValueError:
                logger.warning("Bad trigger_local %r for reminder %s", local, row["identity"])
        return datetime.fromtimestamp(float(row["trigger_at"]))

    def _row_to_reminder(self, row: sqlite3.Row) -> ScheduledReminder:
        return ScheduledReminder(
            identity=str(row["identity"]),
            content=ReminderContent(
                title=str(row["title"] or ""),
                body=str(row["body"] or ""),
                metadata=self._str_to_meta(row["metadata"]),
                sound=bool(row["sound"]),
            ),
            trigger=ReminderTrigger(instant=self._row_instant(row)),
        )

    # ---- reminder requests ----

    def count(self, status: RequestStatus | None = None) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            if status is None:
                cur.execute("SELECT COUNT(*) FROM reminders")
            else:
                cur.execute("SELECT COUNT(*) FROM reminders WHERE status = ?", (status.value,))
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def add(self, identity: str, content: ReminderContent, trigger: ReminderTrigger) -> None:
        if not identity or not identity.strip():
            raise ValueError("identity is required")
        if not content.title or not content.title.strip():
            raise ValueError("title is required")

        now = time.time()
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO reminders(
                    identity, status, created_at, updated_at, trigger_at,
                    title, body, metadata, sound, trigger_local
                )
                VALUES (?, 'pending', ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    identity,
                    now,
                    now,
                    trigger.instant.timestamp(),
                    content.title,
                    content.body or "",
                    self._meta_to_str(content.metadata),
                    1 if content.sound else 0,
                    trigger.instant.isoformat(),
                ),
            )
            conn.commit()
            logger.debug("Reminder request added id=%s trigger=%s", identity, trigger.instant.isoformat())
        finally:
            conn.close()

    def get(self, identity: str) -> ScheduledReminder | None:
        """Any reminder by id, whatever its status (tap events refer to fired ones)."""
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM reminders WHERE identity = ?", (identity,))
            row = cur.fetchone()
            return self._row_to_reminder(row) if row else None
        finally:
            conn.close()

    def list_pending(self) -> list[ScheduledReminder]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "SELECT * FROM reminders WHERE status = 'pending' ORDER BY trigger_at ASC, created_at ASC"
            )
            return [self._row_to_reminder(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def list_due(self, *, now_ts: float, limit: int = 32) -> list[ScheduledReminder]:
        """Pending reminders whose trigger instant is <= now_ts, oldest first."""
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT *
                FROM reminders
                WHERE status = 'pending'
                  AND trigger_at <= ?
                ORDER BY trigger_at ASC, created_at ASC
                    LIMIT ?
                """,
                (float(now_ts), int(limit)),
            )
            return [self._row_to_reminder(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def _transition(self, identity: str, new_status: RequestStatus) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "UPDATE reminders SET status = ?, updated_at = ? WHERE identity = ? AND status = 'pending'",
                (new_status.value, time.time(), identity),
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def try_mark_fired(self, identity: str) -> bool:
        """Claim a pending reminder for delivery. True if this caller won the claim."""
        return self._transition(identity, RequestStatus.FIRED)

    def mark_cancelled(self, identity: str) -> bool:
        return self._transition(identity, RequestStatus.CANCELLED)

    def cancel_all_pending(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "UPDATE reminders SET status = 'cancelled', updated_at = ? WHERE status = 'pending'",
                (time.time(),),
            )
            conn.commit()
            return int(cur.rowcount)
        finally:
            conn.close()

    # ---- key/value (permission state) ----

    def get_value(self, key: str) -> str | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = cur.fetchone()
            return None if row is None else row["value"]
        finally:
            conn.close()

    def set_value(self, key: str, value: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO kv(key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )
            conn.commit()
        finally:
            conn.close()
