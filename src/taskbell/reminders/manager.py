# src/taskbell/reminders/manager.py

from __future__ import annotations

"""
Reminder lifecycle manager.

Keeps the platform's pending reminders a correct projection of the tasks' due date/time:
- at most one pending reminder per task id (cancel-then-create under a per-task lock),
- nothing scheduled for invalid, past or too-soon tasks,
- nothing created without notification permission.

The platform's pending set is the source of truth; no reminder ids are cached here.
Every public operation is fail-soft: failures are logged and turned into None / [] / no-op.
"""

import asyncio
import contextlib
import logging
import re
from collections.abc import AsyncIterator, Callable, Iterable
from datetime import datetime, timedelta
from typing import Any

from ..config import MIN_GUARD_INTERVAL_SECONDS
from ..core.ports import SchedulingPort, Subscription
from .models import (
    META_TASK_ID,
    META_TASK_TITLE,
    ReconcileReport,
    ReminderContent,
    ReminderErrorKind,
    ReminderTrigger,
    ScheduledReminder,
    TapEvent,
    Task,
)
from .permissions import PermissionGatekeeper

logger = logging.getLogger(__name__)

TapCallback = Callable[[str, str], None]

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_RE = re.compile(r"^\d{2}:\d{2}(:\d{2})?$")


def _blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def task_instant(task: Any) -> tuple[datetime | None, str]:
    """
    Validate a task record and compute its local trigger instant.

    Returns (instant, "") on success or (None, reason) when the task cannot be scheduled.
    Accepts Task objects or plain {id, title, date, time} dicts.
    """
    if task is None:
        return None, "task is missing"
    if isinstance(task, dict):
        task = Task.from_dict(task)

    task_id = getattr(task, "id", None)
    title = getattr(task, "title", None)
    date_s = getattr(task, "date", None)
    time_s = getattr(task, "time", None)

    if _blank(task_id):
        return None, "task id is missing"
    if _blank(title):
        return None, "task title is missing"
    if _blank(date_s) or _blank(time_s):
        return None, "task date/time is missing"

    date_s = date_s.strip()
    time_s = time_s.strip()
    if not DATE_RE.match(date_s) or not TIME_RE.match(time_s):
        return None, f"malformed date/time {date_s!r} {time_s!r}"

    fmt = "%Y-%m-%dT%H:%M:%S" if time_s.count(":") == 2 else "%Y-%m-%dT%H:%M"
    try:
        return datetime.strptime(f"{date_s}T{time_s}", fmt), ""
    except ValueError:
        return None, f"invalid date/time {date_s!r} {time_s!r}"


class KeyedLock:
    """One asyncio.Lock per key; entries are dropped once nobody holds or waits on them."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @contextlib.asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] <= 0:
                self._users.pop(key, None)
                self._locks.pop(key, None)

    def __len__(self) -> int:
        return len(self._locks)


class ReminderManager:
    def __init__(
        self,
        port: SchedulingPort,
        gatekeeper: PermissionGatekeeper,
        *,
        supported: bool = True,
        guard_interval_seconds: int = MIN_GUARD_INTERVAL_SECONDS,
        fallback_display_name: str = "User",
        on_tap: TapCallback | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._port = port
        self._gatekeeper = gatekeeper
        self._supported = bool(supported)
        self._guard = timedelta(seconds=max(MIN_GUARD_INTERVAL_SECONDS, int(guard_interval_seconds)))
        self._fallback_name = (fallback_display_name or "").strip() or "User"
        self._on_tap = on_tap
        self._clock = clock or datetime.now
        self._locks = KeyedLock()
        self._subscription: Subscription | None = None

    @property
    def supported(self) -> bool:
        return self._supported

    @property
    def observer_attached(self) -> bool:
        return self._subscription is not None

    # ---- lifecycle ----

    async def initialize(self) -> None:
        """Ask for permission and attach the tap observer (once per process)."""
        if not self._supported:
            logger.info("Local notifications not available on this host")
            return

        try:
            if not await self._gatekeeper.request_permission():
                logger.info("Notifications not available - permission denied")
                return

            if self._subscription is None:
                self._subscription = self._port.on_tap_response(self._handle_tap)
                logger.info("Notifications initialized, tap observer attached")
            else:
                logger.debug("Tap observer already attached")
        except Exception:
            logger.exception("Error initializing notifications")

    def shutdown(self) -> None:
        """Detach the tap observer. Safe to call repeatedly."""
        sub, self._subscription = self._subscription, None
        if sub is None:
            return
        try:
            sub.remove()
            logger.debug("Tap observer detached")
        except Exception:
            logger.exception("Error detaching tap observer")

    def _handle_tap(self, event: TapEvent) -> None:
        try:
            task_id = event.task_id
            if not task_id:
                return
            task_title = event.task_title or ""
            logger.info("Reminder tapped for task %s (%s)", task_id, task_title)
            if self._on_tap is not None:
                self._on_tap(task_id, task_title)
        except Exception:
            logger.exception("Error handling reminder tap")

    # ---- scheduling ----

    def _display_name(self, display_name: str | None) -> str:
        name = (display_name or "").strip()
        return name or self._fallback_name

    async def schedule(self, task: Any, display_name: str | None) -> str | None:
        """
        Create (or replace) the reminder for a task.

        Returns the platform reminder id, or None when nothing was scheduled.
        """
        if not self._supported:
            logger.debug("Notifications not supported on this host; not scheduling")
            return None

        if isinstance(task, dict):
            task = Task.from_dict(task)

        instant, reason = task_instant(task)
        if instant is None:
            logger.error(
                "Invalid task data for reminder: %s",
                reason,
                extra={
                    "error_kind": ReminderErrorKind.INVALID_INPUT.value,
                    "task_id": getattr(task, "id", None),
                },
            )
            return None

        task_id = task.id.strip()

        if not await self._gatekeeper.request_permission():
            logger.info(
                "Notification permission not granted; not scheduling task %s",
                task_id,
                extra={"error_kind": ReminderErrorKind.PERMISSION_DENIED.value, "task_id": task_id},
            )
            return None

        if instant <= self._clock() + self._guard:
            logger.info(
                "Task %s is in the past or too soon (%s); not scheduling",
                task_id,
                instant.isoformat(),
                extra={
                    "error_kind": ReminderErrorKind.PAST_OR_TOO_SOON.value,
                    "task_id": task_id,
                    "instant": instant.isoformat(),
                },
            )
            return None

        content = ReminderContent(
            title=f"Task Reminder for {self._display_name(display_name)}",
            body=f"Don't forget: {task.title}",
            metadata={META_TASK_ID: task_id, META_TASK_TITLE: task.title},
            sound=True,
        )

        async with self._locks.hold(task_id):
            if not await self._cancel_for_task_unlocked(task_id):
                # Pending set unknown; a create here may duplicate.
                return None
            try:
                reminder_id = await self._port.create(content, ReminderTrigger(instant=instant))
            except Exception:
                logger.exception(
                    "Error scheduling reminder for task %s",
                    task_id,
                    extra={
                        "error_kind": ReminderErrorKind.PLATFORM_FAILURE.value,
                        "task_id": task_id,
                        "instant": instant.isoformat(),
                    },
                )
                return None

        logger.info("Reminder %s scheduled for task %s at %s", reminder_id, task_id, instant.isoformat())
        return reminder_id

    # ---- cancellation ----

    async def cancel_one(self, reminder_id: str | None) -> None:
        if not self._supported or _blank(reminder_id):
            return
        try:
            await self._port.cancel(reminder_id.strip())
            logger.info("Cancelled reminder %s", reminder_id)
        except Exception:
            logger.exception(
                "Error cancelling reminder %s",
                reminder_id,
                extra={"error_kind": ReminderErrorKind.PLATFORM_FAILURE.value},
            )

    async def cancel_for_task(self, task_id: str | None) -> None:
        """Cancel every pending reminder bound to task_id; one failure never stops the rest."""
        if not self._supported:
            return
        if _blank(task_id):
            logger.warning("Invalid task id for cancelling reminders: %r", task_id)
            return

        task_id = task_id.strip()
        async with self._locks.hold(task_id):
            await self._cancel_for_task_unlocked(task_id)

    async def _cancel_for_task_unlocked(self, task_id: str) -> bool:
        """False when the pending set could not be listed (nothing was cancelled)."""
        try:
            pending = await self._port.list()
        except Exception:
            logger.exception(
                "Error listing reminders for task %s",
                task_id,
                extra={"error_kind": ReminderErrorKind.PLATFORM_FAILURE.value, "task_id": task_id},
            )
            return False

        for reminder in pending:
            if reminder.task_id != task_id:
                continue
            try:
                await self._port.cancel(reminder.identity)
                logger.info("Cancelled reminder for task %s: %s", task_id, reminder.identity)
            except Exception:
                logger.exception(
                    "Error cancelling reminder %s for task %s",
                    reminder.identity,
                    task_id,
                    extra={"error_kind": ReminderErrorKind.PLATFORM_FAILURE.value, "task_id": task_id},
                )
        return True

    async def cancel_all(self) -> None:
        if not self._supported:
            return
        try:
            await self._port.cancel_all()
            logger.info("All reminders cancelled")
        except Exception:
            logger.exception(
                "Error cancelling all reminders",
                extra={"error_kind": ReminderErrorKind.PLATFORM_FAILURE.value},
            )

    async def list_scheduled(self) -> list[ScheduledReminder]:
        if not self._supported:
            return []
        try:
            return list(await self._port.list())
        except Exception:
            logger.exception(
                "Error listing scheduled reminders",
                extra={"error_kind": ReminderErrorKind.PLATFORM_FAILURE.value},
            )
            return []

    # ---- reconciliation ----

    async def reconcile(self, tasks: Iterable[Any], display_name: str | None) -> ReconcileReport:
        """
        Bring the pending set in line with the known tasks (e.g. after a restart).

        - reminders for unknown tasks (or without a task id) are cancelled,
        - tasks without a reminder, or whose reminder fires at a stale instant, are rescheduled,
        - tasks that cannot be scheduled (invalid, past, no permission) end up in `skipped`.
        """
        report = ReconcileReport()
        if not self._supported:
            return report

        by_id: dict[str, Task] = {}
        for raw in tasks:
            task = Task.from_dict(raw) if isinstance(raw, dict) else raw
            task_id = getattr(task, "id", None)
            if _blank(task_id):
                continue
            by_id[task_id.strip()] = task

        try:
            pending = list(await self._port.list())
        except Exception:
            logger.exception(
                "Error listing reminders; reconcile skipped",
                extra={"error_kind": ReminderErrorKind.PLATFORM_FAILURE.value},
            )
            return report

        pending_by_task: dict[str, list[ScheduledReminder]] = {}
        for reminder in pending:
            tid = reminder.task_id
            if tid is None or tid not in by_id:
                await self.cancel_one(reminder.identity)
                report.cancelled.append(reminder.identity)
                continue
            pending_by_task.setdefault(tid, []).append(reminder)

        for task_id, task in by_id.items():
            instant, _ = task_instant(task)
            current = pending_by_task.get(task_id, [])
            if instant is not None and len(current) == 1 and current[0].trigger.instant == instant:
                continue

            reminder_id = await self.schedule(task, display_name)
            if reminder_id is not None:
                report.scheduled.append(task_id)
                continue

            report.skipped.append(task_id)
            if current:
                # Stale reminders for a task that can no longer be scheduled.
                await self.cancel_for_task(task_id)
                report.cancelled.extend(r.identity for r in current)

        logger.info(
            "Reconciled reminders: scheduled=%d cancelled=%d skipped=%d",
            len(report.scheduled),
            len(report.cancelled),
            len(report.skipped),
        )
        return report
