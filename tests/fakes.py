# tests/fakes.py

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from taskbell.core.ports import SchedulingPort, TapHandler
from taskbell.reminders.models import (
    META_TASK_ID,
    META_TASK_TITLE,
    PermissionStatus,
    ReminderContent,
    ReminderTrigger,
    ScheduledReminder,
    TapEvent,
)


class FakeSubscription:
    def __init__(self, port: FakeSchedulingPort, handler: TapHandler) -> None:
        self._port = port
        self._handler = handler
        self.removed = False

    def remove(self) -> None:
        self.removed = True
        if self._handler in self._port.handlers:
            self._port.handlers.remove(self._handler)


@dataclass
class FakeSchedulingPort(SchedulingPort):
    """
    In-memory SchedulingPort used by reminder manager tests.

    - Records every call name in `calls` for "was the platform touched?" assertions
    - Failure switches per operation (create, list, cancel_all, cancel of specific ids, subscribe)
    - `yield_control` inserts a suspension point in each call to expose interleavings
    """

    status: PermissionStatus = PermissionStatus.GRANTED
    request_result: PermissionStatus = PermissionStatus.GRANTED

    reminders: dict[str, ScheduledReminder] = field(default_factory=dict)
    created: list[tuple[ReminderContent, ReminderTrigger]] = field(default_factory=list)
    calls: list[str] = field(default_factory=list)
    cancel_attempts: list[str] = field(default_factory=list)
    permission_options: list[dict[str, Any] | None] = field(default_factory=list)
    handlers: list[TapHandler] = field(default_factory=list)

    fail_status: bool = False
    fail_create: bool = False
    fail_list: bool = False
    fail_cancel_all: bool = False
    fail_fine_grained: bool = False
    fail_cancel_ids: set[str] = field(default_factory=set)
    fail_subscribe: bool = False
    yield_control: bool = False

    _seq: int = 0

    async def _pause(self) -> None:
        if self.yield_control:
            await asyncio.sleep(0)

    async def get_permission_status(self) -> PermissionStatus:
        self.calls.append("get_permission_status")
        if self.fail_status:
            raise RuntimeError("permission API unavailable")
        return self.status

    async def request_permission(self, options: dict[str, Any] | None = None) -> PermissionStatus:
        self.calls.append("request_permission")
        self.permission_options.append(options)
        if options and self.fail_fine_grained:
            raise RuntimeError("sub-permissions not supported")
        if self.status != PermissionStatus.GRANTED:
            self.status = self.request_result
        return self.status

    async def create(self, content: ReminderContent, trigger: ReminderTrigger) -> str:
        self.calls.append("create")
        await self._pause()
        if self.fail_create:
            raise RuntimeError("scheduler rejected the request")
        self._seq += 1
        identity = f"r{self._seq}"
        self.reminders[identity] = ScheduledReminder(identity=identity, content=content, trigger=trigger)
        self.created.append((content, trigger))
        return identity

    async def cancel(self, reminder_id: str) -> None:
        self.calls.append("cancel")
        self.cancel_attempts.append(reminder_id)
        await self._pause()
        if reminder_id in self.fail_cancel_ids:
            raise RuntimeError(f"cannot cancel {reminder_id}")
        self.reminders.pop(reminder_id, None)

    async def cancel_all(self) -> None:
        self.calls.append("cancel_all")
        if self.fail_cancel_all:
            raise RuntimeError("cancel_all failed")
        self.reminders.clear()

    async def list(self) -> list[ScheduledReminder]:
        self.calls.append("list")
        await self._pause()
        if self.fail_list:
            raise RuntimeError("list failed")
        return list(self.reminders.values())

    def on_tap_response(self, handler: TapHandler) -> FakeSubscription:
        self.calls.append("on_tap_response")
        if self.fail_subscribe:
            raise RuntimeError("tap observer registration failed")
        self.handlers.append(handler)
        return FakeSubscription(self, handler)

    # ---- test helpers (not part of the port) ----

    def seed(self, identity: str, task_id: str | None, instant: datetime, title: str = "seeded") -> None:
        metadata: dict[str, Any] = {}
        if task_id is not None:
            metadata = {META_TASK_ID: task_id, META_TASK_TITLE: title}
        self.reminders[identity] = ScheduledReminder(
            identity=identity,
            content=ReminderContent(title=title, body="", metadata=metadata),
            trigger=ReminderTrigger(instant=instant),
        )

    def pending_for(self, task_id: str) -> list[ScheduledReminder]:
        return [r for r in self.reminders.values() if r.task_id == task_id]

    def tap(self, reminder: ScheduledReminder) -> None:
        for handler in list(self.handlers):
            handler(TapEvent(reminder=reminder))
