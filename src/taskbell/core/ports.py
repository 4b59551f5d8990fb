# src/taskbell/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The reminder manager depends on Protocols instead of a concrete notification backend.
This keeps the host platform swappable (local SQLite platform, mobile bridge, fakes in tests).
"""

from collections.abc import Callable
from typing import Any, Awaitable, Protocol

from ..reminders.models import (
    PermissionStatus,
    ReminderContent,
    ReminderTrigger,
    ScheduledReminder,
    TapEvent,
)

TapHandler = Callable[[TapEvent], None]


class Subscription(Protocol):
    def remove(self) -> None: ...


class SchedulingPort(Protocol):
    """
    Host-side local notification capability.

    The platform owns reminder identities and stores scheduled requests durably;
    callers only request creation and cancellation.
    """

    def get_permission_status(self) -> Awaitable[PermissionStatus]: ...

    def request_permission(self, options: dict[str, Any] | None = None) -> Awaitable[PermissionStatus]: ...

    def create(self, content: ReminderContent, trigger: ReminderTrigger) -> Awaitable[str]: ...

    def cancel(self, reminder_id: str) -> Awaitable[None]: ...

    def cancel_all(self) -> Awaitable[None]: ...

    def list(self) -> Awaitable[list[ScheduledReminder]]: ...

    def on_tap_response(self, handler: TapHandler) -> Subscription: ...

