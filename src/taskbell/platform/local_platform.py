# src/taskbell/platform/local_platform.py

from __future__ import annotations

"""
Local scheduling platform.

A desktop stand-in for the OS notification service, implementing the SchedulingPort:
- scheduled requests are stored durably in SQLite (they survive restarts),
- the permission decision is persisted the same way,
- tap responses are dispatched to subscribed handlers.

The presentation policy (alert/sound/badge) is fixed once at construction.
Errors propagate to the caller; the reminder manager decides what is fatal.
"""

import logging
import uuid
from collections.abc import Callable
from typing import Any

from ..core.ports import TapHandler
from ..reminders.models import (
    PermissionStatus,
    PresentationPolicy,
    ReminderContent,
    ReminderTrigger,
    ScheduledReminder,
    TapEvent,
)
from .request_store import ReminderRequestStore

logger = logging.getLogger(__name__)

PermissionPrompt = Callable[[str], bool]

PERMISSION_KEY = "permission_status"
PERMISSION_OPTIONS_KEY = "permission_options"


class _TapSubscription:
    def __init__(self, platform: LocalSchedulingPlatform, handler: TapHandler) -> None:
        self._platform = platform
        self._handler = handler

    def remove(self) -> None:
        self._platform._remove_handler(self._handler)


class LocalSchedulingPlatform:
    def __init__(
        self,
        store: ReminderRequestStore,
        *,
        policy: PresentationPolicy | None = None,
        prompt: PermissionPrompt | None = None,
        auto_grant: bool = False,
        app_name: str = "taskbell",
    ) -> None:
        self.store = store
        self.policy = policy or PresentationPolicy()
        self._prompt = prompt
        self._auto_grant = bool(auto_grant)
        self._app_name = app_name
        self._handlers: list[TapHandler] = []

    # ---- permissions ----

    async def get_permission_status(self) -> PermissionStatus:
        return PermissionStatus.from_db(self.store.get_value(PERMISSION_KEY))

    async def request_permission(self, options: dict[str, Any] | None = None) -> PermissionStatus:
        """
        Ask the user once. A recorded decision (granted or denied) is returned as-is;
        only an undetermined state triggers the prompt.
        """
        status = await self.get_permission_status()

        if options:
            self.store.set_value(PERMISSION_OPTIONS_KEY, ",".join(sorted(k for k, v in options.items() if v)))

        if status != PermissionStatus.UNDETERMINED:
            return status

        if self._auto_grant:
            granted = True
        elif self._prompt is not None:
            granted = bool(self._prompt(f"Allow {self._app_name} to show reminders? [y/N] "))
        else:
            granted = False

        status = PermissionStatus.GRANTED if granted else PermissionStatus.DENIED
        self.set_permission(status)
        return status

    def set_permission(self, status: PermissionStatus) -> None:
        """Record a permission decision (also how the user revokes it outside the manager)."""
        self.store.set_value(PERMISSION_KEY, status.value)
        logger.info("Notification permission set to %s", status.value)

    # ---- scheduling ----

    async def create(self, content: ReminderContent, trigger: ReminderTrigger) -> str:
        identity = uuid.uuid4().hex
        self.store.add(identity, content, trigger)
        return identity

    async def cancel(self, reminder_id: str) -> None:
        if not self.store.mark_cancelled(reminder_id):
            logger.debug("Cancel ignored, reminder %s is not pending", reminder_id)

    async def cancel_all(self) -> None:
        n = self.store.cancel_all_pending()
        logger.debug("Cancelled %d pending reminders", n)

    async def list(self) -> list[ScheduledReminder]:
        return self.store.list_pending()

    # ---- tap responses ----

    def on_tap_response(self, handler: TapHandler) -> _TapSubscription:
        self._handlers.append(handler)
        return _TapSubscription(self, handler)

    def _remove_handler(self, handler: TapHandler) -> None:
        try:
            self._handlers.remove(handler)
        except ValueError:
            pass

    @property
    def handler_count(self) -> int:
        return len(self._handlers)

    def tap(self, reminder_id: str) -> bool:
        """Deliver a tap on a reminder to every subscribed handler. False if the id is unknown."""
        reminder = self.store.get(reminder_id)
        if reminder is None:
            return False

        event = TapEvent(reminder=reminder)
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception("Tap handler failed reminder_id=%s", reminder_id)
        return True
