# src/taskbell/reminders/permissions.py

from __future__ import annotations

"""
Permission gatekeeper.

Answers one question for everything above it: may we deliver local reminders right now?
The answer is re-derived from the platform on every call, since the user can revoke
consent outside the app at any time.
"""

import logging

from ..core.ports import SchedulingPort
from .models import PermissionStatus, ReminderErrorKind

logger = logging.getLogger(__name__)

# Second, best-effort request on platforms with alert/sound/badge sub-permissions.
FINE_GRAINED_OPTIONS = {
    "allow_alert": True,
    "allow_badge": True,
    "allow_sound": True,
    "allow_announcements": False,
}


class PermissionGatekeeper:
    def __init__(
        self,
        port: SchedulingPort,
        *,
        supported: bool = True,
        fine_grained: bool = False,
    ) -> None:
        self._port = port
        self._supported = bool(supported)
        self._fine_grained = bool(fine_grained)

    async def request_permission(self) -> bool:
        """
        Return True iff the primary notification permission is granted.

        - Capability-absent host: True without asking (nothing will be scheduled anyway).
        - Not granted yet: prompt the user once.
        - Fine-grained follow-up failures are logged and ignored.
        - Any other failure resolves to False (fail-closed).
        """
        if not self._supported:
            return True

        try:
            status = await self._port.get_permission_status()
            if status != PermissionStatus.GRANTED:
                status = await self._port.request_permission()

            if status == PermissionStatus.GRANTED and self._fine_grained:
                try:
                    await self._port.request_permission(dict(FINE_GRAINED_OPTIONS))
                except Exception:
                    logger.warning("Fine-grained notification permission request failed", exc_info=True)

            granted = status == PermissionStatus.GRANTED
            if not granted:
                logger.info(
                    "Notification permission not granted status=%s",
                    status,
                    extra={"error_kind": ReminderErrorKind.PERMISSION_DENIED.value},
                )
            return granted
        except Exception:
            logger.exception(
                "Error requesting notification permission",
                extra={"error_kind": ReminderErrorKind.PLATFORM_FAILURE.value},
            )
            return False
