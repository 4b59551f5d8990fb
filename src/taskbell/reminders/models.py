# src/taskbell/reminders/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

# Metadata keys attached to every reminder created for a task.
META_TASK_ID = "taskId"
META_TASK_TITLE = "taskTitle"


class PermissionStatus(StrEnum):
    GRANTED = "granted"
    DENIED = "denied"
    UNDETERMINED = "undetermined"

    @classmethod
    def from_db(cls, raw: str | None) -> PermissionStatus:
        if not raw:
            return cls.UNDETERMINED
        try:
            return cls(raw)
        except ValueError:
            return cls.UNDETERMINED


class ReminderErrorKind(StrEnum):
    """
    Why a reminder operation degraded to its sentinel result.

    Never raised; attached to log records as `error_kind`.
    """

    INVALID_INPUT = "invalid_input"
    PERMISSION_DENIED = "permission_denied"
    PAST_OR_TOO_SOON = "past_or_too_soon"
    PLATFORM_FAILURE = "platform_failure"


@dataclass(slots=True, frozen=True)
class PresentationPolicy:
    """How the platform presents a reminder when it fires."""

    show_alert: bool = True
    play_sound: bool = True
    set_badge: bool = False


@dataclass(slots=True)
class Task:
    """
    A task record as persisted by the task subsystem.

    Only id/title/date/time matter for reminders; anything else is kept in `extra`.
    """

    id: str
    title: str
    date: str
    time: str
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        known = {"id", "title", "date", "time"}
        return cls(
            id=data.get("id"),  # type: ignore[arg-type]
            title=data.get("title"),  # type: ignore[arg-type]
            date=data.get("date"),  # type: ignore[arg-type]
            time=data.get("time"),  # type: ignore[arg-type]
            extra={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        out = dict(self.extra)
        out.update({"id": self.id, "title": self.title, "date": self.date, "time": self.time})
        return out


@dataclass(slots=True, frozen=True)
class ReminderContent:
    title: str
    body: str
    metadata: dict[str, Any]
    sound: bool = True


@dataclass(slots=True, frozen=True)
class ReminderTrigger:
    instant: datetime


@dataclass(slots=True, frozen=True)
class ScheduledReminder:
    """A pending reminder request as reported by the platform."""

    identity: str
    content: ReminderContent
    trigger: ReminderTrigger

    @property
    def task_id(self) -> str | None:
        raw = (self.content.metadata or {}).get(META_TASK_ID)
        return raw if isinstance(raw, str) else None


@dataclass(slots=True, frozen=True)
class TapEvent:
    """The user tapped a delivered reminder."""

    reminder: ScheduledReminder

    @property
    def task_id(self) -> str | None:
        return self.reminder.task_id

    @property
    def task_title(self) -> str | None:
        raw = (self.reminder.content.metadata or {}).get(META_TASK_TITLE)
        return raw if isinstance(raw, str) else None


@dataclass(slots=True)
class ReconcileReport:
    scheduled: list[str] = field(default_factory=list)
    cancelled: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
