# src/taskbell/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the local platform, permission gatekeeper, reminder manager and task store into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.state import AppState
from ..platform.local_platform import LocalSchedulingPlatform, PermissionPrompt
from ..platform.request_store import ReminderRequestStore
from ..reminders.manager import ReminderManager
from ..reminders.models import PresentationPolicy
from ..reminders.permissions import PermissionGatekeeper
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.reminders_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.tasks_path.parent.mkdir(parents=True, exist_ok=True)


def console_prompt(question: str) -> bool:
    try:
        answer = input(question)
    except (EOFError, KeyboardInterrupt):
        return False
    return answer.strip().lower() in {"y", "yes"}


def create_initial_state(*, settings=None, prompt: PermissionPrompt | None = console_prompt) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    platform = LocalSchedulingPlatform(
        ReminderRequestStore(settings.reminders_db_path),
        policy=PresentationPolicy(show_alert=True, play_sound=True, set_badge=False),
        prompt=prompt,
        auto_grant=settings.auto_grant_permission,
        app_name=settings.app_name,
    )
    gatekeeper = PermissionGatekeeper(
        platform,
        supported=settings.notifications_supported,
        fine_grained=settings.fine_grained_permissions,
    )

    def on_tap(task_id: str, task_title: str) -> None:
        state.last_tap = (task_id, task_title)

    reminders = ReminderManager(
        platform,
        gatekeeper,
        supported=settings.notifications_supported,
        guard_interval_seconds=settings.guard_interval_seconds,
        fallback_display_name=settings.fallback_display_name,
        on_tap=on_tap,
    )

    state = AppState(
        settings=settings,
        platform=platform,
        reminders=reminders,
        task_store=TaskStore(settings.tasks_path),
        display_name=settings.display_name,
    )
    return state
