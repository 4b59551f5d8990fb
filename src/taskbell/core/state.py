# src/taskbell/core/state.py

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Coroutine, TypeVar

from ..platform.delivery import PlatformBackgroundRunner
from ..platform.local_platform import LocalSchedulingPlatform
from ..reminders.manager import ReminderManager
from ..tasks.task_store import TaskStore

T = TypeVar("T")


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    platform: LocalSchedulingPlatform
    reminders: ReminderManager
    task_store: TaskStore

    display_name: str = ""
    runner: PlatformBackgroundRunner | None = None

    # Most recent tap forwarded by the reminder manager: (task_id, task_title).
    last_tap: tuple[str, str] | None = None

    def run(self, coro: Coroutine[Any, Any, T], timeout: float | None = 30.0) -> T:
        """
        Run a reminder coroutine to completion from synchronous code.

        Uses the background delivery loop when it is running, a fresh event loop otherwise.
        """
        if self.runner is not None:
            return self.runner.call(coro, timeout=timeout)

        return asyncio.run(coro)
