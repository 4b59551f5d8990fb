# src/taskbell/platform/delivery.py

from __future__ import annotations

"""
Reminder delivery loop.

A small polling loop that:
- fetches due pending reminder requests,
- claims them (pending -> fired, best-effort),
- hands them to an injected presenter together with the presentation policy.

Presentation (console line, desktop toast, sound) belongs to the presenter, not the loop.
"""

import asyncio
import contextlib
import logging
import threading
import time
from collections.abc import Callable, Coroutine
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, TypeVar

from ..reminders.models import PresentationPolicy, ScheduledReminder
from .local_platform import LocalSchedulingPlatform

logger = logging.getLogger(__name__)

Presenter = Callable[[ScheduledReminder, PresentationPolicy], None]

T = TypeVar("T")


async def deliver_due(
        platform: LocalSchedulingPlatform,
        presenter: Presenter,
        *,
        now_ts: float | None = None,
        batch_limit: int = 32,
) -> list[str]:
    """Fire every due reminder once. Returns the ids that were presented."""
    if now_ts is None:
        now_ts = time.time()

    try:
        due = platform.store.list_due(now_ts=now_ts, limit=int(batch_limit))
    except Exception:
        logger.exception("list_due failed")
        return []

    fired: list[str] = []
    for reminder in due:
        try:
            claimed = platform.store.try_mark_fired(reminder.identity)
        except Exception:
            logger.exception("try_mark_fired failed reminder_id=%s", reminder.identity)
            continue

        # Cancelled or fired by someone else in the meantime.
        if not claimed:
            continue

        try:
            presenter(reminder, platform.policy)
            fired.append(reminder.identity)
            logger.info("Reminder %s fired", reminder.identity)
        except Exception:
            logger.exception("Presenting reminder failed reminder_id=%s", reminder.identity)

    return fired


async def run_delivery_loop(
        platform: LocalSchedulingPlatform,
        presenter: Presenter,
        *,
        interval_seconds: float = 5.0,
        batch_limit: int = 32,
) -> None:
    """
    Every interval_seconds: deliver due reminders.

    To stop the loop, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))
    while True:
        await deliver_due(platform, presenter, batch_limit=batch_limit)
        await asyncio.sleep(sleep_s)


@dataclass(slots=True)
class PlatformBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def submit(self, coro: Coroutine[Any, Any, T]) -> Future[T]:
        """Run a coroutine on the background loop (callable from any thread)."""
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def call(self, coro: Coroutine[Any, Any, T], timeout: float | None = None) -> T:
        return self.submit(coro).result(timeout=timeout)

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except Exception:
            logger.debug("Failed to signal delivery loop stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


async def _run_until_stopped(
        platform: LocalSchedulingPlatform,
        presenter: Presenter,
        stop_event: asyncio.Event,
        interval_seconds: float,
) -> None:
    loop_task = asyncio.create_task(
        run_delivery_loop(platform, presenter, interval_seconds=interval_seconds)
    )
    try:
        await stop_event.wait()
    finally:
        loop_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await loop_task


def start_platform_in_background(
        platform: LocalSchedulingPlatform,
        presenter: Presenter,
        *,
        interval_seconds: float = 5.0,
) -> PlatformBackgroundRunner | None:
    """
    Start the delivery loop on its own event loop in a background thread.

    The console REPL is blocking (input()), so reminder operations are submitted
    to this loop with PlatformBackgroundRunner.submit()/call().
    """
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(_run_until_stopped(platform, presenter, stop_event, interval_seconds))
        finally:
            with contextlib.suppress(Exception):
                loop.stop()
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="taskbell-delivery", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Delivery thread did not initialize properly.")
        return None

    logger.info("Delivery background thread started.")
    return PlatformBackgroundRunner(thread=t, loop=loop, stop_event=stop_event)
