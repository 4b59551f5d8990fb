# src/taskbell/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then:
- starts the reminder delivery loop in a background thread,
- initializes notifications (permission + tap observer),
- reconciles pending reminders with the stored tasks (restores state after a restart),
- runs the console REPL in the main thread.
"""

from __future__ import annotations

import logging

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import present_reminder, run_console_loop
from ..logging_setup import setup_logging
from ..platform.delivery import start_platform_in_background

logger = logging.getLogger(__name__)


def _shutdown(state) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        state.reminders.shutdown()
    except Exception:
        logger.exception("Failed to detach reminder observer.")

    runner = getattr(state, "runner", None)
    if runner is not None:
        runner.stop()
        runner.join(timeout=10.0)
        state.runner = None


def main() -> None:
    settings = get_settings()

    log_file = setup_logging(log_dir=settings.data_dir, console_level=settings.log_level)

    logger.info("Starting %s (log file: %s)...", settings.app_name, log_file)

    state = create_initial_state(settings=settings)

    # Initialize before the REPL owns stdin: the permission prompt may need it.
    try:
        state.run(state.reminders.initialize())
    except Exception:
        logger.exception("Failed to initialize notifications.")

    state.runner = start_platform_in_background(
        state.platform,
        present_reminder,
        interval_seconds=settings.delivery_interval_seconds,
    )

    try:
        tasks = [t for t in state.task_store.list() if not t.extra.get("completed")]
        state.run(state.reminders.reconcile(tasks, state.display_name))
    except Exception:
        logger.exception("Failed to reconcile reminders on startup.")

    try:
        run_console_loop(state)
    finally:
        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
