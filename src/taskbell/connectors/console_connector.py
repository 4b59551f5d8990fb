# src/taskbell/connectors/console_connector.py

from __future__ import annotations

import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..reminders.models import PresentationPolicy, ScheduledReminder

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def present_reminder(reminder: ScheduledReminder, policy: PresentationPolicy) -> None:
    """Console presenter for fired reminders (called from the delivery thread)."""
    if not policy.show_alert:
        return
    bell = "\a" if policy.play_sound and reminder.content.sound else ""
    _print_ts(f"{bell}[REMINDER] {reminder.content.title}: {reminder.content.body} (/tap {reminder.identity})")


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Manage tasks with slash commands. Use /help for commands. Use /exit to quit.\n")

    def emit(text: str) -> None:
        _print_ts(text)

    while True:
        try:
            user_input = input(">>> ").strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            response = command_registry.handle(state, user_input, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            response = "Internal error while handling a command."

        if response is None:
            response = "Commands start with '/'. Use /help to list available commands."
        _print_ts(response)

    logger.info("Console connector finished.")
