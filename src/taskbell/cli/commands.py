# src/taskbell/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import cast

from ..core.state import AppState
from ..reminders.manager import task_instant
from ..reminders.models import PermissionStatus, Task

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _task_from_args(args: list[str]) -> Task | None:
    if len(args) < 4:
        return None
    return Task(id=args[0], date=args[1], time=args[2], title=" ".join(args[3:]))


def _save_and_schedule(state: AppState, task: Task, verb: str) -> str:
    _, reason = task_instant(task)
    if reason:
        return f"Invalid task: {reason}."

    state.task_store.upsert(task)
    reminder_id = state.run(state.reminders.schedule(task, state.display_name))
    if reminder_id is None:
        return f"Task {task.id} {verb}. No reminder scheduled (past, too soon or not permitted)."
    return f"Task {task.id} {verb}. Reminder {reminder_id} at {task.date} {task.time}."


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    supported = "YES" if state.reminders.supported else "NO"
    observer = "attached" if state.reminders.observer_attached else "detached"
    permission = state.run(state.platform.get_permission_status())
    pending = len(state.run(state.reminders.list_scheduled()))
    return (
        "Status:\n"
        f"  Local notifications supported: {supported}\n"
        f"  Permission: {permission}\n"
        f"  Tap observer: {observer}\n"
        f"  Display name: {state.display_name or '(default)'}\n"
        f"  Pending reminders: {pending}"
    )


def cmd_add(state: AppState, args: list[str]) -> str:
    """/add <id> <YYYY-MM-DD> <HH:MM[:SS]> <title...>"""
    task = _task_from_args(args)
    if task is None:
        return "Usage: /add <id> <YYYY-MM-DD> <HH:MM[:SS]> <title...>"
    if state.task_store.get(task.id) is not None:
        return f"Task {task.id} already exists. Use /edit to change it."
    return _save_and_schedule(state, task, "added")


def cmd_edit(state: AppState, args: list[str]) -> str:
    """/edit <id> <YYYY-MM-DD> <HH:MM[:SS]> <title...>"""
    task = _task_from_args(args)
    if task is None:
        return "Usage: /edit <id> <YYYY-MM-DD> <HH:MM[:SS]> <title...>"
    old = state.task_store.get(task.id)
    if old is None:
        return f"No task {task.id}. Use /add to create it."
    task.extra = dict(old.extra)
    # Editing reopens a completed task.
    task.extra.pop("completed", None)
    return _save_and_schedule(state, task, "updated")


def cmd_done(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /done <id>"
    task = state.task_store.get(args[0])
    if task is None:
        return f"No task {args[0]}."
    task.extra["completed"] = True
    state.task_store.upsert(task)
    state.run(state.reminders.cancel_for_task(task.id))
    return f"Task {task.id} completed. Its reminders were cancelled."


def cmd_delete(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /delete <id>"
    if not state.task_store.delete(args[0]):
        return f"No task {args[0]}."
    state.run(state.reminders.cancel_for_task(args[0]))
    return f"Task {args[0]} deleted. Its reminders were cancelled."


def cmd_tasks(state: AppState, args: list[str]) -> str:
    tasks = state.task_store.list()
    if not tasks:
        return "No tasks."
    lines = ["Tasks:"]
    for t in sorted(tasks, key=lambda x: (x.date or "", x.time or "", x.id)):
        mark = " [done]" if t.extra.get("completed") else ""
        lines.append(f"  {t.id}: {t.date} {t.time} {t.title}{mark}")
    return "\n".join(lines)


def cmd_reminders(state: AppState, args: list[str]) -> str:
    pending = state.run(state.reminders.list_scheduled())
    if not pending:
        return "No pending reminders."
    lines = ["Pending reminders:"]
    for r in pending:
        lines.append(
            f"  {r.identity} task={r.task_id} at {r.trigger.instant.isoformat()} | {r.content.title}"
        )
    return "\n".join(lines)


def cmd_cancel(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /cancel <reminder_id>"
    state.run(state.reminders.cancel_one(args[0]))
    return f"Cancel requested for reminder {args[0]}."


def cmd_cancelall(state: AppState, args: list[str]) -> str:
    state.run(state.reminders.cancel_all())
    return "All reminders cancelled."


def cmd_tap(state: AppState, args: list[str]) -> str:
    """Simulate the user tapping a delivered reminder."""
    if not args:
        return "Usage: /tap <reminder_id>"
    state.last_tap = None
    if not state.platform.tap(args[0]):
        return f"No reminder {args[0]}."
    if state.last_tap is None:
        return "Tap ignored (no observer attached)."
    task_id, task_title = state.last_tap
    return f"Opened task {task_id}: {task_title}"


def cmd_reconcile(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if emit:
        emit("[REMINDERS] Reconciling reminders with tasks...")
    tasks = [t for t in state.task_store.list() if not t.extra.get("completed")]
    report = state.run(state.reminders.reconcile(tasks, state.display_name))
    return (
        f"Reconciled: scheduled={len(report.scheduled)} "
        f"cancelled={len(report.cancelled)} skipped={len(report.skipped)}"
    )


def cmd_name(state: AppState, args: list[str]) -> str:
    state.display_name = " ".join(args).strip()
    if not state.display_name:
        return "Display name cleared. New reminders use the default name."
    return f"Display name set to {state.display_name}. Applies to reminders scheduled from now on."


def cmd_permission(state: AppState, args: list[str]) -> str:
    """
    /permission        -> show status
    /permission grant  -> grant
    /permission revoke -> revoke (as if done from system settings)
    """
    if not args:
        return f"Permission is {state.run(state.platform.get_permission_status())}."

    arg = args[0].lower()
    if arg in ("grant", "on", "allow"):
        state.platform.set_permission(PermissionStatus.GRANTED)
        state.run(state.reminders.initialize())
        return "Permission granted."
    if arg in ("revoke", "off", "deny"):
        state.platform.set_permission(PermissionStatus.DENIED)
        return "Permission revoked. Existing reminders stay scheduled; new ones will be refused."
    return "Usage: /permission grant | /permission revoke"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show notification support, permission and counts.")
registry.register("add", cmd_add, help_text="Add a task and schedule its reminder: /add id date time title.")
registry.register("edit", cmd_edit, help_text="Change a task and reschedule its reminder.")
registry.register("done", cmd_done, help_text="Complete a task and cancel its reminders.")
registry.register("delete", cmd_delete, help_text="Delete a task and cancel its reminders.", aliases=["rm"])
registry.register("tasks", cmd_tasks, help_text="List tasks.")
registry.register("reminders", cmd_reminders, help_text="List pending reminders.", aliases=["ls"])
registry.register("cancel", cmd_cancel, help_text="Cancel one reminder by id.")
registry.register("cancelall", cmd_cancelall, help_text="Cancel every pending reminder.")
registry.register("tap", cmd_tap, help_text="Simulate tapping a delivered reminder.")
registry.register("reconcile", cmd_reconcile, help_text="Re-sync reminders with the task list.")
registry.register("name", cmd_name, help_text="Set the display name used in reminder titles.")
registry.register("permission", cmd_permission, help_text="Show/grant/revoke notification permission.")
