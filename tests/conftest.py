# tests/conftest.py

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from taskbell.cli.bootstrap import create_initial_state
from taskbell.core.state import AppState
from taskbell.reminders.manager import ReminderManager
from taskbell.reminders.permissions import PermissionGatekeeper

from .fakes import FakeSchedulingPort

NOW = datetime(2026, 1, 1, 8, 0, 0)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and AppState.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskbell-test",
        log_level="DEBUG",
        display_name="Alex",
        notifications_supported=True,
        fine_grained_permissions=False,
        auto_grant_permission=True,
        guard_interval_seconds=60,
        fallback_display_name="User",
        delivery_interval_seconds=0.01,
        data_dir=tmp_path,
        reminders_db_path=tmp_path / "reminders.sqlite3",
        tasks_path=tmp_path / "tasks.json",
    )


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """AppState wired with the real local platform (SQLite in tmp_path), no background thread."""
    return create_initial_state(settings=settings, prompt=None)


@pytest.fixture()
def port() -> FakeSchedulingPort:
    return FakeSchedulingPort()


@pytest.fixture()
def taps() -> list[tuple[str, str]]:
    return []


@pytest.fixture()
def manager(port: FakeSchedulingPort, taps: list[tuple[str, str]]) -> ReminderManager:
    return ReminderManager(
        port,
        PermissionGatekeeper(port),
        on_tap=lambda task_id, task_title: taps.append((task_id, task_title)),
        clock=lambda: NOW,
    )
