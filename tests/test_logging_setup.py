# tests/test_logging_setup.py

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from taskbell.logging_setup import _ConsoleNoiseFilter, level_from_name, setup_logging


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


@pytest.fixture()
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    logging.captureWarnings(False)


def test_console_filter_levels() -> None:
    f = _ConsoleNoiseFilter()

    assert f.filter(_record("taskbell.reminders.manager", logging.DEBUG))
    assert not f.filter(_record("taskbell.platform.delivery", logging.INFO))
    assert f.filter(_record("taskbell.platform.delivery", logging.WARNING))
    assert not f.filter(_record("py.warnings", logging.WARNING))
    assert not f.filter(_record("urllib3", logging.WARNING))
    assert f.filter(_record("urllib3", logging.ERROR))


def test_level_from_name() -> None:
    assert level_from_name("debug") == logging.DEBUG
    assert level_from_name(" WARNING ") == logging.WARNING
    assert level_from_name("loud") == logging.INFO
    assert level_from_name(None, default=logging.ERROR) == logging.ERROR


def test_setup_logging_writes_file_and_replaces_handlers(tmp_path: Path, restore_root_logger) -> None:
    setup_logging(log_dir=tmp_path, console_level="WARNING")
    log_file = setup_logging(log_dir=tmp_path, console_level="WARNING")

    assert log_file == tmp_path / "taskbell.log"
    assert len(restore_root_logger.handlers) == 2

    logging.getLogger("taskbell.platform.delivery").debug("delivered r1")
    for handler in restore_root_logger.handlers:
        handler.flush()

    assert "delivered r1" in log_file.read_text("utf-8")
