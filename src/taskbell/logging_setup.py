# src/taskbell/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FILE_NAME = "taskbell.log"

# Background loggers that poll or migrate; on the console they only speak up at WARNING+.
QUIET_LOGGERS: tuple[str, ...] = (
    "taskbell.platform.delivery",
    "taskbell.platform.request_store",
)

_FORMAT = "%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s: %(message)s"
_DATEFMT = "%H:%M:%S"


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the REPL readable while reminders fire in the background.

    Own records pass, quiet loggers need WARNING+, anything foreign
    (third-party libraries, captured `py.warnings`) needs ERROR+.
    """

    def __init__(self, quiet: tuple[str, ...] = QUIET_LOGGERS) -> None:
        super().__init__()
        self._quiet = quiet

    def filter(self, record: logging.LogRecord) -> bool:
        if not record.name.startswith("taskbell."):
            return record.levelno >= logging.ERROR
        if record.name.startswith(self._quiet):
            return record.levelno >= logging.WARNING
        return True


def level_from_name(name: str | None, default: int = logging.INFO) -> int:
    level = logging.getLevelName(str(name or "").strip().upper())
    return level if isinstance(level, int) else default


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskbell",
    console_level: int | str = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Route records to stderr (filtered, `console_level`) and to `<log_dir>/taskbell.log` (everything).

    Replaces handlers already on the root logger, so a second call does not duplicate output.
    Returns the log file path.
    """
    if isinstance(console_level, str):
        console_level = level_from_name(console_level)

    log_file = Path(log_dir) / LOG_FILE_NAME
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(min(console_level, file_level))

    formatter = logging.Formatter(_FORMAT, datefmt=_DATEFMT)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(formatter)
    console.addFilter(_ConsoleNoiseFilter())

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(formatter)

    root.addHandler(console)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    return log_file
