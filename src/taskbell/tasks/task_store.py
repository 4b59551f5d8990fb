# src/taskbell/tasks/task_store.py

from __future__ import annotations

import contextlib
import json
import logging
import os
import threading
from pathlib import Path

from ..reminders.models import Task

logger = logging.getLogger(__name__)


class TaskStore:
    """
    JSON-file key/value store of task records ({id: {id, title, date, time, ...}}).

    Every write rewrites the whole file atomically (tmp + os.replace).
    Records are read back as Task objects; unknown fields are preserved in Task.extra.
    """

    def __init__(self, path: str | Path = "tasks.json") -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._records: dict[str, dict] = self._load()
        logger.info("TaskStore ready path=%s total=%d", self._path, len(self._records))

    def _load(self) -> dict[str, dict]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text("utf-8"))
        except Exception:
            logger.exception("Failed to load tasks from %s", self._path)
            return {}
        if not isinstance(data, dict):
            return {}
        out: dict[str, dict] = {}
        for key, rec in data.items():
            if isinstance(key, str) and isinstance(rec, dict):
                out[key] = rec
        return out

    def _save(self) -> None:
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(json.dumps(self._records, ensure_ascii=False, indent=2), "utf-8")
        os.replace(tmp, self._path)
        with contextlib.suppress(Exception):
            os.chmod(self._path, 0o600)

    # ---- public API ----

    def get(self, task_id: str) -> Task | None:
        with self._lock:
            rec = self._records.get(task_id)
        return Task.from_dict(rec) if rec is not None else None

    def list(self) -> list[Task]:
        with self._lock:
            recs = list(self._records.values())
        return [Task.from_dict(r) for r in recs]

    def upsert(self, task: Task) -> None:
        if not task.id or not str(task.id).strip():
            raise ValueError("task id is required")
        with self._lock:
            self._records[task.id] = task.to_dict()
            self._save()
        logger.debug("Task saved id=%s date=%s time=%s", task.id, task.date, task.time)

    def delete(self, task_id: str) -> bool:
        with self._lock:
            if task_id not in self._records:
                return False
            del self._records[task_id]
            self._save()
        logger.debug("Task deleted id=%s", task_id)
        return True
