"""Task repositories.

The queue never touches files directly; it is handed a repository that
can load the whole backlog and save it back. Every save rewrites the
whole document.
"""
from __future__ import annotations

import copy
from datetime import datetime, timezone
import json
import logging
import os
from typing import List, Optional, Protocol

from taskorch.core.tasks import Task

logger = logging.getLogger("taskorch.store")


class TaskRepository(Protocol):
    def load_all(self) -> List[Task]: ...

    def save_all(self, tasks: List[Task]) -> None: ...


class JsonTaskRepository:
    """Backlog stored as ``{"tasks": [...], "lastUpdated": "..."}``."""

    def __init__(self, path: str) -> None:
        self.path = path
        self.last_updated: Optional[str] = None

    def load_all(self) -> List[Task]:
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                raw = json.load(handle)
            self.last_updated = raw.get("lastUpdated")
            return [Task.from_dict(item) for item in raw.get("tasks", [])]
        except Exception as exc:  # noqa: BLE001
            # unreadable queue loads as empty
            logger.error("Failed to load tasks from %s: %s", self.path, exc)
            return []

    def save_all(self, tasks: List[Task]) -> None:
        dir_path = os.path.dirname(self.path)
        if dir_path:
            os.makedirs(dir_path, exist_ok=True)
        self.last_updated = datetime.now(timezone.utc).isoformat()
        payload = {
            "tasks": [t.to_dict() for t in tasks],
            "lastUpdated": self.last_updated,
        }
        tmp_path = f"{self.path}.tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self.path)
        except Exception:
            logger.error("Failed to save tasks to %s", self.path)
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        logger.debug("Saved %d tasks to %s", len(tasks), self.path)


class InMemoryTaskRepository:
    """Repository kept in process memory; copies on the way in and out."""

    def __init__(self, tasks: Optional[List[Task]] = None) -> None:
        self._tasks: List[Task] = copy.deepcopy(tasks or [])
        self.saves = 0

    def load_all(self) -> List[Task]:
        return copy.deepcopy(self._tasks)

    def save_all(self, tasks: List[Task]) -> None:
        self._tasks = copy.deepcopy(tasks)
        self.saves += 1
