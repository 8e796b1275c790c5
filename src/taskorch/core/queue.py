"""Task queue: add, update and pick the next task to work on.

Every public call loads the whole backlog from the repository first and,
if it changes anything, saves the whole backlog back before returning.

Two orderings live here:

* :meth:`TaskQueue.next_eligible` walks priority tiers from ``critical``
  down and, inside a tier, keeps the order tasks were added in.
* :func:`listing_order` sorts for display: priority tier, then
  ``created_at`` ascending.
"""
from __future__ import annotations

from dataclasses import fields
import logging
from typing import Any, Dict, Iterable, List, Optional
import uuid

from taskorch.core.classifier import classify
from taskorch.core.handlers import HandlerRegistry, handler_ref
from taskorch.core.store import TaskRepository
from taskorch.core.tasks import (
    PRIORITY_ORDER,
    Task,
    TaskInput,
    now_utc,
    priority_rank,
    validate_priority,
    validate_status,
)

logger = logging.getLogger("taskorch.queue")

# Fields update() may never touch
_IMMUTABLE_FIELDS = {"id", "created_at", "classification_confidence", "classification_reasoning"}
_TASK_FIELDS = {f.name for f in fields(Task)}


def listing_order(tasks: Iterable[Task]) -> List[Task]:
    """Display order: critical first, then oldest first within a tier."""
    return sorted(tasks, key=lambda t: (priority_rank(t.priority), t.created_at))


def dependencies_met(task: Task, by_id: Dict[str, Task]) -> bool:
    """True when every dependency exists and is completed.

    An id that does not resolve counts as unmet.
    """
    for dep_id in task.dependencies:
        dep = by_id.get(dep_id)
        if dep is None or dep.status != "completed":
            return False
    return True


class TaskQueue:
    """Scheduler over a :class:`TaskRepository`."""

    def __init__(self, repository: TaskRepository, registry: Optional[HandlerRegistry] = None) -> None:
        self.repository = repository
        self.registry = registry if registry is not None else HandlerRegistry()

    def _new_id(self, tasks: List[Task]) -> str:
        taken = {t.id for t in tasks}
        while True:
            task_id = uuid.uuid4().hex[:8]
            if task_id not in taken:
                return task_id

    # ── Mutations ────────────────────────────────────────────

    def add(self, task_input: TaskInput) -> Task:
        """Classify and append a new pending task."""
        tasks = self.repository.load_all()
        priority = validate_priority(task_input.priority or "medium")
        result = classify(
            task_input.title,
            task_input.description,
            task_input.tags,
            registry=self.registry,
        )
        now = now_utc()
        task = Task(
            id=self._new_id(tasks),
            title=task_input.title,
            description=task_input.description or "",
            handler=result.handler,
            priority=priority,
            status="pending",
            tags=list(task_input.tags or []),
            dependencies=list(task_input.dependencies or []),
            created_at=now,
            updated_at=now,
            classification_confidence=result.confidence,
            classification_reasoning=list(result.reasoning),
            estimated_minutes=task_input.estimated_minutes,
        )
        tasks.append(task)
        self.repository.save_all(tasks)
        logger.info("Task added: %s -> %s (%s, confidence=%d)", task.id, task.handler_id, priority, result.confidence)
        return task

    def update(self, task_id: str, **changes: Any) -> Optional[Task]:
        """Merge *changes* into a task and save.

        Returns None (and saves nothing) when the id is unknown.
        """
        unknown = set(changes) - _TASK_FIELDS
        if unknown:
            raise ValueError(f"Unknown task fields: {', '.join(sorted(unknown))}")
        frozen = set(changes) & _IMMUTABLE_FIELDS
        if frozen:
            raise ValueError(f"Fields cannot be updated: {', '.join(sorted(frozen))}")

        tasks = self.repository.load_all()
        task = next((t for t in tasks if t.id == task_id), None)
        if task is None:
            logger.warning("Update for unknown task: %s", task_id)
            return None

        if "status" in changes:
            changes["status"] = validate_status(changes["status"])
        if "priority" in changes:
            changes["priority"] = validate_priority(changes["priority"])
        if "handler" in changes and isinstance(changes["handler"], str):
            changes["handler"] = handler_ref(changes["handler"])
        if "dependencies" in changes:
            deps = list(changes["dependencies"] or [])
            if task_id in deps:
                logger.warning("Dropping self-dependency on task %s", task_id)
                deps = [d for d in deps if d != task_id]
            changes["dependencies"] = deps

        old_status = task.status
        for name, value in changes.items():
            setattr(task, name, value)
        now = now_utc()
        task.updated_at = now

        if task.status == "completed":
            if old_status != "completed" or task.completed_at is None:
                task.completed_at = now
        else:
            task.completed_at = None
        if task.status != "blocked":
            task.blocked_reason = None

        self.repository.save_all(tasks)
        logger.info("Task updated: %s (%s -> %s)", task_id, old_status, task.status)
        return task

    # ── Selection ────────────────────────────────────────────

    def next_eligible(self, handler: Optional[str] = None) -> Optional[Task]:
        """First eligible pending task, scanning tiers from critical to low.

        Within a tier tasks are considered in store order. Nothing is
        modified; callers move the task to ``in_progress`` themselves.
        """
        tasks = self.repository.load_all()
        by_id = {t.id: t for t in tasks}
        wanted = handler_ref(handler) if handler else None

        for priority in PRIORITY_ORDER:
            for task in tasks:
                if task.status != "pending" or task.priority != priority:
                    continue
                if wanted is not None and task.handler != wanted:
                    continue
                if not dependencies_met(task, by_id):
                    continue
                return task
        return None

    # ── Read projections ─────────────────────────────────────

    def all(self) -> List[Task]:
        return self.repository.load_all()

    def get(self, task_id: str) -> Optional[Task]:
        return next((t for t in self.repository.load_all() if t.id == task_id), None)

    def by_handler(self, handler: str) -> List[Task]:
        wanted = handler_ref(handler)
        return [t for t in self.repository.load_all() if t.handler == wanted]

    def by_status(self, status: str) -> List[Task]:
        return [t for t in self.repository.load_all() if t.status == status]

    def stats(self) -> Dict[str, int]:
        tasks = self.repository.load_all()
        counts: Dict[str, int] = {
            "total": len(tasks),
            "pending": 0,
            "in_progress": 0,
            "completed": 0,
            "blocked": 0,
        }
        for task in tasks:
            counts[task.status] = counts.get(task.status, 0) + 1
        return counts
