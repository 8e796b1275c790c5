"""Orchestrator: the verbs a user actually calls.

Thin composition of the classifier and the queue. It returns data
objects and leaves presentation to :mod:`taskorch.render`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging
from typing import Dict, Iterable, List, Optional, Protocol

from taskorch.core.audit import log_event
from taskorch.core.classifier import Classification, classify
from taskorch.core.handlers import HandlerRegistry
from taskorch.core.queue import TaskQueue, listing_order
from taskorch.core.tasks import Task, TaskInput, now_utc, validate_status

logger = logging.getLogger("taskorch.orchestrator")


class TaskNotifier(Protocol):
    def notify_task_created(self, task: Task) -> object: ...

    def notify_task_completed(self, task: Task) -> object: ...

    def notify_task_blocked(self, task: Task, reason: str) -> object: ...


@dataclass
class HandlerLoad:
    handler_id: str
    display_name: str
    total: int
    pending: int


@dataclass
class QueueStats:
    counts: Dict[str, int]
    by_handler: List[HandlerLoad] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.counts.get("total", 0)


@dataclass
class Standup:
    day: datetime
    completed: List[Task] = field(default_factory=list)
    in_progress: List[Task] = field(default_factory=list)
    blocked: List[Task] = field(default_factory=list)
    up_next: List[Task] = field(default_factory=list)


class Orchestrator:
    def __init__(
        self,
        queue: TaskQueue,
        *,
        audit_dir: Optional[str] = None,
        notifier: Optional[TaskNotifier] = None,
    ) -> None:
        self.queue = queue
        self.audit_dir = audit_dir
        self.notifier = notifier

    @property
    def registry(self) -> HandlerRegistry:
        return self.queue.registry

    def _audit(self, event_type: str, task: Task, **extra: object) -> None:
        if not self.audit_dir:
            return
        payload = {"task_id": task.id, "title": task.title, "handler": task.handler_id}
        payload.update(extra)
        log_event(self.audit_dir, event_type, payload)

    # ── Mutating verbs ───────────────────────────────────────

    def add(self, task_input: TaskInput) -> Task:
        task = self.queue.add(task_input)
        self._audit("task.added", task, priority=task.priority, confidence=task.classification_confidence)
        if self.notifier:
            self.notifier.notify_task_created(task)
        return task

    def next(self, handler: Optional[str] = None) -> Optional[Task]:
        """Pick the next eligible task and mark it in progress."""
        candidate = self.queue.next_eligible(handler)
        if candidate is None:
            logger.info("No tasks ready for %s", handler or "any handler")
            return None
        task = self.queue.update(candidate.id, status="in_progress")
        if task:
            self._audit("task.started", task)
        return task

    def complete(self, task_id: str, output: Optional[str] = None) -> Optional[Task]:
        changes: Dict[str, object] = {"status": "completed"}
        if output is not None:
            changes["output"] = output
        task = self.queue.update(task_id, **changes)
        if task is None:
            return None
        self._audit("task.completed", task)
        if self.notifier:
            self.notifier.notify_task_completed(task)
        return task

    def block(self, task_id: str, reason: str) -> Optional[Task]:
        task = self.queue.update(task_id, status="blocked", blocked_reason=reason)
        if task is None:
            return None
        self._audit("task.blocked", task, reason=reason)
        if self.notifier:
            self.notifier.notify_task_blocked(task, reason)
        return task

    # ── Read-only verbs ──────────────────────────────────────

    def list(self, handler: Optional[str] = None, status: Optional[str] = None) -> List[Task]:
        """Tasks in display order (priority, then creation time)."""
        if handler:
            tasks: Iterable[Task] = self.queue.by_handler(handler)
        else:
            tasks = self.queue.all()
        if status:
            wanted = validate_status(status)
            tasks = [t for t in tasks if t.status == wanted]
        return listing_order(tasks)

    def stats(self) -> QueueStats:
        counts = self.queue.stats()
        tasks = self.queue.all()
        loads: List[HandlerLoad] = []
        for handler in self.registry:
            mine = [t for t in tasks if t.handler_id == handler.id]
            if not mine:
                continue
            loads.append(HandlerLoad(
                handler_id=handler.id,
                display_name=handler.display_name,
                total=len(mine),
                pending=sum(1 for t in mine if t.status == "pending"),
            ))
        return QueueStats(counts=counts, by_handler=loads)

    def classify(self, title: str, description: Optional[str] = None, tags: Optional[List[str]] = None) -> Classification:
        return classify(title, description, tags, registry=self.registry)

    def standup(self, now: Optional[datetime] = None) -> Standup:
        """Yesterday's completions, current work, blockers and what is up next."""
        now = now or now_utc()
        local_now = now.astimezone()
        today = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
        yesterday = today - timedelta(days=1)

        tasks = self.queue.all()
        return Standup(
            day=today,
            completed=[
                t for t in tasks
                if t.status == "completed" and t.completed_at is not None and t.completed_at >= yesterday
            ],
            in_progress=[t for t in tasks if t.status == "in_progress"],
            blocked=[t for t in tasks if t.status == "blocked"],
            up_next=[t for t in tasks if t.status == "pending" and t.priority in ("critical", "high")],
        )
