from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from taskorch.core.handlers import HandlerRegistry, handler_ref
from taskorch.core.orchestrator import Orchestrator
from taskorch.core.queue import TaskQueue
from taskorch.core.store import InMemoryTaskRepository
from taskorch.core.tasks import Task

T0 = datetime(2024, 5, 10, 9, 0, tzinfo=timezone.utc)


def make_task(task_id: str, **kwargs) -> Task:
    """Task with deterministic timestamps; ``minutes`` offsets created_at from T0."""
    minutes = kwargs.pop("minutes", 0)
    handler = kwargs.pop("handler", "builder")
    created = T0 + timedelta(minutes=minutes)
    kwargs.setdefault("title", f"task {task_id}")
    return Task(
        id=task_id,
        handler=handler_ref(handler),
        created_at=created,
        updated_at=created,
        **kwargs,
    )


@pytest.fixture
def registry():
    return HandlerRegistry()


@pytest.fixture
def repo():
    return InMemoryTaskRepository()


@pytest.fixture
def queue(repo, registry):
    return TaskQueue(repo, registry=registry)


@pytest.fixture
def orch(queue, tmp_path):
    return Orchestrator(queue, audit_dir=str(tmp_path))
