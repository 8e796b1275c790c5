"""Task data model.

Tasks are plain dataclasses; priority and status are string values
validated against the sets below. On disk a task is a camelCase JSON
object (see :meth:`Task.to_dict`).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from taskorch.core.handlers import UNROUTED, HandlerRef, handler_id_of, handler_ref


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def parse_ts(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; ``Z`` suffixes and naive values are UTC."""
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    ts = datetime.fromisoformat(raw)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


# Highest first. The scheduler walks tiers in this order.
PRIORITY_ORDER = ("critical", "high", "medium", "low")
PRIORITIES = set(PRIORITY_ORDER)
DEFAULT_PRIORITY = "medium"

TASK_STATUSES = {"pending", "assigned", "in_progress", "blocked", "completed", "cancelled"}


def priority_rank(priority: str) -> int:
    """0 for critical … 3 for low; unknown values sort last."""
    try:
        return PRIORITY_ORDER.index(priority)
    except ValueError:
        return len(PRIORITY_ORDER)


def validate_priority(priority: str) -> str:
    value = (priority or "").strip().lower()
    if value not in PRIORITIES:
        raise ValueError(f"Invalid priority: {priority}")
    return value


def validate_status(status: str) -> str:
    value = (status or "").strip().lower()
    if value not in TASK_STATUSES:
        raise ValueError(f"Invalid status: {status}")
    return value


@dataclass
class TaskInput:
    """What a caller supplies to create a task."""
    title: str
    description: str = ""
    priority: str = DEFAULT_PRIORITY
    tags: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    estimated_minutes: Optional[int] = None


@dataclass
class Task:
    id: str
    title: str
    description: str = ""
    handler: HandlerRef = UNROUTED
    priority: str = DEFAULT_PRIORITY
    status: str = "pending"
    tags: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    blocked_reason: Optional[str] = None

    created_at: datetime = field(default_factory=now_utc)
    updated_at: datetime = field(default_factory=now_utc)
    completed_at: Optional[datetime] = None

    # Routing provenance, set once at creation
    classification_confidence: int = 0
    classification_reasoning: List[str] = field(default_factory=list)

    estimated_minutes: Optional[int] = None
    output: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def handler_id(self) -> str:
        return handler_id_of(self.handler)

    def to_dict(self) -> dict:
        metadata = dict(self.metadata)
        metadata["classificationConfidence"] = self.classification_confidence
        metadata["classificationReasoning"] = list(self.classification_reasoning)
        d: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "handler": self.handler_id,
            "priority": self.priority,
            "status": self.status,
            "tags": list(self.tags),
            "dependencies": list(self.dependencies),
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "metadata": metadata,
        }
        # optional keys are omitted rather than written as null
        if self.blocked_reason is not None:
            d["blockedReason"] = self.blocked_reason
        if self.completed_at is not None:
            d["completedAt"] = self.completed_at.isoformat()
        if self.estimated_minutes is not None:
            d["estimatedMinutes"] = self.estimated_minutes
        if self.output is not None:
            d["output"] = self.output
        return d

    @classmethod
    def from_dict(cls, d: dict) -> Task:
        metadata = dict(d.get("metadata") or {})
        confidence = metadata.pop("classificationConfidence", 0)
        reasoning = metadata.pop("classificationReasoning", [])
        return cls(
            id=d["id"],
            title=d.get("title", ""),
            description=d.get("description", ""),
            # "agent" is the key used by older queue files
            handler=handler_ref(d.get("handler", d.get("agent"))),
            priority=d.get("priority", DEFAULT_PRIORITY),
            status=d.get("status", "pending"),
            tags=list(d.get("tags", [])),
            dependencies=list(d.get("dependencies", [])),
            blocked_reason=d.get("blockedReason"),
            created_at=parse_ts(d["createdAt"]),
            updated_at=parse_ts(d["updatedAt"]),
            completed_at=parse_ts(d["completedAt"]) if d.get("completedAt") else None,
            classification_confidence=int(confidence or 0),
            classification_reasoning=list(reasoning or []),
            estimated_minutes=d.get("estimatedMinutes"),
            output=d.get("output"),
            metadata=metadata,
        )
