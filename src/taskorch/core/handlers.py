"""Handler registry: the specialists a task can be routed to.

The registry is an ordered list. Order matters: the classifier breaks
score ties in favour of the handler declared first.

A registry can be replaced by pointing ``TASKORCH_REGISTRY_FILE`` at a
JSON document shaped like::

    [
      {"id": "scout", "displayName": "Scout", "keywords": ["job", "grant"],
       "available": true, "command": "npm run scout scan"},
      ...
    ]
"""
from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
import os
from typing import List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger("taskorch.handlers")

HUMAN = "human"


class RegistryError(ValueError):
    """Raised when a registry file cannot be read or validated."""


# ── Handler references ───────────────────────────────────────

@dataclass(frozen=True)
class Known:
    """Routed to an automated handler."""
    handler_id: str

    def __str__(self) -> str:
        return self.handler_id


@dataclass(frozen=True)
class Unrouted:
    """Left for a human to decide."""

    def __str__(self) -> str:
        return HUMAN


UNROUTED = Unrouted()

HandlerRef = Union[Known, Unrouted]


def handler_ref(handler_id: Optional[str]) -> HandlerRef:
    """Build a reference from a stored handler id.

    ``human`` (and an empty id) always map to :data:`UNROUTED`, so a
    :class:`Known` never wraps the human sentinel.
    """
    if not handler_id or handler_id.strip().lower() == HUMAN:
        return UNROUTED
    return Known(handler_id.strip().lower())


def handler_id_of(ref: HandlerRef) -> str:
    return ref.handler_id if isinstance(ref, Known) else HUMAN


# ── Registry ─────────────────────────────────────────────────

@dataclass(frozen=True)
class Handler:
    id: str
    display_name: str
    keywords: Tuple[str, ...]
    description: str = ""
    capabilities: Tuple[str, ...] = field(default_factory=tuple)
    available: bool = True
    command: Optional[str] = None


class HandlerSpec(BaseModel):
    """On-disk shape of one registry entry."""
    id: str = Field(min_length=1)
    displayName: str = Field(min_length=1)
    description: str = ""
    keywords: List[str] = Field(default_factory=list)
    capabilities: List[str] = Field(default_factory=list)
    available: bool = True
    command: Optional[str] = None

    def to_handler(self) -> Handler:
        return Handler(
            id=self.id.strip().lower(),
            display_name=self.displayName,
            description=self.description,
            keywords=tuple(k for k in self.keywords if k.strip()),
            capabilities=tuple(self.capabilities),
            available=self.available,
            command=self.command or None,
        )


DEFAULT_REGISTRY: Tuple[Handler, ...] = (
    Handler(
        id="scout",
        display_name="Scout",
        description="Research & Opportunity Detection - monitors job boards, grants, market signals",
        keywords=(
            "job", "jobs", "hiring", "opportunity", "grant", "funding", "research",
            "find", "search", "monitor", "track", "competitor", "market", "signal",
        ),
        capabilities=(
            "Monitor job boards",
            "Track grant deadlines",
            "Watch market signals",
            "Competitor analysis",
            "Surface opportunities",
        ),
        command="npm run scout scan",
    ),
    Handler(
        id="builder",
        display_name="Builder",
        description="Code Generation & Deployment - takes specs and ships working code",
        keywords=(
            "build", "code", "implement", "create", "deploy", "ship", "develop",
            "feature", "bug", "fix", "refactor", "api", "frontend", "backend",
            "database", "test", "mvp", "prototype",
        ),
        capabilities=(
            "Generate code from specs",
            "Deploy to production",
            "Fix bugs",
            "Build MVPs",
            "Refactor code",
        ),
        command="claude",
    ),
    Handler(
        id="marketer",
        display_name="Marketer",
        description="GTM & Distribution - writes copy, manages social, crafts outreach",
        keywords=(
            "marketing", "copy", "social", "linkedin", "twitter", "post", "launch",
            "outreach", "email", "campaign", "landing", "page", "content", "seo",
            "product hunt", "announcement", "promotion",
        ),
        capabilities=(
            "Write marketing copy",
            "Manage social posts",
            "Craft cold outreach",
            "Optimize landing pages",
            "Plan launches",
        ),
        command="claude",
    ),
    Handler(
        id="analyst",
        display_name="Analyst",
        description="Portfolio & Financial Monitoring - runs mNAV checks, tracks metrics",
        keywords=(
            "portfolio", "investment", "stock", "crypto", "btc", "mstr", "nav",
            "rebalance", "metrics", "runway", "burn", "monte carlo", "analysis",
            "financial", "trade", "position",
        ),
        capabilities=(
            "Run mNAV calculations",
            "Monitor portfolio drift",
            "Calculate rebalancing triggers",
            "Track burn rate",
            "Monte Carlo simulations",
        ),
        command="claude",
    ),
    Handler(
        id="archivist",
        display_name="Archivist",
        description="Knowledge & Context Management - maintains second brain, documentation",
        keywords=(
            "document", "documentation", "knowledge", "context", "remember", "recall",
            "notes", "archive", "index", "search", "history", "decision", "learning",
            "snippet", "reference",
        ),
        capabilities=(
            "Index past decisions",
            "Maintain documentation",
            "Provide context to agents",
            "Store code snippets",
            "Track learnings",
        ),
        command="claude",
    ),
    Handler(
        id=HUMAN,
        display_name="Human",
        description="Tasks requiring human judgment, creativity, or decision-making",
        keywords=(
            "review", "approve", "decide", "creative", "strategy", "meeting",
            "call", "interview", "negotiate", "present",
        ),
        capabilities=(
            "Strategic decisions",
            "Creative work",
            "Architecture review",
            "Stakeholder meetings",
        ),
    ),
)


class HandlerRegistry:
    """Ordered, read-only collection of handlers."""

    def __init__(self, handlers: Sequence[Handler] = DEFAULT_REGISTRY) -> None:
        seen: set[str] = set()
        for h in handlers:
            if h.id in seen:
                raise RegistryError(f"Duplicate handler id: {h.id}")
            seen.add(h.id)
        self._handlers: Tuple[Handler, ...] = tuple(handlers)

    def __iter__(self):
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    def get(self, handler_id: str) -> Optional[Handler]:
        key = handler_id.strip().lower()
        for h in self._handlers:
            if h.id == key:
                return h
        return None

    def resolve(self, ref: HandlerRef) -> Optional[Handler]:
        return self.get(handler_id_of(ref))

    def available(self) -> List[Handler]:
        return [h for h in self._handlers if h.available]

    def ids(self) -> List[str]:
        return [h.id for h in self._handlers]

    def display_name(self, ref: HandlerRef) -> str:
        handler = self.resolve(ref)
        return handler.display_name if handler else handler_id_of(ref)

    @classmethod
    def from_specs(cls, raw: object) -> "HandlerRegistry":
        if not isinstance(raw, list):
            raise RegistryError("Handler registry must be a JSON list")
        try:
            specs = [HandlerSpec.model_validate(item) for item in raw]
        except ValidationError as exc:
            raise RegistryError(f"Invalid handler registry: {exc}") from exc
        return cls([s.to_handler() for s in specs])

    @classmethod
    def from_file(cls, path: str) -> "HandlerRegistry":
        try:
            with open(path, "r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise RegistryError(f"Cannot read handler registry {path}: {exc}") from exc
        registry = cls.from_specs(raw)
        logger.info("Loaded %d handlers from %s", len(registry), path)
        return registry


def load_registry(path: Optional[str] = None) -> HandlerRegistry:
    """Return the registry from *path* (or ``TASKORCH_REGISTRY_FILE``), else the default."""
    path = path or os.getenv("TASKORCH_REGISTRY_FILE") or None
    if path:
        return HandlerRegistry.from_file(path)
    return HandlerRegistry()
