"""Keyword classifier: decides which handler a task belongs to.

Scoring per available handler, in registry order:

* +10 for every handler keyword found as a substring of the text
* +15 for every tag equal to one of the handler's keywords
* +25 once when the text names the handler (id or display name)

The highest score wins; ties keep the earlier handler. Confidence is
``min(100, score * 2)``. Below 20 the task goes to a human and the
confidence is reported as ``100 - confidence``, i.e. how sure we are that
a human should look at it rather than how sure we are of any handler.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Iterable, List, Optional

from taskorch.core.handlers import UNROUTED, Handler, HandlerRef, HandlerRegistry, handler_ref

logger = logging.getLogger("taskorch.classifier")

KEYWORD_POINTS = 10
TAG_POINTS = 15
MENTION_POINTS = 25
CONFIDENCE_THRESHOLD = 20
MAX_REASONS = 3

LOW_CONFIDENCE_REASONING = (
    "Low confidence in automated classification",
    "Routing to human for decision",
)


@dataclass
class Classification:
    handler: HandlerRef
    confidence: int
    reasoning: List[str] = field(default_factory=list)


@dataclass
class _Score:
    handler_id: str
    score: int = 0
    reasons: List[str] = field(default_factory=list)


def _score_handler(handler: Handler, text: str, tags: List[str]) -> _Score:
    result = _Score(handler_id=handler.id)
    lowered_keywords = [k.lower() for k in handler.keywords]

    for keyword, lowered in zip(handler.keywords, lowered_keywords):
        if lowered in text:
            result.score += KEYWORD_POINTS
            result.reasons.append(f"Matches keyword: {keyword}")

    for tag in tags:
        if tag in lowered_keywords:
            result.score += TAG_POINTS
            result.reasons.append(f"Tag matches: {tag}")

    if handler.id.lower() in text or handler.display_name.lower() in text:
        result.score += MENTION_POINTS
        result.reasons.append(f"Explicitly mentions {handler.display_name}")

    return result


def classify(
    title: str,
    description: Optional[str] = None,
    tags: Optional[Iterable[str]] = None,
    registry: Optional[HandlerRegistry] = None,
) -> Classification:
    """Route a task by its text and tags. Deterministic for a given registry."""
    registry = registry if registry is not None else HandlerRegistry()
    text = f"{title} {description or ''}".lower()
    norm_tags = [t.strip().lower() for t in (tags or []) if t and t.strip()]

    best: Optional[_Score] = None
    for handler in registry.available():
        scored = _score_handler(handler, text, norm_tags)
        # strict ">" keeps the first-declared handler on ties
        if best is None or scored.score > best.score:
            best = scored

    raw = best.score if best else 0
    confidence = min(100, round(raw * 2))

    if best is None or confidence < CONFIDENCE_THRESHOLD:
        logger.debug("Low confidence (%d) for %r; routing to human", confidence, title[:80])
        return Classification(
            handler=UNROUTED,
            confidence=100 - confidence,
            reasoning=list(LOW_CONFIDENCE_REASONING),
        )

    logger.debug("Classified %r as %s (score=%d, confidence=%d)", title[:80], best.handler_id, raw, confidence)
    return Classification(
        handler=handler_ref(best.handler_id),
        confidence=confidence,
        reasoning=best.reasons[:MAX_REASONS],
    )
