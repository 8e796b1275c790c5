"""Append-only JSONL trail of queue mutations (``<data_dir>/audit.jsonl``)."""
from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
import os
import uuid
from typing import Any, Dict, List, Optional

logger = logging.getLogger("taskorch.audit")

AUDIT_FILE = "audit.jsonl"


def generate_request_id() -> str:
    """Generate a short unique request ID."""
    return uuid.uuid4().hex[:12]


def log_event(
    data_dir: str,
    event_type: str,
    payload: Dict[str, Any],
    request_id: Optional[str] = None,
) -> None:
    os.makedirs(data_dir, exist_ok=True)
    record: Dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "type": event_type,
        "payload": payload,
    }
    if request_id:
        record["request_id"] = request_id
    with open(os.path.join(data_dir, AUDIT_FILE), "a", encoding="utf-8") as handle:
        handle.write(json.dumps(record, default=str) + "\n")


def read_events(data_dir: str, event_type: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
    """Most recent *limit* events, oldest first. Malformed lines are skipped."""
    path = os.path.join(data_dir, AUDIT_FILE)
    if not os.path.exists(path):
        return []
    events: List[Dict[str, Any]] = []
    with open(path, "r", encoding="utf-8") as handle:
        for lineno, line in enumerate(handle, 1):
            line = line.strip()
            if not line:
                continue
            try:
                item = json.loads(line)
            except json.JSONDecodeError:
                logger.warning("Skipping malformed audit line %d in %s", lineno, path)
                continue
            if event_type and item.get("type") != event_type:
                continue
            events.append(item)
    return events[-limit:] if limit > 0 else events
