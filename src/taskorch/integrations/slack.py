"""Slack notifications via an incoming webhook.

Posts task lifecycle events and the daily standup to a channel. All
delivery failures are logged and returned as a :class:`NotifyResult`;
nothing here raises into the caller.

Config lives in ``<data_dir>/slack-config.json``; ``SLACK_WEBHOOK_URL``
overrides the stored webhook.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
import json
import logging
import os
from typing import Any, Dict, List, Optional

import httpx

from taskorch.core.handlers import HandlerRegistry
from taskorch.core.tasks import Task

logger = logging.getLogger("taskorch.slack")

_EMOJI = {
    "created": ":clipboard:",
    "completed": ":white_check_mark:",
    "blocked": ":no_entry:",
    "in_progress": ":hourglass_flowing_sand:",
}


@dataclass
class NotificationToggles:
    task_created: bool = True
    task_completed: bool = True
    task_blocked: bool = True
    daily_standup: bool = True


@dataclass
class SlackConfig:
    webhook_url: Optional[str] = None
    default_channel: str = "#agent-updates"
    enabled: bool = False
    notifications: NotificationToggles = field(default_factory=NotificationToggles)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> SlackConfig:
        toggles = NotificationToggles()
        for key, value in (d.get("notifications") or {}).items():
            if hasattr(toggles, key):
                setattr(toggles, key, bool(value))
        return cls(
            webhook_url=d.get("webhook_url") or None,
            default_channel=d.get("default_channel") or "#agent-updates",
            enabled=bool(d.get("enabled", False)),
            notifications=toggles,
        )


def load_slack_config(path: str) -> SlackConfig:
    """Stored config merged over defaults; an unreadable file gives defaults."""
    if not os.path.exists(path):
        return SlackConfig()
    try:
        with open(path, "r", encoding="utf-8") as handle:
            raw = json.load(handle)
        return SlackConfig.from_dict(raw if isinstance(raw, dict) else {})
    except Exception as exc:  # noqa: BLE001
        logger.warning("Failed to read Slack config %s: %s", path, exc)
        return SlackConfig()


def save_slack_config(path: str, **changes: Any) -> SlackConfig:
    config = load_slack_config(path)
    toggles = changes.pop("notifications", None) or {}
    for key, value in changes.items():
        if value is not None and hasattr(config, key):
            setattr(config, key, value)
    for key, value in toggles.items():
        if value is not None and hasattr(config.notifications, key):
            setattr(config.notifications, key, bool(value))
    dir_path = os.path.dirname(path)
    if dir_path:
        os.makedirs(dir_path, exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(config.to_dict(), handle, indent=2)
    return config


@dataclass
class NotifyResult:
    success: bool
    error: Optional[str] = None


class SlackNotifier:
    def __init__(
        self,
        config: SlackConfig,
        registry: Optional[HandlerRegistry] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.config = config
        self.registry = registry if registry is not None else HandlerRegistry()
        self._client = client

    # ── Transport ─────────────────────────────────────────

    def send_message(
        self,
        text: str,
        blocks: Optional[List[Dict[str, Any]]] = None,
        channel: Optional[str] = None,
    ) -> NotifyResult:
        if not self.config.enabled:
            return NotifyResult(False, "Slack integration is disabled")
        if not self.config.webhook_url:
            return NotifyResult(False, "Slack webhook URL not configured")

        payload: Dict[str, Any] = {
            "text": text,
            "channel": channel or self.config.default_channel,
        }
        if blocks:
            payload["blocks"] = blocks
        try:
            if self._client is not None:
                resp = self._client.post(self.config.webhook_url, json=payload)
            else:
                with httpx.Client(timeout=15.0) as client:
                    resp = client.post(self.config.webhook_url, json=payload)
        except httpx.HTTPError as exc:
            logger.error("Slack webhook network error: %s", exc)
            return NotifyResult(False, f"Network error: {exc}")

        if resp.status_code != 200:
            logger.error("Slack webhook failed: %s %s", resp.status_code, resp.text[:500])
            return NotifyResult(False, f"Slack API error: {resp.text[:500]}")
        return NotifyResult(True)

    # ── Message building ──────────────────────────────────

    def _task_blocks(self, task: Task, action: str) -> List[Dict[str, Any]]:
        emoji = _EMOJI.get(action, ":pushpin:")
        handler_name = self.registry.display_name(task.handler)
        return [
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"{emoji} *Task {action.replace('_', ' ').capitalize()}*"},
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Title:*\n{task.title}"},
                    {"type": "mrkdwn", "text": f"*Handler:*\n{handler_name}"},
                    {"type": "mrkdwn", "text": f"*Priority:*\n{task.priority}"},
                    {"type": "mrkdwn", "text": f"*ID:*\n`{task.id}`"},
                ],
            },
            {"type": "divider"},
        ]

    # ── Task events ───────────────────────────────────────

    def notify_task_created(self, task: Task) -> NotifyResult:
        if not self.config.notifications.task_created:
            return NotifyResult(False, "Task created notifications disabled")
        return self.send_message(f"New task created: {task.title}", self._task_blocks(task, "created"))

    def notify_task_completed(self, task: Task) -> NotifyResult:
        if not self.config.notifications.task_completed:
            return NotifyResult(False, "Task completed notifications disabled")
        return self.send_message(f"Task completed: {task.title}", self._task_blocks(task, "completed"))

    def notify_task_blocked(self, task: Task, reason: str) -> NotifyResult:
        if not self.config.notifications.task_blocked:
            return NotifyResult(False, "Task blocked notifications disabled")
        blocks = self._task_blocks(task, "blocked")
        blocks.insert(1, {"type": "section", "text": {"type": "mrkdwn", "text": f"*Blocked Reason:* {reason}"}})
        return self.send_message(f"Task blocked: {task.title} - {reason}", blocks)

    def send_standup(self, standup: Any) -> NotifyResult:
        """Post an :class:`~taskorch.core.orchestrator.Standup`."""
        if not self.config.notifications.daily_standup:
            return NotifyResult(False, "Daily standup notifications disabled")

        day = standup.day.strftime("%A, %b %d")

        def _line(task: Task) -> str:
            return f"• {task.title} _({self.registry.display_name(task.handler)})_"

        def _section(text: str) -> Dict[str, Any]:
            return {"type": "section", "text": {"type": "mrkdwn", "text": text}}

        blocks: List[Dict[str, Any]] = [
            {"type": "header", "text": {"type": "plain_text", "text": f":sunrise: Daily Standup - {day}", "emoji": True}},
            {"type": "divider"},
            _section(f":white_check_mark: *Completed Yesterday ({len(standup.completed)})*"),
            _section("\n".join(_line(t) for t in standup.completed[:5]) or "_No tasks completed_"),
            {"type": "divider"},
            _section(f":hourglass_flowing_sand: *In Progress ({len(standup.in_progress)})*"),
            _section("\n".join(_line(t) for t in standup.in_progress) or "_No tasks in progress_"),
        ]
        if standup.blocked:
            blocks.append({"type": "divider"})
            blocks.append(_section(f":no_entry: *Blocked ({len(standup.blocked)})*"))
            blocks.append(_section("\n".join(
                f"• {t.title}: {t.blocked_reason or 'No reason given'}" for t in standup.blocked
            )))
        blocks.append({"type": "divider"})
        blocks.append(_section(f":rocket: *Up Next - High Priority ({len(standup.up_next)})*"))
        up_next = "\n".join(
            f"• {':red_circle:' if t.priority == 'critical' else ':large_yellow_circle:'} {t.title}"
            f" _({self.registry.display_name(t.handler)})_"
            for t in standup.up_next[:3]
        )
        blocks.append(_section(up_next or "_No high priority tasks pending_"))

        return self.send_message(f"Daily Standup - {day}", blocks)

    def test_connection(self) -> NotifyResult:
        return self.send_message(
            ":robot_face: Task orchestrator connected successfully!",
            [
                {"type": "section", "text": {"type": "mrkdwn", "text": ":robot_face: *Task orchestrator* connected to Slack!"}},
                {"type": "section", "text": {"type": "mrkdwn",
                                             "text": "Updates on task progress, blockers, and daily standups will be posted here."}},
            ],
        )
