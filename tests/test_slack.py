"""Tests for the Slack webhook notifier."""
from __future__ import annotations

from datetime import datetime, timezone
import json
from unittest.mock import patch

import httpx
import pytest

from conftest import make_task

from taskorch.core.handlers import HandlerRegistry
from taskorch.core.orchestrator import Standup
from taskorch.integrations.slack import (
    SlackConfig,
    SlackNotifier,
    load_slack_config,
    save_slack_config,
)

WEBHOOK = "https://hooks.slack.example/services/T000/B000/XXXX"


class Recorder:
    def __init__(self, status: int = 200, body: str = "ok") -> None:
        self.status = status
        self.body = body
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, text=self.body)

    @property
    def payloads(self):
        return [json.loads(r.content) for r in self.requests]


def _notifier(recorder, **config) -> SlackNotifier:
    config.setdefault("enabled", True)
    config.setdefault("webhook_url", WEBHOOK)
    client = httpx.Client(transport=httpx.MockTransport(recorder))
    return SlackNotifier(SlackConfig(**config), client=client)


# ── Transport ────────────────────────────────────────────────

class TestSendMessage:
    def test_disabled(self):
        rec = Recorder()
        result = _notifier(rec, enabled=False).send_message("hi")
        assert not result.success
        assert result.error == "Slack integration is disabled"
        assert rec.requests == []

    def test_missing_webhook(self):
        rec = Recorder()
        result = _notifier(rec, webhook_url=None).send_message("hi")
        assert result.error == "Slack webhook URL not configured"
        assert rec.requests == []

    def test_success_uses_default_channel(self):
        rec = Recorder()
        result = _notifier(rec).send_message("hello")
        assert result.success
        assert rec.payloads == [{"text": "hello", "channel": "#agent-updates"}]
        assert str(rec.requests[0].url) == WEBHOOK

    def test_api_error(self):
        rec = Recorder(status=404, body="no_service")
        result = _notifier(rec).send_message("hello", channel="#ops")
        assert not result.success
        assert result.error == "Slack API error: no_service"
        assert rec.payloads[0]["channel"] == "#ops"

    def test_network_error(self):
        def boom(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.Client(transport=httpx.MockTransport(boom))
        notifier = SlackNotifier(SlackConfig(webhook_url=WEBHOOK, enabled=True), client=client)
        result = notifier.send_message("hello")
        assert not result.success
        assert result.error.startswith("Network error")

    @patch("taskorch.integrations.slack.httpx.Client")
    def test_default_client(self, mock_client):
        mock_client.return_value.__enter__.return_value.post.return_value.status_code = 200
        notifier = SlackNotifier(SlackConfig(webhook_url=WEBHOOK, enabled=True))
        assert notifier.send_message("hi").success
        mock_client.assert_called_once_with(timeout=15.0)


# ── Task events ──────────────────────────────────────────────

class TestTaskEvents:
    def test_created_blocks(self):
        rec = Recorder()
        task = make_task("ab12cd34", title="Ship the MVP", priority="high")
        assert _notifier(rec).notify_task_created(task).success
        payload = rec.payloads[0]
        assert payload["text"] == "New task created: Ship the MVP"
        fields = payload["blocks"][1]["fields"]
        assert {"type": "mrkdwn", "text": "*Handler:*\nBuilder"} in fields
        assert {"type": "mrkdwn", "text": "*ID:*\n`ab12cd34`"} in fields

    def test_blocked_includes_reason(self):
        rec = Recorder()
        task = make_task("t1", title="Deploy")
        _notifier(rec).notify_task_blocked(task, "no credentials")
        payload = rec.payloads[0]
        assert payload["text"] == "Task blocked: Deploy - no credentials"
        assert "no credentials" in payload["blocks"][1]["text"]["text"]

    def test_toggle_off_skips_send(self):
        rec = Recorder()
        notifier = _notifier(rec)
        notifier.config.notifications.task_completed = False
        result = notifier.notify_task_completed(make_task("t1"))
        assert not result.success
        assert rec.requests == []

    def test_standup(self):
        rec = Recorder()
        standup = Standup(
            day=datetime(2024, 5, 10, tzinfo=timezone.utc),
            completed=[make_task("c", title="Wrote docs", status="completed")],
            blocked=[make_task("b", title="Deploy", status="blocked", blocked_reason="waiting")],
            up_next=[make_task("u", title="Fix prod", priority="critical")],
        )
        assert _notifier(rec).send_standup(standup).success
        payload = rec.payloads[0]
        assert payload["text"] == "Daily Standup - Friday, May 10"
        texts = json.dumps(payload["blocks"])
        assert "Wrote docs" in texts
        assert "Deploy: waiting" in texts
        assert ":red_circle: Fix prod" in texts
        assert "_No tasks in progress_" in texts

    def test_test_connection(self):
        rec = Recorder()
        assert _notifier(rec).test_connection().success
        assert "connected" in rec.payloads[0]["text"]

    def test_empty_registry_shows_raw_handler_id(self):
        rec = Recorder()
        client = httpx.Client(transport=httpx.MockTransport(rec))
        notifier = SlackNotifier(SlackConfig(webhook_url=WEBHOOK, enabled=True), registry=HandlerRegistry([]), client=client)
        assert len(notifier.registry) == 0
        notifier.notify_task_created(make_task("t1", handler="builder"))
        assert {"type": "mrkdwn", "text": "*Handler:*\nbuilder"} in rec.payloads[0]["blocks"][1]["fields"]


# ── Config persistence ───────────────────────────────────────

def test_load_missing_gives_defaults(tmp_path):
    config = load_slack_config(str(tmp_path / "slack-config.json"))
    assert config == SlackConfig()
    assert config.enabled is False


def test_load_corrupt_gives_defaults(tmp_path):
    path = tmp_path / "slack-config.json"
    path.write_text("][")
    assert load_slack_config(str(path)) == SlackConfig()


def test_save_merges(tmp_path):
    path = str(tmp_path / "slack-config.json")
    save_slack_config(path, webhook_url=WEBHOOK, enabled=True)
    config = save_slack_config(
        path,
        default_channel="#ops",
        enabled=None,
        notifications={"task_blocked": False, "daily_standup": None},
    )
    assert config.webhook_url == WEBHOOK
    assert config.enabled is True
    assert config.default_channel == "#ops"
    assert config.notifications.task_blocked is False
    assert config.notifications.daily_standup is True
    assert load_slack_config(path) == config


@pytest.mark.parametrize("raw", [{}, {"notifications": {"unknown": True}}])
def test_from_dict_tolerates_partial(raw):
    assert SlackConfig.from_dict(raw) == SlackConfig()
