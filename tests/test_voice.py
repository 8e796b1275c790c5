from __future__ import annotations

import pytest

from taskorch.core.voice import (
    HELP_TEXT,
    execute_voice_command,
    extract_priority,
    format_voice_result,
    parse_voice_command,
)


# ── Parsing ──────────────────────────────────────────────────

@pytest.mark.parametrize(
    "text, expected_type",
    [
        ("Add fix the login bug", "add"),
        ("I need to call the bank", "add"),
        ("remind me to renew the domain", "add"),
        ("show my tasks", "list"),
        ("what's on my agenda", "list"),
        ("What's next?", "next"),
        ("next", "next"),
        ("what should I work on next", "next"),
        ("complete abc123", "complete"),
        ("status update", "status"),
        ("how's the progress going", "status"),
        ("help", "help"),
        ("sing me a song", "unknown"),
    ],
)
def test_parse_types(text, expected_type) -> None:
    assert parse_voice_command(text).type == expected_type


def test_parse_captures_parameters() -> None:
    add = parse_voice_command("Add a task to deploy the API")
    assert add.parameters == {"title": "deploy the api"}
    assert add.confidence == 0.9
    assert add.original_text == "Add a task to deploy the API"

    done = parse_voice_command("mark as done ab12cd34")
    assert done.parameters == {"task_id": "ab12cd34"}

    unknown = parse_voice_command("Sing me a song")
    assert unknown.confidence == 0.3
    assert unknown.parameters == {"text": "sing me a song"}


def test_extract_priority() -> None:
    assert extract_priority("urgent: fix prod") == "critical"
    assert extract_priority("do this asap") == "critical"
    assert extract_priority("important client call") == "high"
    assert extract_priority("this is not urgent") == "low"
    assert extract_priority("whenever you get to it") == "low"
    assert extract_priority("tidy the backlog") is None


# ── Execution ────────────────────────────────────────────────

class TestExecute:
    def test_add_uses_spoken_priority(self, orch):
        out = execute_voice_command(parse_voice_command("add urgent deploy the api"), orch)
        assert out.startswith('✓ Added task: "urgent deploy the api"')
        [task] = orch.queue.all()
        assert task.priority == "critical"
        assert task.handler_id == "builder"

    def test_next_on_empty_queue(self, orch):
        out = execute_voice_command(parse_voice_command("what's next"), orch)
        assert out == "No tasks available. Your queue is empty!"

    def test_next_and_complete(self, orch):
        execute_voice_command(parse_voice_command("add fix the bug"), orch)
        out = execute_voice_command(parse_voice_command("next task"), orch)
        assert "fix the bug" in out
        task_id = orch.queue.all()[0].id
        out = execute_voice_command(parse_voice_command(f"complete {task_id}"), orch)
        assert out == '✓ Completed: "fix the bug"'

    def test_complete_unknown(self, orch):
        out = execute_voice_command(parse_voice_command("complete zzz"), orch)
        assert out == "✗ Task not found: zzz"

    def test_list_and_status(self, orch):
        assert execute_voice_command(parse_voice_command("show my tasks"), orch) == "No pending tasks in the queue."
        for i in range(7):
            execute_voice_command(parse_voice_command(f"add write post {i}"), orch)
        listing = execute_voice_command(parse_voice_command("list tasks"), orch)
        assert "You have 7 task(s)" in listing
        assert "... and 2 more" in listing
        status = execute_voice_command(parse_voice_command("status"), orch)
        assert status.startswith("📊 Queue Status:")
        assert "Pending: 7" in status

    def test_help_and_unknown(self, orch):
        assert execute_voice_command(parse_voice_command("help"), orch) == HELP_TEXT
        out = execute_voice_command(parse_voice_command("sing"), orch)
        assert "I didn't understand" in out


def test_format_voice_result_box() -> None:
    command = parse_voice_command("status")
    box = format_voice_result(command, "line one\nline two", width=40)
    lines = box.split("\n")
    assert lines[0].startswith("╔") and lines[-1].startswith("╚")
    assert "VOICE COMMAND RESULT" in lines[1]
    assert any("line two" in line for line in lines)
    assert "Confidence: 85%" in box
