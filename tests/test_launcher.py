"""Tests for launching handler processes (real child processes)."""
from __future__ import annotations

import shlex
import sys

import pytest

from taskorch.core.handlers import Handler, HandlerRegistry
from taskorch.core.launcher import HandlerLauncher, format_available_handlers, format_parallel_results

PY = shlex.quote(sys.executable)


def _handler(handler_id: str, code: str) -> Handler:
    return Handler(
        id=handler_id,
        display_name=handler_id.title(),
        keywords=(),
        command=f"{PY} -c {shlex.quote(code)}",
    )


@pytest.fixture
def launcher(tmp_path):
    registry = HandlerRegistry([
        _handler("ok", "import sys; print('args', sys.argv[1:])"),
        _handler("fail", "import sys; print('boom'); sys.exit(3)"),
        _handler("slow", "import time; time.sleep(10)"),
        Handler(id="manual", display_name="Manual", keywords=()),
        _handler("ghost", "print('never')"),
    ])
    for hid in ("ok", "fail", "slow", "manual"):
        (tmp_path / f"{hid}-agent").mkdir()
    return HandlerLauncher(registry, base_dir=str(tmp_path), timeout=1)


def test_handler_dir(launcher, tmp_path):
    assert launcher.handler_dir("ok") == str(tmp_path / "ok-agent")


def test_available_handlers(launcher):
    # manual has no command, ghost has no directory
    assert [h.id for h in launcher.available_handlers()] == ["ok", "fail", "slow"]


def test_run_success_passes_args(launcher):
    run = launcher.run_handler("ok", ["--dry-run"])
    assert run.status == "completed"
    assert run.exit_code == 0
    assert "['--dry-run']" in run.output
    assert run.duration_seconds is not None and run.duration_seconds >= 0


def test_run_nonzero_exit(launcher):
    run = launcher.run_handler("fail")
    assert run.status == "failed"
    assert run.exit_code == 3
    assert "boom" in run.output


def test_run_timeout(launcher):
    run = launcher.run_handler("slow")
    assert run.status == "failed"
    assert run.exit_code is None
    assert "Timed out after 1s" in run.output


def test_run_without_command_or_dir(launcher):
    assert launcher.run_handler("manual").status == "failed"
    missing = launcher.run_handler("ghost")
    assert missing.status == "failed"
    assert "directory not found" in missing.output
    assert launcher.run_handler("nobody").status == "failed"


def test_run_parallel_statuses(launcher):
    assert launcher.run_parallel(["ok"]).status == "completed"

    mixed = launcher.run_parallel(["ok", "fail"])
    assert mixed.status == "partial"
    assert [r.handler_id for r in mixed.runs] == ["ok", "fail"]

    assert launcher.run_parallel(["fail", "manual"]).status == "failed"


def test_formatting(launcher):
    text = format_parallel_results(launcher.run_parallel(["ok", "fail"]))
    assert "PARTIAL" in text
    assert "✓ ok" in text and "✗ fail" in text
    assert "Runnable handlers:" in format_available_handlers(launcher.available_handlers())
    assert format_available_handlers([]) == "No runnable handlers found."
