from __future__ import annotations

import json
from typing import List, Optional

import typer
from dotenv import find_dotenv, load_dotenv

app = typer.Typer(add_completion=False, help="Route tasks to handlers and work through the queue.")


def _load_env() -> None:
    # search from the working directory, not from this module's location
    load_dotenv(find_dotenv(usecwd=True))


def _settings():
    """Settings from the environment; ``.env`` is loaded first so option callbacks see it too."""
    from taskorch.core.config import Settings

    _load_env()
    return Settings.from_env()


def _setup_logging() -> None:
    """Configure centralized logging to both stdout and log files."""
    from taskorch.core.logging_config import setup_logging

    settings = _settings()
    setup_logging(log_dir=settings.log_dir, log_level=settings.log_level)


def _start(command: str, **args: object) -> None:
    from taskorch.core.logging_config import log_command

    _setup_logging()
    log_command(command, dict(args))


def _registry():
    from taskorch.core.handlers import RegistryError, load_registry

    try:
        return load_registry(_settings().registry_file)
    except RegistryError as exc:
        typer.secho(f"✗ {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


def _slack_notifier(registry=None):
    from taskorch.integrations.slack import SlackNotifier, load_slack_config

    settings = _settings()
    config = load_slack_config(settings.slack_config_path)
    if settings.slack_webhook_url:
        config.webhook_url = settings.slack_webhook_url
    return SlackNotifier(config, registry=registry)


def _orchestrator():
    from taskorch.core.orchestrator import Orchestrator
    from taskorch.core.queue import TaskQueue
    from taskorch.core.store import JsonTaskRepository

    settings = _settings()
    registry = _registry()
    notifier = _slack_notifier(registry)
    queue = TaskQueue(JsonTaskRepository(settings.queue_path), registry=registry)
    return Orchestrator(
        queue,
        audit_dir=settings.data_dir,
        notifier=notifier if notifier.config.enabled else None,
    )


def _split(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _check_priority(value: Optional[str]) -> Optional[str]:
    from taskorch.core.tasks import validate_priority

    if value is None:
        return None
    try:
        return validate_priority(value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))


def _check_status(value: Optional[str]) -> Optional[str]:
    from taskorch.core.tasks import validate_status

    if value is None:
        return None
    try:
        return validate_status(value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))


def _check_handler(value: Optional[str]) -> Optional[str]:
    from taskorch.core.handlers import HUMAN

    if value is None:
        return None
    key = value.strip().lower()
    if key != HUMAN and _registry().get(key) is None:
        raise typer.BadParameter(f"Unknown handler: {value}")
    return key


# ── Queue commands ───────────────────────────────────────────


@app.command()
def add(
    title: str = typer.Argument(..., help="Task title"),
    description: str = typer.Option("", "--description", "-d", help="Task description"),
    priority: str = typer.Option("medium", "--priority", "-p", callback=_check_priority,
                                 help="critical, high, medium or low"),
    tags: Optional[str] = typer.Option(None, "--tags", "-t", help="Comma-separated tags"),
    depends: Optional[str] = typer.Option(None, "--depends", help="Comma-separated task ids this task waits on"),
    estimate: Optional[int] = typer.Option(None, "--estimate", help="Estimated minutes"),
) -> None:
    """Add a task; it is classified and routed automatically."""
    _start("add", title=title, priority=priority, tags=tags, depends=depends)
    from taskorch.core.tasks import TaskInput
    from taskorch.render import render_added

    orch = _orchestrator()
    task = orch.add(TaskInput(
        title=title,
        description=description,
        priority=priority,
        tags=_split(tags),
        dependencies=_split(depends),
        estimated_minutes=estimate,
    ))
    typer.echo(render_added(task, orch.registry))


@app.command("list")
def list_tasks(
    handler: Optional[str] = typer.Option(None, "--handler", "-a", callback=_check_handler, help="Filter by handler"),
    status: Optional[str] = typer.Option(None, "--status", "-s", callback=_check_status, help="Filter by status"),
) -> None:
    """List tasks by priority, oldest first within a priority."""
    _start("list", handler=handler, status=status)
    from taskorch.render import render_list

    orch = _orchestrator()
    typer.echo(render_list(orch.list(handler=handler, status=status), orch.registry))


@app.command("next")
def next_task(
    handler: Optional[str] = typer.Argument(None, callback=_check_handler, help="Only consider this handler's tasks"),
) -> None:
    """Take the next ready task and mark it in progress."""
    _start("next", handler=handler)
    from taskorch.render import render_next

    orch = _orchestrator()
    typer.echo(render_next(orch.next(handler), orch.registry, handler))


@app.command()
def complete(
    task_id: str = typer.Argument(..., help="Task id"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Result or notes to store on the task"),
) -> None:
    """Mark a task completed."""
    _start("complete", task_id=task_id)
    task = _orchestrator().complete(task_id, output=output)
    if task is None:
        typer.secho(f"Task not found: {task_id}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    typer.secho(f"✓ Completed: {task.title}", fg=typer.colors.GREEN)


@app.command()
def block(
    task_id: str = typer.Argument(..., help="Task id"),
    reason: str = typer.Argument(..., help="Why the task cannot proceed"),
) -> None:
    """Mark a task blocked with a reason."""
    _start("block", task_id=task_id, reason=reason)
    task = _orchestrator().block(task_id, reason)
    if task is None:
        typer.secho(f"Task not found: {task_id}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    typer.secho(f"✗ Blocked: {task.title}", fg=typer.colors.RED)
    typer.echo(f"  Reason: {reason}")


@app.command()
def stats() -> None:
    """Show queue counts by status and by handler."""
    _start("stats")
    from taskorch.render import render_stats

    typer.echo(render_stats(_orchestrator().stats()))


@app.command()
def classify(
    title: str = typer.Argument(..., help="Task title"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    tags: Optional[str] = typer.Option(None, "--tags", "-t", help="Comma-separated tags"),
) -> None:
    """Show which handler a task would be routed to, without adding it."""
    _start("classify", title=title)
    from taskorch.render import render_classification

    orch = _orchestrator()
    typer.echo(render_classification(orch.classify(title, description, _split(tags)), orch.registry))


@app.command()
def standup(
    slack: bool = typer.Option(False, "--slack", help="Also post the standup to Slack"),
) -> None:
    """Daily summary: done yesterday, in progress, blocked, up next."""
    _start("standup", slack=slack)
    from taskorch.render import render_standup

    orch = _orchestrator()
    report = orch.standup()
    typer.echo(render_standup(report, orch.registry))
    if slack:
        result = _slack_notifier(orch.registry).send_standup(report)
        if result.success:
            typer.secho("✓ Standup posted to Slack", fg=typer.colors.GREEN)
        else:
            typer.secho(f"✗ Slack: {result.error}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1)


@app.command()
def handlers() -> None:
    """List configured handlers and their routing keywords."""
    _start("handlers")
    from taskorch.render import render_handlers

    typer.echo(render_handlers(_registry()))


@app.command()
def voice(
    text: List[str] = typer.Argument(..., help="Spoken-style command, e.g. \"what's next\""),
) -> None:
    """Run a natural-language command against the queue."""
    phrase = " ".join(text)
    _start("voice", text=phrase)
    from taskorch.core.voice import execute_voice_command, format_voice_result, parse_voice_command

    command = parse_voice_command(phrase)
    result = execute_voice_command(command, _orchestrator())
    typer.echo(format_voice_result(command, result))


@app.command()
def history(
    event_type: Optional[str] = typer.Option(None, "--type", help="Only events of this type, e.g. task.completed"),
    limit: int = typer.Option(20, "--limit", "-n", help="Most recent N events"),
) -> None:
    """Show recent task events from the audit log."""
    _start("history", event_type=event_type, limit=limit)
    from taskorch.core.audit import read_events

    events = read_events(_settings().data_dir, event_type=event_type, limit=limit)
    if not events:
        typer.echo("No events recorded.")
        return
    for event in events:
        payload = event.get("payload", {})
        typer.echo(f"{event.get('ts', '')}  {event.get('type', ''):<16} {payload.get('task_id', '')}  {payload.get('title', '')}")


# ── Handler processes ────────────────────────────────────────


@app.command()
def run(
    handler_ids: Optional[List[str]] = typer.Argument(None, help="Handlers to launch in parallel"),
    arg: Optional[List[str]] = typer.Option(None, "--arg", help="Extra argument passed to every handler (repeatable)"),
    list_only: bool = typer.Option(False, "--list", help="Only show which handlers can be launched"),
) -> None:
    """Launch handler programs in parallel and wait for them."""
    _start("run", handlers=handler_ids, args=arg, list_only=list_only)
    from taskorch.core.launcher import HandlerLauncher, format_available_handlers, format_parallel_results

    settings = _settings()
    launcher = HandlerLauncher(_registry(), base_dir=settings.handlers_dir, timeout=settings.handler_timeout)
    if list_only or not handler_ids:
        typer.echo(format_available_handlers(launcher.available_handlers()))
        return
    for hid in handler_ids:
        _check_handler(hid)
    result = launcher.run_parallel([h.lower() for h in handler_ids], arg or [])
    typer.echo(format_parallel_results(result))
    if result.status != "completed":
        raise typer.Exit(code=1)


# ── Slack ────────────────────────────────────────────────────


@app.command("slack-config")
def slack_config(
    webhook: Optional[str] = typer.Option(None, "--webhook", help="Incoming webhook URL"),
    channel: Optional[str] = typer.Option(None, "--channel", help="Default channel"),
    enable: Optional[bool] = typer.Option(None, "--enable/--disable", help="Turn notifications on or off"),
    created: Optional[bool] = typer.Option(None, "--created/--no-created", help="Notify on task creation"),
    completed: Optional[bool] = typer.Option(None, "--completed/--no-completed", help="Notify on completion"),
    blocked: Optional[bool] = typer.Option(None, "--blocked/--no-blocked", help="Notify on blockers"),
    standup_toggle: Optional[bool] = typer.Option(None, "--standup/--no-standup", help="Allow standup posts"),
) -> None:
    """Show or change the stored Slack settings."""
    _start("slack-config", channel=channel, enable=enable)
    from taskorch.integrations.slack import save_slack_config

    config = save_slack_config(
        _settings().slack_config_path,
        webhook_url=webhook,
        default_channel=channel,
        enabled=enable,
        notifications={
            "task_created": created,
            "task_completed": completed,
            "task_blocked": blocked,
            "daily_standup": standup_toggle,
        },
    )
    shown = config.to_dict()
    if shown.get("webhook_url"):
        shown["webhook_url"] = shown["webhook_url"][:30] + "..."
    typer.echo(json.dumps(shown, indent=2))


@app.command("slack-test")
def slack_test() -> None:
    """Send a test message to the configured webhook."""
    _start("slack-test")
    result = _slack_notifier().test_connection()
    if result.success:
        typer.secho("✓ Slack connection works", fg=typer.colors.GREEN)
        return
    typer.secho(f"✗ {result.error}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


@app.command("slack-send")
def slack_send(
    message: str = typer.Argument(..., help="Message text"),
    channel: Optional[str] = typer.Option(None, "--channel", "-c", help="Channel (defaults to the configured one)"),
) -> None:
    """Send a custom message to Slack."""
    _start("slack-send", channel=channel)
    result = _slack_notifier().send_message(message, channel=channel)
    if result.success:
        typer.secho("✓ Message sent", fg=typer.colors.GREEN)
        return
    typer.secho(f"✗ {result.error}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


@app.command()
def version() -> None:
    from taskorch import __version__

    typer.echo(__version__)


if __name__ == "__main__":
    app()
