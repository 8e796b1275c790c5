"""Terminal rendering for orchestrator results (colour via typer/click)."""
from __future__ import annotations

from typing import List, Optional

import typer

from taskorch.core.classifier import Classification
from taskorch.core.handlers import HandlerRegistry
from taskorch.core.orchestrator import QueueStats, Standup
from taskorch.core.tasks import Task

_PRIORITY_BADGES = {
    "critical": ("[!!!]", typer.colors.RED, True),
    "high": ("[!!]", typer.colors.RED, False),
    "medium": ("[!]", typer.colors.YELLOW, False),
    "low": ("[·]", typer.colors.BRIGHT_BLACK, False),
}

_STATUS_ICONS = {
    "pending": ("○", typer.colors.YELLOW),
    "assigned": ("◐", typer.colors.BLUE),
    "in_progress": ("●", typer.colors.BLUE),
    "completed": ("✓", typer.colors.GREEN),
    "blocked": ("✗", typer.colors.RED),
    "cancelled": ("⊘", typer.colors.BRIGHT_BLACK),
}


def _dim(text: str) -> str:
    return typer.style(text, fg=typer.colors.BRIGHT_BLACK)


def format_priority(priority: str) -> str:
    badge, color, bold = _PRIORITY_BADGES.get(priority, ("[?]", typer.colors.BRIGHT_BLACK, False))
    return typer.style(badge, fg=color, bold=bold)


def status_icon(status: str) -> str:
    icon, color = _STATUS_ICONS.get(status, ("?", typer.colors.BRIGHT_BLACK))
    return typer.style(icon, fg=color)


def render_added(task: Task, registry: HandlerRegistry) -> str:
    lines = [
        "",
        typer.style("✓ Task added: ", fg=typer.colors.GREEN) + task.title,
        _dim("  ID: ") + task.id,
        _dim("  Assigned to: ") + typer.style(registry.display_name(task.handler), fg=typer.colors.CYAN),
        _dim("  Priority: ") + format_priority(task.priority),
        _dim("  Confidence: ") + f"{task.classification_confidence}%",
    ]
    if task.classification_reasoning:
        lines.append(_dim("  Reasoning: ") + ", ".join(task.classification_reasoning))
    if task.dependencies:
        lines.append(_dim("  Depends on: ") + ", ".join(task.dependencies))
    return "\n".join(lines) + "\n"


def render_next(task: Optional[Task], registry: HandlerRegistry, handler: Optional[str] = None) -> str:
    if task is None:
        return typer.style(f"\nNo tasks ready for {handler or 'any handler'}\n", fg=typer.colors.YELLOW)
    spec = registry.resolve(task.handler)
    lines = [
        "",
        typer.style("▶ Next task:", fg=typer.colors.BLUE),
        "  " + typer.style(task.title, bold=True),
        _dim("  ID: ") + task.id,
        _dim("  Handler: ") + typer.style(registry.display_name(task.handler), fg=typer.colors.CYAN),
    ]
    if task.description:
        lines.append(_dim("  Description: ") + task.description)
    if spec is not None and spec.command:
        lines.append(_dim("  Command: ") + typer.style(spec.command, fg=typer.colors.YELLOW))
    return "\n".join(lines) + "\n"


def render_list(tasks: List[Task], registry: HandlerRegistry) -> str:
    lines = [typer.style(f"\n📋 Task Queue ({len(tasks)} tasks)\n", fg=typer.colors.BLUE)]
    if not tasks:
        lines.append(_dim("  No tasks found.\n"))
        return "\n".join(lines)
    for task in tasks:
        lines.append(f"{status_icon(task.status)} {_dim('[' + task.id + ']')} {format_priority(task.priority)} {task.title}")
        detail = "   " + typer.style(registry.display_name(task.handler), fg=typer.colors.CYAN)
        if task.blocked_reason:
            detail += typer.style(f" (blocked: {task.blocked_reason})", fg=typer.colors.RED)
        lines.append(detail)
    return "\n".join(lines) + "\n"


def render_stats(stats: QueueStats) -> str:
    c = stats.counts
    lines = [
        typer.style("\n📊 Queue Statistics\n", fg=typer.colors.BLUE),
        _dim("  Total:       ") + str(c.get("total", 0)),
        typer.style("  Pending:     ", fg=typer.colors.YELLOW) + str(c.get("pending", 0)),
        typer.style("  In Progress: ", fg=typer.colors.BLUE) + str(c.get("in_progress", 0)),
        typer.style("  Completed:   ", fg=typer.colors.GREEN) + str(c.get("completed", 0)),
        typer.style("  Blocked:     ", fg=typer.colors.RED) + str(c.get("blocked", 0)),
        typer.style("\n📦 By Handler\n", fg=typer.colors.BLUE),
    ]
    for load in stats.by_handler:
        lines.append(_dim(f"  {load.display_name}: ") + f"{load.total} total, {load.pending} pending")
    return "\n".join(lines) + "\n"


def render_classification(result: Classification, registry: HandlerRegistry) -> str:
    lines = [
        typer.style("\n🔍 Classification Result\n", fg=typer.colors.BLUE),
        _dim("  Handler: ") + typer.style(registry.display_name(result.handler), fg=typer.colors.CYAN),
        _dim("  Confidence: ") + f"{result.confidence}%",
        _dim("  Reasoning:"),
    ]
    lines.extend(_dim("    - ") + reason for reason in result.reasoning)
    return "\n".join(lines) + "\n"


def render_standup(standup: Standup, registry: HandlerRegistry) -> str:
    def _entry(task: Task, bullet: str, color: str) -> List[str]:
        return [
            typer.style(f"   {bullet} ", fg=color) + task.title,
            _dim("     " + registry.display_name(task.handler)),
        ]

    lines = [
        typer.style(f"\n📋 Daily Standup - {standup.day.strftime('%A, %b %d')}\n", fg=typer.colors.BLUE, bold=True),
        typer.style(f"✅ Completed Yesterday ({len(standup.completed)})", fg=typer.colors.GREEN, bold=True),
    ]
    if not standup.completed:
        lines.append(_dim("   No tasks completed"))
    for task in standup.completed[:5]:
        lines.extend(_entry(task, "•", typer.colors.GREEN))
    if len(standup.completed) > 5:
        lines.append(_dim(f"   ... and {len(standup.completed) - 5} more"))

    lines.append("")
    lines.append(typer.style(f"🔄 In Progress ({len(standup.in_progress)})", fg=typer.colors.BLUE, bold=True))
    if not standup.in_progress:
        lines.append(_dim("   No tasks in progress"))
    for task in standup.in_progress:
        lines.extend(_entry(task, "•", typer.colors.BLUE))

    if standup.blocked:
        lines.append("")
        lines.append(typer.style(f"🚫 Blocked ({len(standup.blocked)})", fg=typer.colors.RED, bold=True))
        for task in standup.blocked:
            lines.append(typer.style("   • ", fg=typer.colors.RED) + task.title)
            if task.blocked_reason:
                lines.append(_dim(f"     Reason: {task.blocked_reason}"))

    lines.append("")
    lines.append(typer.style(f"📌 Up Next - High Priority ({len(standup.up_next)})", fg=typer.colors.YELLOW, bold=True))
    if not standup.up_next:
        lines.append(_dim("   No high priority tasks pending"))
    for task in standup.up_next[:3]:
        lines.extend(_entry(task, "🔴" if task.priority == "critical" else "🟡", typer.colors.YELLOW))
    return "\n".join(lines) + "\n"


def render_handlers(registry: HandlerRegistry) -> str:
    lines = [typer.style("\n🤖 Handlers\n", fg=typer.colors.BLUE)]
    for h in registry:
        state = typer.style("available", fg=typer.colors.GREEN) if h.available else typer.style("unavailable", fg=typer.colors.RED)
        lines.append(f"  {typer.style(h.display_name, fg=typer.colors.CYAN)} ({h.id}) - {state}")
        if h.description:
            lines.append(_dim(f"    {h.description}"))
        lines.append(_dim("    keywords: ") + ", ".join(h.keywords))
    return "\n".join(lines) + "\n"
