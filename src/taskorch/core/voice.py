"""Spoken-style command parsing.

Maps short phrases ("add fix the login bug", "what's next", "status")
onto orchestrator verbs. Speech-to-text happens elsewhere; this module
only sees text. Patterns are tried in a fixed order and the first match
wins.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import re
from typing import Dict, List, Optional, Pattern, Tuple

from taskorch.core.orchestrator import Orchestrator
from taskorch.core.tasks import TaskInput

_I = re.IGNORECASE

ADD_PATTERNS = [
    re.compile(r"^(?:add|create|new)\s+(?:a\s+)?(?:task\s+)?(?:to\s+)?(.+)$", _I),
    re.compile(r"^(?:i\s+)?(?:need|want)\s+(?:to\s+)?(.+)$", _I),
    re.compile(r"^(?:remind\s+me\s+to|schedule)\s+(.+)$", _I),
    re.compile(r"^(?:put|add)\s+(.+)\s+(?:on\s+)?(?:the\s+)?(?:to-?do|list|queue)$", _I),
]

LIST_PATTERNS = [
    re.compile(r"^(?:show|list|what(?:'s| are| is))\s+(?:my\s+)?(?:all\s+)?(?:tasks?|queue|to-?do)", _I),
    re.compile(r"^what(?:'s| is)\s+(?:on\s+)?(?:my\s+)?(?:the\s+)?(?:list|queue|agenda)", _I),
    re.compile(r"^(?:get|fetch)\s+(?:all\s+)?tasks?", _I),
]

NEXT_PATTERNS = [
    re.compile(r"^(?:what(?:'s| is)|get)\s+(?:the\s+)?next\s*(?:task|item)?$", _I),
    re.compile(r"^next\s*(?:task|item|one)?$", _I),
    re.compile(r"^what\s+should\s+i\s+(?:do|work on)\s*(?:next)?$", _I),
]

COMPLETE_PATTERNS = [
    re.compile(r"^(?:complete|finish|done|mark(?:\s+as)?\s+(?:done|complete))\s+(?:task\s+)?(.+)$", _I),
    re.compile(r"^i(?:'ve|\s+have)\s+(?:finished|completed|done)\s+(.+)$", _I),
    re.compile(r"^(.+)\s+is\s+(?:done|complete|finished)$", _I),
]

STATUS_PATTERNS = [
    re.compile(r"^(?:give\s+me\s+)?(?:a\s+)?status(?:\s+update)?$", _I),
    re.compile(r"^(?:show|get)\s+(?:queue\s+)?stats?(?:istics)?$", _I),
    re.compile(r"^how(?:'s| is)\s+(?:the\s+)?(?:progress|queue|everything)(?:\s+going)?$", _I),
]

HELP_PATTERNS = [
    re.compile(r"^(?:help|commands?|what\s+can\s+(?:you|i)\s+(?:do|say))$", _I),
    re.compile(r"^(?:show|list)\s+(?:available\s+)?commands?$", _I),
]

# (type, patterns, confidence, parameter captured by group 1)
_GRAMMAR: List[Tuple[str, List[Pattern[str]], float, Optional[str]]] = [
    ("add", ADD_PATTERNS, 0.9, "title"),
    ("list", LIST_PATTERNS, 0.9, None),
    ("next", NEXT_PATTERNS, 0.9, None),
    ("complete", COMPLETE_PATTERNS, 0.8, "task_id"),
    ("status", STATUS_PATTERNS, 0.85, None),
    ("help", HELP_PATTERNS, 0.95, None),
]

LIST_LIMIT = 5

HELP_TEXT = "\n".join([
    "🎤 Voice Commands:",
    "",
    '  "Add [task description]" - Create a new task',
    '  "Show my tasks" - List pending tasks',
    '  "What\'s next?" - Get the next task',
    '  "Complete [task]" - Mark task as done',
    '  "Status" - Show queue statistics',
    "",
    "Tips:",
    '  - Say "urgent" or "high priority" to set priority',
    "  - Tasks are auto-assigned to the right handler",
])


@dataclass
class VoiceCommand:
    type: str               # add | list | next | complete | status | help | unknown
    parameters: Dict[str, str] = field(default_factory=dict)
    confidence: float = 0.0
    original_text: str = ""


def parse_voice_command(text: str) -> VoiceCommand:
    cleaned = text.strip().lower()
    # a trailing question mark should not defeat the anchored patterns
    cleaned = cleaned.rstrip("?!. ")

    for cmd_type, patterns, confidence, param in _GRAMMAR:
        for pattern in patterns:
            match = pattern.match(cleaned)
            if not match:
                continue
            params = {param: match.group(1).strip()} if param else {}
            return VoiceCommand(type=cmd_type, parameters=params, confidence=confidence, original_text=text)

    return VoiceCommand(type="unknown", parameters={"text": cleaned}, confidence=0.3, original_text=text)


def extract_priority(text: str) -> Optional[str]:
    lower = text.lower()
    # "not urgent" must be checked before "urgent"
    if "low priority" in lower or "whenever" in lower or "not urgent" in lower:
        return "low"
    if "urgent" in lower or "asap" in lower or "critical" in lower:
        return "critical"
    if "high priority" in lower or "important" in lower:
        return "high"
    return None


def execute_voice_command(command: VoiceCommand, orchestrator: Orchestrator) -> str:
    """Run a parsed command and return the text to show (or speak) back."""
    if command.type == "add":
        title = command.parameters["title"]
        task = orchestrator.add(TaskInput(title=title, priority=extract_priority(title) or "medium"))
        return (
            f'✓ Added task: "{task.title}" [{task.id}]\n'
            f"  Assigned to: {task.handler_id}\n"
            f"  Priority: {task.priority}"
        )

    if command.type == "list":
        tasks = [t for t in orchestrator.queue.all() if t.status in ("pending", "in_progress")]
        if not tasks:
            return "No pending tasks in the queue."
        lines = [f"📋 You have {len(tasks)} task(s):\n"]
        for task in tasks[:LIST_LIMIT]:
            icon = "🔄" if task.status == "in_progress" else "○"
            lines.append(f"  {icon} {task.title} ({task.handler_id})")
        if len(tasks) > LIST_LIMIT:
            lines.append(f"  ... and {len(tasks) - LIST_LIMIT} more")
        return "\n".join(lines)

    if command.type == "next":
        task = orchestrator.next()
        if task is None:
            return "No tasks available. Your queue is empty!"
        return f'▶ Next task:\n  "{task.title}"\n  Handler: {task.handler_id}\n  ID: {task.id}'

    if command.type == "complete":
        task_id = command.parameters["task_id"]
        task = orchestrator.complete(task_id)
        if task is None:
            return f"✗ Task not found: {task_id}"
        return f'✓ Completed: "{task.title}"'

    if command.type == "status":
        counts = orchestrator.queue.stats()
        return "\n".join([
            "📊 Queue Status:",
            f"  Pending: {counts.get('pending', 0)}",
            f"  In Progress: {counts.get('in_progress', 0)}",
            f"  Completed: {counts.get('completed', 0)}",
            f"  Blocked: {counts.get('blocked', 0)}",
            f"  Total: {counts.get('total', 0)}",
        ])

    if command.type == "help":
        return HELP_TEXT

    return f'🤔 I didn\'t understand: "{command.original_text}"\n   Try "help" for available commands.'


def format_voice_result(command: VoiceCommand, result: str, width: int = 64) -> str:
    inner = width - 2
    rule = "═" * (inner + 1)
    lines = [
        f"╔{rule}╗",
        "║" + "VOICE COMMAND RESULT".center(inner + 1) + "║",
        f"╠{rule}╣",
        f'║ Input: "{command.original_text[:45]}"'.ljust(width) + "║",
        f"║ Type: {command.type:<15} Confidence: {command.confidence * 100:.0f}%".ljust(width) + "║",
        f"╠{rule}╣",
    ]
    for line in result.split("\n"):
        lines.append(f"║ {line}".ljust(width) + "║")
    lines.append(f"╚{rule}╝")
    return "\n".join(lines)
