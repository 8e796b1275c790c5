"""Parallel handler launcher.

Runs the external program behind each requested handler at the same
time, one thread per handler. Each handler lives in
``<base_dir>/<handler>-agent/`` and is started with the registry
``command`` plus any extra arguments. A process that outlives the
timeout is killed and reported as failed.

Nothing here touches the task queue; callers decide what to do with the
results (usually ``complete`` or ``block``).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
import os
import shlex
import subprocess
import threading
from typing import List, Optional, Sequence
import uuid

from taskorch.core.handlers import Handler, HandlerRegistry

logger = logging.getLogger("taskorch.launcher")

DEFAULT_TIMEOUT = 300
OUTPUT_LIMIT = 20000


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class HandlerRun:
    handler_id: str
    command: str = ""
    args: List[str] = field(default_factory=list)
    status: str = "pending"     # pending | running | completed | failed
    output: str = ""
    exit_code: Optional[int] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at is None or self.ended_at is None:
            return None
        return (self.ended_at - self.started_at).total_seconds()


@dataclass
class ParallelRun:
    run_id: str
    runs: List[HandlerRun]
    started_at: datetime
    ended_at: Optional[datetime] = None
    status: str = "running"     # running | completed | partial | failed


class HandlerLauncher:
    def __init__(
        self,
        registry: HandlerRegistry,
        base_dir: Optional[str] = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        self.registry = registry
        self.base_dir = base_dir or os.path.dirname(os.getcwd())
        self.timeout = timeout

    def handler_dir(self, handler_id: str) -> str:
        return os.path.join(self.base_dir, f"{handler_id}-agent")

    def available_handlers(self) -> List[Handler]:
        """Handlers with a launch command and an existing working directory."""
        return [
            h for h in self.registry
            if h.available and h.command and os.path.isdir(self.handler_dir(h.id))
        ]

    def run_handler(self, handler_id: str, args: Sequence[str] = ()) -> HandlerRun:
        run = HandlerRun(handler_id=handler_id, args=list(args))
        handler = self.registry.get(handler_id)
        if handler is None or not handler.command:
            run.status = "failed"
            run.output = f"No command configured for handler '{handler_id}'"
            return run
        cwd = self.handler_dir(handler.id)
        if not os.path.isdir(cwd):
            run.status = "failed"
            run.output = f"Handler directory not found: {cwd}"
            return run

        argv = shlex.split(handler.command) + list(args)
        run.command = " ".join(argv)
        run.status = "running"
        run.started_at = _now()
        logger.info("Launching %s (timeout=%ss): %s", handler.id, self.timeout, run.command[:200])

        try:
            result = subprocess.run(
                argv,
                cwd=cwd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            run.status = "failed"
            partial = exc.stdout or ""
            if isinstance(partial, bytes):
                partial = partial.decode("utf-8", errors="replace")
            run.output = (partial + f"\nTimed out after {self.timeout}s and was killed.").strip()
            logger.warning("Handler %s timed out after %ss", handler.id, self.timeout)
        except OSError as exc:
            run.status = "failed"
            run.output = f"Failed to start: {exc}"
            logger.warning("Handler %s failed to start: %s", handler.id, exc)
        else:
            run.exit_code = result.returncode
            run.output = ((result.stdout or "") + (result.stderr or ""))[-OUTPUT_LIMIT:]
            run.status = "completed" if result.returncode == 0 else "failed"
            if result.returncode != 0:
                logger.warning("Handler %s exited with %d", handler.id, result.returncode)
        run.ended_at = _now()
        return run

    def run_parallel(self, handler_ids: Sequence[str], args: Sequence[str] = ()) -> ParallelRun:
        runs: List[Optional[HandlerRun]] = [None] * len(handler_ids)

        def _target(index: int, handler_id: str) -> None:
            runs[index] = self.run_handler(handler_id, args)

        started = _now()
        threads = [
            threading.Thread(target=_target, args=(i, hid), daemon=True, name=f"handler-{hid}")
            for i, hid in enumerate(handler_ids)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        finished = [r for r in runs if r is not None]
        parallel = ParallelRun(
            run_id=uuid.uuid4().hex[:8],
            runs=finished,
            started_at=started,
            ended_at=_now(),
        )
        ok = sum(1 for r in finished if r.status == "completed")
        if finished and ok == len(finished):
            parallel.status = "completed"
        elif ok:
            parallel.status = "partial"
        else:
            parallel.status = "failed"
        logger.info("Parallel run %s: %s (%d/%d ok)", parallel.run_id, parallel.status, ok, len(finished))
        return parallel


def format_parallel_results(parallel: ParallelRun) -> str:
    lines = [f"Parallel run {parallel.run_id}: {parallel.status.upper()}"]
    for run in parallel.runs:
        icon = "✓" if run.status == "completed" else "✗"
        duration = f"{run.duration_seconds:.1f}s" if run.duration_seconds is not None else "-"
        lines.append(f"  {icon} {run.handler_id} ({duration}, exit={run.exit_code})")
        tail = run.output.strip().splitlines()[-3:]
        for line in tail:
            lines.append(f"      {line[:120]}")
    return "\n".join(lines)


def format_available_handlers(handlers: Sequence[Handler]) -> str:
    if not handlers:
        return "No runnable handlers found."
    lines = ["Runnable handlers:"]
    for h in handlers:
        lines.append(f"  • {h.display_name} ({h.id}): {h.command}")
    return "\n".join(lines)
