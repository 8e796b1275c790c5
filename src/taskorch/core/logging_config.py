"""Logging configuration for taskorch.

Log directory structure::

    <data_dir>/logs/
    ├── taskorch.log      # All Python logger output (rotating)
    └── commands.log      # One JSON line per CLI command
"""
from __future__ import annotations

import json
import logging
import logging.handlers
import os
import time
from typing import Any, Optional

_log_dir: Optional[str] = None

command_logger = logging.getLogger("taskorch._commands")


def get_log_dir() -> Optional[str]:
    return _log_dir


def setup_logging(log_dir: str, log_level: str = "warning") -> None:
    """Attach console and rotating-file handlers to the root logger.

    Call once at startup; calling again replaces the handlers.
    """
    global _log_dir
    _log_dir = log_dir
    os.makedirs(log_dir, exist_ok=True)

    level = getattr(logging, log_level.upper(), logging.WARNING)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.handlers.clear()

    fmt = logging.Formatter(
        "%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    stdout_handler = logging.StreamHandler()
    stdout_handler.setLevel(level)
    stdout_handler.setFormatter(fmt)
    root.addHandler(stdout_handler)

    file_handler = logging.handlers.RotatingFileHandler(
        os.path.join(log_dir, "taskorch.log"),
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    _setup_jsonl_logger(command_logger, os.path.join(log_dir, "commands.log"))

    logging.getLogger("taskorch").debug("Logging initialized: log_dir=%s, level=%s", log_dir, log_level)


def _setup_jsonl_logger(logger_instance: logging.Logger, path: str) -> None:
    """Configure a logger to write raw JSONL messages to a rotating file."""
    logger_instance.setLevel(logging.INFO)
    logger_instance.propagate = False
    logger_instance.handlers.clear()

    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    # message is already JSON
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger_instance.addHandler(handler)


def log_command(command: str, args: dict[str, Any] | None = None) -> None:
    """Record one CLI invocation in ``commands.log``."""
    record: dict[str, Any] = {
        "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "command": command,
    }
    if args:
        record["args"] = {k: v for k, v in args.items() if v is not None}
    command_logger.info(json.dumps(record, default=str))
