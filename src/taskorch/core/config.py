from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class Settings:
    log_level: str
    log_dir: str
    data_dir: str
    registry_file: Optional[str]
    handlers_dir: Optional[str]
    handler_timeout: int
    slack_webhook_url: Optional[str]

    @property
    def queue_path(self) -> str:
        return os.path.join(self.data_dir, "queue.json")

    @property
    def slack_config_path(self) -> str:
        return os.path.join(self.data_dir, "slack-config.json")

    @staticmethod
    def from_env() -> "Settings":
        data_dir = os.getenv("TASKORCH_DATA_DIR") or os.path.join(".", "data")
        return Settings(
            log_level=os.getenv("TASKORCH_LOG_LEVEL", "warning"),
            log_dir=os.getenv("TASKORCH_LOG_DIR") or os.path.join(data_dir, "logs"),
            data_dir=data_dir,
            registry_file=os.getenv("TASKORCH_REGISTRY_FILE") or None,
            handlers_dir=os.getenv("TASKORCH_HANDLERS_DIR") or None,
            handler_timeout=int(os.getenv("TASKORCH_HANDLER_TIMEOUT", "300")),
            slack_webhook_url=os.getenv("SLACK_WEBHOOK_URL") or None,
        )
