"""JSONL audit trail of container mutations."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path


class AuditLogger:
    """Appends one JSON line per adopt/create/destroy performed on the directory."""

    def __init__(self, log_path: Path | None = None) -> None:
        self.log_path = log_path
        if self.log_path is not None:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self.logger = logging.getLogger("tc.audit")

    def log(self, action: str, container_id: str, outcome: str, reason: str = "") -> dict[str, str]:
        """Record one mutation and return the written event."""
        event = {
            "timestamp": datetime.now(UTC).isoformat(),
            "action": action,
            "container_id": container_id,
            "outcome": outcome,
            "reason": reason,
        }
        line = json.dumps(event, ensure_ascii=True)
        if self.log_path is not None:
            with self.log_path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")
        self.logger.info(line)
        return event

    def read(self) -> list[dict[str, str]]:
        if self.log_path is None or not self.log_path.exists():
            return []
        with self.log_path.open("r", encoding="utf-8") as fh:
            return [json.loads(line) for line in fh if line.strip()]
