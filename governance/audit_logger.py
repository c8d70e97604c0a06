"""Structured JSONL audit logger for dependency changes."""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import UTC, datetime
from pathlib import Path


class AuditLogger:
    """Writes one JSON line per dependency mutation attempt."""

    def __init__(self, log_path: Path) -> None:
        self.log_path = log_path
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self.logger = logging.getLogger("tg.audit")

    @staticmethod
    def _hash_dependencies(dependency_ids: list[str]) -> str:
        payload = json.dumps(sorted(dependency_ids)).encode("utf-8")
        return hashlib.sha256(payload).hexdigest()

    def log(
        self,
        action: str,
        task_id: str,
        dependency_ids: list[str],
        outcome: str,
        allowed: bool,
        reason: str = "",
        project_id: str | None = None,
    ) -> None:
        """Append one JSONL audit event."""
        event = {
            "timestamp": datetime.now(UTC).isoformat(),
            "action": action,
            "project_id": project_id,
            "task_id": task_id,
            "dependencies": list(dependency_ids),
            "dependencies_hash": self._hash_dependencies(list(dependency_ids)),
            "outcome": outcome,
            "allowed": allowed,
            "reason": reason,
        }
        with self.log_path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(event, ensure_ascii=True) + "\n")
        self.logger.info(json.dumps(event, ensure_ascii=True))

    def read_events(self) -> list[dict[str, object]]:
        """Return all events written so far."""
        if not self.log_path.exists():
            return []
        with self.log_path.open("r", encoding="utf-8") as fh:
            return [json.loads(line) for line in fh if line.strip()]
