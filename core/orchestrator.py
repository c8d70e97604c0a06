"""Top-level application wiring."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from core.policy_runtime import configure_logging, ensure_runtime_dirs, load_effective_config
from governance.audit_logger import AuditLogger
from storage.sql_store import SQLStore
from storage.task_store import TaskStore


@dataclass
class RuntimeBundle:
    """Holds initialized runtime components."""

    config: dict[str, Any]
    paths: dict[str, Path]
    store: TaskStore
    audit_logger: AuditLogger

    @property
    def closure_threshold(self) -> int:
        return int(self.config.get("validator", {}).get("closure_threshold", 200))


class Orchestrator:
    """Creates and wires runtime components for CLI use."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = (root or Path.cwd()).resolve()

    def build(self) -> RuntimeBundle:
        config = load_effective_config(self.root)
        configure_logging(config)
        paths = ensure_runtime_dirs(self.root, config)

        sql_store = SQLStore.from_config(paths["db_path"], config.get("storage", {}))
        sql_store.create_all()
        audit_logger = AuditLogger(paths["audit_log_path"])
        store = TaskStore(sql_store=sql_store, audit_logger=audit_logger)

        return RuntimeBundle(
            config=config,
            paths=paths,
            store=store,
            audit_logger=audit_logger,
        )
