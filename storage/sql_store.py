"""SQLite engine setup for the task database."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from storage.schemas import Base

logger = logging.getLogger("tg.sql_store")

JOURNAL_MODES = ("DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF")


class SQLStore:
    """One SQLite file shared by every CLI process that points at it.

    Each new connection gets ``busy_timeout`` and ``journal_mode`` applied, so
    two processes editing the same project wait on the file lock instead of
    failing immediately. Whoever then commits second still loses the
    ``graph_version`` compare-and-swap in ``TaskStore``.
    """

    def __init__(
        self,
        db_path: Path,
        busy_timeout_ms: int = 5000,
        journal_mode: str = "WAL",
        echo: bool = False,
    ) -> None:
        journal_mode = str(journal_mode).upper()
        if journal_mode not in JOURNAL_MODES:
            raise ValueError(f"Unsupported SQLite journal mode: {journal_mode}")
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.busy_timeout_ms = int(busy_timeout_ms)
        self.journal_mode = journal_mode
        self.engine = create_engine(f"sqlite+pysqlite:///{self.db_path}", echo=echo)
        event.listen(self.engine, "connect", self._on_connect)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    @classmethod
    def from_config(cls, db_path: Path, storage_cfg: dict[str, Any]) -> SQLStore:
        return cls(
            db_path,
            busy_timeout_ms=storage_cfg.get("busy_timeout_ms", 5000),
            journal_mode=storage_cfg.get("journal_mode", "WAL"),
            echo=bool(storage_cfg.get("echo", False)),
        )

    def _on_connect(self, dbapi_connection: Any, _record: Any) -> None:
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            cursor.execute(f"PRAGMA journal_mode = {self.journal_mode}")
        finally:
            cursor.close()

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)
        logger.debug("schema ready at %s (journal %s)", self.db_path, self.journal_mode)

    def dispose(self) -> None:
        """Close pooled connections, e.g. before the database file is removed."""
        self.engine.dispose()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """One unit of work: committed when the block exits cleanly.

        Any exception, including a rejected dependency edit raised halfway
        through, rolls the whole unit back before it propagates.
        """
        sess = self._session_factory()
        try:
            yield sess
            sess.commit()
        except Exception:
            sess.rollback()
            raise
        finally:
            sess.close()
