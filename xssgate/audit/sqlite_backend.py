"""LocalSQLiteArchiveStore — aiosqlite-based durable store for attack logs.

Features:
  - WAL mode: PRAGMA journal_mode=WAL
  - Schema version guard: PRAGMA user_version=1, RuntimeError on mismatch
  - Long-lived connection: opened in initialize(), closed in close()
  - Idempotent writes: INSERT OR IGNORE on log_key UNIQUE constraint, so a
    key re-archived after a crash mid-cycle is stored once
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Optional

import aiosqlite

from xssgate.audit.protocol import ArchivedLog
from xssgate.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Schema DDL ───────────────────────────────────────────────────────────────

_CREATE_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS archived_logs (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    log_key      TEXT NOT NULL UNIQUE,
    value        TEXT NOT NULL,
    archived_at  TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_archived_logs_archived_at
    ON archived_logs(archived_at DESC);
"""

_SCHEMA_VERSION = 1


class LocalSQLiteArchiveStore:
    """Async SQLite archive store using aiosqlite exclusively.

    Usage:
        store = LocalSQLiteArchiveStore("~/.xssgate/archive.db")
        await store.initialize()   # raises RuntimeError on schema version mismatch
        ok = await store.write("log-01J...", "Path:/search Param:q Value:<script>")
        await store.close()
    """

    def __init__(self, db_path: str = "~/.xssgate/archive.db") -> None:
        self._db_path: str = os.path.expanduser(db_path)
        self._db: Optional[aiosqlite.Connection] = None

    @property
    def db_path(self) -> str:
        return self._db_path

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Open the connection, enable WAL mode, and create/verify the schema.

        Raises:
            RuntimeError: If PRAGMA user_version is neither 0 nor 1.
        """
        parent_dir = os.path.dirname(self._db_path)
        if parent_dir:
            os.makedirs(parent_dir, exist_ok=True)

        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA journal_mode=WAL;")

        cursor = await self._db.execute("PRAGMA user_version;")
        row = await cursor.fetchone()
        current_version: int = row[0] if row else 0

        if current_version == 0:
            await self._db.executescript(_CREATE_SCHEMA_SQL)
            await self._db.execute(f"PRAGMA user_version = {_SCHEMA_VERSION};")
            await self._db.commit()
            logger.info(
                "archive_db_schema_created",
                db_path=self._db_path,
                schema_version=_SCHEMA_VERSION,
            )
        elif current_version == _SCHEMA_VERSION:
            logger.info(
                "archive_db_schema_ok",
                db_path=self._db_path,
                schema_version=current_version,
            )
        else:
            await self._db.close()
            self._db = None
            raise RuntimeError(
                f"Unsupported archive database schema version: {current_version}. "
                f"Move or delete {self._db_path} to start a fresh archive."
            )

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
            logger.debug("archive_db_closed", db_path=self._db_path)

    # ── ArchiveStore Protocol Methods ─────────────────────────────────────────

    async def write(self, key: str, value: str) -> bool:
        """Persist one staged log. Returns False on failure; NEVER raises."""
        try:
            assert self._db is not None, "Database not initialized — call initialize() first"
            await self._db.execute(
                "INSERT OR IGNORE INTO archived_logs (log_key, value, archived_at) VALUES (?,?,?)",
                (key, value, datetime.now(timezone.utc).isoformat()),
            )
            await self._db.commit()
            return True
        except Exception as exc:
            logger.error(
                "archive_write_failed",
                log_key=key,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return False

    async def count(self) -> int:
        assert self._db is not None, "Database not initialized"
        cursor = await self._db.execute("SELECT COUNT(*) FROM archived_logs")
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def fetch_recent(self, limit: int = 50) -> list[ArchivedLog]:
        assert self._db is not None, "Database not initialized"
        cursor = await self._db.execute(
            "SELECT log_key, value, archived_at FROM archived_logs ORDER BY id DESC LIMIT ?",
            (limit,),
        )
        rows = await cursor.fetchall()
        return [
            ArchivedLog(
                log_key=row["log_key"],
                value=row["value"],
                archived_at=datetime.fromisoformat(row["archived_at"]),
            )
            for row in rows
        ]

    async def health_check(self) -> bool:
        try:
            assert self._db is not None
            await self._db.execute("SELECT 1")
            return True
        except Exception:
            return False
