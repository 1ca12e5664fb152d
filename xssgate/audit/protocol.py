"""StagingCache and ArchiveStore protocols.

These are the two external collaborator contracts the audit pipeline
consumes:

  - ``StagingCache``: fast key-value buffer for attack logs awaiting
    archival. The logging worker writes to it; the archiver drains it.
  - ``ArchiveStore``: durable long-term log storage written by the archiver.

Layout:
    models.py         — LogEntry + log text helpers
    protocol.py       — StagingCache / ArchiveStore protocols + NullArchiveStore
    cache.py          — InMemoryStagingCache, RedisStagingCache
    sqlite_backend.py — LocalSQLiteArchiveStore (aiosqlite)
    queue.py          — AttackLogQueue + logging worker
    archiver.py       — LogArchiver + periodic run_archiver task
    factory.py        — backend selection from config
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

from xssgate.utils.logger import get_logger

logger = get_logger(__name__)


# ─── Archived record ─────────────────────────────────────────────────────────


@dataclass
class ArchivedLog:
    """A log record as read back from the durable store."""

    log_key: str
    value: str
    archived_at: datetime


# ─── StagingCache Protocol ───────────────────────────────────────────────────


@runtime_checkable
class StagingCache(Protocol):
    """Fast key-value staging area for attack logs.

    ``get`` returns None for a missing key. Implementations MAY raise on
    transport failures; callers (worker, archiver) log and skip.

    Values written by ``set`` may expire; an expired key reads as missing.

    ``append_to_index`` appends ``key`` to the comma-separated index record
    under ``index_key``, creating it when absent. It must be atomic with
    respect to other appenders.
    """

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def append_to_index(self, index_key: str, key: str) -> None:
        ...

    async def health_check(self) -> bool:
        """Returns True if the cache is reachable. Must not raise."""
        ...

    async def close(self) -> None:
        ...


# ─── ArchiveStore Protocol ───────────────────────────────────────────────────


@runtime_checkable
class ArchiveStore(Protocol):
    """Durable store for archived attack logs.

    ``write()`` MUST NEVER raise: failures are logged inside the store and
    reported through the False return. The archiver does not retry.
    """

    async def write(self, key: str, value: str) -> bool:
        ...

    async def count(self) -> int:
        ...

    async def fetch_recent(self, limit: int = 50) -> list[ArchivedLog]:
        """Newest first."""
        ...

    async def health_check(self) -> bool:
        ...

    async def close(self) -> None:
        ...


# ─── NullArchiveStore ────────────────────────────────────────────────────────


class NullArchiveStore:
    """No-op ArchiveStore: accepts and discards every write.

    Selected when ``archive.db_path`` is empty, so archival still drains the
    cache but keeps nothing. Also used as a test utility.
    """

    async def write(self, key: str, value: str) -> bool:
        logger.debug("null_archive_write", log_key=key)
        return True

    async def count(self) -> int:
        return 0

    async def fetch_recent(self, limit: int = 50) -> list[ArchivedLog]:
        return []

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        logger.debug("null_archive_closed")


assert isinstance(NullArchiveStore(), ArchiveStore), (
    "NullArchiveStore does not satisfy ArchiveStore protocol — implementation error"
)
