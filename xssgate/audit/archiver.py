"""LogArchiver — drains staged attack logs from the cache into the archive store.

Each cycle:
  1. Read the index record. Absent or unreadable → skip the cycle (non-fatal).
  2. For every listed key: read the staged value (missing → warn, skip),
     write it to the archive store, delete the staged entry. A failed write
     is logged and the entry is still deleted: loss is accepted, there is
     no retry.
  3. Delete the index record wholesale.

This is a best-effort batch drain, not a transaction. Keys appended to the
index while a cycle runs are removed with it and their entries stay in the
cache unarchived; a crash mid-cycle can likewise leave staged entries that
no index lists. Archive writes are idempotent on the key, so re-archiving
after a crash is harmless.

``run_archiver()`` is the periodic background task registered in the
FastAPI lifespan. Tests call ``LogArchiver.run_cycle()`` directly instead of
waiting on wall-clock time.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from xssgate.audit.cache import split_index
from xssgate.audit.protocol import ArchiveStore, StagingCache
from xssgate.constants import ARCHIVE_INTERVAL_SECONDS, DEFAULT_LOG_INDEX_KEY
from xssgate.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ArchiveCycleResult:
    """Outcome of one archival cycle."""

    skipped: bool = False
    """True when the index was absent or unreadable and nothing was done."""
    reason: Optional[str] = None
    """Why the cycle was skipped: 'no_index' or 'index_unreadable'."""
    archived: int = 0
    missing: int = 0
    failed: int = 0
    duration_ms: float = 0.0
    finished_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> dict:
        return {
            "skipped": self.skipped,
            "reason": self.reason,
            "archived": self.archived,
            "missing": self.missing,
            "failed": self.failed,
            "duration_ms": round(self.duration_ms, 3),
            "finished_at": self.finished_at.isoformat(),
        }


class LogArchiver:
    """Moves staged logs from a StagingCache into an ArchiveStore.

    Cycles are serialised with an asyncio.Lock so an on-demand cycle
    (``POST /admin/archive``) never interleaves with the periodic one.
    """

    def __init__(
        self,
        cache: StagingCache,
        store: ArchiveStore,
        index_key: str = DEFAULT_LOG_INDEX_KEY,
    ) -> None:
        self._cache = cache
        self._store = store
        self._index_key = index_key
        self._lock = asyncio.Lock()
        self._last_result: Optional[ArchiveCycleResult] = None
        self._cycles = 0

    @property
    def index_key(self) -> str:
        return self._index_key

    @property
    def last_result(self) -> Optional[ArchiveCycleResult]:
        return self._last_result

    @property
    def cycles(self) -> int:
        return self._cycles

    async def run_cycle(self) -> ArchiveCycleResult:
        """Run one drain. NEVER raises for cache or store failures."""
        async with self._lock:
            started = time.perf_counter()
            result = await self._drain()
            result.duration_ms = (time.perf_counter() - started) * 1000
            logger.info(
                "archive_cycle_complete",
                skipped=result.skipped,
                reason=result.reason,
                archived=result.archived,
                missing=result.missing,
                failed=result.failed,
                duration_ms=round(result.duration_ms, 3),
            )
            self._cycles += 1
            self._last_result = result
            return result

    async def _drain(self) -> ArchiveCycleResult:
        try:
            raw_index = await self._cache.get(self._index_key)
        except Exception as exc:
            logger.warning(
                "archive_index_unreadable",
                index_key=self._index_key,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return ArchiveCycleResult(skipped=True, reason="index_unreadable")

        if raw_index is None:
            logger.info("archive_no_staged_logs", index_key=self._index_key)
            return ArchiveCycleResult(skipped=True, reason="no_index")

        result = ArchiveCycleResult()
        for log_key in split_index(raw_index):
            try:
                value = await self._cache.get(log_key)
            except Exception as exc:
                logger.warning("staged_log_unreadable", log_key=log_key, error=str(exc))
                result.missing += 1
                continue

            if value is None:
                logger.warning("staged_log_missing", log_key=log_key)
                result.missing += 1
                continue

            if await self._store.write(log_key, value):
                result.archived += 1
            else:
                result.failed += 1

            try:
                await self._cache.delete(log_key)
            except Exception as exc:
                logger.warning("staged_log_delete_failed", log_key=log_key, error=str(exc))

        try:
            await self._cache.delete(self._index_key)
        except Exception as exc:
            logger.warning("archive_index_delete_failed", index_key=self._index_key, error=str(exc))

        result.finished_at = datetime.now(timezone.utc)
        return result


async def run_archiver(
    archiver: LogArchiver,
    interval_seconds: float = ARCHIVE_INTERVAL_SECONDS,
) -> None:
    """Background task: sleep ``interval_seconds``, run a cycle, repeat.

    Registered with asyncio.create_task() during lifespan startup and
    cancelled on shutdown via task.cancel(). Unexpected errors are logged
    and the loop continues with the next interval.
    """
    logger.info("archiver_started", interval_seconds=interval_seconds)
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            await archiver.run_cycle()
        except asyncio.CancelledError:
            logger.info("archiver_cancelled")
            raise
        except Exception as exc:
            logger.error(
                "archiver_cycle_error",
                error=str(exc),
                error_type=type(exc).__name__,
            )
