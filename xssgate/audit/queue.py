"""Bounded, non-blocking attack-log queue and its logging worker.

The queue decouples detection (must return fast) from logging (may be slow):

  - ``enqueue()`` is synchronous and uses ``put_nowait``. On a full queue
    the NEW entry is dropped and a warning is logged. It never suspends the
    calling request task and never raises to it, so a flood of detected
    attacks cannot stall legitimate traffic through a full log pipeline.
  - ``run_worker()`` is the single long-lived consumer. It handles one entry
    at a time in FIFO order and stages it in the cache for archival.
    Delivery is at-most-once: dropped or failed entries are not redelivered.
    There is no timeout around staging, so a stalled cache write stalls
    every later entry behind it.
"""

from __future__ import annotations

import asyncio

from xssgate.audit.models import LogEntry
from xssgate.audit.protocol import StagingCache
from xssgate.constants import DEFAULT_LOG_INDEX_KEY, LOG_QUEUE_MAXSIZE
from xssgate.utils.logger import get_logger

logger = get_logger(__name__)


class AttackLogQueue:
    """Drop-newest bounded queue of ``LogEntry`` objects.

    Args:
        maxsize: Capacity; entries beyond it are dropped (default 100).

    Usage::

        log_queue = AttackLogQueue()
        worker = asyncio.create_task(log_queue.run_worker(cache))
        log_queue.enqueue(LogEntry.for_detection("/search", "q", "<script>"))
        ...
        worker.cancel()
    """

    def __init__(self, maxsize: int = LOG_QUEUE_MAXSIZE) -> None:
        if maxsize < 1:
            raise ValueError(f"maxsize must be >= 1, got {maxsize}")
        self._maxsize = maxsize
        self._queue: asyncio.Queue[LogEntry] = asyncio.Queue(maxsize=maxsize)
        self._dropped_count = 0
        self._processed_count = 0
        self._failed_count = 0

    # ── Introspection ─────────────────────────────────────────────────────────

    @property
    def maxsize(self) -> int:
        return self._maxsize

    @property
    def depth(self) -> int:
        return self._queue.qsize()

    @property
    def dropped_count(self) -> int:
        return self._dropped_count

    @property
    def processed_count(self) -> int:
        return self._processed_count

    @property
    def failed_count(self) -> int:
        return self._failed_count

    # ── Producer side ─────────────────────────────────────────────────────────

    def enqueue(self, entry: LogEntry) -> bool:
        """Accept ``entry`` if there is room. Returns False when dropped."""
        try:
            self._queue.put_nowait(entry)
        except asyncio.QueueFull:
            self._dropped_count += 1
            logger.warning(
                "log_queue_full",
                event_id=entry.event_id,
                log_text=entry.text,
                dropped_count=self._dropped_count,
                queue_maxsize=self._maxsize,
            )
            return False
        return True

    # ── Consumer side ─────────────────────────────────────────────────────────

    def drain_nowait(self) -> list[LogEntry]:
        """Remove and return every queued entry in FIFO order without waiting."""
        drained: list[LogEntry] = []
        while True:
            try:
                drained.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                return drained
            self._queue.task_done()

    async def join(self) -> None:
        """Wait until every enqueued entry has been handled by the worker."""
        await self._queue.join()

    async def run_worker(
        self,
        cache: StagingCache,
        index_key: str = DEFAULT_LOG_INDEX_KEY,
    ) -> None:
        """Consume entries forever; cancelled via ``task.cancel()`` on shutdown."""
        logger.info("log_worker_started", queue_maxsize=self._maxsize, index_key=index_key)
        try:
            while True:
                entry = await self._queue.get()
                try:
                    await self._stage(entry, cache, index_key)
                finally:
                    self._queue.task_done()
        except asyncio.CancelledError:
            logger.info("log_worker_cancelled", pending=self.depth)
            raise

    async def _stage(self, entry: LogEntry, cache: StagingCache, index_key: str) -> None:
        logger.info("attack_log_processed", event_id=entry.event_id, log_text=entry.text)
        try:
            await cache.set(entry.log_key, entry.text)
            await cache.append_to_index(index_key, entry.log_key)
        except Exception as exc:
            self._failed_count += 1
            logger.error(
                "attack_log_staging_failed",
                event_id=entry.event_id,
                log_key=entry.log_key,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return
        self._processed_count += 1
