"""StagingCache implementations: in-process dict and Redis.

RedisStagingCache is the production staging area: every app process stages
into the same Redis, and any one archiver drains it. InMemoryStagingCache is
selected when no Redis URL is configured; staged logs then live only as long
as the process.

Both expire staged values after a configured TTL (see
``ArchiveConfig.staged_ttl_seconds``). The index record itself never expires.

Index record format: comma-separated staged keys in append order, e.g.
``log-01J...A,log-01J...B``. Readers must ignore empty fragments (see
``RedisStagingCache.append_to_index``).
"""

from __future__ import annotations

import math
import time
from typing import Callable, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from xssgate.utils.logger import get_logger

logger = get_logger(__name__)

INDEX_SEPARATOR = ","


def split_index(raw: str) -> list[str]:
    """Split an index record into keys, dropping empty fragments."""
    return [key.strip() for key in raw.split(INDEX_SEPARATOR) if key.strip()]


# ─── In-process cache ────────────────────────────────────────────────────────


class InMemoryStagingCache:
    """Dict-backed StagingCache for single-process deployments and tests.

    All access happens on the event loop thread and no method awaits between
    read and write, so index appends need no lock.

    Values written with ``set()`` expire ``ttl_seconds`` after the write
    (never when ``ttl_seconds`` is None). Expired entries read as absent and
    are purged on the next write. Index records written through
    ``append_to_index()`` do not expire.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._data: dict[str, str] = {}
        self._expires_at: dict[str, float] = {}
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    @property
    def ttl_seconds(self) -> Optional[float]:
        return self._ttl_seconds

    async def get(self, key: str) -> Optional[str]:
        expires_at = self._expires_at.get(key)
        if expires_at is not None and expires_at <= self._clock():
            self._evict(key)
            return None
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.purge_expired()
        self._data[key] = value
        if self._ttl_seconds is None:
            self._expires_at.pop(key, None)
        else:
            self._expires_at[key] = self._clock() + self._ttl_seconds

    async def delete(self, key: str) -> None:
        self._evict(key)

    async def append_to_index(self, index_key: str, key: str) -> None:
        current = self._data.get(index_key)
        self._data[index_key] = key if not current else f"{current}{INDEX_SEPARATOR}{key}"

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        self._data.clear()
        self._expires_at.clear()

    def purge_expired(self) -> int:
        """Drop every expired entry; returns how many were dropped."""
        now = self._clock()
        expired = [key for key, at in self._expires_at.items() if at <= now]
        for key in expired:
            self._evict(key)
        if expired:
            logger.debug("staged_logs_expired", count=len(expired))
        return len(expired)

    def _evict(self, key: str) -> None:
        self._data.pop(key, None)
        self._expires_at.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)


# ─── Redis cache ─────────────────────────────────────────────────────────────


class RedisStagingCache:
    """StagingCache backed by ``redis.asyncio``.

    Transport errors from get/set/delete/append propagate as
    ``redis.exceptions.RedisError``; the worker and archiver log and skip.

    With ``ttl_seconds`` set, staged values are written with ``EX`` (rounded
    up to whole seconds) so Redis reclaims entries no archive cycle reached.

    Usage:
        cache = RedisStagingCache.from_url("redis://localhost:6379/0")
        await cache.set("log-01J...", "Path:/search Param:q Value:<script>")
        await cache.append_to_index("log-index", "log-01J...")
        await cache.close()
    """

    def __init__(self, client: Redis, ttl_seconds: Optional[float] = None) -> None:
        self._client = client
        self._expire = math.ceil(ttl_seconds) if ttl_seconds is not None else None

    @property
    def ttl_seconds(self) -> Optional[int]:
        return self._expire

    @classmethod
    def from_url(cls, url: str, ttl_seconds: Optional[float] = None) -> "RedisStagingCache":
        client = Redis.from_url(
            url,
            decode_responses=True,
            socket_keepalive=True,
            socket_timeout=2.0,
            socket_connect_timeout=2.0,
            health_check_interval=30,
        )
        return cls(client, ttl_seconds=ttl_seconds)

    async def get(self, key: str) -> Optional[str]:
        return await self._client.get(key)

    async def set(self, key: str, value: str) -> None:
        await self._client.set(key, value, ex=self._expire)

    async def delete(self, key: str) -> None:
        await self._client.delete(key)

    async def append_to_index(self, index_key: str, key: str) -> None:
        # SETNX creates the index with the first key; otherwise APPEND adds
        # ",key". Both commands are atomic in Redis. If the archiver deletes
        # the index between the two calls, APPEND recreates it as ",key",
        # which split_index() tolerates.
        created = await self._client.setnx(index_key, key)
        if not created:
            await self._client.append(index_key, f"{INDEX_SEPARATOR}{key}")

    async def health_check(self) -> bool:
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError):
            return False

    async def close(self) -> None:
        await self._client.aclose()
        logger.debug("redis_staging_cache_closed")
