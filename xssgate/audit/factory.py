"""Staging cache and archive store factory.

Cache selection:
  1. ``cache.redis_url`` set (or XSSGATE_REDIS_URL): RedisStagingCache
  2. Otherwise: InMemoryStagingCache (single process only)

Both expire staged values after ``archive.staged_ttl_seconds``
(``interval_seconds * staged_ttl_intervals``).

Store selection:
  1. ``archive.db_path`` non-empty: LocalSQLiteArchiveStore (default
     ~/.xssgate/archive.db, override with XSSGATE_ARCHIVE_DB_PATH)
  2. Empty path: NullArchiveStore (archival drains but keeps nothing)

LocalSQLiteArchiveStore.initialize() raises RuntimeError on a schema version
mismatch; the FastAPI lifespan lets it propagate so startup is refused.
"""

from __future__ import annotations

from xssgate.audit.cache import InMemoryStagingCache, RedisStagingCache
from xssgate.audit.protocol import ArchiveStore, NullArchiveStore, StagingCache
from xssgate.config import Config
from xssgate.utils.logger import get_logger

logger = get_logger(__name__)


def create_staging_cache(config: Config) -> StagingCache:
    """Build the staging cache selected by ``config.cache``.

    The Redis client connects lazily, so an unreachable server surfaces as
    staging errors and an unhealthy /health rather than a startup failure.
    """
    ttl_seconds = config.archive.staged_ttl_seconds
    redis_url = config.cache.redis_url
    if redis_url:
        cache = RedisStagingCache.from_url(redis_url, ttl_seconds=ttl_seconds)
        logger.info(
            "staging_cache_selected",
            cache="RedisStagingCache",
            # Never log credentials embedded in the URL
            redis_host=redis_url.rsplit("@", 1)[-1],
            staged_ttl_seconds=ttl_seconds,
        )
        return cache

    logger.warning(
        "staging_cache_selected",
        cache="InMemoryStagingCache",
        staged_ttl_seconds=ttl_seconds,
        note="staged logs are lost on restart; set cache.redis_url for production",
    )
    return InMemoryStagingCache(ttl_seconds=ttl_seconds)


async def create_archive_store(config: Config) -> ArchiveStore:
    """Create and initialize the archive store selected by ``config.archive``.

    Raises:
      RuntimeError: If the SQLite archive has an incompatible schema version.
    """
    db_path = config.archive.db_path
    if not db_path:
        logger.warning("archive_store_selected", store="NullArchiveStore")
        return NullArchiveStore()

    from xssgate.audit.sqlite_backend import LocalSQLiteArchiveStore

    store = LocalSQLiteArchiveStore(db_path=db_path)
    await store.initialize()
    logger.info("archive_store_selected", store="LocalSQLiteArchiveStore", db_path=store.db_path)
    return store
