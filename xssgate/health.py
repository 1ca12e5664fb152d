"""Health endpoint for XSSGate.

Implements:
  GET /health — 503 before ``app.state.ready``; 200 with pipeline status after.

The status is "degraded" when the staging cache or archive store fails its
health check. The guard itself has no external dependency and keeps
admitting and rejecting requests while degraded; only staging and archival
are affected.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from xssgate.audit.archiver import LogArchiver
from xssgate.audit.protocol import ArchiveStore, StagingCache
from xssgate.audit.queue import AttackLogQueue
from xssgate.guard.limiter import TokenBucketLimiter

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    """Primary health check endpoint.

    Response body (200):
        {
          "status": "ok" | "degraded",
          "cache": "healthy" | "unreachable",
          "archive_store": "healthy" | "unreachable",
          "rate_limit_tokens": 4.0,
          "log_queue": {"depth": 0, "maxsize": 100, "dropped": 0,
                        "processed": 0, "failed": 0},
          "archive": {"cycles": 0, "last_cycle": null | {...}}
        }
    """
    state = request.app.state
    if not getattr(state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail={"status": "starting", "message": "XSSGate is starting up."},
        )

    cache: StagingCache = state.staging_cache
    store: ArchiveStore = state.archive_store
    log_queue: AttackLogQueue = state.log_queue
    limiter: TokenBucketLimiter = state.rate_limiter
    archiver: LogArchiver = state.archiver

    cache_ok = await cache.health_check()
    store_ok = await store.health_check()
    last_result = archiver.last_result

    return {
        "status": "ok" if cache_ok and store_ok else "degraded",
        "cache": "healthy" if cache_ok else "unreachable",
        "archive_store": "healthy" if store_ok else "unreachable",
        "rate_limit_tokens": round(limiter.tokens, 2),
        "log_queue": {
            "depth": log_queue.depth,
            "maxsize": log_queue.maxsize,
            "dropped": log_queue.dropped_count,
            "processed": log_queue.processed_count,
            "failed": log_queue.failed_count,
        },
        "archive": {
            "cycles": archiver.cycles,
            "last_cycle": last_result.as_dict() if last_result else None,
        },
    }
