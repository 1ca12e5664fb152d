"""Operational admin endpoints.

Provides:
  POST /admin/archive — run one archival cycle now instead of waiting for
                        the next scheduled one.
  GET  /admin/archive — most recently archived logs, newest first.

Only the exact path ``/admin`` is exempt from payload scanning; these
sub-paths go through the full request guard like any other route. Both are
additionally capped per client by the slowapi ``admin_limiter``.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request

from xssgate.audit.archiver import LogArchiver
from xssgate.audit.protocol import ArchiveStore
from xssgate.guard.limiter import ADMIN_RATE_LIMIT, admin_limiter
from xssgate.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["admin"])


@router.post("/archive")
@admin_limiter.limit(ADMIN_RATE_LIMIT)
async def trigger_archive(request: Request) -> dict:
    """Run one archival cycle and return its result.

    Returns:
        JSON: {"result": {skipped, reason, archived, missing, failed, finished_at}}
    """
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(status_code=503, detail="XSSGate is starting up.")

    archiver: LogArchiver = request.app.state.archiver
    result = await archiver.run_cycle()
    logger.info("archive_triggered_manually", **result.as_dict())
    return {"result": result.as_dict()}


@router.get("/archive")
@admin_limiter.limit(ADMIN_RATE_LIMIT)
async def list_archived(
    request: Request,
    limit: int = Query(default=50, ge=1, le=500),
) -> dict:
    """List the most recently archived attack logs."""
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(status_code=503, detail="XSSGate is starting up.")

    store: ArchiveStore = request.app.state.archive_store
    records = await store.fetch_recent(limit)
    return {
        "total": await store.count(),
        "logs": [
            {
                "log_key": record.log_key,
                "value": record.value,
                "archived_at": record.archived_at.isoformat(),
            }
            for record in records
        ],
    }
