"""XSSGate FastAPI application factory + lifespan lifecycle.

This module implements:
  - create_app() — testable application factory
  - lifespan     — @asynccontextmanager startup/shutdown sequence
  - /health      — delegated to xssgate/health.py
  - /admin/*     — delegated to xssgate/admin.py
  - /{path}      — default handler: every admitted request gets
                   "Request accepted!"
  - app = create_app() — module-level instance for uvicorn

Owned objects built in create_app() (shared by middleware and routes via
app.state, never module singletons):
  - TokenBucketLimiter → app.state.rate_limiter
  - XSSDetector        → app.state.detector
  - AttackLogQueue     → app.state.log_queue

Startup sequence:
  1. create_staging_cache()  → app.state.staging_cache
  2. create_archive_store()  → app.state.archive_store
  3. LogArchiver             → app.state.archiver
  4. logging worker task     (AttackLogQueue.run_worker)
  5. archiver task           (run_archiver, every archive.interval_seconds)
  6. app.state.ready = True

Shutdown sequence (reverse):
  app.state.ready = False → cancel archiver → cancel worker →
  close archive store → close staging cache
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from xssgate.admin import router as admin_router
from xssgate.audit.archiver import LogArchiver, run_archiver
from xssgate.audit.factory import create_archive_store, create_staging_cache
from xssgate.audit.queue import AttackLogQueue
from xssgate.config import Config, load_config
from xssgate.guard.limiter import TokenBucketLimiter, admin_limiter
from xssgate.guard.middleware import RequestGuardMiddleware
from xssgate.health import router as health_router
from xssgate.scanner.detector import XSSDetector
from xssgate.utils.logger import configure_logging, get_logger, settings_from_env

# ─── Logging Setup ────────────────────────────────────────────────────────────
# Configure logging at module import time (before any other imports that may log).

LOG_SETTINGS = settings_from_env()
DEBUG = LOG_SETTINGS.debug

configure_logging(log_level=LOG_SETTINGS.level, json_output=LOG_SETTINGS.json_output)
logger = get_logger(__name__)

ACCEPTED_BODY = "Request accepted!"

_FORWARDED_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


async def _cancel_task(task: Optional[asyncio.Task[None]]) -> None:
    if task is None or task.done():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: start the audit pipeline, tear it down in reverse."""
    logger.info("XSSGate starting up...")
    config: Config = app.state.config

    # ── Step 1: Staging cache ─────────────────────────────────────────────────
    cache = create_staging_cache(config)
    app.state.staging_cache = cache

    # ── Step 2: Archive store ─────────────────────────────────────────────────
    # RuntimeError on an incompatible archive schema propagates and refuses
    # startup; the cache is closed first.
    try:
        store = await create_archive_store(config)
    except Exception:
        await cache.close()
        raise
    app.state.archive_store = store

    # ── Step 3: Archiver ──────────────────────────────────────────────────────
    archiver = LogArchiver(cache, store, index_key=config.archive.index_key)
    app.state.archiver = archiver

    # ── Step 4: Logging worker ────────────────────────────────────────────────
    log_queue: AttackLogQueue = app.state.log_queue
    worker_task: asyncio.Task[None] = asyncio.create_task(
        log_queue.run_worker(cache, index_key=config.archive.index_key)
    )

    # ── Step 5: Periodic archival ─────────────────────────────────────────────
    archiver_task: asyncio.Task[None] = asyncio.create_task(
        run_archiver(archiver, interval_seconds=config.archive.interval_seconds)
    )

    # ── Step 6: Mark as ready ─────────────────────────────────────────────────
    app.state.ready = True
    logger.info(
        "XSSGate ready",
        max_request_bytes=config.guard.max_request_bytes,
        bypass_paths=config.guard.bypass_paths,
        scan_methods=config.guard.scan_methods,
        rate_limit_capacity=config.rate_limit.capacity,
        archive_interval_seconds=config.archive.interval_seconds,
    )

    # ── Server runs here ──────────────────────────────────────────────────────
    yield

    # ── Shutdown (reverse order) ──────────────────────────────────────────────
    logger.info("XSSGate shutting down...")
    app.state.ready = False

    await _cancel_task(archiver_task)
    await _cancel_task(worker_task)
    if log_queue.depth:
        logger.warning("log_queue_discarded_on_shutdown", pending=log_queue.depth)

    await store.close()
    try:
        await cache.close()
    except Exception as exc:
        logger.warning("Staging cache close error (non-fatal)", error=str(exc))

    logger.info("XSSGate shutdown complete")


# ─── Application Factory ──────────────────────────────────────────────────────


def create_app(config: Optional[Config] = None) -> FastAPI:
    """Create and configure the XSSGate FastAPI application.

    Call this function directly in tests to get an isolated app instance
    with its own limiter, detector and queue:
        app = create_app(Config())

    Args:
        config: Configuration to use. When None, ``load_config()`` searches
                the standard locations (SystemExit on an invalid file).

    Returns:
        Configured FastAPI application with lifespan, routers, and middleware.
    """
    if config is None:
        config = load_config()

    application = FastAPI(
        title="XSSGate",
        description="Inline HTTP request guard: rate limiting, XSS screening, attack-log archival",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if DEBUG else None,
        redoc_url="/redoc" if DEBUG else None,
        openapi_url="/openapi.json" if DEBUG else None,
    )

    # /health returns 503 until the lifespan has finished startup.
    application.state.ready = False
    application.state.config = config

    rate_limiter = TokenBucketLimiter(
        capacity=config.rate_limit.capacity,
        refill_rate=config.rate_limit.refill_per_second,
    )
    detector = XSSDetector(
        blocklist=config.guard.blocklist(),
        max_decode_depth=config.guard.max_decode_depth,
    )
    log_queue = AttackLogQueue(maxsize=config.log_queue.maxsize)
    application.state.rate_limiter = rate_limiter
    application.state.detector = detector
    application.state.log_queue = log_queue

    # slowapi limiter for /admin/* endpoints, attached to app state as
    # required by slowapi.
    application.state.limiter = admin_limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    application.add_middleware(SlowAPIMiddleware)

    # NOTE: In Starlette, the LAST-added middleware is OUTERMOST (runs first).
    # The request guard is added last so rate, size and XSS checks precede
    # every route, slowapi included.
    application.add_middleware(
        RequestGuardMiddleware,
        limiter=rate_limiter,
        detector=detector,
        log_queue=log_queue,
        max_request_bytes=config.guard.max_request_bytes,
        bypass_paths=config.guard.bypass_paths,
        scan_methods=config.guard.scan_methods,
        max_log_chars=config.log_queue.max_entry_chars,
    )

    # Register routers. The catch-all default handler MUST come last.
    application.include_router(health_router)
    application.include_router(admin_router, prefix="/admin")

    @application.api_route("/{path:path}", methods=_FORWARDED_METHODS, include_in_schema=False)
    async def accept(path: str) -> PlainTextResponse:
        """Default handler for every request the guard admits."""
        return PlainTextResponse(ACCEPTED_BODY)

    # Global exception handlers
    @application.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            detail=exc.detail,
            path=str(request.url.path),
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
        )
        return JSONResponse(
            status_code=500, content={"error": "Internal server error"}
        )

    return application


# ─── Module-Level App (for uvicorn) ───────────────────────────────────────────
#   uvicorn xssgate.main:app --host 127.0.0.1 --port 8080 --limit-concurrency 100 \
#     --backlog 50 --timeout-keep-alive 5

app = create_app()
