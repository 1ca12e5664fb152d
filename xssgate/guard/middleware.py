"""RequestGuardMiddleware: the inline admission pipeline for every request.

Steps run in this fixed order; each rejection is terminal:

  1. Rate:    global token bucket empty          → HTTP 429 (+ Retry-After)
  2. Size:    declared Content-Length > cap      → HTTP 413
              Content-Length not an integer      → HTTP 400 bad_request
  3. Bypass:  path in ``bypass_paths`` (exact)   → forward, nothing scanned
  4. Method:  method not in ``scan_methods``     → forward, nothing scanned
  5. Scan:    any query (key, value) matches     → enqueue LogEntry, HTTP 400
  6. Otherwise                                   → forward unchanged

Bypassed requests still consume a token and are still size-checked.
Only the declared Content-Length is checked; a request without the header
is not a size declaration and passes step 2. Request bodies are never read
or scanned.

Enqueueing is non-blocking: the 400 is returned whether or not the log
queue had room for the entry.
"""

from __future__ import annotations

from typing import Iterable, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from xssgate.audit.models import LogEntry
from xssgate.audit.queue import AttackLogQueue
from xssgate.constants import (
    DEFAULT_BYPASS_PATHS,
    DEFAULT_SCAN_METHODS,
    MAX_LOG_ENTRY_CHARS,
    MAX_REQUEST_BODY_BYTES,
)
from xssgate.guard.limiter import TokenBucketLimiter
from xssgate.models.block import (
    build_bad_request_response,
    build_payload_too_large_response,
    build_rate_limited_response,
    build_xss_block_response,
)
from xssgate.scanner.detector import XSSDetector
from xssgate.utils.logger import get_logger

logger = get_logger(__name__)


class RequestGuardMiddleware(BaseHTTPMiddleware):
    """Starlette middleware wrapping every route with the admission pipeline.

    Registration (in create_app() in xssgate/main.py)::

        application.add_middleware(
            RequestGuardMiddleware,
            limiter=TokenBucketLimiter(),
            detector=XSSDetector(),
            log_queue=AttackLogQueue(),
        )

    The limiter, detector and queue are owned by the application and passed
    in; this class holds no global state.
    """

    def __init__(
        self,
        app: ASGIApp,
        limiter: TokenBucketLimiter,
        detector: XSSDetector,
        log_queue: AttackLogQueue,
        max_request_bytes: int = MAX_REQUEST_BODY_BYTES,
        bypass_paths: Iterable[str] = DEFAULT_BYPASS_PATHS,
        scan_methods: Iterable[str] = DEFAULT_SCAN_METHODS,
        max_log_chars: int = MAX_LOG_ENTRY_CHARS,
    ) -> None:
        super().__init__(app)
        self.limiter = limiter
        self.detector = detector
        self.log_queue = log_queue
        self.max_request_bytes = max_request_bytes
        self.bypass_paths = frozenset(bypass_paths)
        self.scan_methods = frozenset(m.upper() for m in scan_methods)
        self.max_log_chars = max_log_chars

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path

        # ── Step 1: Rate ──────────────────────────────────────────────────────
        if not self.limiter.allow():
            retry_after = self.limiter.retry_after_seconds
            logger.warning("rate_limited", path=path, retry_after=retry_after)
            return build_rate_limited_response(retry_after)

        # ── Step 2: Size ──────────────────────────────────────────────────────
        content_length_header = request.headers.get("content-length")
        if content_length_header is not None:
            try:
                declared_size = int(content_length_header)
            except ValueError:
                logger.warning(
                    "invalid_content_length",
                    value=content_length_header,
                    path=path,
                )
                return build_bad_request_response()

            if declared_size > self.max_request_bytes:
                logger.warning(
                    "payload_too_large",
                    declared_size=declared_size,
                    limit=self.max_request_bytes,
                    path=path,
                )
                return build_payload_too_large_response(self.max_request_bytes)

        # ── Step 3: Bypass ────────────────────────────────────────────────────
        if path in self.bypass_paths:
            return await call_next(request)

        # ── Step 4: Method filter ─────────────────────────────────────────────
        if request.method.upper() not in self.scan_methods:
            return await call_next(request)

        # ── Step 5: Parameter scan ────────────────────────────────────────────
        block = self._scan_query(request, path)
        if block is not None:
            return block

        # ── Step 6: Forward ───────────────────────────────────────────────────
        return await call_next(request)

    def _scan_query(self, request: Request, path: str) -> Optional[Response]:
        """Return the 400 block response for the first matching parameter."""
        for key, value in request.query_params.multi_items():
            matched = self.detector.match(value)
            if matched is None:
                continue

            entry = LogEntry.for_detection(path, key, value, self.max_log_chars)
            queued = self.log_queue.enqueue(entry)
            logger.warning(
                "xss_detected",
                event_id=entry.event_id,
                path=path,
                param=key,
                matched=matched,
                queued=queued,
            )
            return build_xss_block_response(entry.event_id)
        return None
