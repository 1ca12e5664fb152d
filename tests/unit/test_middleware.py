"""Unit tests for xssgate/guard/middleware.py — RequestGuardMiddleware.

Tests the middleware in isolation using a minimal Starlette app with an
injected limiter, detector and queue. No lifespan, cache or store involved.

Pipeline order under test:
  rate → size → bypass → method filter → query scan → forward
"""

from __future__ import annotations

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.routing import Route
from starlette.testclient import TestClient

from xssgate.audit.queue import AttackLogQueue
from xssgate.constants import LOG_TRUNCATION_MARKER, MAX_REQUEST_BODY_BYTES
from xssgate.guard.limiter import TokenBucketLimiter
from xssgate.guard.middleware import RequestGuardMiddleware
from xssgate.models.block import BLOCK_HEADER, EVENT_ID_HEADER
from xssgate.scanner.detector import XSSDetector

# ─── Minimal test app ─────────────────────────────────────────────────────────


async def _ok(request: Request) -> Response:
    return PlainTextResponse("ok")


def _make_client(
    limiter: TokenBucketLimiter | None = None,
    log_queue: AttackLogQueue | None = None,
    **kwargs,
) -> tuple[TestClient, AttackLogQueue]:
    log_queue = log_queue or AttackLogQueue()
    app = Starlette(
        routes=[
            Route("/{path:path}", _ok, methods=["GET", "POST", "PUT", "DELETE"]),
        ]
    )
    app.add_middleware(
        RequestGuardMiddleware,
        limiter=limiter or TokenBucketLimiter(capacity=1000, refill_rate=1000.0),
        detector=XSSDetector(),
        log_queue=log_queue,
        **kwargs,
    )
    return TestClient(app), log_queue


# ─── Step 1: Rate ─────────────────────────────────────────────────────────────


class TestRateStep:

    def test_requests_beyond_burst_get_429(self, clock) -> None:
        client, _ = _make_client(limiter=TokenBucketLimiter(capacity=2, refill_rate=1.0, clock=clock))
        assert client.get("/").status_code == 200
        assert client.get("/").status_code == 200

        response = client.get("/")
        assert response.status_code == 429
        assert response.headers["Retry-After"] == "1"
        assert response.json()["error"]["code"] == "rate_limited"

    def test_rate_checked_before_scan(self, clock) -> None:
        limiter = TokenBucketLimiter(capacity=1, refill_rate=1.0, clock=clock)
        client, log_queue = _make_client(limiter=limiter)
        client.get("/")

        response = client.get("/search", params={"q": "<script>alert(1)</script>"})
        assert response.status_code == 429
        assert log_queue.depth == 0

    def test_bypass_path_still_rate_limited(self, clock) -> None:
        client, _ = _make_client(limiter=TokenBucketLimiter(capacity=1, refill_rate=1.0, clock=clock))
        assert client.get("/admin").status_code == 200
        assert client.get("/admin").status_code == 429

    def test_refill_readmits(self, clock) -> None:
        client, _ = _make_client(limiter=TokenBucketLimiter(capacity=1, refill_rate=1.0, clock=clock))
        client.get("/")
        assert client.get("/").status_code == 429
        clock.advance(1.0)
        assert client.get("/").status_code == 200


# ─── Step 2: Size ─────────────────────────────────────────────────────────────


class TestSizeStep:

    def test_declared_oversize_post_rejected(self) -> None:
        client, _ = _make_client()
        response = client.post(
            "/upload",
            content=b"x",
            headers={"content-length": "20000", "content-type": "application/octet-stream"},
        )
        assert response.status_code == 413
        assert response.json()["error"]["code"] == "payload_too_large"

    def test_declared_oversize_get_rejected(self) -> None:
        client, _ = _make_client()
        response = client.get("/", headers={"content-length": "20000"})
        assert response.status_code == 413

    def test_exact_limit_accepted(self) -> None:
        client, _ = _make_client()
        response = client.post("/upload", content=b"x" * MAX_REQUEST_BODY_BYTES)
        assert response.status_code == 200

    def test_one_byte_over_limit_rejected(self) -> None:
        client, _ = _make_client()
        response = client.post("/upload", content=b"x" * (MAX_REQUEST_BODY_BYTES + 1))
        assert response.status_code == 413

    def test_size_checked_on_bypass_path(self) -> None:
        client, _ = _make_client()
        response = client.post("/admin", content=b"x" * (MAX_REQUEST_BODY_BYTES + 1))
        assert response.status_code == 413

    def test_invalid_content_length_returns_400(self) -> None:
        client, _ = _make_client()
        response = client.post(
            "/upload",
            content=b"hello",
            headers={"content-length": "not-a-number", "content-type": "application/octet-stream"},
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "bad_request"

    def test_custom_limit(self) -> None:
        client, _ = _make_client(max_request_bytes=10)
        assert client.post("/upload", content=b"x" * 11).status_code == 413
        assert client.post("/upload", content=b"x" * 10).status_code == 200


# ─── Steps 3–5: Bypass, method filter, scan ───────────────────────────────────


class TestScanStep:

    def test_script_in_query_blocked(self) -> None:
        client, log_queue = _make_client()
        response = client.get("/search", params={"q": "<script>alert(1)</script>"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "xss_detected"
        assert response.headers[BLOCK_HEADER] == "true"

        entries = log_queue.drain_nowait()
        assert len(entries) == 1
        assert entries[0].text == "Path:/search Param:q Value:<script>alert(1)</script>"
        assert response.headers[EVENT_ID_HEADER] == entries[0].event_id

    def test_benign_query_forwarded(self) -> None:
        client, log_queue = _make_client()
        response = client.get("/", params={"q": "hello"})
        assert response.status_code == 200
        assert response.text == "ok"
        assert log_queue.depth == 0

    def test_second_value_of_multi_valued_key_scanned(self) -> None:
        client, log_queue = _make_client()
        response = client.get("/search?q=hello&q=%3Cscript%3E")
        assert response.status_code == 400
        assert log_queue.drain_nowait()[0].text == "Path:/search Param:q Value:<script>"

    def test_first_matching_parameter_logged_once(self) -> None:
        client, log_queue = _make_client()
        response = client.get("/p?a=ok&b=javascript:x&c=onerror=1")
        assert response.status_code == 400
        entries = log_queue.drain_nowait()
        assert len(entries) == 1
        assert "Param:b " in entries[0].text

    def test_bypass_path_not_scanned(self) -> None:
        client, log_queue = _make_client()
        response = client.get("/admin", params={"q": "<script>"})
        assert response.status_code == 200
        assert log_queue.depth == 0

    def test_bypass_is_exact_match(self) -> None:
        client, _ = _make_client()
        assert client.get("/admin/", params={"q": "<script>"}).status_code == 400
        assert client.get("/administrator", params={"q": "<script>"}).status_code == 400

    def test_post_query_not_scanned(self) -> None:
        client, log_queue = _make_client()
        response = client.post("/search?q=%3Cscript%3E", content=b"<script>")
        assert response.status_code == 200
        assert log_queue.depth == 0

    def test_configured_scan_methods(self) -> None:
        client, _ = _make_client(scan_methods=["get", "delete"])
        assert client.delete("/x?q=%3Cscript%3E").status_code == 400
        assert client.put("/x?q=%3Cscript%3E").status_code == 200

    def test_configured_bypass_paths(self) -> None:
        client, _ = _make_client(bypass_paths=["/status"])
        assert client.get("/status?q=%3Cscript%3E").status_code == 200
        assert client.get("/admin?q=%3Cscript%3E").status_code == 400

    def test_log_text_truncated(self) -> None:
        client, log_queue = _make_client(max_log_chars=40)
        client.get("/search", params={"q": "<script>" + "a" * 500})
        entry = log_queue.drain_nowait()[0]
        assert entry.text.endswith(LOG_TRUNCATION_MARKER)
        assert len(entry.text) == 40 + len(LOG_TRUNCATION_MARKER)

    def test_full_queue_still_blocks(self) -> None:
        client, log_queue = _make_client(log_queue=AttackLogQueue(maxsize=1))
        assert client.get("/", params={"q": "<script>"}).status_code == 400
        assert client.get("/", params={"q": "<script>"}).status_code == 400
        assert log_queue.depth == 1
        assert log_queue.dropped_count == 1
