"""Rejection response builders for the request guard.

Every rejection uses the same JSON body shape::

    {"error": {"message": "<human readable>", "code": "<machine code>"}}

  build_rate_limited_response():      HTTP 429, ``Retry-After`` header.
  build_payload_too_large_response(): HTTP 413, declared body over the cap.
  build_bad_request_response():       HTTP 400, malformed Content-Length.
  build_xss_block_response():         HTTP 400, blocklist match. Carries
                                      ``X-XSSGate-Block: true`` and
                                      ``X-XSSGate-Event-ID: <ulid>``.

Only the XSS rejection is a security block. The other three MUST NOT carry
``X-XSSGate-Block`` so clients can tell policy blocks from admission limits.
No matched blocklist entry or parameter value is ever echoed in a body.
"""

from __future__ import annotations

from fastapi.responses import JSONResponse

BLOCK_HEADER = "X-XSSGate-Block"
EVENT_ID_HEADER = "X-XSSGate-Event-ID"


def _error_response(status_code: int, message: str, code: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"message": message, "code": code}},
    )


def build_rate_limited_response(retry_after: int) -> JSONResponse:
    """HTTP 429 for a request rejected by the global token bucket."""
    response = _error_response(429, "Too many requests", "rate_limited")
    response.headers["Retry-After"] = str(retry_after)
    return response


def build_payload_too_large_response(limit_bytes: int) -> JSONResponse:
    """HTTP 413 for a declared Content-Length above ``limit_bytes``."""
    return _error_response(
        413,
        f"Request body exceeds the {limit_bytes}-byte limit",
        "payload_too_large",
    )


def build_bad_request_response(message: str = "Invalid Content-Length header") -> JSONResponse:
    return _error_response(400, message, "bad_request")


def build_xss_block_response(event_id: str) -> JSONResponse:
    """HTTP 400 for a query parameter that matched the XSS blocklist.

    Args:
        event_id: ULID of the queued attack log, for correlation with the
                  archived record.
    """
    response = _error_response(400, "Request blocked: XSS detected", "xss_detected")
    response.headers[BLOCK_HEADER] = "true"
    response.headers[EVENT_ID_HEADER] = event_id
    return response
