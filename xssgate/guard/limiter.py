"""Rate limiting for XSSGate.

Two limiters live here:

  - ``TokenBucketLimiter``: the global admission gate consulted first by the
    request guard. Burst up to ``capacity``, sustained ``refill_rate``
    admissions per second. One instance per application, injected into the
    middleware by ``create_app()``.
  - ``admin_limiter``: slowapi limiter for the operational ``/admin/*``
    endpoints, keyed by client address. Registered on ``app.state.limiter``.
"""

from __future__ import annotations

import math
import threading
import time
from typing import Callable

from slowapi import Limiter
from slowapi.util import get_remote_address

# Per-client cap for on-demand archival; each call drains the whole cache.
ADMIN_RATE_LIMIT = "5/minute"

admin_limiter = Limiter(key_func=get_remote_address)


class TokenBucketLimiter:
    """Thread-safe token bucket.

    State is ``(capacity, refill_rate, tokens, last_refill)`` with
    ``0 <= tokens <= capacity``. Tokens grow only through time-proportional
    refill and shrink by exactly 1 per admitted call. Refill and consume
    happen under one lock, so concurrent ``allow()`` calls are linearizable:
    two callers can never both take the last token.

    Args:
        capacity:    Maximum tokens (burst size). The bucket starts full.
        refill_rate: Tokens added per second.
        clock:       Monotonic time source in seconds; injectable for tests.
    """

    def __init__(
        self,
        capacity: int = 5,
        refill_rate: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        if refill_rate <= 0:
            raise ValueError(f"refill_rate must be > 0, got {refill_rate}")
        self._capacity = capacity
        self._refill_rate = refill_rate
        self._clock = clock
        self._lock = threading.Lock()
        self._tokens: float = float(capacity)
        self._last_refill: float = clock()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def refill_rate(self) -> float:
        return self._refill_rate

    @property
    def tokens(self) -> float:
        """Currently available tokens (refilled to now)."""
        with self._lock:
            self._refill()
            return self._tokens

    @property
    def retry_after_seconds(self) -> int:
        """Whole seconds until at least one token is available (min 1)."""
        with self._lock:
            self._refill()
            missing = max(0.0, 1.0 - self._tokens)
        return max(1, math.ceil(missing / self._refill_rate))

    def allow(self) -> bool:
        """Consume one token if available. Never blocks beyond the lock."""
        with self._lock:
            self._refill()
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return True
            return False

    def reset(self) -> None:
        """Refill the bucket to capacity."""
        with self._lock:
            self._tokens = float(self._capacity)
            self._last_refill = self._clock()

    def _refill(self) -> None:
        # Caller holds self._lock.
        now = self._clock()
        elapsed = now - self._last_refill
        if elapsed > 0:
            self._tokens = min(
                float(self._capacity),
                self._tokens + elapsed * self._refill_rate,
            )
            self._last_refill = now
