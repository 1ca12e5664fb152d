"""ULID helpers for XSSGate.

Every detected attack gets a ULID ``event_id``. The same value is returned in
the ``X-XSSGate-Event-ID`` response header and forms the staged cache key
(``log-<event_id>``), so a rejected request can be traced to its archived
record. ULIDs sort by creation time, which keeps archived keys in detection
order.

Uses the ``python-ulid`` library; do not hand-roll ULID generation.
"""

from __future__ import annotations

from ulid import ULID

#: Prefix for staged attack-log keys in the cache.
LOG_KEY_PREFIX = "log-"


def generate_ulid() -> str:
    """Generate a new ULID as a 26-character uppercase string."""
    return str(ULID())


def make_log_key(event_id: str) -> str:
    """Return the cache key under which the attack log ``event_id`` is staged.

    >>> make_log_key("01J0000000000000000000000A")
    'log-01J0000000000000000000000A'
    """
    return f"{LOG_KEY_PREFIX}{event_id}"
