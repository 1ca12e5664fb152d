"""Attack-log records for the XSSGate audit pipeline.

A ``LogEntry`` is created by the request guard on detection, pushed onto the
bounded ``AttackLogQueue``, and consumed exactly once by the logging worker,
which stages it in the cache for archival. Delivery is at-most-once: entries
are dropped under overflow, never duplicated.
"""

from __future__ import annotations

from dataclasses import dataclass

from xssgate.constants import LOG_TRUNCATION_MARKER, MAX_LOG_ENTRY_CHARS
from xssgate.utils.ulid import generate_ulid, make_log_key


def format_attack_log(path: str, param: str, value: str) -> str:
    """Render the canonical ``Path:<p> Param:<k> Value:<v>`` log text."""
    return f"Path:{path} Param:{param} Value:{value}"


def truncate_log_text(text: str, max_chars: int = MAX_LOG_ENTRY_CHARS) -> str:
    """Cap ``text`` at ``max_chars`` and append the truncation marker if cut.

    Text of exactly ``max_chars`` is returned unchanged.
    """
    if len(text) > max_chars:
        return text[:max_chars] + LOG_TRUNCATION_MARKER
    return text


@dataclass(frozen=True)
class LogEntry:
    """One detected attack, bounded in size.

    Build instances with ``LogEntry.for_detection()`` so truncation is
    always applied.
    """

    event_id: str
    """ULID; echoed in ``X-XSSGate-Event-ID`` and used for the cache key."""
    text: str
    """Bounded log text (``Path:... Param:... Value:...``)."""

    @property
    def log_key(self) -> str:
        """Cache key this entry is staged under."""
        return make_log_key(self.event_id)

    @classmethod
    def for_detection(
        cls,
        path: str,
        param: str,
        value: str,
        max_chars: int = MAX_LOG_ENTRY_CHARS,
    ) -> "LogEntry":
        text = truncate_log_text(format_attack_log(path, param, value), max_chars)
        return cls(event_id=generate_ulid(), text=text)
