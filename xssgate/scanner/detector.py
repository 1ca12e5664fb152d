"""XSS detector: blocklist substring scan with bounded data-URI recursion.

Provides ``XSSDetector``, an immutable classifier with ``detect()`` and
``match()``. Callers construct and own their detector instance.

INVARIANTS:
  - No shared mutable state after construction; safe to call concurrently.
  - Case-insensitive: input is lowercased before substring checks.
  - Decode recursion is bounded by ``max_decode_depth``. The default of 1
    decodes only on the top-level call, so nested data URIs inside a decoded
    payload are scanned as text but never decoded again.
  - Decode failures are recovered here and count as "no match via this path".
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from xssgate.scanner.decoder import PayloadDecodeError, decode_data_uri
from xssgate.scanner.definitions import DATA_URI_MARKER, XSS_BLOCKLIST, build_blocklist

logger = logging.getLogger(__name__)

#: Upper bound accepted for ``max_decode_depth``. Each level costs one full
#: base64 decode plus a blocklist pass over the decoded text.
MAX_DECODE_DEPTH_LIMIT: int = 8


class XSSDetector:
    """Classify strings against a fixed blocklist.

    Args:
        blocklist:        Entries to match. Normalised to lowercase and
                          de-duplicated; defaults to ``XSS_BLOCKLIST``.
        max_decode_depth: How many nested data-URI payloads may be decoded
                          (0 disables decoding, default 1).

    Usage::

        detector = XSSDetector()
        detector.detect("<script>alert(1)</script>")   # True
        detector.match("x onerror=alert(1)")            # "onerror="
    """

    __slots__ = ("_blocklist", "_max_decode_depth")

    def __init__(
        self,
        blocklist: Iterable[str] = XSS_BLOCKLIST,
        max_decode_depth: int = 1,
    ) -> None:
        if not 0 <= max_decode_depth <= MAX_DECODE_DEPTH_LIMIT:
            raise ValueError(
                f"max_decode_depth must be between 0 and {MAX_DECODE_DEPTH_LIMIT}, "
                f"got {max_decode_depth}"
            )
        self._blocklist: tuple[str, ...] = build_blocklist(blocklist)
        self._max_decode_depth = max_decode_depth

    @property
    def blocklist(self) -> tuple[str, ...]:
        return self._blocklist

    @property
    def max_decode_depth(self) -> int:
        return self._max_decode_depth

    def detect(self, value: str) -> bool:
        """Return True if ``value`` carries a known XSS pattern."""
        return self.match(value) is not None

    def match(self, value: str) -> Optional[str]:
        """Return the first blocklist entry found in ``value``, or None.

        When the entry was found inside a decoded data-URI payload, the
        entry from the decoded text is returned.
        """
        return self._match(value, self._max_decode_depth)

    def _match(self, value: str, depth: int) -> Optional[str]:
        lowered = value.lower()
        for entry in self._blocklist:
            if entry in lowered:
                return entry

        if depth <= 0 or DATA_URI_MARKER not in lowered:
            return None

        try:
            decoded = decode_data_uri(value)
        except PayloadDecodeError as exc:
            logger.debug("Data URI payload not decodable: %s", exc)
            return None

        return self._match(decoded, depth - 1)
