"""Shared constants for XSSGate.

All size limits, capacities and intervals used across modules are defined
here and serve as the defaults for ``xssgate.config``. No magic numbers in
other modules; import from here.
"""

# ─── Request admission ───────────────────────────────────────────────────────

# Declared request bodies above this size are rejected with HTTP 413 before
# any scanning takes place.
MAX_REQUEST_BODY_BYTES: int = 10 * 1024  # 10 KiB

# Exact paths that skip payload scanning (rate and size checks still apply).
DEFAULT_BYPASS_PATHS: tuple[str, ...] = ("/admin",)

# Only these methods have their query parameters scanned.
DEFAULT_SCAN_METHODS: tuple[str, ...] = ("GET",)

# ─── Rate limiting (token bucket) ────────────────────────────────────────────

# Burst size: requests admitted instantaneously from a full bucket.
RATE_LIMIT_CAPACITY: int = 5

# Sustained admissions per second.
RATE_LIMIT_REFILL_PER_SECOND: float = 1.0

# ─── Attack-log pipeline ─────────────────────────────────────────────────────

# Bounded in-memory queue between detection and the logging worker.
# Entries beyond this are dropped, never blocking the request path.
LOG_QUEUE_MAXSIZE: int = 100

# Log text longer than this is truncated and suffixed with LOG_TRUNCATION_MARKER.
MAX_LOG_ENTRY_CHARS: int = 1024
LOG_TRUNCATION_MARKER: str = "... (truncated)"

# ─── Archival ────────────────────────────────────────────────────────────────

# Cache key holding the comma-separated list of staged log keys.
DEFAULT_LOG_INDEX_KEY: str = "log-index"

# Seconds between archival cycles.
ARCHIVE_INTERVAL_SECONDS: float = 3600.0

# Staged entries expire after this many archive intervals. Entries the index
# no longer lists (appended while a cycle ran) are reclaimed this way.
STAGED_LOG_TTL_INTERVALS: int = 3

DEFAULT_ARCHIVE_DB_PATH: str = "~/.xssgate/archive.db"
