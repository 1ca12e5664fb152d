"""Config loading for XSSGate.

Reads ``.xssgate/config.yaml`` (or ``~/.xssgate/config.yaml``).
Raises SystemExit on parse errors, a missing ``version`` field or invalid
values. If no config file is found, returns default values.

Config search order:
  1. ``config_path`` argument (tests or explicit override)
  2. XSSGATE_CONFIG environment variable
  3. ``.xssgate/config.yaml`` (working directory)
  4. ``~/.xssgate/config.yaml`` (home directory)

Environment variable overrides (applied after file parsing):
  XSSGATE_PORT             — proxy.port
  XSSGATE_REDIS_URL        — cache.redis_url
  XSSGATE_ARCHIVE_DB_PATH  — archive.db_path

Example::

    version: 1
    guard:
      bypass_paths: ["/admin"]
      blocklist_extra: ["<details"]
    rate_limit:
      capacity: 5
      refill_per_second: 1.0
    archive:
      interval_seconds: 3600
      staged_ttl_intervals: 3
    cache:
      redis_url: redis://localhost:6379/0
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Any, NoReturn, Optional

import yaml

from xssgate.constants import (
    ARCHIVE_INTERVAL_SECONDS,
    DEFAULT_ARCHIVE_DB_PATH,
    DEFAULT_BYPASS_PATHS,
    DEFAULT_LOG_INDEX_KEY,
    DEFAULT_SCAN_METHODS,
    LOG_QUEUE_MAXSIZE,
    MAX_LOG_ENTRY_CHARS,
    MAX_REQUEST_BODY_BYTES,
    RATE_LIMIT_CAPACITY,
    RATE_LIMIT_REFILL_PER_SECOND,
    STAGED_LOG_TTL_INTERVALS,
)
from xssgate.scanner.definitions import XSS_BLOCKLIST, build_blocklist
from xssgate.scanner.detector import MAX_DECODE_DEPTH_LIMIT
from xssgate.utils.logger import get_logger

logger = get_logger(__name__)

SUPPORTED_CONFIG_VERSION = 1
SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

DEFAULT_CONFIG_PATHS = [
    ".xssgate/config.yaml",
    os.path.expanduser("~/.xssgate/config.yaml"),
]


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class ProxyConfig:
    """Listener binding."""

    host: str = "127.0.0.1"
    port: int = 8080


@dataclass
class GuardConfig:
    """Request admission pipeline settings.

    blocklist_extra:   entries appended to the built-in blocklist.
    blocklist_replace: when True, ``blocklist_extra`` replaces the built-in
                       list instead of extending it.
    max_decode_depth:  nested data-URI payloads decoded per value (default 1).
    """

    max_request_bytes: int = MAX_REQUEST_BODY_BYTES
    bypass_paths: list[str] = field(default_factory=lambda: list(DEFAULT_BYPASS_PATHS))
    scan_methods: list[str] = field(default_factory=lambda: list(DEFAULT_SCAN_METHODS))
    blocklist_extra: list[str] = field(default_factory=list)
    blocklist_replace: bool = False
    max_decode_depth: int = 1

    def blocklist(self) -> tuple[str, ...]:
        """Effective blocklist for the detector."""
        if self.blocklist_replace:
            return build_blocklist(self.blocklist_extra)
        return build_blocklist(XSS_BLOCKLIST, self.blocklist_extra)


@dataclass
class RateLimitConfig:
    """Global token bucket."""

    capacity: int = RATE_LIMIT_CAPACITY
    refill_per_second: float = RATE_LIMIT_REFILL_PER_SECOND


@dataclass
class LogQueueConfig:
    """Attack-log queue bounds."""

    maxsize: int = LOG_QUEUE_MAXSIZE
    max_entry_chars: int = MAX_LOG_ENTRY_CHARS


@dataclass
class ArchiveConfig:
    """Archival schedule and durable store.

    An empty ``db_path`` selects the NullArchiveStore (drain without keeping).
    Staged entries expire after ``staged_ttl_intervals`` archive intervals.
    """

    interval_seconds: float = ARCHIVE_INTERVAL_SECONDS
    index_key: str = DEFAULT_LOG_INDEX_KEY
    db_path: str = DEFAULT_ARCHIVE_DB_PATH
    staged_ttl_intervals: int = STAGED_LOG_TTL_INTERVALS

    @property
    def staged_ttl_seconds(self) -> float:
        return self.interval_seconds * self.staged_ttl_intervals


@dataclass
class CacheConfig:
    """Staging cache. No ``redis_url`` selects the in-process cache."""

    redis_url: Optional[str] = None


@dataclass
class Config:
    """Root configuration object populated from .xssgate/config.yaml.

    All fields have safe defaults; XSSGate can start without any config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    guard: GuardConfig = field(default_factory=GuardConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    log_queue: LogQueueConfig = field(default_factory=LogQueueConfig)
    archive: ArchiveConfig = field(default_factory=ArchiveConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    path: Optional[str] = None

    @classmethod
    def defaults(cls) -> "Config":
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are ignored.

        Raises:
            SystemExit(1): On out-of-range or mistyped values.
        """
        source = path or "config"

        # ── Guard ─────────────────────────────────────────────────────────────
        guard_raw = _section(raw, "guard", source)
        guard = GuardConfig(
            max_request_bytes=_positive_int(
                guard_raw.get("max_request_bytes", MAX_REQUEST_BODY_BYTES),
                "guard.max_request_bytes", source,
            ),
            bypass_paths=_str_list(
                guard_raw.get("bypass_paths", list(DEFAULT_BYPASS_PATHS)),
                "guard.bypass_paths", source,
            ),
            scan_methods=[
                m.upper()
                for m in _str_list(
                    guard_raw.get("scan_methods", list(DEFAULT_SCAN_METHODS)),
                    "guard.scan_methods", source,
                )
            ],
            blocklist_extra=_str_list(
                guard_raw.get("blocklist_extra", []), "guard.blocklist_extra", source
            ),
            blocklist_replace=bool(guard_raw.get("blocklist_replace", False)),
            max_decode_depth=guard_raw.get("max_decode_depth", 1),
        )
        if not isinstance(guard.max_decode_depth, int) or not (
            0 <= guard.max_decode_depth <= MAX_DECODE_DEPTH_LIMIT
        ):
            _config_error(
                f"CONFIG ERROR: {source}: guard.max_decode_depth must be an integer between 0 and "
                f"{MAX_DECODE_DEPTH_LIMIT}, got {guard.max_decode_depth!r}."
            )
        if guard.blocklist_replace and not guard.blocklist():
            _config_error(
                f"CONFIG ERROR: {source}: guard.blocklist_replace is set but guard.blocklist_extra is empty; "
                "this would disable XSS detection entirely."
            )

        # ── Rate limit ────────────────────────────────────────────────────────
        rate_raw = _section(raw, "rate_limit", source)
        rate_limit = RateLimitConfig(
            capacity=_positive_int(
                rate_raw.get("capacity", RATE_LIMIT_CAPACITY), "rate_limit.capacity", source
            ),
            refill_per_second=_positive_float(
                rate_raw.get("refill_per_second", RATE_LIMIT_REFILL_PER_SECOND),
                "rate_limit.refill_per_second", source,
            ),
        )

        # ── Log queue ─────────────────────────────────────────────────────────
        queue_raw = _section(raw, "log_queue", source)
        log_queue = LogQueueConfig(
            maxsize=_positive_int(
                queue_raw.get("maxsize", LOG_QUEUE_MAXSIZE), "log_queue.maxsize", source
            ),
            max_entry_chars=_positive_int(
                queue_raw.get("max_entry_chars", MAX_LOG_ENTRY_CHARS),
                "log_queue.max_entry_chars", source,
            ),
        )

        # ── Archive ───────────────────────────────────────────────────────────
        archive_raw = _section(raw, "archive", source)
        archive = ArchiveConfig(
            interval_seconds=_positive_float(
                archive_raw.get("interval_seconds", ARCHIVE_INTERVAL_SECONDS),
                "archive.interval_seconds", source,
            ),
            index_key=str(archive_raw.get("index_key", DEFAULT_LOG_INDEX_KEY)),
            db_path=str(archive_raw.get("db_path", DEFAULT_ARCHIVE_DB_PATH) or ""),
            staged_ttl_intervals=_positive_int(
                archive_raw.get("staged_ttl_intervals", STAGED_LOG_TTL_INTERVALS),
                "archive.staged_ttl_intervals", source,
            ),
        )

        # ── Cache ─────────────────────────────────────────────────────────────
        cache_raw = _section(raw, "cache", source)
        cache = CacheConfig(redis_url=cache_raw.get("redis_url"))

        # ── Proxy ─────────────────────────────────────────────────────────────
        proxy_raw = _section(raw, "proxy", source)
        proxy = ProxyConfig(
            host=proxy_raw.get("host", "127.0.0.1"),
            port=proxy_raw.get("port", 8080),
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            proxy=proxy,
            guard=guard,
            rate_limit=rate_limit,
            log_queue=log_queue,
            archive=archive,
            cache=cache,
            path=path,
        )


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate XSSGate configuration.

    If no file is found at any search path, returns default Config (not an
    error). If a file is found but invalid, writes the error to stderr and
    raises SystemExit(1). Env var overrides are applied in both cases.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("XSSGATE_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    if found_path is None:
        logger.info("No config file found — using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        return config

    logger.info("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _config_error(
            f"CONFIG ERROR: Failed to parse {found_path}: {exc}\n"
            "XSSGate refuses to start with an invalid config."
        )
    except OSError as exc:
        _config_error(f"CONFIG ERROR: Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        if raw is None:
            _config_error(
                f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        _config_error(
            f"CONFIG ERROR: {found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    version = raw.get("version")
    if version is None:
        _config_error(
            f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
    if version not in SUPPORTED_VERSIONS:
        _config_error(
            f"CONFIG ERROR: Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)

    if config.proxy.host == "0.0.0.0":
        logger.warning(
            "SECURITY WARNING: XSSGate is configured to bind on 0.0.0.0 (all interfaces)."
        )

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        bypass_paths=config.guard.bypass_paths,
        redis=bool(config.cache.redis_url),
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to a Config object in-place.

    Raises:
        SystemExit(1): If XSSGATE_PORT is set but not a valid integer.
    """
    env_port = os.environ.get("XSSGATE_PORT")
    if env_port is not None:
        try:
            config.proxy.port = int(env_port)
        except ValueError:
            _config_error(
                f"CONFIG ERROR: XSSGATE_PORT environment variable is not a valid "
                f"integer: '{env_port}'"
            )

    env_redis = os.environ.get("XSSGATE_REDIS_URL")
    if env_redis:
        config.cache.redis_url = env_redis

    env_db_path = os.environ.get("XSSGATE_ARCHIVE_DB_PATH")
    if env_db_path is not None:
        config.archive.db_path = env_db_path


# ─── Validation helpers ──────────────────────────────────────────────────────


def _config_error(msg: str) -> NoReturn:
    print(msg, file=sys.stderr)
    raise SystemExit(1)


def _section(raw: dict, name: str, source: str) -> dict:
    value = raw.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        _config_error(f"CONFIG ERROR: {source}: '{name}' must be a mapping.")
    return value


def _positive_int(value: Any, name: str, source: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        _config_error(f"CONFIG ERROR: {source}: {name} must be a positive integer, got {value!r}.")
    return value


def _positive_float(value: Any, name: str, source: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        _config_error(f"CONFIG ERROR: {source}: {name} must be a positive number, got {value!r}.")
    return float(value)


def _str_list(value: Any, name: str, source: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        _config_error(f"CONFIG ERROR: {source}: {name} must be a list of strings.")
    return list(value)
