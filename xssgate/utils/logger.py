"""structlog setup for XSSGate.

Modules log through ``get_logger(__name__)`` with a snake_case event name and
keyword fields::

    logger.warning("log_queue_full", dropped_count=3, queue_maxsize=100)

Output settings come from the environment (see ``settings_from_env``):

  DEBUG      "true" lowers the default level to DEBUG and exposes /docs
  LOG_LEVEL  explicit level name, overrides the DEBUG default
  JSON_LOGS  "false" switches to the coloured console renderer
"""

import logging
import os
import sys
from dataclasses import dataclass
from typing import Mapping, Optional

import structlog
from structlog.types import Processor


@dataclass(frozen=True)
class LogSettings:
    debug: bool = False
    level: str = "INFO"
    json_output: bool = True


def settings_from_env(environ: Optional[Mapping[str, str]] = None) -> LogSettings:
    """Read ``LogSettings`` from ``environ`` (default ``os.environ``)."""
    env = os.environ if environ is None else environ
    debug = env.get("DEBUG", "false").lower() == "true"
    return LogSettings(
        debug=debug,
        level=env.get("LOG_LEVEL", "DEBUG" if debug else "INFO").upper(),
        json_output=env.get("JSON_LOGS", "true").lower() == "true",
    )


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Install the structlog pipeline; unknown level names fall back to INFO."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "xssgate") -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


configure_logging()
