"""Structured logging configuration.

Capture code logs through structlog at debug level. Frames and captures
that degrade (unreadable source, malformed foreign stack traces) are normal
outcomes and are never logged as errors. Applications embedding the library
call `configure_logging()` once at startup to see them; without it the
library prints nothing.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from enum import StrEnum
from typing import Any, cast

import structlog


class LogFormat(StrEnum):
    """Log output format options."""

    JSON = "json"
    CONSOLE = "console"


class LogLevel(StrEnum):
    """Log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def add_context_processor(
    logger: logging.Logger,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Add library name and version to all log entries.

    Args:
        logger: Logger instance (unused)
        method_name: Log method name (unused)
        event_dict: Event dictionary to process

    Returns:
        Event dictionary with added context
    """
    event_dict.setdefault("library", "stackcapture")

    try:
        from stackcapture._version import __version__

        event_dict.setdefault("version", __version__)
    except (ImportError, RuntimeError):
        pass

    return event_dict


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    log_format: LogFormat | str = LogFormat.JSON,
) -> None:
    """Configure structured logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)

    Example:
        configure_logging(level="DEBUG", log_format="console")
    """
    if isinstance(level, str):
        level = LogLevel(level.upper())
    if isinstance(log_format, str):
        log_format = LogFormat(log_format.lower())

    numeric_level = getattr(logging, level.value)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        add_context_processor,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == LogFormat.JSON:
        shared_processors.append(structlog.processors.JSONRenderer())
    else:
        shared_processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True, exception_formatter=structlog.dev.plain_traceback
            )
        )

    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)

    logging.basicConfig(
        format="%(message)s",
        level=numeric_level,
        handlers=[console_handler],
        force=True,
    )


def get_logger(name: str = "stackcapture") -> structlog.stdlib.BoundLogger:
    """Get a structured logger that emits through the stdlib logger `name`.

    Events go to stdlib logging whether or not structlog has been configured.
    Until the application installs handlers, stdlib logging drops debug
    records, so an unconfigured host sees no output from the library.

    Args:
        name: Stdlib logger name, usually the calling module's `__name__`

    Returns:
        structlog logger bound to the stdlib logger
    """
    return cast(
        structlog.stdlib.BoundLogger,
        structlog.wrap_logger(
            logging.getLogger(name),
            wrapper_class=structlog.stdlib.BoundLogger,
        ),
    )


class LogEventNames:
    """Standard log event names for consistency."""

    # Capture lifecycle
    CAPTURE_COMPLETED = "capture_completed"
    CAPTURE_EMPTY = "capture_empty"

    # Frame pipeline
    FRAMES_FILTERED = "frames_filtered"
    FRAME_SOURCE_UNAVAILABLE = "frame_source_unavailable"

    # Source cache
    SOURCE_CACHE_MISS = "source_cache_miss"
    SOURCE_LOAD_FAILED = "source_load_failed"

    # Foreign stack traces
    FOREIGN_CAPABILITY_MISSING = "foreign_capability_missing"
    FOREIGN_CAPABILITY_MALFORMED = "foreign_capability_malformed"
    FOREIGN_ADAPTER_REGISTERED = "foreign_adapter_registered"
