"""Utility functions and helpers.

- logging: Structured logging configuration
- metrics: In-process capture metrics
"""

from stackcapture.utils.logging import (
    LogEventNames,
    LogFormat,
    LogLevel,
    configure_logging,
    get_logger,
)
from stackcapture.utils.metrics import (
    Counter,
    Histogram,
    MetricsRegistry,
    Timer,
    get_metrics,
)

__all__ = [
    # Metrics
    "Counter",
    "Histogram",
    # Logging
    "LogEventNames",
    "LogFormat",
    "LogLevel",
    "MetricsRegistry",
    "Timer",
    "configure_logging",
    "get_logger",
    "get_metrics",
]
