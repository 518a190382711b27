"""Metrics collection for capture observability.

This module tracks how the capture pipeline behaves in a running process:
- Captures by entry point, and captures that resolved nothing
- Frames dropped by the filter and by source enrichment
- Source cache hits and misses
- Foreign stack trace capability outcomes
- Capture duration

Metrics are kept in-process and can be exported in Prometheus text format.
"""

from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from threading import Lock
from typing import Any

LabelKey = tuple[tuple[str, str], ...]


def _label_key(labels: dict[str, str] | None) -> LabelKey:
    return tuple(sorted(labels.items())) if labels else ()


class MetricType(StrEnum):
    """Types of metrics."""

    COUNTER = "counter"
    HISTOGRAM = "histogram"


@dataclass
class MetricValue:
    """A single metric value with metadata."""

    name: str
    type: MetricType
    value: float
    labels: dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    help_text: str = ""


class Counter:
    """A monotonically increasing counter.

    Example:
        counter = Counter("captures_total", "Total captures")
        counter.inc()
        counter.inc(labels={"source": "error"})
    """

    def __init__(self, name: str, help_text: str = "") -> None:
        self.name = name
        self.help_text = help_text
        self._values: dict[LabelKey, float] = defaultdict(float)
        self._lock = Lock()

    def inc(self, value: float = 1, labels: dict[str, str] | None = None) -> None:
        """Increment the counter.

        Args:
            value: Amount to increment (default 1)
            labels: Optional labels for this observation
        """
        if value < 0:
            raise ValueError("Counter can only increase")

        label_key = _label_key(labels)
        with self._lock:
            self._values[label_key] += value

    def get(self, labels: dict[str, str] | None = None) -> float:
        """Get current counter value for the given labels."""
        label_key = _label_key(labels)
        with self._lock:
            return self._values.get(label_key, 0)

    def total(self) -> float:
        """Sum of the counter across all label sets."""
        with self._lock:
            return sum(self._values.values())

    def get_all(self) -> list[MetricValue]:
        """Get all counter values with their labels."""
        with self._lock:
            return [
                MetricValue(
                    name=self.name,
                    type=MetricType.COUNTER,
                    value=value,
                    labels=dict(label_key),
                    help_text=self.help_text,
                )
                for label_key, value in self._values.items()
            ]

    def reset(self) -> None:
        """Drop all recorded values."""
        with self._lock:
            self._values.clear()


class Histogram:
    """A histogram metric for tracking value distributions.

    Example:
        histogram = Histogram("capture_duration_seconds", "Capture duration")
        histogram.observe(0.002)
    """

    DEFAULT_BUCKETS = (0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, float("inf"))

    def __init__(
        self,
        name: str,
        help_text: str = "",
        buckets: tuple[float, ...] | None = None,
    ) -> None:
        self.name = name
        self.help_text = help_text
        self._buckets = buckets or self.DEFAULT_BUCKETS
        self._observations: dict[LabelKey, list[float]] = defaultdict(list)
        self._lock = Lock()

    def observe(self, value: float, labels: dict[str, str] | None = None) -> None:
        """Record an observation."""
        label_key = _label_key(labels)
        with self._lock:
            self._observations[label_key].append(value)

    def get_stats(self, labels: dict[str, str] | None = None) -> dict[str, float]:
        """Get histogram statistics.

        Returns:
            Dictionary with count, sum, min, max, mean
        """
        label_key = _label_key(labels)
        with self._lock:
            values = list(self._observations.get(label_key, []))

        if not values:
            return {"count": 0, "sum": 0, "min": 0, "max": 0, "mean": 0}

        return {
            "count": len(values),
            "sum": sum(values),
            "min": min(values),
            "max": max(values),
            "mean": sum(values) / len(values),
        }

    def get_buckets(self, labels: dict[str, str] | None = None) -> dict[float, int]:
        """Get bucket counts (each value counted in its smallest bucket)."""
        label_key = _label_key(labels)
        with self._lock:
            values = list(self._observations.get(label_key, []))

        bucket_counts: dict[float, int] = dict.fromkeys(self._buckets, 0)
        for value in values:
            for bucket in self._buckets:
                if value <= bucket:
                    bucket_counts[bucket] += 1
                    break

        return bucket_counts

    def reset(self) -> None:
        """Drop all recorded observations."""
        with self._lock:
            self._observations.clear()


class MetricsRegistry:
    """Registry for all capture metrics.

    This is a process-wide singleton.

    Example:
        registry = MetricsRegistry.get_instance()
        registry.captures.inc(labels={"source": "current"})
        metrics = registry.get_all_metrics()
    """

    _instance: MetricsRegistry | None = None
    _lock = Lock()

    def __init__(self) -> None:
        self.captures = Counter(
            "stackcapture_captures_total",
            "Total capture requests by entry point",
        )
        self.captures_empty = Counter(
            "stackcapture_captures_empty_total",
            "Capture requests that produced no stacktrace",
        )
        self.frames_dropped = Counter(
            "stackcapture_frames_dropped_total",
            "Frames removed from captured stacktraces by reason",
        )
        self.source_cache_hits = Counter(
            "stackcapture_source_cache_hits_total",
            "Source file lookups served from the cache",
        )
        self.source_cache_misses = Counter(
            "stackcapture_source_cache_misses_total",
            "Source file lookups that loaded from disk",
        )
        self.foreign_capability_missing = Counter(
            "stackcapture_foreign_capability_missing_total",
            "Errors without a stack trace capability",
        )
        self.foreign_capability_malformed = Counter(
            "stackcapture_foreign_capability_malformed_total",
            "Errors whose stack trace capability returned an unusable value",
        )
        self.capture_duration = Histogram(
            "stackcapture_capture_duration_seconds",
            "Capture duration in seconds",
        )

        self._start_time = time.time()

    @classmethod
    def get_instance(cls) -> MetricsRegistry:
        """Get the singleton metrics registry instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @property
    def counters(self) -> list[Counter]:
        return [
            self.captures,
            self.captures_empty,
            self.frames_dropped,
            self.source_cache_hits,
            self.source_cache_misses,
            self.foreign_capability_missing,
            self.foreign_capability_malformed,
        ]

    def get_uptime_seconds(self) -> float:
        return time.time() - self._start_time

    def get_all_metrics(self) -> dict[str, Any]:
        """Get all metrics as a dictionary."""
        return {
            "uptime_seconds": self.get_uptime_seconds(),
            "captures": {
                "current": self.captures.get(labels={"source": "current"}),
                "error": self.captures.get(labels={"source": "error"}),
                "empty": self.captures_empty.total(),
            },
            "frames_dropped": {
                "filtered": self.frames_dropped.get(labels={"reason": "filtered"}),
                "source_unavailable": self.frames_dropped.get(
                    labels={"reason": "source_unavailable"}
                ),
            },
            "source_cache": {
                "hits": self.source_cache_hits.get(),
                "misses": self.source_cache_misses.get(),
            },
            "foreign": {
                "capability_missing": self.foreign_capability_missing.get(),
                "capability_malformed": self.foreign_capability_malformed.get(),
            },
            "duration_stats": self.capture_duration.get_stats(),
        }

    def reset(self) -> None:
        """Reset every metric. Intended for tests."""
        for counter in self.counters:
            counter.reset()
        self.capture_duration.reset()

    def to_prometheus_format(self) -> str:
        """Export metrics in Prometheus text format."""
        lines: list[str] = []

        for counter in self.counters:
            if counter.help_text:
                lines.append(f"# HELP {counter.name} {counter.help_text}")
            lines.append(f"# TYPE {counter.name} counter")
            for metric in counter.get_all():
                if metric.labels:
                    label_str = ",".join(f'{k}="{v}"' for k, v in metric.labels.items())
                    lines.append(f"{counter.name}{{{label_str}}} {metric.value}")
                else:
                    lines.append(f"{counter.name} {metric.value}")

        stats = self.capture_duration.get_stats()
        lines.append(f"# HELP {self.capture_duration.name} {self.capture_duration.help_text}")
        lines.append(f"# TYPE {self.capture_duration.name} summary")
        lines.append(f"{self.capture_duration.name}_count {stats['count']}")
        lines.append(f"{self.capture_duration.name}_sum {stats['sum']}")

        return "\n".join(lines)


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry."""
    return MetricsRegistry.get_instance()


class Timer:
    """Context manager for timing operations.

    Example:
        with Timer(metrics.capture_duration, labels={"source": "current"}):
            capture.capture_current_stack()
    """

    def __init__(
        self,
        histogram: Histogram,
        labels: dict[str, str] | None = None,
    ) -> None:
        self._histogram = histogram
        self._labels = labels
        self._start: float | None = None

    def __enter__(self) -> Timer:
        self._start = time.perf_counter()
        return self

    def __exit__(self, *args: Any) -> None:
        if self._start is not None:
            duration = time.perf_counter() - self._start
            self._histogram.observe(duration, labels=self._labels)
