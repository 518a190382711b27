"""Shared test fixtures for stackcapture."""

from collections.abc import Callable
from pathlib import Path

import pytest

from stackcapture.core.capture import StackCapture
from stackcapture.core.source_reader import SourceReader
from stackcapture.utils.metrics import MetricsRegistry

SourceFileFactory = Callable[..., Path]


@pytest.fixture
def metrics() -> MetricsRegistry:
    """Return an isolated metrics registry."""
    return MetricsRegistry()


@pytest.fixture
def reader(metrics: MetricsRegistry) -> SourceReader:
    """Return a source reader with an empty cache."""
    return SourceReader(metrics=metrics)


@pytest.fixture
def capture(reader: SourceReader, metrics: MetricsRegistry) -> StackCapture:
    """Return a StackCapture with its own source cache and metrics."""
    return StackCapture(source_reader=reader, metrics=metrics)


@pytest.fixture
def make_source_file(tmp_path: Path) -> SourceFileFactory:
    """Return a factory writing numbered source files ("line 1", "line 2", ...)."""

    def _make(name: str = "module.py", line_count: int = 20, content: str | None = None) -> Path:
        path = tmp_path / name
        if content is None:
            content = "".join(f"line {i}\n" for i in range(1, line_count + 1))
        path.write_text(content, encoding="utf-8")
        return path

    return _make
