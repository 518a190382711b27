"""Caching, line-addressable reader over source files.

The reader is shared by every capture in the process. File contents are
loaded once on first request and kept for the lifetime of the reader:
source files are assumed not to change under a running program. Files that
cannot be read are remembered as unavailable, too.
"""

from __future__ import annotations

import tokenize
from collections.abc import MutableMapping
from threading import Lock
from typing import NamedTuple

from cachetools import LRUCache

from stackcapture.errors import SourceUnavailableError
from stackcapture.utils.logging import LogEventNames, get_logger
from stackcapture.utils.metrics import MetricsRegistry, get_metrics

log = get_logger(__name__)

SourceLines = tuple[str, ...]


class ContextWindow(NamedTuple):
    """A window of source lines around a target line.

    Attributes:
        lines: Consecutive source lines, without line terminators.
        index: Position of the target line within `lines`.
    """

    lines: SourceLines
    index: int

    @property
    def pre_context(self) -> SourceLines:
        return self.lines[: self.index]

    @property
    def context_line(self) -> str:
        return self.lines[self.index]

    @property
    def post_context(self) -> SourceLines:
        return self.lines[self.index + 1 :]


def calculate_context_window(
    lines: SourceLines,
    line: int,
    context: int,
) -> ContextWindow | None:
    """Compute the window of up to `2 * context + 1` lines around `line`.

    The window is clipped at both ends of the file, so near the start of a
    file the target is not centered and the pre-context is shorter.

    Args:
        lines: Full contents of the file, one entry per line
        line: Target line number (1-indexed)
        context: Number of lines wanted on each side of the target

    Returns:
        ContextWindow, or None if `line` is outside the file
    """
    target = line - 1
    if target < 0 or target >= len(lines):
        return None

    context = max(context, 0)
    start = max(target - context, 0)
    end = min(target + context + 1, len(lines))

    return ContextWindow(lines=lines[start:end], index=target - start)


def load_source_lines(path: str) -> SourceLines:
    """Read a source file and split it into lines.

    The encoding is detected the way the interpreter does it (PEP 263
    cookie or BOM, defaulting to UTF-8), and line numbering follows the
    interpreter's: only newline sequences end a line.

    Raises:
        SourceUnavailableError: If the file cannot be opened or decoded
    """
    try:
        with tokenize.open(path) as f:
            text = f.read()
    except (OSError, SyntaxError, UnicodeDecodeError, ValueError) as e:
        raise SourceUnavailableError(f"Failed to read {path}: {e}", path=path) from e

    lines = text.split("\n")
    if text.endswith("\n"):
        lines.pop()
    return tuple(lines)


class SourceReader:
    """Process-wide cache of source file lines.

    Safe for concurrent use: loads happen under the reader's lock, and an
    entry is only published once the whole file has been split into lines,
    so no caller ever sees a partial entry. Each file is read from disk at
    most once.

    Example:
        reader = SourceReader()
        window = reader.read_context_lines("/app/main.py", 42, 5)
        if window is not None:
            print(window.context_line)
    """

    def __init__(
        self,
        max_cached_files: int | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        """Initialize the reader.

        Args:
            max_cached_files: Bound on the number of cached files. None keeps
                every file for the lifetime of the reader.
            metrics: Registry for cache statistics (defaults to the global one)
        """
        self._cache: MutableMapping[str, SourceLines | None]
        if max_cached_files is None:
            self._cache = {}
        else:
            self._cache = LRUCache(maxsize=max_cached_files)
        self._lock = Lock()
        self._metrics = metrics or get_metrics()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._cache

    def read_lines(self, path: str) -> SourceLines:
        """Return every line of `path`, loading it on first access.

        Raises:
            SourceUnavailableError: If the file is (or was) unreadable
        """
        with self._lock:
            try:
                lines = self._cache[path]
            except KeyError:
                pass
            else:
                self._metrics.source_cache_hits.inc()
                if lines is None:
                    raise SourceUnavailableError(f"Source unavailable: {path}", path=path)
                return lines

            self._metrics.source_cache_misses.inc()
            log.debug(LogEventNames.SOURCE_CACHE_MISS, path=path)
            try:
                lines = load_source_lines(path)
            except SourceUnavailableError as e:
                log.debug(LogEventNames.SOURCE_LOAD_FAILED, path=path, error=str(e))
                self._cache[path] = None
                raise

            self._cache[path] = lines
            return lines

    def read_context_lines(
        self,
        path: str,
        line: int,
        context: int,
    ) -> ContextWindow | None:
        """Get the lines surrounding `line` in `path`.

        Args:
            path: Path of the source file
            line: Target line number (1-indexed)
            context: Number of lines wanted on each side of the target

        Returns:
            ContextWindow, or None if the file is unreadable or the line is
            out of range
        """
        try:
            lines = self.read_lines(path)
        except SourceUnavailableError:
            return None

        return calculate_context_window(lines, line, context)

    def clear(self) -> None:
        """Forget every cached file."""
        with self._lock:
            self._cache.clear()
