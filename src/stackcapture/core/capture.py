"""Capture entry points.

A capture turns call sites into a finished Stacktrace:

    call sites -> resolve -> extract -> filter -> contextify -> Stacktrace

`StackCapture` owns the process-wide SourceReader and the adapter registry.
Applications construct one at startup and share it. The module-level
`capture_current_stack()` and `capture_from_error()` use a default instance
created on first use.
"""

from __future__ import annotations

from collections.abc import Iterable
from threading import Lock
from typing import Any

from stackcapture.config.schema import CaptureConfig
from stackcapture.core.bridge import StackTracerRegistry, foreign_call_sites
from stackcapture.core.enricher import contextify_frames
from stackcapture.core.extractor import (
    CallSite,
    extract_frames,
    resolve_call_sites,
    walk_current_stack,
)
from stackcapture.core.frame_builder import FrameRules
from stackcapture.core.frame_filter import filter_frames
from stackcapture.core.source_reader import SourceReader
from stackcapture.models.stacktrace import Stacktrace
from stackcapture.utils.logging import LogEventNames, get_logger
from stackcapture.utils.metrics import MetricsRegistry, Timer, get_metrics

log = get_logger(__name__)


class StackCapture:
    """Captures structured stack traces.

    Capture never raises: stacks that cannot be resolved produce None, and
    frames without readable source are left out of the result.

    Example:
        capture = StackCapture(config)
        stacktrace = capture.capture_current_stack()
        if stacktrace is not None:
            payload = stacktrace.to_dict()
    """

    def __init__(
        self,
        config: CaptureConfig | None = None,
        source_reader: SourceReader | None = None,
        registry: StackTracerRegistry | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        """Initialize the capture service.

        Args:
            config: Capture configuration (defaults to CaptureConfig())
            source_reader: Shared source cache; a new one is built from
                config when omitted
            registry: Adapters for errors without a structural capability;
                the built-in adapters are used when omitted
            metrics: Metrics registry (defaults to the global one)
        """
        self._config = config or CaptureConfig()
        self._rules = FrameRules.from_config(self._config.frames)
        self._metrics = metrics or get_metrics()
        self._reader = source_reader or SourceReader(
            max_cached_files=self._config.source.max_cached_files,
            metrics=self._metrics,
        )
        self._registry = registry or StackTracerRegistry.with_defaults(
            use_exception_tracebacks=self._config.bridge.use_exception_tracebacks,
        )

    @property
    def config(self) -> CaptureConfig:
        return self._config

    @property
    def rules(self) -> FrameRules:
        return self._rules

    @property
    def source_reader(self) -> SourceReader:
        return self._reader

    @property
    def registry(self) -> StackTracerRegistry:
        return self._registry

    def capture_current_stack(self, skip: int = 0) -> Stacktrace | None:
        """Capture the calling thread's stack.

        The stack starts at the caller of this method.

        Args:
            skip: Additional caller frames to leave out

        Returns:
            Stacktrace, or None if no call sites could be resolved
        """
        labels = {"source": "current"}
        self._metrics.captures.inc(labels=labels)

        with Timer(self._metrics.capture_duration, labels=labels):
            call_sites = walk_current_stack(skip + 1, self._config.frames.max_depth)
            return self._build_stacktrace(call_sites, "current", live=True)

    def capture_from_error(self, err: Any) -> Stacktrace | None:
        """Capture the stack trace an error value carries.

        Args:
            err: Arbitrary error value

        Returns:
            Stacktrace, or None if the error has no usable stack trace
        """
        labels = {"source": "error"}
        self._metrics.captures.inc(labels=labels)

        with Timer(self._metrics.capture_duration, labels=labels):
            return self.extract_foreign(err)

    def extract_foreign(self, err: Any) -> Stacktrace | None:
        """Bridge the call sites an error value carries into a Stacktrace.

        The error is checked for a `stack_trace()` capability, then for a
        registered adapter. Missing or unusable capabilities yield None.
        """
        call_sites = foreign_call_sites(err, self._registry, self._metrics)
        if call_sites is None:
            self._metrics.captures_empty.inc(labels={"source": "error"})
            return None
        return self.build_stacktrace(call_sites, source="error")

    def build_stacktrace(
        self,
        call_sites: Iterable[CallSite],
        source: str = "call_sites",
    ) -> Stacktrace | None:
        """Run call sites (innermost first) through the frame pipeline.

        Call sites recorded earlier carry no instruction offset, so their
        frames report column 0.

        Args:
            call_sites: `(frame, lineno)` pairs, innermost first
            source: Label used in logs and metrics

        Returns:
            Stacktrace ordered outermost first, or None for no call sites
        """
        return self._build_stacktrace(call_sites, source, live=False)

    def _build_stacktrace(
        self,
        call_sites: Iterable[CallSite],
        source: str,
        live: bool,
    ) -> Stacktrace | None:
        raw_frames = list(
            resolve_call_sites(call_sites, self._rules.generated_name_marker, live=live)
        )
        if not raw_frames:
            self._metrics.captures_empty.inc(labels={"source": source})
            log.debug(LogEventNames.CAPTURE_EMPTY, source=source)
            return None

        frames = extract_frames(raw_frames, self._rules)

        kept = filter_frames(frames, self._rules.excluded_modules)
        filtered_count = len(frames) - len(kept)
        if filtered_count:
            self._metrics.frames_dropped.inc(filtered_count, labels={"reason": "filtered"})
            log.debug(LogEventNames.FRAMES_FILTERED, source=source, count=filtered_count)

        contextified = contextify_frames(kept, self._reader, self._config.source.context_lines)
        unavailable_count = len(kept) - len(contextified)
        if unavailable_count:
            self._metrics.frames_dropped.inc(
                unavailable_count, labels={"reason": "source_unavailable"}
            )

        log.debug(
            LogEventNames.CAPTURE_COMPLETED,
            source=source,
            resolved=len(raw_frames),
            frames=len(contextified),
        )

        return Stacktrace(frames=tuple(contextified))


_default_capture: StackCapture | None = None
_default_lock = Lock()


def get_default_capture() -> StackCapture:
    """Get the process-wide default StackCapture, creating it on first use."""
    global _default_capture
    if _default_capture is None:
        with _default_lock:
            if _default_capture is None:
                _default_capture = StackCapture()
    return _default_capture


def set_default_capture(capture: StackCapture | None) -> None:
    """Replace the default StackCapture (None resets to lazy creation)."""
    global _default_capture
    with _default_lock:
        _default_capture = capture


def capture_current_stack(skip: int = 0) -> Stacktrace | None:
    """Capture the caller's stack with the default StackCapture."""
    return get_default_capture().capture_current_stack(skip + 1)


def capture_from_error(err: Any) -> Stacktrace | None:
    """Capture an error's own stack trace with the default StackCapture."""
    return get_default_capture().capture_from_error(err)
