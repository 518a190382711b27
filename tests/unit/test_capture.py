"""Tests for the capture entry points."""

import sys
import traceback
from concurrent.futures import ThreadPoolExecutor
from types import FrameType
from typing import Any

import pytest

from stackcapture.config.schema import BridgeConfig, CaptureConfig, FrameConfig, SourceConfig
from stackcapture.core.capture import (
    StackCapture,
    capture_current_stack,
    capture_from_error,
    get_default_capture,
    set_default_capture,
)
from stackcapture.core.source_reader import SourceReader
from stackcapture.models.stacktrace import Stacktrace
from stackcapture.utils.metrics import MetricsRegistry


def outer_helper(capture: StackCapture) -> Stacktrace | None:
    return middle_helper(capture)


def middle_helper(capture: StackCapture) -> Stacktrace | None:
    return capture.capture_current_stack()


def skipping_helper(capture: StackCapture) -> Stacktrace | None:
    return capture.capture_current_stack(skip=1)


def fail() -> None:
    raise ValueError("boom")


class WrappedError(Exception):
    """Error from an error-wrapping library that records its creation stack."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self._stack = list(traceback.walk_stack(sys._getframe(1)))

    def stack_trace(self) -> list[tuple[FrameType, int]]:
        return self._stack


class AddressError(Exception):
    """Error whose capability returns raw integers instead of call sites."""

    def stack_trace(self) -> list[int]:
        return [0x401000, 0x401F00, 0x402A00]


class EmptyStackError(Exception):
    def stack_trace(self) -> list[Any]:
        return []


def wrap_error() -> WrappedError:
    return WrappedError("wrapped")


def record_and_capture(capture: StackCapture) -> tuple[WrappedError, Stacktrace | None]:
    """Record a wrapped error and capture the live stack from the same line."""
    return WrappedError("here"), capture.capture_current_stack()


class LazyProxyError(Exception):
    """Error whose stack_trace attribute fails when looked up."""

    @property
    def stack_trace(self) -> Any:
        raise RuntimeError("proxy target gone")


def assert_well_formed(stacktrace: Stacktrace) -> None:
    for frame in stacktrace.frames:
        assert frame.filename
        assert frame.abs_path
        assert isinstance(frame.in_app, bool)
    assert stacktrace.frames_omitted == (0, 0)


class TestCaptureCurrentStack:
    """Test capturing the calling thread's stack."""

    def test_last_frame_is_caller(self, capture: StackCapture) -> None:
        """Test the innermost frame is the function that requested the capture."""
        stacktrace = capture.capture_current_stack()
        expected_line = sys._getframe().f_lineno - 1

        assert stacktrace is not None
        frame = stacktrace.frames[-1]
        assert frame.function == "TestCaptureCurrentStack.test_last_frame_is_caller"
        assert frame.module == __name__
        assert frame.abs_path == __file__
        assert frame.filename == "test_capture.py"
        assert frame.lineno == expected_line
        assert frame.colno > 0
        assert frame.in_app is True
        assert frame.context_line.strip() == "stacktrace = capture.capture_current_stack()"
        assert frame.post_context[0].strip() == "expected_line = sys._getframe().f_lineno - 1"
        assert len(frame.pre_context) == 5
        assert len(frame.post_context) == 5
        assert_well_formed(stacktrace)

    def test_capture_machinery_is_not_included(self, capture: StackCapture) -> None:
        """Test frames of the capture code itself are not reported."""
        stacktrace = capture.capture_current_stack()

        assert stacktrace is not None
        assert not any(frame.module.startswith("stackcapture") for frame in stacktrace.frames)

    def test_outermost_first(self, capture: StackCapture) -> None:
        """Test frames are ordered from the oldest caller to the capture point."""
        stacktrace = outer_helper(capture)

        assert stacktrace is not None
        assert [frame.function for frame in stacktrace.frames[-3:]] == [
            "TestCaptureCurrentStack.test_outermost_first",
            "outer_helper",
            "middle_helper",
        ]

    def test_skip(self, capture: StackCapture) -> None:
        """Test skipping the caller's own frame."""
        stacktrace = skipping_helper(capture)

        assert stacktrace is not None
        assert stacktrace.frames[-1].function == "TestCaptureCurrentStack.test_skip"

    def test_runtime_and_harness_frames_removed(
        self, capture: StackCapture, metrics: MetricsRegistry
    ) -> None:
        """Test excluded modules never appear in the result."""
        stacktrace = capture.capture_current_stack()

        assert stacktrace is not None
        excluded = capture.rules.excluded_modules
        assert not any(frame.module in excluded for frame in stacktrace.frames)
        assert not any(
            frame.module.startswith(("_pytest", "pluggy", "threading"))
            for frame in stacktrace.frames
        )
        assert metrics.frames_dropped.get(labels={"reason": "filtered"}) >= 1

    def test_every_frame_has_source(self, capture: StackCapture) -> None:
        """Test only frames with readable source are reported."""
        stacktrace = capture.capture_current_stack()

        assert stacktrace is not None
        assert stacktrace.frames
        for frame in stacktrace.frames:
            assert frame.abs_path != "unknown"
            assert frame.pre_context or frame.context_line or frame.post_context

    def test_max_depth(self, reader: SourceReader, metrics: MetricsRegistry) -> None:
        """Test the number of resolved call sites is bounded."""
        capture = StackCapture(
            CaptureConfig(frames=FrameConfig(max_depth=2)),
            source_reader=reader,
            metrics=metrics,
        )

        stacktrace = outer_helper(capture)

        assert stacktrace is not None
        assert [frame.function for frame in stacktrace.frames] == [
            "outer_helper",
            "middle_helper",
        ]

    def test_context_lines_from_config(
        self, reader: SourceReader, metrics: MetricsRegistry
    ) -> None:
        """Test the context window size comes from configuration."""
        capture = StackCapture(
            CaptureConfig(source=SourceConfig(context_lines=1)),
            source_reader=reader,
            metrics=metrics,
        )

        stacktrace = capture.capture_current_stack()

        assert stacktrace is not None
        frame = stacktrace.frames[-1]
        assert len(frame.pre_context) == 1
        assert len(frame.post_context) == 1

    def test_metrics(self, capture: StackCapture, metrics: MetricsRegistry) -> None:
        """Test captures are counted and timed."""
        capture.capture_current_stack()
        capture.capture_current_stack()

        assert metrics.captures.get(labels={"source": "current"}) == 2
        assert metrics.capture_duration.get_stats(labels={"source": "current"})["count"] == 2

    def test_source_shared_between_captures(
        self, capture: StackCapture, metrics: MetricsRegistry
    ) -> None:
        """Test a second capture reuses the cached source files."""
        capture.capture_current_stack()
        misses = metrics.source_cache_misses.get()

        capture.capture_current_stack()

        assert metrics.source_cache_misses.get() == misses

    def test_concurrent_captures_are_identical(self, capture: StackCapture) -> None:
        """Test captures from many threads agree on the same call site."""

        def capture_in_worker(_: int) -> dict[str, Any]:
            stacktrace = capture.capture_current_stack()
            assert stacktrace is not None
            return stacktrace.frames[-1].to_dict()

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(capture_in_worker, range(64)))

        assert all(result == results[0] for result in results)
        assert results[0]["context_line"].strip() == "stacktrace = capture.capture_current_stack()"


class TestCaptureFromError:
    """Test capturing stack traces carried by error values."""

    def test_raised_exception(self, capture: StackCapture) -> None:
        """Test a raised exception reports the path to the raise statement."""
        try:
            fail()
        except ValueError as e:
            err = e

        stacktrace = capture.capture_from_error(err)

        assert stacktrace is not None
        assert [frame.function for frame in stacktrace.frames] == [
            "TestCaptureFromError.test_raised_exception",
            "fail",
        ]
        assert stacktrace.frames[-1].context_line.strip() == 'raise ValueError("boom")'
        assert_well_formed(stacktrace)

    def test_unraised_exception(self, capture: StackCapture, metrics: MetricsRegistry) -> None:
        """Test an exception without a traceback yields nothing."""
        assert capture.capture_from_error(ValueError("never raised")) is None
        assert metrics.captures_empty.get(labels={"source": "error"}) == 1

    @pytest.mark.parametrize("value", [None, 42, "error text", object()])
    def test_values_without_capability(self, capture: StackCapture, value: Any) -> None:
        """Test values lacking the capability yield nothing."""
        assert capture.capture_from_error(value) is None

    def test_exception_tracebacks_disabled(
        self, reader: SourceReader, metrics: MetricsRegistry
    ) -> None:
        """Test native tracebacks are ignored when disabled."""
        capture = StackCapture(
            CaptureConfig(bridge=BridgeConfig(use_exception_tracebacks=False)),
            source_reader=reader,
            metrics=metrics,
        )
        try:
            fail()
        except ValueError as e:
            err = e

        assert capture.capture_from_error(err) is None

    def test_foreign_error(self, capture: StackCapture) -> None:
        """Test an error exposing stack_trace() is bridged."""
        err = wrap_error()

        stacktrace = capture.capture_from_error(err)

        assert stacktrace is not None
        assert len(stacktrace.frames) <= len(err.stack_trace())
        assert [frame.function for frame in stacktrace.frames[-2:]] == [
            "TestCaptureFromError.test_foreign_error",
            "wrap_error",
        ]
        assert stacktrace.frames[-1].context_line.strip() == 'return WrappedError("wrapped")'

    def test_foreign_error_matches_native_capture(self, capture: StackCapture) -> None:
        """Test bridged stacks go through the same pipeline as native captures."""
        err, native = record_and_capture(capture)

        bridged = capture.capture_from_error(err)

        assert bridged is not None and native is not None
        shared = len(native.frames)
        assert [
            (frame.function, frame.lineno, frame.context_line) for frame in bridged.frames[-shared:]
        ] == [(frame.function, frame.lineno, frame.context_line) for frame in native.frames]

    def test_recorded_call_sites_have_no_column(self, capture: StackCapture) -> None:
        """Test frames bridged from recorded call sites report column 0."""
        err, native = record_and_capture(capture)

        bridged = capture.capture_from_error(err)

        assert bridged is not None and native is not None
        assert native.frames[-1].colno > 0
        assert [frame.colno for frame in bridged.frames] == [0] * len(bridged.frames)

    def test_malformed_capability(self, capture: StackCapture) -> None:
        """Test a capability returning raw integers yields nothing."""
        assert capture.capture_from_error(AddressError()) is None

    def test_capability_lookup_raises(
        self, capture: StackCapture, metrics: MetricsRegistry
    ) -> None:
        """Test an error whose stack_trace lookup raises yields nothing."""
        assert capture.capture_from_error(LazyProxyError("lazy")) is None
        assert metrics.foreign_capability_malformed.get() == 1
        assert metrics.captures_empty.get(labels={"source": "error"}) == 1

    def test_empty_capability(self, capture: StackCapture) -> None:
        """Test a capability with no call sites yields nothing."""
        assert capture.capture_from_error(EmptyStackError()) is None

    def test_frames_without_source_are_dropped(self, capture: StackCapture) -> None:
        """Test frames from generated code are left out."""
        namespace: dict[str, Any] = {}
        code = compile("def boom():\n    raise KeyError('x')\n", "<generated>", "exec")
        exec(code, namespace)  # noqa: S102

        try:
            namespace["boom"]()
        except KeyError as e:
            err = e

        stacktrace = capture.capture_from_error(err)

        assert stacktrace is not None
        assert [frame.function for frame in stacktrace.frames] == [
            "TestCaptureFromError.test_frames_without_source_are_dropped",
        ]

    def test_registered_adapter(self, capture: StackCapture) -> None:
        """Test adapters registered on the capture's registry are used."""

        class RecordedError(Exception):
            def __init__(self) -> None:
                super().__init__("recorded")
                self.recorded = list(traceback.walk_stack(sys._getframe(1)))

        capture.registry.register(RecordedError, lambda err: err.recorded)

        stacktrace = capture.capture_from_error(RecordedError())

        assert stacktrace is not None
        assert stacktrace.frames[-1].function == (
            "TestCaptureFromError.test_registered_adapter"
        )


class TestBuildStacktrace:
    """Test running explicit call sites through the pipeline."""

    def test_no_call_sites(self, capture: StackCapture) -> None:
        """Test zero call sites produce no stacktrace."""
        assert capture.build_stacktrace([]) is None

    def test_all_frames_dropped(self, capture: StackCapture) -> None:
        """Test a stack whose frames are all dropped is empty, not missing."""
        namespace: dict[str, Any] = {"sys": sys}
        exec(  # noqa: S102
            compile("def here():\n    return sys._getframe()\n", "<generated>", "exec"),
            namespace,
        )
        frame = namespace["here"]()

        stacktrace = capture.build_stacktrace([(frame, 2)])

        assert stacktrace == Stacktrace(frames=())


class TestDefaultCapture:
    """Test the module-level capture functions."""

    @pytest.fixture(autouse=True)
    def reset_default(self) -> Any:
        yield
        set_default_capture(None)

    def test_default_is_created_once(self) -> None:
        """Test the default capture is reused."""
        assert get_default_capture() is get_default_capture()

    def test_set_default(self, capture: StackCapture) -> None:
        """Test the default capture can be replaced."""
        set_default_capture(capture)

        assert get_default_capture() is capture

    def test_capture_current_stack(self, capture: StackCapture) -> None:
        """Test the module-level function reports its caller."""
        set_default_capture(capture)

        stacktrace = capture_current_stack()

        assert stacktrace is not None
        assert stacktrace.frames[-1].function == (
            "TestDefaultCapture.test_capture_current_stack"
        )

    def test_capture_from_error(self, capture: StackCapture) -> None:
        """Test the module-level error capture."""
        set_default_capture(capture)
        try:
            fail()
        except ValueError as e:
            err = e

        stacktrace = capture_from_error(err)

        assert stacktrace is not None
        assert stacktrace.frames[-1].function == "fail"
        assert capture_from_error(ValueError("never raised")) is None


class TestExtractForeign:
    """Test bridging an error's call sites without capture bookkeeping."""

    def test_extract_foreign(self, capture: StackCapture, metrics: MetricsRegistry) -> None:
        """Test foreign call sites become a Stacktrace."""
        stacktrace = capture.extract_foreign(wrap_error())

        assert stacktrace is not None
        assert stacktrace.frames[-1].function == "wrap_error"
        assert metrics.captures.total() == 0

    def test_extract_foreign_without_capability(self, capture: StackCapture) -> None:
        """Test a plain object yields nothing."""
        assert capture.extract_foreign(object()) is None
