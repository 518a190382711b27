"""Bridge for errors that carry an independently captured stack trace.

Error values are inspected at runtime, in order:

1. Structural capability: the value has a callable, zero-argument
   `stack_trace()` method (see `stackcapture.interfaces.StackTracer`).
2. Registered adapters: a `StackTracerRegistry` maps error types to
   callables that pull call sites out of values which do not expose the
   method themselves. Lookup follows the type's MRO.

Every failure along the way (no capability, a capability that raises or
returns something unusable) yields None. Nothing is raised to the caller.
"""

from __future__ import annotations

import functools
import traceback
from collections.abc import Callable, Sequence
from threading import Lock
from types import FrameType
from typing import Any, TypeVar

from stackcapture.core.extractor import CallSite
from stackcapture.errors import MalformedStackTraceError
from stackcapture.interfaces.stack_tracer import has_stack_trace
from stackcapture.utils.logging import LogEventNames, get_logger
from stackcapture.utils.metrics import MetricsRegistry, get_metrics

log = get_logger(__name__)

StackTraceAdapter = Callable[[Any], Sequence[Any] | None]
AdapterT = TypeVar("AdapterT", bound=StackTraceAdapter)


def exception_call_sites(err: BaseException) -> list[CallSite] | None:
    """Call sites recorded in an exception's `__traceback__`, innermost first.

    Returns:
        Call sites, or None if the exception was never raised
    """
    tb = err.__traceback__
    if tb is None:
        return None

    call_sites = list(traceback.walk_tb(tb))
    call_sites.reverse()
    return call_sites


class StackTracerRegistry:
    """Adapters that extract call sites from specific error types.

    Example:
        registry = StackTracerRegistry()

        @registry.register(LegacyError)
        def legacy_stack(err: LegacyError) -> list[CallSite]:
            return err.recorded_frames
    """

    def __init__(self) -> None:
        self._adapters: dict[type, StackTraceAdapter] = {}
        self._lock = Lock()

    @classmethod
    def with_defaults(cls, use_exception_tracebacks: bool = True) -> StackTracerRegistry:
        """Create a registry with the built-in adapters.

        Args:
            use_exception_tracebacks: Register the adapter that reads
                `__traceback__` from native exceptions
        """
        registry = cls()
        if use_exception_tracebacks:
            registry.register(BaseException, exception_call_sites)
        return registry

    def register(
        self,
        error_type: type,
        adapter: StackTraceAdapter | None = None,
    ) -> Any:
        """Register `adapter` for `error_type` and its subclasses.

        Can be used directly or as a decorator when `adapter` is omitted.
        """
        if adapter is None:

            def decorator(func: AdapterT) -> AdapterT:
                self.register(error_type, func)
                return func

            return decorator

        with self._lock:
            self._adapters[error_type] = adapter
        log.debug(LogEventNames.FOREIGN_ADAPTER_REGISTERED, error_type=error_type.__qualname__)
        return adapter

    def unregister(self, error_type: type) -> None:
        with self._lock:
            self._adapters.pop(error_type, None)

    def find_adapter(self, error_type: type) -> StackTraceAdapter | None:
        """Find the adapter for the closest registered base of `error_type`."""
        with self._lock:
            for klass in error_type.__mro__:
                adapter = self._adapters.get(klass)
                if adapter is not None:
                    return adapter
        return None

    def __contains__(self, error_type: object) -> bool:
        with self._lock:
            return error_type in self._adapters


def as_call_site(item: Any) -> CallSite:
    """Normalize one element of a foreign stack trace into a call site.

    Accepts a frame object (resolved at its current line) or a
    `(frame, lineno)` pair.

    Raises:
        MalformedStackTraceError: If the element is neither
    """
    if isinstance(item, FrameType):
        return item, item.f_lineno

    if isinstance(item, tuple) and len(item) == 2:
        frame, lineno = item
        if isinstance(frame, FrameType) and (
            lineno is None or (isinstance(lineno, int) and not isinstance(lineno, bool))
        ):
            return frame, lineno

    raise MalformedStackTraceError(f"Not a call site: {type(item).__name__}")


def normalize_stack_trace(value: Any) -> list[CallSite]:
    """Validate a capability's return value and normalize its elements.

    Raises:
        MalformedStackTraceError: If `value` is not a sequence of call sites
    """
    if isinstance(value, (str, bytes, bytearray)) or not isinstance(value, Sequence):
        raise MalformedStackTraceError(f"Expected a sequence, got {type(value).__name__}")

    return [as_call_site(item) for item in value]


def find_capability(
    err: Any,
    registry: StackTracerRegistry | None = None,
) -> Callable[[], Any] | None:
    """Return a zero-argument callable producing `err`'s stack trace, if any.

    Attribute lookups on `err` run arbitrary code (properties,
    `__getattr__`), so this may raise anything.
    """
    if has_stack_trace(err):
        produce: Callable[[], Any] = err.stack_trace
        return produce

    if registry is not None:
        adapter = registry.find_adapter(type(err))
        if adapter is not None:
            return functools.partial(adapter, err)

    return None


def foreign_call_sites(
    err: Any,
    registry: StackTracerRegistry | None = None,
    metrics: MetricsRegistry | None = None,
) -> list[CallSite] | None:
    """Extract the call sites an error value carries, if any.

    Nothing raised while looking up, calling or validating the capability
    escapes; such errors count as a malformed capability.

    Args:
        err: Arbitrary error value
        registry: Adapters for types without a structural capability
        metrics: Registry for outcome counters (defaults to the global one)

    Returns:
        Call sites innermost first, or None if no usable stack trace exists
    """
    metrics = metrics or get_metrics()
    error_type = type(err).__qualname__

    try:
        produce = find_capability(err, registry)
        value = produce() if produce is not None else None
        call_sites = normalize_stack_trace(value) if value is not None else None
    except Exception as e:
        metrics.foreign_capability_malformed.inc()
        log.debug(
            LogEventNames.FOREIGN_CAPABILITY_MALFORMED,
            error_type=error_type,
            error=repr(e),
        )
        return None

    if call_sites is None:
        metrics.foreign_capability_missing.inc()
        log.debug(LogEventNames.FOREIGN_CAPABILITY_MISSING, error_type=error_type)

    return call_sites
