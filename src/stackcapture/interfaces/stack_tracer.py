"""Capability interface for errors that carry their own stack trace."""

from collections.abc import Sequence
from types import FrameType
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class StackTracer(Protocol):
    """An error value that captured its own call stack.

    Error-wrapping libraries satisfy this protocol structurally: any object
    with a zero-argument `stack_trace()` method qualifies, without importing
    or subclassing anything from stackcapture.
    """

    def stack_trace(self) -> Sequence[FrameType | tuple[FrameType, int | None]]:
        """
        Return the call stack recorded when the error was created.

        Returns:
            Call sites ordered innermost first. Each element is a frame
            object or a `(frame, lineno)` pair, as produced by
            `traceback.walk_stack()` / `traceback.walk_tb()`.
        """
        ...


def has_stack_trace(value: Any) -> bool:
    """Check whether `value` exposes a callable `stack_trace` capability."""
    return callable(getattr(value, "stack_trace", None))
