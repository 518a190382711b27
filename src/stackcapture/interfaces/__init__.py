"""Protocol definitions for pluggable integrations."""

from .stack_tracer import StackTracer, has_stack_trace

__all__ = ["StackTracer", "has_stack_trace"]
