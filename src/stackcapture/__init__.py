"""Structured stack trace capture for error reporting."""

from stackcapture._version import __version__
from stackcapture.config import CaptureConfig, load_config
from stackcapture.core import (
    SourceReader,
    StackCapture,
    StackTracerRegistry,
    capture_current_stack,
    capture_from_error,
    get_default_capture,
    set_default_capture,
)
from stackcapture.interfaces import StackTracer
from stackcapture.models import Frame, Stacktrace

__all__ = [
    "CaptureConfig",
    "Frame",
    "SourceReader",
    "StackCapture",
    "StackTracer",
    "StackTracerRegistry",
    "Stacktrace",
    "__version__",
    "capture_current_stack",
    "capture_from_error",
    "get_default_capture",
    "load_config",
    "set_default_capture",
]
