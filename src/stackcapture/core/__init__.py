"""Stack capture pipeline.

This module exports the pipeline stages and the capture service:
- SourceReader: Caching reader for source context windows
- build_frame: Turns one resolved call-stack entry into a Frame
- extract_frames / filter_frames / contextify_frames: Pipeline stages
- StackTracerRegistry / foreign_call_sites: Foreign stack trace bridge
- StackCapture: Runs the pipeline for the current stack or an error
"""

from stackcapture.core.bridge import StackTracerRegistry, foreign_call_sites
from stackcapture.core.capture import (
    StackCapture,
    capture_current_stack,
    capture_from_error,
    get_default_capture,
    set_default_capture,
)
from stackcapture.core.enricher import contextify_frames
from stackcapture.core.extractor import CallSite, extract_frames, walk_current_stack
from stackcapture.core.frame_builder import (
    FrameRules,
    build_frame,
    deconstruct_function_name,
    is_in_app_frame,
)
from stackcapture.core.frame_filter import filter_frames
from stackcapture.core.source_reader import ContextWindow, SourceReader

__all__ = [
    "CallSite",
    "ContextWindow",
    "FrameRules",
    "SourceReader",
    "StackCapture",
    "StackTracerRegistry",
    "build_frame",
    "capture_current_stack",
    "capture_from_error",
    "contextify_frames",
    "deconstruct_function_name",
    "extract_frames",
    "filter_frames",
    "get_default_capture",
    "is_in_app_frame",
    "foreign_call_sites",
    "set_default_capture",
    "walk_current_stack",
]
