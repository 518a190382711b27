"""Data models and transfer objects."""

from .stacktrace import UNKNOWN, Frame, RawFrame, Stacktrace

__all__ = [
    "UNKNOWN",
    "Frame",
    "RawFrame",
    "Stacktrace",
]
