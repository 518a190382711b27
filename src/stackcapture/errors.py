"""Exceptions raised inside the capture pipeline.

None of these escape the public capture functions: each one is raised at the
point of failure and caught at the component boundary, where the affected
frame or capture degrades to a smaller (or empty) result.
"""


class StackCaptureError(Exception):
    """Base exception for all stack capture errors."""


class SourceUnavailableError(StackCaptureError):
    """Source text for a frame cannot be read.

    Attributes:
        path: Path that was requested.
    """

    def __init__(self, message: str, path: str) -> None:
        super().__init__(message)
        self.path = path


class MalformedStackTraceError(StackCaptureError):
    """A foreign stack trace capability returned an unusable value."""
