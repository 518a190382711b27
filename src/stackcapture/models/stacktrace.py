"""Data models for captured stack traces.

The serialized shape of these models is consumed by the remote error
collector, so `to_dict()` key names must not change.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, NamedTuple

UNKNOWN = "unknown"


class RawFrame(NamedTuple):
    """One resolved call-stack entry, before it is turned into a Frame.

    `function` is the combined symbol `<module>.<function>` as reported by
    the runtime, with generated-name markers still in place.
    """

    function: str
    file: str
    line: int
    column: int = 0


@dataclass(frozen=True)
class Frame:
    """A single frame of a captured stack trace."""

    function: str
    module: str
    filename: str
    abs_path: str
    lineno: int
    colno: int = 0
    in_app: bool = True
    symbol: str = ""
    package: str = ""
    pre_context: tuple[str, ...] = ()
    context_line: str = ""
    post_context: tuple[str, ...] = ()
    vars: Mapping[str, Any] | None = field(default=None, compare=False)

    @property
    def has_context(self) -> bool:
        """Whether source context has been attached to this frame."""
        return bool(self.context_line or self.pre_context or self.post_context)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the collector's frame schema."""
        return {
            "function": self.function,
            "symbol": self.symbol,
            "module": self.module,
            "package": self.package,
            "filename": self.filename,
            "abs_path": self.abs_path,
            "lineno": self.lineno,
            "colno": self.colno,
            "pre_context": list(self.pre_context),
            "context_line": self.context_line,
            "post_context": list(self.post_context),
            "in_app": self.in_app,
            "vars": dict(self.vars) if self.vars is not None else None,
        }


@dataclass(frozen=True)
class Stacktrace:
    """An ordered sequence of frames, oldest caller first.

    The last frame is the one closest to where the capture happened.
    """

    frames: tuple[Frame, ...] = ()
    frames_omitted: tuple[int, int] = (0, 0)

    @property
    def innermost_frame(self) -> Frame:
        """The frame closest to the capture point (last frame)."""
        if not self.frames:
            raise ValueError("Stacktrace has no frames")
        return self.frames[-1]

    @property
    def in_app_frames(self) -> tuple[Frame, ...]:
        """Frames classified as application code."""
        return tuple(frame for frame in self.frames if frame.in_app)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the collector's stacktrace schema."""
        return {
            "frames": [frame.to_dict() for frame in self.frames],
            "frames_omitted": list(self.frames_omitted),
        }

    def to_json(self, **kwargs: Any) -> str:
        """Serialize to a JSON string.

        Frame variables that are not JSON-serializable fall back to `repr()`.
        """
        kwargs.setdefault("default", repr)
        return json.dumps(self.to_dict(), **kwargs)
