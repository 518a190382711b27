"""Resolution of live call-stack entries and frame extraction.

CPython exposes the call stack as frame objects. A *call site* is a frame
paired with the line it is executing, the same `(frame, lineno)` pairs that
`traceback.walk_stack()` and `traceback.walk_tb()` produce. Call sites are
resolved into `RawFrame` entries, which `extract_frames` turns into an
ordered list of frames.
"""

from __future__ import annotations

import itertools
import sys
import traceback
from collections.abc import Iterable, Iterator
from types import CodeType, FrameType

from stackcapture.core.frame_builder import (
    DEFAULT_RULES,
    GENERATED_NAME_MARKER,
    FrameRules,
    build_frame,
)
from stackcapture.models.stacktrace import Frame, RawFrame

CallSite = tuple[FrameType, int | None]

DEFAULT_MAX_DEPTH = 100


def walk_current_stack(skip: int = 0, max_depth: int = DEFAULT_MAX_DEPTH) -> list[CallSite]:
    """Capture the call sites of the calling thread, innermost first.

    Args:
        skip: Number of frames above the caller of this function to skip;
            0 starts at the caller itself
        max_depth: Maximum number of call sites to return

    Returns:
        Call sites, or an empty list if the stack is shallower than `skip`
    """
    try:
        frame = sys._getframe(skip + 1)
    except ValueError:
        return []

    return list(itertools.islice(traceback.walk_stack(frame), max_depth))


def _column(code: CodeType, lasti: int, line: int) -> int:
    """Return the 1-based column of the instruction at `lasti`, or 0.

    The column is only reported when the instruction starts on `line`.
    """
    if lasti < 0:
        return 0

    position = next(itertools.islice(code.co_positions(), lasti // 2, None), None)
    if position is None:
        return 0

    start_line, _end_line, start_col, _end_col = position
    if start_line != line or start_col is None:
        return 0
    return start_col + 1


def symbol_for_frame(frame: FrameType, marker: str = GENERATED_NAME_MARKER) -> str:
    """Build the combined `<module>.<function>` symbol for a frame.

    Dots in the qualified name are encoded with `marker`, so
    `Class.method` in module `pkg.mod` becomes `pkg.mod.Class·method`.
    """
    code = frame.f_code
    function = code.co_qualname.replace(".", marker)

    module = frame.f_globals.get("__name__")
    if not isinstance(module, str) or not module:
        return function
    return f"{module}.{function}"


def resolve_call_site(
    frame: FrameType,
    lineno: int | None,
    marker: str = GENERATED_NAME_MARKER,
    lasti: int | None = None,
) -> RawFrame:
    """Resolve one call site into a RawFrame.

    A frame keeps running after a call site is recorded, so its current
    `f_lasti` says nothing about the recorded line. The column is only
    resolved from an instruction offset taken together with `lineno`.

    Args:
        frame: Frame object of the call site
        lineno: Line being executed (None when the interpreter has none)
        marker: Generated-name marker used to encode the symbol
        lasti: Offset of the instruction executing at `lineno`; without
            it the column is 0

    Returns:
        RawFrame with the combined symbol, file, line and column
    """
    line = lineno or 0
    return RawFrame(
        function=symbol_for_frame(frame, marker),
        file=frame.f_code.co_filename,
        line=line,
        column=_column(frame.f_code, lasti, line) if line and lasti is not None else 0,
    )


def resolve_call_sites(
    call_sites: Iterable[CallSite],
    marker: str = GENERATED_NAME_MARKER,
    live: bool = False,
) -> Iterator[RawFrame]:
    """Resolve call sites in the order given.

    Set `live` only for a stack walked just now by the resolving thread,
    whose frames are all still suspended at their call sites.
    """
    for frame, lineno in call_sites:
        lasti = frame.f_lasti if live else None
        yield resolve_call_site(frame, lineno, marker, lasti)


def extract_frames(
    raw_frames: Iterable[RawFrame],
    rules: FrameRules = DEFAULT_RULES,
) -> list[Frame]:
    """Build frames from resolved entries given innermost first.

    The result is ordered outermost first: index 0 is the oldest caller and
    the last frame is the one closest to the capture point.

    Args:
        raw_frames: Resolved entries, innermost (closest to capture) first
        rules: Naming and classification rules

    Returns:
        Frames, outermost first (empty for empty input)
    """
    frames = [build_frame(raw, rules) for raw in raw_frames]
    frames.reverse()
    return frames
