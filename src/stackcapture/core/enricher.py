"""Attach surrounding source text to frames.

Frames whose source cannot be located are dropped from the result rather
than reported without context.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable

from stackcapture.core.source_reader import SourceReader
from stackcapture.models.stacktrace import Frame
from stackcapture.utils.logging import LogEventNames, get_logger

log = get_logger(__name__)

DEFAULT_CONTEXT_LINES = 5


def contextify_frame(
    frame: Frame,
    reader: SourceReader,
    context_lines: int = DEFAULT_CONTEXT_LINES,
) -> Frame | None:
    """Return a copy of `frame` with source context, or None if unavailable.

    Args:
        frame: Frame to enrich
        reader: Source reader used to look up the frame's file
        context_lines: Number of lines wanted on each side of the frame's line

    Returns:
        Enriched frame, or None if the source or the line cannot be found
    """
    window = reader.read_context_lines(frame.abs_path, frame.lineno, context_lines)
    if window is None:
        log.debug(
            LogEventNames.FRAME_SOURCE_UNAVAILABLE,
            abs_path=frame.abs_path,
            lineno=frame.lineno,
        )
        return None

    return dataclasses.replace(
        frame,
        pre_context=window.pre_context,
        context_line=window.context_line,
        post_context=window.post_context,
    )


def contextify_frames(
    frames: Iterable[Frame],
    reader: SourceReader,
    context_lines: int = DEFAULT_CONTEXT_LINES,
) -> list[Frame]:
    """Enrich each frame independently, keeping only frames with source.

    Order is preserved and the result is never longer than the input.
    """
    contextified: list[Frame] = []

    for frame in frames:
        enriched = contextify_frame(frame, reader, context_lines)
        if enriched is not None:
            contextified.append(enriched)

    return contextified
