"""Removal of runtime and test harness frames from captured stacks."""

from collections.abc import Collection, Iterable

from stackcapture.core.frame_builder import DEFAULT_RULES
from stackcapture.models.stacktrace import Frame


def filter_frames(
    frames: Iterable[Frame],
    excluded_modules: Collection[str] = DEFAULT_RULES.excluded_modules,
) -> list[Frame]:
    """Drop frames whose module is exactly one of `excluded_modules`.

    Surviving frames keep their relative order and are not modified.
    """
    return [frame for frame in frames if frame.module not in excluded_modules]
