"""Conversion of resolved call-stack entries into structured frames.

A runtime reports each entry of a call stack under a single combined symbol,
`<module>.<function>`. Dots inside the function part (methods, nested
functions) are encoded with a generated-name marker so the module boundary
stays unambiguous; building a frame splits the symbol back apart and turns
the markers into dots again:

    pkg.mod.Class·method          -> module "pkg.mod", function "Class.method"
    pkg/sub.(*T).Method           -> module "pkg/sub", function "(*T).Method"
    runtime/debug.*T·ptrmethod    -> module "runtime/debug", function "*T.ptrmethod"
"""

from __future__ import annotations

import os
from collections.abc import Collection, Iterable
from dataclasses import dataclass

from stackcapture.config.schema import FrameConfig
from stackcapture.models.stacktrace import UNKNOWN, Frame, RawFrame

#: Character the runtime resolver uses in place of "." inside function names.
GENERATED_NAME_MARKER = "·"


@dataclass(frozen=True)
class FrameRules:
    """Classification and naming rules applied while building frames.

    Attributes:
        generated_name_marker: Marker replaced by "." in function names.
        main_modules: Modules that are always application code.
        vendor_markers: Substrings marking a module as third-party code.
        excluded_modules: Modules dropped from captured stacks (runtime
            internals and test harness plumbing).
    """

    generated_name_marker: str
    main_modules: frozenset[str]
    vendor_markers: tuple[str, ...]
    excluded_modules: frozenset[str]

    @classmethod
    def from_config(cls, config: FrameConfig) -> FrameRules:
        return cls(
            generated_name_marker=config.generated_name_marker,
            main_modules=frozenset(config.main_modules),
            vendor_markers=tuple(config.vendor_markers),
            excluded_modules=frozenset(config.excluded_modules),
        )


DEFAULT_RULES = FrameRules.from_config(FrameConfig())


def extract_filename_from_path(path: str) -> str:
    """Return the base name of `path`."""
    return os.path.basename(path)


def deconstruct_function_name(
    name: str,
    marker: str = GENERATED_NAME_MARKER,
) -> tuple[str, str]:
    """Split a combined symbol into `(module, function)`.

    When the symbol carries a path (contains "/"), the module ends at the
    first "." after the last "/". Otherwise the split is on the last ".".
    A symbol without a separator has an empty module and is returned whole
    as the function.

    Args:
        name: Combined `<module>.<function>` symbol
        marker: Generated-name marker to normalize to "." in the function

    Returns:
        Tuple of (module, function)
    """
    slash = name.rfind("/")
    if slash != -1:
        dot = name.find(".", slash + 1)
    else:
        dot = name.rfind(".")

    if dot == -1:
        module, function = "", name
    else:
        module, function = name[:dot], name[dot + 1 :]

    return module, function.replace(marker, ".")


def is_in_app_frame(
    module: str,
    main_modules: Collection[str] = DEFAULT_RULES.main_modules,
    vendor_markers: Iterable[str] = DEFAULT_RULES.vendor_markers,
) -> bool:
    """Classify a module as application code.

    This is a best-effort heuristic: a module counts as third-party when its
    name contains one of the vendor markers, so application modules that
    happen to contain a marker (say, `myapp.vendors`) are misclassified.

    Args:
        module: Module portion of the frame's symbol
        main_modules: Modules that are always application code
        vendor_markers: Substrings identifying vendored code

    Returns:
        True if the frame belongs to the application
    """
    if module in main_modules:
        return True

    return not any(marker in module for marker in vendor_markers)


def build_frame(raw: RawFrame, rules: FrameRules = DEFAULT_RULES) -> Frame:
    """Build a Frame from one resolved call-stack entry.

    Missing file information falls back to "unknown" for both the file name
    and the absolute path.

    Args:
        raw: Resolved entry (combined symbol, file, line, column)
        rules: Naming and classification rules

    Returns:
        Frame without source context
    """
    if raw.file:
        filename = extract_filename_from_path(raw.file) or UNKNOWN
        abs_path = raw.file
    else:
        filename = UNKNOWN
        abs_path = UNKNOWN

    module = ""
    function = raw.function
    if function:
        module, function = deconstruct_function_name(function, rules.generated_name_marker)

    return Frame(
        function=function,
        module=module,
        filename=filename,
        abs_path=abs_path,
        lineno=raw.line,
        colno=raw.column,
        in_app=is_in_app_frame(module, rules.main_modules, rules.vendor_markers),
    )
