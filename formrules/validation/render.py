"""
FormRules Rendering
===================

Plain-text and JSON renderers for validation errors.

The engine never displays anything itself; these helpers turn the
flattened error map into output for terminals, logs or API bodies.
"""

from __future__ import annotations

from typing import Mapping, Union

import orjson

from formrules.validation.validator import ErrorStore

MODES = ("single", "multi")
FORMATS = ("text", "json")


def render_errors(
    errors: Union[ErrorStore, Mapping[str, str]],
    mode: str = "single",
    fmt: str = "text",
) -> str:
    """
    Render errors for display.

    Args:
        errors: ErrorStore or flattened field -> message map
        mode: "single" (one block with a heading) or "multi" (one line per error)
        fmt: "text" or "json"

    Returns:
        Rendered text; empty when there are no errors (text format)

    Raises:
        ValueError: Unknown mode or format
    """
    if mode not in MODES:
        raise ValueError(f"Unknown render mode: {mode!r}")
    if fmt not in FORMATS:
        raise ValueError(f"Unknown render format: {fmt!r}")

    flat = errors.flatten() if isinstance(errors, ErrorStore) else dict(errors)

    if fmt == "json":
        return orjson.dumps(flat, option=orjson.OPT_INDENT_2).decode()

    if not flat:
        return ""

    if mode == "single":
        lines = ["Validation Errors:"]
        lines.extend(f"  - {message}" for message in flat.values())
        return "\n".join(lines)

    return "\n".join(f"Error: {message}" for message in flat.values())
