"""
FormRules Field Values
======================

Typed field values and the coercion helpers shared by every rule.

A value source hands the engine raw Python values; they are converted
exactly once into one of four shapes:

- Absent:  the field has no value at all
- Scalar:  a single string, number or boolean
- Multi:   a list of strings (multi-select, tag inputs)
- FileSet: a list of uploaded files

Rules then dispatch on the shape instead of sniffing types.
"""

from __future__ import annotations

import math
import mimetypes
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, List, Optional, Tuple, Union


class FieldKind(str, Enum):
    """Declared kind of an input field."""

    TEXT = "text"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    SELECT = "select"
    SELECT_MULTIPLE = "select-multiple"
    FILE = "file"
    TIME = "time"
    DATE = "date"
    NUMBER = "number"
    HIDDEN = "hidden"

    @classmethod
    def parse(cls, value: Union[str, "FieldKind", None]) -> "FieldKind":
        """Parse a kind name, defaulting to TEXT for unknown names."""
        if isinstance(value, FieldKind):
            return value
        if not value:
            return cls.TEXT
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.TEXT


@dataclass(frozen=True)
class FileInfo:
    """
    A selected or uploaded file.

    Attributes:
        name: Original filename
        size: File size in bytes
        mime_type: MIME type reported by the client
        content: File content, when held in memory
        path: Location on disk, when not held in memory
    """

    name: str
    size: int = 0
    mime_type: str = ""
    content: Optional[bytes] = field(default=None, repr=False, compare=False)
    path: Optional[str] = None

    @property
    def extension(self) -> str:
        """Lowercased text after the last dot (whole name if no dot)."""
        return self.name.lower().split(".")[-1]

    async def read(self) -> bytes:
        """Read file content."""
        if self.content is not None:
            return self.content
        if self.path:
            import aiofiles
            async with aiofiles.open(self.path, "rb") as f:
                return await f.read()
        return b""

    @classmethod
    def from_path(
        cls,
        path: Union[str, Path],
        mime_type: Optional[str] = None,
    ) -> "FileInfo":
        """Describe a file on disk without loading it."""
        path = Path(path)
        if mime_type is None:
            mime_type = mimetypes.guess_type(path.name)[0] or ""
        return cls(
            name=path.name,
            size=path.stat().st_size,
            mime_type=mime_type,
            path=str(path),
        )


@dataclass(frozen=True)
class Absent:
    """No value present."""

    def __bool__(self) -> bool:
        return False


@dataclass(frozen=True)
class Scalar:
    """A single string, number or boolean."""

    value: Union[str, int, float, bool, None]


@dataclass(frozen=True)
class Multi:
    """An ordered list of selected strings."""

    items: Tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[str]:
        return iter(self.items)


@dataclass(frozen=True)
class FileSet:
    """An ordered collection of files."""

    files: Tuple[FileInfo, ...] = ()

    def __len__(self) -> int:
        return len(self.files)

    def __iter__(self) -> Iterator[FileInfo]:
        return iter(self.files)

    def first(self) -> Optional[FileInfo]:
        return self.files[0] if self.files else None


FieldValue = Union[Absent, Scalar, Multi, FileSet]

ABSENT = Absent()

_NUMERIC_RE = re.compile(r"[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?")
_FLOAT_PREFIX_RE = re.compile(
    r"[+-]?(Infinity|([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?)"
)
_INT_PREFIX_RE = re.compile(r"[+-]?[0-9]+")
_RADIX_RE = {
    16: re.compile(r"0[xX][0-9a-fA-F]+"),
    8: re.compile(r"0[oO][0-7]+"),
    2: re.compile(r"0[bB][01]+"),
}


def to_field_value(raw: Any, kind: Optional[FieldKind] = None) -> FieldValue:
    """
    Convert a raw value into a FieldValue.

    Args:
        raw: Value as produced by a form, request or mapping
        kind: Declared field kind, used to type empty file lists

    Returns:
        The tagged value
    """
    if isinstance(raw, (Absent, Scalar, Multi, FileSet)):
        return raw
    if raw is None:
        return ABSENT
    if isinstance(raw, FileInfo):
        return FileSet((raw,))
    if isinstance(raw, (list, tuple)):
        if kind == FieldKind.FILE or (raw and all(isinstance(f, FileInfo) for f in raw)):
            return FileSet(tuple(f for f in raw if isinstance(f, FileInfo)))
        return Multi(tuple(to_text(item) for item in raw))
    return Scalar(raw)


def raw_value(value: FieldValue) -> Any:
    """Plain Python form of a value, used for equality checks."""
    if isinstance(value, Scalar):
        return value.value
    if isinstance(value, Multi):
        return list(value.items)
    if isinstance(value, FileSet):
        return list(value.files)
    return None


def is_blank(value: FieldValue) -> bool:
    """
    Check whether a value counts as "not provided".

    Blank values pass every rule except the required family
    and ``accepted``.
    """
    if isinstance(value, Absent):
        return True
    if isinstance(value, Scalar):
        return value.value is None or value.value == ""
    return len(value) == 0


def is_filled(value: FieldValue) -> bool:
    """Check presence the way ``required`` does (whitespace is empty)."""
    if isinstance(value, Absent):
        return False
    if isinstance(value, Scalar):
        if value.value is None:
            return False
        return to_text(value.value).strip() != ""
    return len(value) > 0


def to_text(value: Any) -> str:
    """
    Render a value as text.

    Booleans render as ``true``/``false``, integral floats drop their
    fractional part and sequences are comma-joined.
    """
    if isinstance(value, (Scalar, Multi, FileSet, Absent)):
        value = raw_value(value)
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (list, tuple)):
        return ",".join(to_text(item) for item in value)
    if isinstance(value, FileInfo):
        return value.name
    return str(value)


def to_number(value: Any) -> float:
    """
    Convert a whole value to a number.

    Surrounding whitespace is ignored, an empty string is zero and
    ``0x``/``0o``/``0b`` prefixes are honoured. Returns NaN when the
    value is not numeric as a whole.
    """
    if isinstance(value, Scalar):
        value = value.value
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        return math.nan

    text = value.strip()
    if text == "":
        return 0.0
    if _NUMERIC_RE.fullmatch(text):
        return float(text)
    if text in ("Infinity", "+Infinity"):
        return math.inf
    if text == "-Infinity":
        return -math.inf
    for base, pattern in _RADIX_RE.items():
        if pattern.fullmatch(text):
            return float(int(text[2:], base))
    return math.nan


def parse_float(value: Any) -> float:
    """Parse the leading decimal number of a value, NaN if there is none."""
    if isinstance(value, Scalar):
        value = value.value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    match = _FLOAT_PREFIX_RE.match(to_text(value).lstrip())
    if not match:
        return math.nan
    text = match.group(0)
    if text.endswith("Infinity"):
        return -math.inf if text.startswith("-") else math.inf
    return float(text)


def parse_int(value: Any) -> Union[int, float]:
    """Parse the leading integer of a value, NaN if there is none."""
    match = _INT_PREFIX_RE.match(to_text(value).lstrip())
    if not match:
        return math.nan
    return int(match.group(0))


def is_numeric_value(value: Any) -> bool:
    """
    Check whether a value looks like a finite number.

    Numbers must be finite; strings must match an optionally signed
    decimal with an optional exponent after trimming.
    """
    if isinstance(value, Scalar):
        value = value.value
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    if not isinstance(value, str):
        return False

    text = value.strip()
    if text in ("", ".", "-", "+"):
        return False
    if not _NUMERIC_RE.fullmatch(text):
        return False
    return math.isfinite(float(text))


def split_list(text: str) -> List[str]:
    """Split a comma-separated string into trimmed, non-empty items."""
    return [item.strip() for item in text.split(",") if item.strip() != ""]


def as_list(value: FieldValue) -> Optional[List[str]]:
    """
    Array view of a value.

    Multi values are returned as-is, comma-containing strings are split.
    Returns None for anything else.
    """
    if isinstance(value, Multi):
        return list(value.items)
    if isinstance(value, Scalar) and isinstance(value.value, str) and "," in value.value:
        return split_list(value.value)
    return None
