"""
FormRules Image Dimensions
==========================

Asynchronous image dimension checks for the ``dimensions`` rule.

Decoding runs in a worker thread so validation of the remaining fields
is never blocked by image I/O.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from io import BytesIO
from typing import Dict, Iterable, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from formrules.validation.values import FileInfo

DECODABLE_TYPES = frozenset({
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/bmp",
})

CONSTRAINT_KEYS = ("min_width", "max_width", "min_height", "max_height", "width", "height")


@dataclass(frozen=True)
class DimensionConstraints:
    """Pixel constraints parsed from ``dimensions`` parameters."""

    min_width: Optional[int] = None
    max_width: Optional[int] = None
    min_height: Optional[int] = None
    max_height: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None

    @classmethod
    def parse(cls, params: Iterable[str]) -> "DimensionConstraints":
        """
        Parse ``key=value`` parameters.

        Unknown keys and malformed pairs are ignored; zero values
        impose no constraint.
        """
        values: Dict[str, int] = {}
        for param in params:
            key, _, raw = param.partition("=")
            key, raw = key.strip(), raw.strip()
            if key in CONSTRAINT_KEYS and raw:
                try:
                    values[key] = int(raw)
                except ValueError:
                    continue
        return cls(**values)

    def allows(self, width: int, height: int) -> bool:
        """Check a measured size against the constraints."""
        if self.min_width and width < self.min_width:
            return False
        if self.max_width and width > self.max_width:
            return False
        if self.min_height and height < self.min_height:
            return False
        if self.max_height and height > self.max_height:
            return False
        if self.width and width != self.width:
            return False
        if self.height and height != self.height:
            return False
        return True


def measure(data: bytes) -> Tuple[int, int]:
    """
    Decode image bytes and return (width, height).

    Raises:
        UnidentifiedImageError: Bytes are not a supported image
    """
    with Image.open(BytesIO(data)) as image:
        return image.size


async def check_dimensions(file: FileInfo, constraints: DimensionConstraints) -> bool:
    """
    Measure a file and compare it against constraints.

    Unreadable or undecodable files fail the check.
    """
    try:
        data = await file.read()
        width, height = await asyncio.to_thread(measure, data)
    except (OSError, UnidentifiedImageError, ValueError):
        return False
    return constraints.allows(width, height)
