"""
FormRules Date Handling
=======================

Date parsing for the date family of rules.

- parse_date: lenient parsing of common human and ISO date strings
- check_date_format: two-phase validation for ``date_format:<name>``
  (structural pattern, then calendar validity)
- time_to_minutes: ``HH:MM`` to minutes since midnight
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional, Pattern, Tuple, Union

from formrules.validation.values import Scalar, to_number

# Named format -> structural pattern (matched against the whole value)
FORMAT_PATTERNS: Dict[str, Pattern] = {
    # Year first
    "Y-m-d": re.compile(r"[0-9]{4}-[0-9]{1,2}-[0-9]{1,2}"),
    "YYYY-MM-DD": re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}"),
    "Y/m/d": re.compile(r"[0-9]{4}/[0-9]{1,2}/[0-9]{1,2}"),
    "YYYY/MM/DD": re.compile(r"[0-9]{4}/[0-9]{2}/[0-9]{2}"),
    # Month first (US)
    "m/d/Y": re.compile(r"[0-9]{1,2}/[0-9]{1,2}/[0-9]{4}"),
    "MM/DD/YYYY": re.compile(r"[0-9]{2}/[0-9]{2}/[0-9]{4}"),
    "m-d-Y": re.compile(r"[0-9]{1,2}-[0-9]{1,2}-[0-9]{4}"),
    "MM-DD-YYYY": re.compile(r"[0-9]{2}-[0-9]{2}-[0-9]{4}"),
    # Day first (EU)
    "d/m/Y": re.compile(r"[0-9]{1,2}/[0-9]{1,2}/[0-9]{4}"),
    "DD/MM/YYYY": re.compile(r"[0-9]{2}/[0-9]{2}/[0-9]{4}"),
    "d-m-Y": re.compile(r"[0-9]{1,2}-[0-9]{1,2}-[0-9]{4}"),
    "DD-MM-YYYY": re.compile(r"[0-9]{2}-[0-9]{2}-[0-9]{4}"),
    "d.m.Y": re.compile(r"[0-9]{1,2}\.[0-9]{1,2}\.[0-9]{4}"),
    "DD.MM.YYYY": re.compile(r"[0-9]{2}\.[0-9]{2}\.[0-9]{4}"),
    # Date and time
    "Y-m-d H:i": re.compile(r"[0-9]{4}-[0-9]{1,2}-[0-9]{1,2} [0-9]{1,2}:[0-9]{2}"),
    "YYYY-MM-DD HH:mm": re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2} [0-9]{2}:[0-9]{2}"),
    "Y-m-d H:i:s": re.compile(
        r"[0-9]{4}-[0-9]{1,2}-[0-9]{1,2} [0-9]{1,2}:[0-9]{2}:[0-9]{2}"
    ),
    "YYYY-MM-DD HH:mm:ss": re.compile(
        r"[0-9]{4}-[0-9]{2}-[0-9]{2} [0-9]{2}:[0-9]{2}:[0-9]{2}"
    ),
    # Time only
    "H:i": re.compile(r"[0-9]{1,2}:[0-9]{2}"),
    "HH:mm": re.compile(r"[0-9]{2}:[0-9]{2}"),
    "H:i:s": re.compile(r"[0-9]{1,2}:[0-9]{2}:[0-9]{2}"),
    "HH:mm:ss": re.compile(r"[0-9]{2}:[0-9]{2}:[0-9]{2}"),
    "h:i A": re.compile(r"[0-9]{1,2}:[0-9]{2} (AM|PM)", re.IGNORECASE),
    "hh:mm A": re.compile(r"[0-9]{2}:[0-9]{2} (AM|PM)", re.IGNORECASE),
    # ISO 8601
    "c": re.compile(
        r"[0-9]{4}-[0-9]{2}-[0-9]{2}T[0-9]{2}:[0-9]{2}:[0-9]{2}([+-][0-9]{2}:[0-9]{2}|Z)"
    ),
    "ISO8601": re.compile(
        r"[0-9]{4}-[0-9]{2}-[0-9]{2}T[0-9]{2}:[0-9]{2}:[0-9]{2}(\.[0-9]{3})?"
        r"([+-][0-9]{2}:[0-9]{2}|Z)"
    ),
    # Month and year
    "m/Y": re.compile(r"[0-9]{1,2}/[0-9]{4}"),
    "MM/YYYY": re.compile(r"[0-9]{2}/[0-9]{4}"),
    "m-Y": re.compile(r"[0-9]{1,2}-[0-9]{4}"),
    "MM-YYYY": re.compile(r"[0-9]{2}-[0-9]{4}"),
    # Textual month
    "F j, Y": re.compile(r"[A-Za-z]+ [0-9]{1,2}, [0-9]{4}"),
    "M j, Y": re.compile(r"[A-Za-z]{3} [0-9]{1,2}, [0-9]{4}"),
    "j F Y": re.compile(r"[0-9]{1,2} [A-Za-z]+ [0-9]{4}"),
    "j M Y": re.compile(r"[0-9]{1,2} [A-Za-z]{3} [0-9]{4}"),
}

ISO_FORMATS = frozenset({"c", "ISO8601"})
TIME_FORMATS = frozenset({"H:i", "HH:mm", "H:i:s", "HH:mm:ss", "h:i A", "hh:mm A"})
TWELVE_HOUR_FORMATS = frozenset({"h:i A", "hh:mm A"})
MONTH_YEAR_FORMATS = frozenset({"m/Y", "MM/YYYY", "m-Y", "MM-YYYY"})
TEXT_FORMATS = frozenset({"F j, Y", "M j, Y", "j F Y", "j M Y"})
ROUND_TRIP_FORMATS = frozenset({"Y-m-d", "YYYY-MM-DD"})

MONTH_NAMES = (
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
)

# Fallback layouts for free-form date values, tried in order
LOOSE_FORMATS: List[str] = [
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%m-%d-%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%b %d %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%a %b %d %Y",
    "%a %b %d %Y %H:%M:%S",
]

_ISO_RE = re.compile(
    r"(?P<year>[0-9]{4})"
    r"(?:-(?P<month>[0-9]{2})(?:-(?P<day>[0-9]{2}))?)?"
    r"(?:T(?P<hour>[0-9]{2}):(?P<minute>[0-9]{2})"
    r"(?::(?P<second>[0-9]{2})(?:\.(?P<fraction>[0-9]{1,9}))?)?"
    r"(?P<tz>Z|[+-][0-9]{2}:[0-9]{2})?)?"
)


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso(text: str) -> Optional[datetime]:
    """Parse an ISO 8601 date or date-time string."""
    match = _ISO_RE.fullmatch(text)
    if not match:
        return None
    parts = match.groupdict()
    fraction = (parts["fraction"] or "0")[:6].ljust(6, "0")
    try:
        parsed = datetime(
            int(parts["year"]),
            int(parts["month"] or 1),
            int(parts["day"] or 1),
            int(parts["hour"] or 0),
            int(parts["minute"] or 0),
            int(parts["second"] or 0),
            int(fraction),
        )
    except ValueError:
        return None

    tz = parts["tz"]
    if tz and tz != "Z":
        sign = -1 if tz[0] == "-" else 1
        offset = timedelta(hours=int(tz[1:3]), minutes=int(tz[4:6]))
        parsed -= sign * offset
    return parsed


def parse_date(value: Any) -> Optional[datetime]:
    """
    Parse a value into a datetime.

    Accepts ISO 8601 strings, common numeric layouts (``Y-m-d``,
    ``Y/m/d``, ``m/d/Y``), textual months, RFC 2822 strings and
    numbers (milliseconds since the epoch). Aware results are
    converted to naive UTC.

    Returns:
        Parsed datetime or None
    """
    if isinstance(value, Scalar):
        value = value.value
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            return datetime(1970, 1, 1) + timedelta(milliseconds=value)
        except OverflowError:
            return None
    if isinstance(value, (date, datetime)):
        if not isinstance(value, datetime):
            return datetime(value.year, value.month, value.day)
        return _naive_utc(value)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    parsed = parse_iso(text)
    if parsed is not None:
        return parsed

    for fmt in LOOSE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    try:
        return _naive_utc(parsedate_to_datetime(text))
    except (TypeError, ValueError, IndexError):
        return None


def _month_from_name(name: str, abbreviated: bool) -> Optional[int]:
    name = name.lower()
    if abbreviated:
        names = [m[:3] for m in MONTH_NAMES]
    else:
        names = list(MONTH_NAMES) + [m[:3] for m in MONTH_NAMES]
    if name in names:
        return names.index(name) % 12 + 1
    return None


def _valid_time(hour: int, minute: int, second: int = 0) -> bool:
    return 0 <= hour <= 23 and 0 <= minute <= 59 and 0 <= second <= 59


def _date_parts(text: str, fmt: str) -> Tuple[int, int, int]:
    """Split a numeric date into (year, month, day) using the format's order."""
    separator = "/" if "/" in fmt else "." if "." in fmt else "-"
    parts = [int(p) for p in text.split(separator)]
    lead = fmt[0]
    if lead == "Y":
        return parts[0], parts[1], parts[2]
    if lead in ("m", "M"):
        return parts[2], parts[0], parts[1]
    return parts[2], parts[1], parts[0]


def _check_logic(value: str, fmt: str) -> bool:
    if fmt in ISO_FORMATS:
        return parse_iso(value) is not None

    if fmt in TIME_FORMATS:
        meridiem = None
        text = value
        if fmt in TWELVE_HOUR_FORMATS:
            text, meridiem = value[:-3], value[-2:].upper()
        pieces = [int(p) for p in text.split(":")]
        hour, minute = pieces[0], pieces[1]
        second = pieces[2] if len(pieces) > 2 else 0
        if meridiem:
            if not 1 <= hour <= 12:
                return False
            if meridiem == "PM" and hour != 12:
                hour += 12
            elif meridiem == "AM" and hour == 12:
                hour = 0
        return _valid_time(hour, minute, second)

    if fmt in MONTH_YEAR_FORMATS:
        month = int(re.split(r"[-/]", value)[0])
        return 1 <= month <= 12

    if fmt in TEXT_FORMATS:
        tokens = value.replace(",", "").split()
        if fmt.startswith("j"):
            day, month_name, year = tokens
        else:
            month_name, day, year = tokens
        month = _month_from_name(month_name, abbreviated="M" in fmt)
        if month is None:
            return False
        try:
            date(int(year), month, int(day))
        except ValueError:
            return False
        return True

    date_text, _, time_text = value.partition(" ")
    year, month, day = _date_parts(date_text, fmt)
    try:
        parsed = date(year, month, day)
    except ValueError:
        return False

    if time_text:
        pieces = [int(p) for p in time_text.split(":")]
        if not _valid_time(*pieces):
            return False

    if fmt in ROUND_TRIP_FORMATS:
        normalized = "-".join(
            part.zfill(width) for part, width in zip(date_text.split("-"), (4, 2, 2))
        )
        return parsed.isoformat() == normalized

    return True


def check_date_format(value: str, fmt: str) -> bool:
    """
    Validate a string against a named date format.

    Args:
        value: Candidate string
        fmt: Format name (see FORMAT_PATTERNS)

    Raises:
        KeyError: Unsupported format name

    Returns:
        True if the value matches the layout and is a real date/time
    """
    pattern = FORMAT_PATTERNS[fmt]
    if not pattern.fullmatch(value):
        return False
    try:
        return _check_logic(value, fmt)
    except (ValueError, IndexError):
        return False


def time_to_minutes(value: Any) -> Union[int, float]:
    """Convert ``HH:MM`` to minutes since midnight (NaN if malformed)."""
    pieces = str(value).split(":")
    if len(pieces) < 2:
        return math.nan
    hours, minutes = to_number(pieces[0]), to_number(pieces[1])
    return hours * 60 + minutes
