"""Day keys: the canonical YYYY-MM-DD identifier of one calendar day.

Day keys are derived from a value's own calendar fields. No timezone
conversion is ever applied, so an aware datetime late in the evening keeps
its local day rather than rolling over to the UTC one.

String equality of day keys is authoritative. Because the format is
zero-padded, lexicographic order equals chronological order, which the
month queries of every store adapter rely on.
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime

_DAY_KEY_PATTERN = re.compile(r"([0-9]{4})-([0-9]{2})-([0-9]{2})")


class InvalidDayKeyError(ValueError):
    """Raised when a string is not a valid YYYY-MM-DD day key."""


def encode_day_key(value: date | datetime) -> str:
    """Format a date or datetime as its YYYY-MM-DD day key."""
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def decode_day_key(day_key: str) -> datetime:
    """Parse a day key back into a naive datetime at local midnight.

    Raises:
        InvalidDayKeyError: If the string is malformed or names an
            impossible date (e.g. 2025-02-30).
    """
    match = _DAY_KEY_PATTERN.fullmatch(day_key)
    if match is None:
        raise InvalidDayKeyError(f"Invalid day key: {day_key!r}")

    year, month, day = (int(part) for part in match.groups())
    try:
        return datetime(year, month, day)
    except ValueError as exc:
        raise InvalidDayKeyError(f"Invalid day key: {day_key!r}") from exc


def month_bounds(year: int, month: int) -> tuple[str, str]:
    """Return the first and last day keys of a month (month is 1-based)."""
    if not 1 <= month <= 12:
        raise ValueError(f"month must be in 1..12, got {month}")
    last_day = calendar.monthrange(year, month)[1]
    return (
        encode_day_key(date(year, month, 1)),
        encode_day_key(date(year, month, last_day)),
    )
