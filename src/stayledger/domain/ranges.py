"""Half-open stay ranges over calendar days.

A range [start, end) covers every calendar day from start's day up to, but
not including, end's day. The checkout day is never part of the range, which
is what allows a same-day turnover.

Both bounds are truncated to their calendar day before stepping. A stay from
14:00 on the 28th to 15:00 on the 2nd therefore still excludes the 2nd.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

from stayledger.domain.day_keys import encode_day_key


class InvalidRangeError(ValueError):
    """Raised when a range is empty, inverted or too long."""


def _as_day(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def nights(start: date | datetime, end: date | datetime) -> int:
    """Number of days covered by [start, end). Negative when inverted."""
    return (_as_day(end) - _as_day(start)).days


def validate_range(
    start: date | datetime,
    end: date | datetime,
    *,
    max_days: int | None = None,
) -> None:
    """Reject zero-length, inverted or over-long ranges.

    Raises:
        InvalidRangeError: If the range covers no day, or more than
            max_days days when a limit is given.
    """
    length = nights(start, end)
    if length <= 0:
        raise InvalidRangeError("range end must be after range start")
    if max_days is not None and length > max_days:
        raise InvalidRangeError(f"range cannot exceed {max_days} days")


def expand_range(start: date | datetime, end: date | datetime) -> list[str]:
    """Return the day keys of [start, end) in chronological order.

    Returns an empty list when end is not after start.
    """
    current = _as_day(start)
    stop = _as_day(end)
    keys: list[str] = []
    while current < stop:
        keys.append(encode_day_key(current))
        current += timedelta(days=1)
    return keys

