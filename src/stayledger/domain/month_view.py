"""Month projection for calendar rendering."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any

from stayledger.domain.allocations import AllocationKind, AllocationStore
from stayledger.domain.day_keys import encode_day_key


class DayStatus(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class CalendarDay:
    day_key: str
    status: DayStatus
    occupancy_count: int = 0
    owner_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "day_key": self.day_key,
            "status": self.status.value,
            "occupancy_count": self.occupancy_count,
            "owner_id": self.owner_id,
        }


def project_month(store: AllocationStore, year: int, month: int) -> list[CalendarDay]:
    """One CalendarDay per day of the month (month is 1-based).

    Days without an allocation are available with zero occupancy.
    """
    by_day = {a.day_key: a for a in store.get_by_month(year, month)}
    days_in_month = calendar.monthrange(year, month)[1]

    grid: list[CalendarDay] = []
    for day in range(1, days_in_month + 1):
        day_key = encode_day_key(date(year, month, day))
        allocation = by_day.get(day_key)
        if allocation is None:
            grid.append(CalendarDay(day_key=day_key, status=DayStatus.AVAILABLE))
        elif allocation.kind is AllocationKind.BLOCKED:
            grid.append(CalendarDay(day_key=day_key, status=DayStatus.BLOCKED))
        else:
            grid.append(
                CalendarDay(
                    day_key=day_key,
                    status=DayStatus.BOOKED,
                    occupancy_count=allocation.occupancy_count,
                    owner_id=allocation.owner_id,
                )
            )
    return grid
