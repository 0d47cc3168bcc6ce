"""Calendar conflict detection.

A day conflicts with a proposed range when it already holds an allocation
whose owner differs from the owner being excluded. Without an exclusion
every existing allocation in the range conflicts. Blocks have no owner, so
they always conflict with a booking.

The check is a read. It is not linked to a later create_range; callers that
need the check and the write to be atomic pass exclusive=True to the store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from stayledger.domain.allocations import (
    Allocation,
    AllocationConflictError,
    AllocationStore,
)
from stayledger.domain.ranges import expand_range

logger = logging.getLogger(__name__)


@dataclass
class ConflictReport:
    """Result of a conflict check."""

    conflicts: list[Allocation] = field(default_factory=list)

    @property
    def has_conflict(self) -> bool:
        return bool(self.conflicts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "has_conflict": self.has_conflict,
            "conflicts": [a.to_dict() for a in self.conflicts],
        }


def check_conflicts(
    store: AllocationStore,
    range_start: datetime | date,
    range_end: datetime | date,
    exclude_owner_id: str | None = None,
) -> ConflictReport:
    """Report every allocated day in [range_start, range_end) held by another owner.

    Args:
        store: Allocation store to read from.
        range_start: Proposed check-in (inclusive).
        range_end: Proposed check-out (exclusive).
        exclude_owner_id: Owner whose own days are not conflicts (for date
            edits of an existing booking).

    Returns:
        ConflictReport with conflicting allocations in day order.
    """
    day_keys = expand_range(range_start, range_end)
    if not day_keys:
        return ConflictReport()

    existing = store.get_many(day_keys)

    conflicts = [
        existing[day_key]
        for day_key in day_keys
        if day_key in existing
        and (exclude_owner_id is None or existing[day_key].owner_id != exclude_owner_id)
    ]

    if conflicts:
        logger.warning(
            "calendar conflict detected",
            extra={
                "extra_fields": {
                    "requested_first_day": day_keys[0],
                    "requested_last_day": day_keys[-1],
                    "exclude_owner_id": exclude_owner_id,
                    "conflicting_days": [a.day_key for a in conflicts],
                },
            },
        )

    return ConflictReport(conflicts=conflicts)


def assert_no_conflicts(
    store: AllocationStore,
    range_start: datetime | date,
    range_end: datetime | date,
    exclude_owner_id: str | None = None,
) -> None:
    """Raise AllocationConflictError if check_conflicts finds anything."""
    report = check_conflicts(store, range_start, range_end, exclude_owner_id)
    if report.has_conflict:
        raise AllocationConflictError(report.conflicts)
