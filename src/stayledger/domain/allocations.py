"""Allocations and the store contract they live in.

An allocation marks one calendar day as held by a guest booking or by an
administrative block. Exactly one allocation may exist per day key; the
stay bounds are copied onto every day of the stay so a single lookup
reveals the whole reservation.

AllocationStore is the only way the rest of the service touches calendar
state. Concrete adapters implement four primitives (batched write, batched
delete, batched point lookup, month scan); range expansion, timestamps and
the delete-then-create discipline of replace_range live here, once.

Hard rule: a range is never patched in place. Changing a stay's dates means
deleting the whole old range and writing the whole new one, otherwise the
denormalised stay bounds drift apart between days.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable

from stayledger.domain.day_keys import encode_day_key
from stayledger.domain.ranges import InvalidRangeError, expand_range

logger = logging.getLogger(__name__)


class AllocationKind(str, Enum):
    """What holds a day: a guest reservation or an administrative block."""

    BOOKING = "booking"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class Allocation:
    """One calendar day held by a booking or a block."""

    day_key: str
    owner_id: str | None
    range_start: datetime
    range_end: datetime
    occupancy_count: int
    kind: AllocationKind
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "day_key": self.day_key,
            "owner_id": self.owner_id,
            "range_start": self.range_start.isoformat(),
            "range_end": self.range_end.isoformat(),
            "occupancy_count": self.occupancy_count,
            "kind": self.kind.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Allocation":
        """Build an allocation from a stored record (row dict or document)."""
        return cls(
            day_key=data["day_key"],
            owner_id=data.get("owner_id"),
            range_start=data["range_start"],
            range_end=data["range_end"],
            occupancy_count=int(data.get("occupancy_count") or 0),
            kind=AllocationKind(data["kind"]),
            created_at=data["created_at"],
            updated_at=data["updated_at"],
        )


class AllocationValidationError(ValueError):
    """Raised when an allocation request is malformed."""


class AllocationConflictError(Exception):
    """Raised when days in a range are held by a different owner."""

    def __init__(self, conflicts: list[Allocation]) -> None:
        self.conflicts = conflicts
        day_keys = ", ".join(a.day_key for a in conflicts)
        super().__init__(f"{len(conflicts)} day(s) already allocated: {day_keys}")


class AllocationStoreError(Exception):
    """Raised when the backing store fails (network, backend, permissions)."""


class PartialReplaceError(AllocationStoreError):
    """Raised when replace_range released the old range but could not write the new one."""

    def __init__(self, old_day_keys: list[str], new_day_keys: list[str]) -> None:
        self.old_day_keys = old_day_keys
        self.new_day_keys = new_day_keys
        super().__init__(
            "old range was released but the new range could not be written"
        )


def validate_allocation_request(
    *,
    owner_id: str | None,
    occupancy_count: int,
    kind: AllocationKind | str,
) -> AllocationKind:
    """Check owner/occupancy/kind consistency before anything reaches a store.

    Returns:
        The parsed AllocationKind.

    Raises:
        AllocationValidationError: On an unknown kind, a booking without an
            owner, a block carrying an owner or guests, or negative occupancy.
    """
    try:
        parsed = AllocationKind(kind)
    except ValueError as exc:
        raise AllocationValidationError(f"Unknown allocation kind: {kind!r}") from exc

    if occupancy_count < 0:
        raise AllocationValidationError("occupancy_count cannot be negative")

    if parsed is AllocationKind.BOOKING and not owner_id:
        raise AllocationValidationError("a booking requires an owner_id")

    if parsed is AllocationKind.BLOCKED:
        if owner_id is not None:
            raise AllocationValidationError("a blocked range cannot have an owner_id")
        if occupancy_count != 0:
            raise AllocationValidationError("a blocked range cannot have guests")

    return parsed


def find_conflicts(
    existing: Iterable[Allocation],
    owner_id: str | None,
) -> list[Allocation]:
    """Existing allocations held by someone other than owner_id, in day order.

    A write without an owner (a block) conflicts with every existing
    allocation, other blocks included.
    """
    return sorted(
        (a for a in existing if owner_id is None or a.owner_id != owner_id),
        key=lambda a: a.day_key,
    )


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_datetime(value: datetime | date) -> datetime:
    """Promote a bare date to a naive datetime at local midnight."""
    if isinstance(value, datetime):
        return value
    return datetime(value.year, value.month, value.day)


class AllocationStore(ABC):
    """Mapping from day key to at most one allocation.

    Adapters implement the underscore primitives. Every primitive call is a
    single atomic batch against the backing store.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock

    # ── primitives ─────────────────────────────────────────────────────

    @abstractmethod
    def _write_batch(self, records: list[Allocation], *, exclusive: bool) -> None:
        """Write all records atomically.

        With exclusive=True, raise AllocationConflictError and write nothing
        if any target day is held by an owner other than the record's. A
        record without an owner conflicts with any existing allocation.
        """

    @abstractmethod
    def _delete_batch(self, day_keys: list[str]) -> None:
        """Delete all keys atomically; missing keys are ignored."""

    @abstractmethod
    def get_many(self, day_keys: Iterable[str]) -> dict[str, Allocation]:
        """Return the allocations present for the given keys, keyed by day."""

    @abstractmethod
    def get_by_month(self, year: int, month: int) -> list[Allocation]:
        """Return the month's allocations (month is 1-based), ordered by day."""

    # ── range operations ───────────────────────────────────────────────

    def create_range(
        self,
        owner_id: str | None,
        range_start: datetime | date,
        range_end: datetime | date,
        occupancy_count: int,
        kind: AllocationKind | str,
        *,
        exclusive: bool = False,
    ) -> list[Allocation]:
        """Write one allocation per day of [range_start, range_end).

        Does not consult the conflict checker. With exclusive=False a day
        held by another owner is silently overwritten; callers that care
        must check first or pass exclusive=True.

        Raises:
            InvalidRangeError: If the range covers no day.
            AllocationConflictError: Only with exclusive=True.
            AllocationStoreError: On backend failure.
        """
        day_keys = expand_range(range_start, range_end)
        if not day_keys:
            raise InvalidRangeError("range end must be after range start")

        kind = AllocationKind(kind)
        range_start = as_datetime(range_start)
        range_end = as_datetime(range_end)
        now = self._clock()
        records = [
            Allocation(
                day_key=day_key,
                owner_id=owner_id,
                range_start=range_start,
                range_end=range_end,
                occupancy_count=occupancy_count,
                kind=kind,
                created_at=now,
                updated_at=now,
            )
            for day_key in day_keys
        ]

        self._write_batch(records, exclusive=exclusive)

        logger.info(
            "allocation range written",
            extra={
                "extra_fields": {
                    "owner_id": owner_id,
                    "kind": kind.value,
                    "first_day": day_keys[0],
                    "last_day": day_keys[-1],
                    "days": len(day_keys),
                    "exclusive": exclusive,
                },
            },
        )
        return records

    def delete_range(
        self,
        range_start: datetime | date,
        range_end: datetime | date,
    ) -> int:
        """Delete every allocation in [range_start, range_end).

        Idempotent. Returns the number of day keys in the range.
        """
        day_keys = expand_range(range_start, range_end)
        if not day_keys:
            return 0

        self._delete_batch(day_keys)

        logger.info(
            "allocation range deleted",
            extra={
                "extra_fields": {
                    "first_day": day_keys[0],
                    "last_day": day_keys[-1],
                    "days": len(day_keys),
                },
            },
        )
        return len(day_keys)

    def replace_range(
        self,
        owner_id: str | None,
        old_start: datetime | date,
        old_end: datetime | date,
        new_start: datetime | date,
        new_end: datetime | date,
        occupancy_count: int,
        kind: AllocationKind | str,
        *,
        exclusive: bool = False,
    ) -> list[Allocation]:
        """Delete the old range, then create the new one.

        The two phases are separate batches. If the second one fails the old
        range stays deleted and PartialReplaceError is raised, chained to
        the underlying error.

        Raises:
            InvalidRangeError: If the new range covers no day (nothing is
                deleted in that case).
            PartialReplaceError: If the create phase failed.
        """
        old_keys = expand_range(old_start, old_end)
        new_keys = expand_range(new_start, new_end)
        if not new_keys:
            raise InvalidRangeError("range end must be after range start")

        self.delete_range(old_start, old_end)
        try:
            return self.create_range(
                owner_id,
                new_start,
                new_end,
                occupancy_count,
                kind,
                exclusive=exclusive,
            )
        except Exception as exc:
            logger.error(
                "allocation replace left old range released",
                extra={
                    "extra_fields": {
                        "owner_id": owner_id,
                        "old_days": len(old_keys),
                        "new_first_day": new_keys[0],
                        "new_last_day": new_keys[-1],
                        "error": type(exc).__name__,
                    },
                },
            )
            raise PartialReplaceError(old_keys, new_keys) from exc

    # ── lookups ────────────────────────────────────────────────────────

    def get_by_day(self, day: datetime | date) -> Allocation | None:
        """Return the allocation for a calendar day, or None if the day is free."""
        day_key = encode_day_key(day)
        return self.get_many([day_key]).get(day_key)
