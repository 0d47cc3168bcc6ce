"""Calendar allocation endpoints.

POST   /calendar/conflicts          → conflict check           (bookings.view)
POST   /calendar/allocations        → allocate a range         (bookings.create)
PUT    /calendar/allocations        → move a range to new dates (bookings.edit)
DELETE /calendar/allocations        → release a range (204)    (bookings.delete)
POST   /calendar/blocks             → block dates              (bookings.create)
GET    /calendar/month              → allocations of a month   (bookings.view)
GET    /calendar/month/grid         → per-day status of a month (bookings.view)
GET    /calendar/day                → allocation of one day    (bookings.view)

Months are 0-based on the wire (0 = January), matching the calendar UI.
Writes always run the conflict check first; with ALLOCATION_EXCLUSIVE_WRITES
the store also rejects, atomically, any day taken in between.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Union

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel, ConfigDict, Field

from stayledger.api.auth import CurrentUser
from stayledger.api.permissions import (
    BOOKINGS_CREATE,
    BOOKINGS_DELETE,
    BOOKINGS_EDIT,
    BOOKINGS_VIEW,
    require_permission,
)
from stayledger.domain.allocations import (
    Allocation,
    AllocationConflictError,
    AllocationKind,
    AllocationStore,
    AllocationValidationError,
    PartialReplaceError,
    validate_allocation_request,
)
from stayledger.domain.conflicts import assert_no_conflicts, check_conflicts
from stayledger.domain.day_keys import encode_day_key
from stayledger.domain.month_view import project_month
from stayledger.domain.ranges import InvalidRangeError, expand_range, validate_range
from stayledger.infra.settings import get_settings, get_store
from stayledger.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/calendar", tags=["calendar"])

DateOrDateTime = Union[datetime, date]


# ── Schemas ───────────────────────────────────────────────────────────────────


class ConflictCheckRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    range_start: DateOrDateTime
    range_end: DateOrDateTime
    exclude_owner_id: str | None = None


class AllocateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    owner_id: str | None = None
    range_start: DateOrDateTime
    range_end: DateOrDateTime
    occupancy_count: int = Field(default=0, ge=0)
    kind: Literal["booking", "blocked"] = "booking"


class ReplaceRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    owner_id: str | None = None
    old_start: DateOrDateTime
    old_end: DateOrDateTime
    new_start: DateOrDateTime
    new_end: DateOrDateTime
    occupancy_count: int = Field(default=0, ge=0)
    kind: Literal["booking", "blocked"] = "booking"


class BlockRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    range_start: DateOrDateTime
    range_end: DateOrDateTime
    reason: str | None = None


# ── Helpers ───────────────────────────────────────────────────────────────────


def _validate_range_or_422(start: date, end: date) -> None:
    try:
        validate_range(start, end, max_days=get_settings().max_stay_days)
    except InvalidRangeError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


def _validate_request_or_422(owner_id: str | None, occupancy_count: int, kind: str) -> AllocationKind:
    try:
        return validate_allocation_request(
            owner_id=owner_id,
            occupancy_count=occupancy_count,
            kind=kind,
        )
    except AllocationValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


def _conflict_response(conflicts: list[Allocation]) -> HTTPException:
    return HTTPException(
        status_code=409,
        detail={
            "message": "Selected dates are not available",
            "conflicts": [a.to_dict() for a in conflicts],
        },
    )


def _write_range(
    store: AllocationStore,
    *,
    owner_id: str | None,
    range_start: date,
    range_end: date,
    occupancy_count: int,
    kind: AllocationKind,
) -> list[Allocation]:
    """Check, then write. Raises 409 when any day belongs to someone else."""
    try:
        assert_no_conflicts(store, range_start, range_end, exclude_owner_id=owner_id)
        return store.create_range(
            owner_id,
            range_start,
            range_end,
            occupancy_count,
            kind,
            exclusive=get_settings().exclusive_writes,
        )
    except AllocationConflictError as exc:
        raise _conflict_response(exc.conflicts)


# ── POST /calendar/conflicts ──────────────────────────────────────────────────


@router.post("/conflicts")
def conflict_check(
    body: ConflictCheckRequest,
    user: CurrentUser = Depends(require_permission(BOOKINGS_VIEW)),
    store: AllocationStore = Depends(get_store),
) -> dict:
    """Report every day in the range already held by another owner.

    Days held by exclude_owner_id are ignored (used when editing a booking).
    """
    _validate_range_or_422(body.range_start, body.range_end)
    report = check_conflicts(store, body.range_start, body.range_end, body.exclude_owner_id)
    return report.to_dict()


# ── POST /calendar/allocations ────────────────────────────────────────────────


@router.post("/allocations", status_code=201)
def allocate_range(
    body: AllocateRequest,
    user: CurrentUser = Depends(require_permission(BOOKINGS_CREATE)),
    store: AllocationStore = Depends(get_store),
) -> dict:
    """Allocate every day of [range_start, range_end) to a booking or a block.

    Fails with 409 if any day is held by a different owner, 422 on an
    invalid range or an inconsistent owner/kind/occupancy.
    """
    _validate_range_or_422(body.range_start, body.range_end)
    kind = _validate_request_or_422(body.owner_id, body.occupancy_count, body.kind)

    records = _write_range(
        store,
        owner_id=body.owner_id,
        range_start=body.range_start,
        range_end=body.range_end,
        occupancy_count=body.occupancy_count,
        kind=kind,
    )

    logger.info(
        "range allocated",
        extra={
            "extra_fields": {
                "user_id": user.id,
                "owner_id": body.owner_id,
                "kind": kind.value,
                "days": len(records),
            }
        },
    )

    return {
        "owner_id": body.owner_id,
        "kind": kind.value,
        "day_keys": [r.day_key for r in records],
    }


# ── PUT /calendar/allocations ─────────────────────────────────────────────────


@router.put("/allocations")
def replace_range(
    body: ReplaceRequest,
    user: CurrentUser = Depends(require_permission(BOOKINGS_EDIT)),
    store: AllocationStore = Depends(get_store),
) -> dict:
    """Move an allocation to new dates: release the old range, write the new one.

    The new range is checked first; days of the old range held by the same
    owner never count as conflicts. If writing the new range fails after the
    old one was released, responds 500 listing the released days.
    """
    _validate_range_or_422(body.old_start, body.old_end)
    _validate_range_or_422(body.new_start, body.new_end)
    kind = _validate_request_or_422(body.owner_id, body.occupancy_count, body.kind)

    old_keys = set(expand_range(body.old_start, body.old_end))
    report = check_conflicts(store, body.new_start, body.new_end)
    conflicts = [
        a
        for a in report.conflicts
        if a.owner_id != body.owner_id
        or (body.owner_id is None and a.day_key not in old_keys)
    ]
    if conflicts:
        raise _conflict_response(conflicts)

    try:
        records = store.replace_range(
            body.owner_id,
            body.old_start,
            body.old_end,
            body.new_start,
            body.new_end,
            body.occupancy_count,
            kind,
            exclusive=get_settings().exclusive_writes,
        )
    except PartialReplaceError as exc:
        raise HTTPException(
            status_code=500,
            detail={
                "message": "Old dates were released but the new dates could not be saved",
                "released_day_keys": exc.old_day_keys,
            },
        )

    logger.info(
        "range replaced",
        extra={
            "extra_fields": {
                "user_id": user.id,
                "owner_id": body.owner_id,
                "old_days": len(old_keys),
                "new_days": len(records),
            }
        },
    )

    return {
        "owner_id": body.owner_id,
        "kind": kind.value,
        "day_keys": [r.day_key for r in records],
    }


# ── DELETE /calendar/allocations ──────────────────────────────────────────────


@router.delete("/allocations", status_code=204)
def deallocate_range(
    range_start: date = Query(..., description="First day (YYYY-MM-DD, inclusive)"),
    range_end: date = Query(..., description="Last day (YYYY-MM-DD, exclusive)"),
    user: CurrentUser = Depends(require_permission(BOOKINGS_DELETE)),
    store: AllocationStore = Depends(get_store),
) -> Response:
    """Release every day of the range. Days that are already free are ignored."""
    _validate_range_or_422(range_start, range_end)
    released = store.delete_range(range_start, range_end)

    logger.info(
        "range released",
        extra={"extra_fields": {"user_id": user.id, "days": released}},
    )
    return Response(status_code=204)


# ── POST /calendar/blocks ─────────────────────────────────────────────────────


@router.post("/blocks", status_code=201)
def block_dates(
    body: BlockRequest,
    user: CurrentUser = Depends(require_permission(BOOKINGS_CREATE)),
    store: AllocationStore = Depends(get_store),
) -> dict:
    """Withhold dates from booking (maintenance, owner use).

    Fails with 409 if any day is already booked or blocked.
    """
    _validate_range_or_422(body.range_start, body.range_end)

    records = _write_range(
        store,
        owner_id=None,
        range_start=body.range_start,
        range_end=body.range_end,
        occupancy_count=0,
        kind=AllocationKind.BLOCKED,
    )

    logger.info(
        "dates blocked",
        extra={
            "extra_fields": {
                "user_id": user.id,
                "days": len(records),
                "has_reason": bool(body.reason),
            }
        },
    )

    return {"kind": AllocationKind.BLOCKED.value, "day_keys": [r.day_key for r in records]}


# ── GET /calendar/month, /calendar/month/grid, /calendar/day ──────────────────


@router.get("/month")
def month_view(
    year: int = Query(..., ge=1, le=9999),
    month: int = Query(..., ge=0, le=11, description="0 = January"),
    user: CurrentUser = Depends(require_permission(BOOKINGS_VIEW)),
    store: AllocationStore = Depends(get_store),
) -> dict:
    """All allocations whose day falls in the month."""
    allocations = store.get_by_month(year, month + 1)
    return {
        "year": year,
        "month": month,
        "allocations": [a.to_dict() for a in allocations],
    }


@router.get("/month/grid")
def month_grid(
    year: int = Query(..., ge=1, le=9999),
    month: int = Query(..., ge=0, le=11, description="0 = January"),
    user: CurrentUser = Depends(require_permission(BOOKINGS_VIEW)),
    store: AllocationStore = Depends(get_store),
) -> dict:
    """One entry per day of the month: available, booked or blocked."""
    days = project_month(store, year, month + 1)
    return {
        "year": year,
        "month": month,
        "days": [d.to_dict() for d in days],
    }


@router.get("/day")
def day_lookup(
    day: date = Query(..., alias="date", description="Day (YYYY-MM-DD)"),
    user: CurrentUser = Depends(require_permission(BOOKINGS_VIEW)),
    store: AllocationStore = Depends(get_store),
) -> dict:
    allocation = store.get_by_day(day)
    return {
        "day_key": encode_day_key(day),
        "allocation": allocation.to_dict() if allocation else None,
    }
