"""Allocations repository - Postgres adapter for the allocation store.

Uses raw SQL with psycopg2 (no ORM). One row per calendar day in
calendar_allocations, keyed by day_key (text, "C" collation so that range
scans on the key follow byte order).

Every batch runs in its own transaction via txn(). Exclusive writes are a
compare-and-set: the upsert only overwrites rows already held by the same
owner, and a short RETURNING count means another owner holds a day. Blocks
have a NULL owner, and NULL never equals NULL, so a block never overwrites an
existing row.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

import psycopg2
from psycopg2.extras import execute_values

from stayledger.domain.allocations import (
    Allocation,
    AllocationConflictError,
    AllocationKind,
    AllocationStore,
    AllocationStoreError,
)
from stayledger.domain.day_keys import month_bounds
from stayledger.infra.db import txn

_COLUMNS = (
    "day_key, owner_id, range_start, range_end, "
    "occupancy_count, kind, created_at, updated_at"
)

_UPSERT = f"""
    INSERT INTO calendar_allocations ({_COLUMNS})
    VALUES %s
    ON CONFLICT (day_key) DO UPDATE SET
        owner_id = EXCLUDED.owner_id,
        range_start = EXCLUDED.range_start,
        range_end = EXCLUDED.range_end,
        occupancy_count = EXCLUDED.occupancy_count,
        kind = EXCLUDED.kind,
        created_at = EXCLUDED.created_at,
        updated_at = EXCLUDED.updated_at
"""

_EXCLUSIVE_SUFFIX = """
    WHERE calendar_allocations.owner_id = EXCLUDED.owner_id
    RETURNING day_key
"""


def _row_to_allocation(row: tuple) -> Allocation:
    return Allocation(
        day_key=row[0],
        owner_id=row[1],
        range_start=row[2],
        range_end=row[3],
        occupancy_count=row[4],
        kind=AllocationKind(row[5]),
        created_at=row[6],
        updated_at=row[7],
    )


def _wall_clock(value: datetime) -> datetime:
    # range columns are timestamp without time zone; keep the local fields
    return value.replace(tzinfo=None)


def _record_to_row(record: Allocation) -> tuple:
    return (
        record.day_key,
        record.owner_id,
        _wall_clock(record.range_start),
        _wall_clock(record.range_end),
        record.occupancy_count,
        record.kind.value,
        record.created_at,
        record.updated_at,
    )


def _select_conflicts(cur, records: list[Allocation]) -> list[Allocation]:
    owner_id = records[0].owner_id
    sql = f"""
        SELECT {_COLUMNS}
        FROM calendar_allocations
        WHERE day_key = ANY(%s)
    """
    params: tuple = ([r.day_key for r in records],)
    if owner_id is not None:
        sql += " AND owner_id IS DISTINCT FROM %s"
        params += (owner_id,)
    cur.execute(sql + " ORDER BY day_key", params)
    return [_row_to_allocation(row) for row in cur.fetchall()]


class PostgresAllocationStore(AllocationStore):
    def _write_batch(self, records: list[Allocation], *, exclusive: bool) -> None:
        rows = [_record_to_row(r) for r in records]
        try:
            with txn() as cur:
                if not exclusive:
                    execute_values(cur, _UPSERT, rows)
                    return

                written = execute_values(cur, _UPSERT + _EXCLUSIVE_SUFFIX, rows, fetch=True)
                if len(written) < len(rows):
                    conflicts = _select_conflicts(cur, records)
                    if not conflicts:
                        # The blocking row went away before the SELECT.
                        raise AllocationStoreError("allocation write raced a delete, retry")
                    # Raising inside txn() rolls back the rows already upserted.
                    raise AllocationConflictError(conflicts)
        except psycopg2.Error as exc:
            raise AllocationStoreError(f"allocation write failed: {exc}") from exc

    def _delete_batch(self, day_keys: list[str]) -> None:
        try:
            with txn() as cur:
                cur.execute(
                    "DELETE FROM calendar_allocations WHERE day_key = ANY(%s)",
                    (day_keys,),
                )
        except psycopg2.Error as exc:
            raise AllocationStoreError(f"allocation delete failed: {exc}") from exc

    def get_many(self, day_keys: Iterable[str]) -> dict[str, Allocation]:
        keys = list(day_keys)
        if not keys:
            return {}
        try:
            with txn() as cur:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM calendar_allocations WHERE day_key = ANY(%s)",
                    (keys,),
                )
                rows = cur.fetchall()
        except psycopg2.Error as exc:
            raise AllocationStoreError(f"allocation lookup failed: {exc}") from exc

        return {row[0]: _row_to_allocation(row) for row in rows}

    def get_by_month(self, year: int, month: int) -> list[Allocation]:
        first_key, last_key = month_bounds(year, month)
        try:
            with txn() as cur:
                cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM calendar_allocations
                    WHERE day_key >= %s AND day_key <= %s
                    ORDER BY day_key
                    """,
                    (first_key, last_key),
                )
                rows = cur.fetchall()
        except psycopg2.Error as exc:
            raise AllocationStoreError(f"allocation month scan failed: {exc}") from exc

        return [_row_to_allocation(row) for row in rows]
