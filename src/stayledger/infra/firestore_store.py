"""Firestore adapter for the allocation store.

One document per calendar day in a flat collection, the document id being
the day key. Batches go through client.batch(), which commits all writes or
none. Exclusive writes read the target days and write them inside one
Firestore transaction, which the client retries on contention.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any, Callable

from google.api_core import exceptions as gexc
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from stayledger.domain.allocations import (
    Allocation,
    AllocationConflictError,
    AllocationStore,
    AllocationStoreError,
    find_conflicts,
    utc_now,
)
from stayledger.domain.day_keys import month_bounds

DEFAULT_COLLECTION = "bookings"


def _to_document(record: Allocation) -> dict[str, Any]:
    return {
        "day_key": record.day_key,
        "owner_id": record.owner_id,
        "range_start": record.range_start,
        "range_end": record.range_end,
        "occupancy_count": record.occupancy_count,
        "kind": record.kind.value,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
    }


def _from_snapshot(snapshot: Any) -> Allocation:
    data = snapshot.to_dict() or {}
    return Allocation.from_mapping({**data, "day_key": snapshot.id})


class FirestoreAllocationStore(AllocationStore):
    def __init__(
        self,
        client: firestore.Client,
        collection: str = DEFAULT_COLLECTION,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(clock)
        self._client = client
        self._collection = client.collection(collection)

    def _ref(self, day_key: str):
        return self._collection.document(day_key)

    def _write_batch(self, records: list[Allocation], *, exclusive: bool) -> None:
        try:
            if exclusive:
                self._write_exclusive(records)
                return

            batch = self._client.batch()
            for record in records:
                batch.set(self._ref(record.day_key), _to_document(record))
            batch.commit()
        except gexc.GoogleAPIError as exc:
            raise AllocationStoreError(f"Firestore write failed: {exc}") from exc

    def _write_exclusive(self, records: list[Allocation]) -> None:
        refs = [self._ref(record.day_key) for record in records]
        owner_id = records[0].owner_id

        @firestore.transactional
        def _txn(transaction):
            snapshots = self._client.get_all(refs, transaction=transaction)
            existing = [_from_snapshot(s) for s in snapshots if s.exists]
            conflicts = find_conflicts(existing, owner_id)
            if conflicts:
                raise AllocationConflictError(conflicts)
            for ref, record in zip(refs, records):
                transaction.set(ref, _to_document(record))

        try:
            _txn(self._client.transaction())
        except ValueError as exc:
            # transactional() gives up with ValueError once its retries run out
            raise AllocationStoreError(f"Firestore transaction failed: {exc}") from exc

    def _delete_batch(self, day_keys: list[str]) -> None:
        try:
            batch = self._client.batch()
            for day_key in day_keys:
                batch.delete(self._ref(day_key))
            batch.commit()
        except gexc.GoogleAPIError as exc:
            raise AllocationStoreError(f"Firestore delete failed: {exc}") from exc

    def get_many(self, day_keys: Iterable[str]) -> dict[str, Allocation]:
        refs = [self._ref(day_key) for day_key in day_keys]
        if not refs:
            return {}
        try:
            snapshots = list(self._client.get_all(refs))
        except gexc.GoogleAPIError as exc:
            raise AllocationStoreError(f"Firestore lookup failed: {exc}") from exc

        return {s.id: _from_snapshot(s) for s in snapshots if s.exists}

    def get_by_month(self, year: int, month: int) -> list[Allocation]:
        first_key, last_key = month_bounds(year, month)
        query = (
            self._collection.where(filter=FieldFilter("day_key", ">=", first_key))
            .where(filter=FieldFilter("day_key", "<=", last_key))
            .order_by("day_key")
        )
        try:
            snapshots = list(query.stream())
        except gexc.GoogleAPIError as exc:
            raise AllocationStoreError(f"Firestore month query failed: {exc}") from exc

        return [_from_snapshot(s) for s in snapshots]
