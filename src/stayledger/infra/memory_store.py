"""In-process allocation store.

Backs local development and tests. A dict keyed by day key, with every
batch applied under one lock so batches stay atomic across threads.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from datetime import datetime
from typing import Callable

from stayledger.domain.allocations import (
    Allocation,
    AllocationConflictError,
    AllocationStore,
    find_conflicts,
    utc_now,
)
from stayledger.domain.day_keys import month_bounds


class InMemoryAllocationStore(AllocationStore):
    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        super().__init__(clock)
        self._records: dict[str, Allocation] = {}
        self._lock = threading.Lock()

    def _write_batch(self, records: list[Allocation], *, exclusive: bool) -> None:
        with self._lock:
            if exclusive and records:
                existing = [
                    self._records[r.day_key] for r in records if r.day_key in self._records
                ]
                conflicts = find_conflicts(existing, records[0].owner_id)
                if conflicts:
                    raise AllocationConflictError(conflicts)
            for record in records:
                self._records[record.day_key] = record

    def _delete_batch(self, day_keys: list[str]) -> None:
        with self._lock:
            for day_key in day_keys:
                self._records.pop(day_key, None)

    def get_many(self, day_keys: Iterable[str]) -> dict[str, Allocation]:
        with self._lock:
            return {k: self._records[k] for k in day_keys if k in self._records}

    def get_by_month(self, year: int, month: int) -> list[Allocation]:
        first_key, last_key = month_bounds(year, month)
        with self._lock:
            return [
                self._records[k]
                for k in sorted(self._records)
                if first_key <= k <= last_key
            ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
