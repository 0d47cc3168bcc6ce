"""Runtime settings and the allocation store singleton.

Settings come from environment variables and are read when first needed.
The store is built once per process; tests reset it with reset_store() or
override the get_store dependency on the app.
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from typing import Literal

from stayledger.domain.allocations import AllocationStore

Backend = Literal["memory", "postgres", "firestore"]

_BACKENDS = ("memory", "postgres", "firestore")
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    backend: Backend = "memory"
    firestore_collection: str = "bookings"
    firestore_project: str | None = None
    max_stay_days: int = 365
    exclusive_writes: bool = True


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise RuntimeError(f"{name} must be a boolean, got {raw!r}")


def get_settings() -> Settings:
    """Load settings from the environment.

    Raises:
        RuntimeError: On an unknown backend or a malformed number/boolean.
    """
    backend = os.environ.get("ALLOCATION_BACKEND", "memory").strip().lower()
    if backend not in _BACKENDS:
        raise RuntimeError(f"ALLOCATION_BACKEND must be one of {_BACKENDS}, got {backend!r}")

    raw_max = os.environ.get("MAX_STAY_DAYS", "365")
    try:
        max_stay_days = int(raw_max)
    except ValueError:
        raise RuntimeError(f"MAX_STAY_DAYS must be an integer, got {raw_max!r}")
    if max_stay_days <= 0:
        raise RuntimeError("MAX_STAY_DAYS must be positive")

    return Settings(
        backend=backend,  # type: ignore[arg-type]
        firestore_collection=os.environ.get("FIRESTORE_COLLECTION", "bookings"),
        firestore_project=os.environ.get("FIRESTORE_PROJECT") or None,
        max_stay_days=max_stay_days,
        exclusive_writes=_parse_bool(
            "ALLOCATION_EXCLUSIVE_WRITES",
            os.environ.get("ALLOCATION_EXCLUSIVE_WRITES", "true"),
        ),
    )


def build_store(settings: Settings) -> AllocationStore:
    """Construct the adapter selected by settings.backend."""
    if settings.backend == "postgres":
        from stayledger.infra.repositories.allocations_repository import (
            PostgresAllocationStore,
        )

        return PostgresAllocationStore()

    if settings.backend == "firestore":
        from google.cloud import firestore

        from stayledger.infra.firestore_store import FirestoreAllocationStore

        client = firestore.Client(project=settings.firestore_project)
        return FirestoreAllocationStore(client, settings.firestore_collection)

    from stayledger.infra.memory_store import InMemoryAllocationStore

    return InMemoryAllocationStore()


# Module-level store (one per process)
_store: AllocationStore | None = None
_store_lock = threading.Lock()


def get_store() -> AllocationStore:
    """FastAPI dependency: the process-wide allocation store."""
    global _store

    with _store_lock:
        if _store is None:
            _store = build_store(get_settings())
        return _store


def reset_store() -> None:
    global _store

    with _store_lock:
        _store = None
