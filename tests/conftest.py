"""Shared pytest fixtures for Stayledger tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_module_state(monkeypatch):
    """Reset the JWKS cache and the store singleton between tests.

    Both are module-level globals; a cached JWKS or a store populated by a
    previous test would leak into the next one.
    """
    import stayledger.api.auth as auth_module
    from stayledger.infra.settings import reset_store

    for name in (
        "ALLOCATION_BACKEND",
        "MAX_STAY_DAYS",
        "ALLOCATION_EXCLUSIVE_WRITES",
        "FIRESTORE_COLLECTION",
        "FIRESTORE_PROJECT",
    ):
        monkeypatch.delenv(name, raising=False)

    auth_module._jwks_cache = None
    auth_module._jwks_cache_time = 0
    reset_store()
    yield
    auth_module._jwks_cache = None
    auth_module._jwks_cache_time = 0
    reset_store()
