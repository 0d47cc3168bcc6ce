"""Shared test helper functions for Stayledger tests.

Regular functions (not fixtures) importable by conftest.py and test modules.
"""

from __future__ import annotations

import base64
import time
from datetime import datetime, timezone

import jwt
from cryptography.hazmat.primitives.asymmetric import rsa

from stayledger.domain.allocations import Allocation, AllocationKind

ISSUER = "https://auth.example.com"
AUDIENCE = "stayledger-api"
JWKS_URL = "https://auth.example.com/.well-known/jwks.json"

OIDC_ENV = {
    "OIDC_ISSUER": ISSUER,
    "OIDC_AUDIENCE": AUDIENCE,
    "OIDC_JWKS_URL": JWKS_URL,
}

FIXED_NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


def _generate_rsa_keypair():
    """Generate RSA key pair for test JWT signing."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return private_key, private_key.public_key()


def _create_jwks(public_key, kid: str = "test-key-1") -> dict:
    """Create JWKS from public key."""
    public_numbers = public_key.public_numbers()

    def int_to_base64(n: int) -> str:
        byte_length = (n.bit_length() + 7) // 8
        return (
            base64.urlsafe_b64encode(n.to_bytes(byte_length, "big"))
            .rstrip(b"=")
            .decode()
        )

    return {
        "keys": [
            {
                "kty": "RSA",
                "use": "sig",
                "alg": "RS256",
                "kid": kid,
                "n": int_to_base64(public_numbers.n),
                "e": int_to_base64(public_numbers.e),
            }
        ]
    }


def _create_token(
    private_key,
    kid: str = "test-key-1",
    sub: str = "user-123",
    role: str | None = "admin",
    permissions: list[str] | None = None,
    iss: str = ISSUER,
    aud: str = AUDIENCE,
    exp: int | None = None,
    azp: str | None = None,
) -> str:
    """Create signed JWT for testing."""
    now = int(time.time())
    payload: dict = {
        "sub": sub,
        "iss": iss,
        "aud": aud,
        "exp": exp if exp is not None else now + 3600,
        "iat": now,
    }
    if role is not None:
        payload["role"] = role
    if permissions is not None:
        payload["permissions"] = permissions
    if azp:
        payload["azp"] = azp

    return jwt.encode(payload, private_key, algorithm="RS256", headers={"kid": kid})


def make_allocation(
    day_key: str,
    owner_id: str | None = "cust-1",
    kind: AllocationKind = AllocationKind.BOOKING,
    occupancy_count: int = 2,
    range_start: datetime = datetime(2025, 6, 28),
    range_end: datetime = datetime(2025, 7, 2),
) -> Allocation:
    """Build an allocation record without going through a store."""
    return Allocation(
        day_key=day_key,
        owner_id=owner_id,
        range_start=range_start,
        range_end=range_end,
        occupancy_count=occupancy_count,
        kind=kind,
        created_at=FIXED_NOW,
        updated_at=FIXED_NOW,
    )
