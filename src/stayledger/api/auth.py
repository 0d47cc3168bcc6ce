"""OIDC bearer-token authentication.

Provides:
- verify_token(): Validates a JWT against the issuer's JWKS, returns its claims
- get_current_user(): FastAPI dependency building the caller from the claims

The caller's role and custom permissions travel in the token ("role" and
"permissions" claims); this service keeps no user table.
"""

from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass, field
from typing import Any

import jwt
import requests
from fastapi import HTTPException, Request

# JWKS cache with TTL
_jwks_cache: dict[str, Any] | None = None
_jwks_cache_time: float = 0
_jwks_cache_lock = threading.Lock()
_JWKS_CACHE_TTL = 600  # 10 minutes


@dataclass
class CurrentUser:
    """Authenticated caller."""

    id: str
    email: str | None = None
    name: str | None = None
    role: str | None = None
    custom_permissions: list[str] = field(default_factory=list)


def _get_settings() -> dict[str, Any]:
    authorized_parties_raw = os.environ.get("OIDC_AUTHORIZED_PARTIES", "")
    authorized_parties = [p.strip() for p in authorized_parties_raw.split(",") if p.strip()]

    return {
        "issuer": os.environ.get("OIDC_ISSUER"),
        "audience": os.environ.get("OIDC_AUDIENCE"),
        "jwks_url": os.environ.get("OIDC_JWKS_URL"),
        "authorized_parties": authorized_parties or None,
    }


def _fetch_jwks(jwks_url: str) -> dict[str, Any]:
    resp = requests.get(jwks_url, timeout=10)
    resp.raise_for_status()
    return resp.json()


def _get_jwks(jwks_url: str, force_refresh: bool = False) -> dict[str, Any]:
    """Get JWKS with caching. 503 when the issuer cannot be reached."""
    global _jwks_cache, _jwks_cache_time

    with _jwks_cache_lock:
        now = time.time()
        if not force_refresh and _jwks_cache is not None and (now - _jwks_cache_time) < _JWKS_CACHE_TTL:
            return _jwks_cache

        try:
            _jwks_cache = _fetch_jwks(jwks_url)
        except requests.RequestException:
            raise HTTPException(status_code=503, detail="Auth temporarily unavailable")
        _jwks_cache_time = now
        return _jwks_cache


def _find_key(jwks: dict[str, Any], kid: str) -> dict[str, Any] | None:
    return next((k for k in jwks.get("keys", []) if k.get("kid") == kid), None)


def _decode(token: str, key_data: dict[str, Any], issuer: str, audience: str) -> dict[str, Any]:
    try:
        public_key = jwt.algorithms.RSAAlgorithm.from_jwk(key_data)
    except (ValueError, jwt.InvalidKeyError):
        raise HTTPException(status_code=401, detail="Invalid token")

    return jwt.decode(
        token,
        public_key,
        algorithms=["RS256"],
        issuer=issuer,
        audience=audience,
        options={"require": ["exp", "iss", "aud", "sub"]},
    )


def verify_token(token: str) -> dict[str, Any]:
    """Verify a JWT and return its claims.

    Unknown kid or a bad signature triggers one JWKS refetch (the issuer may
    have rotated keys) before giving up.

    Raises:
        HTTPException: 401 if the token is invalid or OIDC is not configured,
            503 if the JWKS cannot be fetched.
    """
    settings = _get_settings()
    issuer = settings["issuer"]
    audience = settings["audience"]
    jwks_url = settings["jwks_url"]

    if not issuer or not audience or not jwks_url:
        raise HTTPException(status_code=401, detail="OIDC not configured")

    try:
        kid = jwt.get_unverified_header(token).get("kid")
    except jwt.exceptions.DecodeError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if not kid:
        raise HTTPException(status_code=401, detail="Invalid token")

    key_data = _find_key(_get_jwks(jwks_url), kid)
    if key_data is None:
        key_data = _find_key(_get_jwks(jwks_url, force_refresh=True), kid)
    if key_data is None:
        raise HTTPException(status_code=401, detail="Invalid token")

    try:
        payload = _decode(token, key_data, issuer, audience)
    except jwt.InvalidSignatureError:
        key_data = _find_key(_get_jwks(jwks_url, force_refresh=True), kid)
        if key_data is None:
            raise HTTPException(status_code=401, detail="Invalid token")
        try:
            payload = _decode(token, key_data, issuer, audience)
        except jwt.InvalidTokenError:
            raise HTTPException(status_code=401, detail="Invalid token")
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    authorized_parties = settings["authorized_parties"]
    if authorized_parties and "azp" in payload and payload["azp"] not in authorized_parties:
        raise HTTPException(status_code=401, detail="Invalid token")

    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token")

    return payload


def _extract_bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid authorization header")

    return parts[1]


def _user_from_claims(claims: dict[str, Any]) -> CurrentUser:
    permissions = claims.get("permissions") or []
    if not isinstance(permissions, list):
        raise HTTPException(status_code=401, detail="Invalid token")

    return CurrentUser(
        id=str(claims["sub"]),
        email=claims.get("email"),
        name=claims.get("name"),
        role=claims.get("role"),
        custom_permissions=[str(p) for p in permissions],
    )


def get_current_user(request: Request) -> CurrentUser:
    """FastAPI dependency: the authenticated caller.

    Raises:
        HTTPException: 401 if the token is missing or invalid.
    """
    token = _extract_bearer_token(request)
    return _user_from_claims(verify_token(token))
