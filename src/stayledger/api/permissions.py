"""Permission checks for calendar endpoints.

A caller's effective permissions are the union of the permissions granted
by their role and the custom permissions attached to them individually.

Provides:
- ROLE_PERMISSIONS: system roles and what they grant
- effective_permissions(): role + custom merge
- require_permission(): FastAPI dependency for endpoint authorization
"""

from __future__ import annotations

from typing import Callable, Iterable

from fastapi import Depends, HTTPException

from stayledger.api.auth import CurrentUser, get_current_user

BOOKINGS_VIEW = "bookings.view"
BOOKINGS_CREATE = "bookings.create"
BOOKINGS_EDIT = "bookings.edit"
BOOKINGS_DELETE = "bookings.delete"

ALL_PERMISSIONS = frozenset({BOOKINGS_VIEW, BOOKINGS_CREATE, BOOKINGS_EDIT, BOOKINGS_DELETE})

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    "admin": ALL_PERMISSIONS,
    "manager": frozenset({BOOKINGS_VIEW, BOOKINGS_CREATE, BOOKINGS_EDIT}),
    "staff": frozenset({BOOKINGS_VIEW}),
}


def effective_permissions(role: str | None, custom_permissions: Iterable[str] = ()) -> set[str]:
    """Role permissions merged with custom ones. Unknown roles grant nothing."""
    granted = set(ROLE_PERMISSIONS.get(role or "", frozenset()))
    granted.update(custom_permissions)
    return granted


def require_permission(permission: str) -> Callable[..., CurrentUser]:
    """Create a dependency that requires one permission.

    Usage:
        @router.get("/month")
        def month(user: CurrentUser = Depends(require_permission("bookings.view"))):
            ...
    """
    if permission not in ALL_PERMISSIONS:
        raise ValueError(f"Unknown permission: {permission}")

    def dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if permission not in effective_permissions(user.role, user.custom_permissions):
            raise HTTPException(status_code=403, detail="Forbidden")
        return user

    return dependency
