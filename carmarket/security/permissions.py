"""Role helper for explicit authorization checks."""

from __future__ import annotations

from carmarket.core.errors import PermissionDeniedError
from carmarket.models.user import User, UserRole


def require_roles(user: User, allowed: set[UserRole]) -> None:
    """Raise 403 if a user is not a member of the allowed role set."""

    if user.role not in allowed:
        raise PermissionDeniedError("Insufficient permissions")


__all__ = ["require_roles"]
