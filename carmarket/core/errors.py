"""Domain error taxonomy mapped to HTTP responses at the API boundary."""

from __future__ import annotations

from typing import Any


class MarketplaceError(Exception):
    """Base exception for marketplace domain failures."""

    status_code: int = 500
    default_detail: str = "Internal server error"

    def __init__(self, detail: str | None = None, *, context: Any = None) -> None:
        self.detail = detail or self.default_detail
        self.context = context
        super().__init__(self.detail)


class ValidationError(MarketplaceError, ValueError):
    """Malformed or semantically invalid request."""

    status_code = 400
    default_detail = "Invalid request"


class AuthError(MarketplaceError):
    """Missing or invalid credentials."""

    status_code = 401
    default_detail = "Could not validate credentials"


class PermissionDeniedError(AuthError):
    """Authenticated but not allowed (role mismatch or suspended account)."""

    status_code = 403
    default_detail = "Insufficient permissions"


class NotFoundError(MarketplaceError):
    status_code = 404
    default_detail = "Not found"


class ConflictError(MarketplaceError):
    """Concurrent booking or illegal state transition."""

    status_code = 409
    default_detail = "Conflict"


class WebhookVerificationError(MarketplaceError):
    """Webhook payload failed signature verification; nothing was mutated."""

    status_code = 400
    default_detail = "Invalid webhook signature"


class GatewayError(MarketplaceError):
    """Payment gateway call failed; the attempted change was rolled back."""

    status_code = 502
    default_detail = "Payment gateway unavailable"


class ConsistencyError(MarketplaceError):
    """Invariant violation detected between vehicle and transaction state."""

    status_code = 500
    default_detail = "Consistency violation"


__all__ = [
    "AuthError",
    "ConflictError",
    "ConsistencyError",
    "GatewayError",
    "MarketplaceError",
    "NotFoundError",
    "PermissionDeniedError",
    "ValidationError",
    "WebhookVerificationError",
]
