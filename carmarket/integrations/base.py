"""Shared types for payment gateway adapters."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Protocol


@dataclass(slots=True)
class CheckoutSession:
    """Hosted checkout created at a gateway."""

    id: str
    url: str


class CheckoutState(str, enum.Enum):
    OPEN = "open"
    PAID = "paid"
    EXPIRED = "expired"
    FAILED = "failed"


@dataclass(slots=True)
class CheckoutStatus:
    """What the gateway currently reports for a hosted checkout."""

    id: str
    state: CheckoutState
    amount_minor: int | None = None
    payment_id: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


class CheckoutGateway(Protocol):
    provider: str

    async def create_checkout(
        self,
        *,
        amount: Decimal,
        currency: str,
        description: str,
        customer_email: str,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
        purpose: str,
    ) -> CheckoutSession: ...

    async def retrieve_checkout(self, reference: str) -> CheckoutStatus: ...
