"""Specialized settings adapters for integrations."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel

from carmarket.core.config import get_settings


class PaymentSettings(BaseModel):
    """Slim view of payment-related configuration."""

    stripe_secret_key: str | None = None
    stripe_webhook_secret: str | None = None
    dodo_api_key: str | None = None
    dodo_webhook_secret: str | None = None
    dodo_base_url: str = "https://test.dodopayments.com"
    dodo_product_id: str | None = None
    payments_webhook_verify: bool = True
    currency: str = "inr"
    booking_percentage: Decimal = Decimal("0.05")
    booking_hold_minutes: int = 30
    frontend_url: str = "http://localhost:5173"


def get_payment_settings() -> PaymentSettings:
    """Return payment-specific configuration."""

    settings = get_settings()
    return PaymentSettings(
        stripe_secret_key=settings.stripe_secret_key or None,
        stripe_webhook_secret=settings.stripe_webhook_secret or None,
        dodo_api_key=settings.dodo_api_key or None,
        dodo_webhook_secret=settings.dodo_webhook_secret or None,
        dodo_base_url=settings.dodo_base_url,
        dodo_product_id=settings.dodo_product_id or None,
        payments_webhook_verify=settings.payments_webhook_verify,
        currency=settings.payment_currency,
        booking_percentage=settings.booking_percentage,
        booking_hold_minutes=settings.booking_hold_minutes,
        frontend_url=settings.frontend_url.rstrip("/"),
    )
