"""Stripe SDK wrapper for hosted checkout and webhook verification."""

from __future__ import annotations

import json
import logging
import time
from decimal import Decimal
from typing import Any

import stripe
from starlette.concurrency import run_in_threadpool

from carmarket.integrations.base import CheckoutSession, CheckoutState, CheckoutStatus
from carmarket.services.state import amount_to_minor_units

logger = logging.getLogger(__name__)

# Stripe accepts expires_at between 30 minutes and 24 hours after creation.
_MIN_SESSION_SECONDS = 31 * 60
_MAX_SESSION_SECONDS = 24 * 60 * 60


class StripeClientError(RuntimeError):
    """Raised when Stripe interaction fails."""


def checkout_idempotency_key(
    prefix: str, transaction_id: str | None, purpose: str, amount: Decimal
) -> str:
    """One key per checkout attempt; a transaction may pay a deposit then a balance."""
    return f"{prefix}_{transaction_id}_{purpose}_{amount_to_minor_units(amount)}"


class StripeClient:
    """Creates Checkout Sessions and verifies signed webhook payloads."""

    provider = "stripe"

    def __init__(
        self,
        secret_key: str | None,
        *,
        webhook_secret: str | None = None,
        idempotency_prefix: str = "carmarket",
        checkout_ttl_minutes: int = 30,
    ) -> None:
        self._secret_key = secret_key
        self._webhook_secret = webhook_secret
        self._idempotency_prefix = idempotency_prefix
        self._session_seconds = min(
            max(checkout_ttl_minutes * 60, _MIN_SESSION_SECONDS), _MAX_SESSION_SECONDS
        )

    @property
    def webhook_secret(self) -> str | None:
        return self._webhook_secret

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
        purpose: str = "checkout",
    ) -> CheckoutSession:
        if not self._secret_key:
            raise StripeClientError("Stripe is not configured")

        params: dict[str, Any] = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "customer_email": customer_email,
            "line_items": [
                {
                    "price_data": {
                        "currency": currency,
                        "product_data": {"name": description},
                        "unit_amount": amount_to_minor_units(amount),
                    },
                    "quantity": 1,
                }
            ],
            "metadata": metadata,
            # Failure events carry the payment intent, not the session.
            "payment_intent_data": {"metadata": metadata},
            # The session must not outlive the booking hold by much.
            "expires_at": int(time.time()) + self._session_seconds,
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        idempotency_key = checkout_idempotency_key(
            self._idempotency_prefix, metadata.get("transaction_id"), purpose, amount
        )
        try:
            session = await run_in_threadpool(
                stripe.checkout.Session.create,
                api_key=self._secret_key,
                idempotency_key=idempotency_key,
                **params,
            )
        except stripe.StripeError as exc:
            logger.exception("Stripe checkout creation failed")
            raise StripeClientError("Failed to create checkout session") from exc
        if not session.url:
            raise StripeClientError("Stripe did not return a checkout URL")
        return CheckoutSession(id=str(session.id), url=str(session.url))

    async def retrieve_checkout(self, reference: str) -> CheckoutStatus:
        """Ask Stripe where a Checkout Session stands."""

        if not self._secret_key:
            raise StripeClientError("Stripe is not configured")
        try:
            session = await run_in_threadpool(
                stripe.checkout.Session.retrieve, reference, api_key=self._secret_key
            )
        except stripe.StripeError as exc:
            logger.exception("Stripe checkout lookup failed for %s", reference)
            raise StripeClientError("Failed to retrieve checkout session") from exc

        payment_intent = session.payment_intent
        if payment_intent is not None and not isinstance(payment_intent, str):
            payment_intent = payment_intent.id
        if session.payment_status == "paid":
            state = CheckoutState.PAID
        elif session.status == "expired":
            state = CheckoutState.EXPIRED
        else:
            state = CheckoutState.OPEN
        return CheckoutStatus(
            id=str(session.id),
            state=state,
            amount_minor=session.amount_total,
            payment_id=payment_intent,
            raw={
                "id": str(session.id),
                "status": session.status,
                "payment_status": session.payment_status,
                "amount_total": session.amount_total,
                "payment_intent": payment_intent,
            },
        )

    def construct_event(self, payload: bytes, signature: str) -> dict[str, Any]:
        """Verify the ``Stripe-Signature`` header and return the event body."""

        if not self._webhook_secret:
            raise StripeClientError("Webhook secret is not configured")
        try:
            stripe.Webhook.construct_event(
                payload=payload,
                sig_header=signature,
                secret=self._webhook_secret,
            )
        except (stripe.SignatureVerificationError, ValueError) as exc:
            raise StripeClientError("Invalid webhook signature") from exc
        return json.loads(payload)
