"""Dodo Payments client: payment links over HTTP and Standard Webhooks verification."""

from __future__ import annotations

import binascii
import logging
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

import httpx
from standardwebhooks.webhooks import Webhook, WebhookVerificationError

from carmarket.integrations.base import CheckoutSession, CheckoutState, CheckoutStatus
from carmarket.services.state import amount_to_minor_units

logger = logging.getLogger(__name__)

_PAYMENT_STATES = {
    "succeeded": CheckoutState.PAID,
    "failed": CheckoutState.FAILED,
    "cancelled": CheckoutState.EXPIRED,
}


class DodoClientError(RuntimeError):
    """Raised when Dodo interaction or webhook verification fails."""


class DodoClient:
    provider = "dodo"

    def __init__(
        self,
        api_key: str | None,
        *,
        webhook_secret: str | None = None,
        base_url: str = "https://test.dodopayments.com",
        product_id: str | None = None,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._webhook_secret = webhook_secret
        self._base_url = base_url.rstrip("/")
        self._product_id = product_id
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
            headers={"Authorization": f"Bearer {self._api_key}"},
        )

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
        if not self._api_key or not self._product_id:
            raise DodoClientError("Dodo Payments is not configured")
        body = {
            "payment_link": True,
            "billing": {"country": "IN"},
            "customer": {"email": customer_email, "name": customer_email},
            "product_cart": [
                {
                    "product_id": self._product_id,
                    "quantity": 1,
                    "amount": amount_to_minor_units(amount),
                }
            ],
            "billing_currency": currency.upper(),
            "metadata": {**metadata, "purpose": purpose},
            "return_url": success_url,
        }
        async with self._client() as client:
            try:
                response = await client.post("/payments", json=body)
                response.raise_for_status()
            except httpx.HTTPError as exc:
                logger.exception("Dodo payment link creation failed")
                raise DodoClientError("Failed to create payment link") from exc
        data = response.json()
        link = data.get("payment_link")
        payment_id = data.get("payment_id")
        if not link or not payment_id:
            raise DodoClientError("Dodo did not return a payment link")
        return CheckoutSession(id=str(payment_id), url=str(link))

    async def retrieve_checkout(self, reference: str) -> CheckoutStatus:
        """Look up a payment created through a payment link."""

        if not self._api_key:
            raise DodoClientError("Dodo Payments is not configured")
        async with self._client() as client:
            try:
                response = await client.get(f"/payments/{reference}")
                response.raise_for_status()
            except httpx.HTTPError as exc:
                logger.exception("Dodo payment lookup failed for %s", reference)
                raise DodoClientError("Failed to retrieve payment") from exc
        data = response.json()
        return CheckoutStatus(
            id=str(data.get("payment_id") or reference),
            state=_PAYMENT_STATES.get(data.get("status"), CheckoutState.OPEN),
            amount_minor=data.get("total_amount"),
            payment_id=data.get("payment_id") or reference,
            raw=data,
        )

    def verify_webhook(self, payload: bytes, headers: Mapping[str, str]) -> dict[str, Any]:
        """Verify a Standard Webhooks signature and return the decoded body."""

        if not self._webhook_secret:
            raise DodoClientError("Webhook secret is not configured")
        try:
            verifier = Webhook(self._webhook_secret)
        except (binascii.Error, ValueError) as exc:
            raise DodoClientError("Webhook secret is not valid base64") from exc
        try:
            return verifier.verify(payload, dict(headers.items()))
        except WebhookVerificationError as exc:
            raise DodoClientError(str(exc) or "Invalid webhook signature") from exc
        except ValueError as exc:
            raise DodoClientError("Malformed webhook payload") from exc
