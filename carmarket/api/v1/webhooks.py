"""Gateway webhook receivers.

Signatures are checked before anything touches the database; a failed check
answers 400 so the gateway keeps the delivery for retry.
"""

from __future__ import annotations

import json
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, status

from carmarket.api import deps
from carmarket.api.deps import SessionDep
from carmarket.core.config import get_settings
from carmarket.core.errors import WebhookVerificationError
from carmarket.core.settings import get_payment_settings
from carmarket.integrations import (
    DodoClient,
    DodoClientError,
    StripeClient,
    StripeClientError,
)
from carmarket.schemas.transaction import WebhookAck
from carmarket.services import reconciliation_service

router = APIRouter()
logger = logging.getLogger(__name__)


def _verification_required() -> bool:
    # Unsigned payloads are only ever accepted outside production.
    return get_payment_settings().payments_webhook_verify or get_settings().is_production


def _unsigned(payload: bytes) -> dict[str, Any]:
    try:
        body = json.loads(payload)
    except ValueError as exc:
        raise WebhookVerificationError("Invalid payload") from exc
    if not isinstance(body, dict):
        raise WebhookVerificationError("Invalid payload")
    return body


@router.post("/stripe", response_model=WebhookAck, status_code=status.HTTP_200_OK)
async def stripe_webhook(
    request: Request,
    session: SessionDep,
    stripe_client: Annotated[StripeClient | None, Depends(deps.get_stripe_client)],
) -> WebhookAck:
    payload = await request.body()
    if _verification_required():
        signature = request.headers.get("Stripe-Signature")
        if not signature:
            raise WebhookVerificationError("Missing signature header")
        if stripe_client is None:
            raise WebhookVerificationError("Stripe webhooks are not configured")
        try:
            event = stripe_client.construct_event(payload, signature)
        except StripeClientError as exc:
            logger.warning("Rejected Stripe webhook: %s", exc)
            raise WebhookVerificationError(str(exc)) from exc
    else:
        event = _unsigned(payload)

    result = await reconciliation_service.handle_stripe_event(session, event)
    return WebhookAck(status=result.status.value, transaction_id=result.transaction_id)


@router.post("/dodo", response_model=WebhookAck, status_code=status.HTTP_200_OK)
async def dodo_webhook(
    request: Request,
    session: SessionDep,
    dodo_client: Annotated[DodoClient | None, Depends(deps.get_dodo_client)],
) -> WebhookAck:
    payload = await request.body()
    event_id = request.headers.get("webhook-id", "")
    if _verification_required():
        if dodo_client is None:
            raise WebhookVerificationError("Dodo webhooks are not configured")
        try:
            event = dodo_client.verify_webhook(payload, request.headers)
        except DodoClientError as exc:
            logger.warning("Rejected Dodo webhook %s: %s", event_id or "<no id>", exc)
            raise WebhookVerificationError(str(exc)) from exc
    else:
        event = _unsigned(payload)

    result = await reconciliation_service.handle_dodo_event(
        session, event, event_id=event_id
    )
    return WebhookAck(status=result.status.value, transaction_id=result.transaction_id)
