"""Purchase, booking and delivery endpoints."""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, status

from carmarket.api import deps
from carmarket.api.deps import CurrentUser, SessionDep
from carmarket.api.rate_limits import DEFAULT_RATE_DEP
from carmarket.integrations import CheckoutGateway, DodoClient, StripeClient
from carmarket.models import PaymentProvider
from carmarket.schemas.transaction import (
    CheckoutCreate,
    CheckoutResponse,
    DeliveryUpdate,
    ManualConfirm,
    TransactionRead,
    WebhookAck,
)
from carmarket.services import reconciliation_service, transaction_service

router = APIRouter()

StripeDep = Annotated[StripeClient | None, Depends(deps.get_stripe_client)]
DodoDep = Annotated[DodoClient | None, Depends(deps.get_dodo_client)]


def _gateway(
    provider: PaymentProvider, stripe: StripeClient | None, dodo: DodoClient | None
) -> CheckoutGateway | None:
    if provider == PaymentProvider.STRIPE:
        return stripe
    if provider == PaymentProvider.DODO:
        return dodo
    return None


@router.post(
    "",
    response_model=CheckoutResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book or buy a vehicle",
    dependencies=[DEFAULT_RATE_DEP],
)
async def create_transaction(
    payload: CheckoutCreate,
    session: SessionDep,
    current_user: CurrentUser,
    stripe: StripeDep,
    dodo: DodoDep,
) -> CheckoutResponse:
    """Hold the vehicle for the buyer and return the gateway checkout link."""
    return await transaction_service.create_booking(
        session,
        buyer=current_user,
        vehicle_id=payload.vehicle_id,
        payment_type=payload.payment_type,
        provider=payload.provider,
        gateway=_gateway(payload.provider, stripe, dodo),
    )


@router.get(
    "/purchases",
    response_model=list[TransactionRead],
    summary="Transactions where the current user is the buyer",
)
async def list_purchases(
    session: SessionDep, current_user: CurrentUser
) -> list[TransactionRead]:
    rows = await transaction_service.list_purchases(session, buyer_id=current_user.id)
    return [TransactionRead.model_validate(row) for row in rows]


@router.get(
    "/sales",
    response_model=list[TransactionRead],
    summary="Transactions where the current user is the seller",
)
async def list_sales(
    session: SessionDep, current_user: CurrentUser
) -> list[TransactionRead]:
    rows = await transaction_service.list_sales(session, seller_id=current_user.id)
    return [TransactionRead.model_validate(row) for row in rows]


@router.get("/{transaction_id}", response_model=TransactionRead)
async def get_transaction(
    transaction_id: uuid.UUID, session: SessionDep, current_user: CurrentUser
) -> TransactionRead:
    transaction = await transaction_service.get_transaction(
        session, user=current_user, transaction_id=transaction_id
    )
    return TransactionRead.model_validate(transaction)


@router.post(
    "/{transaction_id}/balance-checkout",
    response_model=CheckoutResponse,
    summary="Pay the outstanding balance of a booking",
)
async def balance_checkout(
    transaction_id: uuid.UUID,
    session: SessionDep,
    current_user: CurrentUser,
    stripe: StripeDep,
    dodo: DodoDep,
) -> CheckoutResponse:
    transaction = await transaction_service.get_transaction(
        session, user=current_user, transaction_id=transaction_id
    )
    return await transaction_service.create_balance_checkout(
        session,
        buyer=current_user,
        transaction_id=transaction_id,
        gateway=_gateway(transaction.provider, stripe, dodo),
    )


@router.post(
    "/{transaction_id}/verify-checkout",
    response_model=WebhookAck,
    summary="Check the gateway for the result of the latest checkout",
)
async def verify_checkout(
    transaction_id: uuid.UUID,
    session: SessionDep,
    current_user: CurrentUser,
    stripe: StripeDep,
    dodo: DodoDep,
) -> WebhookAck:
    """Used by the payment return page when the webhook has not landed yet."""
    transaction = await transaction_service.get_transaction(
        session, user=current_user, transaction_id=transaction_id
    )
    result = await reconciliation_service.verify_checkout(
        session,
        user=current_user,
        transaction_id=transaction_id,
        gateway=_gateway(transaction.provider, stripe, dodo),
    )
    return WebhookAck(status=result.status.value, transaction_id=result.transaction_id)


@router.post(
    "/{transaction_id}/confirm",
    response_model=WebhookAck,
    summary="Confirm an offline (cash/UPI) payment",
)
async def confirm_manual_payment(
    transaction_id: uuid.UUID,
    payload: ManualConfirm,
    session: SessionDep,
    current_user: CurrentUser,
) -> WebhookAck:
    result = await reconciliation_service.confirm_manual_payment(
        session,
        actor=current_user,
        transaction_id=transaction_id,
        reference=payload.reference,
    )
    return WebhookAck(status=result.status.value, transaction_id=result.transaction_id)


@router.post(
    "/{transaction_id}/cancel",
    response_model=TransactionRead,
    summary="Cancel a pending transaction",
)
async def cancel_transaction(
    transaction_id: uuid.UUID, session: SessionDep, current_user: CurrentUser
) -> TransactionRead:
    transaction = await transaction_service.cancel_transaction(
        session, user=current_user, transaction_id=transaction_id
    )
    return TransactionRead.model_validate(transaction)


@router.put(
    "/{transaction_id}/delivery",
    response_model=TransactionRead,
    summary="Update hand-over progress",
)
async def update_delivery(
    transaction_id: uuid.UUID,
    payload: DeliveryUpdate,
    session: SessionDep,
    current_user: CurrentUser,
) -> TransactionRead:
    transaction = await transaction_service.update_delivery(
        session, user=current_user, transaction_id=transaction_id, payload=payload
    )
    return TransactionRead.model_validate(transaction)


@router.post(
    "/{transaction_id}/confirm-collection",
    response_model=TransactionRead,
    summary="Buyer confirms the vehicle was collected",
)
async def confirm_collection(
    transaction_id: uuid.UUID, session: SessionDep, current_user: CurrentUser
) -> TransactionRead:
    transaction = await transaction_service.confirm_collection(
        session, user=current_user, transaction_id=transaction_id
    )
    return TransactionRead.model_validate(transaction)
