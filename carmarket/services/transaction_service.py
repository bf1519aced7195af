"""Booking ledger: opening, reading and closing purchase transactions."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.core.errors import (
    ConflictError,
    GatewayError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from carmarket.core.settings import get_payment_settings
from carmarket.db.session import atomic
from carmarket.integrations import (
    CheckoutGateway,
    DodoClientError,
    StripeClientError,
)
from carmarket.models import (
    DeliveryStatus,
    PaymentProvider,
    PaymentType,
    Transaction,
    TransactionStatus,
    User,
    UserRole,
    Vehicle,
    VehicleStatus,
)
from carmarket.schemas.transaction import (
    CheckoutResponse,
    DeliveryUpdate,
    TransactionPage,
    TransactionRead,
)
from carmarket.services.state import (
    SETTLED_STATUSES,
    booking_deposit,
    is_fully_paid,
    transition_transaction,
)
from carmarket.services.vehicle_service import blocking_transaction_clause, hold_cutoff

logger = logging.getLogger(__name__)

GATEWAY_ERRORS = (StripeClientError, DodoClientError)


async def _lock_vehicle(session: AsyncSession, vehicle_id: uuid.UUID) -> Vehicle:
    stmt = (
        select(Vehicle)
        .where(Vehicle.id == vehicle_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    vehicle = (await session.execute(stmt)).scalar_one_or_none()
    if vehicle is None:
        raise NotFoundError("Vehicle not found")
    return vehicle


async def lock_transaction(
    session: AsyncSession, transaction_id: uuid.UUID
) -> Transaction | None:
    stmt = (
        select(Transaction)
        .where(Transaction.id == transaction_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return (await session.execute(stmt)).scalar_one_or_none()


async def _cancel_stale_holds(
    session: AsyncSession,
    *,
    now: datetime,
    vehicle_id: uuid.UUID | None = None,
) -> list[uuid.UUID]:
    stmt = select(Transaction).where(
        Transaction.status == TransactionStatus.PENDING,
        Transaction.created_at <= hold_cutoff(now),
    )
    if vehicle_id is not None:
        stmt = stmt.where(Transaction.vehicle_id == vehicle_id)
    stale = (await session.execute(stmt.with_for_update())).scalars().all()
    for transaction in stale:
        transition_transaction(transaction, TransactionStatus.CANCELLED)
        transaction.failure_reason = "Checkout hold expired"
        logger.info(
            "Expired stale hold %s on vehicle %s", transaction.id, transaction.vehicle_id
        )
    await session.flush()
    return [transaction.id for transaction in stale]


def _checkout_metadata(transaction: Transaction, vehicle: Vehicle) -> dict[str, str]:
    return {
        "transaction_id": str(transaction.id),
        "vehicle_id": str(vehicle.id),
        "buyer_id": str(transaction.buyer_id),
        "seller_id": str(transaction.seller_id),
        "vehicle_name": vehicle.display_name,
        "original_amount": str(vehicle.price),
    }


async def _open_transaction(
    session: AsyncSession,
    *,
    buyer: User,
    vehicle_id: uuid.UUID,
    payment_type: PaymentType,
    provider: PaymentProvider,
    now: datetime,
) -> tuple[Transaction, Vehicle]:
    if buyer.role == UserRole.SELLER:
        raise PermissionDeniedError("Sellers cannot purchase vehicles")
    if (payment_type == PaymentType.MANUAL) != (provider == PaymentProvider.MANUAL):
        raise ValidationError("Manual payments must use the manual provider")

    settings = get_payment_settings()
    try:
        async with atomic(session):
            vehicle = await _lock_vehicle(session, vehicle_id)
            if vehicle.seller_id == buyer.id:
                raise ValidationError("You cannot buy your own vehicle")
            if vehicle.status != VehicleStatus.APPROVED:
                raise ConflictError("Vehicle is not available for purchase")

            await _cancel_stale_holds(session, now=now, vehicle_id=vehicle.id)
            active = await session.scalar(
                select(Transaction.id).where(
                    Transaction.vehicle_id == vehicle.id,
                    blocking_transaction_clause(now),
                )
            )
            if active is not None:
                raise ConflictError("Vehicle is already booked")

            deposit = None
            if payment_type != PaymentType.FULL:
                deposit = booking_deposit(vehicle.price, settings.booking_percentage)
            transaction = Transaction(
                vehicle_id=vehicle.id,
                buyer_id=buyer.id,
                seller_id=vehicle.seller_id,
                amount=vehicle.price,
                booking_amount=deposit,
                remaining_amount=vehicle.price,
                currency=settings.currency,
                status=TransactionStatus.PENDING,
                payment_type=payment_type,
                provider=provider,
                created_at=now,
            )
            session.add(transaction)
            await session.flush()
    except IntegrityError as exc:
        logger.info("Concurrent booking rejected for vehicle %s", vehicle_id)
        raise ConflictError("Vehicle is already booked") from exc

    logger.info(
        "Opened %s transaction %s for vehicle %s by buyer %s",
        payment_type.value,
        transaction.id,
        vehicle.id,
        buyer.id,
    )
    return transaction, vehicle


async def _abandon(
    session: AsyncSession, transaction_id: uuid.UUID, reason: str
) -> None:
    async with atomic(session):
        transaction = await lock_transaction(session, transaction_id)
        if transaction is not None and transaction.status == TransactionStatus.PENDING:
            transition_transaction(transaction, TransactionStatus.CANCELLED)
            transaction.failure_reason = reason


async def _start_checkout(
    session: AsyncSession,
    *,
    transaction: Transaction,
    vehicle: Vehicle,
    buyer: User,
    amount: Decimal,
    gateway: CheckoutGateway,
    label: str,
    purpose: str,
) -> CheckoutResponse:
    settings = get_payment_settings()
    metadata = _checkout_metadata(transaction, vehicle)
    base = f"{settings.frontend_url}/payment"
    checkout = await gateway.create_checkout(
        amount=amount,
        currency=transaction.currency,
        description=f"{label}: {vehicle.display_name}",
        customer_email=buyer.email,
        metadata=metadata,
        success_url=f"{base}/success?transaction_id={transaction.id}",
        cancel_url=f"{base}/cancel?transaction_id={transaction.id}",
        purpose=purpose,
    )
    async with atomic(session):
        transaction.checkout_reference = checkout.id
        session.add(transaction)
    return CheckoutResponse(
        transaction_id=transaction.id,
        checkout_url=checkout.url,
        checkout_reference=checkout.id,
        amount=amount,
        currency=transaction.currency,
    )


async def create_booking(
    session: AsyncSession,
    *,
    buyer: User,
    vehicle_id: uuid.UUID,
    payment_type: PaymentType,
    provider: PaymentProvider,
    gateway: CheckoutGateway | None,
    now: datetime | None = None,
) -> CheckoutResponse:
    """Reserve a vehicle for the buyer and start the matching gateway checkout."""

    now = now or datetime.now(UTC)
    transaction, vehicle = await _open_transaction(
        session,
        buyer=buyer,
        vehicle_id=vehicle_id,
        payment_type=payment_type,
        provider=provider,
        now=now,
    )
    if payment_type == PaymentType.MANUAL:
        return CheckoutResponse(
            transaction_id=transaction.id,
            amount=transaction.booking_amount or transaction.amount,
            currency=transaction.currency,
        )
    if gateway is None:
        await _abandon(session, transaction.id, "Payment provider unavailable")
        raise GatewayError("Payment provider is not configured")

    if payment_type == PaymentType.BOOKING:
        charge = transaction.booking_amount or vehicle.price
        label, purpose = "Booking deposit", "booking"
    else:
        charge = vehicle.price
        label, purpose = "Vehicle purchase", "purchase"
    try:
        return await _start_checkout(
            session,
            transaction=transaction,
            vehicle=vehicle,
            buyer=buyer,
            amount=charge,
            gateway=gateway,
            label=label,
            purpose=purpose,
        )
    except GATEWAY_ERRORS as exc:
        await _abandon(session, transaction.id, f"Checkout creation failed: {exc}")
        logger.warning("Released vehicle %s after gateway failure", vehicle.id)
        raise GatewayError("Could not start checkout with the payment provider") from exc


async def create_balance_checkout(
    session: AsyncSession,
    *,
    buyer: User,
    transaction_id: uuid.UUID,
    gateway: CheckoutGateway | None,
) -> CheckoutResponse:
    """Start a checkout for whatever is still owed on a paid booking."""

    transaction = await session.get(Transaction, transaction_id)
    if transaction is None or transaction.buyer_id != buyer.id:
        raise NotFoundError("Transaction not found")
    if transaction.status != TransactionStatus.PAYMENT_COMPLETED:
        raise ConflictError("Only paid bookings have a balance to settle")
    if is_fully_paid(transaction.remaining_amount):
        raise ValidationError("Nothing is outstanding on this transaction")
    if gateway is None or transaction.provider == PaymentProvider.MANUAL:
        raise ValidationError("Offline bookings are settled with the seller")

    vehicle = await session.get(Vehicle, transaction.vehicle_id)
    if vehicle is None:
        raise NotFoundError("Vehicle not found")
    try:
        return await _start_checkout(
            session,
            transaction=transaction,
            vehicle=vehicle,
            buyer=buyer,
            amount=transaction.remaining_amount or Decimal("0"),
            gateway=gateway,
            label="Balance payment",
            purpose="balance",
        )
    except GATEWAY_ERRORS as exc:
        raise GatewayError("Could not start checkout with the payment provider") from exc


async def cancel_transaction(
    session: AsyncSession, *, user: User, transaction_id: uuid.UUID
) -> Transaction:
    async with atomic(session):
        transaction = await lock_transaction(session, transaction_id)
        if transaction is None:
            raise NotFoundError("Transaction not found")
        if user.role != UserRole.ADMIN and transaction.buyer_id != user.id:
            raise PermissionDeniedError("Not your transaction")
        if transaction.status != TransactionStatus.PENDING:
            raise ConflictError("Only pending transactions can be cancelled")
        transition_transaction(transaction, TransactionStatus.CANCELLED)
        transaction.failure_reason = "Cancelled by user"
    logger.info("Transaction %s cancelled by %s", transaction_id, user.id)
    return transaction


async def list_purchases(
    session: AsyncSession, *, buyer_id: uuid.UUID
) -> Sequence[Transaction]:
    result = await session.execute(
        select(Transaction)
        .where(Transaction.buyer_id == buyer_id)
        .order_by(Transaction.created_at.desc())
    )
    return result.scalars().all()


async def list_sales(
    session: AsyncSession, *, seller_id: uuid.UUID
) -> Sequence[Transaction]:
    result = await session.execute(
        select(Transaction)
        .where(Transaction.seller_id == seller_id)
        .order_by(Transaction.created_at.desc())
    )
    return result.scalars().all()


async def get_transaction(
    session: AsyncSession, *, user: User, transaction_id: uuid.UUID
) -> Transaction:
    transaction = await session.get(Transaction, transaction_id)
    if transaction is None:
        raise NotFoundError("Transaction not found")
    if user.role != UserRole.ADMIN and user.id not in (
        transaction.buyer_id,
        transaction.seller_id,
    ):
        raise PermissionDeniedError("Not your transaction")
    return transaction


async def list_transactions(
    session: AsyncSession,
    *,
    status: TransactionStatus | None = None,
    page: int = 1,
    limit: int = 20,
) -> TransactionPage:
    stmt = select(Transaction)
    count_stmt = select(func.count(Transaction.id))
    if status is not None:
        stmt = stmt.where(Transaction.status == status)
        count_stmt = count_stmt.where(Transaction.status == status)
    total = await session.scalar(count_stmt) or 0
    result = await session.execute(
        stmt.order_by(Transaction.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return TransactionPage(
        transactions=[TransactionRead.model_validate(t) for t in result.scalars().all()],
        page=page,
        limit=limit,
        total=total,
    )


async def update_delivery(
    session: AsyncSession,
    *,
    user: User,
    transaction_id: uuid.UUID,
    payload: DeliveryUpdate,
) -> Transaction:
    """Record hand-over progress. Payment fields are left untouched."""

    async with atomic(session):
        transaction = await lock_transaction(session, transaction_id)
        if transaction is None:
            raise NotFoundError("Transaction not found")
        if user.role != UserRole.ADMIN and transaction.seller_id != user.id:
            raise PermissionDeniedError("Only the seller can update delivery")
        if transaction.status not in SETTLED_STATUSES:
            raise ConflictError("Delivery can only be tracked for paid transactions")
        if payload.delivery_status == DeliveryStatus.COLLECTED:
            raise ValidationError("Collection is confirmed by the buyer")
        if transaction.delivery_status == DeliveryStatus.COLLECTED:
            raise ConflictError("Vehicle has already been collected")
        transaction.delivery_status = payload.delivery_status
        if payload.estimated_ready_at is not None:
            transaction.estimated_ready_at = payload.estimated_ready_at
        if payload.delivery_notes is not None:
            transaction.delivery_notes = payload.delivery_notes
    return transaction


async def confirm_collection(
    session: AsyncSession, *, user: User, transaction_id: uuid.UUID
) -> Transaction:
    async with atomic(session):
        transaction = await lock_transaction(session, transaction_id)
        if transaction is None or transaction.buyer_id != user.id:
            raise NotFoundError("Transaction not found")
        if transaction.delivery_status != DeliveryStatus.READY_FOR_COLLECTION:
            raise ConflictError("Vehicle is not ready for collection")
        transaction.delivery_status = DeliveryStatus.COLLECTED
        transaction.collected_at = datetime.now(UTC)
    logger.info("Buyer %s collected vehicle for transaction %s", user.id, transaction_id)
    return transaction


async def expire_stale_holds(
    session: AsyncSession, *, now: datetime | None = None
) -> list[uuid.UUID]:
    """Cancel every pending checkout that outlived the hold window."""

    now = now or datetime.now(UTC)
    async with atomic(session):
        return await _cancel_stale_holds(session, now=now)
