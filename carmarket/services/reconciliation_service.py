"""Apply gateway and offline payment events to transactions and vehicles.

Every event is processed in a single commit together with its row in the
``payment_events`` ledger. A delivery whose ``(provider, event id)`` is already
in the ledger changes nothing, which makes gateway retries safe.
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.core.errors import (
    ConflictError,
    GatewayError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from carmarket.db.session import atomic
from carmarket.integrations import CheckoutGateway, CheckoutState
from carmarket.models import (
    PaymentEvent,
    PaymentProvider,
    Transaction,
    TransactionStatus,
    User,
    UserRole,
    Vehicle,
    VehicleStatus,
)
from carmarket.services.state import (
    is_fully_paid,
    is_terminal,
    minor_units_to_amount,
    parse_amount,
    transition_transaction,
    transition_vehicle,
)
from carmarket.services.transaction_service import GATEWAY_ERRORS, lock_transaction

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


class Outcome(str, enum.Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    # Money arrived for a transaction that can no longer take it.
    REFUND_REQUIRED = "refund_required"
    REFUNDED = "refunded"
    # The checkout has not been paid or closed yet.
    OPEN = "open"


@dataclass(slots=True)
class ReconcileResult:
    status: Outcome
    transaction_id: uuid.UUID | None = None


async def _already_processed(
    session: AsyncSession, provider: str, event_id: str
) -> bool:
    found = await session.scalar(
        select(PaymentEvent.id).where(
            PaymentEvent.provider == provider,
            PaymentEvent.provider_event_id == event_id,
        )
    )
    return found is not None


async def _record(
    session: AsyncSession,
    *,
    provider: str,
    event_id: str,
    event_type: str,
    transaction_id: uuid.UUID | None,
    outcome: Outcome,
    raw: dict[str, Any],
) -> None:
    session.add(
        PaymentEvent(
            provider=provider,
            provider_event_id=event_id,
            event_type=event_type,
            transaction_id=transaction_id,
            outcome=outcome.value,
            raw=raw,
        )
    )
    await session.flush()


async def _settle_vehicle(session: AsyncSession, vehicle_id: uuid.UUID) -> None:
    stmt = (
        select(Vehicle)
        .where(Vehicle.id == vehicle_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    vehicle = (await session.execute(stmt)).scalar_one_or_none()
    if vehicle is None:
        logger.error("Vehicle %s vanished while settling its sale", vehicle_id)
        return
    transition_vehicle(vehicle, VehicleStatus.SOLD)


async def apply_payment(
    session: AsyncSession,
    *,
    transaction_id: uuid.UUID | None,
    amount: Decimal,
    provider: str,
    event_id: str,
    event_type: str,
    raw: dict[str, Any],
    payment_id: str | None = None,
) -> ReconcileResult:
    """Credit ``amount`` to a transaction; settle the sale once nothing is owed."""

    if amount < 0:
        raise ValidationError("Payment amount cannot be negative")
    if await _already_processed(session, provider, event_id):
        logger.info("Skipping duplicate %s event %s", provider, event_id)
        return ReconcileResult(Outcome.DUPLICATE, transaction_id)

    try:
        async with atomic(session):
            transaction = None
            if transaction_id is not None:
                transaction = await lock_transaction(session, transaction_id)
            if transaction is None:
                logger.warning(
                    "%s event %s references unknown transaction %s",
                    provider,
                    event_id,
                    transaction_id,
                )
                await _record(
                    session,
                    provider=provider,
                    event_id=event_id,
                    event_type=event_type,
                    transaction_id=None,
                    outcome=Outcome.IGNORED,
                    raw=raw,
                )
                return ReconcileResult(Outcome.IGNORED, None)

            if is_terminal(transaction.status):
                refund = amount > 0
                outcome = Outcome.REFUND_REQUIRED if refund else Outcome.IGNORED
                logger.log(
                    logging.ERROR if refund else logging.WARNING,
                    "Payment event %s (%s %s) arrived for %s transaction %s; %s",
                    event_id,
                    amount,
                    transaction.currency,
                    transaction.status.value,
                    transaction.id,
                    outcome.value,
                )
                await _record(
                    session,
                    provider=provider,
                    event_id=event_id,
                    event_type=event_type,
                    transaction_id=transaction.id,
                    outcome=outcome,
                    raw=raw,
                )
                return ReconcileResult(outcome, transaction.id)

            previous = transaction.status
            if transaction.remaining_amount is None:
                remaining = ZERO
            else:
                remaining = max(parse_amount(transaction.remaining_amount) - amount, ZERO)

            if is_fully_paid(remaining):
                transition_transaction(transaction, TransactionStatus.COMPLETED)
                transaction.remaining_amount = ZERO
                await _settle_vehicle(session, transaction.vehicle_id)
            else:
                transition_transaction(transaction, TransactionStatus.PAYMENT_COMPLETED)
                transaction.remaining_amount = remaining
            transaction.failure_reason = None
            if payment_id:
                transaction.provider_payment_id = payment_id

            await _record(
                session,
                provider=provider,
                event_id=event_id,
                event_type=event_type,
                transaction_id=transaction.id,
                outcome=Outcome.APPLIED,
                raw=raw,
            )
    except IntegrityError:
        logger.info("Concurrent duplicate %s event %s rolled back", provider, event_id)
        return ReconcileResult(Outcome.DUPLICATE, transaction_id)

    logger.info(
        "Transaction %s moved %s -> %s (paid %s, remaining %s)",
        transaction.id,
        previous.value,
        transaction.status.value,
        amount,
        transaction.remaining_amount,
    )
    return ReconcileResult(Outcome.APPLIED, transaction.id)


async def _close_pending(
    session: AsyncSession,
    *,
    target: TransactionStatus,
    transaction_id: uuid.UUID | None,
    reason: str,
    provider: str,
    event_id: str,
    event_type: str,
    raw: dict[str, Any],
) -> ReconcileResult:
    if await _already_processed(session, provider, event_id):
        logger.info("Skipping duplicate %s event %s", provider, event_id)
        return ReconcileResult(Outcome.DUPLICATE, transaction_id)

    try:
        async with atomic(session):
            transaction = None
            if transaction_id is not None:
                transaction = await lock_transaction(session, transaction_id)
            # A failed balance checkout does not undo the booking already paid for.
            if transaction is None or transaction.status != TransactionStatus.PENDING:
                await _record(
                    session,
                    provider=provider,
                    event_id=event_id,
                    event_type=event_type,
                    transaction_id=transaction.id if transaction else None,
                    outcome=Outcome.IGNORED,
                    raw=raw,
                )
                return ReconcileResult(
                    Outcome.IGNORED, transaction.id if transaction else None
                )
            transition_transaction(transaction, target)
            transaction.failure_reason = reason
            await _record(
                session,
                provider=provider,
                event_id=event_id,
                event_type=event_type,
                transaction_id=transaction.id,
                outcome=Outcome.APPLIED,
                raw=raw,
            )
    except IntegrityError:
        logger.info("Concurrent duplicate %s event %s rolled back", provider, event_id)
        return ReconcileResult(Outcome.DUPLICATE, transaction_id)

    logger.info("Transaction %s marked %s: %s", transaction.id, target.value, reason)
    return ReconcileResult(Outcome.APPLIED, transaction.id)


async def apply_failure(
    session: AsyncSession,
    *,
    transaction_id: uuid.UUID | None,
    reason: str,
    provider: str,
    event_id: str,
    event_type: str,
    raw: dict[str, Any],
) -> ReconcileResult:
    return await _close_pending(
        session,
        target=TransactionStatus.FAILED,
        transaction_id=transaction_id,
        reason=reason,
        provider=provider,
        event_id=event_id,
        event_type=event_type,
        raw=raw,
    )


async def apply_cancellation(
    session: AsyncSession,
    *,
    transaction_id: uuid.UUID | None,
    reason: str,
    provider: str,
    event_id: str,
    event_type: str,
    raw: dict[str, Any],
) -> ReconcileResult:
    return await _close_pending(
        session,
        target=TransactionStatus.CANCELLED,
        transaction_id=transaction_id,
        reason=reason,
        provider=provider,
        event_id=event_id,
        event_type=event_type,
        raw=raw,
    )


async def record_unhandled(
    session: AsyncSession,
    *,
    provider: str,
    event_id: str,
    event_type: str,
    raw: dict[str, Any],
) -> ReconcileResult:
    """Keep event types we do not act on in the ledger so replays stay no-ops."""

    if await _already_processed(session, provider, event_id):
        return ReconcileResult(Outcome.DUPLICATE)
    try:
        async with atomic(session):
            await _record(
                session,
                provider=provider,
                event_id=event_id,
                event_type=event_type,
                transaction_id=None,
                outcome=Outcome.IGNORED,
                raw=raw,
            )
    except IntegrityError:
        return ReconcileResult(Outcome.DUPLICATE)
    logger.info("Ignoring unhandled %s event type %s", provider, event_type)
    return ReconcileResult(Outcome.IGNORED)


async def _load_for_actor(
    session: AsyncSession, *, actor: User, transaction_id: uuid.UUID
) -> Transaction:
    transaction = await session.get(Transaction, transaction_id)
    if transaction is None:
        raise NotFoundError("Transaction not found")
    if actor.role != UserRole.ADMIN and transaction.seller_id != actor.id:
        raise PermissionDeniedError("Only the seller or an admin can confirm payments")
    if is_terminal(transaction.status):
        raise ConflictError(
            f"Transaction is already {transaction.status.value}"
        )
    return transaction


async def confirm_manual_payment(
    session: AsyncSession,
    *,
    actor: User,
    transaction_id: uuid.UUID,
    reference: str | None = None,
) -> ReconcileResult:
    """Record a cash or UPI payment received outside the gateways.

    An unpaid transaction with a deposit is credited the deposit; otherwise
    the whole remaining balance is settled.
    """

    transaction = await _load_for_actor(
        session, actor=actor, transaction_id=transaction_id
    )
    if (
        transaction.status == TransactionStatus.PENDING
        and transaction.booking_amount is not None
    ):
        amount = parse_amount(transaction.booking_amount)
    elif transaction.remaining_amount is None:
        amount = ZERO
    else:
        amount = parse_amount(transaction.remaining_amount)

    marker = reference or transaction.status.value
    return await apply_payment(
        session,
        transaction_id=transaction.id,
        amount=amount,
        provider=PaymentProvider.MANUAL.value,
        event_id=f"manual:{transaction.id}:{marker}",
        event_type="manual.confirmed",
        raw={
            "actor_id": str(actor.id),
            "reference": reference,
            "amount": str(amount),
            "status_before": transaction.status.value,
        },
        payment_id=reference,
    )


async def mark_refunded(
    session: AsyncSession, *, actor: User, event_id: uuid.UUID
) -> PaymentEvent:
    """Close a late payment once the money has been returned to the buyer."""

    async with atomic(session):
        event = await session.get(PaymentEvent, event_id, with_for_update=True)
        if event is None:
            raise NotFoundError("Payment event not found")
        if event.outcome != Outcome.REFUND_REQUIRED.value:
            raise ConflictError(f"Payment event is {event.outcome}, not awaiting a refund")
        event.outcome = Outcome.REFUNDED.value
    logger.info(
        "Admin %s recorded refund for %s event %s",
        actor.id,
        event.provider,
        event.provider_event_id,
    )
    return event


async def admin_set_status(
    session: AsyncSession,
    *,
    actor: User,
    transaction_id: uuid.UUID,
    status: TransactionStatus,
) -> Transaction:
    """Admin override that still honours the transaction lifecycle."""

    transaction = await _load_for_actor(
        session, actor=actor, transaction_id=transaction_id
    )
    if status == TransactionStatus.PAYMENT_COMPLETED:
        # Only an unpaid booking can move to payment_completed.
        if transaction.status != TransactionStatus.PENDING:
            raise ConflictError(
                f"Transaction is already {transaction.status.value}"
            )
        await confirm_manual_payment(
            session, actor=actor, transaction_id=transaction_id
        )
    elif status == TransactionStatus.COMPLETED:
        owed = transaction.remaining_amount
        await apply_payment(
            session,
            transaction_id=transaction.id,
            amount=ZERO if owed is None else parse_amount(owed),
            provider=PaymentProvider.MANUAL.value,
            event_id=f"admin:{transaction.id}:completed",
            event_type="admin.completed",
            raw={"actor_id": str(actor.id)},
        )
    elif status in (TransactionStatus.FAILED, TransactionStatus.CANCELLED):
        async with atomic(session):
            locked = await lock_transaction(session, transaction_id)
            if locked is None:
                raise NotFoundError("Transaction not found")
            transition_transaction(locked, status)
            locked.failure_reason = f"Marked {status.value} by admin"
        logger.info(
            "Admin %s marked transaction %s %s", actor.id, transaction_id, status.value
        )
    else:
        raise ConflictError(f"Cannot set transaction status to {status.value}")

    refreshed = await lock_transaction(session, transaction_id)
    if refreshed is None:
        raise NotFoundError("Transaction not found")
    await session.commit()
    return refreshed


def _parse_uuid(value: Any) -> uuid.UUID | None:
    if not value:
        return None
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


async def _resolve_transaction_id(
    session: AsyncSession, metadata: dict[str, Any] | None, reference: str | None
) -> uuid.UUID | None:
    transaction_id = _parse_uuid((metadata or {}).get("transaction_id"))
    if transaction_id is not None:
        return transaction_id
    if not reference:
        return None
    return await session.scalar(
        select(Transaction.id).where(Transaction.checkout_reference == reference)
    )


def checkout_event_id(kind: str, reference: Any, fallback: str) -> str:
    """Ledger key shared by a checkout's webhook and its status lookup."""
    return f"{kind}:{reference}" if reference else fallback


async def verify_checkout(
    session: AsyncSession,
    *,
    user: User,
    transaction_id: uuid.UUID,
    gateway: CheckoutGateway | None,
) -> ReconcileResult:
    """Reconcile a transaction by asking the gateway about its latest checkout.

    Covers webhooks that are late or never arrive. The ledger keys match the
    webhook path, so whichever lands second is a duplicate.
    """

    transaction = await session.get(Transaction, transaction_id)
    if transaction is None:
        raise NotFoundError("Transaction not found")
    if user.role != UserRole.ADMIN and transaction.buyer_id != user.id:
        raise PermissionDeniedError("Only the buyer or an admin can verify a checkout")
    reference = transaction.checkout_reference
    if transaction.provider == PaymentProvider.MANUAL or not reference:
        raise ValidationError("Transaction has no gateway checkout to verify")
    if gateway is None:
        raise GatewayError("Payment provider is not configured")

    try:
        checkout = await gateway.retrieve_checkout(reference)
    except GATEWAY_ERRORS as exc:
        raise GatewayError("Could not reach the payment provider") from exc

    provider = transaction.provider.value
    raw = {"source": "verify", "user_id": str(user.id), **checkout.raw}
    if checkout.state == CheckoutState.PAID:
        if checkout.amount_minor is None:
            raise GatewayError("Payment provider did not report an amount")
        return await apply_payment(
            session,
            transaction_id=transaction.id,
            amount=minor_units_to_amount(checkout.amount_minor),
            provider=provider,
            event_id=checkout_event_id("paid", reference, reference),
            event_type="checkout.verified",
            raw=raw,
            payment_id=checkout.payment_id,
        )
    if checkout.state == CheckoutState.EXPIRED:
        return await apply_cancellation(
            session,
            transaction_id=transaction.id,
            reason="Checkout session expired",
            provider=provider,
            event_id=checkout_event_id("expired", reference, reference),
            event_type="checkout.verified",
            raw=raw,
        )
    if checkout.state == CheckoutState.FAILED:
        return await apply_failure(
            session,
            transaction_id=transaction.id,
            reason="Payment failed",
            provider=provider,
            event_id=checkout_event_id("failed", reference, reference),
            event_type="checkout.verified",
            raw=raw,
        )
    logger.info("Checkout %s for transaction %s is still open", reference, transaction.id)
    return ReconcileResult(Outcome.OPEN, transaction.id)


async def handle_stripe_event(
    session: AsyncSession, event: dict[str, Any]
) -> ReconcileResult:
    event_id = str(event.get("id") or "")
    event_type = str(event.get("type") or "")
    if not event_id or not event_type:
        raise ValidationError("Malformed Stripe event")
    obj: dict[str, Any] = (event.get("data") or {}).get("object") or {}
    provider = PaymentProvider.STRIPE.value

    if event_type == "checkout.session.completed":
        if obj.get("payment_status", "paid") != "paid":
            return await record_unhandled(
                session, provider=provider, event_id=event_id, event_type=event_type, raw=event
            )
        transaction_id = await _resolve_transaction_id(
            session, obj.get("metadata"), obj.get("id")
        )
        if obj.get("amount_total") is None:
            raise ValidationError("Checkout session is missing amount_total")
        return await apply_payment(
            session,
            transaction_id=transaction_id,
            amount=minor_units_to_amount(obj["amount_total"]),
            provider=provider,
            event_id=checkout_event_id("paid", obj.get("id"), event_id),
            event_type=event_type,
            raw=event,
            payment_id=obj.get("payment_intent"),
        )
    if event_type == "checkout.session.expired":
        transaction_id = await _resolve_transaction_id(
            session, obj.get("metadata"), obj.get("id")
        )
        return await apply_cancellation(
            session,
            transaction_id=transaction_id,
            reason="Checkout session expired",
            provider=provider,
            event_id=event_id,
            event_type=event_type,
            raw=event,
        )
    if event_type == "payment_intent.payment_failed":
        transaction_id = await _resolve_transaction_id(session, obj.get("metadata"), None)
        error = obj.get("last_payment_error") or {}
        return await apply_failure(
            session,
            transaction_id=transaction_id,
            reason=error.get("message") or "Payment failed",
            provider=provider,
            event_id=event_id,
            event_type=event_type,
            raw=event,
        )
    return await record_unhandled(
        session, provider=provider, event_id=event_id, event_type=event_type, raw=event
    )


async def handle_dodo_event(
    session: AsyncSession, event: dict[str, Any], *, event_id: str
) -> ReconcileResult:
    event_type = str(event.get("type") or "")
    if not event_id or not event_type:
        raise ValidationError("Malformed Dodo event")
    data: dict[str, Any] = event.get("data") or {}
    provider = PaymentProvider.DODO.value
    handled = {"payment.succeeded", "payment.failed", "payment.cancelled"}
    if event_type not in handled:
        return await record_unhandled(
            session, provider=provider, event_id=event_id, event_type=event_type, raw=event
        )

    payment_id = data.get("payment_id")
    transaction_id = await _resolve_transaction_id(
        session, data.get("metadata"), payment_id
    )
    if event_type == "payment.succeeded":
        total = data.get("total_amount", data.get("amount"))
        if total is None:
            raise ValidationError("Payment event is missing total_amount")
        return await apply_payment(
            session,
            transaction_id=transaction_id,
            amount=minor_units_to_amount(total),
            provider=provider,
            event_id=checkout_event_id("paid", payment_id, event_id),
            event_type=event_type,
            raw=event,
            payment_id=payment_id,
        )
    if event_type == "payment.failed":
        return await apply_failure(
            session,
            transaction_id=transaction_id,
            reason=data.get("error_message") or "Payment failed",
            provider=provider,
            event_id=event_id,
            event_type=event_type,
            raw=event,
        )
    return await apply_cancellation(
        session,
        transaction_id=transaction_id,
        reason="Payment cancelled",
        provider=provider,
        event_id=event_id,
        event_type=event_type,
        raw=event,
    )
