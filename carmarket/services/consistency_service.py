"""Detect and repair drift between transaction and vehicle state."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.core.errors import ConsistencyError
from carmarket.db.session import atomic
from carmarket.models import (
    PaymentEvent,
    Transaction,
    TransactionStatus,
    Vehicle,
    VehicleStatus,
)
from carmarket.services.reconciliation_service import Outcome
from carmarket.services.state import (
    SETTLED_STATUSES,
    can_transition_vehicle,
    is_fully_paid,
    transition_transaction,
    transition_vehicle,
)
from carmarket.services.vehicle_service import hold_cutoff

logger = logging.getLogger(__name__)

VEHICLE_NOT_SOLD = "vehicle_not_sold"
REMAINING_STUCK = "remaining_stuck"
STALE_HOLD = "stale_hold"
REFUND_REQUIRED = Outcome.REFUND_REQUIRED.value


@dataclass(slots=True)
class ConsistencyFinding:
    kind: str
    transaction_id: uuid.UUID | None
    vehicle_id: uuid.UUID
    detail: str
    fixed: bool = False
    event_id: uuid.UUID | None = None


async def _settled_pairs(
    session: AsyncSession, *, lock: bool
) -> list[tuple[Transaction, Vehicle]]:
    stmt = (
        select(Transaction, Vehicle)
        .join(Vehicle, Vehicle.id == Transaction.vehicle_id)
        .where(Transaction.status.in_(SETTLED_STATUSES))
        .order_by(Transaction.created_at)
    )
    if lock:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    return [(row[0], row[1]) for row in result.all()]


def _check_vehicle_not_sold(
    transaction: Transaction, vehicle: Vehicle, *, apply: bool
) -> ConsistencyFinding | None:
    if not is_fully_paid(transaction.remaining_amount):
        return None
    if vehicle.status == VehicleStatus.SOLD and transaction.status == TransactionStatus.COMPLETED:
        return None
    finding = ConsistencyFinding(
        kind=VEHICLE_NOT_SOLD,
        transaction_id=transaction.id,
        vehicle_id=vehicle.id,
        detail=(
            f"Transaction is fully paid ({transaction.status.value}) "
            f"but vehicle is {vehicle.status.value}"
        ),
    )
    if not apply:
        return finding
    if not can_transition_vehicle(vehicle.status, VehicleStatus.SOLD):
        # Left for a human; the lifecycle does not allow this vehicle to be sold.
        logger.error("Cannot repair vehicle %s: %s", vehicle.id, finding.detail)
        return finding
    transition_vehicle(vehicle, VehicleStatus.SOLD)
    if transaction.status != TransactionStatus.COMPLETED:
        transition_transaction(transaction, TransactionStatus.COMPLETED)
    transaction.remaining_amount = Decimal("0.00")
    finding.fixed = True
    return finding


def _check_remaining_stuck(
    transaction: Transaction, vehicle: Vehicle, *, apply: bool
) -> ConsistencyFinding | None:
    if vehicle.status != VehicleStatus.SOLD or is_fully_paid(transaction.remaining_amount):
        return None
    finding = ConsistencyFinding(
        kind=REMAINING_STUCK,
        transaction_id=transaction.id,
        vehicle_id=vehicle.id,
        detail=(
            f"Vehicle is sold but transaction still owes {transaction.remaining_amount}"
        ),
    )
    if apply:
        transaction.remaining_amount = Decimal("0.00")
        if transaction.status != TransactionStatus.COMPLETED:
            transition_transaction(transaction, TransactionStatus.COMPLETED)
        finding.fixed = True
    return finding


async def _check_stale_holds(
    session: AsyncSession, *, now: datetime, apply: bool
) -> list[ConsistencyFinding]:
    stmt = select(Transaction).where(
        Transaction.status == TransactionStatus.PENDING,
        Transaction.created_at <= hold_cutoff(now),
    )
    if apply:
        stmt = stmt.with_for_update()
    findings = []
    for transaction in (await session.execute(stmt)).scalars().all():
        finding = ConsistencyFinding(
            kind=STALE_HOLD,
            transaction_id=transaction.id,
            vehicle_id=transaction.vehicle_id,
            detail="Pending checkout outlived the hold window",
        )
        if apply:
            transition_transaction(transaction, TransactionStatus.CANCELLED)
            transaction.failure_reason = "Checkout hold expired"
            finding.fixed = True
        findings.append(finding)
    return findings


async def _check_refunds_owed(session: AsyncSession) -> list[ConsistencyFinding]:
    # Report only: refunds go back through the gateway dashboard, not this scan.
    stmt = (
        select(PaymentEvent, Transaction)
        .join(Transaction, Transaction.id == PaymentEvent.transaction_id)
        .where(PaymentEvent.outcome == REFUND_REQUIRED)
        .order_by(PaymentEvent.received_at)
    )
    findings = []
    for event, transaction in (await session.execute(stmt)).all():
        findings.append(
            ConsistencyFinding(
                kind=REFUND_REQUIRED,
                transaction_id=transaction.id,
                vehicle_id=transaction.vehicle_id,
                detail=(
                    f"{event.provider} payment {event.provider_event_id} arrived after "
                    f"the transaction was {transaction.status.value}"
                ),
                event_id=event.id,
            )
        )
    return findings


async def _collect(
    session: AsyncSession, *, now: datetime, apply: bool
) -> list[ConsistencyFinding]:
    findings: list[ConsistencyFinding] = []
    for transaction, vehicle in await _settled_pairs(session, lock=apply):
        for check in (_check_vehicle_not_sold, _check_remaining_stuck):
            finding = check(transaction, vehicle, apply=apply)
            if finding is not None:
                findings.append(finding)
    findings.extend(await _check_stale_holds(session, now=now, apply=apply))
    findings.extend(await _check_refunds_owed(session))
    return findings


async def scan(
    session: AsyncSession, *, apply: bool = False, now: datetime | None = None
) -> list[ConsistencyFinding]:
    """Report drift; with ``apply`` also repair it in one commit.

    Running it again after a repair reports nothing for the fixed rows.
    """

    now = now or datetime.now(UTC)
    if not apply:
        findings = await _collect(session, now=now, apply=False)
    else:
        async with atomic(session):
            findings = await _collect(session, now=now, apply=True)
    for finding in findings:
        logger.info(
            "Consistency %s on vehicle %s (transaction %s)%s",
            finding.kind,
            finding.vehicle_id,
            finding.transaction_id,
            " repaired" if finding.fixed else "",
        )
    return findings


async def assert_consistent(
    session: AsyncSession, *, now: datetime | None = None
) -> None:
    findings = await scan(session, now=now)
    if findings:
        raise ConsistencyError(
            f"{len(findings)} consistency issue(s) found", context=findings
        )
