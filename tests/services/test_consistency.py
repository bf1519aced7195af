"""Tests for the drift scanner and its repairs."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

import pytest
from sqlalchemy import select

from carmarket.core.errors import ConsistencyError
from carmarket.models import (
    FuelType,
    PaymentEvent,
    PaymentProvider,
    PaymentType,
    Transaction,
    TransactionStatus,
    Transmission,
    Vehicle,
    VehicleStatus,
)
from carmarket.services import consistency_service, reconciliation_service

pytestmark = pytest.mark.asyncio

NOW = datetime(2026, 5, 10, 9, 30, tzinfo=UTC)


async def _pair(
    session,
    context: dict[str, Any],
    *,
    vehicle_status: VehicleStatus,
    status: TransactionStatus,
    remaining: str | None,
    created_at: datetime = NOW - timedelta(days=1),
) -> tuple[Vehicle, Transaction]:
    vehicle = Vehicle(
        seller_id=context["seller"].id,
        make="Ford",
        model="EcoSport",
        year=2017,
        price=Decimal("600000.00"),
        fuel_type=FuelType.PETROL,
        transmission=Transmission.MANUAL,
        images=[],
        status=vehicle_status,
    )
    session.add(vehicle)
    await session.flush()
    transaction = Transaction(
        vehicle_id=vehicle.id,
        buyer_id=context["buyer"].id,
        seller_id=vehicle.seller_id,
        amount=vehicle.price,
        booking_amount=Decimal("30000.00"),
        remaining_amount=None if remaining is None else Decimal(remaining),
        status=status,
        payment_type=PaymentType.BOOKING,
        provider=PaymentProvider.STRIPE,
        created_at=created_at,
    )
    session.add(transaction)
    await session.commit()
    return vehicle, transaction


async def test_scan_reports_then_repairs_drift(
    marketplace: dict[str, Any], sessionmaker
) -> None:
    async with sessionmaker() as session:
        paid_unsold, _ = await _pair(
            session,
            marketplace,
            vehicle_status=VehicleStatus.APPROVED,
            status=TransactionStatus.PAYMENT_COMPLETED,
            remaining="0.00",
        )
        completed_unsold, _ = await _pair(
            session,
            marketplace,
            vehicle_status=VehicleStatus.APPROVED,
            status=TransactionStatus.COMPLETED,
            remaining=None,
        )
        _, stuck = await _pair(
            session,
            marketplace,
            vehicle_status=VehicleStatus.SOLD,
            status=TransactionStatus.PAYMENT_COMPLETED,
            remaining="1000.00",
        )
        _, stale = await _pair(
            session,
            marketplace,
            vehicle_status=VehicleStatus.APPROVED,
            status=TransactionStatus.PENDING,
            remaining="600000.00",
            created_at=NOW - timedelta(hours=2),
        )
        unmoderated, _ = await _pair(
            session,
            marketplace,
            vehicle_status=VehicleStatus.PENDING,
            status=TransactionStatus.COMPLETED,
            remaining="0",
        )

        report = await consistency_service.scan(session, now=NOW)
        kinds = sorted(finding.kind for finding in report)
        assert kinds == [
            "remaining_stuck",
            "stale_hold",
            "vehicle_not_sold",
            "vehicle_not_sold",
            "vehicle_not_sold",
        ]
        assert not any(finding.fixed for finding in report)

        with pytest.raises(ConsistencyError):
            await consistency_service.assert_consistent(session, now=NOW)

        # Attribute access after expire_all would lazy-load outside the event loop.
        sold_ids = (paid_unsold.id, completed_unsold.id)
        stuck_id, stale_id, unmoderated_id = stuck.id, stale.id, unmoderated.id

        repaired = await consistency_service.scan(session, apply=True, now=NOW)
        unfixed = [finding for finding in repaired if not finding.fixed]
        assert [finding.vehicle_id for finding in unfixed] == [unmoderated_id]

        session.expire_all()
        for vehicle_id in sold_ids:
            vehicle = await session.get(Vehicle, vehicle_id)
            assert vehicle.status == VehicleStatus.SOLD
        stuck_row = await session.get(Transaction, stuck_id)
        assert stuck_row.status == TransactionStatus.COMPLETED
        assert stuck_row.remaining_amount == Decimal("0.00")
        stale_row = await session.get(Transaction, stale_id)
        assert stale_row.status == TransactionStatus.CANCELLED

        again = await consistency_service.scan(session, now=NOW)
        assert [finding.vehicle_id for finding in again] == [unmoderated_id]


async def test_clean_database_is_consistent(
    marketplace: dict[str, Any], sessionmaker
) -> None:
    async with sessionmaker() as session:
        await _pair(
            session,
            marketplace,
            vehicle_status=VehicleStatus.SOLD,
            status=TransactionStatus.COMPLETED,
            remaining="0.00",
        )
        await consistency_service.assert_consistent(session, now=NOW)


async def test_late_payment_is_reported_until_refunded(
    marketplace: dict[str, Any], sessionmaker
) -> None:
    async with sessionmaker() as session:
        vehicle, cancelled = await _pair(
            session,
            marketplace,
            vehicle_status=VehicleStatus.APPROVED,
            status=TransactionStatus.CANCELLED,
            remaining="600000.00",
        )
        vehicle_id, transaction_id = vehicle.id, cancelled.id
        result = await reconciliation_service.apply_payment(
            session,
            transaction_id=transaction_id,
            amount=Decimal("30000.00"),
            provider="stripe",
            event_id="paid:cs_late",
            event_type="checkout.session.completed",
            raw={},
        )
        assert result.status == reconciliation_service.Outcome.REFUND_REQUIRED

        report = await consistency_service.scan(session, apply=True, now=NOW)
        assert [(f.kind, f.vehicle_id, f.fixed) for f in report] == [
            ("refund_required", vehicle_id, False)
        ]
        with pytest.raises(ConsistencyError):
            await consistency_service.assert_consistent(session, now=NOW)

        event_id = await session.scalar(
            select(PaymentEvent.id).where(PaymentEvent.provider_event_id == "paid:cs_late")
        )
        await reconciliation_service.mark_refunded(
            session, actor=marketplace["admin"], event_id=event_id
        )
        await consistency_service.assert_consistent(session, now=NOW)
