"""Tests for dashboard analytics."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from typing import Any

import pytest

from carmarket.models import (
    FuelType,
    PaymentProvider,
    PaymentType,
    Transaction,
    TransactionStatus,
    Transmission,
    Vehicle,
    VehicleStatus,
)
from carmarket.services import analytics_service

pytestmark = pytest.mark.asyncio

NOW = datetime(2026, 8, 20, 15, 0, tzinfo=UTC)


async def _sale(
    session,
    context: dict[str, Any],
    *,
    price: str,
    remaining: str | None,
    status: TransactionStatus,
    days_ago: int,
) -> None:
    sold = status == TransactionStatus.COMPLETED
    vehicle = Vehicle(
        seller_id=context["seller"].id,
        make="Volkswagen",
        model="Polo",
        year=2020,
        price=Decimal(price),
        fuel_type=FuelType.PETROL,
        transmission=Transmission.MANUAL,
        images=[],
        status=VehicleStatus.SOLD if sold else VehicleStatus.APPROVED,
    )
    session.add(vehicle)
    await session.flush()
    session.add(
        Transaction(
            vehicle_id=vehicle.id,
            buyer_id=context["buyer"].id,
            seller_id=vehicle.seller_id,
            amount=vehicle.price,
            remaining_amount=None if remaining is None else Decimal(remaining),
            status=status,
            payment_type=PaymentType.FULL,
            provider=PaymentProvider.STRIPE,
            created_at=NOW - timedelta(days=days_ago),
        )
    )
    await session.commit()


async def test_only_fully_paid_sales_count(
    marketplace: dict[str, Any], sessionmaker
) -> None:
    async with sessionmaker() as session:
        await _sale(
            session,
            marketplace,
            price="700000.00",
            remaining="0.00",
            status=TransactionStatus.COMPLETED,
            days_ago=0,
        )
        await _sale(
            session,
            marketplace,
            price="300000.00",
            remaining=None,
            status=TransactionStatus.PAYMENT_COMPLETED,
            days_ago=2,
        )
        await _sale(
            session,
            marketplace,
            price="900000.00",
            remaining="850000.00",
            status=TransactionStatus.PAYMENT_COMPLETED,
            days_ago=1,
        )
        await _sale(
            session,
            marketplace,
            price="400000.00",
            remaining="0.00",
            status=TransactionStatus.COMPLETED,
            days_ago=30,
        )

        seller = await analytics_service.seller_analytics(
            session, seller_id=marketplace["seller"].id, now=NOW
        )
        buyer = await analytics_service.buyer_analytics(
            session, buyer_id=marketplace["buyer"].id, now=NOW
        )

    assert seller.summary.total_sold == 3
    assert seller.summary.total_revenue == Decimal("1400000.00")
    # The seeded Maruti is the only listing still on sale.
    assert seller.summary.active_listings == 1

    assert [point.date for point in seller.chart] == [
        date(2026, 8, 14) + timedelta(days=offset) for offset in range(7)
    ]
    by_day = {point.date: point for point in seller.chart}
    assert by_day[date(2026, 8, 20)].total_amount == Decimal("700000.00")
    assert by_day[date(2026, 8, 18)].count == 1
    assert by_day[date(2026, 8, 19)].count == 0

    assert buyer.summary.total_bought == 3
    assert buyer.summary.total_spent == Decimal("1400000.00")
