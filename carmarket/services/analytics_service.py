"""Seller and buyer dashboard figures.

Only fully paid purchases count: a booking with a balance outstanding is not
revenue yet.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

from sqlalchemy import ColumnElement, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.models import Favorite, Inquiry, Transaction, Vehicle
from carmarket.models.mixins import as_utc
from carmarket.schemas.analytics import (
    BuyerAnalytics,
    BuyerSummary,
    ChartPoint,
    SellerAnalytics,
    SellerSummary,
)
from carmarket.services.state import SETTLED_STATUSES, is_fully_paid
from carmarket.services.vehicle_service import available_clause

CHART_DAYS = 7


async def _paid_transactions(
    session: AsyncSession, condition: ColumnElement[bool]
) -> list[Transaction]:
    result = await session.execute(
        select(Transaction).where(condition, Transaction.status.in_(SETTLED_STATUSES))
    )
    return [t for t in result.scalars().all() if is_fully_paid(t.remaining_amount)]


def build_chart(transactions: Iterable[Transaction], *, today: date) -> list[ChartPoint]:
    """Seven daily buckets ending today, oldest first, empty days included."""
    days = [today - timedelta(days=offset) for offset in range(CHART_DAYS - 1, -1, -1)]
    buckets = {day: ChartPoint(date=day, count=0, total_amount=Decimal("0.00")) for day in days}
    for transaction in transactions:
        day = as_utc(transaction.created_at).date()
        point = buckets.get(day)
        if point is None:
            continue
        point.count += 1
        point.total_amount += transaction.amount
    return [buckets[day] for day in days]


async def seller_analytics(
    session: AsyncSession, *, seller_id: uuid.UUID, now: datetime | None = None
) -> SellerAnalytics:
    now = now or datetime.now(UTC)
    sales = await _paid_transactions(session, Transaction.seller_id == seller_id)
    active = await session.scalar(
        select(func.count(Vehicle.id)).where(
            Vehicle.seller_id == seller_id, available_clause(now)
        )
    )
    views = await session.scalar(
        select(func.coalesce(func.sum(Vehicle.views), 0)).where(
            Vehicle.seller_id == seller_id
        )
    )
    return SellerAnalytics(
        summary=SellerSummary(
            total_revenue=sum((t.amount for t in sales), Decimal("0.00")),
            total_sold=len(sales),
            active_listings=int(active or 0),
            total_views=int(views or 0),
        ),
        chart=build_chart(sales, today=now.date()),
    )


async def buyer_analytics(
    session: AsyncSession, *, buyer_id: uuid.UUID, now: datetime | None = None
) -> BuyerAnalytics:
    now = now or datetime.now(UTC)
    purchases = await _paid_transactions(session, Transaction.buyer_id == buyer_id)
    favorites = await session.scalar(
        select(func.count(Favorite.id)).where(Favorite.user_id == buyer_id)
    )
    inquiries = await session.scalar(
        select(func.count(Inquiry.id)).where(Inquiry.buyer_id == buyer_id)
    )
    return BuyerAnalytics(
        summary=BuyerSummary(
            total_spent=sum((t.amount for t in purchases), Decimal("0.00")),
            total_bought=len(purchases),
            favorites=int(favorites or 0),
            inquiries=int(inquiries or 0),
        ),
        chart=build_chart(purchases, today=now.date()),
    )
