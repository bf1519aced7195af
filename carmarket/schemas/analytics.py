"""Dashboard analytics schemas."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel


class ChartPoint(BaseModel):
    date: date
    count: int
    total_amount: Decimal


class SellerSummary(BaseModel):
    total_revenue: Decimal
    total_sold: int
    active_listings: int
    total_views: int


class BuyerSummary(BaseModel):
    total_spent: Decimal
    total_bought: int
    favorites: int
    inquiries: int


class SellerAnalytics(BaseModel):
    summary: SellerSummary
    chart: list[ChartPoint]


class BuyerAnalytics(BaseModel):
    summary: BuyerSummary
    chart: list[ChartPoint]
