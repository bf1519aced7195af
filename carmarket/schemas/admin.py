"""Admin console schemas."""

from __future__ import annotations

import uuid
from decimal import Decimal

from pydantic import BaseModel

from carmarket.models.vehicle import VehicleStatus


class ListingStatusUpdate(BaseModel):
    status: VehicleStatus


class PlatformStats(BaseModel):
    total_users: int
    buyers: int
    sellers: int
    suspended_users: int
    total_listings: int
    pending_listings: int
    approved_listings: int
    sold_listings: int
    total_transactions: int
    completed_transactions: int
    revenue: Decimal
    open_complaints: int


class ConsistencyFindingRead(BaseModel):
    kind: str
    transaction_id: uuid.UUID | None = None
    vehicle_id: uuid.UUID
    detail: str
    fixed: bool = False
    event_id: uuid.UUID | None = None


class ConsistencyReport(BaseModel):
    applied: bool
    findings: list[ConsistencyFindingRead]
