"""Transaction, checkout and webhook schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from carmarket.models.transaction import (
    DeliveryStatus,
    PaymentProvider,
    PaymentType,
    TransactionStatus,
)


class CheckoutCreate(BaseModel):
    """Start a purchase: full payment, a booking deposit or an offline payment."""

    vehicle_id: uuid.UUID
    payment_type: PaymentType = PaymentType.BOOKING
    provider: PaymentProvider = PaymentProvider.STRIPE


class CheckoutResponse(BaseModel):
    transaction_id: uuid.UUID
    checkout_url: str | None = None
    checkout_reference: str | None = None
    amount: Decimal
    currency: str


class VehicleSummary(BaseModel):
    id: uuid.UUID
    make: str
    model: str
    year: int
    price: Decimal
    images: list[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class TransactionRead(BaseModel):
    id: uuid.UUID
    vehicle_id: uuid.UUID
    buyer_id: uuid.UUID
    seller_id: uuid.UUID
    amount: Decimal
    booking_amount: Decimal | None = None
    remaining_amount: Decimal | None = None
    currency: str
    status: TransactionStatus
    payment_type: PaymentType
    provider: PaymentProvider
    checkout_reference: str | None = None
    failure_reason: str | None = None
    delivery_status: DeliveryStatus | None = None
    estimated_ready_at: datetime | None = None
    delivery_notes: str | None = None
    collected_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    vehicle: VehicleSummary | None = None

    model_config = ConfigDict(from_attributes=True)


class TransactionPage(BaseModel):
    transactions: list[TransactionRead]
    page: int
    limit: int
    total: int


class ManualConfirm(BaseModel):
    reference: str | None = Field(default=None, max_length=255)


class DeliveryUpdate(BaseModel):
    delivery_status: DeliveryStatus
    estimated_ready_at: datetime | None = None
    delivery_notes: str | None = None


class AdminStatusUpdate(BaseModel):
    status: TransactionStatus


class WebhookAck(BaseModel):
    """Result of processing one gateway event."""

    status: str
    transaction_id: uuid.UUID | None = None
