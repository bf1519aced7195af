"""Purchase transaction and payment event models."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from carmarket.db.base import Base
from carmarket.models.mixins import TimestampMixin, utcnow

if TYPE_CHECKING:
    from carmarket.models.user import User
    from carmarket.models.vehicle import Vehicle


JSONB_TYPE = JSONB(astext_type=Text()).with_variant(JSON(), "sqlite")

# Enum columns persist member names, so the predicate matches upper-case labels.
ACTIVE_STATUS_PREDICATE = "status IN ('PENDING', 'PAYMENT_COMPLETED', 'COMPLETED')"


class TransactionStatus(str, enum.Enum):
    """Lifecycle states for a purchase."""

    PENDING = "pending"
    PAYMENT_COMPLETED = "payment_completed"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentType(str, enum.Enum):
    FULL = "full"
    BOOKING = "booking"
    MANUAL = "manual"


class PaymentProvider(str, enum.Enum):
    STRIPE = "stripe"
    DODO = "dodo"
    MANUAL = "manual"


class DeliveryStatus(str, enum.Enum):
    PROCESSING = "processing"
    INSPECTION = "inspection"
    DOCUMENTATION = "documentation"
    READY_FOR_COLLECTION = "ready_for_collection"
    COLLECTED = "collected"


class Transaction(TimestampMixin, Base):
    """A buyer's attempt to purchase one vehicle."""

    __tablename__ = "transactions"

    __table_args__ = (
        Index(
            "ux_transactions_active_vehicle",
            "vehicle_id",
            unique=True,
            sqlite_where=text(ACTIVE_STATUS_PREDICATE),
            postgresql_where=text(ACTIVE_STATUS_PREDICATE),
        ),
        Index("ix_transactions_vehicle_status", "vehicle_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    vehicle_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False
    )
    buyer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    seller_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    booking_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    remaining_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    currency: Mapped[str] = mapped_column(String(12), nullable=False, default="inr")
    status: Mapped[TransactionStatus] = mapped_column(
        Enum(TransactionStatus), nullable=False, default=TransactionStatus.PENDING
    )
    payment_type: Mapped[PaymentType] = mapped_column(
        Enum(PaymentType), nullable=False, default=PaymentType.FULL
    )
    provider: Mapped[PaymentProvider] = mapped_column(
        Enum(PaymentProvider), nullable=False, default=PaymentProvider.STRIPE
    )
    checkout_reference: Mapped[str | None] = mapped_column(String(255), index=True)
    provider_payment_id: Mapped[str | None] = mapped_column(String(255))
    failure_reason: Mapped[str | None] = mapped_column(Text())

    delivery_status: Mapped[DeliveryStatus | None] = mapped_column(
        Enum(DeliveryStatus)
    )
    estimated_ready_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    delivery_notes: Mapped[str | None] = mapped_column(Text())
    collected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    vehicle: Mapped["Vehicle"] = relationship("Vehicle", lazy="selectin")
    buyer: Mapped["User"] = relationship("User", foreign_keys=[buyer_id])
    seller: Mapped["User"] = relationship("User", foreign_keys=[seller_id])


class PaymentEvent(Base):
    """Processed provider webhook events; the ledger that makes delivery idempotent."""

    __tablename__ = "payment_events"

    __table_args__ = (
        UniqueConstraint(
            "provider", "provider_event_id", name="uq_payment_events_provider_event"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    provider_event_id: Mapped[str] = mapped_column(String(255), nullable=False)
    event_type: Mapped[str] = mapped_column(String(120), nullable=False)
    transaction_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("transactions.id", ondelete="SET NULL")
    )
    outcome: Mapped[str] = mapped_column(String(32), nullable=False)
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),  # type: ignore[arg-type]
    )
    raw: Mapped[dict[str, Any]] = mapped_column(JSONB_TYPE, nullable=False)
