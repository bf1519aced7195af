"""Vehicle listing model."""
from __future__ import annotations

import enum
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import Enum, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from carmarket.db.base import Base
from carmarket.models.mixins import TimestampMixin

if TYPE_CHECKING:
    from carmarket.models.user import User


class VehicleStatus(str, enum.Enum):
    """Moderation and sale lifecycle for a listing."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SOLD = "sold"


class FuelType(str, enum.Enum):
    PETROL = "petrol"
    DIESEL = "diesel"
    ELECTRIC = "electric"
    HYBRID = "hybrid"
    CNG = "cng"


class Transmission(str, enum.Enum):
    MANUAL = "manual"
    AUTOMATIC = "automatic"


class Vehicle(TimestampMixin, Base):
    """A car listed for sale by a seller."""

    __tablename__ = "vehicles"

    __table_args__ = (Index("ix_vehicles_status_created", "status", "created_at"),)

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    seller_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    make: Mapped[str] = mapped_column(String(120), nullable=False)
    model: Mapped[str] = mapped_column(String(120), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    mileage: Mapped[int | None] = mapped_column(Integer)
    fuel_type: Mapped[FuelType] = mapped_column(Enum(FuelType), nullable=False)
    transmission: Mapped[Transmission] = mapped_column(
        Enum(Transmission), nullable=False
    )
    color: Mapped[str | None] = mapped_column(String(60))
    description: Mapped[str | None] = mapped_column(Text())
    images: Mapped[list[Any]] = mapped_column(JSON(), default=list, nullable=False)
    registration_number: Mapped[str | None] = mapped_column(String(32))
    owner_count: Mapped[int | None] = mapped_column(Integer, default=1)
    location: Mapped[str | None] = mapped_column(String(200))
    views: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[VehicleStatus] = mapped_column(
        Enum(VehicleStatus), default=VehicleStatus.PENDING, nullable=False
    )

    seller: Mapped["User"] = relationship("User", back_populates="vehicles")

    @property
    def display_name(self) -> str:
        return f"{self.year} {self.make} {self.model}"
