"""Saved vehicles per user."""
from __future__ import annotations

import uuid

from sqlalchemy import ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carmarket.db.base import Base
from carmarket.models.mixins import TimestampMixin
from carmarket.models.vehicle import Vehicle


class Favorite(TimestampMixin, Base):
    __tablename__ = "favorites"

    __table_args__ = (
        UniqueConstraint("user_id", "vehicle_id", name="uq_favorites_user_vehicle"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    vehicle_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False
    )

    vehicle: Mapped[Vehicle] = relationship("Vehicle", lazy="selectin")
