"""Vehicle listing schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from carmarket.models.vehicle import FuelType, Transmission, VehicleStatus


class VehicleSort(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    PRICE_LOW = "price-low"
    PRICE_HIGH = "price-high"
    YEAR_NEW = "year-new"
    YEAR_OLD = "year-old"


class VehicleBase(BaseModel):
    make: str = Field(min_length=1, max_length=120)
    model: str = Field(min_length=1, max_length=120)
    year: int = Field(ge=1900, le=2100)
    price: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    mileage: int | None = Field(default=None, ge=0)
    fuel_type: FuelType
    transmission: Transmission
    color: str | None = None
    description: str | None = None
    images: list[str] = Field(default_factory=list)
    registration_number: str | None = None
    owner_count: int | None = Field(default=1, ge=1)
    location: str | None = None


class VehicleCreate(VehicleBase):
    """Payload for listing a vehicle."""


class VehicleUpdate(BaseModel):
    """Editable listing fields; status is managed by moderation and payments."""

    make: str | None = Field(default=None, min_length=1, max_length=120)
    model: str | None = Field(default=None, min_length=1, max_length=120)
    year: int | None = Field(default=None, ge=1900, le=2100)
    price: Decimal | None = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    mileage: int | None = Field(default=None, ge=0)
    fuel_type: FuelType | None = None
    transmission: Transmission | None = None
    color: str | None = None
    description: str | None = None
    images: list[str] | None = None
    registration_number: str | None = None
    owner_count: int | None = Field(default=None, ge=1)
    location: str | None = None


class VehicleRead(VehicleBase):
    id: uuid.UUID
    seller_id: uuid.UUID
    status: VehicleStatus
    views: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class VehicleFilters(BaseModel):
    """Query parameters accepted by the public listing."""

    make: str | None = None
    model: str | None = None
    min_price: Decimal | None = Field(default=None, ge=0)
    max_price: Decimal | None = Field(default=None, ge=0)
    min_year: int | None = None
    max_year: int | None = None
    fuel_type: FuelType | None = None
    transmission: Transmission | None = None
    location: str | None = None
    sort: VehicleSort = VehicleSort.NEWEST
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=12, ge=1, le=100)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class VehicleListResponse(BaseModel):
    vehicles: list[VehicleRead]
    pagination: Pagination


class FavoriteRead(BaseModel):
    id: uuid.UUID
    vehicle: VehicleRead
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FavoriteCheck(BaseModel):
    is_favorite: bool
