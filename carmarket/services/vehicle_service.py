"""Vehicle listings and the public availability filter."""

from __future__ import annotations

import logging
import math
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from sqlalchemy import ColumnElement, and_, delete, exists, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.core.config import get_settings
from carmarket.core.errors import ConflictError, NotFoundError, PermissionDeniedError
from carmarket.models import (
    Favorite,
    Inquiry,
    InquiryMessage,
    Transaction,
    TransactionStatus,
    User,
    UserRole,
    Vehicle,
    VehicleStatus,
)
from carmarket.schemas.vehicle import (
    Pagination,
    VehicleCreate,
    VehicleFilters,
    VehicleListResponse,
    VehicleRead,
    VehicleSort,
    VehicleUpdate,
)
from carmarket.services.state import SETTLED_STATUSES

logger = logging.getLogger(__name__)

_SORT_ORDER = {
    VehicleSort.NEWEST: (Vehicle.created_at.desc(),),
    VehicleSort.OLDEST: (Vehicle.created_at.asc(),),
    VehicleSort.PRICE_LOW: (Vehicle.price.asc(),),
    VehicleSort.PRICE_HIGH: (Vehicle.price.desc(),),
    VehicleSort.YEAR_NEW: (Vehicle.year.desc(),),
    VehicleSort.YEAR_OLD: (Vehicle.year.asc(),),
}


def hold_cutoff(now: datetime, hold_minutes: int | None = None) -> datetime:
    """Pending transactions created at or before this instant no longer hold a vehicle."""
    if hold_minutes is None:
        hold_minutes = get_settings().booking_hold_minutes
    return now - timedelta(minutes=hold_minutes)


def blocking_transaction_clause(
    now: datetime, hold_minutes: int | None = None
) -> ColumnElement[bool]:
    """True for transactions that take their vehicle off the market."""
    return or_(
        Transaction.status.in_(SETTLED_STATUSES),
        and_(
            Transaction.status == TransactionStatus.PENDING,
            Transaction.created_at > hold_cutoff(now, hold_minutes),
        ),
    )


def available_clause(
    now: datetime, hold_minutes: int | None = None
) -> ColumnElement[bool]:
    """Approved listings with no blocking transaction.

    Evaluated against transactions directly, so a vehicle whose status never
    flipped to ``sold`` still drops out once it is paid for.
    """
    blocked = exists().where(
        Transaction.vehicle_id == Vehicle.id,
        blocking_transaction_clause(now, hold_minutes),
    )
    return and_(Vehicle.status == VehicleStatus.APPROVED, ~blocked)


def _filter_conditions(filters: VehicleFilters) -> list[ColumnElement[bool]]:
    conditions: list[ColumnElement[bool]] = []
    if filters.make:
        conditions.append(Vehicle.make.ilike(f"%{filters.make}%"))
    if filters.model:
        conditions.append(Vehicle.model.ilike(f"%{filters.model}%"))
    if filters.min_price is not None:
        conditions.append(Vehicle.price >= filters.min_price)
    if filters.max_price is not None:
        conditions.append(Vehicle.price <= filters.max_price)
    if filters.min_year is not None:
        conditions.append(Vehicle.year >= filters.min_year)
    if filters.max_year is not None:
        conditions.append(Vehicle.year <= filters.max_year)
    if filters.fuel_type is not None:
        conditions.append(Vehicle.fuel_type == filters.fuel_type)
    if filters.transmission is not None:
        conditions.append(Vehicle.transmission == filters.transmission)
    if filters.location:
        conditions.append(Vehicle.location.ilike(f"%{filters.location}%"))
    return conditions


async def list_available_vehicles(
    session: AsyncSession,
    filters: VehicleFilters,
    *,
    now: datetime | None = None,
) -> VehicleListResponse:
    """Return purchasable vehicles matching the filters, one page at a time."""
    now = now or datetime.now(UTC)
    where = and_(available_clause(now), *_filter_conditions(filters))

    total = await session.scalar(
        select(func.count()).select_from(Vehicle).where(where)
    ) or 0
    stmt = (
        select(Vehicle)
        .where(where)
        .order_by(*_SORT_ORDER[filters.sort], Vehicle.id)
        .offset((filters.page - 1) * filters.limit)
        .limit(filters.limit)
    )
    vehicles = (await session.execute(stmt)).scalars().all()
    return VehicleListResponse(
        vehicles=[VehicleRead.model_validate(vehicle) for vehicle in vehicles],
        pagination=Pagination(
            page=filters.page,
            limit=filters.limit,
            total=total,
            total_pages=math.ceil(total / filters.limit),
        ),
    )


async def is_available(
    session: AsyncSession, vehicle_id: uuid.UUID, *, now: datetime | None = None
) -> bool:
    now = now or datetime.now(UTC)
    found = await session.scalar(
        select(Vehicle.id).where(Vehicle.id == vehicle_id, available_clause(now))
    )
    return found is not None


def _can_manage(user: User | None, vehicle: Vehicle) -> bool:
    return user is not None and (
        user.role == UserRole.ADMIN or vehicle.seller_id == user.id
    )


async def get_vehicle(
    session: AsyncSession,
    vehicle_id: uuid.UUID,
    *,
    viewer: User | None = None,
    count_view: bool = True,
) -> Vehicle:
    """Fetch a listing. Unmoderated listings are visible to their seller and admins only."""
    vehicle = await session.get(Vehicle, vehicle_id)
    if vehicle is None:
        raise NotFoundError("Vehicle not found")
    public = vehicle.status in (VehicleStatus.APPROVED, VehicleStatus.SOLD)
    if not public and not _can_manage(viewer, vehicle):
        raise NotFoundError("Vehicle not found")
    if count_view:
        await session.execute(
            update(Vehicle)
            .where(Vehicle.id == vehicle_id)
            .values(views=Vehicle.views + 1)
        )
        await session.commit()
        await session.refresh(vehicle)
    return vehicle


async def create_vehicle(
    session: AsyncSession, *, seller: User, payload: VehicleCreate
) -> Vehicle:
    if seller.role not in (UserRole.SELLER, UserRole.ADMIN):
        raise PermissionDeniedError("Only sellers can list vehicles")
    status = VehicleStatus.APPROVED if seller.role == UserRole.ADMIN else VehicleStatus.PENDING
    vehicle = Vehicle(seller_id=seller.id, status=status, **payload.model_dump())
    session.add(vehicle)
    await session.commit()
    await session.refresh(vehicle)
    logger.info("Vehicle %s listed by %s with status %s", vehicle.id, seller.id, status.value)
    return vehicle


async def update_vehicle(
    session: AsyncSession, *, user: User, vehicle_id: uuid.UUID, payload: VehicleUpdate
) -> Vehicle:
    vehicle = await session.get(Vehicle, vehicle_id)
    if vehicle is None:
        raise NotFoundError("Vehicle not found")
    if not _can_manage(user, vehicle):
        raise PermissionDeniedError("Not your listing")
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(vehicle, field, value)
    await session.commit()
    await session.refresh(vehicle)
    return vehicle


async def delete_vehicle(
    session: AsyncSession, *, user: User, vehicle_id: uuid.UUID
) -> None:
    vehicle = await session.get(Vehicle, vehicle_id)
    if vehicle is None:
        raise NotFoundError("Vehicle not found")
    if not _can_manage(user, vehicle):
        raise PermissionDeniedError("Not your listing")
    paid = await session.scalar(
        select(Transaction.id).where(
            Transaction.vehicle_id == vehicle_id,
            Transaction.status.in_(SETTLED_STATUSES),
        )
    )
    if vehicle.status == VehicleStatus.SOLD or paid is not None:
        raise ConflictError("Vehicles with payments cannot be deleted")
    await delete_vehicles_where(session, Vehicle.id == vehicle_id)
    await session.commit()
    logger.info("Vehicle %s deleted by %s", vehicle_id, user.id)


async def delete_vehicles_where(
    session: AsyncSession, condition: ColumnElement[bool]
) -> None:
    """Bulk-delete vehicles and the rows that reference them, without committing."""
    ids = select(Vehicle.id).where(condition)
    await session.execute(delete(Favorite).where(Favorite.vehicle_id.in_(ids)))
    inquiry_ids = select(Inquiry.id).where(Inquiry.vehicle_id.in_(ids))
    await session.execute(
        delete(InquiryMessage).where(InquiryMessage.inquiry_id.in_(inquiry_ids))
    )
    await session.execute(delete(Inquiry).where(Inquiry.vehicle_id.in_(ids)))
    await session.execute(delete(Transaction).where(Transaction.vehicle_id.in_(ids)))
    await session.execute(
        delete(Vehicle).where(condition).execution_options(synchronize_session=False)
    )


async def list_seller_vehicles(
    session: AsyncSession, *, seller_id: uuid.UUID
) -> Sequence[Vehicle]:
    result = await session.execute(
        select(Vehicle)
        .where(Vehicle.seller_id == seller_id)
        .order_by(Vehicle.created_at.desc())
    )
    return result.scalars().all()
