"""Admin console operations: users, listing moderation and platform stats."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from decimal import Decimal

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.core.errors import ConflictError, NotFoundError, ValidationError
from carmarket.db.session import atomic
from carmarket.models import (
    Complaint,
    ComplaintStatus,
    Favorite,
    Inquiry,
    InquiryMessage,
    PasswordResetToken,
    Transaction,
    User,
    UserRole,
    Vehicle,
    VehicleStatus,
)
from carmarket.schemas.admin import PlatformStats
from carmarket.services.state import (
    SETTLED_STATUSES,
    TERMINAL_STATUSES,
    is_fully_paid,
    transition_vehicle,
)
from carmarket.services.vehicle_service import delete_vehicles_where

logger = logging.getLogger(__name__)


async def _get_user(session: AsyncSession, user_id: uuid.UUID) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def update_role(
    session: AsyncSession, *, admin: User, user_id: uuid.UUID, role: UserRole
) -> User:
    if user_id == admin.id and role != UserRole.ADMIN:
        raise ValidationError("Cannot remove your own admin role")
    user = await _get_user(session, user_id)
    user.role = role
    await session.commit()
    await session.refresh(user)
    logger.info("Admin %s set role of %s to %s", admin.id, user_id, role.value)
    return user


async def set_verified(
    session: AsyncSession, *, user_id: uuid.UUID, email_verified: bool
) -> User:
    user = await _get_user(session, user_id)
    user.email_verified = email_verified
    await session.commit()
    await session.refresh(user)
    return user


async def set_suspended(
    session: AsyncSession, *, admin: User, user_id: uuid.UUID, suspended: bool
) -> User:
    if user_id == admin.id:
        raise ValidationError("Cannot suspend yourself")
    user = await _get_user(session, user_id)
    user.suspended = suspended
    await session.commit()
    await session.refresh(user)
    logger.info(
        "Admin %s %s user %s", admin.id, "suspended" if suspended else "reinstated", user_id
    )
    return user


async def delete_user(session: AsyncSession, *, admin: User, user_id: uuid.UUID) -> None:
    """Remove a user together with their listings, threads and transactions."""
    if user_id == admin.id:
        raise ValidationError("Cannot delete yourself")
    async with atomic(session):
        await _get_user(session, user_id)
        await delete_vehicles_where(session, Vehicle.seller_id == user_id)
        await session.execute(delete(Favorite).where(Favorite.user_id == user_id))
        own_inquiries = select(Inquiry.id).where(
            or_(Inquiry.buyer_id == user_id, Inquiry.seller_id == user_id)
        )
        await session.execute(
            delete(InquiryMessage).where(
                or_(
                    InquiryMessage.inquiry_id.in_(own_inquiries),
                    InquiryMessage.sender_id == user_id,
                )
            )
        )
        await session.execute(
            delete(Inquiry).where(
                or_(Inquiry.buyer_id == user_id, Inquiry.seller_id == user_id)
            )
        )
        await session.execute(
            delete(Transaction).where(
                or_(Transaction.buyer_id == user_id, Transaction.seller_id == user_id)
            )
        )
        await session.execute(
            update(Complaint)
            .where(Complaint.reported_user_id == user_id)
            .values(reported_user_id=None)
        )
        await session.execute(delete(Complaint).where(Complaint.reporter_id == user_id))
        await session.execute(
            delete(PasswordResetToken).where(PasswordResetToken.user_id == user_id)
        )
        await session.execute(
            delete(User)
            .where(User.id == user_id)
            .execution_options(synchronize_session=False)
        )
    logger.info("Admin %s deleted user %s", admin.id, user_id)


async def list_listings(
    session: AsyncSession,
    *,
    status: VehicleStatus | None = None,
    skip: int = 0,
    limit: int = 50,
) -> Sequence[Vehicle]:
    stmt = select(Vehicle).order_by(Vehicle.created_at.desc()).offset(skip).limit(limit)
    if status is not None:
        stmt = stmt.where(Vehicle.status == status)
    result = await session.execute(stmt)
    return result.scalars().all()


async def update_listing_status(
    session: AsyncSession, *, vehicle_id: uuid.UUID, status: VehicleStatus
) -> Vehicle:
    """Moderate a listing. Sales are recorded by payments, never by hand."""
    if status == VehicleStatus.SOLD:
        raise ConflictError("Vehicles are marked sold by completed payments only")
    async with atomic(session):
        vehicle = (
            await session.execute(
                select(Vehicle)
                .where(Vehicle.id == vehicle_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        if vehicle is None:
            raise NotFoundError("Vehicle not found")
        if status != vehicle.status:
            open_transaction = await session.scalar(
                select(Transaction.id).where(
                    Transaction.vehicle_id == vehicle.id,
                    Transaction.status.not_in(TERMINAL_STATUSES),
                )
            )
            if open_transaction is not None:
                raise ConflictError("Listing has an open transaction")
        transition_vehicle(vehicle, status)
    await session.refresh(vehicle)
    return vehicle


async def platform_stats(session: AsyncSession) -> PlatformStats:
    async def count(stmt) -> int:
        return int(await session.scalar(stmt) or 0)

    users_by_role = dict(
        (await session.execute(select(User.role, func.count(User.id)).group_by(User.role))).all()
    )
    vehicles_by_status = dict(
        (
            await session.execute(
                select(Vehicle.status, func.count(Vehicle.id)).group_by(Vehicle.status)
            )
        ).all()
    )
    settled = (
        await session.execute(
            select(Transaction.amount, Transaction.remaining_amount).where(
                Transaction.status.in_(SETTLED_STATUSES)
            )
        )
    ).all()
    fully_paid = [amount for amount, remaining in settled if is_fully_paid(remaining)]

    return PlatformStats(
        total_users=sum(users_by_role.values()),
        buyers=users_by_role.get(UserRole.BUYER, 0),
        sellers=users_by_role.get(UserRole.SELLER, 0),
        suspended_users=await count(
            select(func.count(User.id)).where(User.suspended.is_(True))
        ),
        total_listings=sum(vehicles_by_status.values()),
        pending_listings=vehicles_by_status.get(VehicleStatus.PENDING, 0),
        approved_listings=vehicles_by_status.get(VehicleStatus.APPROVED, 0),
        sold_listings=vehicles_by_status.get(VehicleStatus.SOLD, 0),
        total_transactions=await count(select(func.count(Transaction.id))),
        completed_transactions=len(fully_paid),
        revenue=sum(fully_paid, Decimal("0.00")),
        open_complaints=await count(
            select(func.count(Complaint.id)).where(
                Complaint.status.in_((ComplaintStatus.PENDING, ComplaintStatus.REVIEWED))
            )
        ),
    )
