"""User data access helpers."""
from __future__ import annotations

import uuid

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.core.errors import ConflictError, NotFoundError
from carmarket.core.security import get_password_hash
from carmarket.models import User, UserRole, Vehicle, VehicleStatus
from carmarket.schemas.user import PublicProfile, UserUpdate


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    """Return a user by email address."""
    result = await session.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def get_user(session: AsyncSession, user_id: uuid.UUID) -> User | None:
    """Return a user by ID."""
    return await session.get(User, user_id)


async def list_users(
    session: AsyncSession,
    *,
    role: UserRole | None = None,
    skip: int = 0,
    limit: int = 50,
) -> list[User]:
    """Return paginated users, newest first."""
    stmt = select(User).order_by(User.created_at.desc()).offset(skip).limit(limit)
    if role is not None:
        stmt = stmt.where(User.role == role)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def create_user(
    session: AsyncSession,
    *,
    name: str,
    email: str,
    password: str,
    role: UserRole,
    phone: str | None = None,
) -> User:
    """Persist a new user with hashed password."""
    user = User(
        name=name,
        email=email.lower(),
        hashed_password=get_password_hash(password),
        role=role,
        phone=phone,
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ConflictError("Email already registered") from exc
    await session.refresh(user)
    return user


async def update_user(session: AsyncSession, user: User, payload: UserUpdate) -> User:
    """Update mutable fields on a user."""
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(user, field, value)
    await session.commit()
    await session.refresh(user)
    return user


async def get_public_profile(session: AsyncSession, user_id: uuid.UUID) -> PublicProfile:
    user = await get_user(session, user_id)
    if user is None or user.suspended:
        raise NotFoundError("User not found")
    active = await session.scalar(
        select(func.count(Vehicle.id)).where(
            Vehicle.seller_id == user.id, Vehicle.status == VehicleStatus.APPROVED
        )
    )
    profile = PublicProfile.model_validate(user)
    profile.active_listings = int(active or 0)
    return profile
