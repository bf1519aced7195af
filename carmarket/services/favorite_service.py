"""Saved vehicles."""

from __future__ import annotations

import uuid
from collections.abc import Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.core.errors import ConflictError, NotFoundError
from carmarket.models import Favorite, Vehicle


async def list_favorites(session: AsyncSession, *, user_id: uuid.UUID) -> Sequence[Favorite]:
    result = await session.execute(
        select(Favorite)
        .where(Favorite.user_id == user_id)
        .order_by(Favorite.created_at.desc())
    )
    return result.scalars().all()


async def add_favorite(
    session: AsyncSession, *, user_id: uuid.UUID, vehicle_id: uuid.UUID
) -> Favorite:
    if await session.get(Vehicle, vehicle_id) is None:
        raise NotFoundError("Vehicle not found")
    favorite = Favorite(user_id=user_id, vehicle_id=vehicle_id)
    session.add(favorite)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ConflictError("Vehicle already in favorites") from exc
    await session.refresh(favorite, attribute_names=["vehicle"])
    return favorite


async def remove_favorite(
    session: AsyncSession, *, user_id: uuid.UUID, vehicle_id: uuid.UUID
) -> None:
    result = await session.execute(
        delete(Favorite).where(
            Favorite.user_id == user_id, Favorite.vehicle_id == vehicle_id
        )
    )
    if result.rowcount == 0:
        raise NotFoundError("Favorite not found")
    await session.commit()


async def is_favorite(
    session: AsyncSession, *, user_id: uuid.UUID, vehicle_id: uuid.UUID
) -> bool:
    found = await session.scalar(
        select(Favorite.id).where(
            Favorite.user_id == user_id, Favorite.vehicle_id == vehicle_id
        )
    )
    return found is not None
