"""Favorites endpoints."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, status

from carmarket.api.deps import CurrentUser, SessionDep
from carmarket.schemas.vehicle import FavoriteCheck, FavoriteRead
from carmarket.services import favorite_service

router = APIRouter()


@router.get("", response_model=list[FavoriteRead])
async def list_favorites(
    session: SessionDep, current_user: CurrentUser
) -> list[FavoriteRead]:
    rows = await favorite_service.list_favorites(session, user_id=current_user.id)
    return [FavoriteRead.model_validate(row) for row in rows]


@router.post(
    "/{vehicle_id}", response_model=FavoriteRead, status_code=status.HTTP_201_CREATED
)
async def add_favorite(
    vehicle_id: uuid.UUID, session: SessionDep, current_user: CurrentUser
) -> FavoriteRead:
    favorite = await favorite_service.add_favorite(
        session, user_id=current_user.id, vehicle_id=vehicle_id
    )
    return FavoriteRead.model_validate(favorite)


@router.delete("/{vehicle_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_favorite(
    vehicle_id: uuid.UUID, session: SessionDep, current_user: CurrentUser
) -> None:
    await favorite_service.remove_favorite(
        session, user_id=current_user.id, vehicle_id=vehicle_id
    )


@router.get("/{vehicle_id}/check", response_model=FavoriteCheck)
async def check_favorite(
    vehicle_id: uuid.UUID, session: SessionDep, current_user: CurrentUser
) -> FavoriteCheck:
    found = await favorite_service.is_favorite(
        session, user_id=current_user.id, vehicle_id=vehicle_id
    )
    return FavoriteCheck(is_favorite=found)
