"""Profile endpoints."""

from __future__ import annotations

import uuid

from fastapi import APIRouter

from carmarket.api.deps import CurrentUser, SessionDep
from carmarket.schemas.user import PublicProfile, UserRead, UserUpdate
from carmarket.services import user_service

router = APIRouter()


@router.get("/me", response_model=UserRead, summary="Current user profile")
async def read_me(current_user: CurrentUser) -> UserRead:
    return UserRead.model_validate(current_user)


@router.put("/me", response_model=UserRead, summary="Update current user profile")
async def update_me(
    payload: UserUpdate, session: SessionDep, current_user: CurrentUser
) -> UserRead:
    user = await user_service.update_user(session, current_user, payload)
    return UserRead.model_validate(user)


@router.get("/{user_id}", response_model=PublicProfile, summary="Public profile")
async def read_profile(user_id: uuid.UUID, session: SessionDep) -> PublicProfile:
    return await user_service.get_public_profile(session, user_id)
