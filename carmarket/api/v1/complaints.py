"""Complaint endpoints."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, status

from carmarket.api.deps import CurrentUser, SessionDep
from carmarket.models import ComplaintStatus, UserRole
from carmarket.schemas.complaint import (
    ComplaintCreate,
    ComplaintRead,
    ComplaintStatusUpdate,
)
from carmarket.security.permissions import require_roles
from carmarket.services import complaint_service

router = APIRouter()


@router.post("", response_model=ComplaintRead, status_code=status.HTTP_201_CREATED)
async def create_complaint(
    payload: ComplaintCreate, session: SessionDep, current_user: CurrentUser
) -> ComplaintRead:
    complaint = await complaint_service.create_complaint(
        session, reporter=current_user, payload=payload
    )
    return ComplaintRead.model_validate(complaint)


@router.get("/mine", response_model=list[ComplaintRead])
async def list_my_complaints(
    session: SessionDep, current_user: CurrentUser
) -> list[ComplaintRead]:
    rows = await complaint_service.list_my_complaints(
        session, reporter_id=current_user.id
    )
    return [ComplaintRead.model_validate(row) for row in rows]


@router.get("", response_model=list[ComplaintRead])
async def list_complaints(
    session: SessionDep,
    current_user: CurrentUser,
    complaint_status: ComplaintStatus | None = None,
    skip: int = 0,
    limit: int = 50,
) -> list[ComplaintRead]:
    require_roles(current_user, {UserRole.ADMIN})
    rows = await complaint_service.list_complaints(
        session, status=complaint_status, skip=skip, limit=min(limit, 200)
    )
    return [ComplaintRead.model_validate(row) for row in rows]


@router.get("/{complaint_id}", response_model=ComplaintRead)
async def get_complaint(
    complaint_id: uuid.UUID, session: SessionDep, current_user: CurrentUser
) -> ComplaintRead:
    require_roles(current_user, {UserRole.ADMIN})
    complaint = await complaint_service.get_complaint(session, complaint_id)
    return ComplaintRead.model_validate(complaint)


@router.put("/{complaint_id}/status", response_model=ComplaintRead)
async def update_complaint_status(
    complaint_id: uuid.UUID,
    payload: ComplaintStatusUpdate,
    session: SessionDep,
    current_user: CurrentUser,
) -> ComplaintRead:
    require_roles(current_user, {UserRole.ADMIN})
    complaint = await complaint_service.update_status(
        session, complaint_id=complaint_id, status=payload.status
    )
    return ComplaintRead.model_validate(complaint)
