"""Inquiry thread endpoints."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, status

from carmarket.api.deps import CurrentUser, SessionDep
from carmarket.schemas.inquiry import (
    InquiryCreate,
    InquiryMessageCreate,
    InquiryRead,
    InquiryRespond,
)
from carmarket.services import inquiry_service
from carmarket.services.inquiry_service import InquiryBox

router = APIRouter()


@router.post("", response_model=InquiryRead, status_code=status.HTTP_201_CREATED)
async def create_inquiry(
    payload: InquiryCreate, session: SessionDep, current_user: CurrentUser
) -> InquiryRead:
    inquiry = await inquiry_service.create_inquiry(
        session,
        buyer=current_user,
        vehicle_id=payload.vehicle_id,
        message=payload.message,
    )
    return InquiryRead.model_validate(inquiry)


@router.get("", response_model=list[InquiryRead])
async def list_inquiries(
    session: SessionDep, current_user: CurrentUser, box: InquiryBox = InquiryBox.ALL
) -> list[InquiryRead]:
    """Inquiries sent as a buyer, received as a seller, or both."""
    rows = await inquiry_service.list_inquiries(session, user=current_user, box=box)
    return [InquiryRead.model_validate(row) for row in rows]


@router.get("/{inquiry_id}", response_model=InquiryRead)
async def get_inquiry(
    inquiry_id: uuid.UUID, session: SessionDep, current_user: CurrentUser
) -> InquiryRead:
    inquiry = await inquiry_service.get_inquiry(
        session, user=current_user, inquiry_id=inquiry_id
    )
    return InquiryRead.model_validate(inquiry)


@router.post(
    "/{inquiry_id}/messages",
    response_model=InquiryRead,
    status_code=status.HTTP_201_CREATED,
)
async def add_message(
    inquiry_id: uuid.UUID,
    payload: InquiryMessageCreate,
    session: SessionDep,
    current_user: CurrentUser,
) -> InquiryRead:
    inquiry = await inquiry_service.add_message(
        session, user=current_user, inquiry_id=inquiry_id, message=payload.message
    )
    return InquiryRead.model_validate(inquiry)


@router.put("/{inquiry_id}/respond", response_model=InquiryRead)
async def respond(
    inquiry_id: uuid.UUID,
    payload: InquiryRespond,
    session: SessionDep,
    current_user: CurrentUser,
) -> InquiryRead:
    inquiry = await inquiry_service.respond(
        session, user=current_user, inquiry_id=inquiry_id, response=payload.response
    )
    return InquiryRead.model_validate(inquiry)


@router.put("/{inquiry_id}/close", response_model=InquiryRead)
async def close(
    inquiry_id: uuid.UUID, session: SessionDep, current_user: CurrentUser
) -> InquiryRead:
    inquiry = await inquiry_service.close(
        session, user=current_user, inquiry_id=inquiry_id
    )
    return InquiryRead.model_validate(inquiry)
