"""Buyer to seller inquiry threads."""

from __future__ import annotations

import enum
import uuid
from collections.abc import Sequence

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.core.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from carmarket.models import (
    Inquiry,
    InquiryMessage,
    InquiryStatus,
    User,
    UserRole,
    Vehicle,
    VehicleStatus,
)
from carmarket.models.mixins import utcnow


class InquiryBox(str, enum.Enum):
    ALL = "all"
    SENT = "sent"
    RECEIVED = "received"


async def _reload(session: AsyncSession, inquiry: Inquiry) -> Inquiry:
    await session.refresh(inquiry)
    await session.refresh(inquiry, attribute_names=["messages"])
    return inquiry


async def create_inquiry(
    session: AsyncSession, *, buyer: User, vehicle_id: uuid.UUID, message: str
) -> Inquiry:
    vehicle = await session.get(Vehicle, vehicle_id)
    if vehicle is None or vehicle.status != VehicleStatus.APPROVED:
        raise NotFoundError("Vehicle not found")
    if vehicle.seller_id == buyer.id:
        raise ValidationError("Cannot inquire about your own vehicle")
    inquiry = Inquiry(
        vehicle_id=vehicle.id,
        buyer_id=buyer.id,
        seller_id=vehicle.seller_id,
        message=message,
    )
    inquiry.messages.append(InquiryMessage(sender_id=buyer.id, message=message))
    session.add(inquiry)
    await session.commit()
    return await _reload(session, inquiry)


async def list_inquiries(
    session: AsyncSession, *, user: User, box: InquiryBox = InquiryBox.ALL
) -> Sequence[Inquiry]:
    if box == InquiryBox.SENT:
        condition = Inquiry.buyer_id == user.id
    elif box == InquiryBox.RECEIVED:
        condition = Inquiry.seller_id == user.id
    else:
        condition = or_(Inquiry.buyer_id == user.id, Inquiry.seller_id == user.id)
    result = await session.execute(
        select(Inquiry).where(condition).order_by(Inquiry.updated_at.desc())
    )
    return result.scalars().all()


async def get_inquiry(
    session: AsyncSession, *, user: User, inquiry_id: uuid.UUID
) -> Inquiry:
    inquiry = await session.get(Inquiry, inquiry_id)
    if inquiry is None:
        raise NotFoundError("Inquiry not found")
    if user.role != UserRole.ADMIN and user.id not in (inquiry.buyer_id, inquiry.seller_id):
        raise PermissionDeniedError("Not a participant in this inquiry")
    return inquiry


async def add_message(
    session: AsyncSession, *, user: User, inquiry_id: uuid.UUID, message: str
) -> Inquiry:
    inquiry = await get_inquiry(session, user=user, inquiry_id=inquiry_id)
    if inquiry.status == InquiryStatus.CLOSED:
        raise ConflictError("Inquiry is closed")
    session.add(InquiryMessage(inquiry_id=inquiry.id, sender_id=user.id, message=message))
    if inquiry.seller_id == user.id and inquiry.status == InquiryStatus.PENDING:
        inquiry.status = InquiryStatus.RESPONDED
        inquiry.seller_response = message
    inquiry.updated_at = utcnow()
    await session.commit()
    return await _reload(session, inquiry)


async def respond(
    session: AsyncSession, *, user: User, inquiry_id: uuid.UUID, response: str
) -> Inquiry:
    inquiry = await get_inquiry(session, user=user, inquiry_id=inquiry_id)
    if inquiry.seller_id != user.id:
        raise PermissionDeniedError("Only the seller can respond")
    if inquiry.status == InquiryStatus.CLOSED:
        raise ConflictError("Inquiry is closed")
    session.add(InquiryMessage(inquiry_id=inquiry.id, sender_id=user.id, message=response))
    inquiry.status = InquiryStatus.RESPONDED
    inquiry.seller_response = response
    await session.commit()
    return await _reload(session, inquiry)


async def close(session: AsyncSession, *, user: User, inquiry_id: uuid.UUID) -> Inquiry:
    inquiry = await get_inquiry(session, user=user, inquiry_id=inquiry_id)
    inquiry.status = InquiryStatus.CLOSED
    await session.commit()
    return await _reload(session, inquiry)
