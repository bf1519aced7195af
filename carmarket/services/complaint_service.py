"""Complaint intake and moderation."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.core.errors import ConflictError, NotFoundError, ValidationError
from carmarket.models import Complaint, ComplaintStatus, User
from carmarket.schemas.complaint import ComplaintCreate

logger = logging.getLogger(__name__)

_ALLOWED_STATUS_TRANSITIONS: dict[ComplaintStatus, set[ComplaintStatus]] = {
    ComplaintStatus.PENDING: {ComplaintStatus.REVIEWED},
    ComplaintStatus.REVIEWED: {ComplaintStatus.RESOLVED, ComplaintStatus.DISMISSED},
    ComplaintStatus.RESOLVED: set(),
    ComplaintStatus.DISMISSED: set(),
}


async def create_complaint(
    session: AsyncSession, *, reporter: User, payload: ComplaintCreate
) -> Complaint:
    if payload.reported_user_id is not None:
        if payload.reported_user_id == reporter.id:
            raise ValidationError("You cannot file a complaint against yourself")
        if await session.get(User, payload.reported_user_id) is None:
            raise NotFoundError("Reported user not found")
    complaint = Complaint(
        reporter_id=reporter.id,
        reported_user_id=payload.reported_user_id,
        subject=payload.subject.strip(),
        description=payload.description.strip(),
    )
    session.add(complaint)
    await session.commit()
    await session.refresh(complaint)
    logger.info("Complaint %s filed by %s", complaint.id, reporter.id)
    return complaint


async def list_my_complaints(
    session: AsyncSession, *, reporter_id: uuid.UUID
) -> Sequence[Complaint]:
    result = await session.execute(
        select(Complaint)
        .where(Complaint.reporter_id == reporter_id)
        .order_by(Complaint.created_at.desc())
    )
    return result.scalars().all()


async def list_complaints(
    session: AsyncSession,
    *,
    status: ComplaintStatus | None = None,
    skip: int = 0,
    limit: int = 50,
) -> Sequence[Complaint]:
    stmt = select(Complaint).order_by(Complaint.created_at.desc()).offset(skip).limit(limit)
    if status is not None:
        stmt = stmt.where(Complaint.status == status)
    result = await session.execute(stmt)
    return result.scalars().all()


async def get_complaint(session: AsyncSession, complaint_id: uuid.UUID) -> Complaint:
    complaint = await session.get(Complaint, complaint_id)
    if complaint is None:
        raise NotFoundError("Complaint not found")
    return complaint


async def update_status(
    session: AsyncSession, *, complaint_id: uuid.UUID, status: ComplaintStatus
) -> Complaint:
    complaint = await get_complaint(session, complaint_id)
    if status not in _ALLOWED_STATUS_TRANSITIONS[complaint.status]:
        raise ConflictError(
            f"Cannot move complaint from {complaint.status.value} to {status.value}"
        )
    complaint.status = status
    await session.commit()
    await session.refresh(complaint)
    return complaint
