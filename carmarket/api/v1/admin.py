"""Administrative endpoints: users, listings, payments and data health."""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, status

from carmarket.api.deps import SessionDep, get_current_active_user
from carmarket.models import TransactionStatus, User, UserRole, VehicleStatus
from carmarket.schemas.admin import (
    ConsistencyFindingRead,
    ConsistencyReport,
    ListingStatusUpdate,
    PlatformStats,
)
from carmarket.schemas.transaction import (
    AdminStatusUpdate,
    TransactionPage,
    TransactionRead,
    WebhookAck,
)
from carmarket.schemas.user import RoleUpdate, SuspendUpdate, UserRead, VerifyUpdate
from carmarket.schemas.vehicle import VehicleRead
from carmarket.security.permissions import require_roles
from carmarket.services import (
    admin_service,
    consistency_service,
    reconciliation_service,
    transaction_service,
    user_service,
)

router = APIRouter()


async def get_admin_user(
    current_user: Annotated[User, Depends(get_current_active_user)],
) -> User:
    require_roles(current_user, {UserRole.ADMIN})
    return current_user


AdminUser = Annotated[User, Depends(get_admin_user)]


@router.get("/users", response_model=list[UserRead])
async def list_users(
    session: SessionDep,
    admin: AdminUser,
    role: UserRole | None = None,
    skip: int = 0,
    limit: int = 50,
) -> list[UserRead]:
    users = await user_service.list_users(
        session, role=role, skip=skip, limit=min(limit, 200)
    )
    return [UserRead.model_validate(user) for user in users]


@router.put("/users/{user_id}/role", response_model=UserRead)
async def update_role(
    user_id: uuid.UUID, payload: RoleUpdate, session: SessionDep, admin: AdminUser
) -> UserRead:
    user = await admin_service.update_role(
        session, admin=admin, user_id=user_id, role=payload.role
    )
    return UserRead.model_validate(user)


@router.put("/users/{user_id}/verify", response_model=UserRead)
async def verify_user(
    user_id: uuid.UUID, payload: VerifyUpdate, session: SessionDep, admin: AdminUser
) -> UserRead:
    user = await admin_service.set_verified(
        session, user_id=user_id, email_verified=payload.email_verified
    )
    return UserRead.model_validate(user)


@router.put("/users/{user_id}/suspend", response_model=UserRead)
async def suspend_user(
    user_id: uuid.UUID, payload: SuspendUpdate, session: SessionDep, admin: AdminUser
) -> UserRead:
    user = await admin_service.set_suspended(
        session, admin=admin, user_id=user_id, suspended=payload.suspended
    )
    return UserRead.model_validate(user)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(user_id: uuid.UUID, session: SessionDep, admin: AdminUser) -> None:
    """Remove a user together with their listings, purchases and threads."""
    await admin_service.delete_user(session, admin=admin, user_id=user_id)


@router.get("/listings", response_model=list[VehicleRead])
async def list_listings(
    session: SessionDep,
    admin: AdminUser,
    listing_status: VehicleStatus | None = None,
    skip: int = 0,
    limit: int = 50,
) -> list[VehicleRead]:
    vehicles = await admin_service.list_listings(
        session, status=listing_status, skip=skip, limit=min(limit, 200)
    )
    return [VehicleRead.model_validate(vehicle) for vehicle in vehicles]


@router.put("/listings/{vehicle_id}/status", response_model=VehicleRead)
async def update_listing_status(
    vehicle_id: uuid.UUID,
    payload: ListingStatusUpdate,
    session: SessionDep,
    admin: AdminUser,
) -> VehicleRead:
    vehicle = await admin_service.update_listing_status(
        session, vehicle_id=vehicle_id, status=payload.status
    )
    return VehicleRead.model_validate(vehicle)


@router.get("/stats", response_model=PlatformStats)
async def platform_stats(session: SessionDep, admin: AdminUser) -> PlatformStats:
    return await admin_service.platform_stats(session)


@router.get("/payments", response_model=TransactionPage)
async def list_payments(
    session: SessionDep,
    admin: AdminUser,
    payment_status: TransactionStatus | None = None,
    page: int = 1,
    limit: int = 20,
) -> TransactionPage:
    return await transaction_service.list_transactions(
        session, status=payment_status, page=max(page, 1), limit=min(max(limit, 1), 100)
    )


@router.put("/payments/{transaction_id}/status", response_model=TransactionRead)
async def update_payment_status(
    transaction_id: uuid.UUID,
    payload: AdminStatusUpdate,
    session: SessionDep,
    admin: AdminUser,
) -> TransactionRead:
    """Manually move a payment; settling also marks the vehicle sold."""
    transaction = await reconciliation_service.admin_set_status(
        session, actor=admin, transaction_id=transaction_id, status=payload.status
    )
    return TransactionRead.model_validate(transaction)


@router.post("/payment-events/{event_id}/refunded", response_model=WebhookAck)
async def mark_refunded(
    event_id: uuid.UUID, session: SessionDep, admin: AdminUser
) -> WebhookAck:
    """Record that a late payment was refunded outside the platform."""
    event = await reconciliation_service.mark_refunded(
        session, actor=admin, event_id=event_id
    )
    return WebhookAck(status=event.outcome, transaction_id=event.transaction_id)


@router.post("/consistency/scan", response_model=ConsistencyReport)
async def consistency_scan(
    session: SessionDep, admin: AdminUser, apply: bool = False
) -> ConsistencyReport:
    findings = await consistency_service.scan(session, apply=apply)
    return ConsistencyReport(
        applied=apply,
        findings=[
            ConsistencyFindingRead(
                kind=finding.kind,
                transaction_id=finding.transaction_id,
                vehicle_id=finding.vehicle_id,
                detail=finding.detail,
                fixed=finding.fixed,
                event_id=finding.event_id,
            )
            for finding in findings
        ],
    )


@router.post("/holds/expire", response_model=list[uuid.UUID])
async def expire_holds(session: SessionDep, admin: AdminUser) -> list[uuid.UUID]:
    return await transaction_service.expire_stale_holds(session)
