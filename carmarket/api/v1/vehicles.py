"""Vehicle listing endpoints."""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, status

from carmarket.api.deps import CurrentUser, OptionalUser, SessionDep
from carmarket.models.user import UserRole
from carmarket.schemas.vehicle import (
    VehicleCreate,
    VehicleFilters,
    VehicleListResponse,
    VehicleRead,
    VehicleUpdate,
)
from carmarket.security.permissions import require_roles
from carmarket.services import vehicle_service

router = APIRouter()


@router.get(
    "",
    response_model=VehicleListResponse,
    summary="Browse vehicles available for purchase",
)
async def list_vehicles(
    session: SessionDep, filters: Annotated[VehicleFilters, Depends()]
) -> VehicleListResponse:
    return await vehicle_service.list_available_vehicles(session, filters)


@router.get(
    "/seller/mine",
    response_model=list[VehicleRead],
    summary="Listings owned by the current seller",
)
async def list_my_vehicles(
    session: SessionDep, current_user: CurrentUser
) -> list[VehicleRead]:
    require_roles(current_user, {UserRole.SELLER, UserRole.ADMIN})
    vehicles = await vehicle_service.list_seller_vehicles(
        session, seller_id=current_user.id
    )
    return [VehicleRead.model_validate(vehicle) for vehicle in vehicles]


@router.get("/{vehicle_id}", response_model=VehicleRead, summary="Vehicle detail")
async def get_vehicle(
    vehicle_id: uuid.UUID, session: SessionDep, viewer: OptionalUser
) -> VehicleRead:
    vehicle = await vehicle_service.get_vehicle(session, vehicle_id, viewer=viewer)
    return VehicleRead.model_validate(vehicle)


@router.post(
    "",
    response_model=VehicleRead,
    status_code=status.HTTP_201_CREATED,
    summary="List a vehicle for sale",
)
async def create_vehicle(
    payload: VehicleCreate, session: SessionDep, current_user: CurrentUser
) -> VehicleRead:
    require_roles(current_user, {UserRole.SELLER, UserRole.ADMIN})
    vehicle = await vehicle_service.create_vehicle(
        session, seller=current_user, payload=payload
    )
    return VehicleRead.model_validate(vehicle)


@router.put("/{vehicle_id}", response_model=VehicleRead, summary="Edit a listing")
async def update_vehicle(
    vehicle_id: uuid.UUID,
    payload: VehicleUpdate,
    session: SessionDep,
    current_user: CurrentUser,
) -> VehicleRead:
    vehicle = await vehicle_service.update_vehicle(
        session, user=current_user, vehicle_id=vehicle_id, payload=payload
    )
    return VehicleRead.model_validate(vehicle)


@router.delete(
    "/{vehicle_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a listing",
)
async def delete_vehicle(
    vehicle_id: uuid.UUID, session: SessionDep, current_user: CurrentUser
) -> None:
    await vehicle_service.delete_vehicle(
        session, user=current_user, vehicle_id=vehicle_id
    )
