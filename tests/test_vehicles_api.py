"""Listing management through the HTTP API."""

from __future__ import annotations

from typing import Any

import pytest
from httpx import AsyncClient

from carmarket.models import PaymentProvider, PaymentType, Transaction, TransactionStatus

pytestmark = pytest.mark.asyncio

NEW_LISTING = {
    "make": "Hyundai",
    "model": "Creta",
    "year": 2021,
    "price": "1150000.00",
    "mileage": 18000,
    "fuel_type": "diesel",
    "transmission": "automatic",
    "location": "Mumbai",
    "images": ["https://img.test/creta.jpg"],
}


async def test_seller_listing_waits_for_moderation(
    app_context: dict[str, Any], login
) -> None:
    client: AsyncClient = app_context["client"]
    seller = await login("seller@example.com")
    admin = await login("admin@example.com")

    created = await client.post("/api/v1/vehicles", json=NEW_LISTING, headers=seller)
    assert created.status_code == 201, created.text
    body = created.json()
    assert body["status"] == "pending"
    assert body["price"] == "1150000.00"
    vehicle_id = body["id"]

    public = await client.get("/api/v1/vehicles")
    assert vehicle_id not in [item["id"] for item in public.json()["vehicles"]]
    assert (await client.get(f"/api/v1/vehicles/{vehicle_id}")).status_code == 404
    own = await client.get(f"/api/v1/vehicles/{vehicle_id}", headers=seller)
    assert own.status_code == 200

    mine = await client.get("/api/v1/vehicles/seller/mine", headers=seller)
    assert {item["id"] for item in mine.json()} >= {vehicle_id}

    approved = await client.put(
        f"/api/v1/admin/listings/{vehicle_id}/status",
        json={"status": "approved"},
        headers=admin,
    )
    assert approved.status_code == 200
    public = await client.get("/api/v1/vehicles", params={"make": "hyundai"})
    assert [item["id"] for item in public.json()["vehicles"]] == [vehicle_id]


async def test_buyers_cannot_list(app_context: dict[str, Any], login) -> None:
    client: AsyncClient = app_context["client"]
    buyer = await login("buyer@example.com")
    response = await client.post("/api/v1/vehicles", json=NEW_LISTING, headers=buyer)
    assert response.status_code == 403


async def test_invalid_listing_is_rejected(app_context: dict[str, Any], login) -> None:
    client: AsyncClient = app_context["client"]
    seller = await login("seller@example.com")
    payload = {**NEW_LISTING, "price": "-5"}
    response = await client.post("/api/v1/vehicles", json=payload, headers=seller)
    assert response.status_code == 422


async def test_only_owner_or_admin_edits(app_context: dict[str, Any], login) -> None:
    client: AsyncClient = app_context["client"]
    vehicle_id = str(app_context["vehicle"].id)
    buyer = await login("buyer@example.com")
    seller = await login("seller@example.com")
    admin = await login("admin@example.com")

    denied = await client.put(
        f"/api/v1/vehicles/{vehicle_id}", json={"price": "1.00"}, headers=buyer
    )
    assert denied.status_code == 403

    edited = await client.put(
        f"/api/v1/vehicles/{vehicle_id}",
        json={"price": "480000.00", "color": "Red"},
        headers=seller,
    )
    assert edited.status_code == 200
    assert edited.json()["price"] == "480000.00"
    assert edited.json()["status"] == "approved"

    by_admin = await client.put(
        f"/api/v1/vehicles/{vehicle_id}", json={"color": "Blue"}, headers=admin
    )
    assert by_admin.json()["color"] == "Blue"


async def test_delete_listing(app_context: dict[str, Any], login) -> None:
    client: AsyncClient = app_context["client"]
    seller = await login("seller@example.com")
    created = await client.post("/api/v1/vehicles", json=NEW_LISTING, headers=seller)
    vehicle_id = created.json()["id"]

    deleted = await client.delete(f"/api/v1/vehicles/{vehicle_id}", headers=seller)
    assert deleted.status_code == 204
    gone = await client.get(f"/api/v1/vehicles/{vehicle_id}", headers=seller)
    assert gone.status_code == 404


async def test_paid_listing_cannot_be_deleted(
    app_context: dict[str, Any], login, sessionmaker
) -> None:
    client: AsyncClient = app_context["client"]
    vehicle = app_context["vehicle"]
    async with sessionmaker() as session:
        session.add(
            Transaction(
                vehicle_id=vehicle.id,
                buyer_id=app_context["buyer"].id,
                seller_id=app_context["seller"].id,
                amount=vehicle.price,
                remaining_amount=vehicle.price,
                status=TransactionStatus.PAYMENT_COMPLETED,
                payment_type=PaymentType.BOOKING,
                provider=PaymentProvider.STRIPE,
            )
        )
        await session.commit()

    seller = await login("seller@example.com")
    response = await client.delete(f"/api/v1/vehicles/{vehicle.id}", headers=seller)
    assert response.status_code == 409


async def test_detail_counts_views(app_context: dict[str, Any]) -> None:
    client: AsyncClient = app_context["client"]
    vehicle_id = app_context["vehicle"].id
    await client.get(f"/api/v1/vehicles/{vehicle_id}")
    second = await client.get(f"/api/v1/vehicles/{vehicle_id}")
    assert second.json()["views"] == 2
