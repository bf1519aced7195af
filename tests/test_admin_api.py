"""Admin console and dashboard analytics endpoints."""

from __future__ import annotations

from typing import Any

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


async def _book(client: AsyncClient, vehicle_id, headers: dict[str, str]) -> dict:
    response = await client.post(
        "/api/v1/transactions",
        json={
            "vehicle_id": str(vehicle_id),
            "payment_type": "booking",
            "provider": "stripe",
        },
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


async def test_admin_routes_require_admin(app_context: dict[str, Any], login) -> None:
    client: AsyncClient = app_context["client"]
    seller = await login("seller@example.com")
    for path in ("/api/v1/admin/users", "/api/v1/admin/stats", "/api/v1/admin/payments"):
        assert (await client.get(path, headers=seller)).status_code == 403
    assert (await client.get("/api/v1/admin/stats")).status_code == 401


async def test_user_management(app_context: dict[str, Any], login) -> None:
    client: AsyncClient = app_context["client"]
    admin = await login("admin@example.com")
    admin_id = app_context["admin"].id
    buyer_id = app_context["buyer"].id

    buyers = await client.get(
        "/api/v1/admin/users", params={"role": "buyer"}, headers=admin
    )
    assert sorted(user["email"] for user in buyers.json()) == [
        "buyer@example.com",
        "other.buyer@example.com",
    ]

    promoted = await client.put(
        f"/api/v1/admin/users/{buyer_id}/role", json={"role": "seller"}, headers=admin
    )
    assert promoted.json()["role"] == "seller"
    verified = await client.put(
        f"/api/v1/admin/users/{buyer_id}/verify",
        json={"email_verified": True},
        headers=admin,
    )
    assert verified.json()["email_verified"] is True

    demote_self = await client.put(
        f"/api/v1/admin/users/{admin_id}/role", json={"role": "buyer"}, headers=admin
    )
    assert demote_self.status_code == 400
    suspend_self = await client.put(
        f"/api/v1/admin/users/{admin_id}/suspend",
        json={"suspended": True},
        headers=admin,
    )
    assert suspend_self.status_code == 400
    delete_self = await client.delete(f"/api/v1/admin/users/{admin_id}", headers=admin)
    assert delete_self.status_code == 400


async def test_deleting_seller_removes_listings(
    app_context: dict[str, Any], login
) -> None:
    client: AsyncClient = app_context["client"]
    admin = await login("admin@example.com")
    buyer = await login("buyer@example.com")
    vehicle_id = app_context["vehicle"].id
    await client.post(f"/api/v1/favorites/{vehicle_id}", headers=buyer)

    deleted = await client.delete(
        f"/api/v1/admin/users/{app_context['seller'].id}", headers=admin
    )
    assert deleted.status_code == 204

    assert (await client.get(f"/api/v1/vehicles/{vehicle_id}")).status_code == 404
    favorites = await client.get("/api/v1/favorites", headers=buyer)
    assert favorites.json() == []
    stats = await client.get("/api/v1/admin/stats", headers=admin)
    assert stats.json()["sellers"] == 0
    assert stats.json()["total_listings"] == 0


async def test_listing_moderation_rules(app_context: dict[str, Any], login) -> None:
    client: AsyncClient = app_context["client"]
    admin = await login("admin@example.com")
    buyer = await login("buyer@example.com")
    vehicle_id = app_context["vehicle"].id
    path = f"/api/v1/admin/listings/{vehicle_id}/status"

    sold = await client.put(path, json={"status": "sold"}, headers=admin)
    assert sold.status_code == 409

    await _book(client, vehicle_id, buyer)
    locked = await client.put(path, json={"status": "rejected"}, headers=admin)
    assert locked.status_code == 409
    assert locked.json()["detail"] == "Listing has an open transaction"

    listings = await client.get(
        "/api/v1/admin/listings", params={"listing_status": "approved"}, headers=admin
    )
    assert [item["id"] for item in listings.json()] == [str(vehicle_id)]


async def test_payment_override_and_stats(app_context: dict[str, Any], login) -> None:
    client: AsyncClient = app_context["client"]
    admin = await login("admin@example.com")
    buyer = await login("buyer@example.com")
    booking = await _book(client, app_context["vehicle"].id, buyer)

    pending = await client.get(
        "/api/v1/admin/payments", params={"payment_status": "pending"}, headers=admin
    )
    assert pending.json()["total"] == 1
    assert pending.json()["transactions"][0]["id"] == booking["transaction_id"]

    rejected = await client.put(
        f"/api/v1/admin/payments/{booking['transaction_id']}/status",
        json={"status": "pending"},
        headers=admin,
    )
    assert rejected.status_code == 409

    completed = await client.put(
        f"/api/v1/admin/payments/{booking['transaction_id']}/status",
        json={"status": "completed"},
        headers=admin,
    )
    assert completed.status_code == 200, completed.text
    assert completed.json()["status"] == "completed"
    assert completed.json()["remaining_amount"] == "0.00"

    again = await client.put(
        f"/api/v1/admin/payments/{booking['transaction_id']}/status",
        json={"status": "cancelled"},
        headers=admin,
    )
    assert again.status_code == 409

    stats = (await client.get("/api/v1/admin/stats", headers=admin)).json()
    assert stats["total_users"] == 4
    assert stats["buyers"] == 2
    assert stats["sold_listings"] == 1
    assert stats["completed_transactions"] == 1
    assert stats["revenue"] == "500000.00"

    seller = await login("seller@example.com")
    seller_view = (await client.get("/api/v1/analytics/seller", headers=seller)).json()
    assert seller_view["summary"]["total_sold"] == 1
    assert seller_view["summary"]["total_revenue"] == "500000.00"
    assert seller_view["summary"]["active_listings"] == 0

    buyer_view = (await client.get("/api/v1/analytics/buyer", headers=buyer)).json()
    assert buyer_view["summary"]["total_bought"] == 1
    assert buyer_view["summary"]["total_spent"] == "500000.00"


async def test_admin_cancels_hold(app_context: dict[str, Any], login) -> None:
    client: AsyncClient = app_context["client"]
    admin = await login("admin@example.com")
    buyer = await login("buyer@example.com")
    vehicle_id = app_context["vehicle"].id
    booking = await _book(client, vehicle_id, buyer)

    cancelled = await client.put(
        f"/api/v1/admin/payments/{booking['transaction_id']}/status",
        json={"status": "cancelled"},
        headers=admin,
    )
    assert cancelled.json()["status"] == "cancelled"
    public = await client.get("/api/v1/vehicles")
    assert str(vehicle_id) in [item["id"] for item in public.json()["vehicles"]]


async def test_consistency_scan_endpoint(app_context: dict[str, Any], login) -> None:
    client: AsyncClient = app_context["client"]
    admin = await login("admin@example.com")
    report = await client.post("/api/v1/admin/consistency/scan", headers=admin)
    assert report.status_code == 200
    assert report.json() == {"applied": False, "findings": []}

    expired = await client.post("/api/v1/admin/holds/expire", headers=admin)
    assert expired.json() == []


async def test_payment_override_applies_to_unpaid_booking_only(
    app_context: dict[str, Any], login
) -> None:
    client: AsyncClient = app_context["client"]
    admin = await login("admin@example.com")
    buyer = await login("buyer@example.com")
    booking = await _book(client, app_context["vehicle"].id, buyer)
    url = f"/api/v1/admin/payments/{booking['transaction_id']}/status"

    paid = await client.put(url, json={"status": "payment_completed"}, headers=admin)
    assert paid.status_code == 200, paid.text
    assert paid.json()["status"] == "payment_completed"
    assert paid.json()["remaining_amount"] == "475000.00"

    repeated = await client.put(url, json={"status": "payment_completed"}, headers=admin)
    assert repeated.status_code == 409
    detail = await client.get(
        f"/api/v1/transactions/{booking['transaction_id']}", headers=buyer
    )
    assert detail.json()["status"] == "payment_completed"
    assert detail.json()["remaining_amount"] == "475000.00"
