"""API tests for bookings, checkouts and delivery tracking."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import IntegrityError

from carmarket.models import PaymentProvider, PaymentType, Transaction, TransactionStatus
from carmarket.services import reconciliation_service

pytestmark = pytest.mark.asyncio


def _booking(vehicle_id, **overrides: str) -> dict[str, str]:
    payload = {
        "vehicle_id": str(vehicle_id),
        "payment_type": "booking",
        "provider": "stripe",
    }
    payload.update(overrides)
    return payload


async def _book(client: AsyncClient, vehicle_id, headers: dict[str, str]):
    return await client.post(
        "/api/v1/transactions", json=_booking(vehicle_id), headers=headers
    )


async def _public_ids(client: AsyncClient) -> set[str]:
    response = await client.get("/api/v1/vehicles", params={"limit": 100})
    assert response.status_code == 200
    return {vehicle["id"] for vehicle in response.json()["vehicles"]}


async def test_second_buyer_gets_conflict(app_context: dict[str, Any], login) -> None:
    client: AsyncClient = app_context["client"]
    vehicle_id = app_context["vehicle"].id
    buyer = await login("buyer@example.com")
    other = await login("other.buyer@example.com")

    first = await _book(client, vehicle_id, buyer)
    assert first.status_code == 201, first.text
    body = first.json()
    assert body["checkout_url"].startswith("https://checkout.test/")
    assert body["amount"] == "25000.00"
    assert str(vehicle_id) not in await _public_ids(client)

    second = await _book(client, vehicle_id, other)
    assert second.status_code == 409
    assert second.json()["detail"] == "Vehicle is already booked"

    purchases = await client.get("/api/v1/transactions/purchases", headers=other)
    assert purchases.json() == []


async def test_active_transaction_index_rejects_duplicates(
    marketplace: dict[str, Any], sessionmaker
) -> None:
    vehicle = marketplace["vehicle"]

    def _pending(buyer_id) -> Transaction:
        return Transaction(
            vehicle_id=vehicle.id,
            buyer_id=buyer_id,
            seller_id=vehicle.seller_id,
            amount=vehicle.price,
            remaining_amount=vehicle.price,
            status=TransactionStatus.PENDING,
            payment_type=PaymentType.BOOKING,
            provider=PaymentProvider.STRIPE,
            created_at=datetime.now(UTC),
        )

    async with sessionmaker() as session:
        session.add(_pending(marketplace["buyer"].id))
        await session.commit()
        session.add(_pending(marketplace["other_buyer"].id))
        with pytest.raises(IntegrityError):
            await session.commit()
        await session.rollback()

        failed = _pending(marketplace["other_buyer"].id)
        failed.status = TransactionStatus.FAILED
        session.add(failed)
        await session.commit()


async def test_booking_rules(app_context: dict[str, Any], login) -> None:
    client: AsyncClient = app_context["client"]
    vehicle_id = app_context["vehicle"].id
    seller = await login("seller@example.com")
    buyer = await login("buyer@example.com")

    as_seller = await client.post(
        "/api/v1/transactions", json=_booking(vehicle_id), headers=seller
    )
    assert as_seller.status_code == 403

    mismatched = await client.post(
        "/api/v1/transactions",
        json=_booking(vehicle_id, payment_type="manual", provider="stripe"),
        headers=buyer,
    )
    assert mismatched.status_code == 400

    anonymous = await client.post("/api/v1/transactions", json=_booking(vehicle_id))
    assert anonymous.status_code == 401


async def test_gateway_failure_releases_vehicle(
    app_context: dict[str, Any], login
) -> None:
    client: AsyncClient = app_context["client"]
    app_context["gateway"].fail = True
    vehicle_id = app_context["vehicle"].id
    buyer = await login("buyer@example.com")

    response = await _book(client, vehicle_id, buyer)
    assert response.status_code == 502
    assert str(vehicle_id) in await _public_ids(client)

    purchases = (await client.get("/api/v1/transactions/purchases", headers=buyer)).json()
    assert [p["status"] for p in purchases] == ["cancelled"]


async def test_cancel_makes_vehicle_bookable_again(
    app_context: dict[str, Any], login
) -> None:
    client: AsyncClient = app_context["client"]
    vehicle_id = app_context["vehicle"].id
    buyer = await login("buyer@example.com")
    other = await login("other.buyer@example.com")

    created = await _book(client, vehicle_id, buyer)
    transaction_id = created.json()["transaction_id"]

    stranger = await client.post(
        f"/api/v1/transactions/{transaction_id}/cancel", headers=other
    )
    assert stranger.status_code == 403

    cancelled = await client.post(
        f"/api/v1/transactions/{transaction_id}/cancel", headers=buyer
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"

    again = await _book(client, vehicle_id, other)
    assert again.status_code == 201


async def test_balance_checkout_and_delivery(
    app_context: dict[str, Any], login, sessionmaker
) -> None:
    client: AsyncClient = app_context["client"]
    vehicle_id = app_context["vehicle"].id
    buyer = await login("buyer@example.com")
    seller = await login("seller@example.com")

    created = await _book(client, vehicle_id, buyer)
    transaction_id = created.json()["transaction_id"]

    early = await client.post(
        f"/api/v1/transactions/{transaction_id}/balance-checkout", headers=buyer
    )
    assert early.status_code == 409

    async with sessionmaker() as session:
        await reconciliation_service.apply_payment(
            session,
            transaction_id=uuid.UUID(transaction_id),
            amount=Decimal("25000.00"),
            provider="stripe",
            event_id="evt_deposit",
            event_type="checkout.session.completed",
            raw={},
        )

    balance = await client.post(
        f"/api/v1/transactions/{transaction_id}/balance-checkout", headers=buyer
    )
    assert balance.status_code == 200, balance.text
    assert balance.json()["amount"] == "475000.00"
    assert app_context["gateway"].calls[-1]["amount"] == Decimal("475000.00")

    sales = (await client.get("/api/v1/transactions/sales", headers=seller)).json()
    assert sales[0]["remaining_amount"] == "475000.00"
    assert sales[0]["vehicle"]["make"] == "Maruti"

    not_ready = await client.post(
        f"/api/v1/transactions/{transaction_id}/confirm-collection", headers=buyer
    )
    assert not_ready.status_code == 409

    by_buyer = await client.put(
        f"/api/v1/transactions/{transaction_id}/delivery",
        json={"delivery_status": "ready_for_collection"},
        headers=buyer,
    )
    assert by_buyer.status_code == 403

    ready = await client.put(
        f"/api/v1/transactions/{transaction_id}/delivery",
        json={"delivery_status": "ready_for_collection", "delivery_notes": "Bay 4"},
        headers=seller,
    )
    assert ready.status_code == 200
    assert ready.json()["delivery_notes"] == "Bay 4"

    collected = await client.post(
        f"/api/v1/transactions/{transaction_id}/confirm-collection", headers=buyer
    )
    assert collected.status_code == 200
    assert collected.json()["delivery_status"] == "collected"
    assert collected.json()["collected_at"] is not None
