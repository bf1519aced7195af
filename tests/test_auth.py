"""Tests for registration, login and password reset."""

from __future__ import annotations

from typing import Any
from urllib.parse import parse_qs, urlparse

import pytest
from httpx import AsyncClient

from carmarket.services.reset_link_store import ResetLinkStore

pytestmark = pytest.mark.asyncio


async def test_register_login_and_profile(app_context: dict[str, Any], login) -> None:
    client: AsyncClient = app_context["client"]
    response = await client.post(
        "/api/v1/auth/register",
        json={
            "name": "Priya Seller",
            "email": "Priya@Example.com",
            "password": "LongEnough1",
            "role": "seller",
        },
    )
    assert response.status_code == 201, response.text
    assert response.json()["email"] == "priya@example.com"
    assert response.json()["role"] == "seller"

    duplicate = await client.post(
        "/api/v1/auth/register",
        json={"name": "Again", "email": "priya@example.com", "password": "LongEnough1"},
    )
    assert duplicate.status_code == 409

    headers = await login("priya@example.com", "LongEnough1")
    me = await client.get("/api/v1/users/me", headers=headers)
    assert me.json()["name"] == "Priya Seller"

    updated = await client.put(
        "/api/v1/users/me", json={"city": "Nagpur"}, headers=headers
    )
    assert updated.json()["city"] == "Nagpur"


async def test_admin_role_cannot_be_self_assigned(app_context: dict[str, Any]) -> None:
    client: AsyncClient = app_context["client"]
    response = await client.post(
        "/api/v1/auth/register",
        json={
            "name": "Mallory",
            "email": "mallory@example.com",
            "password": "LongEnough1",
            "role": "admin",
        },
    )
    assert response.status_code == 403


async def test_bad_credentials_and_missing_token(app_context: dict[str, Any]) -> None:
    client: AsyncClient = app_context["client"]
    response = await client.post(
        "/api/v1/auth/token",
        data={"username": "buyer@example.com", "password": "wrong-password"},
    )
    assert response.status_code == 401
    assert (await client.get("/api/v1/users/me")).status_code == 401
    bogus = await client.get(
        "/api/v1/users/me", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert bogus.status_code == 401


async def test_password_reset_via_dev_link(app_context: dict[str, Any], login) -> None:
    client: AsyncClient = app_context["client"]

    unknown = await client.post(
        "/api/v1/auth/password-reset/request", json={"email": "nobody@example.com"}
    )
    assert unknown.status_code == 200
    assert unknown.json()["expires_at"] is None
    missing = await client.get("/api/v1/dev/reset-link/nobody@example.com")
    assert missing.status_code == 404

    requested = await client.post(
        "/api/v1/auth/password-reset/request", json={"email": "buyer@example.com"}
    )
    assert requested.status_code == 200
    assert requested.json()["expires_at"] is not None

    link = await client.get("/api/v1/dev/reset-link/BUYER@example.com")
    assert link.status_code == 200
    token = parse_qs(urlparse(link.json()["link"]).query)["token"][0]

    confirmed = await client.post(
        "/api/v1/auth/password-reset/confirm",
        json={"token": token, "new_password": "BrandNewPass9"},
    )
    assert confirmed.status_code == 204
    await login("buyer@example.com", "BrandNewPass9")

    reused = await client.post(
        "/api/v1/auth/password-reset/confirm",
        json={"token": token, "new_password": "AnotherPass9"},
    )
    assert reused.status_code == 400


async def test_admin_password_cannot_be_reset(app_context: dict[str, Any]) -> None:
    client: AsyncClient = app_context["client"]
    response = await client.post(
        "/api/v1/auth/password-reset/request", json={"email": "admin@example.com"}
    )
    assert response.status_code == 403


async def test_suspended_user_is_refused(app_context: dict[str, Any], login) -> None:
    client: AsyncClient = app_context["client"]
    admin = await login("admin@example.com")
    buyer = await login("buyer@example.com")
    suspended = await client.put(
        f"/api/v1/admin/users/{app_context['buyer'].id}/suspend",
        json={"suspended": True},
        headers=admin,
    )
    assert suspended.status_code == 200

    me = await client.get("/api/v1/users/me", headers=buyer)
    assert me.status_code == 403
    assert me.json()["detail"] == "Account suspended"


def test_reset_link_store_expires_entries() -> None:
    clock = {"now": 1_000.0}
    store = ResetLinkStore(ttl_seconds=300, clock=lambda: clock["now"])
    store.put("Someone@Example.com", "https://app.test/reset-password?token=abc")

    entry = store.get("someone@example.com")
    assert entry is not None
    assert entry.expires_at == 1_300.0

    clock["now"] = 1_301.0
    assert store.get("someone@example.com") is None
    assert len(store) == 0


def test_reset_link_store_keeps_latest_link() -> None:
    clock = {"now": 0.0}
    store = ResetLinkStore(ttl_seconds=60, clock=lambda: clock["now"])
    store.put("a@example.com", "first")
    store.put("b@example.com", "other")
    clock["now"] = 30.0
    store.put("a@example.com", "second")
    clock["now"] = 70.0
    assert store.purge_expired() == 1
    assert store.get("a@example.com").link == "second"
