"""Test fixtures for the marketplace backend."""
from __future__ import annotations

import os
from collections.abc import AsyncIterator
from decimal import Decimal
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("PAYMENTS_WEBHOOK_VERIFY", "true")

from carmarket.api import deps
from carmarket.core.config import get_settings
from carmarket.core.security import get_password_hash
from carmarket.db.base import Base
from carmarket.db.session import dispose_engine, get_sessionmaker
from carmarket.integrations import (
    CheckoutSession,
    CheckoutState,
    CheckoutStatus,
    StripeClientError,
)
from carmarket.main import app
from carmarket.models import (
    FuelType,
    Transmission,
    User,
    UserRole,
    Vehicle,
    VehicleStatus,
)

PASSWORD = "Passw0rd!123"


class FakeGateway:
    """Stands in for a hosted-checkout provider and records every call."""

    provider = "stripe"

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[dict[str, Any]] = []
        self.statuses: dict[str, CheckoutStatus] = {}

    async def create_checkout(self, **kwargs: Any) -> CheckoutSession:
        self.calls.append(kwargs)
        if self.fail:
            raise StripeClientError("gateway down")
        number = len(self.calls)
        return CheckoutSession(
            id=f"cs_test_{number}", url=f"https://checkout.test/session/{number}"
        )

    def set_status(
        self, reference: str, state: CheckoutState, amount_minor: int | None = None
    ) -> None:
        self.statuses[reference] = CheckoutStatus(
            id=reference,
            state=state,
            amount_minor=amount_minor,
            payment_id=f"pi_{reference}",
        )

    async def retrieve_checkout(self, reference: str) -> CheckoutStatus:
        if self.fail:
            raise StripeClientError("gateway down")
        return self.statuses.get(reference, CheckoutStatus(reference, CheckoutState.OPEN))


@pytest.fixture(scope="session")
def db_url(tmp_path_factory: pytest.TempPathFactory) -> str:
    """Provide a temporary SQLite database URL for the test session."""
    db_path = tmp_path_factory.mktemp("db") / "test.db"
    return f"sqlite+aiosqlite:///{db_path}"


@pytest_asyncio.fixture()
async def reset_database(db_url: str) -> AsyncIterator[None]:
    """Drop and recreate the database schema for an isolated test."""
    os.environ["DATABASE_URL"] = db_url
    get_settings.cache_clear()
    get_settings()

    await dispose_engine(db_url)
    engine = create_async_engine(db_url, future=True)
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.drop_all)
        await connection.run_sync(Base.metadata.create_all)
    await engine.dispose()
    yield
    await dispose_engine(db_url)


async def seed_user(
    session, *, email: str, role: UserRole, name: str | None = None
) -> User:
    user = User(
        name=name or email.split("@")[0].title(),
        email=email,
        hashed_password=get_password_hash(PASSWORD),
        role=role,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def seed_vehicle(
    session,
    *,
    seller: User,
    price: str = "500000.00",
    status: VehicleStatus = VehicleStatus.APPROVED,
    make: str = "Maruti",
    model: str = "Swift",
    year: int = 2019,
) -> Vehicle:
    vehicle = Vehicle(
        seller_id=seller.id,
        make=make,
        model=model,
        year=year,
        price=Decimal(price),
        mileage=42000,
        fuel_type=FuelType.PETROL,
        transmission=Transmission.MANUAL,
        location="Pune",
        images=[],
        status=status,
    )
    session.add(vehicle)
    await session.commit()
    await session.refresh(vehicle)
    return vehicle


@pytest_asyncio.fixture()
async def marketplace(reset_database: None, db_url: str) -> dict[str, Any]:
    """Seed an admin, a seller with one approved car and two buyers."""
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        admin = await seed_user(session, email="admin@example.com", role=UserRole.ADMIN)
        seller = await seed_user(session, email="seller@example.com", role=UserRole.SELLER)
        buyer = await seed_user(session, email="buyer@example.com", role=UserRole.BUYER)
        other_buyer = await seed_user(
            session, email="other.buyer@example.com", role=UserRole.BUYER
        )
        vehicle = await seed_vehicle(session, seller=seller)
    return {
        "admin": admin,
        "seller": seller,
        "buyer": buyer,
        "other_buyer": other_buyer,
        "vehicle": vehicle,
        "password": PASSWORD,
    }


@pytest.fixture()
def stripe_gateway() -> FakeGateway:
    return FakeGateway()


@pytest_asyncio.fixture()
async def app_context(
    marketplace: dict[str, Any], stripe_gateway: FakeGateway
) -> AsyncIterator[dict[str, Any]]:
    """Yield an async client plus the seeded marketplace."""
    app.dependency_overrides[deps.get_stripe_client] = lambda: stripe_gateway
    app.dependency_overrides[deps.get_dodo_client] = lambda: None
    context = dict(marketplace)
    context["gateway"] = stripe_gateway
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            context["client"] = client
            yield context
    finally:
        app.dependency_overrides.clear()


async def authenticate(
    client: AsyncClient, email: str, password: str = PASSWORD
) -> dict[str, str]:
    response = await client.post(
        "/api/v1/auth/token",
        data={"username": email, "password": password},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture()
def login(app_context: dict[str, Any]):
    """Return an async helper that turns an email into bearer headers."""

    async def _login(email: str, password: str = PASSWORD) -> dict[str, str]:
        return await authenticate(app_context["client"], email, password)

    return _login


@pytest.fixture()
def sessionmaker(reset_database: None, db_url: str):
    return get_sessionmaker(db_url)
