"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool (created at import time) remains valid across
the entire test session. The whole directory is skipped when PostgreSQL is
not reachable.
"""

import uuid
from collections.abc import Awaitable, Callable
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError

from src.cb_booking.api import payments_router
from src.cb_booking.api import router as booking_router
from src.cb_booking.domain.ports import ORDER_PAID, PaymentIntent, PaymentVerification
from src.cb_common.database import engine
from src.main import app


@pytest_asyncio.fixture(loop_scope="session", scope="session", autouse=True)
async def database_available() -> None:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1 FROM bookings LIMIT 1"))
    except (OSError, OperationalError, DBAPIError) as exc:
        pytest.skip(f"PostgreSQL with migrations applied is required: {exc}")


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client; keeps the engine pool alive."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def stub_payment_gateway(monkeypatch: pytest.MonkeyPatch) -> AsyncMock:
    """Replace Cashfree: every opened order reads back as PAID for its amount."""
    orders: dict[str, int] = {}

    def _create(amount: int, ref: str, customer: str) -> PaymentIntent:
        orders[f"order_{ref}"] = amount
        return PaymentIntent(intent_id=f"order_{ref}", client_session=f"session_{ref}")

    gateway = AsyncMock()
    gateway.create_intent.side_effect = _create
    gateway.verify_intent.side_effect = lambda intent_id: PaymentVerification(
        intent_id, ORDER_PAID, orders.get(intent_id, 0)
    )
    monkeypatch.setattr(booking_router._service, "_gateway", gateway)
    monkeypatch.setattr(payments_router._service, "_gateway", gateway)
    return gateway


PASSWORD = "TestPass123"

UserFactory = Callable[..., Awaitable[tuple[str, dict[str, str]]]]


@pytest.fixture
def make_user(client: AsyncClient) -> UserFactory:
    """Factory creating a fresh user; returns (user_id, auth headers).

    Administrators cannot self-register, so role="admin" and any KYC status
    are written straight to the users table.
    """

    async def _make(
        role: str = "seeker", kyc_status: str | None = "verified"
    ) -> tuple[str, dict[str, str]]:
        uid = uuid.uuid4().hex[:8]
        username = f"{role}_{uid}"
        resp = await client.post(
            "/api/v1/auth/register",
            json={
                "username": username,
                "email": f"{username}@example.com",
                "password": PASSWORD,
                "role": "seeker" if role == "admin" else role,
            },
        )
        assert resp.status_code == 201, resp.text
        user_id = resp.json()["data"]["user_id"]

        async with engine.begin() as conn:
            if role == "admin":
                await conn.execute(
                    text("UPDATE users SET role = 'admin' WHERE id = CAST(:id AS UUID)"),
                    {"id": user_id},
                )
            if kyc_status is not None:
                await conn.execute(
                    text("UPDATE users SET kyc_status = :kyc WHERE id = CAST(:id AS UUID)"),
                    {"id": user_id, "kyc": kyc_status},
                )

        login = await client.post(
            "/api/v1/auth/login", json={"username": username, "password": PASSWORD}
        )
        assert login.status_code == 200, login.text
        token = login.json()["data"]["access_token"]
        return user_id, {"Authorization": f"Bearer {token}"}

    return _make
