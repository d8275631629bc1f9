"""Integration tests for auth flow (requires running PG).

Run: pytest tests/integration/test_auth_flow.py -v
Pre-condition: docker compose up -d && alembic upgrade head
"""

import uuid

import pytest
from httpx import AsyncClient

# All tests in this module share the session-scoped event loop so that the
# module-level SQLAlchemy async engine pool stays alive across tests.
pytestmark = [pytest.mark.integration, pytest.mark.asyncio(loop_scope="session")]


def unique_user(role: str = "seeker") -> dict[str, str]:
    """Generate unique credentials to avoid test pollution."""
    uid = uuid.uuid4().hex[:8]
    return {
        "username": f"testuser_{uid}",
        "email": f"test_{uid}@example.com",
        "password": "TestPass1",
        "role": role,
    }


async def _login(client: AsyncClient, user: dict[str, str]) -> dict:
    resp = await client.post(
        "/api/v1/auth/login",
        json={"username": user["username"], "password": user["password"]},
    )
    return resp.json()["data"]


class TestRegister:
    async def test_register_success(self, client: AsyncClient) -> None:
        user = unique_user()
        resp = await client.post("/api/v1/auth/register", json=user)
        assert resp.status_code == 201
        body = resp.json()
        assert body["code"] == 0
        assert body["data"]["username"] == user["username"]
        assert body["data"]["role"] == "seeker"
        assert "user_id" in body["data"]
        assert "request_id" in body

    async def test_register_companion(self, client: AsyncClient) -> None:
        resp = await client.post("/api/v1/auth/register", json=unique_user("companion"))
        assert resp.status_code == 201
        assert resp.json()["data"]["role"] == "companion"

    async def test_register_as_admin_rejected(self, client: AsyncClient) -> None:
        resp = await client.post("/api/v1/auth/register", json=unique_user("admin"))
        assert resp.status_code == 422

    async def test_register_duplicate_username(self, client: AsyncClient) -> None:
        user = unique_user()
        await client.post("/api/v1/auth/register", json=user)
        resp = await client.post(
            "/api/v1/auth/register",
            json={**user, "email": f"other_{uuid.uuid4().hex[:6]}@example.com"},
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == 1001

    async def test_register_duplicate_email(self, client: AsyncClient) -> None:
        user = unique_user()
        await client.post("/api/v1/auth/register", json=user)
        resp = await client.post(
            "/api/v1/auth/register",
            json={**user, "username": f"other_{uuid.uuid4().hex[:6]}"},
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == 1002


class TestLogin:
    async def test_login_success(self, client: AsyncClient) -> None:
        user = unique_user("companion")
        await client.post("/api/v1/auth/register", json=user)
        data = await _login(client, user)
        assert data["token_type"] == "Bearer"
        assert data["user"]["role"] == "companion"
        assert data["user"]["kyc_status"] == "pending"

    async def test_login_wrong_password(self, client: AsyncClient) -> None:
        user = unique_user()
        await client.post("/api/v1/auth/register", json=user)
        resp = await client.post(
            "/api/v1/auth/login",
            json={"username": user["username"], "password": "WrongPass1"},
        )
        assert resp.status_code == 401
        assert resp.json()["code"] == 1003


class TestRefreshAndMe:
    async def test_refresh_success(self, client: AsyncClient) -> None:
        user = unique_user()
        await client.post("/api/v1/auth/register", json=user)
        tokens = await _login(client, user)

        resp = await client.post(
            "/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
        )
        assert resp.status_code == 200
        assert len(resp.json()["data"]["access_token"]) > 20

    async def test_refresh_with_access_token_fails(self, client: AsyncClient) -> None:
        user = unique_user()
        await client.post("/api/v1/auth/register", json=user)
        tokens = await _login(client, user)

        resp = await client.post(
            "/api/v1/auth/refresh", json={"refresh_token": tokens["access_token"]}
        )
        assert resp.status_code == 401
        assert resp.json()["code"] == 1005

    async def test_me_returns_profile(self, client: AsyncClient) -> None:
        user = unique_user()
        await client.post("/api/v1/auth/register", json=user)
        tokens = await _login(client, user)

        resp = await client.get(
            "/api/v1/auth/me",
            headers={"Authorization": f"Bearer {tokens['access_token']}"},
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["username"] == user["username"]

    async def test_me_without_token_fails(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/auth/me")
        assert resp.status_code == 401
