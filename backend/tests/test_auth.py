"""
Tests for account registration, login and bearer authentication.
"""

import pytest
from httpx import AsyncClient

from app.models import User

REGISTER = "/api/v1/auth/register"
LOGIN = "/api/v1/auth/login"


async def register(client: AsyncClient, email: str, username: str, password: str = "summit-ready-1", **extra):
    return await client.post(
        REGISTER, json={"email": email, "username": username, "password": password, **extra}
    )


@pytest.mark.asyncio
async def test_register_returns_public_profile(client: AsyncClient):
    response = await register(client, "hiker@example.com", "hiker", full_name="Andres Bonifacio")
    assert response.status_code == 201
    data = response.json()
    assert (data["email"], data["username"], data["full_name"]) == (
        "hiker@example.com", "hiker", "Andres Bonifacio",
    )
    assert "hashed_password" not in data
    assert "password" not in data


@pytest.mark.asyncio
@pytest.mark.parametrize("email, username", [
    ("testuser@example.com", "someoneelse"),
    ("someoneelse@example.com", "testuser"),
])
async def test_register_conflicts(client: AsyncClient, test_user, email, username):
    response = await register(client, email, username)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_register_rejects_short_password(client: AsyncClient):
    response = await register(client, "weak@example.com", "weak", password="short")
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_login_then_use_token(client: AsyncClient):
    """Register, log in, and the token opens the caller's booking list."""
    await register(client, "runner@example.com", "runner")
    login = await client.post(LOGIN, json={"email": "runner@example.com", "password": "summit-ready-1"})
    assert login.status_code == 200
    assert login.json()["token_type"] == "bearer"

    token = login.json()["access_token"]
    response = await client.get("/api/v1/bookings/", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.asyncio
@pytest.mark.parametrize("email, password", [
    ("testuser@example.com", "wrongpassword"),
    ("nobody@example.com", "testpassword123"),
])
async def test_bad_credentials(client: AsyncClient, test_user, email, password):
    response = await client.post(LOGIN, json={"email": email, "password": password})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_deactivated_account_cannot_log_in(client: AsyncClient, test_user, db_session):
    user = await db_session.get(User, test_user.id)
    user.is_active = False
    await db_session.commit()

    response = await client.post(LOGIN, json={"email": "testuser@example.com", "password": "testpassword123"})
    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer nope"}, {"Authorization": "Basic abc"}])
async def test_protected_routes_need_valid_bearer(client: AsyncClient, headers):
    response = await client.get("/api/v1/bookings/", headers=headers)
    assert response.status_code == 401
