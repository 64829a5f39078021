"""Tests for login, registration, user management and the rate limiter."""

import pytest
from httpx import AsyncClient

from assetdesk.api.v1.endpoints.auth import limiter
from assetdesk.core.config import settings
from assetdesk.main import seed_super_admin


async def test_login_success(async_client: AsyncClient, admin, password):
    resp = await async_client.post("/auth/login", json={"username": "admin", "password": password})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "Login successful"
    assert body["data"]["token"]
    assert body["data"]["user"]["username"] == "admin"
    assert body["data"]["user"]["role"] == "admin"

    token = body["data"]["token"]
    me = await async_client.get("/users/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["data"]["username"] == "admin"


async def test_seeded_super_admin_can_log_in(async_client: AsyncClient, session_factory):
    await seed_super_admin(session_factory)
    await seed_super_admin(session_factory)

    resp = await async_client.post(
        "/auth/login",
        json={"username": settings.FIRST_ADMIN_USERNAME, "password": settings.FIRST_ADMIN_PASSWORD},
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["user"]["role"] == "super_admin"


async def test_login_wrong_password(async_client: AsyncClient, admin):
    resp = await async_client.post("/auth/login", json={"username": "admin", "password": "nope"})
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "message": "Invalid username or password"}


async def test_login_inactive_user(async_client: AsyncClient, make_account, password):
    await make_account("sleeper", active=False)
    resp = await async_client.post("/auth/login", json={"username": "sleeper", "password": password})
    assert resp.status_code == 403


async def test_garbage_token_rejected(async_client: AsyncClient):
    resp = await async_client.get("/users/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


async def test_logout_acknowledged(async_client: AsyncClient):
    resp = await async_client.post("/auth/logout")
    assert resp.status_code == 200
    assert resp.json()["success"] is True


async def test_admin_registers_user(admin_client: AsyncClient, async_client: AsyncClient):
    resp = await admin_client.post(
        "/auth/register", json={"username": "newbie", "password": "hunter22", "role": "USER"}
    )
    assert resp.status_code == 201
    assert resp.json()["data"]["role"] == "user"

    login = await async_client.post("/auth/login", json={"username": "newbie", "password": "hunter22"})
    assert login.status_code == 200


async def test_duplicate_username(admin_client: AsyncClient, user):
    resp = await admin_client.post(
        "/auth/register", json={"username": "viewer", "password": "whatever1"}
    )
    assert resp.status_code == 409
    assert resp.json()["message"] == "Username already exists"


async def test_only_super_admin_creates_super_admin(admin_client: AsyncClient, super_client: AsyncClient):
    body = {"username": "boss2", "password": "topsecret", "role": "super_admin"}
    assert (await admin_client.post("/auth/register", json=body)).status_code == 403
    assert (await super_client.post("/auth/register", json=body)).status_code == 201


async def test_register_requires_admin(user_client: AsyncClient):
    resp = await user_client.post("/auth/register", json={"username": "sneaky", "password": "123456"})
    assert resp.status_code == 403


@pytest.mark.parametrize("body", [
    {"username": "ab", "password": "123456"},
    {"username": "valid", "password": "123"},
    {"username": "valid", "password": "123456", "role": "owner"},
])
async def test_register_validation(admin_client: AsyncClient, body: dict):
    resp = await admin_client.post("/auth/register", json=body)
    assert resp.status_code == 422


async def test_list_and_update_users(admin_client: AsyncClient, user):
    listed = (await admin_client.get("/users", params={"search": "view"})).json()["data"]
    assert [u["username"] for u in listed["items"]] == ["viewer"]

    resp = await admin_client.put(f"/users/{user.id}", json={"role": "admin", "isActive": False})
    assert resp.status_code == 200
    assert resp.json()["data"]["role"] == "admin"
    assert resp.json()["data"]["isActive"] is False


async def test_admin_cannot_deactivate_self(admin_client: AsyncClient, admin):
    resp = await admin_client.put(f"/users/{admin.id}", json={"isActive": False})
    assert resp.status_code == 400


async def test_admin_cannot_touch_super_admin(admin_client: AsyncClient, super_admin):
    resp = await admin_client.put(f"/users/{super_admin.id}", json={"password": "takeover1"})
    assert resp.status_code == 403


async def test_users_list_is_admin_only(user_client: AsyncClient):
    assert (await user_client.get("/users")).status_code == 403
    assert (await user_client.get("/users/me")).status_code == 200


async def test_login_rate_limited(async_client: AsyncClient, admin):
    limiter.reset()
    limiter.enabled = True
    try:
        codes = [
            (await async_client.post("/auth/login", json={"username": "admin", "password": "bad"})).status_code
            for _ in range(11)
        ]
    finally:
        limiter.enabled = False
        limiter.reset()
    assert codes[:10] == [401] * 10
    assert codes[10] == 429
