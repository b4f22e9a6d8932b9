"""Tests for the self-service /user/profile endpoints."""

import pytest
from httpx import AsyncClient

API = "/api/v1"


@pytest.mark.asyncio
async def test_profile_requires_authentication(async_client: AsyncClient):
    assert (await async_client.get(f"{API}/user/profile")).status_code == 401
    resp = await async_client.put(f"{API}/user/profile", json={"name": "Nobody"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_read_profile(async_client: AsyncClient, make_user, login):
    await make_user("alice@x.com", name="Alice", permissions=["CREATE_CASHBOOK"])
    headers = await login("alice@x.com")
    resp = await async_client.get(f"{API}/user/profile", headers=headers)
    assert resp.status_code == 200
    profile = resp.json()["profile"]
    assert profile["email"] == "alice@x.com"
    assert profile["name"] == "Alice"
    assert profile["permissions"] == ["CREATE_CASHBOOK"]
    assert "hashed_password" not in profile


@pytest.mark.asyncio
async def test_update_name_and_email(async_client: AsyncClient, make_user, login):
    await make_user("alice@x.com", name="Alice")
    headers = await login("alice@x.com")
    resp = await async_client.put(
        f"{API}/user/profile",
        json={"name": " Alice Smith ", "email": "Alice.Smith@X.com"},
        headers=headers,
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Profile updated successfully"
    assert body["profile"]["name"] == "Alice Smith"
    assert body["profile"]["email"] == "alice.smith@x.com"

    # The session that made the edit stays valid
    me = await async_client.get(f"{API}/auth/me", headers=headers)
    assert me.json()["user"]["email"] == "alice.smith@x.com"


@pytest.mark.asyncio
async def test_update_email_conflict(async_client: AsyncClient, make_user, login):
    await make_user("alice@x.com")
    await make_user("bob@x.com")
    headers = await login("alice@x.com")
    resp = await async_client.put(
        f"{API}/user/profile", json={"email": "BOB@x.com"}, headers=headers
    )
    assert resp.status_code == 409
    assert resp.json()["detail"] == "Email already taken"


@pytest.mark.asyncio
async def test_password_change_needs_current_password(async_client: AsyncClient, make_user, login):
    await make_user("alice@x.com")
    headers = await login("alice@x.com")

    missing = await async_client.put(
        f"{API}/user/profile", json={"new_password": "brand-new-pass"}, headers=headers
    )
    assert missing.status_code == 400
    assert missing.json()["detail"] == "Current password is required to change password"

    wrong = await async_client.put(
        f"{API}/user/profile",
        json={"current_password": "not-my-password", "new_password": "brand-new-pass"},
        headers=headers,
    )
    assert wrong.status_code == 400
    assert wrong.json()["detail"] == "Current password is incorrect"

    # Nothing changed: the old password still works
    await login("alice@x.com")


@pytest.mark.asyncio
async def test_password_change(async_client: AsyncClient, make_user, login):
    await make_user("alice@x.com")
    headers = await login("alice@x.com")
    resp = await async_client.put(
        f"{API}/user/profile",
        json={"current_password": "password123", "new_password": "brand-new-pass"},
        headers=headers,
    )
    assert resp.status_code == 200

    await login("alice@x.com", "brand-new-pass")
    old = await async_client.post(
        f"{API}/auth/sign-in", json={"email": "alice@x.com", "password": "password123"}
    )
    assert old.status_code == 401


@pytest.mark.asyncio
async def test_new_password_too_short(async_client: AsyncClient, make_user, login):
    await make_user("alice@x.com")
    headers = await login("alice@x.com")
    resp = await async_client.put(
        f"{API}/user/profile",
        json={"current_password": "password123", "new_password": "123"},
        headers=headers,
    )
    assert resp.status_code == 400
    assert "at least 6" in resp.json()["detail"]
