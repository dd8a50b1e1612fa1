from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from agora.tests.utils import bearer, create_user, make_keypair, wallet_login


@pytest.mark.asyncio
async def test_me_includes_linked_wallets(client: AsyncClient) -> None:
    keypair = make_keypair()
    token = await wallet_login(client, keypair)

    response = await client.get("/api/v1/auth/me", headers=bearer(token))

    assert response.status_code == 200
    payload = response.json()
    assert payload["username"] == keypair.address
    assert payload["email"] is None
    assert [wallet["address"] for wallet in payload["wallets"]] == [keypair.address]
    assert payload["wallets"][0]["is_primary"] is True


@pytest.mark.asyncio
async def test_me_for_password_user(client: AsyncClient, session: AsyncSession) -> None:
    await create_user(session, username="profile", email="profile@example.com", password="StrongPass1")
    login = await client.post(
        "/api/v1/auth/login",
        json={"email": "profile@example.com", "password": "StrongPass1"},
    )
    token = login.json()["tokens"]["access_token"]

    response = await client.get("/api/v1/auth/me", headers=bearer(token))

    assert response.status_code == 200
    assert response.json()["email"] == "profile@example.com"
    assert response.json()["wallets"] == []


@pytest.mark.asyncio
async def test_me_requires_authentication(client: AsyncClient) -> None:
    response = await client.get("/api/v1/auth/me")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "unauthorized"


@pytest.mark.asyncio
async def test_refresh_token_cannot_access_me(client: AsyncClient, session: AsyncSession) -> None:
    await create_user(session, username="refreshme", email="refreshme@example.com", password="StrongPass1")
    login = await client.post(
        "/api/v1/auth/login",
        json={"email": "refreshme@example.com", "password": "StrongPass1"},
    )
    refresh_token = login.json()["tokens"]["refresh_token"]

    response = await client.get("/api/v1/auth/me", headers=bearer(refresh_token))

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "invalid_token"
