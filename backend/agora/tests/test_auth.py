from __future__ import annotations

import pytest
from freezegun import freeze_time
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agora.core import jwt
from agora.core.security import verify_token_hash
from agora.models.revoked_token import RevokedToken
from agora.models.user import User
from agora.tests.utils import bearer, create_user, make_keypair, wallet_login


@pytest.mark.asyncio
async def test_signup_success(client: AsyncClient, session: AsyncSession) -> None:
    response = await client.post(
        "/api/v1/auth/signup",
        json={"username": "newuser", "email": "NewUser@example.com ", "password": "StrongPass1"},
    )
    assert response.status_code == 201
    payload = response.json()
    assert payload["user"]["username"] == "newuser"
    assert payload["user"]["email"] == "newuser@example.com"
    assert payload["user"]["wallets"] == []
    assert payload["tokens"]["token_type"] == "bearer"

    stored = (
        await session.execute(select(User.refresh_token).where(User.username == "newuser"))
    ).scalar_one()
    assert stored is not None
    assert verify_token_hash(payload["tokens"]["refresh_token"], stored)


@pytest.mark.asyncio
async def test_signup_duplicate_email(client: AsyncClient) -> None:
    await client.post(
        "/api/v1/auth/signup",
        json={"username": "emailuser1", "email": "dup@example.com", "password": "StrongPass1"},
    )
    response = await client.post(
        "/api/v1/auth/signup",
        json={"username": "emailuser2", "email": "DUP@example.com", "password": "StrongPass1"},
    )
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "user_exists"


@pytest.mark.asyncio
async def test_signup_invalid_email(client: AsyncClient) -> None:
    response = await client.post(
        "/api/v1/auth/signup",
        json={"username": "bademail", "email": "invalid-email", "password": "StrongPass1"},
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "invalid_email"


@pytest.mark.asyncio
async def test_signup_weak_password(client: AsyncClient) -> None:
    response = await client.post(
        "/api/v1/auth/signup",
        json={"username": "weakpass", "email": "weak@example.com", "password": "alllowercase"},
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "weak_password"


@pytest.mark.asyncio
async def test_login_returns_token_pair(client: AsyncClient, session: AsyncSession) -> None:
    await create_user(session, username="loginuser", email="login@example.com", password="StrongPass1")

    response = await client.post(
        "/api/v1/auth/login",
        json={"email": "login@example.com", "password": "StrongPass1"},
    )
    assert response.status_code == 200
    tokens = response.json()["tokens"]
    assert jwt.decode_token(tokens["access_token"])["email"] == "login@example.com"
    assert jwt.decode_token(tokens["refresh_token"])["token_type"] == "refresh"


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, session: AsyncSession) -> None:
    await create_user(session, username="wrongpass", email="wrong@example.com", password="StrongPass1")

    response = await client.post(
        "/api/v1/auth/login",
        json={"email": "wrong@example.com", "password": "WrongPass1"},
    )
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "invalid_credentials"


@pytest.mark.asyncio
async def test_wallet_only_user_cannot_password_login(client: AsyncClient) -> None:
    await wallet_login(client, make_keypair())

    response = await client.post(
        "/api/v1/auth/login",
        json={"email": "nobody@example.com", "password": "StrongPass1"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_refresh_token(client: AsyncClient, session: AsyncSession) -> None:
    await create_user(session, username="refresher", email="refresh@example.com", password="StrongPass1")
    login = await client.post(
        "/api/v1/auth/login",
        json={"email": "refresh@example.com", "password": "StrongPass1"},
    )
    refresh_token = login.json()["tokens"]["refresh_token"]

    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
    assert response.status_code == 200
    assert jwt.decode_token(response.json()["access_token"])["token_type"] == "access"


@pytest.mark.asyncio
async def test_refresh_rejects_access_token(client: AsyncClient, session: AsyncSession) -> None:
    await create_user(session, username="wrongtype", email="wrongtype@example.com", password="StrongPass1")
    login = await client.post(
        "/api/v1/auth/login",
        json={"email": "wrongtype@example.com", "password": "StrongPass1"},
    )
    access_token = login.json()["tokens"]["access_token"]

    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": access_token})
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "invalid_token"


@pytest.mark.asyncio
async def test_logout_revokes_access_and_refresh(client: AsyncClient, session: AsyncSession) -> None:
    await create_user(session, username="logoutuser", email="logout@example.com", password="StrongPass1")
    login = await client.post(
        "/api/v1/auth/login",
        json={"email": "logout@example.com", "password": "StrongPass1"},
    )
    tokens = login.json()["tokens"]

    response = await client.post("/api/v1/auth/logout", headers=bearer(tokens["access_token"]))
    assert response.status_code == 200
    assert response.json() == {"message": "Logged out"}

    me = await client.get("/api/v1/auth/me", headers=bearer(tokens["access_token"]))
    assert me.status_code == 401
    assert me.json()["error"]["code"] == "token_revoked"

    refreshed = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert refreshed.status_code == 401
    assert refreshed.json()["error"]["code"] == "token_revoked"

    entries = (await session.execute(select(RevokedToken.expires_at))).scalars().all()
    assert len(entries) == 2
    assert sum(1 for expires_at in entries if expires_at is not None) == 1


@pytest.mark.asyncio
async def test_wallet_disconnect_ends_refresh_session(client: AsyncClient, session: AsyncSession) -> None:
    await create_user(session, username="dualuser", email="dual@example.com", password="StrongPass1")
    login = await client.post(
        "/api/v1/auth/login",
        json={"email": "dual@example.com", "password": "StrongPass1"},
    )
    tokens = login.json()["tokens"]

    response = await client.post(
        "/api/v1/auth/wallet/disconnect", json={}, headers=bearer(tokens["access_token"])
    )
    assert response.status_code == 204

    refreshed = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert refreshed.status_code == 401


def test_expired_access_token_fails_decode() -> None:
    with freeze_time("2024-01-01T00:00:00Z"):
        details = jwt.create_access_token("user-id")

    with freeze_time("2024-01-01T00:16:00Z"):
        with pytest.raises(ValueError):
            jwt.decode_token(details["token"])


def test_reserved_claims_cannot_be_overridden() -> None:
    with pytest.raises(ValueError):
        jwt.create_access_token("user-id", claims={"sub": "someone-else"})


@pytest.mark.asyncio
@pytest.mark.parametrize("strip_prefix", [True, False])
async def test_signup_rejects_wallet_shaped_username(client: AsyncClient, strip_prefix: bool) -> None:
    keypair = make_keypair()
    username = keypair.address[2:] if strip_prefix else "0x" + keypair.address[2:12]

    response = await client.post(
        "/api/v1/auth/signup",
        json={"username": username, "email": "squatter@example.com", "password": "StrongPass1"},
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "invalid_username"


@pytest.mark.asyncio
async def test_signup_cannot_block_first_wallet_connect(client: AsyncClient) -> None:
    unprefixed = make_keypair()
    unprefixed_address = unprefixed.address[2:]
    await client.post(
        "/api/v1/auth/signup",
        json={"username": unprefixed_address, "email": "squatter@example.com", "password": "StrongPass1"},
    )

    nonce = (
        await client.post("/api/v1/auth/wallet/request-nonce", json={"address": unprefixed_address})
    ).json()["nonce"]
    response = await client.post(
        "/api/v1/auth/wallet/connect",
        json={"address": unprefixed_address, "signature": unprefixed.sign_compact(nonce)},
    )

    assert response.status_code == 201
    assert jwt.decode_token(response.json()["token"])["address"] == unprefixed_address
