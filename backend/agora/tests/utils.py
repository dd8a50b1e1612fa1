from __future__ import annotations

import secrets
from dataclasses import dataclass

from ecdsa.ecdsa import Private_key, Public_key
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from agora.core.security import hash_password
from agora.models.user import User
from agora.services.signature import EC_ORDER, GENERATOR, StarkSignature, challenge_hash


@dataclass(frozen=True)
class StarkKeyPair:
    secret: int
    address: str

    def sign(self, challenge: str) -> StarkSignature:
        point = GENERATOR * self.secret
        private = Private_key(Public_key(GENERATOR, point), self.secret)
        k = secrets.randbelow(EC_ORDER - 1) + 1
        signature = private.sign(challenge_hash(challenge), k)
        return StarkSignature(r=signature.r, s=signature.s)

    def sign_compact(self, challenge: str) -> str:
        signature = self.sign(challenge)
        return f"0x{signature.r:064x}{signature.s:064x}"

    def sign_pair(self, challenge: str) -> list[str]:
        signature = self.sign(challenge)
        return [hex(signature.r), hex(signature.s)]


def make_keypair(secret: int | None = None) -> StarkKeyPair:
    secret = secret or secrets.randbelow(EC_ORDER - 1) + 1
    point = GENERATOR * secret
    return StarkKeyPair(secret=secret, address=hex(point.x()))


async def create_user(
    session: AsyncSession,
    *,
    username: str,
    email: str,
    password: str,
) -> User:
    user = User(username=username, email=email.lower(), password_hash=hash_password(password))
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def wallet_login(client: AsyncClient, keypair: StarkKeyPair) -> str:
    """Run request-nonce then connect and return the access token."""

    nonce = (await client.post("/api/v1/auth/wallet/request-nonce", json={"address": keypair.address})).json()[
        "nonce"
    ]
    response = await client.post(
        "/api/v1/auth/wallet/connect",
        json={"address": keypair.address, "signature": keypair.sign_compact(nonce)},
    )
    assert response.status_code == 201, response.text
    return response.json()["token"]


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
