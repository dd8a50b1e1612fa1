"""Wallet challenge/response login, disconnect and status."""
from __future__ import annotations

import datetime as dt
from collections.abc import Callable
from dataclasses import dataclass, field

from loguru import logger
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from agora.core import jwt
from agora.core.config import Settings, get_settings
from agora.core.exceptions import IdentityConflict, InvalidSignature, MalformedSignature, NoValidNonce
from agora.core.logging import mask_address
from agora.core.metrics import record_auth_login, record_nonce_issued
from agora.models.user import User
from agora.models.wallet import Wallet
from agora.services.identity import IdentityResolver, Resolution
from agora.services.nonce_store import Clock, NonceStore, utcnow
from agora.services.revocation import RevocationLedger
from agora.services.signature import StarkSignature, WireSignature, parse_signature, verify_signature

Verifier = Callable[[str, StarkSignature, str], bool]


@dataclass(slots=True)
class WalletLogin:
    token: str
    resolution: Resolution


@dataclass(slots=True)
class WalletStatus:
    connected: bool
    addresses: list[str] = field(default_factory=list)


class WalletAuthService:
    """Compose nonce store, verifier, identity resolver, token issuer and ledger."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        settings: Settings | None = None,
        clock: Clock = utcnow,
        verifier: Verifier = verify_signature,
    ) -> None:
        settings = settings or get_settings()
        self._session = session
        self._verify = verifier
        self.nonces = NonceStore(
            session,
            ttl=dt.timedelta(seconds=settings.nonce_ttl_seconds),
            num_bytes=settings.nonce_num_bytes,
            clock=clock,
        )
        self.identities = IdentityResolver(session)
        self.ledger = RevocationLedger(session)

    async def request_nonce(self, address: str) -> str:
        """Issue a fresh challenge for ``address``, replacing any previous one."""

        record = await self.nonces.issue(address)
        await self._session.commit()
        record_nonce_issued()
        logger.bind(address=mask_address(address)).info("wallet_nonce_issued")
        return record.nonce

    async def connect_wallet(self, address: str, signature: WireSignature) -> WalletLogin:
        """Verify a signed challenge and return an access token for the wallet's user.

        Raises ``NoValidNonce`` when no live nonce exists and ``InvalidSignature``
        when verification fails; a failed verification keeps the nonce usable.
        """

        try:
            parsed: StarkSignature | None = parse_signature(signature)
        except MalformedSignature:
            parsed = None

        try:
            record = await self.nonces.find_live(address)
        except NoValidNonce:
            record_auth_login("wallet", "no_valid_nonce")
            logger.bind(address=mask_address(address)).warning("wallet_connect_without_nonce")
            raise

        if parsed is None or not self._verify(record.nonce, parsed, address):
            record_auth_login("wallet", "invalid_signature")
            logger.bind(address=mask_address(address), malformed=parsed is None).warning(
                "wallet_signature_rejected"
            )
            raise InvalidSignature()

        resolution = await self._consume_and_resolve(record.id, address)
        wallet = resolution.wallet
        access = jwt.create_access_token(
            str(resolution.user.id),
            claims={"wallet": wallet.id, "address": wallet.address},
        )
        record_auth_login("wallet", "success")
        logger.bind(
            address=mask_address(address),
            user_id=resolution.user.id,
            outcome=resolution.outcome.value,
        ).info("wallet_connected")
        return WalletLogin(token=access["token"], resolution=resolution)

    async def _consume_and_resolve(self, nonce_id: int, address: str) -> Resolution:
        try:
            return await self._commit_connect(nonce_id, address)
        except IdentityConflict:
            await self._session.rollback()
            logger.bind(address=mask_address(address)).info("wallet_identity_conflict_retry")
        try:
            return await self._commit_connect(nonce_id, address)
        except IdentityConflict:
            await self._session.rollback()
            raise

    async def _commit_connect(self, nonce_id: int, address: str) -> Resolution:
        # Nonce deletion and identity provisioning commit together.
        await self.nonces.delete(nonce_id)
        resolution = await self.identities.resolve(address)
        await self._session.commit()
        return resolution

    async def disconnect(self, user_id: str, address: str | None = None) -> None:
        """Unlink one wallet, or demote all primary wallets, then end password sessions."""

        if address:
            await self._session.execute(
                delete(Wallet).where(Wallet.user_id == user_id, Wallet.address == address)
            )
        else:
            await self._session.execute(
                update(Wallet)
                .where(Wallet.user_id == user_id, Wallet.is_primary.is_(True))
                .values(is_primary=False)
            )

        user = await self._session.get(User, user_id)
        revoked_refresh = False
        if user is not None and user.refresh_token:
            await self.ledger.revoke(user.refresh_token, user_id)
            user.refresh_token = None
            revoked_refresh = True
        await self._session.commit()
        logger.bind(
            user_id=user_id,
            address=mask_address(address) if address else None,
            revoked_refresh=revoked_refresh,
        ).info("wallet_disconnected")

    async def get_status(self, user_id: str) -> WalletStatus:
        stmt = select(Wallet.address).where(Wallet.user_id == user_id).order_by(Wallet.id)
        addresses = list((await self._session.execute(stmt)).scalars().all())
        return WalletStatus(connected=bool(addresses), addresses=addresses)


__all__ = ["WalletAuthService", "WalletLogin", "WalletStatus"]
