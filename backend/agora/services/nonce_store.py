"""Persistence of wallet login challenges."""
from __future__ import annotations

import datetime as dt
import secrets
from collections.abc import Callable

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agora.core.exceptions import NoValidNonce
from agora.models.nonce import Nonce

Clock = Callable[[], dt.datetime]

MIN_NONCE_BYTES = 16


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def generate_nonce(num_bytes: int) -> str:
    """Return a hex encoded random challenge of at least 128 bits."""

    return secrets.token_hex(max(num_bytes, MIN_NONCE_BYTES))


class NonceStore:
    """Keeps at most one live nonce per wallet address.

    The store only flushes; committing is left to the caller so nonce deletion
    can share a transaction with identity provisioning.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        ttl: dt.timedelta,
        num_bytes: int = 32,
        clock: Clock = utcnow,
    ) -> None:
        self._session = session
        self._ttl = ttl
        self._num_bytes = num_bytes
        self._clock = clock

    async def issue(self, address: str) -> Nonce:
        """Create or overwrite the challenge for ``address``."""

        try:
            return await self._upsert(address)
        except IntegrityError:
            # A concurrent request inserted the row first; overwrite it.
            await self._session.rollback()
            return await self._upsert(address)

    async def _upsert(self, address: str) -> Nonce:
        now = self._clock()
        value = generate_nonce(self._num_bytes)
        stmt = select(Nonce).where(Nonce.address == address)
        record = (await self._session.execute(stmt)).scalar_one_or_none()
        if record is None:
            record = Nonce(address=address, nonce=value, created_at=now, expires_at=now + self._ttl)
            self._session.add(record)
        else:
            record.nonce = value
            record.created_at = now
            record.expires_at = now + self._ttl
        await self._session.flush()
        return record

    async def find_live(self, address: str) -> Nonce:
        """Return the newest unexpired nonce for ``address`` or raise ``NoValidNonce``."""

        stmt = (
            select(Nonce)
            .where(Nonce.address == address, Nonce.expires_at > self._clock())
            .order_by(Nonce.created_at.desc(), Nonce.id.desc())
            .limit(1)
        )
        record = (await self._session.execute(stmt)).scalar_one_or_none()
        if record is None:
            raise NoValidNonce()
        return record

    async def delete(self, nonce_id: int) -> None:
        """Remove a nonce so it cannot be replayed."""

        result = await self._session.execute(delete(Nonce).where(Nonce.id == nonce_id))
        if result.rowcount == 0:
            raise NoValidNonce()

    async def purge_expired(self) -> int:
        """Delete expired nonces. Returns count deleted."""

        result = await self._session.execute(delete(Nonce).where(Nonce.expires_at <= self._clock()))
        deleted = int(result.rowcount or 0)
        if deleted:
            logger.bind(count=deleted).info("expired_nonces_purged")
        return deleted


__all__ = ["Clock", "NonceStore", "generate_nonce", "utcnow"]
