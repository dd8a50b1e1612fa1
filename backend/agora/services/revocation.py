"""Ledger of revoked tokens."""
from __future__ import annotations

import datetime as dt

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from agora.models.revoked_token import RevokedToken


class RevocationLedger:
    """Records tokens that must be rejected even before they expire."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def is_revoked(self, token: str) -> bool:
        """Return True if the raw token string has been revoked."""

        stmt = select(RevokedToken.id).where(RevokedToken.token == token)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def revoke(self, token: str, user_id: str, *, expires_at: dt.datetime | None = None) -> None:
        """Persist a revocation record; revoking twice is a no-op."""

        if await self.is_revoked(token):
            return
        self._session.add(RevokedToken(token=token, user_id=user_id, expires_at=expires_at))
        await self._session.flush()

    async def prune_expired(self, *, now: dt.datetime | None = None) -> int:
        """Delete entries whose token has naturally expired. Returns count deleted."""

        cutoff = now or dt.datetime.now(dt.timezone.utc)
        stmt = delete(RevokedToken).where(
            RevokedToken.expires_at.is_not(None), RevokedToken.expires_at < cutoff
        )
        result = await self._session.execute(stmt)
        return int(result.rowcount or 0)


__all__ = ["RevocationLedger"]
