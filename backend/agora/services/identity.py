"""Resolution of wallet addresses to local user identities."""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agora.core.exceptions import IdentityConflict
from agora.models.user import User
from agora.models.wallet import Wallet

# Hex public key with an optional 0x prefix. Wallet users are named after their
# address, so no other account may hold a username of this shape.
_ADDRESS_RE = re.compile(r"^(0x)?[0-9a-fA-F]{1,64}$")


def is_wallet_address(value: str) -> bool:
    return _ADDRESS_RE.fullmatch(value) is not None


class ResolutionOutcome(str, Enum):
    EXISTING = "existing"
    CREATED = "created"


@dataclass(slots=True)
class Resolution:
    user: User
    wallet: Wallet
    outcome: ResolutionOutcome

    @property
    def created(self) -> bool:
        return self.outcome is ResolutionOutcome.CREATED


class IdentityResolver:
    """Map a verified address to its user, provisioning both rows when unseen."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find(self, address: str) -> Wallet | None:
        stmt = select(Wallet).where(Wallet.address == address)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def resolve(self, address: str) -> Resolution:
        """Return the existing identity for ``address`` or create one.

        New users are named after their address. The user and wallet rows are
        flushed together; a unique violation raises ``IdentityConflict`` and
        leaves the session needing a rollback.
        """

        wallet = await self.find(address)
        if wallet is not None:
            return Resolution(user=wallet.user, wallet=wallet, outcome=ResolutionOutcome.EXISTING)

        user = User(username=address)
        wallet = Wallet(address=address, is_primary=True, user=user)
        self._session.add_all([user, wallet])
        try:
            await self._session.flush()
        except IntegrityError as exc:
            raise IdentityConflict(address) from exc
        return Resolution(user=user, wallet=wallet, outcome=ResolutionOutcome.CREATED)


__all__ = ["IdentityResolver", "Resolution", "ResolutionOutcome", "is_wallet_address"]
