"""Database models package."""
from agora.models.base import Base
from agora.models.nonce import Nonce
from agora.models.revoked_token import RevokedToken
from agora.models.user import User
from agora.models.wallet import Wallet

__all__ = [
    "Base",
    "Nonce",
    "RevokedToken",
    "User",
    "Wallet",
]
