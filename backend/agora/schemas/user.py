"""User related schemas."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class WalletOut(BaseModel):
    id: int
    address: str
    is_primary: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserProfile(BaseModel):
    id: str
    username: str
    email: str | None = None
    created_at: datetime
    wallets: list[WalletOut] = []

    model_config = ConfigDict(from_attributes=True)
