"""Wallet authentication schemas."""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator


class NonceRequest(BaseModel):
    address: str = Field(min_length=1, max_length=255)


class NonceResponse(BaseModel):
    nonce: str


class ConnectRequest(BaseModel):
    address: str = Field(min_length=1, max_length=255)
    # Compact r||s hex, or an [r, s] pair of hex strings.
    signature: str | list[str]


class ConnectResponse(BaseModel):
    token: str


class DisconnectRequest(BaseModel):
    address: str | None = Field(default=None, min_length=1, max_length=255)

    @field_validator("address")
    @classmethod
    def _strip_address(cls, value: str | None) -> str | None:
        if value is None:
            return None
        stripped = value.strip()
        if not stripped:
            raise ValueError("address must not be blank")
        return stripped


class WalletStatus(BaseModel):
    connected: bool
    addresses: list[str]


class WalletStatusResponse(BaseModel):
    status: Literal["success"] = "success"
    data: WalletStatus
