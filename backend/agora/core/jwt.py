"""JWT helper utilities."""
from __future__ import annotations

import datetime as dt
import uuid
from collections.abc import Mapping
from enum import Enum
from typing import Any, TypedDict, cast

from jose import JWTError, jwt  # type: ignore[import-untyped]

from agora.core.config import get_settings

settings = get_settings()

_RESERVED_CLAIMS = frozenset({"sub", "jti", "token_type", "iat", "exp"})


class TokenType(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class TokenDetails(TypedDict):
    token: str
    expires_at: dt.datetime
    jti: str


class TokenPayload(TypedDict, total=False):
    sub: str
    jti: str
    token_type: str
    exp: int
    iat: int
    email: str
    wallet: int
    address: str


def _create_token(
    subject: str,
    token_type: TokenType,
    *,
    claims: Mapping[str, Any] | None = None,
) -> TokenDetails:
    now = dt.datetime.now(dt.timezone.utc)
    if token_type is TokenType.ACCESS:
        expires = now + dt.timedelta(minutes=settings.access_token_expires_min)
    else:
        expires = now + dt.timedelta(days=settings.refresh_token_expires_days)

    jti = uuid.uuid4().hex
    payload: dict[str, Any] = {}
    if claims:
        clashing = _RESERVED_CLAIMS.intersection(claims)
        if clashing:
            raise ValueError(f"Claims may not override reserved keys: {sorted(clashing)}")
        payload.update(claims)
    payload.update(
        {
            "sub": subject,
            "jti": jti,
            "token_type": token_type.value,
            "iat": int(now.timestamp()),
            "exp": int(expires.timestamp()),
        }
    )

    token = jwt.encode(payload, settings.jwt_secret.get_secret_value(), algorithm=settings.jwt_algorithm)
    return {"token": token, "expires_at": expires, "jti": jti}


def create_access_token(subject: str, *, claims: Mapping[str, Any] | None = None) -> TokenDetails:
    """Create an access token for the given identity."""

    return _create_token(subject, TokenType.ACCESS, claims=claims)


def create_refresh_token(subject: str, *, claims: Mapping[str, Any] | None = None) -> TokenDetails:
    """Create a refresh token for the given identity."""

    return _create_token(subject, TokenType.REFRESH, claims=claims)


def decode_token(token: str) -> TokenPayload:
    """Decode a JWT token and validate signature and expiry."""

    try:
        payload = jwt.decode(token, settings.jwt_secret.get_secret_value(), algorithms=[settings.jwt_algorithm])
        return cast(TokenPayload, payload)
    except JWTError as exc:
        raise ValueError("Invalid token.") from exc


def expiry_of(payload: TokenPayload) -> dt.datetime | None:
    """Return the ``exp`` claim as an aware datetime, if present."""

    exp = payload.get("exp")
    if exp is None:
        return None
    return dt.datetime.fromtimestamp(int(exp), tz=dt.timezone.utc)
