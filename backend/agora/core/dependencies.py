"""Common FastAPI dependencies."""
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from agora.core import jwt
from agora.core.database import get_db_session
from agora.core.exceptions import TokenRevoked
from agora.models.user import User
from agora.services.revocation import RevocationLedger

DBSession = Annotated[AsyncSession, Depends(get_db_session)]


def _unauthorized(code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": {"code": code, "message": message}},
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_bearer_token(request: Request) -> str:
    """Return the raw bearer token from the Authorization header."""

    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise _unauthorized("unauthorized", "Missing credentials.")
    token = auth_header.split(" ", 1)[1].strip()
    if not token:
        raise _unauthorized("unauthorized", "Missing credentials.")
    return token


BearerToken = Annotated[str, Depends(get_bearer_token)]


async def get_current_user(request: Request, session: DBSession, token: BearerToken) -> User:
    """Resolve the user behind an access token.

    The revocation ledger is consulted before the token's signature or expiry,
    so a revoked token is rejected even while it is otherwise valid.
    """

    if await RevocationLedger(session).is_revoked(token):
        revoked = TokenRevoked()
        raise _unauthorized(revoked.code, revoked.message)

    try:
        payload = jwt.decode_token(token)
    except ValueError as exc:
        raise _unauthorized("invalid_token", "Invalid or expired token.") from exc

    if payload.get("token_type") != jwt.TokenType.ACCESS.value:
        raise _unauthorized("invalid_token", "Access token required.")

    user_id = payload.get("sub")
    if not user_id:
        raise _unauthorized("invalid_token", "Invalid token payload.")

    user = await session.get(User, str(user_id))
    if user is None:
        raise _unauthorized("user_not_found", "User not found.")

    request.state.user = user
    request.state.user_id = user.id
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
