"""Password account endpoints."""
from __future__ import annotations

import re
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from loguru import logger
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from agora.core import jwt
from agora.core.config import get_settings
from agora.core.dependencies import BearerToken, CurrentUser, DBSession
from agora.core.logging import mask_email, record_validation_error
from agora.core.metrics import record_auth_login
from agora.core.rate_limiter import SlidingWindowRateLimiter, get_login_rate_limiter
from agora.core.security import (
    PasswordValidationError,
    hash_password,
    hash_token,
    validate_email_format,
    verify_password,
    verify_token_hash,
)
from agora.models.user import User
from agora.schemas import auth as auth_schema
from agora.schemas.user import UserProfile
from agora.services.identity import is_wallet_address
from agora.services.revocation import RevocationLedger

router = APIRouter()

_USERNAME_RE = re.compile(r"^[A-Za-z0-9_]{3,64}$")

LoginLimiter = Annotated[SlidingWindowRateLimiter, Depends(get_login_rate_limiter)]


def _invalid_token(message: str = "Invalid or expired token.", code: str = "invalid_token") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": {"code": code, "message": message}},
    )


async def _issue_token_pair(session: AsyncSession, user: User) -> auth_schema.TokenBundle:
    """Mint access and refresh tokens and store the refresh token's hash."""

    settings = get_settings()
    claims = {"email": user.email} if user.email else None
    access = jwt.create_access_token(user.id, claims=claims)
    refresh = jwt.create_refresh_token(user.id, claims=claims)
    user.refresh_token = hash_token(refresh["token"])
    await session.commit()
    await session.refresh(user)
    return auth_schema.TokenBundle(
        access_token=access["token"],
        refresh_token=refresh["token"],
        expires_in=settings.access_token_expires_min * 60,
        refresh_expires_in=settings.refresh_token_expires_days * 86400,
    )


@router.post("/signup", response_model=auth_schema.AuthResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    payload: auth_schema.SignupRequest,
    request: Request,
    session: DBSession,
) -> auth_schema.AuthResponse:
    """Register a password account and sign it in."""

    username = payload.username.strip()
    if not _USERNAME_RE.fullmatch(username):
        record_validation_error(request, "invalid_username", {"username": payload.username})
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": {"code": "invalid_username", "message": "Username must contain only letters, numbers, or underscores."}},
        )
    if is_wallet_address(username):
        record_validation_error(request, "invalid_username", {"username": username})
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": {"code": "invalid_username", "message": "Username must not look like a wallet address."}},
        )

    email_normalized = payload.email.strip().lower()
    try:
        validate_email_format(email_normalized)
        password_hash = hash_password(payload.password)
    except PasswordValidationError as exc:
        record_validation_error(request, "weak_password", {"username": username})
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": {"code": "weak_password", "message": str(exc)}},
        ) from exc
    except ValueError as exc:
        record_validation_error(request, "invalid_email", {"email": mask_email(email_normalized)})
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": {"code": "invalid_email", "message": "Email address is invalid."}},
        ) from exc

    stmt = select(User.id).where(or_(User.username == username, User.email == email_normalized))
    if (await session.execute(stmt)).first() is not None:
        record_validation_error(request, "duplicate_user", {"username": username})
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": {"code": "user_exists", "message": "Username or email already registered."}},
        )

    user = User(username=username, email=email_normalized, password_hash=password_hash)
    session.add(user)
    await session.flush()
    tokens = await _issue_token_pair(session, user)
    logger.bind(user_id=user.id, email=mask_email(email_normalized)).info("user_signed_up")
    return auth_schema.AuthResponse(tokens=tokens, user=UserProfile.model_validate(user))


@router.post("/login", response_model=auth_schema.AuthResponse)
async def login(
    payload: auth_schema.LoginRequest,
    session: DBSession,
    limiter: LoginLimiter,
) -> auth_schema.AuthResponse:
    """Authenticate with email and password and return a token pair."""

    email_normalized = payload.email.strip().lower()
    allowed, retry_after = await limiter.consume(email_normalized)
    if not allowed:
        record_auth_login("password", "rate_limited")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": {
                    "code": "too_many_attempts",
                    "message": "Too many login attempts. Please try again later.",
                    "retry_after": retry_after,
                }
            },
            headers={"Retry-After": str(int(retry_after or 0) + 1)},
        )

    stmt = select(User).where(User.email == email_normalized)
    user = (await session.execute(stmt)).scalar_one_or_none()
    if user is None or not user.password_hash or not verify_password(payload.password, user.password_hash):
        record_auth_login("password", "invalid_credentials")
        logger.bind(email=mask_email(email_normalized)).warning("login_failed")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": {"code": "invalid_credentials", "message": "Invalid email or password."}},
        )

    tokens = await _issue_token_pair(session, user)
    await limiter.reset(email_normalized)
    record_auth_login("password", "success")
    logger.bind(user_id=user.id).info("login_succeeded")
    return auth_schema.AuthResponse(tokens=tokens, user=UserProfile.model_validate(user))


@router.post("/refresh", response_model=auth_schema.AccessTokenResponse)
async def refresh_token(
    payload: auth_schema.RefreshRequest,
    session: DBSession,
) -> auth_schema.AccessTokenResponse:
    """Exchange a refresh token for a new access token."""

    token = payload.refresh_token
    if await RevocationLedger(session).is_revoked(token):
        raise _invalid_token("Token has been revoked.", code="token_revoked")

    try:
        decoded = jwt.decode_token(token)
    except ValueError as exc:
        raise _invalid_token() from exc

    if decoded.get("token_type") != jwt.TokenType.REFRESH.value:
        raise _invalid_token("Refresh token required.")

    user_id = decoded.get("sub")
    user = await session.get(User, str(user_id)) if user_id else None
    if user is None or not user.refresh_token or not verify_token_hash(token, user.refresh_token):
        raise _invalid_token("Token has been revoked.", code="token_revoked")

    claims = {"email": user.email} if user.email else None
    access = jwt.create_access_token(user.id, claims=claims)
    return auth_schema.AccessTokenResponse(
        access_token=access["token"],
        expires_in=get_settings().access_token_expires_min * 60,
    )


@router.post("/logout", response_model=auth_schema.MessageResponse)
async def logout(
    current_user: CurrentUser,
    token: BearerToken,
    session: DBSession,
) -> auth_schema.MessageResponse:
    """Revoke the presented access token and the stored refresh token."""

    ledger = RevocationLedger(session)
    await ledger.revoke(token, current_user.id, expires_at=jwt.expiry_of(jwt.decode_token(token)))
    if current_user.refresh_token:
        await ledger.revoke(current_user.refresh_token, current_user.id)
        current_user.refresh_token = None
    await session.commit()
    logger.bind(user_id=current_user.id).info("user_logged_out")
    return auth_schema.MessageResponse(message="Logged out")
