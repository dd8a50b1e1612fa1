"""Wallet challenge/response authentication endpoints."""
from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from agora.core.dependencies import CurrentUser, DBSession
from agora.core.exceptions import IdentityConflict, WalletAuthError
from agora.core.logging import mask_address, record_validation_error
from agora.core.rate_limiter import SlidingWindowRateLimiter, get_wallet_connect_rate_limiter
from agora.schemas import wallet as wallet_schema
from agora.services.identity import is_wallet_address
from agora.services.wallet_auth import WalletAuthService

router = APIRouter()

ConnectLimiter = Annotated[SlidingWindowRateLimiter, Depends(get_wallet_connect_rate_limiter)]


def get_wallet_auth_service(session: DBSession) -> WalletAuthService:
    return WalletAuthService(session)


WalletAuth = Annotated[WalletAuthService, Depends(get_wallet_auth_service)]


def _require_address(request: Request, raw: str) -> str:
    address = raw.strip()
    if not is_wallet_address(address):
        record_validation_error(request, "invalid_address", {"address": mask_address(address)})
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": {"code": "invalid_address", "message": "Wallet address must be hex encoded."}},
        )
    return address


def _auth_error(exc: WalletAuthError) -> HTTPException:
    code = status.HTTP_409_CONFLICT if isinstance(exc, IdentityConflict) else status.HTTP_401_UNAUTHORIZED
    return HTTPException(
        status_code=code,
        detail={"error": {"code": exc.code, "message": exc.message}},
    )


@router.post(
    "/request-nonce",
    response_model=wallet_schema.NonceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_nonce(
    payload: wallet_schema.NonceRequest,
    request: Request,
    service: WalletAuth,
) -> wallet_schema.NonceResponse:
    """Issue a login challenge for the wallet address."""

    address = _require_address(request, payload.address)
    nonce = await service.request_nonce(address)
    return wallet_schema.NonceResponse(nonce=nonce)


@router.post(
    "/connect",
    response_model=wallet_schema.ConnectResponse,
    status_code=status.HTTP_201_CREATED,
)
async def connect(
    payload: wallet_schema.ConnectRequest,
    request: Request,
    service: WalletAuth,
    limiter: ConnectLimiter,
) -> wallet_schema.ConnectResponse:
    """Exchange a signed nonce for an access token."""

    address = _require_address(request, payload.address)
    allowed, retry_after = await limiter.consume(address)
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": {
                    "code": "too_many_attempts",
                    "message": "Too many wallet login attempts. Please try again later.",
                    "retry_after": retry_after,
                }
            },
            headers={"Retry-After": str(int(retry_after or 0) + 1)},
        )

    try:
        login = await service.connect_wallet(address, payload.signature)
    except WalletAuthError as exc:
        raise _auth_error(exc) from exc

    await limiter.reset(address)
    return wallet_schema.ConnectResponse(token=login.token)


@router.post("/disconnect", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def disconnect(
    current_user: CurrentUser,
    service: WalletAuth,
    payload: wallet_schema.DisconnectRequest | None = None,
) -> Response:
    """Unlink a wallet (or demote the primary one) and end refresh sessions."""

    address = payload.address if payload else None
    await service.disconnect(current_user.id, address)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/status", response_model=wallet_schema.WalletStatusResponse)
async def wallet_status(current_user: CurrentUser, service: WalletAuth) -> wallet_schema.WalletStatusResponse:
    """Report whether the caller has any linked wallet addresses."""

    result = await service.get_status(current_user.id)
    return wallet_schema.WalletStatusResponse(
        data=wallet_schema.WalletStatus(connected=result.connected, addresses=result.addresses)
    )
