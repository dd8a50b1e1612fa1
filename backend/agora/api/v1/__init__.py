"""API v1 package."""
from fastapi import APIRouter

from agora.api.v1 import auth, users, wallet

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(users.router, prefix="/auth", tags=["users"])
api_router.include_router(wallet.router, prefix="/auth/wallet", tags=["wallet"])

__all__ = ["api_router"]
