"""User endpoints."""
from __future__ import annotations

from fastapi import APIRouter

from agora.core.dependencies import CurrentUser
from agora.schemas.user import UserProfile

router = APIRouter()


@router.get("/me", response_model=UserProfile)
async def read_me(current_user: CurrentUser) -> UserProfile:
    """Return the authenticated user's profile and linked wallets."""

    return UserProfile.model_validate(current_user)
