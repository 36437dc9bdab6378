"""
Forumize API — User routes.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from forumize.api.deps import get_user_service
from forumize.core.database import get_db
from forumize.core.errors import NotFoundError
from forumize.schemas.schemas import SubscriptionUpdateRequest, UserProfileRequest, UserSchema
from forumize.services.users.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("", response_model=UserSchema)
async def sign_in(
    profile: UserProfileRequest,
    db: AsyncSession = Depends(get_db),
    users: UserService = Depends(get_user_service),
):
    """Find or create the user for a Google profile."""
    user = await users.find_or_create(profile.model_dump(by_alias=True), db)
    return users.to_schema(user)


@router.get("/{user_id}", response_model=UserSchema)
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    users: UserService = Depends(get_user_service),
):
    user = await users.find_by_id(user_id, db)
    if user is None:
        raise NotFoundError("User not found")
    return users.to_schema(user)


@router.put("/{user_id}/subscription", response_model=UserSchema)
async def update_subscription(
    user_id: str,
    request: SubscriptionUpdateRequest,
    db: AsyncSession = Depends(get_db),
    users: UserService = Depends(get_user_service),
):
    user = await users.update_subscription(user_id, request.tier, db)
    return users.to_schema(user)
