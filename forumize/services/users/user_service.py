"""
Forumize User Service — signed-in users and their subscription history.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from forumize.core.errors import NotFoundError, ValidationError
from forumize.models.models import Subscription, SubscriptionTier, User, as_utc, utcnow
from forumize.schemas.schemas import SubscriptionSchema, UserSchema

logger = logging.getLogger(__name__)


class UserService:
    async def find_or_create(self, profile: Dict[str, Any], db: AsyncSession) -> User:
        """Look a user up by Google id; create a free-tier user on first sign-in."""
        google_id = profile.get("googleId")
        if not google_id:
            raise ValidationError("googleId is required")

        result = await db.execute(select(User).where(User.google_id == google_id))
        user = result.scalar_one_or_none()
        if user is not None:
            return user

        user = User(
            google_id=google_id,
            email=profile.get("email"),
            name=profile.get("name"),
            picture=profile.get("picture"),
            subscription_tier=SubscriptionTier.FREE,
            created_at=utcnow(),
            subscriptions=[],
        )
        db.add(user)
        await db.flush()
        logger.info(f"Created user {user.id}")
        return user

    async def find_by_id(self, user_id: str, db: AsyncSession) -> Optional[User]:
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def update_subscription(self, user_id: str, tier: str, db: AsyncSession) -> User:
        try:
            new_tier = SubscriptionTier(tier)
        except ValueError:
            raise ValidationError(f"Unknown subscription tier: {tier}")

        user = await self.find_by_id(user_id, db)
        if user is None:
            raise NotFoundError("User not found")

        user.subscription_tier = new_tier
        user.subscriptions.append(Subscription(tier=new_tier, created_at=utcnow()))
        await db.flush()
        logger.info(f"User {user_id} moved to {new_tier.value}")
        return user

    @staticmethod
    def to_schema(user: User) -> UserSchema:
        return UserSchema(
            id=user.id,
            google_id=user.google_id,
            email=user.email,
            name=user.name,
            picture=user.picture,
            subscription_tier=user.subscription_tier.value,
            created_at=as_utc(user.created_at),
            subscriptions=[
                SubscriptionSchema(id=s.id, tier=s.tier.value, created_at=as_utc(s.created_at))
                for s in user.subscriptions
            ],
        )


user_service = UserService()
