"""
Shared route dependencies.

Services are module-level singletons; routes receive them through these
getters so they can be swapped with `app.dependency_overrides`.
"""
from __future__ import annotations

from typing import Optional

from fastapi import Header

from forumize.services.forums.forum_service import ForumService, forum_service
from forumize.services.forums.forumize_service import ForumizeService, forumize_service
from forumize.services.live.live_chat_service import LiveChatService, live_chat_service
from forumize.services.moderation.bot_detection import BotDetector, bot_detector
from forumize.services.moderation.timeout_service import TimeoutService, timeout_service
from forumize.services.users.user_service import UserService, user_service


def get_forum_service() -> ForumService:
    return forum_service


def get_forumize_service() -> ForumizeService:
    return forumize_service


def get_live_chat_service() -> LiveChatService:
    return live_chat_service


def get_bot_detector() -> BotDetector:
    return bot_detector


def get_timeout_service() -> TimeoutService:
    return timeout_service


def get_user_service() -> UserService:
    return user_service


async def get_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    """Caller identity from the `X-User-Id` header (None when anonymous)."""
    return x_user_id.strip() if x_user_id and x_user_id.strip() else None
