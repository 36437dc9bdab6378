"""
Forumize Forum Service — persistence for forumized videos.

Every read-modify-write runs inside the caller's session/transaction;
rows being modified are selected FOR UPDATE where the backend supports it.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from forumize.core.errors import NotFoundError
from forumize.core.security import sanitize_text
from forumize.ml.nlp.keyword_classifier import classify_text
from forumize.models.models import Forum, Platform, as_utc, utcnow
from forumize.schemas.schemas import ForumSchema
from forumize.services.forums import thread_tree
from forumize.services.platforms.detection import detect_platform

logger = logging.getLogger(__name__)


def new_share_token() -> str:
    return uuid.uuid4().hex[:12]


def _platform(value: Optional[str], video_id: str) -> Platform:
    try:
        return Platform(value) if value else detect_platform(video_id)
    except ValueError:
        return detect_platform(video_id)


class ForumService:
    """CRUD and reply handling for Forum records."""

    async def create(
        self,
        db: AsyncSession,
        video_id: str,
        forum_data: Dict[str, Any],
        video_title: Optional[str] = "",
        video_channel: Optional[str] = "",
        platform: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Forum:
        now = utcnow()
        forum = Forum(
            id=str(uuid.uuid4()),
            video_id=video_id,
            video_title=sanitize_text(video_title),
            video_channel=sanitize_text(video_channel),
            platform=_platform(platform or (forum_data or {}).get("platform"), video_id),
            forum_data=forum_data,
            user_id=user_id,
            is_public=True,
            share_token=None,
            times_accessed=0,
            forumyzed_at=now,
            created_at=now,
            updated_at=now,
        )
        db.add(forum)
        await db.flush()
        logger.info(f"Saved forum {forum.id} for video {video_id}")
        return forum

    async def find_by_video_id(self, video_id: str, db: AsyncSession) -> Optional[Forum]:
        """Earliest saved forum for a video; counts the access."""
        result = await db.execute(
            select(Forum).where(Forum.video_id == video_id)
            .order_by(Forum.created_at).limit(1).with_for_update()
        )
        forum = result.scalar_one_or_none()
        if forum is not None:
            forum.times_accessed = (forum.times_accessed or 0) + 1
            forum.last_accessed_at = utcnow()
            await db.flush()
            logger.info(f"Video {video_id} already forumyzed (accessed {forum.times_accessed} times)")
        return forum

    async def find_by_user(self, user_id: Optional[str], db: AsyncSession) -> List[Forum]:
        condition = Forum.user_id.is_(None) if user_id is None else Forum.user_id == user_id
        result = await db.execute(select(Forum).where(condition).order_by(Forum.created_at.desc()))
        return list(result.scalars().all())

    async def find_by_id(self, forum_id: str, db: AsyncSession, for_update: bool = False) -> Optional[Forum]:
        query = select(Forum).where(Forum.id == forum_id)
        if for_update:
            query = query.with_for_update()
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def find_by_share_token(self, token: str, db: AsyncSession) -> Optional[Forum]:
        result = await db.execute(select(Forum).where(Forum.share_token == token))
        return result.scalar_one_or_none()

    async def generate_share_token(self, forum_id: str, db: AsyncSession) -> Optional[str]:
        """Issue a fresh token, replacing any previous one."""
        forum = await self.find_by_id(forum_id, db, for_update=True)
        if forum is None:
            return None
        forum.share_token = new_share_token()
        forum.is_public = True
        forum.updated_at = utcnow()
        await db.flush()
        return forum.share_token

    async def add_reply(
        self, forum_id: str, thread_id: str, reply: Dict[str, Any], db: AsyncSession,
    ) -> Forum:
        """Append `reply` under the comment `thread_id` (searched at any depth)."""
        forum = await self.find_by_id(forum_id, db, for_update=True)
        if forum is None:
            raise NotFoundError("Forum not found")

        data = forum.forum_data or {}
        threads = thread_tree.append_reply(data.get("threads") or [], thread_id, reply)
        if threads is None:
            raise NotFoundError("Thread not found")

        # Reassign so the JSON column registers the change
        forum.forum_data = {**data, "threads": threads}
        forum.updated_at = utcnow()
        await db.flush()
        return forum

    @staticmethod
    def build_reply(text: str, author: Optional[str], user_id: Optional[str], max_length: int = None) -> Dict[str, Any]:
        text = sanitize_text(text, max_length)
        return {
            "id": str(uuid.uuid4()),
            "author": sanitize_text(author, 128) or "Anonymous",
            "authorId": user_id,
            "text": text,
            "category": classify_text(text),
            "likeCount": 0,
            "publishedAt": utcnow().isoformat(),
            "replies": [],
        }

    @staticmethod
    def to_schema(forum: Forum) -> ForumSchema:
        return ForumSchema(
            id=forum.id,
            video_id=forum.video_id,
            video_title=forum.video_title or "",
            video_channel=forum.video_channel or "",
            platform=forum.platform.value if forum.platform else Platform.YOUTUBE.value,
            forum_data=forum.forum_data,
            user_id=forum.user_id,
            is_public=forum.is_public,
            share_token=forum.share_token,
            times_accessed=forum.times_accessed or 0,
            forumyzed_at=as_utc(forum.forumyzed_at),
            created_at=as_utc(forum.created_at),
            updated_at=as_utc(forum.updated_at),
            last_accessed_at=as_utc(forum.last_accessed_at),
        )


forum_service = ForumService()
