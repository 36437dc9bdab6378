"""
Forumize API — Forum routes.

Saved forums, share links, replies and the audio summary.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from forumize.api.deps import (
    get_bot_detector,
    get_forum_service,
    get_timeout_service,
    get_user_id,
)
from forumize.core.config import get_settings
from forumize.core.database import get_db
from forumize.core.errors import NotFoundError, PermissionDeniedError, RateLimitedError
from forumize.schemas.schemas import (
    AudioSummaryResponse,
    ForumSaveRequest,
    ForumSaveResponse,
    ForumSchema,
    ReplyRequest,
    ShareTokenResponse,
)
from forumize.services.audio.audio_service import generate_audio_summary
from forumize.services.forums.forum_service import ForumService
from forumize.services.moderation.bot_detection import BotDetector
from forumize.services.moderation.timeout_service import TimeoutService

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter(prefix="/forum", tags=["Forums"])


@router.post("/save", response_model=ForumSaveResponse)
async def save_forum(
    request: ForumSaveRequest,
    user_id: Optional[str] = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    forums: ForumService = Depends(get_forum_service),
):
    forum = await forums.create(
        db,
        video_id=request.video_id,
        forum_data=request.forum_data,
        video_title=request.video_title,
        video_channel=request.video_channel,
        platform=request.platform,
        user_id=user_id,
    )
    return ForumSaveResponse(id=forum.id, share_token=forum.share_token)


@router.get("/library", response_model=List[ForumSchema])
async def forum_library(
    user_id: Optional[str] = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    forums: ForumService = Depends(get_forum_service),
):
    """Forums saved by the caller (anonymous saves when no X-User-Id)."""
    return [forums.to_schema(f) for f in await forums.find_by_user(user_id, db)]


@router.get("/share/{token}", response_model=ForumSchema)
async def get_shared_forum(
    token: str,
    db: AsyncSession = Depends(get_db),
    forums: ForumService = Depends(get_forum_service),
):
    forum = await forums.find_by_share_token(token, db)
    if forum is None:
        raise NotFoundError("Forum not found")
    return forums.to_schema(forum)


@router.get("/{forum_id}", response_model=ForumSchema)
async def get_forum(
    forum_id: str,
    db: AsyncSession = Depends(get_db),
    forums: ForumService = Depends(get_forum_service),
):
    forum = await forums.find_by_id(forum_id, db)
    if forum is None:
        raise NotFoundError("Forum not found")
    return forums.to_schema(forum)


@router.post("/{forum_id}/share", response_model=ShareTokenResponse)
async def share_forum(
    forum_id: str,
    db: AsyncSession = Depends(get_db),
    forums: ForumService = Depends(get_forum_service),
):
    """Issue a new share token; any previous token stops working."""
    token = await forums.generate_share_token(forum_id, db)
    if token is None:
        raise NotFoundError("Forum not found")
    return ShareTokenResponse(share_token=token)


@router.post("/{forum_id}/reply", response_model=ForumSchema)
async def reply_to_thread(
    forum_id: str,
    request: ReplyRequest,
    user_id: Optional[str] = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    forums: ForumService = Depends(get_forum_service),
    detector: BotDetector = Depends(get_bot_detector),
    timeouts: TimeoutService = Depends(get_timeout_service),
):
    """Append a reply under any comment in the forum's thread tree."""
    if user_id:
        if timeouts.is_suspended(user_id):
            raise PermissionDeniedError("User is suspended")
        check = detector.detect_bot(user_id)
        if check.is_bot:
            logger.warning(f"Reply from {user_id} rejected: {check.post_count_in_30s} posts in window")
            raise RateLimitedError("Posting too fast, account flagged as bot")

    reply = forums.build_reply(request.text, request.author, user_id, settings.reply_max_length)
    forum = await forums.add_reply(forum_id, request.thread_id, reply, db)

    # Only replies that landed count towards the posting rate
    if user_id:
        detector.record_and_check(user_id, request.thread_id)
    return forums.to_schema(forum)


@router.get("/{forum_id}/audio", response_model=AudioSummaryResponse)
async def forum_audio(
    forum_id: str,
    db: AsyncSession = Depends(get_db),
    forums: ForumService = Depends(get_forum_service),
):
    forum = await forums.find_by_id(forum_id, db)
    if forum is None:
        raise NotFoundError("Forum not found")
    threads = (forum.forum_data or {}).get("threads") or []
    return AudioSummaryResponse(audio_url=await generate_audio_summary(threads))
