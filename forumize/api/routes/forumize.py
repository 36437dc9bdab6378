"""
Forumize API — comment fetching and classification.
"""
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from forumize.api.deps import get_forumize_service, get_live_chat_service
from forumize.core.database import get_db
from forumize.schemas.schemas import (
    ForumizeRequest,
    ForumizeResponse,
    ForumyzeRequest,
    LiveForumizeRequest,
    LiveStatusResponse,
)
from forumize.services.forums.forumize_service import ForumizeService
from forumize.services.live.live_chat_service import LiveChatService

router = APIRouter(tags=["Forumize"])


@router.post("/forumize", response_model=ForumizeResponse)
async def forumize(
    request: ForumizeRequest,
    service: ForumizeService = Depends(get_forumize_service),
):
    """Fetch one page of comments and classify every comment and reply."""
    return await service.forumize(
        request.video_id,
        max_results=request.max_results,
        platform=request.platform,
        use_ai=request.use_ai,
    )


@router.post("/forumyze")
async def forumyze(
    request: ForumyzeRequest,
    db: AsyncSession = Depends(get_db),
    service: ForumizeService = Depends(get_forumize_service),
) -> Dict[str, Any]:
    """AI forum for a video; served from the saved forum when one exists."""
    return await service.forumyze_cached(request.video_id, db)


@router.post("/forumize/live")
async def forumize_live(
    request: LiveForumizeRequest,
    service: LiveChatService = Depends(get_live_chat_service),
) -> Dict[str, Any]:
    return await service.process_live_chat(request.video_id, request.page_token, use_ai=request.use_ai)


@router.get("/video/{video_id}/live-status", response_model=LiveStatusResponse)
async def live_status(
    video_id: str,
    service: LiveChatService = Depends(get_live_chat_service),
):
    status = await service.check_if_live(video_id)
    return LiveStatusResponse(
        is_live=status["isLive"],
        live_chat_id=status.get("liveChatId"),
        video_title=status.get("videoTitle"),
        channel_title=status.get("channelTitle"),
        is_upcoming=status.get("isUpcoming", False),
        scheduled_start_time=status.get("scheduledStartTime"),
    )
