"""
Forumize API — Bot detection routes.
"""
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from forumize.api.deps import get_bot_detector
from forumize.schemas.schemas import BotStatsSchema
from forumize.services.moderation.bot_detection import BotDetector

router = APIRouter(prefix="/moderation", tags=["Moderation"])


@router.get("/bots/{user_id}", response_model=BotStatsSchema)
async def bot_stats(user_id: str, detector: BotDetector = Depends(get_bot_detector)):
    stats = detector.get_user_stats(user_id)
    return BotStatsSchema(
        total_tracked_posts=stats["totalTrackedPosts"],
        posts_in_30s=stats["postsIn30s"],
        is_bot=stats["isBot"],
        flagged_as_bot=stats["flaggedAsBot"],
    )


@router.post("/bots/{user_id}/unblock")
async def unblock_bot(user_id: str, detector: BotDetector = Depends(get_bot_detector)) -> Dict[str, Any]:
    detector.unblock_user(user_id)
    return {"userId": user_id, "flaggedAsBot": False}
