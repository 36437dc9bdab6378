"""
Forumize API Schemas — Pydantic v2 models for request/response validation.

Wire format is camelCase (what the extension and web app send and read);
Python attributes stay snake_case.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True,
    )


# ═══════════════════════════════════════════════════════════════════════
# Forumize
# ═══════════════════════════════════════════════════════════════════════

class ForumizeRequest(CamelModel):
    video_id: str = Field(..., min_length=1, max_length=2048)
    platform: Optional[str] = Field(None, max_length=32)
    max_results: int = Field(50, ge=1, le=100)
    use_ai: bool = Field(False, alias="useAI")


class ForumizeResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    threads: List[Dict[str, Any]]
    stats: Dict[str, Any]
    platform: str


class ForumyzeRequest(CamelModel):
    video_id: str = Field(..., min_length=1, max_length=2048)


class LiveForumizeRequest(CamelModel):
    video_id: str = Field(..., min_length=1, max_length=2048)
    page_token: Optional[str] = None
    use_ai: bool = Field(True, alias="useAI")


class LiveStatusResponse(CamelModel):
    is_live: bool
    live_chat_id: Optional[str] = None
    video_title: Optional[str] = None
    channel_title: Optional[str] = None
    is_upcoming: bool = False
    scheduled_start_time: Optional[str] = None


# ═══════════════════════════════════════════════════════════════════════
# Forums
# ═══════════════════════════════════════════════════════════════════════

class ForumSaveRequest(CamelModel):
    video_id: str = Field(..., min_length=1, max_length=2048)
    video_title: Optional[str] = ""
    video_channel: Optional[str] = ""
    platform: Optional[str] = Field(None, max_length=32)
    forum_data: Dict[str, Any]


class ForumSaveResponse(CamelModel):
    id: str
    share_token: Optional[str] = None


class ForumSchema(CamelModel):
    id: str
    video_id: str
    video_title: str = ""
    video_channel: str = ""
    platform: str = "youtube"
    forum_data: Optional[Dict[str, Any]] = None
    user_id: Optional[str] = None
    is_public: bool = True
    share_token: Optional[str] = None
    times_accessed: int = 0
    forumyzed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_accessed_at: Optional[datetime] = None


class ShareTokenResponse(CamelModel):
    share_token: str


class ReplyRequest(CamelModel):
    thread_id: str = Field(..., min_length=1, max_length=256)
    text: str = Field(..., min_length=1)
    author: Optional[str] = Field(None, max_length=128)


class AudioSummaryResponse(CamelModel):
    audio_url: str


# ═══════════════════════════════════════════════════════════════════════
# Moderation
# ═══════════════════════════════════════════════════════════════════════

class TimeoutRespondRequest(CamelModel):
    user_id: str = Field(..., min_length=1)
    response: str = Field(..., min_length=1, max_length=2000)


class TimeoutVoteRequest(CamelModel):
    user_id: str = Field(..., min_length=1)
    voter_id: str = Field(..., min_length=1)
    vote_type: Literal["restore", "keep"]


class VoluntaryTimeoutRequest(CamelModel):
    user_id: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1, max_length=128)
    topic: str = Field(..., min_length=1, max_length=500)
    is_paid_user: bool = False


class BotStatsSchema(CamelModel):
    total_tracked_posts: int
    posts_in_30s: int = Field(alias="postsIn30s")
    is_bot: bool
    flagged_as_bot: bool


# ═══════════════════════════════════════════════════════════════════════
# Users
# ═══════════════════════════════════════════════════════════════════════

class UserProfileRequest(CamelModel):
    google_id: str = Field(..., min_length=1, max_length=128)
    email: Optional[str] = Field(None, max_length=320)
    name: Optional[str] = Field(None, max_length=256)
    picture: Optional[str] = Field(None, max_length=1024)


class SubscriptionUpdateRequest(CamelModel):
    tier: Literal["free", "pro", "premium"]


class SubscriptionSchema(CamelModel):
    id: str
    tier: str
    created_at: Optional[datetime] = None


class UserSchema(CamelModel):
    id: str
    google_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None
    subscription_tier: str = "free"
    created_at: Optional[datetime] = None
    subscriptions: List[SubscriptionSchema] = []
