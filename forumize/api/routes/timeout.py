"""
Forumize API — TIMEOUT routes.

Community review of flagged users: list, inspect, respond, vote, and
voluntary timeouts for paid users.
"""
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query

from forumize.api.deps import get_timeout_service
from forumize.core.errors import NotFoundError
from forumize.schemas.schemas import (
    TimeoutRespondRequest,
    TimeoutVoteRequest,
    VoluntaryTimeoutRequest,
)
from forumize.services.moderation.timeout_service import TimeoutService

router = APIRouter(prefix="/timeout", tags=["Timeout"])


@router.get("/users")
async def list_timeout_users(
    status: str = Query("pending", pattern="^(pending|restored|suspended|voluntary|all)$"),
    service: TimeoutService = Depends(get_timeout_service),
) -> Dict[str, Any]:
    return {"users": [e.to_dict() for e in service.get_timeout_users(status)]}


@router.get("/user/{user_id}")
async def get_timeout_user(
    user_id: str,
    service: TimeoutService = Depends(get_timeout_service),
) -> Dict[str, Any]:
    entry = service.get_timeout_entry(user_id)
    if entry is None:
        raise NotFoundError("User not in timeout")
    return entry.to_dict()


@router.post("/respond")
async def respond_to_timeout(
    request: TimeoutRespondRequest,
    service: TimeoutService = Depends(get_timeout_service),
) -> Dict[str, Any]:
    entry = service.submit_timeout_response(request.user_id, request.response)
    return entry.to_dict()


@router.post("/vote")
async def vote_on_timeout(
    request: TimeoutVoteRequest,
    service: TimeoutService = Depends(get_timeout_service),
) -> Dict[str, Any]:
    entry = service.vote_on_timeout_user(request.user_id, request.voter_id, request.vote_type)
    return entry.to_dict()


@router.post("/voluntary")
async def voluntary_timeout(
    request: VoluntaryTimeoutRequest,
    service: TimeoutService = Depends(get_timeout_service),
) -> Dict[str, Any]:
    entry = await service.voluntary_timeout(
        request.user_id, request.username, request.topic, request.is_paid_user,
    )
    return entry.to_dict()
