"""
Forumize TikTok Service

TikTok has no public comments API. Providers are tried in order:
  1. Apify "tiktok-comments-scraper" actor (APIFY_API_TOKEN)
  2. RapidAPI TikTok scraper (RAPIDAPI_KEY)
  3. Built-in demo comments
A provider error falls through to the demo comments.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from forumize.core.config import get_settings
from forumize.core.errors import ValidationError
from forumize.core.metrics import UPSTREAM_ERRORS
from forumize.services.platforms.detection import extract_tiktok_id

logger = logging.getLogger(__name__)
settings = get_settings()

MOCK_COMMENTS = (
    ("This is hilarious! 😂", "user123"),
    ("Love this content! Keep it up", "fan_account"),
    ("Where can I buy this?", "curious_viewer"),
    ("First! 🎉", "speedster99"),
    ("This is so relatable lol", "everyday_user"),
    ("Can you do a tutorial?", "learner_2024"),
    ("Check out my profile for similar content!!! Link in bio!!!", "spammer123"),
    ("This is fake and stupid", "hater_account"),
    ("❤️❤️❤️", "emoji_lover"),
    ("How did you do that? Amazing!", "impressed_viewer"),
    ("Subscribe to my channel www.example.com", "bot_account"),
    ("This trend needs to stop", "critic_user"),
    ("Tag someone who needs to see this", "social_butterfly"),
    ("Part 2?? Please!", "eager_fan"),
    ("I tried this and it worked!", "success_story"),
    ("Why is everyone doing this?", "confused_user"),
    ("This deserves more views", "supporter_account"),
    ("You are so talented!", "admirer_123"),
    ("Can we collab?", "creator_wannabe"),
    ("I hate this so much", "negative_nancy"),
)


def generate_mock_comments(video_id: str, count: int) -> List[Dict[str, Any]]:
    return [
        {"id": f"tiktok_mock_{video_id}_{i}", "author": author, "text": text, "replies": []}
        for i, (text, author) in enumerate(MOCK_COMMENTS[:max(count, 0)])
    ]


class TikTokService:
    def __init__(
        self,
        apify_token: Optional[str] = None,
        rapidapi_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        apify_wait_seconds: Optional[float] = None,
    ):
        self.apify_token = apify_token if apify_token is not None else settings.apify_api_token
        self.rapidapi_key = rapidapi_key if rapidapi_key is not None else settings.rapidapi_key
        self.apify_wait_seconds = settings.apify_wait_seconds if apify_wait_seconds is None else apify_wait_seconds
        self._transport = transport

    async def fetch_comments(self, video_id: str, max_results: int = 50) -> List[Dict[str, Any]]:
        if self.apify_token:
            return await self._fetch_with_apify(video_id, max_results)
        if self.rapidapi_key:
            return await self._fetch_with_rapidapi(video_id, max_results)

        logger.warning(
            "No TikTok API credentials found, using demo comments. "
            "Set APIFY_API_TOKEN or RAPIDAPI_KEY for real data."
        )
        return generate_mock_comments(video_id, max_results)

    async def fetch_threads(self, video_id_or_url: str, max_results: int = 50) -> List[Dict[str, Any]]:
        """Accepts a TikTok URL or bare id."""
        video_id = video_id_or_url
        if "tiktok.com" in video_id_or_url:
            video_id = extract_tiktok_id(video_id_or_url)
            if not video_id:
                raise ValidationError("Could not extract TikTok video ID from URL")
        return await self.fetch_comments(video_id, max_results)

    async def _fetch_with_apify(self, video_id: str, max_results: int) -> List[Dict[str, Any]]:
        base = f"https://api.apify.com/v2/acts/{settings.apify_actor}/runs"
        headers = {"Authorization": f"Bearer {self.apify_token}"}
        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
                response = await client.post(
                    base,
                    json={
                        "videoUrls": [f"https://www.tiktok.com/@user/video/{video_id}"],
                        "maxComments": max_results,
                    },
                    headers=headers,
                )
                response.raise_for_status()
                run_id = response.json()["data"]["id"]

                # Simplified wait for the actor run to finish
                if self.apify_wait_seconds:
                    await asyncio.sleep(self.apify_wait_seconds)

                results = await client.get(f"{base}/{run_id}/dataset/items", headers=headers)
                results.raise_for_status()
                items = results.json()

            return [
                {
                    "id": item.get("id") or f"tiktok_{i}",
                    "author": item.get("userName") or item.get("uniqueId") or "TikTok User",
                    "text": item.get("text") or item.get("comment") or "",
                    "replies": [],
                }
                for i, item in enumerate(items[:max_results])
            ]
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            UPSTREAM_ERRORS.labels(service="apify").inc()
            logger.error(f"Apify fetch failed for {video_id}: {e}")
            return generate_mock_comments(video_id, max_results)

    async def _fetch_with_rapidapi(self, video_id: str, max_results: int) -> List[Dict[str, Any]]:
        try:
            async with httpx.AsyncClient(timeout=15.0, transport=self._transport) as client:
                response = await client.get(
                    f"https://{settings.rapidapi_host}/comments",
                    params={"video_id": video_id, "count": max_results},
                    headers={"X-RapidAPI-Key": self.rapidapi_key, "X-RapidAPI-Host": settings.rapidapi_host},
                )
                response.raise_for_status()
                data = response.json()

            comments = data.get("comments") or data.get("data") or []
            if isinstance(comments, dict):
                comments = comments.get("comments") or []
            return [
                {
                    "id": c.get("cid") or c.get("id") or f"tiktok_{i}",
                    "author": (c.get("user") or {}).get("nickname")
                              or (c.get("user") or {}).get("unique_id") or "TikTok User",
                    "text": c.get("text") or c.get("comment_text") or "",
                    "replies": [],
                }
                for i, c in enumerate(comments)
            ]
        except (httpx.HTTPError, AttributeError, TypeError, ValueError) as e:
            UPSTREAM_ERRORS.labels(service="rapidapi").inc()
            logger.error(f"RapidAPI fetch failed for {video_id}: {e}")
            return generate_mock_comments(video_id, max_results)


tiktok_service = TikTokService()
