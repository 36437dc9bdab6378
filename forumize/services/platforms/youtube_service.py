"""
Forumize YouTube Service

Wraps the YouTube Data API v3 endpoints the app needs:
  - commentThreads (single page or paged "fetch everything")
  - videos (title/channel, live broadcast status)
  - liveChat/messages

Without an API key, comment threads can optionally be pulled with
yt-dlp's comment extractor instead (`YOUTUBE_YTDLP_FALLBACK=true`).
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from forumize.core.config import get_settings
from forumize.core.errors import ConfigurationError, UpstreamServiceError
from forumize.core.metrics import UPSTREAM_ERRORS
from forumize.services.platforms.detection import extract_youtube_id

logger = logging.getLogger(__name__)
settings = get_settings()


class YouTubeService:
    def __init__(
        self,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        ytdlp_fallback: Optional[bool] = None,
        page_delay: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.youtube_api_key
        self.ytdlp_fallback = settings.youtube_ytdlp_fallback if ytdlp_fallback is None else ytdlp_fallback
        self.page_delay = settings.youtube_page_delay if page_delay is None else page_delay
        self._transport = transport

    # ── HTTP ─────────────────────────────────────────────────────────────

    def _require_key(self) -> str:
        if not self.api_key:
            raise ConfigurationError("YOUTUBE_API_KEY is not set in environment")
        return self.api_key

    async def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        params = {**params, "key": self._require_key()}
        url = f"{settings.youtube_api_base}/{path}"
        try:
            async with httpx.AsyncClient(
                timeout=settings.youtube_request_timeout, transport=self._transport,
            ) as client:
                response = await client.get(url, params=params)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            UPSTREAM_ERRORS.labels(service="youtube").inc()
            raise UpstreamServiceError(f"YouTube API error: {self._error_reason(e.response)}") from e
        except httpx.HTTPError as e:
            UPSTREAM_ERRORS.labels(service="youtube").inc()
            raise UpstreamServiceError(f"YouTube API unreachable: {e}") from e

    @staticmethod
    def _error_reason(response: httpx.Response) -> str:
        try:
            error = response.json().get("error", {})
            return error.get("message") or f"HTTP {response.status_code}"
        except ValueError:
            return f"HTTP {response.status_code}"

    # ── Comment threads ──────────────────────────────────────────────────

    async def fetch_comment_threads(self, video_id: str, max_results: int = 50) -> List[Dict[str, Any]]:
        """Top-level threads with their inline replies (one API page)."""
        clean_id = extract_youtube_id(video_id)
        if not self.api_key and self.ytdlp_fallback:
            return await self.fetch_with_ytdlp(clean_id, max_results)

        data = await self._get("commentThreads", {
            "part": "snippet,replies",
            "videoId": clean_id,
            "maxResults": max_results,
        })
        return [self._thread_from_item(item) for item in data.get("items", [])]

    async def fetch_all_comments(self, video_id: str, max_pages: int = None) -> List[Dict[str, Any]]:
        """
        Page through every comment thread (100 per page, relevance order).
        A failing page ends the walk; what was fetched so far is returned.
        """
        max_pages = max_pages or settings.youtube_max_pages
        clean_id = extract_youtube_id(video_id)
        if not self.api_key and self.ytdlp_fallback:
            return await self.fetch_with_ytdlp(clean_id, max_pages * 100)
        self._require_key()

        all_comments: List[Dict[str, Any]] = []
        page_token: Optional[str] = None
        page_count = 0

        logger.info(f"Fetching comments for video {clean_id}")
        while True:
            params = {"part": "snippet,replies", "videoId": clean_id, "maxResults": 100, "order": "relevance"}
            if page_token:
                params["pageToken"] = page_token
            try:
                data = await self._get("commentThreads", params)
            except UpstreamServiceError as e:
                logger.error(f"Error on page {page_count + 1} for {clean_id}: {e.message}")
                break

            items = data.get("items", [])
            all_comments.extend(self._thread_from_item(item) for item in items)
            page_token = data.get("nextPageToken")
            page_count += 1
            logger.debug(f"Page {page_count}: {len(items)} threads (total {len(all_comments)})")

            if not page_token or page_count >= max_pages:
                break
            if self.page_delay:
                await asyncio.sleep(self.page_delay)

        logger.info(f"Fetched {len(all_comments)} threads for {clean_id} in {page_count} pages")
        return all_comments

    @staticmethod
    def _thread_from_item(item: Dict[str, Any]) -> Dict[str, Any]:
        top = item["snippet"]["topLevelComment"]
        comment = YouTubeService._comment_from_snippet(top["id"], top["snippet"])
        replies = (item.get("replies") or {}).get("comments") or []
        comment["replies"] = [
            {
                **YouTubeService._comment_from_snippet(r["id"], r["snippet"]),
                "isReply": True,
                "parentId": top["id"],
            }
            for r in replies
        ]
        return comment

    @staticmethod
    def _comment_from_snippet(comment_id: str, snippet: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": comment_id,
            "author": snippet.get("authorDisplayName", "Unknown"),
            "authorId": (snippet.get("authorChannelId") or {}).get("value"),
            "text": snippet.get("textOriginal") or snippet.get("textDisplay") or "",
            "likeCount": snippet.get("likeCount") or 0,
            "publishedAt": snippet.get("publishedAt"),
            "replies": [],
        }

    # ── Video metadata / live ────────────────────────────────────────────

    async def get_video_details(self, video_id: str) -> Optional[Dict[str, Any]]:
        data = await self._get("videos", {"part": "snippet", "id": extract_youtube_id(video_id)})
        items = data.get("items") or []
        if not items:
            return None
        snippet = items[0]["snippet"]
        return {"title": snippet.get("title", ""), "channelTitle": snippet.get("channelTitle", "")}

    async def check_if_live(self, video_id: str) -> Dict[str, Any]:
        data = await self._get("videos", {
            "part": "liveStreamingDetails,snippet",
            "id": extract_youtube_id(video_id),
        })
        items = data.get("items") or []
        if not items:
            return {"isLive": False, "liveChatId": None, "videoTitle": None, "channelTitle": None,
                    "isUpcoming": False, "scheduledStartTime": None}

        video = items[0]
        snippet = video.get("snippet", {})
        live = video.get("liveStreamingDetails") or {}
        broadcast = snippet.get("liveBroadcastContent")
        return {
            "isLive": broadcast == "live",
            "liveChatId": live.get("activeLiveChatId"),
            "videoTitle": snippet.get("title"),
            "channelTitle": snippet.get("channelTitle"),
            "isUpcoming": broadcast == "upcoming",
            "scheduledStartTime": live.get("scheduledStartTime"),
        }

    async def fetch_live_chat_messages(self, live_chat_id: str, page_token: Optional[str] = None) -> Dict[str, Any]:
        params = {
            "liveChatId": live_chat_id,
            "part": "snippet,authorDetails",
            "maxResults": settings.live_chat_page_size,
        }
        if page_token:
            params["pageToken"] = page_token
        data = await self._get("liveChat/messages", params)

        messages = []
        for item in data.get("items", []):
            snippet = item.get("snippet", {})
            author = item.get("authorDetails", {})
            messages.append({
                "id": item["id"],
                "author": author.get("displayName", "Unknown"),
                "authorChannelId": author.get("channelId"),
                "text": snippet.get("displayMessage")
                        or (snippet.get("textMessageDetails") or {}).get("messageText", ""),
                "publishedAt": snippet.get("publishedAt"),
                "type": snippet.get("type"),
                "isChatOwner": author.get("isChatOwner", False),
                "isChatModerator": author.get("isChatModerator", False),
                "isChatSponsor": author.get("isChatSponsor", False),
                "profileImageUrl": author.get("profileImageUrl"),
            })

        return {
            "messages": messages,
            "nextPageToken": data.get("nextPageToken"),
            "pollingIntervalMillis": data.get("pollingIntervalMillis") or 5000,
        }

    # ── yt-dlp fallback ──────────────────────────────────────────────────

    async def fetch_with_ytdlp(self, video_id: str, max_comments: int) -> List[Dict[str, Any]]:
        """Extract comments with yt-dlp and rebuild the thread tree."""
        opts = {
            "quiet": True,
            "no_warnings": True,
            "skip_download": True,
            "getcomments": True,
            "extractor_args": {
                "youtube": {
                    "comment_sort": ["top"],
                    "max_comments": [str(max_comments), str(max_comments), "all", "all"],
                }
            },
        }
        loop = asyncio.get_running_loop()
        info = await loop.run_in_executor(
            None, self._extract_with_ytdlp, f"https://www.youtube.com/watch?v={video_id}", opts,
        )
        if not info:
            raise UpstreamServiceError(f"yt-dlp could not extract comments for {video_id}")
        return build_threads_from_flat(info.get("comments") or [])

    @staticmethod
    def _extract_with_ytdlp(url: str, opts: dict) -> Optional[dict]:
        import yt_dlp
        with yt_dlp.YoutubeDL(opts) as ydl:
            try:
                return ydl.extract_info(url, download=False)
            except Exception as e:
                logger.error(f"yt-dlp comment extraction failed: {e}")
                return None


def build_threads_from_flat(raw_comments: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    yt-dlp returns a flat list where replies point at their parent via
    `parent` ("root" for top-level). Rebuild the nested shape.
    """
    nodes: Dict[str, Dict[str, Any]] = {}
    order: List[tuple] = []

    for c in raw_comments:
        cid = str(c.get("id") or "")
        if not cid or not (c.get("text") or "").strip():
            continue
        ts = c.get("timestamp")
        nodes[cid] = {
            "id": cid,
            "author": c.get("author") or "Unknown",
            "authorId": c.get("author_id"),
            "text": c.get("text", ""),
            "likeCount": c.get("like_count") or 0,
            "publishedAt": datetime.fromtimestamp(ts, tz=timezone.utc).isoformat() if isinstance(ts, (int, float)) else None,
            "replies": [],
        }
        order.append((cid, c.get("parent") or "root"))

    roots = []
    for cid, parent in order:
        node = nodes[cid]
        if parent != "root" and parent in nodes:
            node["isReply"] = True
            node["parentId"] = parent
            nodes[parent]["replies"].append(node)
        else:
            roots.append(node)
    return roots


youtube_service = YouTubeService()
