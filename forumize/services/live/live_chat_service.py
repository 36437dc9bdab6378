"""
Forumize Live Chat Service

One poll = one upstream page of YouTube live chat. Each poll:
  - records every author with the bot detector (bot authors are
    re-categorized as "bot")
  - categorizes the page (Gemini, keyword fallback)
  - merges the page into a per-video message board so clients see a
    rolling window of classified messages across polls

Polling cadence is owned by the client (`pollingIntervalMillis`).
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from forumize.core.config import get_settings
from forumize.ml.nlp.ai_categorizer import AICategorizer, ai_categorizer
from forumize.ml.nlp.keyword_classifier import classify_text
from forumize.services.moderation.bot_detection import BotDetector, bot_detector
from forumize.services.moderation.state_store import UserStateStore
from forumize.services.platforms.detection import extract_youtube_id
from forumize.services.platforms.youtube_service import YouTubeService, youtube_service

logger = logging.getLogger(__name__)
settings = get_settings()


def _percentage(part: int, total: int) -> str:
    return f"{(part / total * 100):.1f}" if total else "0.0"


def merge_board(
    board: List[Dict[str, Any]], messages: List[Dict[str, Any]], limit: int,
) -> List[Dict[str, Any]]:
    """Merge by message id (later copy wins), ordered by publishedAt, newest `limit` kept."""
    by_id: Dict[str, Dict[str, Any]] = {}
    for message in list(board) + list(messages):
        by_id[message["id"]] = message
    merged = sorted(by_id.values(), key=lambda m: m.get("publishedAt") or "")
    return merged[-limit:] if limit else merged


class LiveChatService:
    def __init__(
        self,
        youtube: YouTubeService = None,
        categorizer: AICategorizer = None,
        detector: BotDetector = None,
        boards: Optional[UserStateStore] = None,
        board_limit: int = None,
    ):
        self.youtube = youtube or youtube_service
        self.categorizer = categorizer or ai_categorizer
        self.detector = detector or bot_detector
        if boards is None:
            boards = UserStateStore(default_ttl=settings.live_board_ttl_seconds)
        self.boards = boards
        self.board_limit = board_limit or settings.live_board_max_messages

    async def check_if_live(self, video_id: str) -> Dict[str, Any]:
        return await self.youtube.check_if_live(extract_youtube_id(video_id))

    async def process_live_chat(
        self, video_id: str, page_token: Optional[str] = None, use_ai: bool = True,
    ) -> Dict[str, Any]:
        clean_id = extract_youtube_id(video_id)
        status = await self.youtube.check_if_live(clean_id)
        if not status["isLive"]:
            return {
                "isLive": False,
                "error": "Stream is scheduled but not live yet" if status.get("isUpcoming")
                else "Video is not currently live",
                "scheduledStartTime": status.get("scheduledStartTime"),
            }

        live_chat_id = status["liveChatId"]
        page = await self.youtube.fetch_live_chat_messages(live_chat_id, page_token)
        comments = [self._to_comment(m) for m in page["messages"]]

        bot_authors = set()
        for comment in comments:
            author_id = comment.get("authorId")
            if not author_id:
                continue
            check = self.detector.record_and_check(author_id, comment["id"])
            if check.is_bot or check.was_flagged_as_bot:
                bot_authors.add(author_id)

        if use_ai:
            categorized = await self.categorizer.categorize_in_batches(comments)
        else:
            categorized = self.categorizer.keyword_fallback(comments)

        for comment, cls in zip(comments, categorized.classifications):
            comment["category"] = cls.category
            if cls.topic:
                comment["topic"] = cls.topic

        # Rate-based bot flags override the text classifier
        if bot_authors:
            self._rebucket_bots(categorized, bot_authors)

        board = merge_board(self.boards.get(clean_id, []), comments, self.board_limit)
        self.boards.set(clean_id, board)

        total = len(comments)
        stats = {
            "totalComments": total,
            "topicsFound": len(categorized.topics),
            "spamFiltered": len(categorized.spam),
            "botsDetected": len(categorized.bots),
            "toxicComments": len(categorized.toxic),
            "genuineComments": len(categorized.genuine),
            "spamPercentage": _percentage(len(categorized.spam), total),
            "botPercentage": _percentage(len(categorized.bots), total),
            "genuinePercentage": _percentage(len(categorized.genuine), total),
        }
        logger.info(f"Live chat {clean_id}: {total} messages, {len(bot_authors)} bot authors")

        return {
            "isLive": True,
            "liveChatId": live_chat_id,
            "topics": [{k: v for k, v in t.items() if k != "comments"} for t in categorized.topics],
            "spam": categorized.spam,
            "bots": categorized.bots,
            "toxic": categorized.toxic,
            "genuine": categorized.genuine,
            "stats": stats,
            "nextPageToken": page.get("nextPageToken"),
            "pollingIntervalMillis": page.get("pollingIntervalMillis"),
            "videoTitle": status.get("videoTitle"),
            "channelTitle": status.get("channelTitle"),
            "messageBoard": board,
        }

    def get_board(self, video_id: str) -> List[Dict[str, Any]]:
        return self.boards.get(extract_youtube_id(video_id), [])

    @staticmethod
    def _to_comment(message: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": message["id"],
            "text": message.get("text", ""),
            "author": message.get("author", "Unknown"),
            "authorId": message.get("authorChannelId"),
            "publishedAt": message.get("publishedAt"),
            "category": classify_text(message.get("text", "")),
            "replies": [],
        }

    @staticmethod
    def _rebucket_bots(categorized, bot_authors) -> None:
        for bucket in (categorized.spam, categorized.toxic, categorized.genuine):
            moved = [c for c in bucket if c.get("authorId") in bot_authors]
            for comment in moved:
                bucket.remove(comment)
                comment["category"] = "bot"
                categorized.bots.append(comment)


live_chat_service = LiveChatService()
