"""
Forumize Workflows

forumize: fetch one page of threads from YouTube or TikTok, classify
  every comment and reply (keyword rules, or one AI batch when
  requested), and report per-category stats.
forumyze: run the full AI pipeline over every comment page and group
  the results into topics, flagging spam authors for timeout.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from forumize.core.config import get_settings
from forumize.core.errors import ValidationError
from forumize.core.metrics import COMMENTS_CLASSIFIED, FORUMIZE_RUNS
from forumize.ml.nlp.ai_categorizer import AICategorizer, ai_categorizer
from forumize.ml.nlp.keyword_classifier import DEFAULT_CATEGORIES, FORUM_CATEGORIES, classify_tree
from forumize.models.models import Platform, as_utc
from forumize.services.forums import thread_tree
from forumize.services.forums.forum_service import ForumService, forum_service
from forumize.services.moderation.timeout_service import TimeoutService, timeout_service
from forumize.services.platforms.detection import detect_platform, extract_youtube_id
from forumize.services.platforms.tiktok_service import TikTokService, tiktok_service
from forumize.services.platforms.youtube_service import YouTubeService, youtube_service

logger = logging.getLogger(__name__)
settings = get_settings()


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_stats(threads: Sequence[Dict[str, Any]], categories: Sequence[str]) -> Dict[str, Any]:
    """Counts and integer percentages per category over the whole reply tree."""
    counts = thread_tree.count_by_category(threads)
    total = sum(counts.values())
    stats: Dict[str, Any] = {"totalComments": total}
    for cat in categories:
        stats[f"{cat}Count"] = counts.get(cat, 0)
    for cat in categories:
        stats[f"{cat}Percentage"] = round_half_up(counts.get(cat, 0) / total * 100) if total else 0
    return stats


def _percentage(part: int, total: int) -> str:
    return f"{(part / total * 100):.1f}" if total else "0.0"


class ForumizeService:
    def __init__(
        self,
        youtube: YouTubeService = None,
        tiktok: TikTokService = None,
        categorizer: AICategorizer = None,
        timeouts: TimeoutService = None,
        forums: ForumService = None,
    ):
        self.youtube = youtube or youtube_service
        self.tiktok = tiktok or tiktok_service
        self.categorizer = categorizer or ai_categorizer
        self.timeouts = timeouts or timeout_service
        self.forums = forums or forum_service

    # ── forumize ─────────────────────────────────────────────────────────

    async def forumize(
        self,
        video_id: str,
        max_results: int = None,
        platform: Optional[str] = None,
        use_ai: bool = False,
    ) -> Dict[str, Any]:
        max_results = max_results or settings.forumize_default_max_results
        resolved = self._resolve_platform(video_id, platform)

        if resolved == Platform.TIKTOK:
            threads = await self.tiktok.fetch_threads(video_id, max_results)
        else:
            threads = await self.youtube.fetch_comment_threads(video_id, max_results)

        if use_ai:
            threads = await self._classify_with_ai(threads)
            categories = FORUM_CATEGORIES
        else:
            threads = classify_tree(threads)
            categories = DEFAULT_CATEGORIES

        mode = "ai" if use_ai else "keyword"
        FORUMIZE_RUNS.labels(platform=resolved.value, mode=mode).inc()
        for category, count in thread_tree.count_by_category(threads).items():
            COMMENTS_CLASSIFIED.labels(category=category or "unknown").inc(count)

        return {
            "threads": threads,
            "stats": compute_stats(threads, categories),
            "platform": resolved.value,
        }

    @staticmethod
    def _resolve_platform(video_id: str, platform: Optional[str]) -> Platform:
        if not platform:
            return detect_platform(video_id)
        try:
            return Platform(platform.lower())
        except ValueError:
            raise ValidationError(f"Unsupported platform: {platform}. Supported platforms: youtube, tiktok")

    async def _classify_with_ai(self, threads: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Classify every node (threads and replies) in one batched pass."""
        threads = classify_tree(threads)
        nodes = thread_tree.flatten(threads)
        if not nodes:
            return threads

        result = await self.categorizer.categorize_in_batches(nodes)
        for node, cls in zip(nodes, result.classifications):
            node["category"] = cls.category
            node["aiCategory"] = cls.category
            if cls.confidence is not None:
                node["aiConfidence"] = cls.confidence
            if cls.sentiment:
                node["aiSentiment"] = cls.sentiment
            if cls.topic:
                node["topic"] = cls.topic
        return threads

    # ── forumyze ─────────────────────────────────────────────────────────

    async def forumyze(self, video_id: str) -> Dict[str, Any]:
        clean_id = extract_youtube_id(video_id)
        logger.info(f"Forumyze: {clean_id}")

        comments = await self.youtube.fetch_all_comments(clean_id)
        forumyzed_at = datetime.now(timezone.utc).isoformat()
        if not comments:
            return {
                "videoId": clean_id,
                "threads": [],
                "topics": [],
                "timeout": [],
                "stats": {"totalComments": 0},
                "forumyzedAt": forumyzed_at,
            }

        logger.info(f"AI categorizing {len(comments)} comments")
        categorized = await self.categorizer.categorize_in_batches(comments, settings.ai_batch_size)

        timeout_entries = await self.timeouts.process_flagged_comments(categorized.spam, reason="Spam")
        threads = self.transform_to_threads(categorized)

        total = len(comments)
        stats = {
            "totalComments": total,
            "topicsFound": len(categorized.topics),
            "spamFiltered": len(categorized.spam),
            "botsDetected": len(categorized.bots),
            "toxicComments": len(categorized.toxic),
            "spamPercentage": _percentage(len(categorized.spam), total),
        }
        FORUMIZE_RUNS.labels(platform=Platform.YOUTUBE.value, mode="forumyze").inc()
        logger.info(f"Forumyze complete for {clean_id}: {stats}")

        return {
            "videoId": clean_id,
            "threads": threads,
            "topics": [self._public_topic(t) for t in categorized.topics],
            "timeout": timeout_entries,
            "stats": stats,
            "forumyzedAt": forumyzed_at,
        }

    @staticmethod
    def _public_topic(topic: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "title": topic["title"],
            "description": topic.get("description", ""),
            "sentiment": topic.get("sentiment", "neutral"),
            "commentIds": [c.get("id") for c in topic.get("comments", [])],
        }

    @staticmethod
    def transform_to_threads(categorized) -> List[Dict[str, Any]]:
        """Topic members first (as genuine), then spam, bot and toxic comments."""
        flagged_ids = {id(c) for c in categorized.spam + categorized.bots + categorized.toxic}
        threads = []
        seen = set()
        for topic in categorized.topics:
            for comment in topic["comments"]:
                if id(comment) in flagged_ids or id(comment) in seen:
                    continue
                seen.add(id(comment))
                threads.append({
                    **comment,
                    "category": "genuine",
                    "topic": topic["title"],
                    "replies": comment.get("replies") or [],
                })
        for bucket, category in ((categorized.spam, "spam"), (categorized.bots, "bot"), (categorized.toxic, "toxic")):
            for comment in bucket:
                threads.append({**comment, "category": category, "replies": comment.get("replies") or []})
        return threads

    # ── cached forumyze ──────────────────────────────────────────────────

    async def forumyze_cached(self, video_id: str, db: AsyncSession) -> Dict[str, Any]:
        """Serve a saved forum for the video when one exists; otherwise run the AI pipeline."""
        clean_id = extract_youtube_id(video_id)
        existing = await self.forums.find_by_video_id(clean_id, db)
        if existing is not None:
            logger.info(f"Returning cached forumyzed data for {clean_id}")
            forumyzed_at = as_utc(existing.forumyzed_at)
            return {
                **(existing.forum_data or {}),
                "cached": True,
                "timesAccessed": existing.times_accessed,
                "originallyForumyzedAt": forumyzed_at.isoformat() if forumyzed_at else None,
            }

        logger.info(f"Running AI processing for {clean_id}")
        data = await self.forumyze(clean_id)
        return {**data, "cached": False}


forumize_service = ForumizeService()
