"""
Forumize AI Categorizer

Sends numbered comments to Gemini and maps the answer back onto the
comment objects:
  - discussion topics (title, description, sentiment, member comments)
  - per-comment category in the 7-category forum schema, with
    confidence and sentiment
  - spam / bot / toxic buckets; everything else is "genuine"

Any failure (no key, HTTP error, unparsable JSON) degrades to keyword
classification so callers always get a complete result.
"""
from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from forumize.core.config import get_settings
from forumize.core.errors import ForumizeError
from forumize.core.metrics import AI_FALLBACKS
from forumize.ml.llm.gemini_client import GeminiClient, extract_json, gemini_client
from forumize.ml.nlp.keyword_classifier import FORUM_CATEGORIES, classify_text

logger = logging.getLogger(__name__)
settings = get_settings()

SENTIMENTS = ("positive", "neutral", "negative")
FLAGGED = {"spam": "spam", "bots": "bot", "toxic": "toxic"}


@dataclass
class CommentClassification:
    category: str
    confidence: Optional[float] = None
    sentiment: Optional[str] = None
    topic: Optional[str] = None


@dataclass
class CategorizationResult:
    topics: List[Dict[str, Any]] = field(default_factory=list)
    spam: List[Dict[str, Any]] = field(default_factory=list)
    bots: List[Dict[str, Any]] = field(default_factory=list)
    toxic: List[Dict[str, Any]] = field(default_factory=list)
    genuine: List[Dict[str, Any]] = field(default_factory=list)
    # Aligned index-for-index with the input comments
    classifications: List[CommentClassification] = field(default_factory=list)
    used_ai: bool = False

    def extend(self, other: "CategorizationResult") -> None:
        self.topics.extend(other.topics)
        self.spam.extend(other.spam)
        self.bots.extend(other.bots)
        self.toxic.extend(other.toxic)
        self.genuine.extend(other.genuine)
        self.classifications.extend(other.classifications)
        self.used_ai = self.used_ai or other.used_ai


def build_prompt(comments: List[Dict[str, Any]], max_chars: int) -> str:
    numbered = "\n".join(
        f"{i + 1}. [{c.get('author', 'Unknown')}]: {(c.get('text') or '')[:max_chars]}"
        for i, c in enumerate(comments)
    )
    categories = "|".join(FORUM_CATEGORIES)
    return f"""Analyze these YouTube comments and organize them into discussion topics. Also identify spam and bot comments.

Comments:
{numbered}

Return a JSON object with this structure:
{{
  "topics": [
    {{
      "title": "Topic name",
      "description": "Brief description",
      "commentIds": [1, 5, 12],
      "sentiment": "positive|negative|neutral"
    }}
  ],
  "comments": [
    {{"id": 1, "category": "{categories}", "confidence": 0.0, "sentiment": "positive|negative|neutral"}}
  ],
  "spam": [2, 8],
  "bots": [15],
  "toxic": [3]
}}

Rules:
- Group comments by actual discussion topics, not just keywords
- Give every comment exactly one category from: {", ".join(FORUM_CATEGORIES)}
- Identify spam (promotional links, fake engagement, scams)
- Identify bots (repetitive patterns, automated messages)
- Identify toxic comments (hate speech, harassment, extreme negativity)
- Use comment numbers (1-{len(comments)})
- Return ONLY valid JSON, no markdown"""


class AICategorizer:
    """Gemini-backed comment categorization with keyword fallback."""

    def __init__(self, client: GeminiClient = None, max_chars: int = None):
        self.client = client or gemini_client
        self.max_chars = max_chars or settings.ai_comment_max_chars

    async def categorize_comments(self, comments: List[Dict[str, Any]]) -> CategorizationResult:
        if not comments:
            return CategorizationResult()

        batch = comments[:settings.ai_batch_size]
        try:
            raw = await self.client.generate(build_prompt(batch, self.max_chars), json_mode=True)
            result = self._map_response(extract_json(raw), batch)
            logger.info(f"AI categorized {len(batch)} comments into {len(result.topics)} topics")
            return result
        except (
            ForumizeError, ValueError, TypeError, AttributeError, KeyError, OverflowError,
        ) as e:
            logger.error(f"AI categorization failed: {e}")
            AI_FALLBACKS.inc()
            return self.keyword_fallback(batch)

    async def categorize_in_batches(
        self, comments: List[Dict[str, Any]], batch_size: int = None,
    ) -> CategorizationResult:
        """Split into batches, categorize them concurrently, merge in order."""
        batch_size = batch_size or settings.ai_batch_size
        batches = [comments[i:i + batch_size] for i in range(0, len(comments), batch_size)]
        logger.info(f"Processing {len(comments)} comments in {len(batches)} batches")

        results = await asyncio.gather(*(self.categorize_comments(b) for b in batches))

        merged = CategorizationResult()
        for result in results:
            merged.extend(result)

        logger.info(
            f"Categorized {len(comments)} comments: topics={len(merged.topics)} "
            f"spam={len(merged.spam)} bots={len(merged.bots)} toxic={len(merged.toxic)}"
        )
        return merged

    # ── Response mapping ─────────────────────────────────────────────────

    def _map_response(self, data: Dict[str, Any], comments: List[Dict[str, Any]]) -> CategorizationResult:
        if not isinstance(data, dict):
            raise ValueError("AI response is not a JSON object")

        n = len(comments)

        def valid_ids(values) -> List[int]:
            ids = []
            for v in values or []:
                try:
                    idx = int(v)
                except (TypeError, ValueError, OverflowError):
                    continue
                if 1 <= idx <= n and idx not in ids:
                    ids.append(idx)
            return ids

        classifications: Dict[int, CommentClassification] = {}
        for item in data.get("comments") or []:
            if not isinstance(item, dict):
                continue
            ids = valid_ids([item.get("id")])
            if not ids:
                continue
            classifications[ids[0]] = CommentClassification(
                category=_normalize_category(item.get("category")),
                confidence=_clamp_confidence(item.get("confidence")),
                sentiment=_normalize_sentiment(item.get("sentiment")),
            )

        # Explicit spam/bot/toxic lists win over per-comment categories
        for key, category in FLAGGED.items():
            for idx in valid_ids(data.get(key)):
                entry = classifications.setdefault(idx, CommentClassification(category=category))
                entry.category = category

        topics = []
        for topic in data.get("topics") or []:
            if not isinstance(topic, dict):
                continue
            title = str(topic.get("title") or "Untitled")
            ids = valid_ids(topic.get("commentIds"))
            for idx in ids:
                entry = classifications.get(idx)
                if entry is not None and entry.topic is None:
                    entry.topic = title
            topics.append({
                "title": title,
                "description": str(topic.get("description") or ""),
                "sentiment": _normalize_sentiment(topic.get("sentiment")) or "neutral",
                "commentIds": ids,
                "comments": [comments[i - 1] for i in ids],
            })

        result = CategorizationResult(topics=topics, used_ai=True)
        for i, comment in enumerate(comments, start=1):
            entry = classifications.get(i)
            if entry is None:
                entry = CommentClassification(category=classify_text(comment.get("text", "")))
            if entry.topic is None:
                entry.topic = next((t["title"] for t in topics if i in t["commentIds"]), None)
            result.classifications.append(entry)
            _bucket(result, comment, entry.category)
        return result

    @staticmethod
    def keyword_fallback(comments: List[Dict[str, Any]]) -> CategorizationResult:
        result = CategorizationResult(topics=[{
            "title": "All Comments",
            "description": "Unable to categorize - showing all comments",
            "sentiment": "neutral",
            "commentIds": list(range(1, len(comments) + 1)),
            "comments": list(comments),
        }])
        for comment in comments:
            category = classify_text(comment.get("text", ""))
            result.classifications.append(CommentClassification(category=category, topic="All Comments"))
            _bucket(result, comment, category)
        return result


def _bucket(result: CategorizationResult, comment: Dict[str, Any], category: str) -> None:
    if category == "spam":
        result.spam.append(comment)
    elif category == "bot":
        result.bots.append(comment)
    elif category == "toxic":
        result.toxic.append(comment)
    else:
        result.genuine.append(comment)


def _normalize_category(value: Any) -> str:
    category = str(value or "").strip().lower()
    if category in ("bots", "robot"):
        category = "bot"
    if category == "questions":
        category = "question"
    return category if category in FORUM_CATEGORIES else "discussion"


def _normalize_sentiment(value: Any) -> Optional[str]:
    sentiment = str(value or "").strip().lower()
    return sentiment if sentiment in SENTIMENTS else None


def _clamp_confidence(value: Any) -> Optional[float]:
    try:
        confidence = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(confidence):
        return None
    return round(min(max(confidence, 0.0), 1.0), 4)


ai_categorizer = AICategorizer()
