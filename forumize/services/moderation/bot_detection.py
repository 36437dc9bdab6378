"""
Forumize Bot Detection

Flags an account as a bot when it posts POSTING_THRESHOLD or more
comments inside a sliding TIME_WINDOW. Flagged accounts go to "hell"
(reply restrictions) until unblocked.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from forumize.core.config import get_settings
from forumize.core.metrics import MODERATION_ACTIONS
from forumize.services.moderation.state_store import Clock, UserStateStore

logger = logging.getLogger(__name__)
settings = get_settings()

POSTING_THRESHOLD = settings.bot_posting_threshold
TIME_WINDOW = settings.bot_window_seconds


@dataclass
class BotCheck:
    is_bot: bool
    post_count_in_30s: int
    should_send_to_hell: bool
    was_flagged_as_bot: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isBot": self.is_bot,
            "postCountIn30s": self.post_count_in_30s,
            "shouldSendToHell": self.should_send_to_hell,
            "wasFlaggedAsBot": self.was_flagged_as_bot,
        }


class BotDetector:
    def __init__(
        self,
        history: Optional[UserStateStore] = None,
        flagged: Optional[UserStateStore] = None,
        clock: Clock = time.time,
        threshold: int = POSTING_THRESHOLD,
        window_seconds: float = TIME_WINDOW,
        retention_seconds: float = None,
    ):
        self.clock = clock
        self.threshold = threshold
        self.window_seconds = window_seconds
        self.retention_seconds = retention_seconds or settings.bot_history_retention_seconds
        self.history = history if history is not None else UserStateStore(clock=clock)
        self.flagged = flagged if flagged is not None else UserStateStore(clock=clock)

    def _recent(self, user_id: str, now: float) -> List[Dict[str, Any]]:
        return [e for e in self.history.get(user_id, []) if now - e["timestamp"] < self.window_seconds]

    def record_post(self, user_id: str, thread_id: Optional[str] = None, timestamp: float = None) -> None:
        timestamp = self.clock() if timestamp is None else timestamp
        cutoff = timestamp - self.retention_seconds
        entries = [e for e in self.history.get(user_id, []) if e["timestamp"] > cutoff]
        entries.append({"timestamp": timestamp, "threadId": thread_id})
        self.history.set(user_id, entries, ttl=self.retention_seconds)

    def detect_bot(self, user_id: str, now: float = None) -> BotCheck:
        now = self.clock() if now is None else now
        recent = self._recent(user_id, now)
        if user_id in self.history:
            self.history.set(user_id, recent, ttl=self.retention_seconds)

        is_bot = len(recent) >= self.threshold
        if is_bot and user_id not in self.flagged:
            self.flagged.set(user_id, now, ttl=None)
            MODERATION_ACTIONS.labels(action="bot_flagged").inc()
            logger.warning(f"User {user_id} flagged as bot: {len(recent)} posts in {self.window_seconds:.0f}s")

        return BotCheck(
            is_bot=is_bot,
            post_count_in_30s=len(recent),
            should_send_to_hell=is_bot,
            was_flagged_as_bot=user_id in self.flagged,
        )

    def record_and_check(self, user_id: str, thread_id: Optional[str] = None) -> BotCheck:
        now = self.clock()
        self.record_post(user_id, thread_id, now)
        return self.detect_bot(user_id, now)

    def is_bot_user(self, user_id: str) -> bool:
        return user_id in self.flagged

    def clear_user_history(self, user_id: str) -> None:
        self.history.delete(user_id)

    def unblock_user(self, user_id: str) -> None:
        self.flagged.delete(user_id)
        self.history.delete(user_id)
        logger.info(f"User {user_id} unblocked")

    def get_user_stats(self, user_id: str) -> Dict[str, Any]:
        history = self.history.get(user_id, [])
        recent = len(self._recent(user_id, self.clock()))
        return {
            "totalTrackedPosts": len(history),
            "postsIn30s": recent,
            "isBot": recent >= self.threshold,
            "flaggedAsBot": user_id in self.flagged,
        }


bot_detector = BotDetector()
