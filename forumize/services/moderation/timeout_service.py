"""
Forumize Timeout System

When a user is flagged for spam/toxic behavior:
  1. The AI writes one question asking them to explain themselves
  2. They enter TIMEOUT, visible to the community
  3. The community votes: RESTORE_VOTES "restore" votes bring them back
     on probation, KEEP_VOTES "keep" votes suspend them for 2 hours
  4. A user on probation who offends again is suspended immediately

Paid users may also enter a voluntary timeout to put a topic in front
of the community for 6 hours.
"""
from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from forumize.core.config import get_settings
from forumize.core.errors import (
    ConflictError, ForumizeError, NotFoundError, PermissionDeniedError, ValidationError,
)
from forumize.core.metrics import MODERATION_ACTIONS
from forumize.ml.llm.gemini_client import GeminiClient, gemini_client
from forumize.services.moderation.state_store import Clock, UserStateStore

logger = logging.getLogger(__name__)
settings = get_settings()

RESTORE_VOTES = settings.timeout_restore_votes
KEEP_VOTES = settings.timeout_keep_votes
SUSPENSION_SECONDS = settings.timeout_suspension_seconds
VOLUNTARY_SECONDS = settings.voluntary_timeout_seconds

FALLBACK_QUESTION = "Why did you post this comment? Can you explain your intentions?"
VOLUNTARY_QUESTION = "What discussion topic would you like the community to engage with?"


class TimeoutStatus(str, enum.Enum):
    PENDING = "pending"
    RESTORED = "restored"
    SUSPENDED = "suspended"
    VOLUNTARY = "voluntary"


@dataclass
class TimeoutEntry:
    user_id: str
    username: str
    reason: str
    question: str
    flagged_at: str
    status: TimeoutStatus = TimeoutStatus.PENDING
    violating_comment: Optional[str] = None
    topic: Optional[str] = None
    user_response: Optional[str] = None
    votes: Dict[str, int] = field(default_factory=lambda: {"restore": 0, "keep": 0})
    responded_at: Optional[str] = None
    restored_at: Optional[str] = None
    on_probation: bool = False
    suspended_at: Optional[str] = None
    suspend_until: Optional[str] = None
    auto_restore_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "userId": self.user_id,
            "username": self.username,
            "violatingComment": self.violating_comment,
            "topic": self.topic,
            "reason": self.reason,
            "question": self.question,
            "userResponse": self.user_response,
            "votes": dict(self.votes),
            "flaggedAt": self.flagged_at,
            "status": self.status.value,
            "respondedAt": self.responded_at,
            "restoredAt": self.restored_at,
            "onProbation": self.on_probation,
            "suspendedAt": self.suspended_at,
            "suspendUntil": self.suspend_until,
            "autoRestoreAt": self.auto_restore_at,
        }
        return {k: v for k, v in data.items() if v is not None}


class TimeoutService:
    def __init__(
        self,
        entries: Optional[UserStateStore] = None,
        votes: Optional[UserStateStore] = None,
        suspensions: Optional[UserStateStore] = None,
        llm: Optional[GeminiClient] = None,
        clock: Clock = time.time,
    ):
        self.clock = clock
        self.entries = entries if entries is not None else UserStateStore(clock=clock)
        self.votes = votes if votes is not None else UserStateStore(clock=clock)
        self.suspensions = suspensions if suspensions is not None else UserStateStore(clock=clock)
        self.llm = llm or gemini_client

    def _iso(self, ts: float = None) -> str:
        ts = self.clock() if ts is None else ts
        return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()

    # ── Flagging ─────────────────────────────────────────────────────────

    async def flag_user_for_timeout(
        self, user_id: str, username: str, violating_comment: str, reason: str,
    ) -> Optional[TimeoutEntry]:
        """Send a user to TIMEOUT. None when they are already suspended."""
        if self.is_suspended(user_id):
            logger.info(f"User {username} is currently suspended")
            return None

        existing = self.get_timeout_entry(user_id)
        if existing is not None and existing.status == TimeoutStatus.PENDING:
            return existing

        question = await self.generate_timeout_question(username, violating_comment, reason)
        entry = TimeoutEntry(
            user_id=user_id,
            username=username,
            violating_comment=violating_comment,
            reason=reason,
            question=question,
            flagged_at=self._iso(),
        )
        self.entries.set(user_id, entry, ttl=None)
        self.votes.set(user_id, {"restore": set(), "keep": set()}, ttl=None)
        MODERATION_ACTIONS.labels(action="timeout").inc()
        logger.info(f"User {username} sent to TIMEOUT: {reason}")
        return entry

    async def generate_timeout_question(self, username: str, comment: str, reason: str) -> str:
        prompt = f"""A user named "{username}" was flagged for: {reason}

Their comment: "{comment}"

Generate ONE direct question asking them to explain their behavior. The question should:
- Be respectful but direct
- Focus on the specific issue
- Allow them to explain their intentions
- Be under 200 characters

Return ONLY the question, nothing else."""
        try:
            question = (await self.llm.generate(prompt)).strip()
        except ForumizeError as e:
            logger.error(f"Failed to generate timeout question: {e.message}")
            return FALLBACK_QUESTION
        return question[:200] if question else FALLBACK_QUESTION

    async def handle_repeat_offender(self, user_id: str, username: str, new_violation: str):
        """Instant suspension for users on probation, otherwise a fresh timeout."""
        if self.is_on_probation(user_id):
            logger.warning(f"Repeat offender {username}, suspending")
            self.suspend_user(user_id, SUSPENSION_SECONDS)
            return {
                "action": "suspended",
                "reason": "Repeat offense after restoration",
                "duration": "2 hours",
            }
        return await self.flag_user_for_timeout(user_id, username, new_violation, "Repeat spam/toxic behavior")

    async def process_flagged_comments(
        self, comments: Iterable[Dict[str, Any]], reason: str = "Spam",
    ) -> List[Dict[str, Any]]:
        """Timeout (or suspend) the authors of flagged comments."""
        results = []
        for comment in comments:
            author_id = comment.get("authorId")
            if not author_id:
                continue
            author = comment.get("author", "Unknown")
            text = comment.get("text", "")
            if self.is_on_probation(author_id):
                outcome = await self.handle_repeat_offender(author_id, author, text)
            else:
                outcome = await self.flag_user_for_timeout(author_id, author, text, reason)
            if isinstance(outcome, TimeoutEntry):
                results.append(outcome.to_dict())
            elif outcome:
                results.append({"userId": author_id, **outcome})
        return results

    # ── User / community actions ─────────────────────────────────────────

    def submit_timeout_response(self, user_id: str, response: str) -> TimeoutEntry:
        entry = self._require_entry(user_id)
        entry.user_response = response
        entry.responded_at = self._iso()
        logger.info(f"User {entry.username} responded to timeout question")
        return entry

    def vote_on_timeout_user(self, user_id: str, voter_id: str, vote_type: str) -> TimeoutEntry:
        if vote_type not in ("restore", "keep"):
            raise ValidationError("voteType must be restore or keep")

        entry = self._require_entry(user_id)
        if entry.status == TimeoutStatus.VOLUNTARY:
            raise ConflictError("Voluntary timeouts are not voted on")
        if entry.status != TimeoutStatus.PENDING:
            raise ConflictError(f"Voting is closed, user is {entry.status.value}")

        ballots = self.votes.get(user_id)
        if ballots is None:
            ballots = {"restore": set(), "keep": set()}
            self.votes.set(user_id, ballots, ttl=None)

        # One vote per voter; a new vote replaces the old one
        ballots["restore"].discard(voter_id)
        ballots["keep"].discard(voter_id)
        ballots[vote_type].add(voter_id)

        entry.votes["restore"] = len(ballots["restore"])
        entry.votes["keep"] = len(ballots["keep"])

        if entry.votes["restore"] >= RESTORE_VOTES:
            self.restore_user(user_id)
        elif entry.votes["keep"] >= KEEP_VOTES:
            self.suspend_user(user_id, SUSPENSION_SECONDS)
        return entry

    async def voluntary_timeout(
        self, user_id: str, username: str, topic: str, is_paid_user: bool = False,
    ) -> TimeoutEntry:
        if not is_paid_user:
            raise PermissionDeniedError("Voluntary timeout is for paid users only")

        now = self.clock()
        entry = TimeoutEntry(
            user_id=user_id,
            username=username,
            topic=topic,
            reason="voluntary",
            question=VOLUNTARY_QUESTION,
            user_response=topic,
            votes={"engage": 0, "skip": 0},
            flagged_at=self._iso(now),
            status=TimeoutStatus.VOLUNTARY,
            auto_restore_at=self._iso(now + VOLUNTARY_SECONDS),
        )
        self.entries.set(user_id, entry, ttl=VOLUNTARY_SECONDS)
        logger.info(f"Paid user {username} voluntarily entered timeout")
        return entry

    # ── State transitions ────────────────────────────────────────────────

    def restore_user(self, user_id: str) -> Optional[TimeoutEntry]:
        entry = self.get_timeout_entry(user_id)
        if entry is None:
            return None
        entry.status = TimeoutStatus.RESTORED
        entry.restored_at = self._iso()
        entry.on_probation = True
        MODERATION_ACTIONS.labels(action="restored").inc()
        logger.info(f"User {entry.username} restored from timeout")
        return entry

    def suspend_user(self, user_id: str, duration_seconds: float) -> Optional[TimeoutEntry]:
        entry = self.get_timeout_entry(user_id)
        if entry is None:
            return None
        now = self.clock()
        until = now + duration_seconds
        self.suspensions.set(user_id, until, ttl=duration_seconds)

        entry.status = TimeoutStatus.SUSPENDED
        entry.suspended_at = self._iso(now)
        entry.suspend_until = self._iso(until)
        MODERATION_ACTIONS.labels(action="suspended").inc()
        logger.warning(f"User {entry.username} suspended until {entry.suspend_until}")
        return entry

    # ── Queries ──────────────────────────────────────────────────────────

    def is_suspended(self, user_id: str) -> bool:
        return user_id in self.suspensions

    def is_on_probation(self, user_id: str) -> bool:
        entry = self.get_timeout_entry(user_id)
        return bool(entry and entry.on_probation)

    def get_timeout_users(self, status: str = "pending") -> List[TimeoutEntry]:
        users = sorted(self.entries.values(), key=lambda e: e.flagged_at)
        if status == "all":
            return users
        return [u for u in users if u.status.value == status]

    def get_timeout_entry(self, user_id: str) -> Optional[TimeoutEntry]:
        return self.entries.get(user_id)

    def _require_entry(self, user_id: str) -> TimeoutEntry:
        entry = self.get_timeout_entry(user_id)
        if entry is None:
            raise NotFoundError("User not in timeout")
        return entry


timeout_service = TimeoutService()
