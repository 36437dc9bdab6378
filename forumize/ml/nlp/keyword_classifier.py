"""
Keyword comment classifier — the cheap, offline categorization path.

Used directly by `/api/forumize` and as the fallback whenever the AI
categorizer is unavailable or returns something unusable.
"""
from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List

DEFAULT_CATEGORIES = ("spam", "bot", "toxic", "genuine", "question")

# The seven categories the forum UI renders; AI output is normalized into these.
FORUM_CATEGORIES = ("discussion", "question", "feedback", "genuine", "bot", "spam", "toxic")

# Ordered: first match wins.
_RULES = (
    ("spam", re.compile(r"http|www|\.com|subscribe")),
    ("bot", re.compile(r"bot|automated|robot")),
    ("toxic", re.compile(r"hate|kill|stupid|idiot|racist|expletive")),
    ("question", re.compile(r"\?")),
)


def classify_text(text: str) -> str:
    lowered = (text or "").lower()
    for category, pattern in _RULES:
        if pattern.search(lowered):
            return category
    return "genuine"


def classify_comments(comments: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Copy each comment with a `category` field; replies are left as-is."""
    return [{**c, "category": classify_text(c.get("text", ""))} for c in comments]


def classify_tree(comments: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Classify comments and every nested reply."""
    classified = []
    for comment in classify_comments(comments):
        if comment.get("replies"):
            comment["replies"] = classify_tree(comment["replies"])
        classified.append(comment)
    return classified
