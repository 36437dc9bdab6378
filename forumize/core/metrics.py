"""
Prometheus counters exposed on /metrics.
"""
from __future__ import annotations

from prometheus_client import Counter

FORUMIZE_RUNS = Counter(
    "forumize_runs_total",
    "Forumize runs by platform and classification mode",
    ["platform", "mode"],
)

COMMENTS_CLASSIFIED = Counter(
    "forumize_comments_classified_total",
    "Comments assigned a category",
    ["category"],
)

AI_FALLBACKS = Counter(
    "forumize_ai_fallbacks_total",
    "AI categorizations that fell back to keyword classification",
)

UPSTREAM_ERRORS = Counter(
    "forumize_upstream_errors_total",
    "Failed calls to third-party APIs",
    ["service"],
)

MODERATION_ACTIONS = Counter(
    "forumize_moderation_actions_total",
    "Bot flags, timeouts, restorations and suspensions",
    ["action"],
)
