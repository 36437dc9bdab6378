"""
Platform detection and video id extraction for YouTube / TikTok inputs.
"""
from __future__ import annotations

import re
from typing import Optional

from forumize.models.models import Platform

_YOUTUBE_URL_RE = re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/shorts/|youtube\.com/live/)([a-zA-Z0-9_-]{11})")
_YOUTUBE_ID_RE = re.compile(r"^[a-zA-Z0-9_-]{11}$")
_TIKTOK_ID_RE = re.compile(r"^\d{19}$")

_TIKTOK_URL_PATTERNS = (
    re.compile(r"tiktok\.com/@[\w.-]+/video/(\d+)"),
    re.compile(r"vm\.tiktok\.com/(\w+)"),
    re.compile(r"tiktok\.com/t/(\w+)"),
)


def detect_platform(value) -> Platform:
    """Guess the platform from a URL or bare id; YouTube when unsure."""
    if not isinstance(value, str):
        return Platform.YOUTUBE

    lowered = value.lower()
    if "tiktok.com" in lowered or "vm.tiktok" in lowered:
        return Platform.TIKTOK
    if "youtube.com" in lowered or "youtu.be" in lowered:
        return Platform.YOUTUBE
    if _TIKTOK_ID_RE.match(value):
        return Platform.TIKTOK
    return Platform.YOUTUBE


def extract_youtube_id(value: str) -> str:
    """Return the 11-char id from a YouTube URL, or the input unchanged."""
    match = _YOUTUBE_URL_RE.search(value or "")
    return match.group(1) if match else value


def is_youtube_id(value: str) -> bool:
    return bool(_YOUTUBE_ID_RE.match(value or ""))


def extract_tiktok_id(url: str) -> Optional[str]:
    for pattern in _TIKTOK_URL_PATTERNS:
        match = pattern.search(url or "")
        if match:
            return match.group(1)
    if url and url.isdigit():
        return url
    return None
