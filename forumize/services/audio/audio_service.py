"""
Audio summary for a forum.

Builds the spoken script from the top threads; the returned URL points
at a static placeholder clip until a TTS provider is wired in.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Sequence

from forumize.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def build_summary_script(threads: Sequence[Dict[str, Any]], top_n: int = None) -> str:
    top_n = settings.audio_summary_top_n if top_n is None else top_n
    lines = [f"{t.get('author', 'Someone')} says: {t.get('text', '')}" for t in list(threads)[:top_n]]
    return "\n".join(lines)


async def generate_audio_summary(threads: Sequence[Dict[str, Any]], top_n: int = None) -> str:
    script = build_summary_script(threads or [], top_n)
    logger.info(f"Audio summary script built ({len(script)} chars)")
    return settings.audio_placeholder_url
