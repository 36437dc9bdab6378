"""
Input sanitation for user-supplied strings.
"""
from __future__ import annotations

import re
from typing import Optional

_TAG_RE = re.compile(r"<[^>]*>")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def sanitize_text(text: Optional[str], max_length: int = None) -> str:
    """Drop markup and control characters, trim whitespace."""
    if not text:
        return ""
    cleaned = _CONTROL_RE.sub("", _TAG_RE.sub("", text)).strip()
    if max_length is not None:
        cleaned = cleaned[:max_length]
    return cleaned
