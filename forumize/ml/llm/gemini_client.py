"""
Minimal Gemini `generateContent` client over httpx.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

import httpx

from forumize.core.config import get_settings
from forumize.core.errors import ConfigurationError, UpstreamServiceError
from forumize.core.metrics import UPSTREAM_ERRORS

logger = logging.getLogger(__name__)
settings = get_settings()

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def extract_json(text: str) -> Any:
    """Parse model output, tolerating a markdown code fence around it."""
    match = _FENCED_JSON_RE.search(text or "")
    payload = match.group(1) if match else (text or "")
    return json.loads(payload.strip())


class GeminiClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.model = model or settings.gemini_model
        self.timeout = timeout or settings.gemini_timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @property
    def endpoint(self) -> str:
        return f"{settings.gemini_api_base}/models/{self.model}:generateContent"

    async def generate(self, prompt: str, json_mode: bool = False) -> str:
        """Send one prompt, return the first candidate's text."""
        if not self.api_key:
            raise ConfigurationError("GEMINI_API_KEY is not set in environment")

        payload: dict = {"contents": [{"parts": [{"text": prompt}]}]}
        if json_mode:
            payload["generationConfig"] = {"responseMimeType": "application/json"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.endpoint, params={"key": self.api_key}, json=payload,
                )
                response.raise_for_status()
                data = response.json()
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except httpx.HTTPError as e:
            UPSTREAM_ERRORS.labels(service="gemini").inc()
            raise UpstreamServiceError(f"Gemini request failed: {e}") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            UPSTREAM_ERRORS.labels(service="gemini").inc()
            raise UpstreamServiceError(f"Unexpected Gemini response: {e}") from e


gemini_client = GeminiClient()
