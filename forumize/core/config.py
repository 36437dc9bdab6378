"""
Forumize Core Settings.

Every value can be overridden through the environment (or a `.env` file).
Variable names match the field names, upper-cased: `YOUTUBE_API_KEY`,
`GEMINI_API_KEY`, `APIFY_API_TOKEN`, `RAPIDAPI_KEY`, `PORT`, `FRONTEND_URL`...
"""
from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8",
        case_sensitive=False, extra="ignore",
    )

    # ── App ──────────────────────────────────────────────────────────────
    app_name: str = "Forumize"
    app_version: str = "1.2.0"
    debug: bool = False
    log_level: str = "INFO"
    api_prefix: str = "/api"
    host: str = "0.0.0.0"
    port: int = 3000
    frontend_url: Optional[str] = None

    @property
    def cors_origins(self) -> List[str]:
        if not self.frontend_url:
            return ["*"]
        return [o.strip() for o in self.frontend_url.split(",") if o.strip()]

    # ── Datastore ────────────────────────────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./forumize.db"
    database_echo: bool = False
    legacy_db_path: Optional[str] = None

    # ── YouTube Data API ─────────────────────────────────────────────────
    youtube_api_key: Optional[str] = None
    youtube_api_base: str = "https://www.googleapis.com/youtube/v3"
    youtube_request_timeout: float = 10.0
    youtube_max_pages: int = 50
    youtube_page_delay: float = 0.1
    youtube_ytdlp_fallback: bool = False

    # ── TikTok providers ─────────────────────────────────────────────────
    apify_api_token: Optional[str] = None
    apify_actor: str = "clockworks~tiktok-comments-scraper"
    apify_wait_seconds: float = 5.0
    rapidapi_key: Optional[str] = None
    rapidapi_host: str = "tiktok-scraper7.p.rapidapi.com"

    # ── Gemini ───────────────────────────────────────────────────────────
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-1.5-flash"
    gemini_api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_timeout: float = 60.0

    # ── Classification ───────────────────────────────────────────────────
    forumize_default_max_results: int = 50
    ai_batch_size: int = 100
    ai_comment_max_chars: int = 200

    # ── Moderation ───────────────────────────────────────────────────────
    bot_posting_threshold: int = 10
    bot_window_seconds: float = 30.0
    bot_history_retention_seconds: float = 300.0
    timeout_restore_votes: int = 5
    timeout_keep_votes: int = 10
    timeout_suspension_seconds: float = 2 * 60 * 60
    voluntary_timeout_seconds: float = 6 * 60 * 60
    state_store_max_entries: int = 10_000

    # ── Live chat ────────────────────────────────────────────────────────
    live_chat_page_size: int = 200
    live_board_max_messages: int = 500
    live_board_ttl_seconds: float = 60 * 60

    # ── Replies / audio ──────────────────────────────────────────────────
    reply_max_length: int = 5000
    audio_summary_top_n: int = 5
    audio_placeholder_url: str = "/audio/placeholder-summary.mp3"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
