from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import NullPool

from forumize.api.deps import get_bot_detector, get_timeout_service
from forumize.core.database import Base, build_engine, build_session_factory, get_db, init_db
from forumize.models import models  # noqa: F401
from forumize.ml.llm.gemini_client import GeminiClient
from forumize.ml.nlp.ai_categorizer import AICategorizer
from forumize.services.moderation.bot_detection import BotDetector
from forumize.services.moderation.timeout_service import TimeoutService


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubLLM:
    """Stands in for GeminiClient.generate."""

    def __init__(self, reply: Optional[str] = "Why did you post that link?"):
        self.reply = reply
        self.prompts: List[str] = []

    async def generate(self, prompt: str, json_mode: bool = False) -> str:
        self.prompts.append(prompt)
        return self.reply


class StubYouTube:
    def __init__(
        self,
        threads: Optional[List[Dict[str, Any]]] = None,
        all_comments: Optional[List[Dict[str, Any]]] = None,
        live: Optional[Dict[str, Any]] = None,
        chat_pages: Optional[List[Dict[str, Any]]] = None,
    ):
        self.threads = threads or []
        self.all_comments = all_comments or []
        self.live = live or {"isLive": False, "isUpcoming": False}
        self.chat_pages = list(chat_pages or [])
        self.calls: List[tuple] = []

    async def fetch_comment_threads(self, video_id: str, max_results: int = 50):
        self.calls.append(("threads", video_id, max_results))
        return [dict(t) for t in self.threads]

    async def fetch_all_comments(self, video_id: str, max_pages: int = None):
        self.calls.append(("all", video_id))
        return [dict(c) for c in self.all_comments]

    async def check_if_live(self, video_id: str):
        self.calls.append(("live", video_id))
        return dict(self.live)

    async def fetch_live_chat_messages(self, live_chat_id: str, page_token: Optional[str] = None):
        self.calls.append(("chat", live_chat_id, page_token))
        return self.chat_pages.pop(0)


def offline_categorizer() -> AICategorizer:
    """Categorizer without a Gemini key: always takes the keyword fallback."""
    return AICategorizer(client=GeminiClient(api_key=""))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timeouts(clock):
    return TimeoutService(llm=StubLLM(), clock=clock)


@pytest.fixture
def detector(clock):
    return BotDetector(clock=clock)


# ── Datastore ────────────────────────────────────────────────────────────

@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine):
    factory = build_session_factory(engine)
    async with factory() as session:
        yield session


# ── API ──────────────────────────────────────────────────────────────────

@pytest.fixture
def api(tmp_path, clock, timeouts, detector):
    """TestClient on a fresh SQLite file; lifespan is not run."""
    from forumize.main import app

    db_path = tmp_path / "api.db"
    sync_engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()

    factory = build_session_factory(
        build_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    )

    async def override_get_db():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_timeout_service] = lambda: timeouts
    app.dependency_overrides[get_bot_detector] = lambda: detector
    yield TestClient(app)
    app.dependency_overrides.clear()
