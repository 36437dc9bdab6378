"""
Forumize — Main FastAPI Application

Turns YouTube / TikTok comment sections into categorized forums.
"""
from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from forumize.core.config import get_settings
from forumize.core.database import async_session_factory, init_db
from forumize.core.errors import register_exception_handlers

settings = get_settings()
STARTED_AT = time.monotonic()

# ── Logging ──────────────────────────────────────────────────────────────

logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s", level=settings.log_level.upper())

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        logging.getLevelName(settings.log_level.upper())
    ),
)

logger = structlog.get_logger()


# ── Lifespan ─────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown hooks."""
    logger.info("Starting Forumize", version=settings.app_version, port=settings.port)

    await init_db()

    if settings.legacy_db_path:
        from forumize.services.forums.snapshot import import_legacy_file
        async with async_session_factory() as session:
            counts = await import_legacy_file(settings.legacy_db_path, session)
            await session.commit()
        if counts:
            logger.info("Legacy datastore imported", **counts)

    logger.info(
        "Forumize ready",
        youtube=bool(settings.youtube_api_key),
        gemini=bool(settings.gemini_api_key),
        tiktok_provider="apify" if settings.apify_api_token else "rapidapi" if settings.rapidapi_key else "mock",
    )

    yield

    logger.info("Shutting down Forumize")


# ── App ──────────────────────────────────────────────────────────────────

app = FastAPI(
    title=settings.app_name,
    description="Comment sections as categorized forums",
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_origins != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Prometheus metrics
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── Routes ───────────────────────────────────────────────────────────────

from forumize.api.routes import admin, forums, moderation, timeout, users
from forumize.api.routes import forumize as forumize_routes

app.include_router(forumize_routes.router, prefix=settings.api_prefix)
app.include_router(forums.router, prefix=settings.api_prefix)
app.include_router(timeout.router, prefix=settings.api_prefix)
app.include_router(moderation.router, prefix=settings.api_prefix)
app.include_router(users.router, prefix=settings.api_prefix)
app.include_router(admin.router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "features": ["forumize", "forumyze", "live_chat", "timeout", "bot_detection", "share_links"],
        "docs": "/docs",
    }


@app.get("/health")
async def health():
    return {"status": "ok", "uptime": round(time.monotonic() - STARTED_AT, 3)}


def run() -> None:
    uvicorn.run("forumize.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
