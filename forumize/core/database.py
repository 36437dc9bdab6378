"""
Forumize Database — async SQLAlchemy engine, session factory and Base.
"""
from __future__ import annotations

import logging
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from forumize.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


class Base(DeclarativeBase):
    pass


def build_engine(url: str, echo: bool = False, **kwargs) -> AsyncEngine:
    return create_async_engine(url, echo=echo, future=True, **kwargs)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=bind, expire_on_commit=False, class_=AsyncSession)


engine = build_engine(settings.database_url, echo=settings.database_echo)
async_session_factory = build_session_factory(engine)


async def get_db() -> AsyncIterator[AsyncSession]:
    """One session and one transaction per request."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(bind: AsyncEngine = None) -> None:
    """Create tables that do not exist yet."""
    # Models must be registered on Base.metadata before create_all
    from forumize.models import models  # noqa: F401

    bind = bind or engine
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Database ready at {bind.url.render_as_string(hide_password=True)}")
