"""
Async engine and session wiring for the article store.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from app.config import settings

from .models import Base
from .news_store import SqlNewsStore


def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """Create an async engine. In-memory SQLite shares a single connection."""
    url = database_url or settings.database_url
    if url.startswith("sqlite") and ":memory:" in url:
        return create_async_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(url, pool_pre_ping=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


async def init_db(engine: AsyncEngine) -> None:
    """Create the article table if it does not exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def create_news_store(database_url: Optional[str] = None) -> tuple[AsyncEngine, SqlNewsStore]:
    """Build an engine, ensure the schema, and wrap it in a store."""
    engine = create_engine(database_url)
    await init_db(engine)
    return engine, SqlNewsStore(create_session_factory(engine))


# Singleton instances
_engine: Optional[AsyncEngine] = None
_news_store: Optional[SqlNewsStore] = None


async def get_news_store() -> SqlNewsStore:
    """Get the process-wide store, creating the schema on first use."""
    global _engine, _news_store
    if _news_store is None:
        _engine, _news_store = await create_news_store()
    return _news_store


async def close_news_store() -> None:
    global _engine, _news_store
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _news_store = None
