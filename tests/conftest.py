from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from app.db.news_store import SqlNewsStore
from app.db.session import create_engine, create_session_factory, init_db
from app.services.news_fetcher.models import NewsArticle

MEMORY_DB_URL = "sqlite+aiosqlite:///:memory:"
BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@asynccontextmanager
async def open_memory_store(**store_kwargs: Any):
    """Fresh in-memory article store, disposed on exit."""
    engine = create_engine(MEMORY_DB_URL)
    await init_db(engine)
    try:
        yield SqlNewsStore(create_session_factory(engine), **store_kwargs)
    finally:
        await engine.dispose()


def build_article(index: int = 0, **overrides: Any) -> NewsArticle:
    fields = {
        "title": f"Article {index}",
        "url": f"https://example.com/news/{index}",
        "source": "rss",
        "source_name": "CoinTelegraph",
        "published_at": BASE_TIME - timedelta(hours=index),
    }
    fields.update(overrides)
    return NewsArticle(**fields)


@pytest.fixture
def memory_store():
    return open_memory_store


@pytest.fixture
def make_article():
    return build_article
