"""
Article store.

The aggregation pipeline and the query service only depend on the NewsStore
contract: existence check by URL, insert, predicate/sort/paginate reads,
counts, distinct values and a most-recent lookup. SqlNewsStore implements it
on an async SQLAlchemy session factory.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Sequence, Tuple

from sqlalchemy import func, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql.elements import ColumnElement

from app.services.news_fetcher.models import NewsArticle

from .models import NewsArticleRecord

logger = logging.getLogger(__name__)


class NewsStoreError(Exception):
    """The store could not be reached or rejected a write."""
    pass


class NewsStore(ABC):
    """Persistence contract used by the news pipeline."""

    @abstractmethod
    async def ping(self) -> None:
        """Raise NewsStoreError if the store is unreachable."""
        pass

    @abstractmethod
    async def find_by_url(self, url: str) -> Optional[NewsArticle]:
        pass

    @abstractmethod
    async def insert(self, article: NewsArticle) -> bool:
        """Insert an article. Returns False if its URL is already stored."""
        pass

    @abstractmethod
    async def query_active(
        self,
        conditions: Sequence[ColumnElement[bool]],
        order_by: Sequence[Any],
        limit: int,
        offset: int,
    ) -> List[NewsArticle]:
        pass

    @abstractmethod
    async def count_active(self, conditions: Sequence[ColumnElement[bool]]) -> int:
        pass

    @abstractmethod
    async def distinct_values(self, *columns: Any) -> List[Tuple[Any, ...]]:
        """Distinct value tuples of ``columns`` among active articles."""
        pass

    @abstractmethod
    async def most_recent(self, column: Any) -> Optional[Any]:
        """Largest value of ``column`` across all articles, active or not."""
        pass

    @abstractmethod
    async def set_active(self, url: str, active: bool) -> bool:
        """Toggle the soft-delete flag. Returns False if no article has ``url``."""
        pass

    async def close(self) -> None:
        pass


class SqlNewsStore(NewsStore):
    """NewsStore backed by the ``news_articles`` table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._session_factory = session_factory
        self._clock = clock

    @staticmethod
    def _active(conditions: Sequence[ColumnElement[bool]]) -> List[ColumnElement[bool]]:
        return [NewsArticleRecord.is_active.is_(True), *conditions]

    async def ping(self) -> None:
        try:
            async with self._session_factory() as session:
                await session.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            raise NewsStoreError(f"Article store unreachable: {e}") from e

    async def find_by_url(self, url: str) -> Optional[NewsArticle]:
        stmt = select(NewsArticleRecord).where(NewsArticleRecord.url == url).limit(1)
        try:
            async with self._session_factory() as session:
                record = (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise NewsStoreError(f"Lookup failed for {url}: {e}") from e
        return record.to_article() if record else None

    async def insert(self, article: NewsArticle) -> bool:
        record = NewsArticleRecord.from_article(article, crawled_at=self._clock())
        try:
            async with self._session_factory() as session:
                session.add(record)
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    if await self.find_by_url(article.url) is not None:
                        logger.debug(f"Duplicate article skipped: {article.url}")
                        return False
                    raise
        except SQLAlchemyError as e:
            raise NewsStoreError(f"Insert failed for {article.url}: {e}") from e
        return True

    async def query_active(
        self,
        conditions: Sequence[ColumnElement[bool]],
        order_by: Sequence[Any],
        limit: int,
        offset: int,
    ) -> List[NewsArticle]:
        stmt = (
            select(NewsArticleRecord)
            .where(*self._active(conditions))
            .order_by(*order_by)
            .limit(limit)
            .offset(offset)
        )
        try:
            async with self._session_factory() as session:
                records = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            raise NewsStoreError(f"Article query failed: {e}") from e
        return [record.to_article() for record in records]

    async def count_active(self, conditions: Sequence[ColumnElement[bool]]) -> int:
        stmt = select(func.count()).select_from(NewsArticleRecord).where(*self._active(conditions))
        try:
            async with self._session_factory() as session:
                return int((await session.execute(stmt)).scalar_one())
        except SQLAlchemyError as e:
            raise NewsStoreError(f"Article count failed: {e}") from e

    async def distinct_values(self, *columns: Any) -> List[Tuple[Any, ...]]:
        stmt = select(*columns).where(*self._active([])).distinct().order_by(*columns)
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as e:
            raise NewsStoreError(f"Distinct query failed: {e}") from e
        return [tuple(row) for row in rows]

    async def most_recent(self, column: Any) -> Optional[Any]:
        stmt = select(column).order_by(column.desc()).limit(1)
        try:
            async with self._session_factory() as session:
                return (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise NewsStoreError(f"Most-recent query failed: {e}") from e

    async def set_active(self, url: str, active: bool) -> bool:
        stmt = (
            update(NewsArticleRecord)
            .where(NewsArticleRecord.url == url)
            .values(is_active=active)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            raise NewsStoreError(f"Update failed for {url}: {e}") from e
        return result.rowcount > 0
