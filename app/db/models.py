"""
SQLAlchemy table definitions for the article store.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, Boolean, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from app.services.news_fetcher.models import NewsArticle, NewsCategory, SentimentLabel


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetimes normalized to UTC on the way in and out."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class Base(DeclarativeBase):
    pass


class NewsArticleRecord(Base):
    """Persisted article. ``url`` is unique; rows are deactivated, never deleted."""

    __tablename__ = "news_articles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    url: Mapped[str] = mapped_column(String(2048), unique=True, index=True, nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source: Mapped[str] = mapped_column(String(100), index=True, nullable=False)
    source_name: Mapped[str] = mapped_column(String(200), nullable=False)
    author: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(32), index=True, nullable=False)
    tags: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    sentiment: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    sentiment_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    impact_score: Mapped[float] = mapped_column(Float, nullable=False, default=5.0)
    published_at: Mapped[datetime] = mapped_column(UTCDateTime, index=True, nullable=False)
    crawled_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, index=True, nullable=False, default=True)

    @classmethod
    def from_article(cls, article: NewsArticle, crawled_at: datetime) -> "NewsArticleRecord":
        return cls(
            title=article.title,
            summary=article.summary,
            content=article.content,
            url=article.url,
            image_url=article.image_url,
            source=article.source,
            source_name=article.source_name,
            author=article.author,
            category=NewsCategory(article.category).value,
            tags=list(article.tags),
            sentiment=article.sentiment.value if article.sentiment else None,
            sentiment_score=article.sentiment_score,
            impact_score=article.impact_score,
            published_at=article.published_at,
            crawled_at=crawled_at,
            is_active=True,
        )

    def to_article(self) -> NewsArticle:
        return NewsArticle(
            id=self.id,
            title=self.title,
            summary=self.summary,
            content=self.content,
            url=self.url,
            image_url=self.image_url,
            source=self.source,
            source_name=self.source_name,
            author=self.author,
            category=NewsCategory(self.category),
            tags=list(self.tags or []),
            sentiment=SentimentLabel.parse(self.sentiment),
            sentiment_score=self.sentiment_score,
            impact_score=self.impact_score,
            published_at=self.published_at,
            crawled_at=self.crawled_at,
            is_active=self.is_active,
        )
