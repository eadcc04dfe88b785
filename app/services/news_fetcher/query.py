"""
News Query Service

Filtered, sorted, paginated reads over active articles, plus the facet lists
and feed statistics shown by the dashboard.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy import or_
from sqlalchemy.sql.elements import ColumnElement

from ...db.models import NewsArticleRecord
from ...db.news_store import NewsStore

from .models import (
    FacetEntry,
    NewsFilters,
    NewsPage,
    NewsSortOption,
    NewsStats,
    SortDirection,
    display_name,
)


SORT_COLUMNS: Dict[NewsSortOption, Any] = {
    NewsSortOption.PUBLISHED_AT: NewsArticleRecord.published_at,
    NewsSortOption.IMPACT: NewsArticleRecord.impact_score,
    NewsSortOption.SENTIMENT: NewsArticleRecord.sentiment_score,
    NewsSortOption.SOURCE: NewsArticleRecord.source,
}


def build_conditions(filters: Optional[NewsFilters]) -> List[ColumnElement[bool]]:
    """Translate filters into predicates, all combined with AND by the store."""
    if filters is None:
        return []

    record = NewsArticleRecord
    conditions: List[ColumnElement[bool]] = []

    if filters.sources:
        conditions.append(record.source.in_(filters.sources))

    if filters.categories:
        conditions.append(record.category.in_(filters.categories))

    if filters.sentiment is not None:
        if filters.sentiment == "":
            conditions.append(or_(record.sentiment == "", record.sentiment.is_(None)))
        else:
            conditions.append(record.sentiment == filters.sentiment)

    if filters.date_from is not None:
        conditions.append(record.published_at >= filters.date_from)

    if filters.date_to is not None:
        conditions.append(record.published_at <= filters.date_to)

    if filters.search:
        conditions.append(or_(
            record.title.icontains(filters.search, autoescape=True),
            record.summary.icontains(filters.search, autoescape=True),
        ))

    return conditions


def resolve_sort(
    sort: Union[NewsSortOption, str, None],
    direction: Union[SortDirection, str, None],
) -> Tuple[NewsSortOption, SortDirection]:
    """Unknown sort keys fall back to newest first; any direction but desc is asc."""
    try:
        sort_option = NewsSortOption(sort)
    except ValueError:
        return NewsSortOption.PUBLISHED_AT, SortDirection.DESC

    if isinstance(direction, SortDirection):
        return sort_option, direction
    if direction is None or str(direction).lower() == SortDirection.DESC.value:
        return sort_option, SortDirection.DESC
    return sort_option, SortDirection.ASC


def build_order(sort_option: NewsSortOption, direction: SortDirection) -> List[Any]:
    column = SORT_COLUMNS[sort_option]
    ordered = column.desc() if direction == SortDirection.DESC else column.asc()
    # Primary key tiebreak keeps pages stable
    tiebreak = NewsArticleRecord.id.desc() if direction == SortDirection.DESC else NewsArticleRecord.id.asc()
    return [ordered, tiebreak]


class NewsQueryService:
    """Read side of the news feed."""

    def __init__(self, store: NewsStore):
        self._store = store

    async def get_news(
        self,
        filters: Optional[NewsFilters] = None,
        sort: Union[NewsSortOption, str] = NewsSortOption.PUBLISHED_AT,
        direction: Union[SortDirection, str] = SortDirection.DESC,
        page: int = 1,
        page_size: int = 20,
    ) -> NewsPage:
        """
        Get one page of active articles.

        Args:
            filters: Source/category inclusion lists, sentiment, date range, search
            sort: publishedAt, impact, sentiment or source
            direction: asc or desc
            page: 1-based page number
            page_size: Articles per page

        Returns:
            The page with the total match count and whether more pages follow
        """
        page = max(1, page)
        page_size = max(1, page_size)
        offset = (page - 1) * page_size

        conditions = build_conditions(filters)
        sort_option, sort_direction = resolve_sort(sort, direction)

        total = await self._store.count_active(conditions)
        articles = await self._store.query_active(
            conditions,
            build_order(sort_option, sort_direction),
            limit=page_size,
            offset=offset,
        )

        return NewsPage(
            articles=articles,
            total=total,
            page=page,
            page_size=page_size,
            has_more=offset + page_size < total,
        )

    async def get_categories(self) -> List[FacetEntry]:
        """Distinct categories present among active articles."""
        rows = await self._store.distinct_values(NewsArticleRecord.category)
        return [
            FacetEntry(id=category, name=category, display_name=display_name(category))
            for (category,) in rows
        ]

    async def get_sources(self) -> List[FacetEntry]:
        """Distinct sources present among active articles, one entry per source id."""
        rows = await self._store.distinct_values(
            NewsArticleRecord.source,
            NewsArticleRecord.source_name,
        )

        entries: Dict[str, FacetEntry] = {}
        for source, source_name in rows:
            if source not in entries:
                entries[source] = FacetEntry(
                    id=source,
                    name=source,
                    display_name=source_name or display_name(source),
                )
        return list(entries.values())

    async def get_news_stats(self) -> NewsStats:
        """
        Feed statistics.

        ``last_update`` is the newest crawl time over all articles, including
        inactive ones; it is "now" when nothing has been stored yet.
        """
        total = await self._store.count_active([])
        sources = await self.get_sources()
        categories = await self.get_categories()
        latest: Optional[datetime] = await self._store.most_recent(NewsArticleRecord.crawled_at)

        return NewsStats(
            total_articles=total,
            sources_count=len(sources),
            categories_count=len(categories),
            last_update=latest or datetime.now(timezone.utc),
        )
