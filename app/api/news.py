"""
News API Endpoints

Serves the dashboard's news feed, its filter facets and stats, and lets the
dashboard trigger an aggregation run.
"""

from datetime import datetime
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ..config import settings
from ..db.news_store import NewsStore, NewsStoreError
from ..db.session import get_news_store
from ..services.news_fetcher.models import NewsArticle, NewsFilters
from ..services.news_fetcher.query import NewsQueryService
from ..services.news_fetcher.rate_limiter import get_rate_limiter
from ..services.news_fetcher.service import NewsAggregationError, NewsFetcherService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/news")


# =============================================================================
# Response Models
# =============================================================================


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class NewsArticleOut(CamelModel):
    """Article as shown in the feed."""
    id: Optional[int] = None
    title: str
    summary: Optional[str] = None
    content: Optional[str] = None
    url: str
    image_url: Optional[str] = Field(None, alias="imageUrl")
    source: str
    source_name: str = Field(..., alias="sourceName")
    author: Optional[str] = None
    category: str
    tags: List[str] = []
    sentiment: Optional[str] = None
    sentiment_score: Optional[float] = Field(None, alias="sentimentScore")
    impact_score: float = Field(..., alias="impactScore")
    published_at: datetime = Field(..., alias="publishedAt")
    crawled_at: Optional[datetime] = Field(None, alias="crawledAt")
    is_active: bool = Field(True, alias="isActive")

    @classmethod
    def from_article(cls, article: NewsArticle) -> "NewsArticleOut":
        return cls(
            id=article.id,
            title=article.title,
            summary=article.summary,
            content=article.content,
            url=article.url,
            image_url=article.image_url,
            source=article.source,
            source_name=article.source_name,
            author=article.author,
            category=article.category.value,
            tags=list(article.tags),
            sentiment=article.sentiment.value if article.sentiment else None,
            sentiment_score=article.sentiment_score,
            impact_score=article.impact_score,
            published_at=article.published_at,
            crawled_at=article.crawled_at,
            is_active=article.is_active,
        )


class NewsResponse(CamelModel):
    """One page of the news feed."""
    articles: List[NewsArticleOut]
    total: int
    page: int
    page_size: int = Field(..., alias="pageSize")
    has_more: bool = Field(..., alias="hasMore")


class FacetOut(CamelModel):
    id: str
    name: str
    display_name: str = Field(..., alias="displayName")


class NewsStatsOut(CamelModel):
    total_articles: int = Field(..., alias="totalArticles")
    sources_count: int = Field(..., alias="sourcesCount")
    categories_count: int = Field(..., alias="categoriesCount")
    last_update: datetime = Field(..., alias="lastUpdate")


class FetchResult(BaseModel):
    """Result of a triggered aggregation run."""
    success: bool
    message: Optional[str] = None


# =============================================================================
# Endpoints
# =============================================================================


@router.get("", response_model=NewsResponse)
async def get_news(
    search: Optional[str] = None,
    categories: Optional[List[str]] = Query(None),
    sources: Optional[List[str]] = Query(None),
    sentiment: Optional[str] = None,
    date_from: Optional[datetime] = Query(None, alias="dateFrom"),
    date_to: Optional[datetime] = Query(None, alias="dateTo"),
    sort: str = "publishedAt",
    direction: str = "desc",
    page: int = Query(1, ge=1),
    page_size: int = Query(
        settings.news_default_page_size,
        ge=1,
        le=settings.news_max_page_size,
        alias="pageSize",
    ),
    store: NewsStore = Depends(get_news_store),
):
    """Get a filtered, sorted page of active articles."""
    filters = NewsFilters(
        sources=sources or [],
        categories=categories or [],
        sentiment=sentiment,
        date_from=date_from,
        date_to=date_to,
        search=search or None,
    )

    try:
        result = await NewsQueryService(store).get_news(
            filters=filters,
            sort=sort,
            direction=direction,
            page=page,
            page_size=page_size,
        )
    except NewsStoreError as e:
        logger.error(f"Error fetching news: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return NewsResponse(
        articles=[NewsArticleOut.from_article(a) for a in result.articles],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        has_more=result.has_more,
    )


@router.get("/categories", response_model=List[FacetOut])
async def get_categories(store: NewsStore = Depends(get_news_store)):
    """Categories present among active articles."""
    try:
        entries = await NewsQueryService(store).get_categories()
    except NewsStoreError as e:
        logger.error(f"Error fetching news categories: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return [FacetOut(id=e.id, name=e.name, display_name=e.display_name) for e in entries]


@router.get("/sources", response_model=List[FacetOut])
async def get_sources(store: NewsStore = Depends(get_news_store)):
    """Sources present among active articles."""
    try:
        entries = await NewsQueryService(store).get_sources()
    except NewsStoreError as e:
        logger.error(f"Error fetching news sources: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return [FacetOut(id=e.id, name=e.name, display_name=e.display_name) for e in entries]


@router.get("/stats", response_model=NewsStatsOut)
async def get_stats(store: NewsStore = Depends(get_news_store)):
    """Article, source and category counts plus the last crawl time."""
    try:
        stats = await NewsQueryService(store).get_news_stats()
    except NewsStoreError as e:
        logger.error(f"Error fetching news stats: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return NewsStatsOut(
        total_articles=stats.total_articles,
        sources_count=stats.sources_count,
        categories_count=stats.categories_count,
        last_update=stats.last_update,
    )


@router.post("/fetch", response_model=FetchResult)
async def trigger_news_fetch(store: NewsStore = Depends(get_news_store)):
    """Run one aggregation and wait for it to finish."""
    service = NewsFetcherService(store=store, rate_limiter=get_rate_limiter())

    try:
        await service.aggregate_all_news()
    except NewsAggregationError as e:
        logger.error(f"Error in news aggregation: {e}")
        return JSONResponse(
            status_code=503,
            content=FetchResult(success=False, message=str(e)).model_dump(),
        )
    finally:
        await service.close()

    summary = service.last_run
    message = None
    if summary is not None:
        message = f"Fetched {summary.fetched} articles, {summary.inserted} new"
    return FetchResult(success=True, message=message)
