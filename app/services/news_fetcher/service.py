"""
News Fetcher Service

Runs one aggregation: fan out to the live sources concurrently, merge their
articles, fall back to the sample set when everything came back empty, and
insert whatever the store does not already have.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

import httpx

from ...config import Settings, settings as default_settings
from ...db.news_store import NewsStore, NewsStoreError

from .models import NewsArticle, SourceResult
from .rate_limiter import RateLimiter, get_rate_limiter
from .sources import NewsSourceFetcher, SampleNewsSource, build_live_sources

logger = logging.getLogger(__name__)


class NewsAggregationError(Exception):
    """An aggregation run could not complete at all (e.g. store unreachable)."""
    pass


@dataclass
class AggregationSummary:
    """Counts from one aggregation run, kept for logging and status display."""
    started_at: datetime
    ended_at: Optional[datetime] = None
    fetched: int = 0
    inserted: int = 0
    duplicates: int = 0
    failed: int = 0
    used_sample_fallback: bool = False
    source_errors: Dict[str, str] = field(default_factory=dict)

    @property
    def duration_seconds(self) -> float:
        if self.ended_at is None:
            return 0.0
        return (self.ended_at - self.started_at).total_seconds()


class NewsFetcherService:
    """
    Aggregation pipeline.

    Orchestrates:
    - Concurrent fetch from the live sources (each bounded by a timeout)
    - Sample fallback when no source returned anything
    - Check-then-insert deduplication by URL
    """

    def __init__(
        self,
        store: NewsStore,
        sources: Optional[Sequence[NewsSourceFetcher]] = None,
        sample_source: Optional[SampleNewsSource] = None,
        rate_limiter: Optional[RateLimiter] = None,
        config: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        adapter_timeout_seconds: Optional[float] = None,
    ):
        """
        Initialize the news fetcher service.

        Args:
            store: Article store used for dedup checks and inserts
            sources: Live sources (defaults to CryptoPanic, NewsAPI, CryptoNews)
            sample_source: Source used when every live source is empty
            rate_limiter: Per-provider limiter for the default sources
                (defaults to the process-wide limiter)
            config: Settings override
            client: Shared HTTP client for the default sources
            adapter_timeout_seconds: Upper bound for each live source
        """
        self._settings = config or default_settings
        self._store = store
        self._rate_limiter = rate_limiter or get_rate_limiter(self._settings)
        self._sample_source = sample_source or SampleNewsSource(config=self._settings)

        if sources is None:
            sources = build_live_sources(
                config=self._settings,
                rate_limiter=self._rate_limiter,
                client=client,
                sample_source=self._sample_source,
            )
        self._sources: List[NewsSourceFetcher] = list(sources)
        self._adapter_timeout = adapter_timeout_seconds or self._settings.news_adapter_timeout_seconds

        self.last_run: Optional[AggregationSummary] = None

    @property
    def sources(self) -> List[NewsSourceFetcher]:
        return list(self._sources)

    async def aggregate_all_news(self) -> None:
        """
        Run one aggregation.

        Source and per-article failures are logged and absorbed. Raises
        NewsAggregationError only when the store cannot be reached.
        """
        summary = AggregationSummary(started_at=datetime.now(timezone.utc))
        logger.info("Starting news aggregation from all sources")

        try:
            await self._store.ping()
        except NewsStoreError as e:
            logger.error(f"News aggregation aborted: {e}")
            raise NewsAggregationError(str(e)) from e

        try:
            articles, results = await self._fetch_all()
            for result in results:
                if not result.ok:
                    summary.source_errors[result.source] = result.error or "unknown error"

            if not articles:
                logger.info("No articles from external sources, adding sample news data")
                sample = await self._sample_source.fetch()
                articles = list(sample.articles)
                summary.used_sample_fallback = True

            summary.fetched = len(articles)
            logger.info(f"Fetched {summary.fetched} articles from all sources")

            summary.inserted, summary.duplicates, summary.failed = await self._store_articles(articles)

        finally:
            summary.ended_at = datetime.now(timezone.utc)
            self.last_run = summary

        logger.info(
            f"Inserted {summary.inserted} new articles into database "
            f"({summary.duplicates} duplicates, {summary.failed} failed) "
            f"in {summary.duration_seconds:.1f}s"
        )

    async def _fetch_all(self) -> Tuple[List[NewsArticle], List[SourceResult]]:
        """Fetch every live source concurrently and concatenate their articles."""
        raw_results = await asyncio.gather(
            *(self._fetch_source(source) for source in self._sources),
            return_exceptions=True,
        )

        results: List[SourceResult] = []
        articles: List[NewsArticle] = []
        for source, result in zip(self._sources, raw_results):
            if isinstance(result, Exception):
                logger.error(f"Source fetch error from {source.name}: {result!r}")
                result = SourceResult.failure(source.name, str(result) or result.__class__.__name__)
            results.append(result)
            articles.extend(result.articles)

        return articles, results

    async def _fetch_source(self, source: NewsSourceFetcher) -> SourceResult:
        try:
            return await asyncio.wait_for(source.fetch(), timeout=self._adapter_timeout)
        except asyncio.TimeoutError:
            logger.error(f"{source.name} did not respond within {self._adapter_timeout:.0f}s")
            return SourceResult.failure(source.name, "timed out")

    async def _store_articles(self, articles: List[NewsArticle]) -> Tuple[int, int, int]:
        """Insert articles not yet stored. Returns (inserted, duplicates, failed)."""
        inserted = duplicates = failed = 0

        for article in articles:
            try:
                if await self._store.find_by_url(article.url) is not None:
                    duplicates += 1
                    continue

                # A concurrent run may win the race; the unique URL rejects the loser
                if await self._store.insert(article):
                    inserted += 1
                else:
                    duplicates += 1

            except Exception as e:
                failed += 1
                logger.error(f"Error inserting article {article.url}: {e}")

        return inserted, duplicates, failed

    async def close(self):
        """Clean up HTTP clients."""
        for source in self._sources:
            await source.close()
        await self._sample_source.close()
