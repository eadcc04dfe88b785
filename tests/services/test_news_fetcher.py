"""
Tests for the News Fetcher Service

Covers the aggregation run: concurrent fetch, sample fallback, URL
deduplication, failure isolation and the end-to-end default wiring.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from app.config import Settings
from app.db.models import NewsArticleRecord
from app.db.news_store import NewsStoreError
from app.services.news_fetcher.models import NewsArticle, SourceResult
from app.services.news_fetcher.rate_limiter import RateLimiter
from app.services.news_fetcher.samples import SAMPLE_STORIES
from app.services.news_fetcher.service import (
    AggregationSummary,
    NewsAggregationError,
    NewsFetcherService,
)
from app.services.news_fetcher.sources import NewsSourceFetcher, SampleNewsSource

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_settings(**overrides) -> Settings:
    fields = {
        "cryptopanic_api_key": "",
        "news_api_key": "",
        "crypto_news_api_key": "",
        "news_min_request_interval_ms": 0,
    }
    fields.update(overrides)
    return Settings(_env_file=None, **fields)


class StaticSource(NewsSourceFetcher):
    """Source returning a fixed list, optionally after a delay."""

    def __init__(self, name, articles=None, error=None, delay=0.0):
        super().__init__(config=make_settings())
        self.name = name
        self._articles = articles or []
        self._error = error
        self._delay = delay

    async def _fetch(self) -> SourceResult:
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return SourceResult(source=self.name, articles=list(self._articles))


def sample_source() -> SampleNewsSource:
    return SampleNewsSource(clock=lambda: FIXED_NOW, config=make_settings())


def mock_store() -> MagicMock:
    store = MagicMock()
    store.ping = AsyncMock(return_value=None)
    store.find_by_url = AsyncMock(return_value=None)
    store.insert = AsyncMock(return_value=True)
    return store


class TestAggregationSummary:

    def test_duration_before_end(self):
        assert AggregationSummary(started_at=FIXED_NOW).duration_seconds == 0.0


class TestNewsFetcherService:

    def test_default_sources_initialized(self):
        service = NewsFetcherService(store=mock_store(), config=make_settings())
        assert [s.name for s in service.sources] == ["cryptopanic", "newsapi", "cryptonews"]

    @pytest.mark.asyncio
    async def test_no_sources_falls_back_to_sample(self, memory_store):
        async with memory_store() as store:
            service = NewsFetcherService(store=store, sources=[], sample_source=sample_source())

            await service.aggregate_all_news()

            assert await store.count_active([]) == len(SAMPLE_STORIES)
            assert service.last_run.used_sample_fallback is True
            assert service.last_run.inserted == 6

    @pytest.mark.asyncio
    async def test_empty_sources_fall_back_to_sample(self, memory_store):
        sources = [StaticSource(name) for name in ("cryptopanic", "newsapi", "cryptonews")]
        async with memory_store() as store:
            service = NewsFetcherService(store=store, sources=sources, sample_source=sample_source())

            await service.aggregate_all_news()

            assert await store.count_active([NewsArticleRecord.source == "sample"]) == 6
            assert service.last_run.source_errors == {}

    @pytest.mark.asyncio
    async def test_failed_sources_fall_back_to_sample(self, memory_store):
        sources = [
            StaticSource("cryptopanic", error=RuntimeError("down")),
            StaticSource("newsapi", error=httpx.ConnectError("refused")),
        ]
        async with memory_store() as store:
            service = NewsFetcherService(store=store, sources=sources, sample_source=sample_source())

            await service.aggregate_all_news()

            assert await store.count_active([]) == 6
            assert set(service.last_run.source_errors) == {"cryptopanic", "newsapi"}

    @pytest.mark.asyncio
    async def test_merges_sources_and_skips_sample(self, memory_store, make_article):
        sources = [
            StaticSource("a", [make_article(1), make_article(2)]),
            StaticSource("b", [make_article(3)]),
        ]
        async with memory_store() as store:
            service = NewsFetcherService(store=store, sources=sources, sample_source=sample_source())

            await service.aggregate_all_news()

            assert await store.count_active([]) == 3
            assert await store.count_active([NewsArticleRecord.source == "sample"]) == 0
            assert service.last_run.used_sample_fallback is False

    @pytest.mark.asyncio
    async def test_duplicate_urls_stored_once(self, memory_store, make_article):
        shared = make_article(1)
        sources = [
            StaticSource("a", [shared, make_article(2)]),
            StaticSource("b", [make_article(1, title="Same link, other title")]),
        ]
        async with memory_store() as store:
            service = NewsFetcherService(store=store, sources=sources)

            await service.aggregate_all_news()
            assert service.last_run.inserted == 2
            assert service.last_run.duplicates == 1

            await service.aggregate_all_news()
            assert service.last_run.inserted == 0
            assert service.last_run.duplicates == 3
            assert await store.count_active([]) == 2

            stored = await store.find_by_url(shared.url)
            assert stored.title == shared.title

    @pytest.mark.asyncio
    async def test_article_failure_does_not_abort_run(self, make_article):
        store = mock_store()
        store.insert = AsyncMock(side_effect=[True, RuntimeError("disk full"), True])
        sources = [StaticSource("a", [make_article(1), make_article(2), make_article(3)])]
        service = NewsFetcherService(store=store, sources=sources)

        await service.aggregate_all_news()

        assert store.insert.await_count == 3
        assert service.last_run.inserted == 2
        assert service.last_run.failed == 1

    @pytest.mark.asyncio
    async def test_insert_race_counts_as_duplicate(self, make_article):
        store = mock_store()
        store.insert = AsyncMock(return_value=False)
        service = NewsFetcherService(store=store, sources=[StaticSource("a", [make_article(1)])])

        await service.aggregate_all_news()

        assert service.last_run.inserted == 0
        assert service.last_run.duplicates == 1

    @pytest.mark.asyncio
    async def test_slow_source_times_out(self, memory_store, make_article):
        sources = [
            StaticSource("slow", [make_article(1)], delay=5),
            StaticSource("fast", [make_article(2)]),
        ]
        async with memory_store() as store:
            service = NewsFetcherService(store=store, sources=sources, adapter_timeout_seconds=0.05)

            await service.aggregate_all_news()

            assert service.last_run.source_errors == {"slow": "timed out"}
            assert await store.count_active([]) == 1
            assert await store.find_by_url(make_article(2).url) is not None

    @pytest.mark.asyncio
    async def test_unexpected_source_exception_is_isolated(self, memory_store, make_article):
        broken = MagicMock()
        broken.name = "broken"
        broken.fetch = AsyncMock(side_effect=ValueError("bad payload"))
        broken.close = AsyncMock()
        sources = [broken, StaticSource("ok", [make_article(1)])]

        async with memory_store() as store:
            service = NewsFetcherService(store=store, sources=sources)

            await service.aggregate_all_news()

            assert service.last_run.source_errors == {"broken": "bad payload"}
            assert service.last_run.inserted == 1

    @pytest.mark.asyncio
    async def test_unreachable_store_raises(self, make_article):
        store = mock_store()
        store.ping = AsyncMock(side_effect=NewsStoreError("connection refused"))
        source = StaticSource("a", [make_article(1)])
        source.fetch = AsyncMock()
        service = NewsFetcherService(store=store, sources=[source])

        with pytest.raises(NewsAggregationError):
            await service.aggregate_all_news()

        source.fetch.assert_not_awaited()
        store.insert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_close(self):
        source = MagicMock()
        source.close = AsyncMock()
        sample = MagicMock()
        sample.close = AsyncMock()
        service = NewsFetcherService(store=mock_store(), sources=[source], sample_source=sample)

        await service.close()

        source.close.assert_awaited_once()
        sample.close.assert_awaited_once()


class TestIntegration:
    """Default wiring with no credentials, HTTP served by a mock transport."""

    @staticmethod
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "cryptopanic.com":
            return httpx.Response(200, json={"results": []})
        if request.url.host == "cointelegraph.com":
            items = "".join(
                f"<item><title>Bitcoin price story {i}</title>"
                f"<link>https://cointelegraph.com/news/story-{i}</link>"
                f"<description>Market recap {i}</description>"
                f"<pubDate>Wed, 01 May 2024 0{i}:00:00 GMT</pubDate></item>"
                for i in range(3)
            )
            return httpx.Response(200, text=f"<rss version=\"2.0\"><channel>{items}</channel></rss>")
        return httpx.Response(404)

    @pytest.mark.asyncio
    async def test_unconfigured_run(self, memory_store):
        client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        async with memory_store() as store:
            service = NewsFetcherService(
                store=store,
                config=make_settings(),
                client=client,
                sample_source=sample_source(),
            )

            await service.aggregate_all_news()

            rss_rows = await store.query_active(
                [NewsArticleRecord.source == "rss"],
                [NewsArticleRecord.published_at.desc()],
                limit=50,
                offset=0,
            )
            assert len(rss_rows) == 3
            assert {a.source_name for a in rss_rows} == {"CoinTelegraph"}
            assert {a.impact_score for a in rss_rows} == {6.0}
            assert {a.category.value for a in rss_rows} == {"market"}
            assert rss_rows[0].url == "https://cointelegraph.com/news/story-2"

            # The curated source has no token and contributes the sample set
            assert await store.count_active([NewsArticleRecord.source == "sample"]) == 6
            assert await store.count_active([]) == 9
            assert service.last_run.source_errors == {}

            await service.aggregate_all_news()
            assert service.last_run.inserted == 0
            assert await store.count_active([]) == 9

        await client.aclose()

    @pytest.mark.asyncio
    async def test_back_to_back_runs_keep_request_spacing(self, memory_store):
        now = [0.0]

        async def advance(seconds):
            now[0] += seconds

        limiter = RateLimiter(1.0, clock=lambda: now[0], sleep=advance)
        hits = []

        def handler(request):
            if request.url.host == "cryptopanic.com":
                hits.append(now[0])
            return self.handler(request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        async with memory_store() as store:
            for _ in range(2):
                service = NewsFetcherService(
                    store=store,
                    config=make_settings(),
                    client=client,
                    rate_limiter=limiter,
                    sample_source=sample_source(),
                )
                await service.aggregate_all_news()
                await service.close()

        await client.aclose()

        assert len(hits) == 2
        assert hits[1] - hits[0] >= 1.0

    @pytest.mark.asyncio
    async def test_articles_are_valid(self, memory_store):
        client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        async with memory_store() as store:
            service = NewsFetcherService(store=store, config=make_settings(), client=client)
            await service.aggregate_all_news()

            rows = await store.query_active([], [NewsArticleRecord.id.asc()], limit=50, offset=0)

        await client.aclose()

        assert rows
        for article in rows:
            assert isinstance(article, NewsArticle)
            assert 1 <= article.impact_score <= 10
            assert article.crawled_at is not None
            assert article.is_active
