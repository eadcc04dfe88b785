from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

import app.api.news as news_api
from app.config import settings
from app.db.session import get_news_store
from app.main import app
from app.services.news_fetcher.models import NewsArticle
from app.services.news_fetcher.rate_limiter import get_rate_limiter
from app.services.news_fetcher.service import AggregationSummary, NewsAggregationError

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

ARTICLES = [
    NewsArticle(
        title="SEC opens review of bitcoin ETF",
        url="https://example.com/sec-etf",
        source="rss",
        source_name="CoinTelegraph",
        category="regulation",
        sentiment="negative",
        sentiment_score=-0.7,
        impact_score=8,
        published_at=BASE_TIME,
    ),
    NewsArticle(
        title="Liquidity returns to DeFi",
        summary="Lending pools refill",
        url="https://example.com/defi",
        source="cryptopanic",
        source_name="CoinDesk",
        category="defi",
        impact_score=4,
        published_at=BASE_TIME - timedelta(hours=1),
    ),
    NewsArticle(
        title="NFT floor prices steady",
        url="https://example.com/nft",
        source="sample",
        source_name="AIForecast Hub",
        category="nft",
        sentiment="neutral",
        sentiment_score=0.0,
        impact_score=5,
        published_at=BASE_TIME - timedelta(hours=2),
    ),
]


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(settings, "database_url", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setattr("app.main.setup_logging", MagicMock())
    with TestClient(app) as test_client:
        yield test_client


def seed(client: TestClient):
    store = client.portal.call(get_news_store)
    for article in ARTICLES:
        client.portal.call(store.insert, article)
    return store


def fake_fetcher(monkeypatch, **behaviour):
    service = MagicMock()
    service.aggregate_all_news = AsyncMock(**behaviour)
    service.close = AsyncMock()
    service.last_run = AggregationSummary(started_at=BASE_TIME, fetched=9, inserted=4, duplicates=5)
    monkeypatch.setattr("app.api.news.NewsFetcherService", MagicMock(return_value=service))
    return service


class TestNewsEndpoint:

    def test_empty_feed(self, client):
        resp = client.get("/api/news")
        assert resp.status_code == 200
        assert resp.json() == {
            "articles": [],
            "total": 0,
            "page": 1,
            "pageSize": settings.news_default_page_size,
            "hasMore": False,
        }

    def test_articles_are_camel_case(self, client):
        seed(client)
        resp = client.get("/api/news")
        assert resp.status_code == 200

        data = resp.json()
        assert data["total"] == 3
        first = data["articles"][0]
        assert first["title"] == "SEC opens review of bitcoin ETF"
        assert first["sourceName"] == "CoinTelegraph"
        assert first["impactScore"] == 8
        assert first["sentimentScore"] == -0.7
        assert first["isActive"] is True
        assert isinstance(first["id"], int)
        assert "publishedAt" in first
        assert "crawledAt" in first

    def test_filters(self, client):
        seed(client)

        resp = client.get("/api/news", params={"categories": ["defi", "nft"]})
        assert [a["url"] for a in resp.json()["articles"]] == [
            "https://example.com/defi",
            "https://example.com/nft",
        ]

        resp = client.get("/api/news", params={"sources": "rss"})
        assert resp.json()["total"] == 1

        resp = client.get("/api/news", params={"search": "lending"})
        assert [a["url"] for a in resp.json()["articles"]] == ["https://example.com/defi"]

        resp = client.get("/api/news", params={"sentiment": ""})
        assert [a["url"] for a in resp.json()["articles"]] == ["https://example.com/defi"]

        resp = client.get(
            "/api/news",
            params={"dateFrom": (BASE_TIME - timedelta(minutes=90)).isoformat()},
        )
        assert resp.json()["total"] == 2

    def test_sort_and_pagination(self, client):
        seed(client)

        resp = client.get("/api/news", params={"sort": "impact", "direction": "asc", "page": 2, "pageSize": 2})
        data = resp.json()
        assert [a["impactScore"] for a in data["articles"]] == [8]
        assert data["page"] == 2
        assert data["pageSize"] == 2
        assert data["hasMore"] is False

        resp = client.get("/api/news", params={"pageSize": 2})
        assert resp.json()["hasMore"] is True

    def test_unknown_sort_falls_back(self, client):
        seed(client)
        resp = client.get("/api/news", params={"sort": "random"})
        assert resp.status_code == 200
        assert resp.json()["articles"][0]["url"] == "https://example.com/sec-etf"

    def test_invalid_paging_rejected(self, client):
        assert client.get("/api/news", params={"page": 0}).status_code == 422
        assert client.get("/api/news", params={"pageSize": settings.news_max_page_size + 1}).status_code == 422


class TestFacetEndpoints:

    def test_categories(self, client):
        seed(client)
        resp = client.get("/api/news/categories")
        assert resp.status_code == 200
        assert resp.json() == [
            {"id": "defi", "name": "defi", "displayName": "Defi"},
            {"id": "nft", "name": "nft", "displayName": "Nft"},
            {"id": "regulation", "name": "regulation", "displayName": "Regulation"},
        ]

    def test_sources(self, client):
        seed(client)
        resp = client.get("/api/news/sources")
        assert [s["displayName"] for s in resp.json()] == ["CoinDesk", "CoinTelegraph", "AIForecast Hub"]

    def test_stats(self, client):
        store = seed(client)
        client.portal.call(store.set_active, "https://example.com/nft", False)

        resp = client.get("/api/news/stats")
        assert resp.status_code == 200
        data = resp.json()
        assert data["totalArticles"] == 2
        assert data["sourcesCount"] == 2
        assert data["categoriesCount"] == 2
        assert "lastUpdate" in data


class TestFetchEndpoint:

    def test_fetch_success(self, client, monkeypatch):
        service = fake_fetcher(monkeypatch)

        resp = client.post("/api/news/fetch")

        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Fetched 9 articles, 4 new"}
        service.aggregate_all_news.assert_awaited_once()
        service.close.assert_awaited_once()

    def test_fetch_failure(self, client, monkeypatch):
        service = fake_fetcher(monkeypatch, side_effect=NewsAggregationError("store unreachable"))

        resp = client.post("/api/news/fetch")

        assert resp.status_code == 503
        assert resp.json() == {"success": False, "message": "store unreachable"}
        service.close.assert_awaited_once()

    def test_runs_share_rate_limiter(self, client, monkeypatch):
        fake_fetcher(monkeypatch)

        client.post("/api/news/fetch")
        client.post("/api/news/fetch")

        calls = news_api.NewsFetcherService.call_args_list
        assert len(calls) == 2
        assert calls[0].kwargs["rate_limiter"] is calls[1].kwargs["rate_limiter"]
        assert calls[0].kwargs["rate_limiter"] is get_rate_limiter()


class TestHealth:

    def test_healthz(self, client):
        resp = client.get("/healthz")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert data["store"] == {"status": "healthy"}
        assert set(data["providers"]) == {"cryptopanic", "newsapi", "cryptonews", "rss"}

    def test_root(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.json()["health"] == "/healthz"
