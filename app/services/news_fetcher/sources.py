"""
News Data Sources

One fetcher per provider, each mapping provider records to NewsArticle:
- CryptoPanic community aggregator (vote-weighted impact)
- NewsAPI.org generic news search (falls back to RSS without a key)
- CryptoNews API curated feed (falls back to sample data without a key)
- RSS feed (falls back to sample data when the feed cannot be read)
- Sample data (fixed illustrative set)

fetch() never raises; failures come back as a SourceResult with an error.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, List, Optional
from xml.etree import ElementTree

import httpx

from ...config import Settings, settings as default_settings
from .classifier import classify, impact_score_from_votes, sentiment_score
from .models import NewsArticle, SentimentLabel, SourceResult, VoteCounts
from .rate_limiter import RateLimiter, get_rate_limiter
from .samples import build_sample_articles

logger = logging.getLogger(__name__)

RSS_SUMMARY_LENGTH = 200
RSS_IMPACT_SCORE = 6.0
NEWS_API_IMPACT_SCORE = 5.0
CRYPTO_NEWS_API_IMPACT_SCORE = 6.0
NEWS_API_QUERY = "(cryptocurrency OR bitcoin OR ethereum OR crypto) NOT scam"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp, treating naive values as UTC."""
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class NewsSourceFetcher(ABC):
    """Base class for news source fetchers."""

    name: str = ""
    accept = "application/json"

    def __init__(
        self,
        config: Optional[Settings] = None,
        rate_limiter: Optional[RateLimiter] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = config or default_settings
        self._rate_limiter = rate_limiter or get_rate_limiter(self._settings)
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._settings.news_request_timeout_seconds,
                follow_redirects=True,
            )
            self._owns_client = True
        return self._client

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Accept": self.accept,
            "User-Agent": self._settings.news_user_agent,
        }

    async def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        """Rate-limited GET that raises on non-2xx responses."""
        await self._rate_limiter.enforce(self.name)
        client = await self._get_client()
        response = await client.get(url, params=params, headers=self.headers)
        response.raise_for_status()
        return response

    async def close(self):
        """Close the HTTP client if this fetcher created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def fetch(self) -> SourceResult:
        """Fetch articles, converting any failure into an empty result."""
        try:
            result = await self._fetch()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"{self.name} HTTP error: {status} {e.response.reason_phrase}")
            return SourceResult.failure(self.name, f"HTTP {status}")
        except httpx.HTTPError as e:
            logger.error(f"{self.name} request failed: {e!r}")
            return SourceResult.failure(self.name, f"request failed: {e}")
        except Exception as e:
            logger.error(f"Error fetching from {self.name}: {e!r}")
            return SourceResult.failure(self.name, str(e) or e.__class__.__name__)

        if result.ok:
            logger.info(f"Fetched {len(result.articles)} articles from {result.source}")
        return result

    @abstractmethod
    async def _fetch(self) -> SourceResult:
        """Provider-specific fetch; may raise."""
        pass

    @staticmethod
    def clean_html(text: str) -> str:
        """Remove HTML tags from text."""
        if not text:
            return ""
        clean = re.sub(r"<[^>]+>", " ", text)
        clean = re.sub(r"\s+", " ", clean).strip()
        return clean


class SampleNewsSource(NewsSourceFetcher):
    """Returns the fixed sample set. No I/O."""

    name = "sample"

    def __init__(self, clock: Callable[[], datetime] = utc_now, **kwargs: Any):
        super().__init__(**kwargs)
        self._clock = clock

    async def _fetch(self) -> SourceResult:
        return SourceResult(source=self.name, articles=build_sample_articles(self._clock()))


class RSSSource(NewsSourceFetcher):
    """
    Fetcher for a single RSS 2.0 feed.

    Takes the first ``rss_max_items`` items in document order. Any failure to
    download or parse the feed yields the sample set instead.
    """

    name = "rss"
    accept = "application/rss+xml, application/xml, text/xml"

    def __init__(
        self,
        sample_source: Optional[SampleNewsSource] = None,
        feed_url: Optional[str] = None,
        feed_name: Optional[str] = None,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self._sample_source = sample_source or SampleNewsSource(config=self._settings)
        self.feed_url = feed_url or self._settings.rss_feed_url
        self.feed_name = feed_name or self._settings.rss_feed_name
        self.max_items = self._settings.rss_max_items

    async def fetch(self) -> SourceResult:
        result = await super().fetch()
        if result.ok:
            return result

        logger.warning(f"RSS feed {self.feed_name} unavailable ({result.error}), using sample data")
        fallback = await self._sample_source.fetch()
        return replace(fallback, fallback_for=self.name)

    async def _fetch(self) -> SourceResult:
        response = await self._get(self.feed_url)
        root = ElementTree.fromstring(response.content)

        channel = root.find("channel")
        if channel is None:
            raise ValueError(f"{self.feed_url} is not an RSS 2.0 feed")

        return SourceResult(source=self.name, articles=self._parse_items(channel))

    def _parse_items(self, channel: ElementTree.Element) -> List[NewsArticle]:
        articles: List[NewsArticle] = []
        seen_urls: set = set()
        seen_titles: set = set()

        for item in channel.findall("item")[: self.max_items]:
            title = self._get_text(item, "title")
            url = self._get_text(item, "link")
            if not url:
                guid = self._get_text(item, "guid")
                if guid and guid.startswith(("http://", "https://")):
                    url = guid

            if not title or not url:
                continue
            if url in seen_urls or title in seen_titles:
                continue
            seen_urls.add(url)
            seen_titles.add(title)

            description = self._get_text(item, "description")
            summary = self.clean_html(description)[:RSS_SUMMARY_LENGTH] if description else None

            pub_date = self._get_text(item, "pubDate")
            published_at = self._parse_date(pub_date) if pub_date else utc_now()

            category, tags = classify(title, summary)
            articles.append(NewsArticle(
                title=title,
                summary=summary or None,
                url=url,
                source=self.name,
                source_name=self.feed_name,
                category=category,
                tags=tags,
                impact_score=RSS_IMPACT_SCORE,
                published_at=published_at,
            ))

        return articles

    def _get_text(self, elem: ElementTree.Element, tag: str) -> Optional[str]:
        """Get stripped text content of a child element."""
        child = elem.find(tag)
        if child is not None and child.text:
            text = child.text.strip()
            return text or None
        return None

    def _parse_date(self, date_str: str) -> datetime:
        """Parse an RFC 822 or ISO 8601 date, falling back to now."""
        try:
            dt = parsedate_to_datetime(date_str)
        except (TypeError, ValueError):
            dt = parse_iso_datetime(date_str)

        if dt is None:
            logger.warning(f"Could not parse date: {date_str}")
            return utc_now()
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)


class CryptoPanicSource(NewsSourceFetcher):
    """
    Fetcher for the CryptoPanic community news aggregator.

    Uses the authenticated endpoint when a token is configured, otherwise the
    public (rate limited) one. Vote counts drive the impact score.
    """

    name = "cryptopanic"

    async def _fetch(self) -> SourceResult:
        params: Dict[str, Any] = {"kind": "news", "page": 1}
        if self._settings.has_cryptopanic_key:
            params = {"auth_token": self._settings.cryptopanic_api_key, **params}
        else:
            logger.info("CryptoPanic API key not configured, using public endpoint")

        response = await self._get(f"{self._settings.cryptopanic_base_url}/posts/", params=params)
        data = response.json()

        articles: List[NewsArticle] = []
        for post in data.get("results") or []:
            article = self._map_post(post)
            if article is not None:
                articles.append(article)

        return SourceResult(source=self.name, articles=articles)

    def _map_post(self, post: Dict[str, Any]) -> Optional[NewsArticle]:
        title = post.get("title")
        url = post.get("url")
        published_at = parse_iso_datetime(post.get("published_at"))
        if not title or not url or published_at is None:
            logger.warning(f"Skipping incomplete CryptoPanic post: {post.get('id')}")
            return None

        category, tags = classify(title)
        return NewsArticle(
            title=title,
            url=url,
            source=self.name,
            source_name=(post.get("source") or {}).get("title") or "CryptoPanic",
            category=category,
            tags=tags,
            impact_score=impact_score_from_votes(VoteCounts.from_dict(post.get("votes"))),
            published_at=published_at,
        )


class NewsApiSource(NewsSourceFetcher):
    """
    Fetcher for NewsAPI.org article search.

    Requires an API key; without one the RSS source is used instead.
    """

    name = "newsapi"

    def __init__(self, rss_source: Optional[RSSSource] = None, **kwargs: Any):
        super().__init__(**kwargs)
        self._rss_source = rss_source or RSSSource(config=self._settings, rate_limiter=self._rate_limiter)

    async def fetch(self) -> SourceResult:
        if not self._settings.has_news_api_key:
            logger.info("NewsAPI key not configured, using RSS fallback")
            result = await self._rss_source.fetch()
            return replace(result, fallback_for=result.fallback_for or self.name)
        return await super().fetch()

    async def close(self):
        await self._rss_source.close()
        await super().close()

    async def _fetch(self) -> SourceResult:
        params = {
            "q": NEWS_API_QUERY,
            "language": "en",
            "sortBy": "publishedAt",
            "pageSize": 50,
            "apiKey": self._settings.news_api_key,
        }
        response = await self._get(f"{self._settings.news_api_base_url}/everything", params=params)
        data = response.json()

        articles: List[NewsArticle] = []
        for raw in data.get("articles") or []:
            published_at = parse_iso_datetime(raw.get("publishedAt"))
            if not raw.get("title") or not raw.get("url") or published_at is None:
                continue

            title = raw["title"]
            description = raw.get("description")
            category, tags = classify(title, description)
            articles.append(NewsArticle(
                title=title,
                summary=description,
                content=raw.get("content"),
                url=raw["url"],
                image_url=raw.get("urlToImage"),
                source=self.name,
                source_name=(raw.get("source") or {}).get("name") or "NewsAPI",
                author=raw.get("author"),
                category=category,
                tags=tags,
                impact_score=NEWS_API_IMPACT_SCORE,
                published_at=published_at,
            ))

        return SourceResult(source=self.name, articles=articles)


class CryptoNewsApiSource(NewsSourceFetcher):
    """
    Fetcher for the curated CryptoNews API.

    Requires an API token; without one the sample set is returned. Carries
    provider sentiment through to the article.
    """

    name = "cryptonews"

    def __init__(self, sample_source: Optional[SampleNewsSource] = None, **kwargs: Any):
        super().__init__(**kwargs)
        self._sample_source = sample_source or SampleNewsSource(config=self._settings)

    async def fetch(self) -> SourceResult:
        if not self._settings.has_crypto_news_api_key:
            logger.info("CryptoNews API key not configured, using sample data")
            result = await self._sample_source.fetch()
            return replace(result, fallback_for=self.name)
        return await super().fetch()

    async def _fetch(self) -> SourceResult:
        params = {
            "section": "general",
            "items": 50,
            "token": self._settings.crypto_news_api_key,
        }
        response = await self._get(f"{self._settings.crypto_news_api_base_url}/v1/category", params=params)
        data = response.json()

        articles: List[NewsArticle] = []
        for raw in data.get("data") or []:
            title = raw.get("title")
            url = raw.get("url")
            published_at = parse_iso_datetime(raw.get("published_at"))
            if not title or not url or published_at is None:
                continue

            text = raw.get("text")
            sentiment = SentimentLabel.parse(raw.get("sentiment"))
            category, tags = classify(title, text)
            articles.append(NewsArticle(
                title=title,
                summary=raw.get("summary"),
                content=text,
                url=url,
                image_url=raw.get("image"),
                source=self.name,
                source_name=raw.get("source") or "CryptoNews",
                category=category,
                tags=tags,
                sentiment=sentiment,
                sentiment_score=sentiment_score(sentiment) if sentiment else None,
                impact_score=CRYPTO_NEWS_API_IMPACT_SCORE,
                published_at=published_at,
            ))

        return SourceResult(source=self.name, articles=articles)


def build_live_sources(
    config: Optional[Settings] = None,
    rate_limiter: Optional[RateLimiter] = None,
    client: Optional[httpx.AsyncClient] = None,
    sample_source: Optional[SampleNewsSource] = None,
) -> List[NewsSourceFetcher]:
    """
    Wire the three live sources with their fallbacks, sharing one limiter.

    Returns [CryptoPanic, NewsAPI (-> RSS -> sample), CryptoNews (-> sample)].
    """
    config = config or default_settings
    rate_limiter = rate_limiter or get_rate_limiter(config)
    common: Dict[str, Any] = {"config": config, "rate_limiter": rate_limiter, "client": client}

    sample = sample_source or SampleNewsSource(config=config)
    rss = RSSSource(sample_source=sample, **common)

    return [
        CryptoPanicSource(**common),
        NewsApiSource(rss_source=rss, **common),
        CryptoNewsApiSource(sample_source=sample, **common),
    ]
