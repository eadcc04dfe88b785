"""
News Fetcher Data Models

Defines the canonical article, source results, and query-layer types shared
by the adapters, the aggregator, the store, and the API.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class NewsCategory(str, Enum):
    """Fixed category vocabulary. Every stored article has exactly one."""
    MARKET = "market"
    TECHNOLOGY = "technology"
    REGULATION = "regulation"
    DEFI = "defi"
    NFT = "nft"
    GAMING = "gaming"


class SentimentLabel(str, Enum):
    """Provider-supplied sentiment labels."""
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"

    @classmethod
    def parse(cls, value: Any) -> Optional["SentimentLabel"]:
        """Return the label for an exact provider value, or None if unrecognized."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value)
        except ValueError:
            return None


class NewsSortOption(str, Enum):
    """Sort keys accepted by the query layer."""
    PUBLISHED_AT = "publishedAt"
    IMPACT = "impact"
    SENTIMENT = "sentiment"
    SOURCE = "source"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


def display_name(value: str) -> str:
    """Capitalize the first letter, leaving the rest untouched."""
    if not value:
        return value
    return value[0].upper() + value[1:]


@dataclass
class VoteCounts:
    """Community vote statistics reported by the aggregator API."""
    important: int = 0
    positive: int = 0
    negative: int = 0

    @property
    def total(self) -> int:
        return self.important + self.positive + self.negative

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["VoteCounts"]:
        if not data:
            return None
        return cls(
            important=int(data.get("important") or 0),
            positive=int(data.get("positive") or 0),
            negative=int(data.get("negative") or 0),
        )


@dataclass
class NewsArticle:
    """Canonical article flowing from the adapters to the store."""
    title: str
    url: str  # Deduplication key
    source: str  # Machine identifier of the origin adapter (e.g. "rss")
    source_name: str  # Human-readable origin
    published_at: datetime
    category: NewsCategory = NewsCategory.MARKET
    tags: List[str] = field(default_factory=list)
    summary: Optional[str] = None
    content: Optional[str] = None
    image_url: Optional[str] = None
    author: Optional[str] = None
    sentiment: Optional[SentimentLabel] = None
    sentiment_score: Optional[float] = None  # -1 to 1
    impact_score: float = 5.0  # 1 to 10

    # Set by the store
    id: Optional[int] = None
    crawled_at: Optional[datetime] = None
    is_active: bool = True

    def __post_init__(self):
        if not self.title:
            raise ValueError("title is required")
        if not self.url:
            raise ValueError("url is required")
        if not self.source:
            raise ValueError("source is required")
        self.category = NewsCategory(self.category)
        if self.sentiment is not None:
            self.sentiment = SentimentLabel(self.sentiment)
        if self.sentiment_score is not None and not -1 <= self.sentiment_score <= 1:
            raise ValueError(f"Sentiment score must be between -1 and 1, got {self.sentiment_score}")
        if not 1 <= self.impact_score <= 10:
            raise ValueError(f"Impact score must be between 1 and 10, got {self.impact_score}")


@dataclass
class SourceResult:
    """Outcome of one adapter call. Failures carry an error and no articles."""
    source: str
    articles: List[NewsArticle] = field(default_factory=list)
    error: Optional[str] = None
    fallback_for: Optional[str] = None  # Adapter that delegated to this result

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, source: str, error: str) -> "SourceResult":
        return cls(source=source, articles=[], error=error)


@dataclass
class NewsFilters:
    """Filters for the query layer. Unset fields do not restrict."""
    sources: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    sentiment: Optional[str] = None  # "" matches articles without sentiment
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    search: Optional[str] = None


@dataclass
class NewsPage:
    """One page of query results."""
    articles: List[NewsArticle]
    total: int
    page: int
    page_size: int
    has_more: bool


@dataclass
class FacetEntry:
    """A distinct category or source observed among active articles."""
    id: str
    name: str
    display_name: str


@dataclass
class NewsStats:
    total_articles: int
    sources_count: int
    categories_count: int
    last_update: datetime
