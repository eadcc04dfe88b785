"""
News Fetcher Service

Aggregates crypto news from several providers, classifies it with keyword
heuristics, and stores it for the dashboard's filterable news feed.

The aggregation (``service``) and query (``query``) modules depend on the
database layer and are imported from their modules directly.
"""

from .models import (
    NewsCategory,
    SentimentLabel,
    NewsSortOption,
    SortDirection,
    VoteCounts,
    NewsArticle,
    SourceResult,
    NewsFilters,
    NewsPage,
    FacetEntry,
    NewsStats,
)
from .classifier import (
    extract_tags,
    categorize_article,
    sentiment_score,
    impact_score_from_votes,
    classify,
)
from .rate_limiter import RateLimiter, get_rate_limiter
from .sources import (
    NewsSourceFetcher,
    CryptoPanicSource,
    NewsApiSource,
    CryptoNewsApiSource,
    RSSSource,
    SampleNewsSource,
    build_live_sources,
)

__all__ = [
    # Models
    "NewsCategory",
    "SentimentLabel",
    "NewsSortOption",
    "SortDirection",
    "VoteCounts",
    "NewsArticle",
    "SourceResult",
    "NewsFilters",
    "NewsPage",
    "FacetEntry",
    "NewsStats",
    # Classifier
    "extract_tags",
    "categorize_article",
    "sentiment_score",
    "impact_score_from_votes",
    "classify",
    # Rate limiting
    "RateLimiter",
    "get_rate_limiter",
    # Sources
    "NewsSourceFetcher",
    "CryptoPanicSource",
    "NewsApiSource",
    "CryptoNewsApiSource",
    "RSSSource",
    "SampleNewsSource",
    "build_live_sources",
]
