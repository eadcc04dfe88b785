"""Fixed illustrative articles used when no live source returns anything."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, NamedTuple, Optional

from .classifier import classify, sentiment_score
from .models import NewsArticle, SentimentLabel

SAMPLE_SOURCE = "sample"
SAMPLE_SOURCE_NAME = "AIForecast Hub"
SAMPLE_BASE_URL = "https://aiforecasthub.com/news/sample"


class SampleStory(NamedTuple):
    slug: str
    title: str
    summary: str
    sentiment: Optional[SentimentLabel]
    impact_score: float
    hours_ago: int


SAMPLE_STORIES: List[SampleStory] = [
    SampleStory(
        slug="bitcoin-price-climbs-trading-volume",
        title="Bitcoin Price Climbs Above Key Level as Trading Volume Surges",
        summary="Spot demand and rising open interest pushed BTC higher during the Asian session.",
        sentiment=SentimentLabel.POSITIVE,
        impact_score=7.0,
        hours_ago=2,
    ),
    SampleStory(
        slug="sec-delays-spot-ether-etf-decision",
        title="SEC Delays Decision on Spot Ether ETF Applications",
        summary="Regulators extended the review period, citing the need for further public comment.",
        sentiment=SentimentLabel.NEGATIVE,
        impact_score=8.0,
        hours_ago=5,
    ),
    SampleStory(
        slug="defi-lending-record-liquidity",
        title="DeFi Lending Protocol Reports Record Liquidity Inflows",
        summary="Total value locked grew 18% week over week as rates on stablecoin pools rose.",
        sentiment=SentimentLabel.POSITIVE,
        impact_score=6.0,
        hours_ago=8,
    ),
    SampleStory(
        slug="nft-marketplace-volumes-cool",
        title="NFT Marketplace Volumes Cool After Blue-Chip Collection Rally",
        summary="Floor prices retreated across major collections on OpenSea after a two-week run.",
        sentiment=SentimentLabel.NEUTRAL,
        impact_score=4.0,
        hours_ago=12,
    ),
    SampleStory(
        slug="gamefi-studio-metaverse-beta",
        title="GameFi Studio Launches Metaverse Beta on Polygon",
        summary="The open beta lets players trade in-game items as on-chain assets.",
        sentiment=SentimentLabel.POSITIVE,
        impact_score=5.0,
        hours_ago=18,
    ),
    SampleStory(
        slug="ethereum-developers-upgrade-timeline",
        title="Ethereum Developers Finalize Timeline for Next Network Upgrade",
        summary="Core developers agreed on testnet dates for an upgrade that targets blockchain scalability.",
        sentiment=None,
        impact_score=6.0,
        hours_ago=26,
    ),
]


def build_sample_articles(now: datetime) -> List[NewsArticle]:
    """Build the sample set with publish times relative to ``now``."""
    articles: List[NewsArticle] = []
    for story in SAMPLE_STORIES:
        category, tags = classify(story.title, story.summary)
        articles.append(NewsArticle(
            title=story.title,
            summary=story.summary,
            url=f"{SAMPLE_BASE_URL}/{story.slug}",
            source=SAMPLE_SOURCE,
            source_name=SAMPLE_SOURCE_NAME,
            category=category,
            tags=tags,
            sentiment=story.sentiment,
            sentiment_score=sentiment_score(story.sentiment) if story.sentiment else None,
            impact_score=story.impact_score,
            published_at=now - timedelta(hours=story.hours_ago),
        ))
    return articles
