"""
Keyword heuristics for article classification.

Pure functions over title/body text: tag extraction, category assignment,
sentiment-score mapping and vote-based impact scoring.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple, Union

from .models import NewsCategory, SentimentLabel, VoteCounts

CRYPTO_KEYWORDS: Tuple[str, ...] = (
    "bitcoin", "btc", "ethereum", "eth", "cardano", "ada", "polkadot", "dot",
    "chainlink", "link", "solana", "sol", "avalanche", "avax", "polygon", "matic",
    "cosmos", "atom", "fantom", "ftm", "near", "algorand", "algo", "tezos", "xtz",
    "defi", "nft", "dao", "web3", "blockchain", "crypto", "cryptocurrency",
    "mining", "staking", "yield", "dex", "cex", "wallet", "metaverse", "gamefi",
)

# Checked in order, first match wins
CATEGORY_KEYWORDS: Tuple[Tuple[NewsCategory, Tuple[str, ...]], ...] = (
    (NewsCategory.REGULATION, ("regulation", "sec", "law", "legal")),
    (NewsCategory.DEFI, ("defi", "yield", "liquidity")),
    (NewsCategory.NFT, ("nft", "collectible", "opensea")),
    (NewsCategory.GAMING, ("gaming", "metaverse", "gamefi")),
    (NewsCategory.TECHNOLOGY, ("technology", "blockchain", "protocol")),
    (NewsCategory.MARKET, ("price", "market", "trading")),
)

DEFAULT_CATEGORY = NewsCategory.MARKET
DEFAULT_IMPACT_SCORE = 5.0
MIN_IMPACT_SCORE = 1.0
MAX_IMPACT_SCORE = 10.0

SENTIMENT_SCORES = {
    SentimentLabel.POSITIVE: 0.7,
    SentimentLabel.NEGATIVE: -0.7,
    SentimentLabel.NEUTRAL: 0.0,
}


def _combined_text(title: str, content: Optional[str]) -> str:
    return f"{title or ''} {content or ''}".lower()


def extract_tags(
    title: str,
    content: Optional[str] = None,
    keywords: Sequence[str] = CRYPTO_KEYWORDS,
) -> List[str]:
    """Return the keywords found as substrings, in vocabulary order."""
    text = _combined_text(title, content)
    return [keyword for keyword in keywords if keyword in text]


def categorize_article(title: str, content: Optional[str] = None) -> NewsCategory:
    """Return the first category whose keywords appear in the text."""
    text = _combined_text(title, content)
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return category
    return DEFAULT_CATEGORY


def sentiment_score(sentiment: Union[SentimentLabel, str, None]) -> float:
    """Map a sentiment label to a score in [-1, 1]. Unknown labels score 0."""
    label = SentimentLabel.parse(sentiment)
    if label is None:
        return 0.0
    return SENTIMENT_SCORES[label]


def impact_score_from_votes(votes: Optional[VoteCounts]) -> float:
    """
    Score newsworthiness from community votes.

    ((important*3 + positive*2 - negative) / total) * 10, clamped to [1, 10].
    Without votes the default medium impact is returned.
    """
    if votes is None or votes.total == 0:
        return DEFAULT_IMPACT_SCORE

    score = ((votes.important * 3 + votes.positive * 2 - votes.negative) / votes.total) * 10
    return max(MIN_IMPACT_SCORE, min(MAX_IMPACT_SCORE, score))


def classify(title: str, content: Optional[str] = None) -> Tuple[NewsCategory, List[str]]:
    """Category and tags for one article."""
    return categorize_article(title, content), extract_tags(title, content)
