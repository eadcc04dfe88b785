from fastapi import APIRouter, Depends
from typing import Dict, Any

from ..config import settings
from ..db.news_store import NewsStore, NewsStoreError
from ..db.session import get_news_store

router = APIRouter()


@router.get("/healthz")
async def health_check(store: NewsStore = Depends(get_news_store)) -> Dict[str, Any]:
    """Health check reporting store reachability and configured news providers"""

    try:
        await store.ping()
        store_status: Dict[str, Any] = {"status": "healthy"}
    except NewsStoreError as e:
        store_status = {"status": "error", "reason": str(e)}

    # Unconfigured providers are not unhealthy, they use their fallback source
    provider_status = {
        "cryptopanic": "authenticated" if settings.has_cryptopanic_key else "public",
        "newsapi": "configured" if settings.has_news_api_key else "rss_fallback",
        "cryptonews": "configured" if settings.has_crypto_news_api_key else "sample_fallback",
        "rss": settings.rss_feed_url,
    }

    return {
        "status": "healthy" if store_status["status"] == "healthy" else "degraded",
        "store": store_status,
        "providers": provider_status,
    }
