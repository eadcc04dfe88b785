from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")

    # Storage
    database_url: str = Field(
        default="sqlite+aiosqlite:///./news.db",
        description="SQLAlchemy async database URL for the article store",
    )

    # External API Keys (all optional, absence triggers the source fallbacks)
    cryptopanic_api_key: str = Field(default="", description="CryptoPanic auth token")
    news_api_key: str = Field(default="", description="NewsAPI.org API key")
    crypto_news_api_key: str = Field(
        default="",
        description="CryptoNews API token",
        validation_alias=AliasChoices("crypto_news_api_key", "CRYPTO_NEWS_API_KEY", "CRYPTONEWS_API_KEY"),
    )

    # Provider Endpoints
    cryptopanic_base_url: str = Field(default="https://cryptopanic.com/api/v1")
    news_api_base_url: str = Field(default="https://newsapi.org/v2")
    crypto_news_api_base_url: str = Field(default="https://cryptonews-api.com")
    rss_feed_url: str = Field(default="https://cointelegraph.com/rss", description="RSS feed polled by the RSS source")
    rss_feed_name: str = Field(default="CoinTelegraph", description="Display name of the RSS feed")
    rss_max_items: int = Field(default=10, ge=1, description="Maximum items taken from the RSS feed")

    # Fetch Behaviour
    news_min_request_interval_ms: int = Field(
        default=1000,
        ge=0,
        description="Minimum delay between two requests to the same provider",
    )
    news_request_timeout_seconds: float = Field(default=15.0, description="HTTP timeout per provider request")
    news_adapter_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Upper bound for a single source during an aggregation run",
    )
    news_user_agent: str = Field(default="Mozilla/5.0 (compatible; AIForecast-Hub/1.0)")

    # Query Defaults
    news_default_page_size: int = Field(default=20, ge=1)
    news_max_page_size: int = Field(default=100, ge=1)

    def model_post_init(self, __context: Any) -> None:
        super().model_post_init(__context)

        if self.news_default_page_size > self.news_max_page_size:
            object.__setattr__(self, "news_default_page_size", self.news_max_page_size)

    @property
    def has_cryptopanic_key(self) -> bool:
        return bool(self.cryptopanic_api_key)

    @property
    def has_news_api_key(self) -> bool:
        return bool(self.news_api_key)

    @property
    def has_crypto_news_api_key(self) -> bool:
        return bool(self.crypto_news_api_key)

    @property
    def min_request_interval_seconds(self) -> float:
        return self.news_min_request_interval_ms / 1000


# Global settings instance
settings = Settings()
