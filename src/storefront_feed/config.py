"""Application configuration management."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.constants import (
    DEFAULT_FETCH_TIMEOUT_SECONDS,
    DEFAULT_PAGE_SIZE,
    DEFAULT_PRICE_CAP,
    MAX_RECENTLY_VIEWED,
    PINNED_PATH_TTL_DAYS,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_name: str = "storefront-feed"
    app_env: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # Catalog Database (PostgreSQL)
    # -------------------------------------------------------------------------
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "storefront"
    postgres_password: str = ""
    postgres_db: str = "storefront"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_recycle: int = 1800

    @property
    def database_url(self) -> str:
        """Construct PostgreSQL connection URL."""
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # -------------------------------------------------------------------------
    # Redis (client-side key-value store backend)
    # -------------------------------------------------------------------------
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str = ""
    redis_db: int = 0
    storage_namespace: str = "storefront"

    @property
    def redis_url(self) -> str:
        """Construct Redis connection URL."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # -------------------------------------------------------------------------
    # Feed Settings
    # -------------------------------------------------------------------------
    page_size: int = DEFAULT_PAGE_SIZE
    fetch_timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS
    price_cap: int = DEFAULT_PRICE_CAP
    city_rail_limit: int = 24

    # -------------------------------------------------------------------------
    # Personalization Settings
    # -------------------------------------------------------------------------
    recency_max_entries: int = MAX_RECENTLY_VIEWED
    recently_rail_limit: int = 12
    because_candidate_limit: int = 220
    for_you_candidate_limit: int = 260
    rail_item_limit: int = 24
    pin_ttl_days: int = PINNED_PATH_TTL_DAYS
    use_pinned_anchor: bool = False

    # -------------------------------------------------------------------------
    # Infinite Scroll
    # -------------------------------------------------------------------------
    scroll_margin_px: int = 800
    scroll_debounce_ms: int = 60

    # -------------------------------------------------------------------------
    # Highlight Rails
    # -------------------------------------------------------------------------
    highlight_rail_limit: int = 12
    top_category_limit: int = 24


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
