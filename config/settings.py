"""Configuration management using pydantic-settings."""
from typing import List, Optional

from pydantic_settings import BaseSettings


# Award/festival terms that are searched often enough to be worth caching
DEFAULT_COMMON_SEARCH_TERMS = [
    "アカデミー",
    "oscar",
    "cannes",
    "カンヌ",
    "日本アカデミー",
    "winner",
    "受賞",
    "ノミネート",
    "nominated",
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite:///./movies.db"

    # Edge cache
    edge_cache_enabled: bool = True
    edge_cache_backend: str = "memory"  # "memory" or "redis"
    redis_url: Optional[str] = None
    redis_key_prefix: str = "edge"

    # Search caching allow-list (JSON list in COMMON_SEARCH_TERMS)
    common_search_terms: List[str] = DEFAULT_COMMON_SEARCH_TERMS

    # Locales served by the public API
    supported_locales: List[str] = ["en", "ja"]
    default_locale: str = "en"

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
