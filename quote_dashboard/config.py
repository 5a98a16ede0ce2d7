"""
Centralized configuration management for the Quote Dashboard API.

All configuration values should be defined here and imported elsewhere.
Supports environment variable overrides.
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class ConfigurationError(Exception):
    """Raised when required configuration (e.g. the API key) is missing."""


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application
    app_name: str = "Quote Dashboard API"
    app_version: str = "1.0.0"
    debug: bool = False

    # CORS
    allowed_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173"
    ]

    # Finnhub provider
    finnhub_api_key: Optional[str] = None
    finnhub_base_url: str = "https://finnhub.io/api/v1"
    http_timeout_seconds: float = 10.0

    # Fixed symbol universe shown in the quote table
    symbols: List[str] = [
        "AAPL", "GOOGL", "MSFT", "AMZN", "TSLA",
        "META", "NVDA", "NFLX", "JPM", "JNJ",
    ]

    # Cache settings
    cache_ttl_seconds: int = 300  # Freshness window for the cached quote batch

    # History settings
    history_days: int = 30
    history_max_points: int = 30
    history_max_retries: int = 2  # 3 attempts total
    history_base_delay: float = 1.0
    history_rate_limit_delay: float = 2.0
    history_max_delay: float = 10.0
    fallback_max_step_pct: float = 5.0  # Max +/- move per synthetic day

    # Provider rate limits are informational only; set them to match your plan
    rate_limit_calls_per_minute: Optional[int] = None
    rate_limit_calls_per_day: Optional[int] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        # e.g., FINNHUB_API_KEY=... or CACHE_TTL_SECONDS=120


# Singleton instance
settings = Settings()


def get_settings() -> Settings:
    """Get the settings instance. Useful for dependency injection."""
    return settings


def require_api_key(config: Optional[Settings] = None) -> str:
    """
    Return the Finnhub API key or fail fast.

    Args:
        config: Settings to read from. Defaults to the global settings.

    Returns:
        The configured API key.

    Raises:
        ConfigurationError: If no key is configured.
    """
    config = config or settings
    key = (config.finnhub_api_key or "").strip()
    if not key:
        raise ConfigurationError(
            "Finnhub API key not found. Please add FINNHUB_API_KEY to your .env file."
        )
    return key
