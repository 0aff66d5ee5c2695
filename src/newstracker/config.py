"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with NEWSTRACKER_ prefix.
No config files — just env vars (12-factor app style).

Learn: Everything the realtime core needs at construction time (default
refresh interval, page size, listener timeout) lives here, but the core
itself never imports this module. main.py reads the settings once and
passes plain values into the registry.
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All app configuration. Set via NEWSTRACKER_* env vars."""

    # Upstream news-search API (Naver Search)
    naver_client_id: str = ""
    naver_client_secret: str = ""
    news_api_base_url: str = "https://openapi.naver.com/v1/search"
    news_endpoint: str = "/news.json"
    request_timeout_seconds: float = 10.0

    # Realtime tracking defaults
    default_refresh_interval: str = "*/5 * * * *"  # every 5 minutes
    default_page_size: int = 10
    default_sort: str = "date"
    listener_timeout_seconds: float = 5.0

    # Trending convenience endpoint
    trending_keywords: list[str] = ["뉴스", "속보", "이슈"]
    trending_page_size: int = 5

    # Server
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000

    # CORS
    cors_origins: list[str] = ["*"]

    model_config = {"env_prefix": "NEWSTRACKER_"}

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Upstream credentials are mandatory outside development."""
        if self.environment != "development" and not (
            self.naver_client_id and self.naver_client_secret
        ):
            raise ValueError(
                "NEWSTRACKER_NAVER_CLIENT_ID and NEWSTRACKER_NAVER_CLIENT_SECRET "
                "must be set in non-development environments."
            )
        return self


# Singleton — import this everywhere
settings = Settings()
