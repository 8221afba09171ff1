"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings for the EdgePulse service."""

    app_name: str = "EdgePulse"
    app_version: str = "0.1.0"
    environment: str = "development"
    log_level: str = "INFO"
    store_backend: str = "auto"
    redis_url: str | None = None
    store_prefix: str = "edgepulse"
    analytics_key: str = "analytics"
    retention_limit: int = 100
    synthetic_delay_max_ms: int = 50
    client_ip_header: str = "CF-Connecting-IP"
    country_header: str = "CF-IPCountry"
    cors_allow_origin: str = "*"
    dashboard_poll_seconds: int = 10

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings so env parsing only happens once."""

    return Settings()
