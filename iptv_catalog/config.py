"""
Configuration management for the IPTV catalog backend.
Uses pydantic-settings for environment variable loading.
"""
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    app_name: str = "IPTV Catalog"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    # Server Configuration
    host: str = "127.0.0.1"
    port: int = 8000

    # CORS Configuration
    cors_origins: list[str] = ["*"]

    # Rate Limiting (sync hits the provider, keep it low)
    sync_rate_limit_per_minute: int = 6

    # Provider requests
    request_timeout_seconds: float = 60.0
    user_agent: str = "VLC/3.0.21 LibVLC/3.0.21"

    # Content kinds fetched once the player dialect answers the probe.
    # "live" comes from the probe payload itself.
    player_content_kinds: list[str] = ["live"]

    # Database
    database_path: str = "data/iptv_catalog.db"

    # Pydantic V2 configuration
    model_config = SettingsConfigDict(env_prefix="IPTV_", env_file=".env")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
