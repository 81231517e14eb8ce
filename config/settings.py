"""Configuration management using pydantic-settings."""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database (SQLAlchemy URL for the ORM)
    database_url: str = "sqlite:///./league_stats.db"

    # PostgreSQL DSN for LISTEN/NOTIFY change events (asyncpg format).
    # Unset = no database channel, cache falls back to TTL-only expiry.
    notify_dsn: Optional[str] = None

    # Response cache
    cache_enabled: bool = True
    cache_max_entries: int = 500
    cache_default_ttl_seconds: int = 60
    cache_reaper_interval_seconds: int = 300

    # Chunked collection responses
    chunk_default_size: int = 20
    chunk_max_size: int = 100

    # Create the NOTIFY triggers at startup when notify_dsn is set
    notify_install_triggers: bool = True

    # Invalidation channel reconnect backoff
    invalidation_initial_backoff_seconds: float = 1.0
    invalidation_max_backoff_seconds: float = 60.0

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
