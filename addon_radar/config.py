"""Application configuration."""
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # CurseForge API
    curseforge_api_key: str = ""
    curseforge_base_url: str = "https://api.curseforge.com"
    game_version_type_id: int = 517  # WoW Retail

    # Database
    database_url: str = "postgresql+asyncpg://localhost:5432/addon_radar"

    # API Security
    api_secret_key: str = ""

    environment: str = "development"

    # Upstream client resilience
    request_timeout_seconds: float = 60.0
    max_response_bytes: int = 10 * 1024 * 1024
    max_retries: int = 3
    backoff_base_seconds: float = 1.0  # 2s, 4s, ...
    circuit_breaker_threshold: int = 10
    page_delay_seconds: float = 0.05
    page_size: int = 50
    max_search_results: int = 10_000  # CurseForge hard limit per query

    # Sync guardrails
    sync_interval_minutes: int = 60
    min_synced_addons: int = 1000
    max_error_rate: float = 0.01
    duration_warning_minutes: int = 55

    # Retention
    snapshot_retention_days: int = 95
    rank_history_retention_days: int = 7
    retention_batch_size: int = 10_000
    retention_max_batches: int = 50

    # Server
    host: str = "0.0.0.0"
    port: int = 8080
    debug: bool = False
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
