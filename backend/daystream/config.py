"""Typed settings configuration - single source of truth."""

from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Generative provider
    openai_api_key: SecretStr | None = None
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str | None = None
    provider_max_tokens: int = 1500

    # Streaming
    streaming_enabled: bool = True
    heartbeat_interval_seconds: float = 15.0

    # Generation budgets
    max_days: int = 14
    max_total_ms: int = 5 * 60 * 1000
    max_provider_calls: int = 20
    max_retries_per_day: int = 2

    # Director
    max_refinement_iterations: int = 2

    # Bursar thresholds (fractions)
    budget_warning_threshold: float = 0.10
    budget_reject_threshold: float = 0.20
    budget_under_threshold: float = 0.30
    budget_aggregate_under_threshold: float = 0.75
    budget_buffer_fraction: float = 0.10
    budget_include_accommodation: bool = True

    # Logistician limits
    max_activities_per_day: int = 5
    min_buffer_minutes: int = 15
    toddler_buffer_minutes: int = 30
    elderly_buffer_minutes: int = 20
    large_group_size: int = 4
    large_group_extra_minutes: int = 10
    max_activity_hours_per_day: int = 10
    walking_threshold_km: float = 2.0

    # Cost verification confidence (hand-tuned, pending domain review)
    cost_high_variance_pct: float = 20.0
    cost_medium_variance_pct: float = 40.0
    cost_fresh_days: int = 180
    cost_recent_days: int = 365

    # Enrichment cache
    enrichment_cache_ttl_seconds: int = 24 * 3600
    enrichment_cache_max_entries: int = 1000


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
