from __future__ import annotations

from functools import lru_cache
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List


class Settings(BaseSettings):
    # Core
    app_name: str = Field(default="gruby-server")
    environment: str = Field(default="dev")  # dev|staging|prod
    log_json: bool = Field(default=True)
    log_level: str = Field(default="INFO")

    # Data
    database_url: str | None = Field(default=None)
    redis_url: str | None = Field(default=None)

    # API
    cors_allowed_origins: List[str] = Field(default_factory=lambda: ["*"])
    sync_api_secret: str | None = Field(default=None)
    cron_secret: str | None = Field(default=None)
    sync_trust_cron_header: bool = Field(default=False)

    # Kroger
    kroger_client_id: str | None = Field(default=None)
    kroger_client_secret: str | None = Field(default=None)
    kroger_api_base: str = Field(default="https://api.kroger.com/v1")
    kroger_token_url: str = Field(default="https://api.kroger.com/v1/connect/oauth2/token")
    kroger_scope: str = Field(default="product.compact")
    kroger_request_timeout_seconds: float = Field(default=15.0, gt=0)
    kroger_max_concurrency: int = Field(default=4, ge=1, le=16)
    default_store_location_id: str = Field(default="01400943")
    price_lookup_store_id: str = Field(default="01400929")

    # Product sync
    sync_rate_limit_max_requests: int = Field(default=10, ge=1)
    sync_rate_limit_window_seconds: int = Field(default=60, ge=1)
    product_cache_ttl_hours: float = Field(default=24.0, gt=0)
    product_cache_max_entries: int = Field(default=5000, ge=1)
    sync_default_limit: int = Field(default=50, ge=1)
    sync_cron_limit: int = Field(default=100, ge=1)
    sync_max_limit: int = Field(default=500, ge=1)
    sync_recipe_delay_seconds: float = Field(default=0.2, ge=0)
    sync_min_confidence: float = Field(default=0.5, ge=0, le=1)
    sync_confidence_margin: float = Field(default=0.1, ge=0, le=1)
    sync_stale_after_days: float = Field(default=7.0, gt=0)
    sync_price_tolerance: float = Field(default=0.01, ge=0)
    sync_error_cap: int = Field(default=50, ge=1)

    # Observability
    sentry_dsn: str | None = Field(default=None)
    sentry_traces_sample_rate: float = Field(default=0.0)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @field_validator("cors_allowed_origins", mode="before")
    @classmethod
    def _csv_to_list(cls, v):
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
