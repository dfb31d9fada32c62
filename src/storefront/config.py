"""Storefront client configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorefrontSettings(BaseSettings):
    """Settings loaded from ``STOREFRONT_``-prefixed environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="STOREFRONT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    api_base_url: str = Field(default="http://localhost:8000", description="Ordering API base URL")
    request_timeout_seconds: float = Field(default=10.0, gt=0, description="Per-request timeout")
    warning_threshold_grams: float = Field(
        default=3.5,
        ge=0,
        description="Warn when less than this much allowance would remain (one eighth ounce)",
    )
    max_line_quantity: int = Field(default=10, ge=1, description="Upper bound for a single cart line")


@lru_cache
def get_settings() -> StorefrontSettings:
    """Get cached settings instance."""
    return StorefrontSettings()
