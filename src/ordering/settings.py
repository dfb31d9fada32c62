"""Application settings for the Ordering context.

Domain infrastructure (providers, event store, brokers) stays in Protean's own
configuration, selected by ``PROTEAN_ENV``. These are the business knobs the
pricing and compliance services read.
"""

from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Promotion(BaseModel):
    """A promo code definition.

    ``kind`` is ``percentage`` (``value`` in percent, optionally capped by
    ``max_discount_cents``) or ``fixed`` (``value`` in cents).
    """

    kind: str = Field(pattern="^(percentage|fixed)$")
    value: int = Field(ge=0)
    max_discount_cents: int | None = Field(default=None, ge=0)


def _default_promotions() -> dict[str, Promotion]:
    return {
        "WELCOME10": Promotion(kind="percentage", value=10, max_discount_cents=2500),
        "FIVEOFF": Promotion(kind="fixed", value=500),
    }


class OrderingSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ORDERING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    tax_rate: float = Field(default=0.17, ge=0.0, le=1.0)
    delivery_fee_cents: int = Field(default=500, ge=0)
    daily_purchase_limit_grams: float = Field(default=28.5, gt=0.0)
    max_line_quantity: int = Field(default=10, ge=1)
    promotions: dict[str, Promotion] = Field(default_factory=_default_promotions)


@lru_cache
def get_settings() -> OrderingSettings:
    """Get cached settings instance."""
    return OrderingSettings()
