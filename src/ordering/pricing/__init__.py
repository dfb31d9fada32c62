"""Pricing service factory.

Provides get_pricing() / set_pricing() to swap implementations. Defaults to
FlatRatePricing built from OrderingSettings.
"""

from ordering.pricing.flat_rate import FlatRatePricing
from ordering.pricing.port import PricedLine, PriceQuote, PricingService

__all__ = ["FlatRatePricing", "PricedLine", "PriceQuote", "PricingService", "get_pricing", "reset_pricing", "set_pricing"]

_current_pricing: PricingService | None = None


def get_pricing() -> PricingService:
    """Return the current pricing service. Defaults to FlatRatePricing."""
    global _current_pricing
    if _current_pricing is None:
        _current_pricing = FlatRatePricing()
    return _current_pricing


def set_pricing(pricing: PricingService) -> None:
    """Override the active pricing service (useful for tests)."""
    global _current_pricing
    _current_pricing = pricing


def reset_pricing() -> None:
    """Reset to default pricing service."""
    global _current_pricing
    _current_pricing = None
