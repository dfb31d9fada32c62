"""Pricing service port (abstract interface).

Tax, promo discount and delivery fee are computed by a pluggable service.
The cart and order aggregates only ever store what a quote returns; subtotals
and totals are derived from line items.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class PricedLine:
    """A cart line as seen by the pricing service."""

    sku: str
    quantity: int
    unit_price_cents: int
    weight_grams: float | None = None

    @property
    def total_price_cents(self) -> int:
        return self.unit_price_cents * self.quantity


@dataclass(frozen=True)
class PriceQuote:
    """Server-computed pricing for a set of lines."""

    promo_discount_cents: int = 0
    tax_cents: int = 0
    delivery_fee_cents: int = 0
    exceeds_purchase_limit: bool = False


class PricingService(ABC):
    """Abstract pricing interface."""

    @abstractmethod
    def validate_promo(self, code: str) -> None:
        """Raise ``ValidationError`` if ``code`` is not a known promotion."""
        ...

    @abstractmethod
    def quote(
        self,
        lines: list[PricedLine],
        promo_code: str | None,
        remaining_grams: float | None,
        fulfillment_method: str | None = None,
    ) -> PriceQuote:
        """Price ``lines`` with the given promo and fulfillment method."""
        ...
