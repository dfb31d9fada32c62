"""Flat-rate pricing service.

A single tax rate applied to the discounted subtotal, a flat delivery fee for
delivery orders, and a table of percentage or fixed-amount promo codes. Rates
and promotions come from ``OrderingSettings`` unless given explicitly.
"""

from decimal import ROUND_HALF_UP, Decimal

from protean.exceptions import ValidationError

from ordering.pricing.port import PricedLine, PriceQuote, PricingService
from ordering.settings import Promotion, get_settings


def _round_cents(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class FlatRatePricing(PricingService):
    def __init__(
        self,
        tax_rate: float | None = None,
        delivery_fee_cents: int | None = None,
        promotions: dict[str, Promotion] | None = None,
    ) -> None:
        settings = get_settings()
        self.tax_rate = Decimal(str(settings.tax_rate if tax_rate is None else tax_rate))
        self.delivery_fee_cents = settings.delivery_fee_cents if delivery_fee_cents is None else delivery_fee_cents
        self.promotions = {
            code.upper(): promo for code, promo in (settings.promotions if promotions is None else promotions).items()
        }

    def validate_promo(self, code: str) -> None:
        if not code or code.upper() not in self.promotions:
            raise ValidationError({"promo_code": [f"Promo code {code} is not valid"]})

    def _discount_for(self, promo_code: str | None, subtotal_cents: int) -> int:
        if not promo_code:
            return 0
        self.validate_promo(promo_code)
        promo = self.promotions[promo_code.upper()]

        if promo.kind == "percentage":
            discount = _round_cents(Decimal(subtotal_cents) * Decimal(promo.value) / Decimal(100))
            if promo.max_discount_cents is not None:
                discount = min(discount, promo.max_discount_cents)
        else:
            discount = promo.value
        return min(discount, subtotal_cents)

    def quote(
        self,
        lines: list[PricedLine],
        promo_code: str | None,
        remaining_grams: float | None,
        fulfillment_method: str | None = None,
    ) -> PriceQuote:
        subtotal = sum(line.total_price_cents for line in lines)
        discount = self._discount_for(promo_code, subtotal)
        tax = _round_cents(Decimal(subtotal - discount) * self.tax_rate)
        delivery_fee = self.delivery_fee_cents if fulfillment_method == "delivery" and lines else 0

        weight = sum((line.weight_grams or 0.0) * line.quantity for line in lines)
        exceeds = remaining_grams is not None and weight > remaining_grams

        return PriceQuote(
            promo_discount_cents=discount,
            tax_cents=tax,
            delivery_fee_cents=delivery_fee,
            exceeds_purchase_limit=exceeds,
        )
