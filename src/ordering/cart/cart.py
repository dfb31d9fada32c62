"""Shopping Cart aggregate (CQRS): the authoritative server-side cart.

Lines are identified by their (product_id, variant_id) pair. Prices are stored
per line in integer cents; tax, promo discount, delivery fee and the purchase
limit flag are whatever the pricing service last quoted. Subtotal and total are
always derived from the lines and never stored.

At checkout the cart's lines are copied onto an Order and the cart is emptied;
the checkout key of that placement is remembered so a repeated submission can
be answered with the order it already produced.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String

from ordering.cart.events import (
    CartCheckedOut,
    CartCleared,
    CartItemAdded,
    CartItemRemoved,
    CartPromoApplied,
    CartPromoRemoved,
    CartQuantityUpdated,
)
from ordering.domain import ordering
from ordering.pricing import PricedLine, PriceQuote
from ordering.settings import get_settings


@ordering.entity(part_of="ShoppingCart")
class CartItem:
    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    sku = String(required=True, max_length=50)
    name = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price_cents = Integer(required=True, min_value=0)
    weight_grams = Float(min_value=0.0)  # Only compliance-tracked products carry a weight
    max_quantity = Integer(min_value=1)
    added_at = DateTime()

    @property
    def line_key(self):
        return (str(self.product_id), str(self.variant_id))

    @property
    def total_price_cents(self):
        return self.unit_price_cents * self.quantity


def _clamp_quantity(quantity, max_quantity=None):
    limit = get_settings().max_line_quantity
    if max_quantity:
        limit = min(limit, max_quantity)
    return min(quantity, limit)


@ordering.aggregate
class ShoppingCart:
    customer_id = Identifier()  # Nullable for guest carts
    items = HasMany(CartItem)
    promo_code = String(max_length=50)
    promo_discount_cents = Integer(default=0, min_value=0)
    tax_cents = Integer(default=0, min_value=0)
    delivery_fee_cents = Integer(default=0, min_value=0)
    exceeds_purchase_limit = Boolean(default=False)
    last_checkout_key = String(max_length=64)
    last_order_id = Identifier()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def promo_discount_requires_a_promo_code(self):
        if self.promo_discount_cents and not self.promo_code:
            raise ValidationError({"promo_code": ["A promo discount requires an applied promo code"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, customer_id=None):
        now = datetime.now(UTC)
        return cls(
            customer_id=customer_id,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------
    @property
    def subtotal_cents(self):
        return sum(item.total_price_cents for item in self.items)

    @property
    def total_cents(self):
        total = self.subtotal_cents - self.promo_discount_cents + self.tax_cents + self.delivery_fee_cents
        return max(0, total)

    @property
    def item_count(self):
        return sum(item.quantity for item in self.items)

    @property
    def total_weight_grams(self):
        return round(sum((item.weight_grams or 0.0) * item.quantity for item in self.items), 3)

    def sorted_items(self):
        """Lines in the order they were first added."""
        return sorted(self.items, key=lambda i: i.added_at or self.created_at)

    def find_item(self, product_id, variant_id):
        return next(
            (i for i in self.items if i.line_key == (str(product_id), str(variant_id))),
            None,
        )

    def priced_lines(self):
        return [
            PricedLine(
                sku=item.sku,
                quantity=item.quantity,
                unit_price_cents=item.unit_price_cents,
                weight_grams=item.weight_grams,
            )
            for item in self.sorted_items()
        ]

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(
        self,
        product_id,
        variant_id,
        sku,
        unit_price_cents,
        quantity=1,
        weight_grams=None,
        name=None,
        max_quantity=None,
    ):
        """Add a line, or increase the quantity of the existing line for the same variant.

        The resulting quantity is clamped to the line's maximum.
        """
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        existing = self.find_item(product_id, variant_id)
        now = datetime.now(UTC)

        if existing:
            existing.quantity = _clamp_quantity(existing.quantity + quantity, existing.max_quantity)
            existing.unit_price_cents = unit_price_cents
            new_quantity = existing.quantity
        else:
            item = CartItem(
                product_id=product_id,
                variant_id=variant_id,
                sku=sku,
                name=name,
                quantity=_clamp_quantity(quantity, max_quantity),
                unit_price_cents=unit_price_cents,
                weight_grams=weight_grams,
                max_quantity=max_quantity,
                added_at=now,
            )
            self.add_items(item)
            new_quantity = item.quantity

        self.updated_at = now

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                product_id=str(product_id),
                variant_id=str(variant_id),
                sku=sku,
                quantity_added=quantity,
                new_quantity=new_quantity,
            )
        )

    def update_item_quantity(self, product_id, variant_id, new_quantity):
        """Set the quantity of an existing line."""
        if new_quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1; remove the item instead"]})

        item = self.find_item(product_id, variant_id)
        if item is None:
            raise ValidationError({"item": ["Item not found in cart"]})

        previous_quantity = item.quantity
        item.quantity = _clamp_quantity(new_quantity, item.max_quantity)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartQuantityUpdated(
                cart_id=str(self.id),
                product_id=str(product_id),
                variant_id=str(variant_id),
                previous_quantity=previous_quantity,
                new_quantity=item.quantity,
            )
        )

    def remove_item(self, product_id, variant_id):
        """Remove a line from the cart."""
        item = self.find_item(product_id, variant_id)
        if item is None:
            raise ValidationError({"item": ["Item not found in cart"]})

        self.remove_items(item)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartItemRemoved(
                cart_id=str(self.id),
                product_id=str(product_id),
                variant_id=str(variant_id),
            )
        )

    def _empty(self):
        for item in list(self.items):
            self.remove_items(item)
        self.promo_discount_cents = 0
        self.promo_code = None
        self.tax_cents = 0
        self.delivery_fee_cents = 0
        self.exceeds_purchase_limit = False

    def clear(self):
        """Remove every line and the promo."""
        items_removed = len(self.items)
        self._empty()
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartCleared(
                cart_id=str(self.id),
                items_removed=items_removed,
            )
        )

    # -------------------------------------------------------------------
    # Promo management
    # -------------------------------------------------------------------
    def apply_promo(self, promo_code):
        """Make ``promo_code`` the single active promo. Re-applying the active code is a no-op."""
        promo_code = promo_code.strip().upper()
        if not promo_code:
            raise ValidationError({"promo_code": ["Promo code is required"]})
        if promo_code == self.promo_code:
            return

        replaced_code = self.promo_code
        self.promo_code = promo_code
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartPromoApplied(
                cart_id=str(self.id),
                promo_code=promo_code,
                replaced_code=replaced_code,
            )
        )

    def remove_promo(self):
        """Remove the active promo code."""
        if not self.promo_code:
            raise ValidationError({"promo_code": ["No promo code is applied"]})

        removed = self.promo_code
        self.promo_discount_cents = 0
        self.promo_code = None
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartPromoRemoved(
                cart_id=str(self.id),
                promo_code=removed,
            )
        )

    # -------------------------------------------------------------------
    # Pricing
    # -------------------------------------------------------------------
    def reprice(self, quote: PriceQuote):
        """Store the pricing service's quote for the current lines."""
        self.promo_discount_cents = quote.promo_discount_cents if self.promo_code else 0
        self.tax_cents = quote.tax_cents
        self.delivery_fee_cents = quote.delivery_fee_cents
        self.exceeds_purchase_limit = quote.exceeds_purchase_limit

    # -------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------
    def snapshot_items(self):
        """Frozen copy of the lines for an order."""
        return [
            {
                "product_id": str(item.product_id),
                "variant_id": str(item.variant_id),
                "sku": item.sku,
                "name": item.name,
                "quantity": item.quantity,
                "unit_price_cents": item.unit_price_cents,
                "weight_grams": item.weight_grams,
            }
            for item in self.sorted_items()
        ]

    def checkout_completed(self, checkout_key, order_id):
        """Empty the cart after its contents became order ``order_id``."""
        if not self.items:
            raise ValidationError({"cart": ["Cannot check out an empty cart"]})

        self._empty()
        self.last_checkout_key = checkout_key
        self.last_order_id = order_id
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartCheckedOut(
                cart_id=str(self.id),
                order_id=str(order_id),
                checkout_key=checkout_key,
            )
        )
