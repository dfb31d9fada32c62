"""Domain events for the Order aggregate.

Every status change is its own event, carrying who made the change and an
optional note. Replaying them rebuilds both the status and the append-only
status history.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A customer's cart was turned into an order at checkout."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier()
    customer_name = String(required=True)
    cart_id = Identifier(required=True)
    checkout_key = String(required=True)
    items = Text(required=True)  # JSON: list of frozen line dicts
    fulfillment_method = String(required=True)
    delivery_address = Text()  # JSON: address dict, delivery orders only
    payment_method = String(required=True)
    subtotal_cents = Integer(required=True)
    promo_code = String()
    promo_discount_cents = Integer(default=0)
    tax_cents = Integer(default=0)
    delivery_fee_cents = Integer(default=0)
    total_cents = Integer(required=True)
    total_weight_grams = Float(default=0.0)
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderConfirmed:
    """Staff accepted the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    actor_name = String(required=True)
    note = Text()
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderProcessingStarted:
    """Staff started preparing the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    actor_name = String(required=True)
    note = Text()
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderReadyForPickup:
    """A pickup order is packed and waiting at the store."""

    __version__ = 1

    order_id = Identifier(required=True)
    actor_name = String(required=True)
    note = Text()
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderOutForDelivery:
    """A delivery order left the store with a driver."""

    __version__ = 1

    order_id = Identifier(required=True)
    actor_name = String(required=True)
    note = Text()
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderDelivered:
    """The customer received the order, at the counter or at the door."""

    __version__ = 1

    order_id = Identifier(required=True)
    actor_name = String(required=True)
    note = Text()
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled before completion."""

    __version__ = 1

    order_id = Identifier(required=True)
    from_status = String(required=True)
    actor_name = String(required=True)
    note = Text()
    refund_requested = Boolean(default=False)  # Card payments need the external refund workflow
    total_weight_grams = Float(default=0.0)
    placed_at = DateTime()
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderRefunded:
    """The order was refunded before completion."""

    __version__ = 1

    order_id = Identifier(required=True)
    from_status = String(required=True)
    actor_name = String(required=True)
    note = Text()
    total_cents = Integer(required=True)
    total_weight_grams = Float(default=0.0)
    placed_at = DateTime()
    changed_at = DateTime(required=True)
