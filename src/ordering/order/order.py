"""Order aggregate (Event Sourced): the authoritative order state machine.

All state changes are captured as domain events and the current state is
rebuilt by replaying them via @apply handlers. Each transition appends exactly
one entry to the status history; entries are never edited or removed.

State Machine (8 states, table in shared.order_lifecycle):
    PENDING → CONFIRMED → PROCESSING → READY_FOR_PICKUP → DELIVERED   (pickup)
                                     → OUT_FOR_DELIVERY → DELIVERED   (delivery)
    CANCELLED / REFUNDED from any non-terminal state

Every transition request may name the status the caller last saw. If another
actor has moved the order since, the request is refused as a conflict instead
of being applied on top of a state the caller never saw.
"""

import json
from datetime import UTC, datetime
from uuid import uuid4

from protean import apply
from protean.exceptions import InvalidOperationError, ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from ordering.domain import ordering
from ordering.order.events import (
    OrderCancelled,
    OrderConfirmed,
    OrderDelivered,
    OrderOutForDelivery,
    OrderPlaced,
    OrderProcessingStarted,
    OrderReadyForPickup,
    OrderRefunded,
)
from shared.order_lifecycle import (
    FulfillmentMethod,
    OrderStatus,
    can_transition,
    next_status,
)


class PaymentMethod:
    CARD = "card"
    CASH = "cash"

    ALL = (CARD, CASH)


# Forward transitions and the event that records each one
_FORWARD_EVENTS = {
    OrderStatus.CONFIRMED: OrderConfirmed,
    OrderStatus.PROCESSING: OrderProcessingStarted,
    OrderStatus.READY_FOR_PICKUP: OrderReadyForPickup,
    OrderStatus.OUT_FOR_DELIVERY: OrderOutForDelivery,
    OrderStatus.DELIVERED: OrderDelivered,
}


def generate_order_number(placed_at):
    """Human-facing order number, e.g. ORD-20240115-4F9A2C."""
    return f"ORD-{placed_at:%Y%m%d}-{uuid4().hex[:6].upper()}"


def _parse_status(value, field):
    try:
        return OrderStatus(value)
    except ValueError as exc:
        raise ValidationError({field: [f"Unknown order status {value}"]}) from exc


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class DeliveryAddress:
    """Where a delivery order goes. Captured at checkout and never changed."""

    street = String(required=True, max_length=255)
    apt = String(max_length=50)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=2)
    zip_code = String(required=True, max_length=10)


@ordering.value_object(part_of="Order")
class OrderPricing:
    """Amounts in cents, locked at placement."""

    subtotal_cents = Integer(default=0)
    promo_code = String(max_length=50)
    promo_discount_cents = Integer(default=0)
    tax_cents = Integer(default=0)
    delivery_fee_cents = Integer(default=0)
    total_cents = Integer(default=0)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A frozen copy of a cart line at the moment the order was placed."""

    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    sku = String(required=True, max_length=50)
    name = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price_cents = Integer(required=True, min_value=0)
    weight_grams = Float()

    @property
    def total_price_cents(self):
        return self.unit_price_cents * self.quantity


@ordering.entity(part_of="Order")
class StatusChange:
    status = String(required=True, choices=OrderStatus)
    actor_name = String(required=True, max_length=255)
    note = Text()
    changed_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root (Event Sourced)
# ---------------------------------------------------------------------------
@ordering.aggregate(is_event_sourced=True)
class Order:
    order_number = String(max_length=32)
    customer_id = Identifier()
    customer_name = String(max_length=255)
    cart_id = Identifier()
    checkout_key = String(max_length=64)
    status = String(
        choices=OrderStatus,
        default=OrderStatus.PENDING.value,
    )
    fulfillment_method = String(choices=FulfillmentMethod)
    delivery_address = ValueObject(DeliveryAddress)
    payment_method = String(max_length=20)
    items = HasMany(OrderItem)
    status_history = HasMany(StatusChange)
    pricing = ValueObject(OrderPricing)
    total_weight_grams = Float(default=0.0)
    placed_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        customer_id,
        customer_name,
        cart_id,
        checkout_key,
        items_data,
        fulfillment_method,
        payment_method,
        pricing,
        delivery_address=None,
    ):
        """Place a new order from a cart snapshot.

        Uses _create_new() to get a blank aggregate with auto-generated
        identity. All state is established by the OrderPlaced event's
        @apply handler, including the initial pending history entry.

        Args:
            items_data: List of dicts with product_id, variant_id, sku, name,
                        quantity, unit_price_cents, weight_grams.
            pricing: Dict with subtotal_cents, promo_code, promo_discount_cents,
                     tax_cents, delivery_fee_cents, total_cents.
            delivery_address: Dict with street, apt, city, state, zip_code.
        """
        method = FulfillmentMethod(fulfillment_method)
        if method == FulfillmentMethod.DELIVERY and not delivery_address:
            raise ValidationError({"delivery_address": ["Delivery orders require a delivery address"]})
        if payment_method not in PaymentMethod.ALL:
            raise ValidationError({"payment_method": [f"Unsupported payment method {payment_method}"]})
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})

        now = datetime.now(UTC)

        # Pre-generate item IDs for deterministic replay
        items_with_ids = [{**item, "id": str(uuid4())} for item in items_data]
        total_weight = round(sum((i.get("weight_grams") or 0.0) * i["quantity"] for i in items_data), 3)

        order = cls._create_new()
        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=generate_order_number(now),
                customer_id=str(customer_id) if customer_id else None,
                customer_name=customer_name,
                cart_id=str(cart_id),
                checkout_key=checkout_key,
                items=json.dumps(items_with_ids),
                fulfillment_method=method.value,
                delivery_address=json.dumps(delivery_address) if delivery_address else None,
                payment_method=payment_method,
                subtotal_cents=pricing["subtotal_cents"],
                promo_code=pricing.get("promo_code"),
                promo_discount_cents=pricing.get("promo_discount_cents", 0),
                tax_cents=pricing.get("tax_cents", 0),
                delivery_fee_cents=pricing.get("delivery_fee_cents", 0),
                total_cents=pricing["total_cents"],
                total_weight_grams=total_weight,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    @property
    def next_status(self):
        """The single forward transition available now, or None."""
        return next_status(self.status, self.fulfillment_method)

    def _assert_expected_status(self, expected_status):
        """Refuse a request made against a status the order has already left."""
        if expected_status is None:
            return
        expected = _parse_status(expected_status, "expected_status")
        if expected.value != self.status:
            raise InvalidOperationError(
                {"status": [f"Order is {self.status}, not {expected.value}; it was updated by someone else"]}
            )

    def _assert_can_transition(self, target_status):
        """Validate that the current state allows transition to target."""
        if not can_transition(self.status, target_status, self.fulfillment_method):
            raise ValidationError({"status": [f"Cannot transition from {self.status} to {target_status.value}"]})

    # -------------------------------------------------------------------
    # Order lifecycle transitions
    # -------------------------------------------------------------------
    def transition_to(self, target_status, actor_name, note=None, expected_status=None):
        """Move the order to ``target_status`` if the transition table allows it."""
        target = _parse_status(target_status, "status")
        self._assert_expected_status(expected_status)

        if target == OrderStatus.CANCELLED:
            return self.cancel(actor_name, note=note)
        if target == OrderStatus.REFUNDED:
            return self.refund(actor_name, note=note)

        self._assert_can_transition(target)
        event_cls = _FORWARD_EVENTS[target]
        self.raise_(
            event_cls(
                order_id=str(self.id),
                actor_name=actor_name,
                note=note,
                changed_at=datetime.now(UTC),
            )
        )

    def advance(self, actor_name, note=None, expected_status=None):
        """Take the single forward transition from the current status."""
        self._assert_expected_status(expected_status)
        target = self.next_status
        if target is None:
            raise ValidationError({"status": [f"Order in {self.status} state has no next status"]})
        self.transition_to(target, actor_name, note=note)

    def cancel(self, actor_name, note=None, expected_status=None):
        """Cancel the order from any non-terminal state."""
        self._assert_expected_status(expected_status)
        self._assert_can_transition(OrderStatus.CANCELLED)

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                from_status=self.status,
                actor_name=actor_name,
                note=note,
                refund_requested=self.payment_method == PaymentMethod.CARD,
                total_weight_grams=self.total_weight_grams,
                placed_at=self.placed_at,
                changed_at=datetime.now(UTC),
            )
        )

    def refund(self, actor_name, note=None, expected_status=None):
        """Refund a card-paid order from any non-terminal state."""
        self._assert_expected_status(expected_status)
        self._assert_can_transition(OrderStatus.REFUNDED)
        if self.payment_method != PaymentMethod.CARD:
            raise ValidationError(
                {"payment_method": ["Only card payments can be refunded; cancel cash orders instead"]}
            )

        self.raise_(
            OrderRefunded(
                order_id=str(self.id),
                from_status=self.status,
                actor_name=actor_name,
                note=note,
                total_cents=self.pricing.total_cents,
                total_weight_grams=self.total_weight_grams,
                placed_at=self.placed_at,
                changed_at=datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # @apply methods: rebuild state during event replay
    # -------------------------------------------------------------------
    def _record_status(self, status, event):
        self.status = status.value
        self.updated_at = event.changed_at
        self.add_status_history(
            StatusChange(
                status=status.value,
                actor_name=event.actor_name,
                note=event.note,
                changed_at=event.changed_at,
            )
        )

    @apply
    def _on_order_placed(self, event: OrderPlaced):
        self.id = event.order_id
        self.order_number = event.order_number
        self.customer_id = event.customer_id
        self.customer_name = event.customer_name
        self.cart_id = event.cart_id
        self.checkout_key = event.checkout_key
        self.status = OrderStatus.PENDING.value
        self.fulfillment_method = event.fulfillment_method
        self.payment_method = event.payment_method
        self.total_weight_grams = event.total_weight_grams or 0.0
        self.placed_at = event.placed_at
        self.updated_at = event.placed_at

        # Reconstruct items from JSON (includes IDs for deterministic replay)
        items_data = json.loads(event.items) if isinstance(event.items, str) else []
        self.items = [OrderItem(**item_data) for item_data in items_data]

        address_data = json.loads(event.delivery_address) if isinstance(event.delivery_address, str) else {}
        if address_data:
            self.delivery_address = DeliveryAddress(**address_data)

        self.pricing = OrderPricing(
            subtotal_cents=event.subtotal_cents,
            promo_code=event.promo_code,
            promo_discount_cents=event.promo_discount_cents or 0,
            tax_cents=event.tax_cents or 0,
            delivery_fee_cents=event.delivery_fee_cents or 0,
            total_cents=event.total_cents,
        )

        self.status_history = [
            StatusChange(
                status=OrderStatus.PENDING.value,
                actor_name=event.customer_name,
                note="Order placed",
                changed_at=event.placed_at,
            )
        ]

    @apply
    def _on_order_confirmed(self, event: OrderConfirmed):
        self._record_status(OrderStatus.CONFIRMED, event)

    @apply
    def _on_order_processing_started(self, event: OrderProcessingStarted):
        self._record_status(OrderStatus.PROCESSING, event)

    @apply
    def _on_order_ready_for_pickup(self, event: OrderReadyForPickup):
        self._record_status(OrderStatus.READY_FOR_PICKUP, event)

    @apply
    def _on_order_out_for_delivery(self, event: OrderOutForDelivery):
        self._record_status(OrderStatus.OUT_FOR_DELIVERY, event)

    @apply
    def _on_order_delivered(self, event: OrderDelivered):
        self._record_status(OrderStatus.DELIVERED, event)

    @apply
    def _on_order_cancelled(self, event: OrderCancelled):
        self._record_status(OrderStatus.CANCELLED, event)

    @apply
    def _on_order_refunded(self, event: OrderRefunded):
        self._record_status(OrderStatus.REFUNDED, event)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def history(self):
        """Status history in the order the transitions happened."""
        return sorted(self.status_history, key=lambda change: change.changed_at)
