"""Tests for the Order aggregate: placement, transitions, escapes and history."""

import re

import pytest
from ordering.order.events import OrderCancelled, OrderConfirmed, OrderPlaced, OrderRefunded
from ordering.order.order import Order
from protean.exceptions import InvalidOperationError, ValidationError
from shared.order_lifecycle import OrderStatus

_ADDRESS = {"street": "123 Main St", "apt": "4B", "city": "Denver", "state": "CO", "zip_code": "80202"}


def _place(fulfillment_method="pickup", payment_method="card", **overrides):
    kwargs = {
        "customer_id": "cust-001",
        "customer_name": "Jane Doe",
        "cart_id": "cart-001",
        "checkout_key": "key-001",
        "items_data": [
            {
                "product_id": "prod-001",
                "variant_id": "var-001",
                "sku": "BD-3.5G",
                "name": "Blue Dream 3.5g",
                "quantity": 2,
                "unit_price_cents": 3500,
                "weight_grams": 3.5,
            }
        ],
        "fulfillment_method": fulfillment_method,
        "payment_method": payment_method,
        "pricing": {
            "subtotal_cents": 7000,
            "promo_code": None,
            "promo_discount_cents": 0,
            "tax_cents": 1190,
            "delivery_fee_cents": 500 if fulfillment_method == "delivery" else 0,
            "total_cents": 8190 + (500 if fulfillment_method == "delivery" else 0),
        },
        "delivery_address": _ADDRESS if fulfillment_method == "delivery" else None,
    }
    kwargs.update(overrides)
    order = Order.place(**kwargs)
    order._events.clear()
    return order


def _advance_to(order, status):
    while order.status != status.value:
        order.advance("Staff")
    order._events.clear()
    return order


class TestPlacement:
    def test_starts_pending_with_one_history_entry(self):
        order = _place()
        assert order.status == OrderStatus.PENDING.value
        assert len(order.status_history) == 1
        entry = order.status_history[0]
        assert entry.status == "pending"
        assert entry.actor_name == "Jane Doe"
        assert entry.note == "Order placed"

    def test_order_number_format(self):
        order = _place()
        assert re.fullmatch(r"ORD-\d{8}-[0-9A-F]{6}", order.order_number)

    def test_items_and_weight_are_frozen_copies(self):
        order = _place()
        assert len(order.items) == 1
        assert order.items[0].total_price_cents == 7000
        assert order.total_weight_grams == 7.0

    def test_pricing_is_locked(self):
        order = _place(fulfillment_method="delivery")
        assert order.pricing.delivery_fee_cents == 500
        assert order.pricing.total_cents == 8690
        assert order.delivery_address.city == "Denver"

    def test_raises_order_placed(self):
        order = Order.place(
            customer_id=None,
            customer_name="Guest",
            cart_id="cart-002",
            checkout_key="key-002",
            items_data=[{"product_id": "p", "variant_id": "v", "sku": "S", "quantity": 1, "unit_price_cents": 100}],
            fulfillment_method="pickup",
            payment_method="cash",
            pricing={"subtotal_cents": 100, "total_cents": 100},
        )
        assert isinstance(order._events[-1], OrderPlaced)
        assert order.customer_id is None

    def test_delivery_requires_address(self):
        with pytest.raises(ValidationError) as exc:
            _place(fulfillment_method="delivery", delivery_address=None)
        assert "delivery_address" in exc.value.messages

    def test_unknown_payment_method_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            _place(payment_method="crypto")
        assert "payment_method" in exc.value.messages

    def test_order_needs_items(self):
        with pytest.raises(ValidationError):
            _place(items_data=[])


class TestForwardTransitions:
    def test_pickup_path(self):
        order = _place()
        seen = []
        while order.next_status is not None:
            order.advance("Staff")
            seen.append(order.status)
        assert seen == ["confirmed", "processing", "ready_for_pickup", "delivered"]

    def test_delivery_path(self):
        order = _place(fulfillment_method="delivery")
        seen = []
        while order.next_status is not None:
            order.advance("Staff")
            seen.append(order.status)
        assert seen == ["confirmed", "processing", "out_for_delivery", "delivered"]

    def test_each_transition_appends_one_history_entry(self):
        order = _place()
        order.transition_to("confirmed", actor_name="Sam", note="Verified ID")
        assert len(order.status_history) == 2
        latest = order.history()[-1]
        assert latest.status == "confirmed"
        assert latest.actor_name == "Sam"
        assert latest.note == "Verified ID"
        assert isinstance(order._events[-1], OrderConfirmed)

    def test_skipping_a_step_is_rejected(self):
        order = _place()
        with pytest.raises(ValidationError):
            order.transition_to("processing", actor_name="Sam")
        assert order.status == "pending"
        assert len(order.status_history) == 1

    def test_pickup_order_cannot_go_out_for_delivery(self):
        order = _advance_to(_place(), OrderStatus.PROCESSING)
        with pytest.raises(ValidationError):
            order.transition_to("out_for_delivery", actor_name="Sam")

    def test_unknown_status_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            _place().transition_to("shipped", actor_name="Sam")
        assert "status" in exc.value.messages

    def test_delivered_is_terminal(self):
        order = _advance_to(_place(), OrderStatus.DELIVERED)
        assert order.next_status is None
        with pytest.raises(ValidationError):
            order.advance("Staff")


class TestExpectedStatus:
    def test_matching_expected_status_is_applied(self):
        order = _place()
        order.advance("Sam", expected_status="pending")
        assert order.status == "confirmed"

    def test_stale_expected_status_is_a_conflict(self):
        order = _advance_to(_place(), OrderStatus.CONFIRMED)
        with pytest.raises(InvalidOperationError):
            order.advance("Sam", expected_status="pending")
        assert order.status == "confirmed"

    def test_stale_cancel_is_a_conflict(self):
        order = _advance_to(_place(), OrderStatus.PROCESSING)
        with pytest.raises(InvalidOperationError):
            order.cancel("Sam", expected_status="confirmed")


class TestEscapes:
    @pytest.mark.parametrize(
        "status",
        [OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.READY_FOR_PICKUP],
    )
    def test_cancel_from_any_non_terminal_state(self, status):
        order = _advance_to(_place(), status)
        order.cancel("Sam", note="Customer request")
        assert order.status == "cancelled"
        event = order._events[-1]
        assert isinstance(event, OrderCancelled)
        assert event.from_status == status.value

    def test_cancel_card_order_requests_refund(self):
        order = _place(payment_method="card")
        order.cancel("Sam")
        assert order._events[-1].refund_requested is True

    def test_cancel_cash_order_does_not_request_refund(self):
        order = _place(payment_method="cash")
        order.cancel("Sam")
        assert order._events[-1].refund_requested is False

    def test_refund_from_out_for_delivery(self):
        order = _advance_to(_place(fulfillment_method="delivery"), OrderStatus.OUT_FOR_DELIVERY)
        order.refund("Manager", note="Damaged")
        assert order.status == "refunded"
        assert isinstance(order._events[-1], OrderRefunded)
        assert order._events[-1].total_cents == 8690

    def test_cash_order_cannot_be_refunded(self):
        order = _place(payment_method="cash")
        with pytest.raises(ValidationError) as exc:
            order.refund("Manager")
        assert "payment_method" in exc.value.messages
        assert order.status == "pending"

    def test_transition_to_cancelled_uses_cancel(self):
        order = _place()
        order.transition_to("cancelled", actor_name="Sam")
        assert isinstance(order._events[-1], OrderCancelled)

    @pytest.mark.parametrize("escape", ["cancel", "refund"])
    def test_terminal_states_cannot_escape(self, escape):
        order = _place()
        order.cancel("Sam")
        with pytest.raises(ValidationError):
            getattr(order, escape)("Sam")

    def test_delivered_order_cannot_be_cancelled(self):
        order = _advance_to(_place(), OrderStatus.DELIVERED)
        with pytest.raises(ValidationError):
            order.cancel("Sam")


class TestHistory:
    def test_history_is_chronological_and_complete(self):
        order = _place()
        order.advance("A")
        order.advance("B")
        order.cancel("C")
        assert [change.status for change in order.history()] == ["pending", "confirmed", "processing", "cancelled"]
        assert [change.actor_name for change in order.history()][1:] == ["A", "B", "C"]
