"""Shared BDD fixtures and step definitions for the Ordering domain."""

import json
from datetime import UTC, datetime

import pytest
from ordering.cart.cart import ShoppingCart
from ordering.cart.events import (
    CartCheckedOut,
    CartCleared,
    CartItemAdded,
    CartItemRemoved,
    CartPromoApplied,
    CartPromoRemoved,
    CartQuantityUpdated,
)
from ordering.order.cancellation import CancelOrder, RefundOrder
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
from ordering.order.order import Order
from ordering.order.status import AdvanceOrder, ChangeOrderStatus
from protean.exceptions import InvalidOperationError, ValidationError
from protean.testing import given as given_
from pytest_bdd import given, parsers, then

# Map event name strings to classes for dynamic lookup in Then steps
_ORDER_EVENT_CLASSES = {
    "OrderPlaced": OrderPlaced,
    "OrderConfirmed": OrderConfirmed,
    "OrderProcessingStarted": OrderProcessingStarted,
    "OrderReadyForPickup": OrderReadyForPickup,
    "OrderOutForDelivery": OrderOutForDelivery,
    "OrderDelivered": OrderDelivered,
    "OrderCancelled": OrderCancelled,
    "OrderRefunded": OrderRefunded,
}

_CART_EVENT_CLASSES = {
    "CartItemAdded": CartItemAdded,
    "CartQuantityUpdated": CartQuantityUpdated,
    "CartItemRemoved": CartItemRemoved,
    "CartCleared": CartCleared,
    "CartPromoApplied": CartPromoApplied,
    "CartPromoRemoved": CartPromoRemoved,
    "CartCheckedOut": CartCheckedOut,
}


# ---------------------------------------------------------------------------
# Scalar fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def order_id():
    return "ord-001"


@pytest.fixture()
def error():
    """Container for captured validation errors (used by cart tests)."""
    return {"exc": None}


def _changed(event_cls, order_id, actor_name="Staff"):
    return event_cls(order_id=order_id, actor_name=actor_name, changed_at=datetime.now(UTC))


# ---------------------------------------------------------------------------
# Event fixtures (past tense: what happened)
# ---------------------------------------------------------------------------
@pytest.fixture()
def order_placed(order_id):
    return OrderPlaced(
        order_id=order_id,
        order_number="ORD-20260418-ABC123",
        customer_id=None,
        customer_name="Jane Doe",
        cart_id="cart-001",
        checkout_key="key-001",
        items=json.dumps(
            [
                {
                    "id": "item-1",
                    "product_id": "prod-001",
                    "variant_id": "var-001",
                    "sku": "BD-3.5G",
                    "name": "Blue Dream 3.5g",
                    "quantity": 2,
                    "unit_price_cents": 3500,
                    "weight_grams": 3.5,
                }
            ]
        ),
        fulfillment_method="pickup",
        payment_method="card",
        subtotal_cents=7000,
        tax_cents=700,
        total_cents=7700,
        total_weight_grams=7.0,
        placed_at=datetime.now(UTC),
    )


@pytest.fixture()
def order_confirmed(order_id):
    return _changed(OrderConfirmed, order_id)


@pytest.fixture()
def order_processing(order_id):
    return _changed(OrderProcessingStarted, order_id)


@pytest.fixture()
def order_ready_for_pickup(order_id):
    return _changed(OrderReadyForPickup, order_id)


@pytest.fixture()
def order_out_for_delivery(order_id):
    return _changed(OrderOutForDelivery, order_id)


@pytest.fixture()
def order_delivered(order_id):
    return _changed(OrderDelivered, order_id)


@pytest.fixture()
def order_cancelled(order_id):
    return OrderCancelled(
        order_id=order_id,
        from_status="pending",
        actor_name="Staff",
        note="Customer request",
        refund_requested=True,
        total_weight_grams=7.0,
        changed_at=datetime.now(UTC),
    )


# ---------------------------------------------------------------------------
# Command fixtures (imperative: what to do)
# ---------------------------------------------------------------------------
@pytest.fixture()
def advance_order(order_id):
    return AdvanceOrder(order_id=order_id, actor_name="Sam")


@pytest.fixture()
def cancel_order(order_id):
    return CancelOrder(order_id=order_id, actor_name="Sam", note="Customer request")


@pytest.fixture()
def refund_order(order_id):
    return RefundOrder(order_id=order_id, actor_name="Manager")


@pytest.fixture()
def change_order_status(order_id):
    def _build(status, expected_status=None):
        return ChangeOrderStatus(order_id=order_id, status=status, expected_status=expected_status, actor_name="Sam")

    return _build


# ---------------------------------------------------------------------------
# Given steps: Order (event sourcing via protean.testing)
# ---------------------------------------------------------------------------
@given("a pickup order was placed", target_fixture="order")
def _(order_placed):
    return given_(Order, order_placed)


@pytest.fixture()
def delivery_order_placed(order_id):
    return OrderPlaced(
        order_id=order_id,
        order_number="ORD-20260418-DEF456",
        customer_name="Jane Doe",
        cart_id="cart-002",
        checkout_key="key-002",
        items=json.dumps(
            [{"id": "item-1", "product_id": "p", "variant_id": "v", "sku": "S", "quantity": 1, "unit_price_cents": 1000}]
        ),
        fulfillment_method="delivery",
        delivery_address=json.dumps(
            {"street": "123 Main St", "city": "Denver", "state": "CO", "zip_code": "80202"}
        ),
        payment_method="cash",
        subtotal_cents=1000,
        total_cents=1500,
        delivery_fee_cents=500,
        placed_at=datetime.now(UTC),
    )


@given("a delivery order was placed", target_fixture="order")
def _(delivery_order_placed):
    return given_(Order, delivery_order_placed)


@given("the order was confirmed", target_fixture="order")
def _(order, order_confirmed):
    return order.after(order_confirmed)


@given("the order is processing", target_fixture="order")
def _(order, order_processing):
    return order.after(order_processing)


@given("the order is ready for pickup", target_fixture="order")
def _(order, order_ready_for_pickup):
    return order.after(order_ready_for_pickup)


@given("the order is out for delivery", target_fixture="order")
def _(order, order_out_for_delivery):
    return order.after(order_out_for_delivery)


@given("the order was delivered", target_fixture="order")
def _(order, order_delivered):
    return order.after(order_delivered)


@given("the order was cancelled", target_fixture="order")
def _(order, order_cancelled):
    return order.after(order_cancelled)


# ---------------------------------------------------------------------------
# Given steps: Shopping Cart
# ---------------------------------------------------------------------------
@given("an active cart", target_fixture="cart")
def active_cart():
    cart = ShoppingCart.create(customer_id="cust-001")
    cart._events.clear()
    return cart


@given("the cart has an eighth of Blue Dream", target_fixture="cart")
def cart_with_item(cart):
    cart.add_item(
        product_id="prod-001",
        variant_id="var-eighth",
        sku="BD-3.5G",
        name="Blue Dream 3.5g",
        unit_price_cents=3500,
        weight_grams=3.5,
    )
    cart._events.clear()
    return cart


@given(parsers.cfparse('the cart has promo "{code}" applied'), target_fixture="cart")
def cart_with_promo(cart, code):
    cart.apply_promo(code)
    cart._events.clear()
    return cart


# ---------------------------------------------------------------------------
# Then steps: Order (shared, plain assertions)
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(order, status):
    assert order.status == status


@then("the order action fails with a validation error")
def _(order):
    assert order.rejected
    assert isinstance(order.rejection, ValidationError)


@then("the order action fails with a conflict")
def _(order):
    assert order.rejected
    assert isinstance(order.rejection, InvalidOperationError)


@then(parsers.cfparse("an {event_type} order event is raised"))
def _(order, event_type):
    event_cls = _ORDER_EVENT_CLASSES[event_type]
    assert event_cls in order.events


@then(parsers.cfparse("the order history has {count:d} entries"))
def _(order, count):
    assert len(order.status_history) == count


# ---------------------------------------------------------------------------
# Then steps: Cart
# ---------------------------------------------------------------------------
@then("the cart action fails with a validation error")
def cart_action_fails(error):
    assert error["exc"] is not None, "Expected a validation error but none was raised"
    assert isinstance(error["exc"], ValidationError)


@then(parsers.cfparse("a {event_type} cart event is raised"))
def cart_event_raised(cart, event_type):
    event_cls = _CART_EVENT_CLASSES[event_type]
    assert any(
        isinstance(e, event_cls) for e in cart._events
    ), f"No {event_type} event found. Events: {[type(e).__name__ for e in cart._events]}"


@then("no cart event is raised")
def no_cart_event(cart):
    assert cart._events == []
