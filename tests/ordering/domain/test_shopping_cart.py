"""Tests for the ShoppingCart aggregate: lines, promo, pricing and checkout."""

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
from ordering.pricing import PriceQuote
from protean.exceptions import ValidationError


def _cart():
    cart = ShoppingCart.create(customer_id="cust-001")
    cart._events.clear()
    return cart


def _add(cart, product_id="prod-001", variant_id="var-001", quantity=1, **kwargs):
    defaults = {"sku": f"SKU-{product_id}-{variant_id}", "unit_price_cents": 2000, "weight_grams": 3.5}
    defaults.update(kwargs)
    cart.add_item(product_id=product_id, variant_id=variant_id, quantity=quantity, **defaults)


class TestCartCreation:
    def test_create_for_customer(self):
        cart = ShoppingCart.create(customer_id="cust-001")
        assert str(cart.customer_id) == "cust-001"
        assert len(cart.items) == 0

    def test_create_guest_cart(self):
        cart = ShoppingCart.create()
        assert cart.customer_id is None

    def test_new_cart_totals_are_zero(self):
        cart = _cart()
        assert cart.subtotal_cents == 0
        assert cart.total_cents == 0
        assert cart.item_count == 0


class TestAddItem:
    def test_add_new_line(self):
        cart = _cart()
        _add(cart, quantity=2)
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 2
        assert cart.subtotal_cents == 4000

    def test_same_variant_merges_into_one_line(self):
        cart = _cart()
        _add(cart, quantity=2)
        _add(cart, quantity=3)
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 5

    def test_different_variant_of_same_product_is_a_separate_line(self):
        cart = _cart()
        _add(cart, variant_id="var-eighth")
        _add(cart, variant_id="var-quarter")
        assert len(cart.items) == 2

    def test_quantity_is_clamped_to_line_maximum(self):
        cart = _cart()
        _add(cart, quantity=4, max_quantity=5)
        _add(cart, quantity=4)
        assert cart.items[0].quantity == 5

    def test_quantity_is_clamped_to_configured_maximum(self):
        cart = _cart()
        _add(cart, quantity=8)
        _add(cart, quantity=8)
        assert cart.items[0].quantity == 10

    def test_quantity_below_one_is_rejected(self):
        cart = _cart()
        with pytest.raises(ValidationError) as exc:
            _add(cart, quantity=0)
        assert "quantity" in exc.value.messages

    def test_raises_item_added_event(self):
        cart = _cart()
        _add(cart, quantity=2)
        event = cart._events[-1]
        assert isinstance(event, CartItemAdded)
        assert event.quantity_added == 2
        assert event.new_quantity == 2

    def test_lines_keep_insertion_order(self):
        cart = _cart()
        _add(cart, product_id="prod-b")
        _add(cart, product_id="prod-a")
        assert [item.product_id for item in cart.sorted_items()] == ["prod-b", "prod-a"]

    def test_weight_and_count(self):
        cart = _cart()
        _add(cart, quantity=2, weight_grams=3.5)
        _add(cart, product_id="prod-002", quantity=1, weight_grams=None)
        assert cart.item_count == 3
        assert cart.total_weight_grams == 7.0


class TestUpdateAndRemove:
    def test_update_quantity(self):
        cart = _cart()
        _add(cart, quantity=1)
        cart.update_item_quantity("prod-001", "var-001", 4)
        assert cart.items[0].quantity == 4
        assert isinstance(cart._events[-1], CartQuantityUpdated)

    def test_update_to_zero_is_rejected(self):
        cart = _cart()
        _add(cart)
        with pytest.raises(ValidationError):
            cart.update_item_quantity("prod-001", "var-001", 0)

    def test_update_unknown_line_is_rejected(self):
        cart = _cart()
        with pytest.raises(ValidationError) as exc:
            cart.update_item_quantity("prod-404", "var-404", 2)
        assert "item" in exc.value.messages

    def test_remove_item(self):
        cart = _cart()
        _add(cart)
        cart.remove_item("prod-001", "var-001")
        assert len(cart.items) == 0
        assert isinstance(cart._events[-1], CartItemRemoved)

    def test_clear_removes_lines_and_promo(self):
        cart = _cart()
        _add(cart)
        cart.apply_promo("welcome10")
        cart.clear()
        assert len(cart.items) == 0
        assert cart.promo_code is None
        assert isinstance(cart._events[-1], CartCleared)


class TestPromo:
    def test_apply_normalizes_code(self):
        cart = _cart()
        cart.apply_promo("  welcome10 ")
        assert cart.promo_code == "WELCOME10"
        assert isinstance(cart._events[-1], CartPromoApplied)

    def test_reapplying_active_code_is_a_no_op(self):
        cart = _cart()
        cart.apply_promo("WELCOME10")
        cart._events.clear()
        cart.apply_promo("welcome10")
        assert cart._events == []

    def test_new_code_replaces_the_active_one(self):
        cart = _cart()
        cart.apply_promo("WELCOME10")
        cart.apply_promo("FIVEOFF")
        assert cart.promo_code == "FIVEOFF"
        assert cart._events[-1].replaced_code == "WELCOME10"

    def test_remove_promo(self):
        cart = _cart()
        cart.apply_promo("FIVEOFF")
        cart.remove_promo()
        assert cart.promo_code is None
        assert cart.promo_discount_cents == 0
        assert isinstance(cart._events[-1], CartPromoRemoved)

    def test_remove_without_promo_is_rejected(self):
        with pytest.raises(ValidationError):
            _cart().remove_promo()


class TestReprice:
    def test_stores_quote_and_derives_total(self):
        cart = _cart()
        _add(cart, quantity=2)
        cart.apply_promo("FIVEOFF")
        cart.reprice(PriceQuote(promo_discount_cents=500, tax_cents=595, delivery_fee_cents=0))
        assert cart.subtotal_cents == 4000
        assert cart.total_cents == 4000 - 500 + 595

    def test_discount_without_promo_is_dropped(self):
        cart = _cart()
        _add(cart)
        cart.reprice(PriceQuote(promo_discount_cents=500, tax_cents=0))
        assert cart.promo_discount_cents == 0

    def test_exceeds_purchase_limit_flag(self):
        cart = _cart()
        _add(cart)
        cart.reprice(PriceQuote(exceeds_purchase_limit=True))
        assert cart.exceeds_purchase_limit is True


class TestCheckoutCompleted:
    def test_empties_cart_and_remembers_key(self):
        cart = _cart()
        _add(cart, quantity=2)
        cart.checkout_completed("key-001", "ord-001")
        assert len(cart.items) == 0
        assert cart.last_checkout_key == "key-001"
        assert str(cart.last_order_id) == "ord-001"
        assert isinstance(cart._events[-1], CartCheckedOut)

    def test_snapshot_copies_line_data(self):
        cart = _cart()
        _add(cart, quantity=2, name="Blue Dream 3.5g")
        snapshot = cart.snapshot_items()
        assert snapshot == [
            {
                "product_id": "prod-001",
                "variant_id": "var-001",
                "sku": "SKU-prod-001-var-001",
                "name": "Blue Dream 3.5g",
                "quantity": 2,
                "unit_price_cents": 2000,
                "weight_grams": 3.5,
            }
        ]

    def test_empty_cart_cannot_check_out(self):
        with pytest.raises(ValidationError):
            _cart().checkout_completed("key-001", "ord-001")
