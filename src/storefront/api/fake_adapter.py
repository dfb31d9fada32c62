"""Configurable in-memory Ordering API for development and testing.

Behaves like the real service closely enough for the storefront engine: carts
are re-priced on every change, orders follow the shared transition table and
refuse stale expected statuses, and checkout keys are idempotent. It can also:
- fail the next call of an operation with a chosen error
- hold the response of the next call until the test releases it, to make
  responses arrive out of order
- move an order behind the client's back, as another staff member would
"""

import asyncio
from collections import defaultdict
from datetime import UTC, datetime
from uuid import uuid4

from shared.order_lifecycle import OrderStatus, can_transition

from storefront.api.port import StorefrontApi
from storefront.errors import ConflictError, NotFoundError, RejectedError
from storefront.models import (
    Cart,
    CartItem,
    CartKey,
    DeliveryIntent,
    Order,
    OrderLine,
    OrderRequest,
    PaymentMethod,
    PurchaseLimitState,
    StatusEvent,
)


class FakeStorefrontApi(StorefrontApi):
    """In-memory stand-in for the Ordering service."""

    def __init__(
        self,
        tax_rate: float = 0.0,
        delivery_fee_cents: int = 0,
        promotions: dict[str, int] | None = None,
        daily_limit_grams: float = 28.5,
        max_line_quantity: int = 10,
    ) -> None:
        self.tax_rate = tax_rate
        self.delivery_fee_cents = delivery_fee_cents
        self.promotions = promotions if promotions is not None else {"SAVE10": 10}  # code → percent
        self.daily_limit_grams = daily_limit_grams
        self.max_line_quantity = max_line_quantity

        self.carts: dict[str, Cart] = {}
        self.orders: dict[str, Order] = {}
        self.consumed_grams: dict[str, float] = defaultdict(float)
        self.checkout_keys: dict[str, str] = {}
        self.cart_customers: dict[str, str | None] = {}
        self.calls: list[dict] = []

        self._failures: dict[str, list[Exception]] = defaultdict(list)
        self._holds: dict[str, list[asyncio.Event]] = defaultdict(list)

    # -------------------------------------------------------------------
    # Test controls
    # -------------------------------------------------------------------
    def fail_next(self, operation: str, error: Exception | None = None) -> None:
        """Make the next call of ``operation`` raise ``error`` without changing state."""
        self._failures[operation].append(error or RejectedError("Request rejected"))

    def hold_next(self, operation: str) -> asyncio.Event:
        """Delay the response of the next call of ``operation`` until the returned event is set.

        The server-side change happens immediately; only the response waits.
        """
        event = asyncio.Event()
        self._holds[operation].append(event)
        return event

    def force_status(self, order_id: str, status: OrderStatus, actor_name: str = "Other staff") -> Order:
        """Move an order as another actor would, bypassing the client."""
        order = self._order(order_id)
        return self._transition(order, status, actor_name, None)

    def seed_cart(self, cart: Cart, customer_id: str | None = None) -> None:
        self.carts[cart.cart_id] = cart
        self.cart_customers[cart.cart_id] = customer_id

    async def _enter(self, operation: str, **arguments) -> None:
        self.calls.append({"method": operation, **arguments})
        await asyncio.sleep(0)
        if self._failures[operation]:
            raise self._failures[operation].pop(0)

    async def _respond(self, operation: str, result):
        if self._holds[operation]:
            await self._holds[operation].pop(0).wait()
        return result

    # -------------------------------------------------------------------
    # Pricing
    # -------------------------------------------------------------------
    def _remaining(self, customer_id: str | None) -> float | None:
        if not customer_id:
            return None
        return max(0.0, self.daily_limit_grams - self.consumed_grams[customer_id])

    def _priced(self, cart: Cart, fulfillment_method: str | None = None) -> Cart:
        subtotal = cart.subtotal_cents
        percent = self.promotions.get(cart.applied_promo_code, 0) if cart.applied_promo_code else 0
        discount = min(subtotal, round(subtotal * percent / 100))
        tax = round((subtotal - discount) * self.tax_rate)
        fee = self.delivery_fee_cents if fulfillment_method == "delivery" and cart.items else 0
        remaining = self._remaining(self.cart_customers.get(cart.cart_id))
        return cart.model_copy(
            update={
                "promo_discount_cents": discount,
                "tax_cents": tax,
                "delivery_fee_cents": fee,
                "exceeds_purchase_limit": remaining is not None and cart.total_weight_grams > remaining,
            }
        )

    def _cart(self, cart_id: str) -> Cart:
        if cart_id not in self.carts:
            raise NotFoundError(f"Cart {cart_id} not found")
        return self.carts[cart_id]

    def _store(self, cart: Cart) -> Cart:
        cart = self._priced(cart)
        self.carts[cart.cart_id] = cart
        return cart

    def _clamp(self, quantity: int, max_quantity: int | None) -> int:
        limit = min(self.max_line_quantity, max_quantity or self.max_line_quantity)
        return min(quantity, limit)

    # -------------------------------------------------------------------
    # Carts
    # -------------------------------------------------------------------
    async def create_cart(self, customer_id: str | None) -> Cart:
        await self._enter("create_cart", customer_id=customer_id)
        cart = Cart(cart_id=f"cart-{uuid4().hex[:8]}")
        self.cart_customers[cart.cart_id] = customer_id
        return await self._respond("create_cart", self._store(cart))

    async def fetch_cart(self, cart_id: str) -> Cart:
        await self._enter("fetch_cart", cart_id=cart_id)
        return await self._respond("fetch_cart", self._cart(cart_id))

    async def add_item(self, cart_id: str, item: CartItem) -> Cart:
        await self._enter("add_item", cart_id=cart_id, key=item.key, quantity=item.quantity)
        cart = self._cart(cart_id)
        existing = cart.find(item.key)
        if existing:
            updated = item.with_quantity(self._clamp(existing.quantity + item.quantity, existing.max_quantity))
        else:
            updated = item.with_quantity(self._clamp(item.quantity, item.max_quantity))
        return await self._respond("add_item", self._store(cart.with_item(updated)))

    async def update_quantity(self, cart_id: str, key: CartKey, quantity: int) -> Cart:
        await self._enter("update_quantity", cart_id=cart_id, key=key, quantity=quantity)
        cart = self._cart(cart_id)
        existing = cart.find(key)
        if existing is None:
            raise RejectedError("Item not found in cart", details={"item": ["Item not found in cart"]})
        updated = existing.with_quantity(self._clamp(quantity, existing.max_quantity))
        return await self._respond("update_quantity", self._store(cart.with_item(updated)))

    async def remove_item(self, cart_id: str, key: CartKey) -> Cart:
        await self._enter("remove_item", cart_id=cart_id, key=key)
        cart = self._cart(cart_id)
        if cart.find(key) is None:
            raise RejectedError("Item not found in cart", details={"item": ["Item not found in cart"]})
        return await self._respond("remove_item", self._store(cart.without_item(key)))

    async def clear_cart(self, cart_id: str) -> Cart:
        await self._enter("clear_cart", cart_id=cart_id)
        return await self._respond("clear_cart", self._store(self._cart(cart_id).emptied()))

    async def apply_promo(self, cart_id: str, code: str) -> Cart:
        await self._enter("apply_promo", cart_id=cart_id, code=code)
        if code not in self.promotions:
            raise RejectedError(f"Promo code {code} is not valid", details={"promo_code": ["Invalid"]})
        cart = self._cart(cart_id).with_promo(code)
        return await self._respond("apply_promo", self._store(cart))

    async def remove_promo(self, cart_id: str) -> Cart:
        await self._enter("remove_promo", cart_id=cart_id)
        cart = self._cart(cart_id).with_promo(None)
        return await self._respond("remove_promo", self._store(cart))

    # -------------------------------------------------------------------
    # Compliance
    # -------------------------------------------------------------------
    async def fetch_purchase_limit(self, customer_id: str) -> PurchaseLimitState:
        await self._enter("fetch_purchase_limit", customer_id=customer_id)
        state = PurchaseLimitState(
            remaining_grams=self._remaining(customer_id),
            daily_limit_grams=self.daily_limit_grams,
            consumed_grams=self.consumed_grams[customer_id],
        )
        return await self._respond("fetch_purchase_limit", state)

    # -------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------
    def _order(self, order_id: str) -> Order:
        if order_id not in self.orders:
            raise NotFoundError(f"Order {order_id} not found")
        return self.orders[order_id]

    async def place_order(self, cart_id: str, request: OrderRequest) -> Order:
        await self._enter("place_order", cart_id=cart_id, checkout_key=request.checkout_key)
        if request.checkout_key in self.checkout_keys:
            return await self._respond("place_order", self.orders[self.checkout_keys[request.checkout_key]])

        cart = self._cart(cart_id)
        if cart.is_empty:
            raise RejectedError("Cannot place an order from an empty cart", details={"cart": ["Empty"]})

        customer_id = self.cart_customers.get(cart_id)
        remaining = self._remaining(customer_id)
        if remaining is not None and cart.total_weight_grams > remaining:
            raise RejectedError(
                "Order exceeds the daily purchase limit",
                details={"purchase_limit": [f"{remaining:.1f}g remaining today."]},
            )

        priced = self._priced(cart, request.fulfillment.method)
        now = datetime.now(UTC)
        order = Order(
            order_id=f"ord-{uuid4().hex[:8]}",
            order_number=f"ORD-{now:%Y%m%d}-{uuid4().hex[:6].upper()}",
            status=OrderStatus.PENDING,
            customer_id=customer_id,
            customer_name=request.customer_name,
            fulfillment_method=request.fulfillment.method,
            delivery_address=request.fulfillment.address if isinstance(request.fulfillment, DeliveryIntent) else None,
            payment_method=request.payment_method,
            items=tuple(OrderLine(**item.model_dump()) for item in cart.items),
            status_history=(
                StatusEvent(
                    status=OrderStatus.PENDING,
                    timestamp=now,
                    actor_name=request.customer_name,
                    note="Order placed",
                ),
            ),
            subtotal_cents=priced.subtotal_cents,
            promo_code=priced.applied_promo_code,
            promo_discount_cents=priced.promo_discount_cents,
            tax_cents=priced.tax_cents,
            delivery_fee_cents=priced.delivery_fee_cents,
            total_cents=priced.total_cents,
            placed_at=now,
        )
        self.orders[order.order_id] = order
        self.checkout_keys[request.checkout_key] = order.order_id
        if customer_id:
            self.consumed_grams[customer_id] += cart.total_weight_grams
        self._store(cart.emptied())
        return await self._respond("place_order", order)

    async def fetch_order(self, order_id: str) -> Order:
        await self._enter("fetch_order", order_id=order_id)
        return await self._respond("fetch_order", self._order(order_id))

    def _transition(self, order: Order, target: OrderStatus, actor_name: str, note: str | None) -> Order:
        if not can_transition(order.status, target, order.fulfillment_method):
            raise RejectedError(
                f"Cannot transition from {order.status.value} to {target.value}",
                details={"status": [f"Cannot transition from {order.status.value} to {target.value}"]},
            )
        if target == OrderStatus.REFUNDED and order.payment_method != PaymentMethod.CARD:
            raise RejectedError(
                "Only card payments can be refunded",
                details={"payment_method": ["Only card payments can be refunded; cancel cash orders instead"]},
            )
        event = StatusEvent(status=target, timestamp=datetime.now(UTC), actor_name=actor_name, note=note)
        order = order.model_copy(update={"status": target, "status_history": (*order.status_history, event)})
        self.orders[order.order_id] = order
        return order

    def _check_expected(self, order: Order, expected_status: str) -> None:
        if expected_status and order.status.value != expected_status:
            raise ConflictError(
                f"Order is {order.status.value}, not {expected_status}",
                details={"status": ["Order was updated by someone else"]},
            )

    async def change_order_status(
        self,
        order_id: str,
        status: str,
        expected_status: str,
        actor_name: str,
        note: str | None = None,
    ) -> Order:
        await self._enter("change_order_status", order_id=order_id, status=status, expected_status=expected_status)
        order = self._order(order_id)
        self._check_expected(order, expected_status)
        return await self._respond(
            "change_order_status", self._transition(order, OrderStatus(status), actor_name, note)
        )

    async def cancel_order(self, order_id: str, expected_status: str, actor_name: str, note: str | None = None) -> Order:
        await self._enter("cancel_order", order_id=order_id, expected_status=expected_status)
        order = self._order(order_id)
        self._check_expected(order, expected_status)
        return await self._respond("cancel_order", self._transition(order, OrderStatus.CANCELLED, actor_name, note))

    async def refund_order(self, order_id: str, expected_status: str, actor_name: str, note: str | None = None) -> Order:
        await self._enter("refund_order", order_id=order_id, expected_status=expected_status)
        order = self._order(order_id)
        self._check_expected(order, expected_status)
        return await self._respond("refund_order", self._transition(order, OrderStatus.REFUNDED, actor_name, note))
