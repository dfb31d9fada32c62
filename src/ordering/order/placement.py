"""Order placement: command and handler.

Turns the server's current cart into an order in one unit of work: the cart's
lines are frozen onto the order, pricing is re-quoted for the chosen
fulfillment method, the purchase allowance is re-checked and consumed, and the
cart is emptied. A repeated checkout key returns the order the key already
produced instead of placing a second one.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.cart.cart import ShoppingCart
from ordering.compliance.allowance import PurchaseAllowance, load_allowance
from ordering.domain import ordering
from ordering.order.order import Order
from ordering.pricing import get_pricing
from ordering.settings import get_settings

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class PlaceOrder:
    cart_id = Identifier(required=True)
    checkout_key = String(required=True, max_length=64)
    customer_name = String(required=True, max_length=255)
    fulfillment_method = String(required=True, max_length=20)
    delivery_address = Text()  # JSON: address dict, delivery orders only
    payment_method = String(required=True, max_length=20)


def _check_guest_weight(total_weight_grams):
    """Guests have no tracked allowance; a single order may still not exceed the daily limit."""
    limit = get_settings().daily_purchase_limit_grams
    if total_weight_grams > limit:
        raise ValidationError(
            {"purchase_limit": [f"Order of {total_weight_grams:.1f}g exceeds the daily purchase limit of {limit:.1f}g"]}
        )


@ordering.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        cart_repo = current_domain.repository_for(ShoppingCart)
        cart = cart_repo.get(command.cart_id)

        if cart.last_checkout_key and cart.last_checkout_key == command.checkout_key:
            logger.info(
                "Checkout key already used, returning existing order",
                cart_id=str(cart.id),
                order_id=str(cart.last_order_id),
            )
            return str(cart.last_order_id)

        if not cart.items:
            raise ValidationError({"cart": ["Cannot place an order from an empty cart"]})

        quote = get_pricing().quote(
            cart.priced_lines(),
            promo_code=cart.promo_code,
            remaining_grams=None,
            fulfillment_method=command.fulfillment_method,
        )
        subtotal = cart.subtotal_cents
        discount = quote.promo_discount_cents if cart.promo_code else 0
        pricing = {
            "subtotal_cents": subtotal,
            "promo_code": cart.promo_code,
            "promo_discount_cents": discount,
            "tax_cents": quote.tax_cents,
            "delivery_fee_cents": quote.delivery_fee_cents,
            "total_cents": max(0, subtotal - discount + quote.tax_cents + quote.delivery_fee_cents),
        }

        delivery_address = (
            json.loads(command.delivery_address)
            if isinstance(command.delivery_address, str)
            else command.delivery_address
        )

        order = Order.place(
            customer_id=cart.customer_id,
            customer_name=command.customer_name,
            cart_id=cart.id,
            checkout_key=command.checkout_key,
            items_data=cart.snapshot_items(),
            fulfillment_method=command.fulfillment_method,
            payment_method=command.payment_method,
            pricing=pricing,
            delivery_address=delivery_address,
        )

        if cart.customer_id:
            allowance = load_allowance(cart.customer_id)
            allowance.record_purchase(order.id, order.total_weight_grams)
            current_domain.repository_for(PurchaseAllowance).add(allowance)
        else:
            _check_guest_weight(order.total_weight_grams)

        cart.checkout_completed(command.checkout_key, order.id)

        current_domain.repository_for(Order).add(order)
        cart_repo.add(cart)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            cart_id=str(cart.id),
            total_cents=order.pricing.total_cents,
        )
        return str(order.id)
