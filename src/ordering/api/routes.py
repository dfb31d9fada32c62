"""FastAPI routes for the Ordering domain: carts, orders and purchase limits."""

import json

from fastapi import APIRouter, Query
from protean.utils.globals import current_domain

from ordering.api.schemas import (
    AddToCartRequest,
    ApplyPromoRequest,
    CartItemResponse,
    CartResponse,
    ChangeOrderStatusRequest,
    CheckoutRequest,
    CreateCartRequest,
    DeliveryAddressSchema,
    OrderActionRequest,
    OrderItemResponse,
    OrderResponse,
    PurchaseLimitResponse,
    RemainingSchema,
    SetPurchaseLimitRequest,
    StatusEventResponse,
    StatusResponse,
    UpdateCartQuantityRequest,
)
from ordering.cart.cart import ShoppingCart
from ordering.cart.items import AddToCart, ClearCart, RemoveFromCart, UpdateCartQuantity
from ordering.cart.management import CreateCart
from ordering.cart.promos import ApplyPromoToCart, RemovePromoFromCart
from ordering.compliance.allowance import load_allowance
from ordering.compliance.limits import SetDailyPurchaseLimit
from ordering.order.cancellation import CancelOrder, RefundOrder
from ordering.order.order import Order
from ordering.order.placement import PlaceOrder
from ordering.order.status import ChangeOrderStatus


# ---------------------------------------------------------------------------
# Presenters
# ---------------------------------------------------------------------------
def _cart_response(cart: ShoppingCart) -> CartResponse:
    return CartResponse(
        cart_id=str(cart.id),
        customer_id=str(cart.customer_id) if cart.customer_id else None,
        items=[
            CartItemResponse(
                product_id=str(item.product_id),
                variant_id=str(item.variant_id),
                sku=item.sku,
                name=item.name,
                quantity=item.quantity,
                unit_price_cents=item.unit_price_cents,
                total_price_cents=item.total_price_cents,
                weight_grams=item.weight_grams,
                max_quantity=item.max_quantity,
            )
            for item in cart.sorted_items()
        ],
        promo_code=cart.promo_code,
        promo_discount_cents=cart.promo_discount_cents or 0,
        tax_cents=cart.tax_cents or 0,
        delivery_fee_cents=cart.delivery_fee_cents or 0,
        subtotal_cents=cart.subtotal_cents,
        total_cents=cart.total_cents,
        item_count=cart.item_count,
        exceeds_purchase_limit=bool(cart.exceeds_purchase_limit),
    )


def _order_response(order: Order) -> OrderResponse:
    address = order.delivery_address
    next_status = order.next_status
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        status=order.status,
        next_status=next_status.value if next_status else None,
        customer_id=str(order.customer_id) if order.customer_id else None,
        customer_name=order.customer_name,
        fulfillment_method=order.fulfillment_method,
        delivery_address=(
            DeliveryAddressSchema(
                street=address.street,
                apt=address.apt,
                city=address.city,
                state=address.state,
                zip_code=address.zip_code,
            )
            if address
            else None
        ),
        payment_method=order.payment_method,
        items=[
            OrderItemResponse(
                product_id=str(item.product_id),
                variant_id=str(item.variant_id),
                sku=item.sku,
                name=item.name,
                quantity=item.quantity,
                unit_price_cents=item.unit_price_cents,
                total_price_cents=item.total_price_cents,
                weight_grams=item.weight_grams,
            )
            for item in order.items
        ],
        status_history=[
            StatusEventResponse(
                status=change.status,
                timestamp=change.changed_at,
                actor_name=change.actor_name,
                note=change.note,
            )
            for change in order.history()
        ],
        subtotal_cents=order.pricing.subtotal_cents,
        promo_code=order.pricing.promo_code,
        promo_discount_cents=order.pricing.promo_discount_cents,
        tax_cents=order.pricing.tax_cents,
        delivery_fee_cents=order.pricing.delivery_fee_cents,
        total_cents=order.pricing.total_cents,
        placed_at=order.placed_at,
    )


def _load_cart(cart_id: str) -> CartResponse:
    return _cart_response(current_domain.repository_for(ShoppingCart).get(cart_id))


def _load_order(order_id: str) -> OrderResponse:
    return _order_response(current_domain.repository_for(Order).get(order_id))


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.post("", status_code=201, response_model=CartResponse)
async def create_cart(body: CreateCartRequest) -> CartResponse:
    command = CreateCart(customer_id=body.customer_id)
    cart_id = current_domain.process(command, asynchronous=False)
    return _load_cart(cart_id)


@cart_router.get("/{cart_id}", response_model=CartResponse)
async def get_cart(cart_id: str) -> CartResponse:
    return _load_cart(cart_id)


@cart_router.post("/{cart_id}/items", response_model=CartResponse)
async def add_cart_item(cart_id: str, body: AddToCartRequest) -> CartResponse:
    command = AddToCart(
        cart_id=cart_id,
        product_id=body.product_id,
        variant_id=body.variant_id,
        sku=body.sku,
        name=body.name,
        quantity=body.quantity,
        unit_price_cents=body.unit_price_cents,
        weight_grams=body.weight_grams,
        max_quantity=body.max_quantity,
    )
    current_domain.process(command, asynchronous=False)
    return _load_cart(cart_id)


@cart_router.put("/{cart_id}/items/{product_id}/{variant_id}", response_model=CartResponse)
async def update_cart_item_quantity(
    cart_id: str, product_id: str, variant_id: str, body: UpdateCartQuantityRequest
) -> CartResponse:
    command = UpdateCartQuantity(
        cart_id=cart_id,
        product_id=product_id,
        variant_id=variant_id,
        new_quantity=body.quantity,
    )
    current_domain.process(command, asynchronous=False)
    return _load_cart(cart_id)


@cart_router.delete("/{cart_id}/items/{product_id}/{variant_id}", response_model=CartResponse)
async def remove_cart_item(cart_id: str, product_id: str, variant_id: str) -> CartResponse:
    command = RemoveFromCart(
        cart_id=cart_id,
        product_id=product_id,
        variant_id=variant_id,
    )
    current_domain.process(command, asynchronous=False)
    return _load_cart(cart_id)


@cart_router.delete("/{cart_id}/items", response_model=CartResponse)
async def clear_cart(cart_id: str) -> CartResponse:
    current_domain.process(ClearCart(cart_id=cart_id), asynchronous=False)
    return _load_cart(cart_id)


@cart_router.post("/{cart_id}/promo", response_model=CartResponse)
async def apply_cart_promo(cart_id: str, body: ApplyPromoRequest) -> CartResponse:
    command = ApplyPromoToCart(
        cart_id=cart_id,
        promo_code=body.code,
    )
    current_domain.process(command, asynchronous=False)
    return _load_cart(cart_id)


@cart_router.delete("/{cart_id}/promo", response_model=CartResponse)
async def remove_cart_promo(cart_id: str) -> CartResponse:
    current_domain.process(RemovePromoFromCart(cart_id=cart_id), asynchronous=False)
    return _load_cart(cart_id)


@cart_router.post("/{cart_id}/checkout", status_code=201, response_model=OrderResponse)
async def checkout_cart(cart_id: str, body: CheckoutRequest) -> OrderResponse:
    """Place an order from the server's current cart.

    The line items come from the server cart, never from the request, so the
    order reflects what the server priced and validated.
    """
    address = body.fulfillment.address
    command = PlaceOrder(
        cart_id=cart_id,
        checkout_key=body.checkout_key,
        customer_name=body.customer_name,
        fulfillment_method=body.fulfillment.method,
        delivery_address=json.dumps(address.model_dump()) if address else None,
        payment_method=body.payment_method,
    )
    order_id = current_domain.process(command, asynchronous=False)
    return _load_order(order_id)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    return _load_order(order_id)


@order_router.post("/{order_id}/status", response_model=OrderResponse)
async def change_order_status(order_id: str, body: ChangeOrderStatusRequest) -> OrderResponse:
    command = ChangeOrderStatus(
        order_id=order_id,
        status=body.status,
        expected_status=body.expected_status,
        actor_name=body.actor_name,
        note=body.note,
    )
    current_domain.process(command, asynchronous=False)
    return _load_order(order_id)


@order_router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(order_id: str, body: OrderActionRequest) -> OrderResponse:
    command = CancelOrder(
        order_id=order_id,
        expected_status=body.expected_status,
        actor_name=body.actor_name,
        note=body.note,
    )
    current_domain.process(command, asynchronous=False)
    return _load_order(order_id)


@order_router.post("/{order_id}/refund", response_model=OrderResponse)
async def refund_order(order_id: str, body: OrderActionRequest) -> OrderResponse:
    command = RefundOrder(
        order_id=order_id,
        expected_status=body.expected_status,
        actor_name=body.actor_name,
        note=body.note,
    )
    current_domain.process(command, asynchronous=False)
    return _load_order(order_id)


# ---------------------------------------------------------------------------
# Compliance Router
# ---------------------------------------------------------------------------
compliance_router = APIRouter(prefix="/compliance", tags=["compliance"])


@compliance_router.get("/purchase-limit", response_model=PurchaseLimitResponse)
async def get_purchase_limit(customer_id: str = Query(min_length=1)) -> PurchaseLimitResponse:
    allowance = load_allowance(customer_id)
    return PurchaseLimitResponse(
        customer_id=customer_id,
        daily_limit=allowance.daily_limit_grams,
        consumed=allowance.consumed_grams,
        remaining=RemainingSchema(total=allowance.remaining_grams),
    )


@compliance_router.put("/purchase-limit/{customer_id}", response_model=StatusResponse)
async def set_purchase_limit(customer_id: str, body: SetPurchaseLimitRequest) -> StatusResponse:
    command = SetDailyPurchaseLimit(
        customer_id=customer_id,
        daily_limit_grams=body.daily_limit_grams,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()
