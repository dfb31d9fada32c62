"""Client-side data model: cart, purchase limits, fulfillment intent and orders.

All models are immutable; every change produces a new instance. Money is in
integer cents, weights in grams. Cart totals are computed from the lines and
cannot be assigned.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from shared.order_lifecycle import FulfillmentMethod, OrderStatus, is_terminal, next_status

CartKey = tuple[str, str]


class PaymentMethod(Enum):
    CARD = "card"
    CASH = "cash"


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class CartItem(BaseModel):
    """One cart line, identified by (product_id, variant_id)."""

    model_config = ConfigDict(frozen=True)

    product_id: str
    variant_id: str
    sku: str
    name: str | None = None
    quantity: int = Field(ge=1)
    unit_price_cents: int = Field(ge=0)
    weight_grams: float | None = Field(default=None, ge=0)
    max_quantity: int | None = Field(default=None, ge=1)

    @property
    def key(self) -> CartKey:
        return (self.product_id, self.variant_id)

    @computed_field
    @property
    def total_price_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def with_quantity(self, quantity: int) -> "CartItem":
        return self.model_copy(update={"quantity": quantity})

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "CartItem":
        return cls(
            product_id=payload["product_id"],
            variant_id=payload["variant_id"],
            sku=payload["sku"],
            name=payload.get("name"),
            quantity=payload["quantity"],
            unit_price_cents=payload["unit_price_cents"],
            weight_grams=payload.get("weight_grams"),
            max_quantity=payload.get("max_quantity"),
        )


class Cart(BaseModel):
    model_config = ConfigDict(frozen=True)

    cart_id: str | None = None
    items: tuple[CartItem, ...] = ()
    applied_promo_code: str | None = None
    promo_discount_cents: int = Field(default=0, ge=0)
    tax_cents: int = Field(default=0, ge=0)
    delivery_fee_cents: int = Field(default=0, ge=0)
    exceeds_purchase_limit: bool = False

    @computed_field
    @property
    def subtotal_cents(self) -> int:
        return sum(item.total_price_cents for item in self.items)

    @computed_field
    @property
    def total_cents(self) -> int:
        return max(0, self.subtotal_cents - self.promo_discount_cents + self.tax_cents + self.delivery_fee_cents)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def total_weight_grams(self) -> float:
        return round(sum((item.weight_grams or 0.0) * item.quantity for item in self.items), 3)

    def find(self, key: CartKey) -> CartItem | None:
        return next((item for item in self.items if item.key == key), None)

    def index_of(self, key: CartKey) -> int | None:
        return next((i for i, item in enumerate(self.items) if item.key == key), None)

    def with_item(self, item: CartItem, index: int | None = None) -> "Cart":
        """Replace the line with the same key in place, or insert it (at ``index`` or the end)."""
        items = list(self.items)
        existing = self.index_of(item.key)
        if existing is not None:
            items[existing] = item
        elif index is None or index >= len(items):
            items.append(item)
        else:
            items.insert(index, item)
        return self.model_copy(update={"items": tuple(items)})

    def without_item(self, key: CartKey) -> "Cart":
        return self.model_copy(update={"items": tuple(item for item in self.items if item.key != key)})

    def with_promo(self, code: str | None, discount_cents: int = 0) -> "Cart":
        return self.model_copy(update={"applied_promo_code": code, "promo_discount_cents": discount_cents})

    def emptied(self) -> "Cart":
        return Cart(cart_id=self.cart_id)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "Cart":
        return cls(
            cart_id=payload.get("cart_id"),
            items=tuple(CartItem.from_api(item) for item in payload.get("items", [])),
            applied_promo_code=payload.get("promo_code"),
            promo_discount_cents=payload.get("promo_discount_cents", 0),
            tax_cents=payload.get("tax_cents", 0),
            delivery_fee_cents=payload.get("delivery_fee_cents", 0),
            exceeds_purchase_limit=payload.get("exceeds_purchase_limit", False),
        )


# ---------------------------------------------------------------------------
# Purchase limits
# ---------------------------------------------------------------------------
class PurchaseLimitState(BaseModel):
    """The customer's daily allowance as last reported by the server."""

    model_config = ConfigDict(frozen=True)

    remaining_grams: float = Field(ge=0)
    daily_limit_grams: float | None = None
    consumed_grams: float | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "PurchaseLimitState":
        return cls(
            remaining_grams=payload["remaining"]["total"],
            daily_limit_grams=payload.get("daily_limit"),
            consumed_grams=payload.get("consumed"),
        )


# ---------------------------------------------------------------------------
# Fulfillment intent
# ---------------------------------------------------------------------------
class DeliveryAddress(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    street: str = Field(min_length=5, max_length=255)
    apt: str | None = Field(default=None, max_length=50)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(pattern=r"^[A-Za-z]{2}$")
    zip_code: str = Field(pattern=r"^\d{5}(-?\d{4})?$")

    @field_validator("state")
    @classmethod
    def uppercase_state(cls, value: str) -> str:
        return value.upper()

    @field_validator("apt")
    @classmethod
    def blank_apt_is_none(cls, value: str | None) -> str | None:
        return value or None


class PickupIntent(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: Literal["pickup"] = "pickup"


class DeliveryIntent(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: Literal["delivery"] = "delivery"
    address: DeliveryAddress


FulfillmentIntent = Annotated[PickupIntent | DeliveryIntent, Field(discriminator="method")]


class OrderRequest(BaseModel):
    """What the storefront sends to place an order. Line items come from the server cart."""

    model_config = ConfigDict(frozen=True)

    checkout_key: str
    customer_name: str = Field(min_length=1)
    fulfillment: FulfillmentIntent
    payment_method: PaymentMethod

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class StatusEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: OrderStatus
    timestamp: datetime
    actor_name: str
    note: str | None = None


class OrderLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: str
    variant_id: str
    sku: str
    name: str | None = None
    quantity: int
    unit_price_cents: int
    total_price_cents: int
    weight_grams: float | None = None


class Order(BaseModel):
    """Read model of a placed order. Only the server changes it."""

    model_config = ConfigDict(frozen=True)

    order_id: str
    order_number: str
    status: OrderStatus
    customer_id: str | None = None
    customer_name: str
    fulfillment_method: FulfillmentMethod
    delivery_address: DeliveryAddress | None = None
    payment_method: PaymentMethod
    items: tuple[OrderLine, ...]
    status_history: tuple[StatusEvent, ...]
    subtotal_cents: int
    promo_code: str | None = None
    promo_discount_cents: int = 0
    tax_cents: int = 0
    delivery_fee_cents: int = 0
    total_cents: int
    placed_at: datetime

    @property
    def next_status(self) -> OrderStatus | None:
        return next_status(self.status, self.fulfillment_method)

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "Order":
        return cls.model_validate(
            {
                **payload,
                "status_history": [
                    {
                        "status": event["status"],
                        "timestamp": event["timestamp"],
                        "actor_name": event["actor_name"],
                        "note": event.get("note"),
                    }
                    for event in payload.get("status_history", [])
                ],
            }
        )
