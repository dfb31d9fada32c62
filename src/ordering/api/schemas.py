"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands. Every cart endpoint answers with the full cart so
the storefront can reconcile against an authoritative snapshot.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class DeliveryAddressSchema(BaseModel):
    street: str = Field(min_length=5, max_length=255)
    apt: str | None = Field(default=None, max_length=50)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(pattern=r"^[A-Za-z]{2}$")
    zip_code: str = Field(pattern=r"^\d{5}(-?\d{4})?$")


class FulfillmentSchema(BaseModel):
    method: Literal["pickup", "delivery"]
    address: DeliveryAddressSchema | None = None

    @model_validator(mode="after")
    def delivery_needs_address(self):
        if self.method == "delivery" and self.address is None:
            raise ValueError("Delivery orders require an address")
        return self


# ---------------------------------------------------------------------------
# Cart Request Schemas
# ---------------------------------------------------------------------------
class CreateCartRequest(BaseModel):
    customer_id: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_id": "cust-001",
                }
            ]
        }
    }


class AddToCartRequest(BaseModel):
    product_id: str
    variant_id: str
    sku: str
    name: str | None = None
    quantity: int = Field(ge=1, default=1)
    unit_price_cents: int = Field(ge=0)
    weight_grams: float | None = Field(default=None, ge=0)
    max_quantity: int | None = Field(default=None, ge=1)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product_id": "prod-blue-dream",
                    "variant_id": "var-eighth",
                    "sku": "BD-3.5G",
                    "name": "Blue Dream 3.5g",
                    "quantity": 1,
                    "unit_price_cents": 3500,
                    "weight_grams": 3.5,
                }
            ]
        }
    }


class UpdateCartQuantityRequest(BaseModel):
    quantity: int = Field(ge=1)


class ApplyPromoRequest(BaseModel):
    code: str = Field(min_length=1, max_length=50)


class CheckoutRequest(BaseModel):
    checkout_key: str = Field(min_length=1, max_length=64)
    customer_name: str = Field(min_length=1, max_length=255)
    fulfillment: FulfillmentSchema
    payment_method: Literal["card", "cash"]

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "checkout_key": "3f0c9a3e6e8b4c0f",
                    "customer_name": "Jane Doe",
                    "fulfillment": {
                        "method": "delivery",
                        "address": {
                            "street": "123 Main St",
                            "apt": "4B",
                            "city": "Denver",
                            "state": "CO",
                            "zip_code": "80202",
                        },
                    },
                    "payment_method": "card",
                }
            ]
        }
    }


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class ChangeOrderStatusRequest(BaseModel):
    status: str
    expected_status: str | None = None
    actor_name: str = Field(min_length=1, max_length=255)
    note: str | None = None


class OrderActionRequest(BaseModel):
    expected_status: str | None = None
    actor_name: str = Field(min_length=1, max_length=255)
    note: str | None = None


# ---------------------------------------------------------------------------
# Compliance Request Schemas
# ---------------------------------------------------------------------------
class SetPurchaseLimitRequest(BaseModel):
    daily_limit_grams: float = Field(ge=0)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str = "ok"


class CartItemResponse(BaseModel):
    product_id: str
    variant_id: str
    sku: str
    name: str | None = None
    quantity: int
    unit_price_cents: int
    total_price_cents: int
    weight_grams: float | None = None
    max_quantity: int | None = None


class CartResponse(BaseModel):
    cart_id: str
    customer_id: str | None = None
    items: list[CartItemResponse]
    promo_code: str | None = None
    promo_discount_cents: int = 0
    tax_cents: int = 0
    delivery_fee_cents: int = 0
    subtotal_cents: int = 0
    total_cents: int = 0
    item_count: int = 0
    exceeds_purchase_limit: bool = False


class OrderItemResponse(BaseModel):
    product_id: str
    variant_id: str
    sku: str
    name: str | None = None
    quantity: int
    unit_price_cents: int
    total_price_cents: int
    weight_grams: float | None = None


class StatusEventResponse(BaseModel):
    status: str
    timestamp: datetime
    actor_name: str
    note: str | None = None


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    status: str
    next_status: str | None = None
    customer_id: str | None = None
    customer_name: str
    fulfillment_method: str
    delivery_address: DeliveryAddressSchema | None = None
    payment_method: str
    items: list[OrderItemResponse]
    status_history: list[StatusEventResponse]
    subtotal_cents: int
    promo_code: str | None = None
    promo_discount_cents: int = 0
    tax_cents: int = 0
    delivery_fee_cents: int = 0
    total_cents: int
    placed_at: datetime


class RemainingSchema(BaseModel):
    total: float


class PurchaseLimitResponse(BaseModel):
    customer_id: str
    daily_limit: float
    consumed: float
    remaining: RemainingSchema
