"""Checkout Orchestrator: three ordered steps, then one order submission.

    FULFILLMENT → PAYMENT → REVIEW → SUBMITTING → SUCCEEDED
                                          └──────→ FAILED → (retry) → REVIEW

Fulfillment and payment are validated locally and never call the server. The
review shows the live cart. Submission sends the customer's choices; the
server builds the order from its own cart, so the cart is cleared locally only
after the server has confirmed the order.

Each submission carries a checkout key. The key survives retries, so a retry
after a lost response returns the order the first attempt created instead of
placing a second one. Changing the fulfillment or payment choice starts a new key.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol
from uuid import uuid4

import structlog
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from storefront.api.port import StorefrontApi
from storefront.cart_store import CartStore
from storefront.errors import ApiError, CheckoutStateError, CheckoutValidationError, TransportError
from storefront.models import (
    CartItem,
    DeliveryIntent,
    FulfillmentIntent,
    Order,
    OrderRequest,
    PaymentMethod,
    PickupIntent,
)

logger = structlog.get_logger(__name__)

_intent_adapter = TypeAdapter(FulfillmentIntent)


class CheckoutStep(Enum):
    FULFILLMENT = "fulfillment"
    PAYMENT = "payment"
    REVIEW = "review"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PaymentFieldCapability(Protocol):
    """A hosted card-entry field. ``error`` is None when the entered card is valid."""

    @property
    def error(self) -> str | None: ...


@dataclass(frozen=True)
class ReviewSummary:
    items: tuple[CartItem, ...]
    fulfillment: PickupIntent | DeliveryIntent
    payment_method: PaymentMethod
    subtotal_cents: int
    promo_code: str | None
    promo_discount_cents: int
    tax_cents: int
    delivery_fee_cents: int
    total_cents: int
    exceeds_purchase_limit: bool


@dataclass(frozen=True)
class CheckoutFailure:
    message: str
    outcome_unknown: bool = False
    error: ApiError | None = None


def _field_errors(exc: PydanticValidationError) -> dict[str, str]:
    errors = {}
    for error in exc.errors():
        location = [str(part) for part in error["loc"] if part not in ("pickup", "delivery")]
        errors[".".join(location) or "fulfillment"] = error["msg"]
    return errors


class CheckoutOrchestrator:
    def __init__(self, api: StorefrontApi, cart_store: CartStore, customer_name: str) -> None:
        self._api = api
        self._cart_store = cart_store
        self._customer_name = customer_name

        self._step = CheckoutStep.FULFILLMENT
        self._fulfillment: PickupIntent | DeliveryIntent | None = None
        self._payment_method: PaymentMethod | None = None
        self._checkout_key: str | None = None
        self._order: Order | None = None
        self._failure: CheckoutFailure | None = None

    @property
    def step(self) -> CheckoutStep:
        return self._step

    @property
    def fulfillment(self) -> PickupIntent | DeliveryIntent | None:
        return self._fulfillment

    @property
    def payment_method(self) -> PaymentMethod | None:
        return self._payment_method

    @property
    def order(self) -> Order | None:
        return self._order

    @property
    def failure(self) -> CheckoutFailure | None:
        return self._failure

    def _require(self, *steps: CheckoutStep) -> None:
        if self._step not in steps:
            allowed = ", ".join(step.value for step in steps)
            raise CheckoutStateError(f"Not allowed in the {self._step.value} step (allowed in: {allowed})")

    # -------------------------------------------------------------------
    # Step 1: fulfillment
    # -------------------------------------------------------------------
    def submit_fulfillment(self, method: str, address: dict | None = None) -> PickupIntent | DeliveryIntent:
        """Validate and store the fulfillment choice, then move to payment."""
        self._require(CheckoutStep.FULFILLMENT)

        data = {"method": method}
        if method == "delivery":
            data["address"] = address or {}
        try:
            intent = _intent_adapter.validate_python(data)
        except PydanticValidationError as exc:
            raise CheckoutValidationError(_field_errors(exc)) from exc

        self._fulfillment = intent
        self._checkout_key = None
        self._step = CheckoutStep.PAYMENT
        return intent

    # -------------------------------------------------------------------
    # Step 2: payment
    # -------------------------------------------------------------------
    def submit_payment(self, method: str, capability: PaymentFieldCapability | None = None) -> PaymentMethod:
        """Validate and store the payment method, then move to review."""
        self._require(CheckoutStep.PAYMENT)

        try:
            payment_method = PaymentMethod(method)
        except ValueError as exc:
            raise CheckoutValidationError({"payment_method": f"Unsupported payment method {method}"}) from exc

        if payment_method == PaymentMethod.CARD:
            if capability is None:
                raise CheckoutValidationError({"card": "Card details are required"})
            if capability.error:
                raise CheckoutValidationError({"card": capability.error})

        self._payment_method = payment_method
        self._checkout_key = None
        self._step = CheckoutStep.REVIEW
        return payment_method

    # -------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------
    def back(self) -> CheckoutStep:
        """Go back one step, keeping what was entered."""
        previous = {
            CheckoutStep.PAYMENT: CheckoutStep.FULFILLMENT,
            CheckoutStep.REVIEW: CheckoutStep.PAYMENT,
            CheckoutStep.FAILED: CheckoutStep.REVIEW,
        }
        if self._step not in previous:
            raise CheckoutStateError(f"Cannot go back from the {self._step.value} step")
        self._step = previous[self._step]
        return self._step

    def retry(self) -> None:
        """Return to review after a failed submission."""
        self._require(CheckoutStep.FAILED)
        self._step = CheckoutStep.REVIEW

    def cancel(self) -> None:
        """Abandon checkout. Nothing was sent, so nothing needs undoing."""
        self._require(CheckoutStep.FULFILLMENT, CheckoutStep.PAYMENT, CheckoutStep.REVIEW, CheckoutStep.FAILED)
        self._step = CheckoutStep.FULFILLMENT
        self._fulfillment = None
        self._payment_method = None
        self._checkout_key = None
        self._failure = None

    # -------------------------------------------------------------------
    # Step 3: review and submit
    # -------------------------------------------------------------------
    def review(self) -> ReviewSummary:
        """Summary of the live cart plus the choices made so far."""
        self._require(CheckoutStep.REVIEW, CheckoutStep.SUBMITTING, CheckoutStep.FAILED)
        cart = self._cart_store.cart
        return ReviewSummary(
            items=cart.items,
            fulfillment=self._fulfillment,
            payment_method=self._payment_method,
            subtotal_cents=cart.subtotal_cents,
            promo_code=cart.applied_promo_code,
            promo_discount_cents=cart.promo_discount_cents,
            tax_cents=cart.tax_cents,
            delivery_fee_cents=cart.delivery_fee_cents,
            total_cents=cart.total_cents,
            exceeds_purchase_limit=cart.exceeds_purchase_limit,
        )

    async def place_order(self) -> Order | None:
        """Submit the order. Returns None and moves to FAILED when the server call fails."""
        if self._step == CheckoutStep.SUBMITTING:
            raise CheckoutStateError("The order is already being submitted")
        self._require(CheckoutStep.REVIEW, CheckoutStep.FAILED)

        resume_step = self._step
        self._step = CheckoutStep.SUBMITTING
        self._failure = None

        # The server places the order from its own cart; let pending changes land first
        try:
            await self._cart_store.settle()
        except Exception:
            self._step = resume_step
            logger.exception("Cart sync failed before order submission", cart_id=self._cart_store.cart_id)
            raise

        cart = self._cart_store.cart
        if cart.is_empty or cart.exceeds_purchase_limit:
            self._step = CheckoutStep.REVIEW
            reason = "Your cart is empty" if cart.is_empty else "Your cart exceeds your daily purchase limit"
            raise CheckoutValidationError({"cart": reason})

        if self._checkout_key is None:
            self._checkout_key = uuid4().hex

        request = OrderRequest(
            checkout_key=self._checkout_key,
            customer_name=self._customer_name,
            fulfillment=self._fulfillment,
            payment_method=self._payment_method,
        )

        try:
            order = await self._api.place_order(self._cart_store.cart_id, request)
        except ApiError as exc:
            self._failure = CheckoutFailure(
                message=exc.message,
                outcome_unknown=isinstance(exc, TransportError),
                error=exc,
            )
            self._step = CheckoutStep.FAILED
            logger.warning(
                "Order submission failed",
                cart_id=self._cart_store.cart_id,
                error_type=exc.error_type,
                outcome_unknown=self._failure.outcome_unknown,
            )
            return None

        self._order = order
        self._checkout_key = None
        self._cart_store.reset()
        self._step = CheckoutStep.SUCCEEDED
        logger.info("Order placed", order_id=order.order_id, order_number=order.order_number)
        return order
