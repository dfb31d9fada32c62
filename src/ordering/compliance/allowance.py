"""PurchaseAllowance aggregate: a customer's regulatory daily purchase limit.

Cannabis retail caps how many grams a customer may buy per day. The allowance
tracks grams consumed by placed orders within the current day window; the
window rolls over when the date changes. The storefront reads the remaining
grams for its advisory guard; order placement re-checks here, authoritatively.
"""

from datetime import UTC, date, datetime

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Date, DateTime, Float, Identifier
from protean.utils.globals import current_domain

from ordering.compliance.events import PurchaseRecorded, PurchaseReleased
from ordering.domain import ordering
from ordering.settings import get_settings

# Float grams are compared with a small tolerance
_EPSILON = 1e-6


def _today() -> date:
    return datetime.now(UTC).date()


@ordering.aggregate
class PurchaseAllowance:
    customer_id = Identifier(identifier=True)
    daily_limit_grams = Float(required=True, min_value=0.0)
    consumed_grams = Float(default=0.0, min_value=0.0)
    window_date = Date(required=True)
    updated_at = DateTime()

    @classmethod
    def create(cls, customer_id, daily_limit_grams=None, today=None):
        if daily_limit_grams is None:
            daily_limit_grams = get_settings().daily_purchase_limit_grams
        return cls(
            customer_id=customer_id,
            daily_limit_grams=daily_limit_grams,
            consumed_grams=0.0,
            window_date=today or _today(),
            updated_at=datetime.now(UTC),
        )

    @property
    def remaining_grams(self) -> float:
        return max(0.0, round(self.daily_limit_grams - self.consumed_grams, 3))

    def roll_window(self, today=None):
        """Start a fresh day window if the date has changed."""
        today = today or _today()
        if self.window_date != today:
            self.window_date = today
            self.consumed_grams = 0.0

    def record_purchase(self, order_id, grams, today=None):
        """Count an order's grams against today's limit.

        Raises ValidationError when the order would take the customer past the limit.
        """
        self.roll_window(today)
        if grams <= 0:
            return

        if grams > self.remaining_grams + _EPSILON:
            raise ValidationError(
                {
                    "purchase_limit": [
                        f"Order of {grams:.1f}g exceeds the daily purchase limit. "
                        f"{self.remaining_grams:.1f}g remaining today."
                    ]
                }
            )

        self.consumed_grams = round(self.consumed_grams + grams, 3)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            PurchaseRecorded(
                customer_id=str(self.customer_id),
                order_id=str(order_id),
                grams=grams,
                consumed_grams=self.consumed_grams,
                window_date=self.window_date,
            )
        )

    def release_purchase(self, order_id, grams, purchased_on, today=None):
        """Give back grams of an order that was cancelled within its own day window."""
        self.roll_window(today)
        if grams <= 0 or purchased_on != self.window_date:
            return

        self.consumed_grams = max(0.0, round(self.consumed_grams - grams, 3))
        self.updated_at = datetime.now(UTC)

        self.raise_(
            PurchaseReleased(
                customer_id=str(self.customer_id),
                order_id=str(order_id),
                grams=grams,
                consumed_grams=self.consumed_grams,
                window_date=self.window_date,
            )
        )


def load_allowance(customer_id) -> PurchaseAllowance:
    """Fetch the customer's allowance, or a fresh one with the default limit."""
    try:
        allowance = current_domain.repository_for(PurchaseAllowance).get(customer_id)
    except ObjectNotFoundError:
        return PurchaseAllowance.create(customer_id=customer_id)

    allowance.roll_window()
    return allowance


def remaining_grams_for(customer_id) -> float | None:
    """Remaining grams for today, or None for guests (no limit state)."""
    if not customer_id:
        return None
    return load_allowance(customer_id).remaining_grams
