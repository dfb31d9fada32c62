"""Purchase-limit guard: advisory check before an item goes into the cart.

The server enforces the daily limit when an order is placed; this guard only
stops the customer from building a cart the server will refuse, and warns
when an add leaves little allowance for the rest of the day.
"""

from dataclasses import dataclass

from storefront.models import PurchaseLimitState

# One eighth of an ounce
WARNING_THRESHOLD_GRAMS = 3.5


@dataclass(frozen=True)
class LimitCheck:
    """Outcome of a purchase-limit check."""

    can_add: bool
    warning: str | None = None
    remaining_grams: float | None = None


def check_purchase_limit(
    variant_weight_grams: float | None,
    quantity: int,
    limit_state: PurchaseLimitState | None,
    *,
    authenticated: bool = True,
    warning_threshold_grams: float = WARNING_THRESHOLD_GRAMS,
) -> LimitCheck:
    """Decide whether ``quantity`` units of a variant fit in today's allowance.

    Guests, an unavailable limit state, and variants without a weight always
    pass: there is nothing to check against, and the server has the final say.
    """
    if not authenticated or limit_state is None or variant_weight_grams is None:
        return LimitCheck(can_add=True)

    remaining = limit_state.remaining_grams
    total = variant_weight_grams * quantity

    if total > remaining:
        return LimitCheck(
            can_add=False,
            warning=(
                "Adding this quantity would exceed your daily purchase limit. "
                f"You can add up to {remaining:.1f}g more today."
            ),
            remaining_grams=remaining,
        )

    left_after = remaining - total
    if left_after < warning_threshold_grams:
        return LimitCheck(
            can_add=True,
            warning=(f"You're near your daily purchase limit. {left_after:.1f}g remaining after this purchase."),
            remaining_grams=remaining,
        )

    return LimitCheck(can_add=True, remaining_grams=remaining)
