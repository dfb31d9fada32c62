"""Re-quote a cart through the pricing service after every change."""

from ordering.compliance.allowance import remaining_grams_for
from ordering.pricing import get_pricing


def reprice_cart(cart):
    quote = get_pricing().quote(
        cart.priced_lines(),
        promo_code=cart.promo_code,
        remaining_grams=remaining_grams_for(cart.customer_id),
    )
    cart.reprice(quote)
