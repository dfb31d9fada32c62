"""Cart promo management: commands and handler."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.cart.cart import ShoppingCart
from ordering.cart.repricing import reprice_cart
from ordering.domain import ordering
from ordering.pricing import get_pricing


@ordering.command(part_of="ShoppingCart")
class ApplyPromoToCart:
    """Make a promo code the cart's single active promo."""

    cart_id = Identifier(required=True)
    promo_code = String(required=True, max_length=50)


@ordering.command(part_of="ShoppingCart")
class RemovePromoFromCart:
    cart_id = Identifier(required=True)


@ordering.command_handler(part_of=ShoppingCart)
class ManagePromoHandler:
    @handle(ApplyPromoToCart)
    def apply_promo(self, command):
        get_pricing().validate_promo(command.promo_code)

        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)
        cart.apply_promo(command.promo_code)
        reprice_cart(cart)
        repo.add(cart)

    @handle(RemovePromoFromCart)
    def remove_promo(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)
        cart.remove_promo()
        reprice_cart(cart)
        repo.add(cart)
