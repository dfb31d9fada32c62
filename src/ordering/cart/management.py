"""Cart management: command and handler."""

from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from ordering.cart.cart import ShoppingCart
from ordering.domain import ordering


@ordering.command(part_of="ShoppingCart")
class CreateCart:
    """Create a new shopping cart for a registered customer or a guest."""

    customer_id = Identifier()  # Optional for guest carts


@ordering.command_handler(part_of=ShoppingCart)
class ManageCartHandler:
    @handle(CreateCart)
    def create_cart(self, command):
        cart = ShoppingCart.create(customer_id=command.customer_id)
        current_domain.repository_for(ShoppingCart).add(cart)
        return str(cart.id)
