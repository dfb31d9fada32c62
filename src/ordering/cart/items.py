"""Cart item management: commands and handler.

Lines are addressed by (product_id, variant_id), never by a server-side line
id, so a client can refer to a line before its first add was confirmed.
"""

from protean import handle
from protean.fields import Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.cart.cart import ShoppingCart
from ordering.cart.repricing import reprice_cart
from ordering.domain import ordering


@ordering.command(part_of="ShoppingCart")
class AddToCart:
    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    sku = String(required=True, max_length=50)
    name = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price_cents = Integer(required=True, min_value=0)
    weight_grams = Float(min_value=0.0)
    max_quantity = Integer(min_value=1)


@ordering.command(part_of="ShoppingCart")
class UpdateCartQuantity:
    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    new_quantity = Integer(required=True, min_value=1)


@ordering.command(part_of="ShoppingCart")
class RemoveFromCart:
    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)


@ordering.command(part_of="ShoppingCart")
class ClearCart:
    cart_id = Identifier(required=True)


@ordering.command_handler(part_of=ShoppingCart)
class ManageCartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)
        cart.add_item(
            product_id=command.product_id,
            variant_id=command.variant_id,
            sku=command.sku,
            name=command.name,
            quantity=command.quantity,
            unit_price_cents=command.unit_price_cents,
            weight_grams=command.weight_grams,
            max_quantity=command.max_quantity,
        )
        reprice_cart(cart)
        repo.add(cart)

    @handle(UpdateCartQuantity)
    def update_cart_quantity(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)
        cart.update_item_quantity(
            product_id=command.product_id,
            variant_id=command.variant_id,
            new_quantity=command.new_quantity,
        )
        reprice_cart(cart)
        repo.add(cart)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)
        cart.remove_item(product_id=command.product_id, variant_id=command.variant_id)
        reprice_cart(cart)
        repo.add(cart)

    @handle(ClearCart)
    def clear_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)
        cart.clear()
        repo.add(cart)
