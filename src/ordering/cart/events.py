"""Domain events for the ShoppingCart aggregate."""

from protean.fields import Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="ShoppingCart")
class CartItemAdded:
    """A product variant was added to the cart, or its quantity increased."""

    __version__ = 1

    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    sku = String(required=True)
    quantity_added = Integer(required=True)
    new_quantity = Integer(required=True)


@ordering.event(part_of="ShoppingCart")
class CartQuantityUpdated:
    """The quantity of a cart line was set."""

    __version__ = 1

    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@ordering.event(part_of="ShoppingCart")
class CartItemRemoved:
    """A line was removed from the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)


@ordering.event(part_of="ShoppingCart")
class CartCleared:
    """All lines and the promo were removed from the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    items_removed = Integer(required=True)


@ordering.event(part_of="ShoppingCart")
class CartPromoApplied:
    """A promo code became the cart's single active promo."""

    __version__ = 1

    cart_id = Identifier(required=True)
    promo_code = String(required=True)
    replaced_code = String()


@ordering.event(part_of="ShoppingCart")
class CartPromoRemoved:
    """The active promo code was removed from the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    promo_code = String(required=True)


@ordering.event(part_of="ShoppingCart")
class CartCheckedOut:
    """The cart's contents became an order and the cart was emptied."""

    __version__ = 1

    cart_id = Identifier(required=True)
    order_id = Identifier(required=True)
    checkout_key = String(required=True)
