"""Cart reconciliation: merge an authoritative server snapshot into the local cart.

The server owns prices, tax, promo discount, delivery fee and the purchase
limit flag. The local cart owns the existence and quantity of any line the
customer touched after the snapshot was requested (or whose sync is still in
flight); every other line follows the server.

``reconcile`` is a pure function: same inputs, same output, and applying it
twice with the same snapshot changes nothing further.
"""

from collections.abc import Set

from storefront.models import Cart, CartKey


def reconcile(
    local: Cart,
    server: Cart,
    local_authority: Set[CartKey] = frozenset(),
    keep_local_promo: bool = False,
) -> Cart:
    """Return the cart the customer should see after receiving ``server``.

    Args:
        local: The cart currently shown.
        server: The authoritative snapshot.
        local_authority: Keys whose local existence and quantity win.
        keep_local_promo: Keep the local promo code while a promo change is in flight.
    """
    server_items = {item.key: item for item in server.items}
    merged = []
    seen = set()

    # Local display order first
    for item in local.items:
        seen.add(item.key)
        server_item = server_items.get(item.key)
        if item.key in local_authority:
            if server_item is None:
                merged.append(item)
            else:
                merged.append(server_item.with_quantity(item.quantity))
        elif server_item is not None:
            merged.append(server_item)

    # Then lines only the server knows about, unless removed locally since
    for item in server.items:
        if item.key in seen or item.key in local_authority:
            continue
        merged.append(item)

    if keep_local_promo:
        promo_code, discount = local.applied_promo_code, local.promo_discount_cents
    else:
        promo_code, discount = server.applied_promo_code, server.promo_discount_cents

    return Cart(
        cart_id=local.cart_id or server.cart_id,
        items=tuple(merged),
        applied_promo_code=promo_code,
        promo_discount_cents=discount,
        tax_cents=server.tax_cents,
        delivery_fee_cents=server.delivery_fee_cents,
        exceeds_purchase_limit=server.exceeds_purchase_limit,
    )
