"""Domain events for the PurchaseAllowance aggregate."""

from protean.fields import Date, Float, Identifier

from ordering.domain import ordering


@ordering.event(part_of="PurchaseAllowance")
class PurchaseRecorded:
    """Grams from a placed order were counted against the customer's daily limit."""

    __version__ = 1

    customer_id = Identifier(required=True)
    order_id = Identifier(required=True)
    grams = Float(required=True)
    consumed_grams = Float(required=True)
    window_date = Date(required=True)


@ordering.event(part_of="PurchaseAllowance")
class PurchaseReleased:
    """Grams from a cancelled or refunded order were given back the same day."""

    __version__ = 1

    customer_id = Identifier(required=True)
    order_id = Identifier(required=True)
    grams = Float(required=True)
    consumed_grams = Float(required=True)
    window_date = Date(required=True)
