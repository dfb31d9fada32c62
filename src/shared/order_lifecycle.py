"""Order lifecycle contract shared by the ordering server and the storefront client.

The transition table lives here so that the storefront only ever offers the
transition the server will accept, and the server validates every request
against the same data.

Forward path:
    pending → confirmed → processing → ready_for_pickup  → delivered   (pickup)
                                     → out_for_delivery → delivered   (delivery)

Any non-terminal state may also move to cancelled or refunded through an
explicit action. Refunds apply to card-paid orders only, which the table
does not know about; callers check the payment method. delivered, cancelled
and refunded are terminal.
"""

from collections.abc import Iterable
from enum import Enum


class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    READY_FOR_PICKUP = "ready_for_pickup"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class FulfillmentMethod(Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


TERMINAL_STATES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REFUNDED})

# Explicit escape actions, allowed from every non-terminal state
ESCAPE_STATES = frozenset({OrderStatus.CANCELLED, OrderStatus.REFUNDED})

# Forward transitions; processing branches on the fulfillment method
_FORWARD_TRANSITIONS = {
    OrderStatus.PENDING: {None: OrderStatus.CONFIRMED},
    OrderStatus.CONFIRMED: {None: OrderStatus.PROCESSING},
    OrderStatus.PROCESSING: {
        FulfillmentMethod.PICKUP: OrderStatus.READY_FOR_PICKUP,
        FulfillmentMethod.DELIVERY: OrderStatus.OUT_FOR_DELIVERY,
    },
    OrderStatus.READY_FOR_PICKUP: {None: OrderStatus.DELIVERED},
    OrderStatus.OUT_FOR_DELIVERY: {None: OrderStatus.DELIVERED},
}


def _coerce_status(status) -> OrderStatus:
    return status if isinstance(status, OrderStatus) else OrderStatus(status)


def _coerce_method(method) -> FulfillmentMethod:
    return method if isinstance(method, FulfillmentMethod) else FulfillmentMethod(method)


def is_terminal(status) -> bool:
    return _coerce_status(status) in TERMINAL_STATES


def next_status(status, fulfillment_method) -> OrderStatus | None:
    """Return the single forward transition from ``status``, or None when there is none."""
    status = _coerce_status(status)
    branches = _FORWARD_TRANSITIONS.get(status)
    if not branches:
        return None
    if None in branches:
        return branches[None]
    return branches[_coerce_method(fulfillment_method)]


def allowed_transitions(status, fulfillment_method) -> set[OrderStatus]:
    """All statuses reachable in one step from ``status`` for this fulfillment method."""
    status = _coerce_status(status)
    if status in TERMINAL_STATES:
        return set()

    allowed = set(ESCAPE_STATES)
    forward = next_status(status, fulfillment_method)
    if forward is not None:
        allowed.add(forward)
    return allowed


def can_transition(current, target, fulfillment_method) -> bool:
    return _coerce_status(target) in allowed_transitions(current, fulfillment_method)


def validate_history(statuses: Iterable, fulfillment_method) -> list[str]:
    """Check a status sequence against the transition table.

    Returns a list of problems; an empty list means the history is consistent.
    A consistent history starts at pending and every step is a table transition.
    """
    problems = []
    sequence = [_coerce_status(s) for s in statuses]
    if not sequence:
        return ["History is empty"]
    if sequence[0] != OrderStatus.PENDING:
        problems.append(f"History starts at {sequence[0].value}, expected pending")

    for previous, current in zip(sequence, sequence[1:]):
        if not can_transition(previous, current, fulfillment_method):
            problems.append(f"Invalid transition from {previous.value} to {current.value}")
    return problems
