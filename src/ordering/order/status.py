"""Order status transitions: commands and handler.

Staff move an order one step along the transition table. The request names the
status the caller last saw so that a stale request is refused, not applied.
"""

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.cancellation import _release_allowance
from ordering.order.order import Order
from shared.order_lifecycle import ESCAPE_STATES, OrderStatus


@ordering.command(part_of="Order")
class ChangeOrderStatus:
    """Move an order to a specific status allowed by the transition table."""

    order_id = Identifier(required=True)
    status = String(required=True, max_length=30)
    expected_status = String(max_length=30)
    actor_name = String(required=True, max_length=255)
    note = Text()


@ordering.command(part_of="Order")
class AdvanceOrder:
    """Take the single forward transition from the current status."""

    order_id = Identifier(required=True)
    expected_status = String(max_length=30)
    actor_name = String(required=True, max_length=255)
    note = Text()


@ordering.command_handler(part_of=Order)
class OrderStatusHandler:
    @handle(ChangeOrderStatus)
    def change_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.transition_to(
            command.status,
            actor_name=command.actor_name,
            note=command.note,
            expected_status=command.expected_status,
        )
        if OrderStatus(order.status) in ESCAPE_STATES:
            _release_allowance(order)
        repo.add(order)

    @handle(AdvanceOrder)
    def advance(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.advance(
            actor_name=command.actor_name,
            note=command.note,
            expected_status=command.expected_status,
        )
        repo.add(order)
