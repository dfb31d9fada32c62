"""Order cancellation and refund: commands and handler.

Both are explicit escapes from any non-terminal state. Grams the order took
from the customer's daily allowance are given back when the order is undone
on the day it was placed.
"""

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.compliance.allowance import PurchaseAllowance, load_allowance
from ordering.domain import ordering
from ordering.order.order import Order


@ordering.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    expected_status = String(max_length=30)
    actor_name = String(required=True, max_length=255)
    note = Text()


@ordering.command(part_of="Order")
class RefundOrder:
    order_id = Identifier(required=True)
    expected_status = String(max_length=30)
    actor_name = String(required=True, max_length=255)
    note = Text()


def _release_allowance(order):
    if not order.customer_id or not order.total_weight_grams:
        return
    allowance = load_allowance(order.customer_id)
    allowance.release_purchase(
        order.id,
        order.total_weight_grams,
        purchased_on=order.placed_at.date(),
    )
    current_domain.repository_for(PurchaseAllowance).add(allowance)


@ordering.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.cancel(
            actor_name=command.actor_name,
            note=command.note,
            expected_status=command.expected_status,
        )
        _release_allowance(order)
        repo.add(order)

    @handle(RefundOrder)
    def refund_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.refund(
            actor_name=command.actor_name,
            note=command.note,
            expected_status=command.expected_status,
        )
        _release_allowance(order)
        repo.add(order)
