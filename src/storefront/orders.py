"""Order tracking for a placed order.

Order status is never changed optimistically: the tracker sends the request
with the status it last saw and only shows the new status once the server
has answered. When another actor moved the order first, the server answers
with a conflict; the tracker then reloads the order and re-raises so the
caller can tell the user.
"""

import structlog

from shared.order_lifecycle import OrderStatus, allowed_transitions, validate_history

from storefront.api.port import StorefrontApi
from storefront.errors import ConflictError, OrderTransitionError
from storefront.models import Order, PaymentMethod

logger = structlog.get_logger(__name__)


class OrderTracker:
    def __init__(self, api: StorefrontApi, order: Order, actor_name: str) -> None:
        self._api = api
        self._order = order
        self._actor_name = actor_name
        self._busy = False
        self._check_history(order)

    @property
    def order(self) -> Order:
        return self._order

    @property
    def status(self) -> OrderStatus:
        return self._order.status

    @property
    def next_status(self) -> OrderStatus | None:
        return self._order.next_status

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def can_cancel(self) -> bool:
        return OrderStatus.CANCELLED in allowed_transitions(self._order.status, self._order.fulfillment_method)

    @property
    def can_refund(self) -> bool:
        if self._order.payment_method != PaymentMethod.CARD:
            return False
        return OrderStatus.REFUNDED in allowed_transitions(self._order.status, self._order.fulfillment_method)

    def _check_history(self, order: Order) -> None:
        problems = validate_history(
            [event.status for event in order.status_history], order.fulfillment_method
        )
        if problems:
            logger.warning("Inconsistent order history", order_id=order.order_id, problems=problems)

    def _accept(self, order: Order) -> Order:
        self._check_history(order)
        self._order = order
        return order

    async def _send(self, action: str, call) -> Order:
        if self._busy:
            raise OrderTransitionError("Another change to this order is still in progress")

        self._busy = True
        expected = self._order.status.value
        try:
            order = await call(expected)
        except ConflictError:
            logger.info("Order changed by someone else", order_id=self._order.order_id, action=action)
            self._accept(await self._api.fetch_order(self._order.order_id))
            raise
        finally:
            self._busy = False

        logger.info(
            "Order updated",
            order_id=order.order_id,
            action=action,
            from_status=expected,
            to_status=order.status.value,
        )
        return self._accept(order)

    async def advance(self, note: str | None = None) -> Order:
        """Move the order to its single next status."""
        target = self.next_status
        if target is None:
            raise OrderTransitionError(f"Order is {self._order.status.value} and has no next status")

        return await self._send(
            "advance",
            lambda expected: self._api.change_order_status(
                self._order.order_id, target.value, expected, self._actor_name, note
            ),
        )

    async def cancel(self, note: str | None = None) -> Order:
        if not self.can_cancel:
            raise OrderTransitionError(f"Order is {self._order.status.value} and cannot be cancelled")

        return await self._send(
            "cancel",
            lambda expected: self._api.cancel_order(self._order.order_id, expected, self._actor_name, note),
        )

    async def refund(self, note: str | None = None) -> Order:
        if not self.can_refund:
            raise OrderTransitionError(f"Order is {self._order.status.value} and cannot be refunded")

        return await self._send(
            "refund",
            lambda expected: self._api.refund_order(self._order.order_id, expected, self._actor_name, note),
        )

    async def refresh(self) -> Order:
        return self._accept(await self._api.fetch_order(self._order.order_id))
