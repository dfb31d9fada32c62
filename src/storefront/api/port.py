"""Ordering API port (abstract interface).

Defines the calls the storefront engine makes to the authoritative server.
This enables swapping between FakeStorefrontApi (dev/test) and
HttpStorefrontApi (a running Ordering service) without changing the engine.

Every cart call answers with the full server cart so the caller can reconcile.
Failures are raised as ``storefront.errors.ApiError`` subclasses.
"""

from abc import ABC, abstractmethod

from storefront.models import Cart, CartItem, CartKey, Order, OrderRequest, PurchaseLimitState


class StorefrontApi(ABC):
    """Abstract Ordering API interface."""

    # Carts
    @abstractmethod
    async def create_cart(self, customer_id: str | None) -> Cart: ...

    @abstractmethod
    async def fetch_cart(self, cart_id: str) -> Cart: ...

    @abstractmethod
    async def add_item(self, cart_id: str, item: CartItem) -> Cart:
        """Add ``item.quantity`` units of the item's variant to the server cart."""
        ...

    @abstractmethod
    async def update_quantity(self, cart_id: str, key: CartKey, quantity: int) -> Cart: ...

    @abstractmethod
    async def remove_item(self, cart_id: str, key: CartKey) -> Cart: ...

    @abstractmethod
    async def clear_cart(self, cart_id: str) -> Cart: ...

    @abstractmethod
    async def apply_promo(self, cart_id: str, code: str) -> Cart: ...

    @abstractmethod
    async def remove_promo(self, cart_id: str) -> Cart: ...

    # Compliance
    @abstractmethod
    async def fetch_purchase_limit(self, customer_id: str) -> PurchaseLimitState: ...

    # Orders
    @abstractmethod
    async def place_order(self, cart_id: str, request: OrderRequest) -> Order: ...

    @abstractmethod
    async def fetch_order(self, order_id: str) -> Order: ...

    @abstractmethod
    async def change_order_status(
        self,
        order_id: str,
        status: str,
        expected_status: str,
        actor_name: str,
        note: str | None = None,
    ) -> Order: ...

    @abstractmethod
    async def cancel_order(
        self, order_id: str, expected_status: str, actor_name: str, note: str | None = None
    ) -> Order: ...

    @abstractmethod
    async def refund_order(
        self, order_id: str, expected_status: str, actor_name: str, note: str | None = None
    ) -> Order: ...

    async def aclose(self) -> None:
        """Release any connection resources."""
