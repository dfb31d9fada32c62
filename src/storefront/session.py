"""A shopper's storefront session: one cart store plus checkout and order tracking."""

import structlog

from storefront.api.http_adapter import HttpStorefrontApi
from storefront.api.port import StorefrontApi
from storefront.cart_store import CartStore
from storefront.checkout import CheckoutOrchestrator
from storefront.config import StorefrontSettings, get_settings
from storefront.models import Order, PurchaseLimitState
from storefront.orders import OrderTracker

logger = structlog.get_logger(__name__)


class StorefrontSession:
    def __init__(
        self,
        api: StorefrontApi,
        cart_store: CartStore,
        customer_id: str | None = None,
        settings: StorefrontSettings | None = None,
    ) -> None:
        self.api = api
        self.cart_store = cart_store
        self.customer_id = customer_id
        self.settings = settings or get_settings()

    @property
    def authenticated(self) -> bool:
        return self.customer_id is not None

    @classmethod
    async def open(
        cls,
        api: StorefrontApi | None = None,
        *,
        customer_id: str | None = None,
        cart_id: str | None = None,
        settings: StorefrontSettings | None = None,
    ) -> "StorefrontSession":
        """Resume ``cart_id`` or create a new cart, and load the purchase limit for a signed-in customer."""
        settings = settings or get_settings()
        api = api or HttpStorefrontApi.from_settings(settings)

        cart = await api.fetch_cart(cart_id) if cart_id else await api.create_cart(customer_id)
        limit_state = await api.fetch_purchase_limit(customer_id) if customer_id else None

        store = CartStore(
            api,
            cart,
            limit_state=limit_state,
            authenticated=customer_id is not None,
            settings=settings,
        )
        logger.info("Storefront session opened", cart_id=cart.cart_id, customer_id=customer_id)
        return cls(api, store, customer_id=customer_id, settings=settings)

    async def refresh_limits(self) -> PurchaseLimitState | None:
        """Reload the purchase limit, e.g. after an order has been placed."""
        if not self.authenticated:
            return None
        state = await self.api.fetch_purchase_limit(self.customer_id)
        self.cart_store.set_limit_state(state, authenticated=True)
        return state

    def start_checkout(self, customer_name: str) -> CheckoutOrchestrator:
        return CheckoutOrchestrator(self.api, self.cart_store, customer_name)

    def track(self, order: Order, actor_name: str) -> OrderTracker:
        return OrderTracker(self.api, order, actor_name)

    async def close(self) -> None:
        try:
            await self.cart_store.settle()
        finally:
            await self.api.aclose()

    async def __aenter__(self) -> "StorefrontSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
