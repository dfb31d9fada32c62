"""Cart Store: the customer's cart, updated optimistically.

Every mutation changes the local cart immediately and then syncs with the
server in a background task. Responses may come back in any order:

- each line key and the promo carry a version bumped on every local write;
  a response whose version has been superseded is ignored
- a failed sync undoes its change: the line goes back to the last value the
  server accepted (or its absence) at its previous position, or the previous
  promo returns. Older writes to the same key that failed or succeeded in
  the meantime decide what that last accepted value is
- a successful response is merged through ``reconcile`` with local authority
  for every key written after the request was sent or still in flight

Derived totals live on ``Cart`` and are recomputed from the lines, so no
mutation here ever assigns a total.
"""

import asyncio
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import structlog

from storefront.api.port import StorefrontApi
from storefront.config import StorefrontSettings, get_settings
from storefront.errors import ApiError, PromoInFlightError, PurchaseLimitExceeded
from storefront.limits import LimitCheck, check_purchase_limit
from storefront.models import Cart, CartItem, CartKey, PurchaseLimitState
from storefront.reconciler import reconcile

logger = structlog.get_logger(__name__)

Listener = Callable[[Cart], None]


@dataclass(frozen=True)
class CartNotice:
    """A non-blocking message for the customer, e.g. a failed sync."""

    kind: str  # "sync_failed" | "limit_warning"
    message: str
    key: CartKey | None = None


class CartStore:
    def __init__(
        self,
        api: StorefrontApi,
        cart: Cart,
        *,
        limit_state: PurchaseLimitState | None = None,
        authenticated: bool = False,
        settings: StorefrontSettings | None = None,
    ) -> None:
        if not cart.cart_id:
            raise ValueError("CartStore needs a server cart id")

        self._api = api
        self._cart = cart
        self._limit_state = limit_state
        self._authenticated = authenticated
        self._settings = settings or get_settings()

        self._clock = 0
        self._versions: dict[CartKey, int] = defaultdict(int)
        self._last_write: dict[CartKey, int] = {}
        self._in_flight: dict[CartKey, int] = defaultdict(int)
        # Server-confirmed line to fall back to while newer writes are pending
        self._confirmed: dict[CartKey, tuple[CartItem | None, int | None]] = {}
        self._rolled_back: dict[CartKey, int] = {}
        self._promo_version = 0
        self._promo_last_write = 0
        self._promo_in_flight = False
        self._promo_confirmed: tuple[str | None, int] | None = None
        self._clears_in_flight = 0

        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[Listener] = []
        self.notices: list[CartNotice] = []

    # -------------------------------------------------------------------
    # Selectors
    # -------------------------------------------------------------------
    @property
    def cart(self) -> Cart:
        return self._cart

    @property
    def cart_id(self) -> str:
        return self._cart.cart_id

    @property
    def item_count(self) -> int:
        return self._cart.item_count

    @property
    def is_empty(self) -> bool:
        return self._cart.is_empty

    @property
    def limit_state(self) -> PurchaseLimitState | None:
        return self._limit_state

    @property
    def promo_pending(self) -> bool:
        return self._promo_in_flight

    @property
    def has_pending_sync(self) -> bool:
        return bool(self._tasks)

    def set_limit_state(self, limit_state: PurchaseLimitState | None, authenticated: bool | None = None) -> None:
        self._limit_state = limit_state
        if authenticated is not None:
            self._authenticated = authenticated

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with the new cart after every change. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -------------------------------------------------------------------
    # Bookkeeping
    # -------------------------------------------------------------------
    def _set_cart(self, cart: Cart) -> None:
        self._cart = cart
        for listener in list(self._listeners):
            listener(cart)

    def _touch(self, key: CartKey) -> int:
        """Record a local write to ``key``; returns the key's new version."""
        self._clock += 1
        self._versions[key] += 1
        self._last_write[key] = self._clock
        return self._versions[key]

    def _touch_promo(self) -> int:
        self._clock += 1
        self._promo_version += 1
        self._promo_last_write = self._clock
        return self._promo_version

    def _spawn(self, coro: Awaitable) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _notify(self, kind: str, message: str, key: CartKey | None = None) -> None:
        self.notices.append(CartNotice(kind=kind, message=message, key=key))

    def _max_quantity_for(self, item: CartItem) -> int:
        limit = self._settings.max_line_quantity
        if item.max_quantity:
            limit = min(limit, item.max_quantity)
        return limit

    def _merge(self, server: Cart, requested_at: int) -> None:
        """Reconcile with a server snapshot requested at clock ``requested_at``."""
        authority = {key for key, written in self._last_write.items() if written > requested_at}
        authority |= {key for key, count in self._in_flight.items() if count > 0}
        keep_local_promo = self._promo_in_flight or self._promo_last_write > requested_at
        self._set_cart(reconcile(self._cart, server, authority, keep_local_promo))

    # -------------------------------------------------------------------
    # Line mutations
    # -------------------------------------------------------------------
    def add_item(self, item: CartItem) -> LimitCheck:
        """Add ``item.quantity`` units of the item's variant.

        Raises PurchaseLimitExceeded (and changes nothing) when the purchase
        limit guard blocks the add.
        """
        check = check_purchase_limit(
            item.weight_grams,
            item.quantity,
            self._limit_state,
            authenticated=self._authenticated,
            warning_threshold_grams=self._settings.warning_threshold_grams,
        )
        if not check.can_add:
            logger.info("Add blocked by purchase limit", sku=item.sku, remaining_grams=check.remaining_grams)
            raise PurchaseLimitExceeded(check)
        if check.warning:
            self._notify("limit_warning", check.warning, item.key)

        existing = self._cart.find(item.key)
        base = existing or item.with_quantity(0)
        new_quantity = min(base.quantity + item.quantity, self._max_quantity_for(base))
        if existing is not None and new_quantity == existing.quantity:
            return check

        self._mutate_line(
            item.key,
            base.with_quantity(new_quantity),
            lambda: self._api.add_item(self.cart_id, item),
            "add_item",
        )
        return check

    def update_quantity(self, product_id: str, variant_id: str, quantity: int) -> bool:
        """Set a line's quantity. Below 1 is a no-op; use ``remove_item`` to remove."""
        key = (product_id, variant_id)
        existing = self._cart.find(key)
        if existing is None or quantity < 1:
            return False

        quantity = min(quantity, self._max_quantity_for(existing))
        if quantity == existing.quantity:
            return False

        self._mutate_line(
            key,
            existing.with_quantity(quantity),
            lambda: self._api.update_quantity(self.cart_id, key, quantity),
            "update_quantity",
        )
        return True

    def remove_item(self, product_id: str, variant_id: str) -> bool:
        key = (product_id, variant_id)
        if self._cart.find(key) is None:
            return False

        self._mutate_line(
            key,
            None,
            lambda: self._api.remove_item(self.cart_id, key),
            "remove_item",
        )
        return True

    def _mutate_line(
        self,
        key: CartKey,
        new_item: CartItem | None,
        call: Callable[[], Awaitable[Cart]],
        operation: str,
    ) -> None:
        # Captured before the change, used verbatim for rollback
        previous = self._cart.find(key)
        position = self._cart.index_of(key)

        if new_item is None:
            self._set_cart(self._cart.without_item(key))
        else:
            self._set_cart(self._cart.with_item(new_item))

        version = self._touch(key)
        self._in_flight[key] += 1
        self._spawn(self._sync_line(key, version, previous, position, call, operation, self._clock))

    async def _sync_line(self, key, version, previous, position, call, operation, requested_at) -> None:
        failure = None
        try:
            server = await call()
        except ApiError as exc:
            failure = exc
        finally:
            self._in_flight[key] -= 1

        if failure is not None:
            self._line_failed(key, version, previous, position, operation, failure)
        elif self._versions[key] != version:
            # The server applied this older write; a later failure falls back to it
            self._confirmed[key] = (server.find(key), server.index_of(key))
            self._rolled_back.pop(key, None)
            logger.debug("Ignoring stale cart response", operation=operation, key=key)
        else:
            self._merge(server, requested_at)
        self._forget_if_idle(key)

    def _line_failed(self, key, version, previous, position, operation, exc: ApiError) -> None:
        if self._versions[key] != version:
            if self._rolled_back.get(key) == self._versions[key]:
                # Nothing was written since the newer change rolled back onto this change's value
                self._rollback_line(key, previous, position)
                logger.info("Rolled back further after an older cart change failed", operation=operation, key=key)
                return
            self._confirmed.setdefault(key, (previous, position))
            logger.info("Ignoring failure of superseded cart change", operation=operation, key=key)
            return
        previous, position = self._confirmed.pop(key, (previous, position))
        self._rollback_line(key, previous, position)
        logger.warning("Cart change failed, rolled back", operation=operation, key=key, error=exc.message)
        self._notify("sync_failed", f"We couldn't update your cart: {exc.message}", key)

    def _rollback_line(self, key: CartKey, previous: CartItem | None, position: int | None) -> None:
        cart = self._cart.without_item(key)
        if previous is not None:
            cart = cart.with_item(previous, index=position)
        self._set_cart(cart)
        self._rolled_back[key] = self._touch(key)

    def _forget_if_idle(self, key: CartKey) -> None:
        if not self._in_flight[key]:
            self._confirmed.pop(key, None)
            self._rolled_back.pop(key, None)

    # -------------------------------------------------------------------
    # Promo
    # -------------------------------------------------------------------
    def apply_promo(self, code: str) -> bool:
        """Apply ``code`` as the single active promo.

        Returns False when the code is already applied. Raises
        PromoInFlightError while another promo change is waiting for the server.
        """
        code = code.strip().upper()
        if not code:
            return False
        if self._promo_in_flight:
            raise PromoInFlightError("A promo code is already being applied")
        if code == self._cart.applied_promo_code:
            return False

        self._mutate_promo(code, lambda: self._api.apply_promo(self.cart_id, code), "apply_promo")
        return True

    def remove_promo(self) -> bool:
        if self._promo_in_flight:
            raise PromoInFlightError("A promo code change is still in progress")
        if not self._cart.applied_promo_code:
            return False

        self._mutate_promo(None, lambda: self._api.remove_promo(self.cart_id), "remove_promo")
        return True

    def _mutate_promo(self, code: str | None, call: Callable[[], Awaitable[Cart]], operation: str) -> None:
        previous = (self._cart.applied_promo_code, self._cart.promo_discount_cents)
        # The discount is unknown until the server prices it
        self._set_cart(self._cart.with_promo(code, 0))
        version = self._touch_promo()
        self._promo_in_flight = True
        self._spawn(self._sync_promo(version, previous, call, operation, self._clock))

    async def _sync_promo(self, version, previous, call, operation, requested_at) -> None:
        failure = None
        try:
            server = await call()
        except ApiError as exc:
            failure = exc
        finally:
            self._promo_in_flight = False

        if self._promo_version != version:
            # Superseded by a cart clear, which falls back to what the server kept
            if self._clears_in_flight:
                if failure is None:
                    self._promo_confirmed = (server.applied_promo_code, server.promo_discount_cents)
                else:
                    self._promo_confirmed = previous
            return
        if failure is not None:
            self._set_cart(self._cart.with_promo(*previous))
            self._touch_promo()
            logger.warning("Promo change failed, rolled back", operation=operation, error=failure.message)
            self._notify("sync_failed", f"We couldn't update your promo code: {failure.message}")
            return
        self._merge(server, requested_at)

    # -------------------------------------------------------------------
    # Whole cart
    # -------------------------------------------------------------------
    def clear_cart(self) -> bool:
        if self._cart.is_empty and not self._cart.applied_promo_code:
            return False

        previous = self._cart
        versions = {}
        for item in previous.items:
            versions[item.key] = self._touch(item.key)
            self._in_flight[item.key] += 1
        promo_version = self._touch_promo()
        self._clears_in_flight += 1
        self._set_cart(previous.emptied())
        self._spawn(self._sync_clear(previous, versions, promo_version, self._clock))
        return True

    async def _sync_clear(self, previous: Cart, versions: dict, promo_version: int, requested_at: int) -> None:
        failure = None
        try:
            server = await self._api.clear_cart(self.cart_id)
        except ApiError as exc:
            failure = exc
        finally:
            for key in versions:
                self._in_flight[key] -= 1
            self._clears_in_flight -= 1

        if failure is not None:
            self._restore_cleared(previous, versions, promo_version)
            logger.warning("Clearing the cart failed, rolled back", error=failure.message)
            self._notify("sync_failed", f"We couldn't clear your cart: {failure.message}")
        else:
            self._merge(server, requested_at)

        for key in versions:
            self._forget_if_idle(key)
        if not self._clears_in_flight:
            self._promo_confirmed = None

    def _restore_cleared(self, previous: Cart, versions: dict, promo_version: int) -> None:
        cart = self._cart
        for position, item in enumerate(previous.items):
            if self._versions[item.key] != versions[item.key]:
                continue
            restored, index = self._confirmed.pop(item.key, (item, position))
            if restored is not None:
                cart = cart.with_item(restored, index=index)
            self._touch(item.key)
        if self._promo_version == promo_version:
            code, discount = self._promo_confirmed or (previous.applied_promo_code, previous.promo_discount_cents)
            cart = cart.with_promo(code, discount)
            self._touch_promo()
        cart = cart.model_copy(
            update={
                "tax_cents": previous.tax_cents,
                "delivery_fee_cents": previous.delivery_fee_cents,
                "exceeds_purchase_limit": previous.exceeds_purchase_limit,
            }
        )
        self._set_cart(cart)

    def reset(self) -> None:
        """Empty the local cart without a server call (the server already cleared it)."""
        for item in self._cart.items:
            self._touch(item.key)
        self._touch_promo()
        self._set_cart(self._cart.emptied())

    async def refresh(self) -> Cart:
        """Fetch the server cart and reconcile it into local state."""
        requested_at = self._clock
        server = await self._api.fetch_cart(self.cart_id)
        self._merge(server, requested_at)
        return self._cart

    async def settle(self) -> None:
        """Wait until every background sync has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
