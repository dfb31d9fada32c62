"""httpx adapter for the Ordering API."""

from collections.abc import Callable
from typing import Any, TypeVar

import httpx
import structlog

from storefront.api.port import StorefrontApi
from storefront.config import StorefrontSettings
from storefront.errors import TransportError, error_from_response
from storefront.models import Cart, CartItem, CartKey, Order, OrderRequest, PurchaseLimitState

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# What a 2xx body that is not JSON or not the expected shape raises while parsing
_DECODE_ERRORS = (ValueError, KeyError, TypeError, AttributeError)


class HttpStorefrontApi(StorefrontApi):
    """Talks to a running Ordering service over HTTP."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    @classmethod
    def from_settings(cls, settings: StorefrontSettings) -> "HttpStorefrontApi":
        return cls(settings.api_base_url, timeout=settings.request_timeout_seconds)

    async def _request(self, method: str, path: str, parse: Callable[[Any], T], **kwargs: Any) -> T:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("Ordering API timed out", method=method, path=path)
            raise TransportError(f"Request to {path} timed out") from exc
        except httpx.TransportError as exc:
            logger.warning("Ordering API unreachable", method=method, path=path, error=str(exc))
            raise TransportError(f"Could not reach the ordering service: {exc}") from exc

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = None
            error = error_from_response(response.status_code, body)
            logger.info(
                "Ordering API refused request",
                method=method,
                path=path,
                status_code=response.status_code,
                error_type=error.error_type,
            )
            raise error

        try:
            return parse(response.json())
        except _DECODE_ERRORS as exc:
            logger.warning("Ordering API sent an unreadable response", method=method, path=path, error=str(exc))
            raise TransportError(f"Unreadable response from {path}", status_code=response.status_code) from exc

    # -------------------------------------------------------------------
    # Carts
    # -------------------------------------------------------------------
    async def create_cart(self, customer_id: str | None) -> Cart:
        return await self._request("POST", "/carts", Cart.from_api, json={"customer_id": customer_id})

    async def fetch_cart(self, cart_id: str) -> Cart:
        return await self._request("GET", f"/carts/{cart_id}", Cart.from_api)

    async def add_item(self, cart_id: str, item: CartItem) -> Cart:
        payload = item.model_dump(exclude={"total_price_cents"})
        return await self._request("POST", f"/carts/{cart_id}/items", Cart.from_api, json=payload)

    async def update_quantity(self, cart_id: str, key: CartKey, quantity: int) -> Cart:
        product_id, variant_id = key
        return await self._request(
            "PUT",
            f"/carts/{cart_id}/items/{product_id}/{variant_id}",
            Cart.from_api,
            json={"quantity": quantity},
        )

    async def remove_item(self, cart_id: str, key: CartKey) -> Cart:
        product_id, variant_id = key
        return await self._request("DELETE", f"/carts/{cart_id}/items/{product_id}/{variant_id}", Cart.from_api)

    async def clear_cart(self, cart_id: str) -> Cart:
        return await self._request("DELETE", f"/carts/{cart_id}/items", Cart.from_api)

    async def apply_promo(self, cart_id: str, code: str) -> Cart:
        return await self._request("POST", f"/carts/{cart_id}/promo", Cart.from_api, json={"code": code})

    async def remove_promo(self, cart_id: str) -> Cart:
        return await self._request("DELETE", f"/carts/{cart_id}/promo", Cart.from_api)

    # -------------------------------------------------------------------
    # Compliance
    # -------------------------------------------------------------------
    async def fetch_purchase_limit(self, customer_id: str) -> PurchaseLimitState:
        return await self._request(
            "GET",
            "/compliance/purchase-limit",
            PurchaseLimitState.from_api,
            params={"customer_id": customer_id},
        )

    # -------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------
    async def place_order(self, cart_id: str, request: OrderRequest) -> Order:
        return await self._request("POST", f"/carts/{cart_id}/checkout", Order.from_api, json=request.to_payload())

    async def fetch_order(self, order_id: str) -> Order:
        return await self._request("GET", f"/orders/{order_id}", Order.from_api)

    async def change_order_status(
        self,
        order_id: str,
        status: str,
        expected_status: str,
        actor_name: str,
        note: str | None = None,
    ) -> Order:
        payload = {
            "status": status,
            "expected_status": expected_status,
            "actor_name": actor_name,
            "note": note,
        }
        return await self._request("POST", f"/orders/{order_id}/status", Order.from_api, json=payload)

    async def cancel_order(self, order_id: str, expected_status: str, actor_name: str, note: str | None = None) -> Order:
        payload = {"expected_status": expected_status, "actor_name": actor_name, "note": note}
        return await self._request("POST", f"/orders/{order_id}/cancel", Order.from_api, json=payload)

    async def refund_order(self, order_id: str, expected_status: str, actor_name: str, note: str | None = None) -> Order:
        payload = {"expected_status": expected_status, "actor_name": actor_name, "note": note}
        return await self._request("POST", f"/orders/{order_id}/refund", Order.from_api, json=payload)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
