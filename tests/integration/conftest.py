"""Fixtures for end-to-end tests.

The storefront engine talks to the real FastAPI application through
``httpx.ASGITransport``: every request runs the Ordering commands in memory,
without a network or a running server.
"""

import httpx
import pytest
from ordering.pricing import FlatRatePricing, reset_pricing, set_pricing
from ordering.settings import Promotion
from storefront.api.http_adapter import HttpStorefrontApi
from storefront.config import StorefrontSettings
from storefront.models import CartItem


@pytest.fixture(scope="session")
def _ordering_app():
    """Import the application once per session; importing it initializes the Ordering domain."""
    from app import app

    return app


@pytest.fixture(scope="session")
def _ordering_domain(_ordering_app):
    from ordering.domain import ordering

    return ordering


@pytest.fixture(autouse=True)
def ordering_ctx(_ordering_domain):
    """Push the Ordering domain context for a test, with cleanup."""
    set_pricing(
        FlatRatePricing(
            tax_rate=0.1,
            delivery_fee_cents=500,
            promotions={"SAVE10": Promotion(kind="percentage", value=10)},
        )
    )
    ctx = _ordering_domain.domain_context()
    ctx.push()

    yield _ordering_domain

    from protean import current_domain

    for _, provider in current_domain.providers.items():
        provider._data_reset()

    current_domain.event_store.store._data_reset()
    ctx.pop()
    reset_pricing()


@pytest.fixture()
def http_client(_ordering_app):
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=_ordering_app), base_url="http://ordering.test")


@pytest.fixture()
def ordering_api(http_client):
    return HttpStorefrontApi("http://ordering.test", client=http_client)


@pytest.fixture()
def settings():
    return StorefrontSettings(api_base_url="http://ordering.test")


@pytest.fixture()
def eighth():
    def _build(product_id="prod-bd", quantity=1):
        return CartItem(
            product_id=product_id,
            variant_id="var-eighth",
            sku=f"{product_id.upper()}-3.5G",
            name="Blue Dream 3.5g",
            quantity=quantity,
            unit_price_cents=3500,
            weight_grams=3.5,
        )

    return _build
