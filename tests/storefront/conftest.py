import pytest
from storefront.api import FakeStorefrontApi
from storefront.config import StorefrontSettings
from storefront.models import Cart, CartItem, PurchaseLimitState


def _make_item(product_id="prod-001", variant_id="var-eighth", quantity=1, **overrides) -> CartItem:
    data = {
        "product_id": product_id,
        "variant_id": variant_id,
        "sku": f"SKU-{product_id}-{variant_id}",
        "name": "Blue Dream 3.5g",
        "quantity": quantity,
        "unit_price_cents": 3500,
        "weight_grams": 3.5,
    }
    data.update(overrides)
    return CartItem(**data)


@pytest.fixture()
def make_item():
    """Factory for cart lines; defaults to one eighth (3.5g) at $35."""
    return _make_item


@pytest.fixture()
def settings():
    return StorefrontSettings(api_base_url="http://ordering.test", warning_threshold_grams=3.5, max_line_quantity=10)


@pytest.fixture()
def api():
    return FakeStorefrontApi(tax_rate=0.1, promotions={"SAVE10": 10, "HALF": 50})


@pytest.fixture()
def server_cart(api):
    cart = Cart(cart_id="cart-001")
    api.seed_cart(cart, customer_id="cust-001")
    return cart


@pytest.fixture()
def limit_state():
    return PurchaseLimitState(remaining_grams=28.5, daily_limit_grams=28.5, consumed_grams=0.0)
