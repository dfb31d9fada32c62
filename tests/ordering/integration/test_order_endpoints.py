"""Integration tests for checkout and order endpoints via TestClient."""

import re

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from ordering.api.errors import register_error_handlers
from ordering.api.routes import cart_router, compliance_router, order_router
from ordering.pricing import FlatRatePricing, set_pricing


@pytest.fixture()
def client():
    set_pricing(FlatRatePricing(tax_rate=0.1, delivery_fee_cents=500, promotions={}))
    app = FastAPI()
    app.include_router(cart_router)
    app.include_router(order_router)
    app.include_router(compliance_router)
    register_error_handlers(app)
    return TestClient(app)


def _cart_with_items(client, customer_id="cust-api-001", quantity=2):
    cart_id = client.post("/carts", json={"customer_id": customer_id}).json()["cart_id"]
    client.post(
        f"/carts/{cart_id}/items",
        json={
            "product_id": "prod-001",
            "variant_id": "var-001",
            "sku": "BD-3.5G",
            "name": "Blue Dream 3.5g",
            "quantity": quantity,
            "unit_price_cents": 3000,
            "weight_grams": 3.5,
        },
    )
    return cart_id


def _checkout(client, cart_id, checkout_key="key-001", method="pickup"):
    fulfillment = {"method": method}
    if method == "delivery":
        fulfillment["address"] = {
            "street": "123 Main St",
            "apt": "4B",
            "city": "Denver",
            "state": "CO",
            "zip_code": "80202",
        }
    return client.post(
        f"/carts/{cart_id}/checkout",
        json={
            "checkout_key": checkout_key,
            "customer_name": "Jane Doe",
            "fulfillment": fulfillment,
            "payment_method": "card",
        },
    )


class TestCheckoutEndpoint:
    def test_checkout_creates_pending_order(self, client):
        cart_id = _cart_with_items(client)
        response = _checkout(client, cart_id)
        assert response.status_code == 201

        body = response.json()
        assert re.fullmatch(r"ORD-\d{8}-[0-9A-F]{6}", body["order_number"])
        assert body["status"] == "pending"
        assert body["next_status"] == "confirmed"
        assert body["total_cents"] == 6600
        assert body["items"][0]["total_price_cents"] == 6000
        assert body["status_history"][0]["actor_name"] == "Jane Doe"

    def test_checkout_empties_server_cart(self, client):
        cart_id = _cart_with_items(client)
        _checkout(client, cart_id)
        assert client.get(f"/carts/{cart_id}").json()["items"] == []

    def test_delivery_checkout(self, client):
        cart_id = _cart_with_items(client)
        body = _checkout(client, cart_id, method="delivery").json()
        assert body["fulfillment_method"] == "delivery"
        assert body["delivery_fee_cents"] == 500
        assert body["delivery_address"]["apt"] == "4B"

    def test_delivery_without_address_is_a_request_error(self, client):
        cart_id = _cart_with_items(client)
        response = client.post(
            f"/carts/{cart_id}/checkout",
            json={
                "checkout_key": "key-001",
                "customer_name": "Jane Doe",
                "fulfillment": {"method": "delivery"},
                "payment_method": "card",
            },
        )
        assert response.status_code == 422

    def test_retry_with_same_key_returns_same_order(self, client):
        cart_id = _cart_with_items(client)
        first = _checkout(client, cart_id, checkout_key="key-retry").json()
        second = _checkout(client, cart_id, checkout_key="key-retry")
        assert second.status_code == 201
        assert second.json()["order_id"] == first["order_id"]

    def test_over_limit_is_rejected_with_compliance_details(self, client):
        client.put("/compliance/purchase-limit/cust-api-001", json={"daily_limit_grams": 3.5})
        cart_id = _cart_with_items(client, quantity=2)
        response = _checkout(client, cart_id)
        assert response.status_code == 422
        assert "purchase_limit" in response.json()["details"]

    def test_checkout_consumes_allowance(self, client):
        cart_id = _cart_with_items(client, quantity=2)
        _checkout(client, cart_id)
        body = client.get("/compliance/purchase-limit", params={"customer_id": "cust-api-001"}).json()
        assert body["consumed"] == 7.0
        assert body["remaining"]["total"] == 21.5


class TestOrderEndpoints:
    def test_get_order(self, client):
        order_id = _checkout(client, _cart_with_items(client)).json()["order_id"]
        response = client.get(f"/orders/{order_id}")
        assert response.status_code == 200
        assert response.json()["order_id"] == order_id

    def test_change_status(self, client):
        order_id = _checkout(client, _cart_with_items(client)).json()["order_id"]
        response = client.post(
            f"/orders/{order_id}/status",
            json={"status": "confirmed", "expected_status": "pending", "actor_name": "Sam", "note": "ID checked"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "confirmed"
        assert body["next_status"] == "processing"
        assert body["status_history"][-1] == {
            "status": "confirmed",
            "timestamp": body["status_history"][-1]["timestamp"],
            "actor_name": "Sam",
            "note": "ID checked",
        }

    def test_invalid_transition_is_422(self, client):
        order_id = _checkout(client, _cart_with_items(client)).json()["order_id"]
        response = client.post(f"/orders/{order_id}/status", json={"status": "delivered", "actor_name": "Sam"})
        assert response.status_code == 422

    def test_stale_expected_status_is_409(self, client):
        order_id = _checkout(client, _cart_with_items(client)).json()["order_id"]
        client.post(f"/orders/{order_id}/status", json={"status": "confirmed", "actor_name": "Alex"})
        response = client.post(
            f"/orders/{order_id}/status",
            json={"status": "confirmed", "expected_status": "pending", "actor_name": "Sam"},
        )
        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

    def test_cancel_and_refund(self, client):
        order_id = _checkout(client, _cart_with_items(client)).json()["order_id"]
        response = client.post(f"/orders/{order_id}/cancel", json={"actor_name": "Sam", "expected_status": "pending"})
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert response.json()["next_status"] is None

        response = client.post(f"/orders/{order_id}/refund", json={"actor_name": "Sam"})
        assert response.status_code == 422

    def test_cancel_through_status_endpoint_gives_back_allowance(self, client):
        order_id = _checkout(client, _cart_with_items(client)).json()["order_id"]
        response = client.post(
            f"/orders/{order_id}/status",
            json={"status": "cancelled", "expected_status": "pending", "actor_name": "Sam"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

        body = client.get("/compliance/purchase-limit", params={"customer_id": "cust-api-001"}).json()
        assert body["consumed"] == 0.0
        assert body["remaining"]["total"] == 28.5

    def test_unknown_order_is_404(self, client):
        assert client.get("/orders/does-not-exist").status_code == 404
