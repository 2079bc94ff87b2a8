"""Tests for the FastAPI surface, run against a guest session in tmp_path."""

import pytest
from fastapi.testclient import TestClient

from storefront_server import http_server

from conftest import API_URL

SHOE = {
    "_id": "P1",
    "name": "Running Shoe",
    "price": 100,
    "sizes": ["7", "8"],
    "sizeStock": [["7", 2], ["8", 0]],
}

BOLTS = {"_id": "B1", "name": "Bolts", "price": 2, "stock": 1000, "moq": 100}


@pytest.fixture
def client(monkeypatch, tmp_path):
    monkeypatch.setenv("STOREFRONT_API_URL", API_URL)
    monkeypatch.setenv("STOREFRONT_STATE_DIR", str(tmp_path / "state"))
    monkeypatch.delenv("STOREFRONT_TOKEN", raising=False)
    monkeypatch.delenv("STOREFRONT_GATE_PRICES", raising=False)
    with TestClient(http_server.app) as test_client:
        yield test_client


class TestHealth:

    def test_root_and_health(self, client):
        assert client.get("/").json()["authenticated"] is False
        assert client.get("/health").json() == {"status": "healthy", "authenticated": False}

    def test_auth_status_for_guest(self, client):
        assert client.get("/auth/status").json() == {"authenticated": False, "email": None, "account": None}


class TestCartEndpoints:

    def test_stock_ceiling(self, client):
        response = client.post("/cart/add", json={"product": SHOE, "size": "7", "quantity": 3})
        assert response.status_code == 409
        assert response.json()["message"] == "Only 2 items available in size 7"
        assert response.json()["details"]["limit"] == 2
        assert client.get("/cart").json()["data"]["lines"] == []

        response = client.post("/cart/add", json={"product": SHOE, "size": "7", "quantity": 2})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["total_items"] == 2
        assert body["data"]["total_amount"] == "200"

    def test_size_required(self, client):
        response = client.post("/cart/add", json={"product": SHOE, "quantity": 1})
        assert response.status_code == 400
        assert response.json()["message"] == "Please select a size"

    def test_quantity_raised_to_moq(self, client):
        response = client.post("/cart/add", json={"product": BOLTS, "quantity": 1})
        assert response.json()["data"]["lines"][0]["quantity"] == 100

    def test_invalid_product_payload(self, client):
        response = client.post("/cart/add", json={"product": {"name": "no id"}})
        assert response.status_code == 422

    def test_unreadable_size_stock_payload(self, client):
        product = dict(SHOE, sizeStock=[{"k": "7", "value": 2}])
        response = client.post("/cart/add", json={"product": product, "size": "7", "quantity": 1})
        assert response.status_code == 422
        assert client.get("/cart").json()["data"]["lines"] == []

    def test_update_and_remove(self, client):
        client.post("/cart/add", json={"product": SHOE, "size": "7", "quantity": 1})

        response = client.post("/cart/update", json={"product_id": "P1", "size": "7", "quantity": 2})
        assert response.json()["data"]["total_items"] == 2

        response = client.post("/cart/update", json={"product_id": "P1", "size": "8", "quantity": 1})
        assert response.status_code == 404

        response = client.post("/cart/remove", json={"product_id": "P1", "size": "7"})
        assert response.json()["data"]["lines"] == []

    def test_clear_twice(self, client):
        client.post("/cart/add", json={"product": BOLTS, "quantity": 100})
        first = client.post("/cart/clear").json()
        second = client.post("/cart/clear").json()
        assert first == second
        assert first["data"]["total_items"] == 0

    def test_sync_requires_login(self, client):
        response = client.post("/cart/sync")
        assert response.status_code == 401


class TestWishlistAndRfq:

    def test_wishlist(self, client):
        client.post("/wishlist/add", json={"product": SHOE})
        response = client.post("/wishlist/add", json={"product": SHOE})
        assert response.json()["data"]["total_items"] == 1

        response = client.post("/wishlist/remove", json={"product_id": "P1"})
        assert response.json()["data"]["lines"] == []

    def test_rfq(self, client):
        response = client.post("/rfq/add", json={"product": BOLTS})
        assert response.json()["item"]["quantity"] == 100

        assert client.post("/rfq/add", json={"product": BOLTS}).status_code == 400
        assert client.post("/rfq/update", json={"product_id": "B1", "quantity": 10}).status_code == 400
        assert client.post("/rfq/update", json={"product_id": "B1", "quantity": 300}).json()["item"]["quantity"] == 300

        client.post("/rfq/remove", json={"product_id": "B1"})
        assert client.get("/rfq").json() == {"items": []}


class TestPricing:

    def test_guest_quote(self, client):
        product = {
            "_id": "P2",
            "price": 120,
            "tierPricing": [{"tier": "wholesaler", "price": 110}],
            "volumePricing": [{"minQuantity": 50, "price": 80}],
        }
        body = client.post("/pricing/quote", json={"product": product, "quantity": 60}).json()
        assert body["unit_price"] == "120"
        assert body["tier_label"] == "standard"
        assert body["price_withheld"] is False
