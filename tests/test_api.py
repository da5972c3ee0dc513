"""Tests for the FastAPI API."""

import pytest
from fastapi.testclient import TestClient

from greenthumb.api import app, get_cart_registry, get_database


@pytest.fixture
def api_client(database):
    """Test client bound to the per-test database."""
    app.dependency_overrides[get_database] = lambda: database
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def stocked_client(api_client, plants, users):
    return api_client


def checkout(client, customer_id, *lines):
    for plant_id, quantity in lines:
        response = client.post(
            f"/api/customers/{customer_id}/cart/items",
            json={"plant_id": plant_id, "quantity": quantity},
        )
        assert response.status_code == 200
    response = client.post(f"/api/customers/{customer_id}/cart/checkout")
    assert response.status_code == 201
    return response.json()


class TestHealthCheck:
    def test_health(self, api_client, plants):
        response = api_client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["plant_count"] == 3

    def test_health_reports_broken_database(self, api_client, database):
        database.drop_schema()
        data = api_client.get("/api/health").json()
        assert data["status"] == "error"


class TestPlants:
    def test_list(self, stocked_client):
        data = stocked_client.get("/api/plants").json()
        assert data["count"] == 3
        assert [p["plant_id"] for p in data["plants"]] == ["basil", "bonsai", "rose"]
        # Money is serialized as a string
        assert data["plants"][2]["price"] == "10.00"

    def test_filters(self, stocked_client):
        data = stocked_client.get("/api/plants", params={"type": "herb"}).json()
        assert [p["plant_id"] for p in data["plants"]] == ["basil"]

        data = stocked_client.get("/api/plants", params={"max_price": "9.99"}).json()
        assert [p["plant_id"] for p in data["plants"]] == ["basil"]

    def test_create(self, api_client):
        response = api_client.post(
            "/api/plants",
            json={"plant_id": "fern", "name": "Fern", "type": "Foliage", "price": "4.50", "quantity": 3},
        )
        assert response.status_code == 201
        assert response.json()["price"] == "4.50"

    def test_create_invalid_price(self, api_client):
        response = api_client.post(
            "/api/plants",
            json={"plant_id": "fern", "name": "Fern", "type": "Foliage", "price": "0"},
        )
        assert response.status_code == 400
        assert response.json()["error_type"] == "ValidationError"

    def test_get_missing(self, api_client):
        response = api_client.get("/api/plants/ghost")
        assert response.status_code == 404
        assert response.json() == {
            "detail": "Plant not found: ghost",
            "error_type": "PlantNotFoundError",
        }

    def test_update_and_restock(self, stocked_client):
        response = stocked_client.patch("/api/plants/rose", json={"price": "11.50"})
        assert response.status_code == 200
        assert response.json()["price"] == "11.50"

        response = stocked_client.post("/api/plants/bonsai/restock", json={"amount": 8})
        assert response.json()["quantity"] == 10

    def test_low_stock(self, stocked_client):
        data = stocked_client.get("/api/plants/low-stock", params={"threshold": 11}).json()
        assert [p["plant_id"] for p in data["plants"]] == ["bonsai", "basil"]

    def test_delete_in_use(self, stocked_client):
        checkout(stocked_client, "cust_c001", ("rose", 1))
        response = stocked_client.delete("/api/plants/rose")
        assert response.status_code == 409

        assert stocked_client.delete("/api/plants/basil").status_code == 204


class TestCartAndOrders:
    def test_checkout_flow(self, stocked_client):
        order = checkout(stocked_client, "cust_c001", ("rose", 2), ("basil", 1))

        assert order["status"] == "Pending"
        assert order["total_amount"] == "25.00"
        assert len(order["items"]) == 2

        cart = stocked_client.get("/api/customers/cust_c001/cart").json()
        assert cart["items"] == []
        assert cart["total"] == "0.00"

    def test_cart_edits(self, stocked_client):
        base = "/api/customers/cust_c001/cart/items"
        stocked_client.post(base, json={"plant_id": "rose", "quantity": 1})
        stocked_client.post(base, json={"plant_id": "basil", "quantity": 1})

        cart = stocked_client.patch(f"{base}/rose", json={"quantity": 4}).json()
        assert cart["total"] == "45.00"

        cart = stocked_client.delete(f"{base}/basil").json()
        assert [item["plant_id"] for item in cart["items"]] == ["rose"]

        assert stocked_client.delete(f"{base}/basil").status_code == 404

    def test_add_more_than_stock(self, stocked_client):
        response = stocked_client.post(
            "/api/customers/cust_c001/cart/items", json={"plant_id": "bonsai", "quantity": 3}
        )
        assert response.status_code == 409
        assert response.json()["error_type"] == "InsufficientStockError"

    def test_empty_checkout(self, stocked_client):
        response = stocked_client.post("/api/customers/cust_c001/cart/checkout")
        assert response.status_code == 400

    def test_unknown_customer(self, stocked_client):
        assert stocked_client.get("/api/customers/cust_nobody/cart").status_code == 404

    def test_process_then_cancel_restocks(self, stocked_client):
        order = checkout(stocked_client, "cust_c001", ("bonsai", 2))
        order_id = order["order_id"]

        response = stocked_client.post(f"/api/orders/{order_id}/process")
        assert response.json()["status"] == "Processing"
        assert stocked_client.get("/api/plants/bonsai").json()["quantity"] == 0

        response = stocked_client.post(
            f"/api/orders/{order_id}/cancel", params={"customer_id": "cust_c001"}
        )
        assert response.json()["status"] == "Cancelled"
        assert stocked_client.get("/api/plants/bonsai").json()["quantity"] == 2

    def test_process_twice(self, stocked_client):
        order_id = checkout(stocked_client, "cust_c001", ("rose", 1))["order_id"]
        stocked_client.post(f"/api/orders/{order_id}/process")

        response = stocked_client.post(f"/api/orders/{order_id}/process")
        assert response.status_code == 409
        assert response.json()["error_type"] == "InvalidStatusError"

    def test_process_short_stock(self, stocked_client):
        first = checkout(stocked_client, "cust_c001", ("bonsai", 2))["order_id"]
        second = checkout(stocked_client, "cust_c001", ("bonsai", 1))["order_id"]
        stocked_client.post(f"/api/orders/{first}/process")

        response = stocked_client.post(f"/api/orders/{second}/process")
        assert response.status_code == 409
        assert "Bonsai" in response.json()["detail"]
        assert stocked_client.get(f"/api/orders/{second}").json()["status"] == "Pending"

    def test_status_transitions(self, stocked_client):
        order_id = checkout(stocked_client, "cust_c001", ("rose", 1))["order_id"]
        url = f"/api/orders/{order_id}/status"

        assert stocked_client.post(url, json={"status": "Processing"}).status_code == 200
        assert stocked_client.post(url, json={"status": "Shipped"}).status_code == 200

        response = stocked_client.post(url, json={"status": "Processing"})
        assert response.status_code == 409
        assert response.json()["error_type"] == "InvalidTransitionError"

        assert stocked_client.post(url, json={"status": "Lost"}).status_code == 400

    def test_cancel_other_customers_order(self, stocked_client):
        order_id = checkout(stocked_client, "cust_c001", ("rose", 1))["order_id"]
        response = stocked_client.post(
            f"/api/orders/{order_id}/cancel", params={"customer_id": "cust_other"}
        )
        assert response.status_code == 403

    def test_return_requires_delivery(self, stocked_client):
        order_id = checkout(stocked_client, "cust_c001", ("rose", 1))["order_id"]
        response = stocked_client.post(f"/api/orders/{order_id}/return")
        assert response.status_code == 409
        assert response.json()["error_type"] == "OrderNotReturnableError"

    def test_list_orders(self, stocked_client):
        checkout(stocked_client, "cust_c001", ("rose", 1))
        data = stocked_client.get("/api/orders", params={"status": "Pending"}).json()
        assert data["count"] == 1
        data = stocked_client.get("/api/orders", params={"customer_id": "cust_other"}).json()
        assert data["count"] == 0

    def test_missing_order(self, api_client):
        assert api_client.get("/api/orders/order_deadbeef").status_code == 404

    def test_malformed_order_id(self, api_client):
        assert api_client.get("/api/orders/not-an-order").status_code == 400
        assert api_client.post("/api/orders/not-an-order/process").status_code == 400

    def test_checkout_releases_cart(self, stocked_client, database):
        registry = get_cart_registry(database)
        checkout(stocked_client, "cust_c001", ("rose", 1))
        assert len(registry) == 0

        stocked_client.post(
            "/api/customers/cust_c001/cart/items", json={"plant_id": "bonsai", "quantity": 2}
        )
        assert len(registry) == 1


class TestUsers:
    def test_login(self, stocked_client):
        response = stocked_client.post(
            "/api/login", json={"username": "alice", "password": "alice123"}
        )
        assert response.status_code == 200
        user = response.json()["user"]
        assert user["customer_id"] == "cust_c001"
        assert user["address"] == "1 Garden Way"
        assert "password" not in str(user)

    def test_login_failure(self, stocked_client):
        response = stocked_client.post(
            "/api/login", json={"username": "alice", "password": "wrong1"}
        )
        assert response.status_code == 401

    def test_create_duplicate(self, stocked_client):
        response = stocked_client.post(
            "/api/users",
            json={"user_id": "x001", "username": "alice", "password": "secret1", "role": "Staff"},
        )
        assert response.status_code == 409

    def test_create_list_delete(self, stocked_client):
        response = stocked_client.post(
            "/api/users",
            json={"user_id": "c002", "username": "bob", "password": "secret1", "role": "Customer"},
        )
        assert response.status_code == 201
        assert response.json()["customer_id"] == "cust_c002"

        data = stocked_client.get("/api/users", params={"role": "Customer"}).json()
        assert [u["username"] for u in data["users"]] == ["alice", "bob"]

        assert stocked_client.delete("/api/users/c002").status_code == 204
        assert stocked_client.get("/api/users/c002").status_code == 404

    def test_update_user(self, stocked_client, database):
        registry = get_cart_registry(database)
        stocked_client.post(
            "/api/customers/cust_c001/cart/items", json={"plant_id": "rose", "quantity": 1}
        )

        response = stocked_client.patch("/api/users/c001", json={"role": "Staff"})
        assert response.status_code == 200
        assert response.json()["role"] == "Staff"
        assert response.json()["customer_id"] is None
        assert len(registry) == 0

        response = stocked_client.patch("/api/users/s001", json={"username": "alice"})
        assert response.status_code == 409
        assert stocked_client.patch("/api/users/s001", json={"role": "Gardener"}).status_code == 400
        assert stocked_client.patch("/api/users/nobody", json={"username": "ghost"}).status_code == 404


class TestReports:
    def test_reports(self, stocked_client):
        checkout(stocked_client, "cust_c001", ("rose", 1))

        inventory = stocked_client.get("/api/reports/inventory", params={"threshold": 5}).json()
        assert inventory["low_stock"][0]["plant_id"] == "bonsai"

        orders = stocked_client.get("/api/reports/orders").json()
        assert orders["by_status"]["Pending"] == 1

        sales = stocked_client.get("/api/reports/sales").json()
        assert sales["total_sales"] == "10.00"

        users = stocked_client.get("/api/reports/users").json()
        assert users["total_users"] == 3
