"""Integration tests for the admin endpoints via TestClient."""

import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from protean import current_domain
from protean.integrations.fastapi import register_exception_handlers
from storefront.api.routes import admin_router, order_router
from storefront.stock.product import Product

USER = {"X-User-Id": "user-001"}


@pytest.fixture()
def client():
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(order_router)
    app.include_router(admin_router)
    return TestClient(app)


def _checkout(client, product, quantity=1, price=1000.0):
    response = client.post(
        "/orders",
        headers=USER,
        json={
            "items": [{"product_id": str(product.id), "quantity": quantity}],
            "payment_method": "Cash On Delivery",
            "total": price * quantity,
        },
    )
    return response.json()["order_ids"][0]


class TestAdminOrdersAPI:
    def test_lists_three_per_page(self, client, make_product):
        product = make_product(stock=10)
        for _ in range(4):
            _checkout(client, product)

        body = client.get("/admin/orders").json()

        assert len(body["orders"]) == 3
        assert body["total_count"] == 4

    def test_empty_returns_404(self, client):
        assert client.get("/admin/orders").status_code == 404

    def test_get_any_order(self, client, make_product):
        product = make_product()
        order_id = _checkout(client, product)

        response = client.get(f"/admin/orders/{order_id}")

        assert response.status_code == 200
        assert response.json()["id"] == order_id

    def test_unknown_order_returns_404(self, client):
        assert client.get("/admin/orders/missing").status_code == 404


class TestMetricsAPI:
    def test_order_metrics(self, client, make_product):
        cheap = make_product(name="Wool Socks", price=100.0, stock=20)
        dear = make_product(name="Rain Jacket", price=300.0, stock=20)
        _checkout(client, cheap, quantity=10, price=100.0)
        _checkout(client, dear, quantity=1, price=300.0)

        body = client.get("/admin/orders/metrics").json()

        assert body == {"total_orders": 11, "orders_today": 2, "average_order_value": 200.0}

    def test_average_order_value(self, client, make_product):
        product = make_product(price=500.0)
        _checkout(client, product, price=500.0)

        assert client.get("/admin/orders/average-value").json() == {"average_order_value": 500.0}

    def test_top_selling_products(self, client, make_product):
        shoes = make_product(name="Trail Runner", stock=10)
        socks = make_product(name="Wool Socks", price=200.0, stock=10)
        _checkout(client, shoes)
        _checkout(client, shoes)
        _checkout(client, socks, price=200.0)

        body = client.get("/admin/products/top-selling").json()

        assert body[0] == {"name": "Trail Runner", "sales": 2, "total_revenue": 2000.0}
        assert body[1]["name"] == "Wool Socks"


class TestRestorationRetryAPI:
    def test_nothing_pending(self, client):
        assert client.post("/admin/stock/restorations/retry").json() == {"applied": 0}

    def test_applies_pending_restoration(self, client, make_product):
        product = make_product(stock=5)
        order_id = _checkout(client, product, quantity=2)

        repo = current_domain.repository_for(Product)
        repo._dao.delete(repo.get(product.id))
        client.put(f"/orders/{order_id}/cancel", headers=USER, json={})
        repo.add(Product(id=product.id, name=product.name, price=product.price, stock=3, images=json.dumps([])))

        response = client.post("/admin/stock/restorations/retry")

        assert response.json() == {"applied": 1}
        assert repo.get(product.id).stock == 5
