"""HTTP tests for the store service routes."""
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from services.store_service.app import app, get_session


@pytest.fixture()
async def client(database):
    app.dependency_overrides[get_session] = database.get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


class TestHealth:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "store-service"}


class TestStorefrontRoutes:
    async def test_list_products(self, client, make_product, make_flavor):
        product = await make_product()
        await make_flavor(product, inventory=10, reserved_inventory=4)
        await make_flavor(product, name="Cola", inventory=0)

        response = await client.get("/api/products")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        [entry] = body["data"]
        assert entry["name"] == "CYBER"
        assert entry["available_inventory"] == 6
        assert [f["name"] for f in entry["flavors"]] == ["Mango Ice"]
        assert entry["flavors"][0]["available_inventory"] == 6
        assert entry["flavors"][0]["stock_status"] == "in_stock"

    async def test_place_order(self, client, make_product, make_flavor, fetch):
        product = await make_product()
        flavor = await make_flavor(product, inventory=10)

        response = await client.post("/api/orders", json={
            "cart_items": [{"product_id": str(product.id), "flavor": "Mango Ice", "quantity": 2}],
            "customer_data": {"first_name": "Ana", "phone": "5555-1234"},
        })

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total"] == 480.0
        assert data["items"][0]["flavor_id"] == str(flavor.id)
        assert (await fetch.flavor(flavor.id)).reserved_inventory == 2

    async def test_order_insufficient_inventory(self, client, make_product, make_flavor):
        product = await make_product()
        await make_flavor(product, inventory=1)

        response = await client.post("/api/orders", json={
            "cart_items": [{"product_id": str(product.id), "flavor": "Mango Ice", "quantity": 2}],
            "customer_data": {"first_name": "Ana", "phone": "5555-1234"},
        })

        assert response.status_code == 400
        assert response.json() == {
            "error": "Insufficient inventory for CYBER - Mango Ice. Available: 1, Requested: 2",
            "available": 1,
            "requested": 2,
        }

    async def test_order_unknown_product(self, client):
        response = await client.post("/api/orders", json={
            "cart_items": [{"product_id": str(uuid4()), "flavor": "Cola", "quantity": 1}],
            "customer_data": {"first_name": "Ana", "phone": "5555-1234"},
        })

        assert response.status_code == 404

    async def test_malformed_body_is_400(self, client):
        response = await client.post("/api/orders", json={"cart_items": "nope"})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request body"


class TestAdminRoutes:
    async def test_create_and_patch_flavor(self, client, make_product):
        product = await make_product()

        created = await client.post(
            f"/api/admin/products/{product.id}/flavors",
            json={"name": "Cola", "inventory": 10},
        )
        assert created.status_code == 201
        flavor_id = created.json()["data"]["id"]

        rejected = await client.patch(
            f"/api/admin/flavors/{flavor_id}", json={"reserved_inventory": 11}
        )
        assert rejected.status_code == 400
        assert rejected.json() == {
            "error": "Reserved inventory cannot exceed total inventory",
            "field": "reserved_inventory",
        }

        updated = await client.patch(f"/api/admin/flavors/{flavor_id}", json={"reserved_inventory": 10})
        assert updated.status_code == 200
        assert updated.json()["data"]["stock_status"] == "out_of_stock"

    async def test_flavor_for_missing_product(self, client):
        response = await client.post(f"/api/admin/products/{uuid4()}/flavors", json={"name": "Cola"})
        assert response.status_code == 404
        assert response.json() == {"error": "Product not found"}

    async def test_delete_product_with_sales(self, client, make_product):
        product = await make_product()
        sale = await client.post("/api/admin/sales", json={
            "product_id": str(product.id),
            "quantity": 1,
            "unit_price": 240,
            "total_amount": 240,
        })
        assert sale.status_code == 201

        response = await client.delete(f"/api/admin/products/{product.id}")

        assert response.status_code == 400
        assert "suggestion" in response.json()

    async def test_delete_product(self, client, make_product, make_flavor, fetch):
        product = await make_product()
        await make_flavor(product)

        response = await client.delete(f"/api/admin/products/{product.id}")

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert await fetch.product(product.id) is None

    async def test_seed_and_dashboard(self, client):
        seeded = await client.post("/api/admin/products/seed")
        assert seeded.status_code == 200
        assert seeded.json()["data"]["created"] == 5

        dashboard = await client.get("/api/admin/dashboard")
        stats = dashboard.json()["data"]
        assert stats["total_products"] == 5
        assert stats["products_in_stock"] == 5
        assert stats["total_sales"] == 0

    async def test_sale_status(self, client, make_product):
        product = await make_product()
        sale = await client.post("/api/admin/sales", json={
            "product_id": str(product.id),
            "quantity": 1,
            "unit_price": 240,
            "total_amount": 240,
        })
        sale_id = sale.json()["data"]["id"]

        response = await client.patch(f"/api/admin/sales/{sale_id}/status", json={"status": "cancelled"})

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "cancelled"
