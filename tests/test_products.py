import pytest

from conftest import auth_headers_for, create_product


def test_create_product_computes_margin_and_low_stock(client, auth_headers):
    product = create_product(client, auth_headers, costPrice=4, salePrice=10, stockQuantity=5, lowStockThreshold=5)
    assert product["margin"] == pytest.approx(60.0)
    assert product["isLowStock"] is True
    assert product["isActive"] is True
    assert product["variants"] == []


def test_zero_sale_price_has_zero_margin(client, auth_headers):
    product = create_product(client, auth_headers, costPrice=0, salePrice=0)
    assert product["margin"] == 0


def test_sale_price_below_cost_is_rejected(client, auth_headers):
    response = client.post("/api/products", headers=auth_headers, json={
        "name": "Loss Leader", "category": "Promo", "costPrice": 5, "salePrice": 3,
    })
    assert response.status_code == 400
    assert "greater than or equal to cost price" in response.json()["message"]

    listing = client.get("/api/products", headers=auth_headers).json()
    assert listing["pagination"]["total"] == 0


def test_update_checks_prices_on_merged_record(client, auth_headers):
    product = create_product(client, auth_headers, costPrice=1, salePrice=2)

    response = client.put(f"/api/products/{product['id']}", headers=auth_headers, json={"costPrice": 3})
    assert response.status_code == 400
    assert response.json()["validationErrors"][0]["field"] == "salePrice"

    unchanged = client.get(f"/api/products/{product['id']}", headers=auth_headers).json()["data"]
    assert unchanged["costPrice"] == 1.0
    assert unchanged["salePrice"] == 2.0

    response = client.put(f"/api/products/{product['id']}", headers=auth_headers, json={"costPrice": 3, "salePrice": 4})
    assert response.status_code == 200
    assert response.json()["data"]["margin"] == pytest.approx(25.0)


def test_update_ignores_stock_quantity(client, auth_headers):
    product = create_product(client, auth_headers, stockQuantity=10)
    response = client.put(f"/api/products/{product['id']}", headers=auth_headers, json={
        "name": "Double Espresso", "stockQuantity": 999,
    })
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["name"] == "Double Espresso"
    assert data["stockQuantity"] == 10


def test_sku_is_unique_per_business(client, auth_headers):
    create_product(client, auth_headers, sku="ESP-1")
    response = client.post("/api/products", headers=auth_headers, json={
        "name": "Other", "category": "Coffee", "costPrice": 1, "salePrice": 2, "sku": "ESP-1",
    })
    assert response.status_code == 400

    other_business = auth_headers_for(client, email="other@example.com")
    create_product(client, other_business, sku="ESP-1")


def test_variants_are_stored_and_replaced(client, auth_headers):
    product = create_product(client, auth_headers, variants=[
        {"name": "Small", "costPrice": 0.5, "salePrice": 1.5, "stockQuantity": 3},
        {"name": "Large", "costPrice": 0.9, "salePrice": 2.5},
    ])
    assert [v["name"] for v in product["variants"]] == ["Small", "Large"]

    response = client.put(f"/api/products/{product['id']}", headers=auth_headers, json={
        "variants": [{"name": "Medium", "costPrice": 0.7, "salePrice": 2.0}],
    })
    assert [v["name"] for v in response.json()["data"]["variants"]] == ["Medium"]


def test_list_filters_search_and_paginates(client, auth_headers):
    create_product(client, auth_headers, name="Latte", category="Coffee")
    create_product(client, auth_headers, name="Cappuccino", category="Coffee")
    create_product(client, auth_headers, name="Croissant", category="Bakery", isActive=False)

    response = client.get("/api/products", headers=auth_headers, params={"limit": 2, "sortBy": "name", "sortOrder": "asc"})
    body = response.json()
    assert [p["name"] for p in body["data"]] == ["Cappuccino", "Croissant"]
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}

    response = client.get("/api/products", headers=auth_headers, params={"category": "Coffee", "search": "lat"})
    assert [p["name"] for p in response.json()["data"]] == ["Latte"]

    response = client.get("/api/products", headers=auth_headers, params={"isActive": "false"})
    assert [p["name"] for p in response.json()["data"]] == ["Croissant"]


def test_list_rejects_unknown_sort_field(client, auth_headers):
    response = client.get("/api/products", headers=auth_headers, params={"sortBy": "password"})
    assert response.status_code == 400


def test_categories_only_include_active_products(client, auth_headers):
    create_product(client, auth_headers, category="Tea")
    create_product(client, auth_headers, category="Coffee")
    create_product(client, auth_headers, category="Coffee")
    create_product(client, auth_headers, category="Retired", isActive=False)

    response = client.get("/api/products/categories", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["data"] == ["Coffee", "Tea"]


def test_low_stock_listing(client, auth_headers):
    create_product(client, auth_headers, name="Plenty", stockQuantity=50, lowStockThreshold=10)
    create_product(client, auth_headers, name="Few", stockQuantity=4, lowStockThreshold=5)
    create_product(client, auth_headers, name="None", stockQuantity=0, lowStockThreshold=5)
    create_product(client, auth_headers, name="Edge", stockQuantity=10, lowStockThreshold=10)
    create_product(client, auth_headers, name="Hidden", stockQuantity=0, isActive=False)

    response = client.get("/api/products/low-stock", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert [p["name"] for p in data] == ["None", "Few", "Edge"]
    assert all(p["isLowStock"] for p in data)


def test_stock_operations(client, auth_headers):
    product = create_product(client, auth_headers, stockQuantity=10)
    url = f"/api/products/{product['id']}/stock"

    response = client.patch(url, headers=auth_headers, json={"quantity": 5, "operation": "add"})
    assert response.status_code == 200
    assert response.json()["data"]["stockQuantity"] == 15

    response = client.patch(url, headers=auth_headers, json={"quantity": 20, "operation": "subtract"})
    assert response.json()["data"]["stockQuantity"] == 0

    response = client.patch(url, headers=auth_headers, json={"quantity": 7})
    assert response.json()["data"]["stockQuantity"] == 7
    assert response.json()["message"] == "Stock updated successfully"


def test_stock_update_validation(client, auth_headers):
    product = create_product(client, auth_headers)
    url = f"/api/products/{product['id']}/stock"
    assert client.patch(url, headers=auth_headers, json={"quantity": -1}).status_code == 400
    assert client.patch(url, headers=auth_headers, json={"quantity": 1, "operation": "multiply"}).status_code == 400
    assert client.patch("/api/products/9999/stock", headers=auth_headers, json={"quantity": 1}).status_code == 404


def test_other_business_cannot_see_product(client, auth_headers):
    product = create_product(client, auth_headers)
    intruder = auth_headers_for(client, email="intruder@example.com")

    assert client.get(f"/api/products/{product['id']}", headers=intruder).status_code == 404
    assert client.put(f"/api/products/{product['id']}", headers=intruder, json={"name": "Mine"}).status_code == 404
    assert client.delete(f"/api/products/{product['id']}", headers=intruder).status_code == 404
    assert client.patch(f"/api/products/{product['id']}/stock", headers=intruder, json={"quantity": 0}).status_code == 404


def test_delete_product(client, auth_headers):
    product = create_product(client, auth_headers)
    response = client.delete(f"/api/products/{product['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Product deleted successfully"}
    assert client.get(f"/api/products/{product['id']}", headers=auth_headers).status_code == 404


def test_non_numeric_id_is_a_validation_error(client, auth_headers):
    response = client.get("/api/products/abc", headers=auth_headers)
    assert response.status_code == 400
