"""
End-to-end checks of the HTTP layer against a seeded store.
"""

ADDRESS = {"street": "1 Main St", "city": "Springfield", "state": "IL", "zip_code": "62701", "country": "US"}


def first_product(client, **params):
    return client.get("/api/products", params=params).json()["data"]["data"][0]


def test_root_and_health(client):
    assert client.get("/").status_code == 200
    body = client.get("/health").json()
    assert body["success"] is True
    assert body["data"]["collections"]["product"] == 8


def test_product_listing_envelope(client):
    resp = client.get("/api/products", params={"limit": 3, "page": 2, "sort": "price_asc"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    page = body["data"]
    assert len(page["data"]) == 3
    assert (page["page"], page["limit"], page["total"], page["total_pages"]) == (2, 3, 8, 3)


def test_product_filters(client):
    page = client.get("/api/products", params={"category": "Books"}).json()["data"]
    assert {p["category"] for p in page["data"]} == {"Books"}
    featured = client.get("/api/products", params={"featured": "true"}).json()["data"]
    assert all(p["featured"] for p in featured["data"])
    assert client.get("/api/products", params={"sort": "bogus"}).status_code == 400


def test_featured_categories_and_detail(client):
    featured = client.get("/api/products/featured").json()["data"]
    assert len(featured) == 6
    categories = client.get("/api/products/categories").json()["data"]
    assert categories == ["Electronics", "Footwear", "Clothing", "Books"]

    product = first_product(client)
    assert client.get(f"/api/products/{product['id']}").json()["data"]["name"] == product["name"]

    missing = client.get("/api/products/does-not-exist")
    assert missing.status_code == 404
    assert missing.json() == {"success": False, "error": "Product not found: does-not-exist"}


def test_signup_and_profile(client):
    resp = client.post("/api/auth/signup", json={
        "email": "new@example.com", "password": "pw12345", "first_name": "New", "last_name": "User",
    })
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert "password_hash" not in data["user"]

    headers = {"Authorization": f"Bearer {data['token']}"}
    profile = client.get("/api/auth/profile", headers=headers).json()["data"]
    assert profile["email"] == "new@example.com"

    dup = client.post("/api/auth/signup", json={
        "email": "new@example.com", "password": "x", "first_name": "N", "last_name": "U",
    })
    assert dup.status_code == 400
    assert dup.json()["success"] is False


def test_login_failures(client):
    resp = client.post("/api/auth/login", json={"email": "john@example.com", "password": "wrong"})
    assert resp.status_code == 401
    assert client.get("/api/cart").status_code == 401
    assert client.get("/api/cart", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_cart_flow(client, auth_headers):
    product = first_product(client, category="Books", sort="price_asc")
    resp = client.post("/api/cart/items", json={"product_id": product["id"], "quantity": 2}, headers=auth_headers)
    assert resp.status_code == 200
    cart = resp.json()["data"]
    assert cart["total_items"] == 2
    assert cart["subtotal"] == round(product["price"] * 2, 2)
    item_id = cart["items"][0]["id"]

    cart = client.put(f"/api/cart/items/{item_id}", json={"quantity": 1}, headers=auth_headers).json()["data"]
    assert cart["items"][0]["quantity"] == 1

    assert client.put(f"/api/cart/items/{item_id}", json={"quantity": 0}, headers=auth_headers).status_code == 400
    too_many = client.put(f"/api/cart/items/{item_id}", json={"quantity": 10_000}, headers=auth_headers)
    assert too_many.status_code == 400
    assert "Insufficient stock" in too_many.json()["error"]

    cart = client.delete(f"/api/cart/items/{item_id}", headers=auth_headers).json()["data"]
    assert cart["items"] == []
    assert client.delete(f"/api/cart/items/{item_id}", headers=auth_headers).status_code == 200
    assert client.delete("/api/cart", headers=auth_headers).json()["data"]["total"] == 0


def test_checkout_and_cancel(client, auth_headers):
    product = first_product(client, search="gatsby")
    empty = client.post("/api/orders", json={"shipping_address": ADDRESS}, headers=auth_headers)
    assert empty.status_code == 400
    assert empty.json()["error"] == "Cart is empty"

    client.post("/api/cart/items", json={"product_id": product["id"], "quantity": 3}, headers=auth_headers)
    resp = client.post("/api/orders", json={"shipping_address": ADDRESS}, headers=auth_headers)
    assert resp.status_code == 201
    order = resp.json()["data"]
    assert order["status"] == "pending"
    assert order["items"][0]["product_name"] == "The Great Gatsby"
    assert client.get("/api/cart", headers=auth_headers).json()["data"]["items"] == []

    orders = client.get("/api/orders", headers=auth_headers).json()["data"]
    assert [o["id"] for o in orders["data"]] == [order["id"]]
    assert client.get(f"/api/orders/{order['id']}", headers=auth_headers).json()["data"]["order_number"] == order["order_number"]

    cancelled = client.put(f"/api/orders/{order['id']}/cancel", headers=auth_headers)
    assert cancelled.json()["data"]["status"] == "cancelled"
    again = client.put(f"/api/orders/{order['id']}/cancel", headers=auth_headers)
    assert again.status_code == 409


def test_status_updates(client, auth_headers):
    product = first_product(client)
    client.post("/api/cart/items", json={"product_id": product["id"], "quantity": 1}, headers=auth_headers)
    order = client.post("/api/orders", json={"shipping_address": ADDRESS}, headers=auth_headers).json()["data"]

    url = f"/api/orders/{order['id']}/status"
    assert client.put(url, json={"status": "delivered"}, headers=auth_headers).json()["data"]["status"] == "delivered"
    rejected = client.put(url, json={"status": "cancelled"}, headers=auth_headers)
    assert rejected.status_code == 409
    assert client.put(url, json={"status": "teleported"}, headers=auth_headers).status_code == 400


def test_orders_are_private(client, auth_headers):
    product = first_product(client)
    client.post("/api/cart/items", json={"product_id": product["id"], "quantity": 1}, headers=auth_headers)
    order = client.post("/api/orders", json={"shipping_address": ADDRESS}, headers=auth_headers).json()["data"]

    token = client.post("/api/auth/login", json={"email": "jane@example.com", "password": "Ecomm@123"}).json()["data"]["token"]
    jane = {"Authorization": f"Bearer {token}"}
    assert client.get(f"/api/orders/{order['id']}", headers=jane).status_code == 404
    assert client.get("/api/orders", headers=jane).json()["data"]["data"] == []


def test_incomplete_address_gets_error_envelope(client, auth_headers):
    product = first_product(client)
    client.post("/api/cart/items", json={"product_id": product["id"], "quantity": 1}, headers=auth_headers)
    resp = client.post("/api/orders", json={"shipping_address": {"street": "1 Main St"}}, headers=auth_headers)
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["error"].startswith("shipping_address.city")
    assert len(client.get("/api/cart", headers=auth_headers).json()["data"]["items"]) == 1

    bad_quantity = client.post("/api/cart/items", json={"product_id": product["id"], "quantity": "many"}, headers=auth_headers)
    assert bad_quantity.status_code == 400
    assert bad_quantity.json()["error"].startswith("quantity")


def test_token_endpoint_accepts_password_form(client):
    resp = client.post("/api/auth/token", data={"username": "john@example.com", "password": "Ecomm@123"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["token_type"] == "bearer"
    headers = {"Authorization": f"Bearer {body['access_token']}"}
    assert client.get("/api/auth/profile", headers=headers).json()["data"]["email"] == "john@example.com"

    wrong = client.post("/api/auth/token", data={"username": "john@example.com", "password": "nope"})
    assert wrong.status_code == 401
    assert wrong.json()["success"] is False


def test_openapi_password_flow_points_at_token_endpoint(client):
    schema = client.get("/openapi.json").json()
    flow = schema["components"]["securitySchemes"]["OAuth2PasswordBearer"]["flows"]["password"]
    assert flow["tokenUrl"] == "api/auth/token"


def test_cart_totals_match_their_parts_for_seeded_prices(client, auth_headers):
    for product in client.get("/api/products", params={"limit": 100}).json()["data"]["data"]:
        client.delete("/api/cart", headers=auth_headers)
        cart = client.post("/api/cart/items", json={"product_id": product["id"], "quantity": 1}, headers=auth_headers).json()["data"]
        assert round(cart["subtotal"] + cart["tax"] + cart["shipping"], 2) == cart["total"]
        assert cart["subtotal"] == product["price"]
