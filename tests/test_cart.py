from modules.cart.models import CartItem


def test_add_item_returns_subtotal(client, make_user, make_product, auth_headers):
    user = make_user()
    product = make_product(price="1000", stock=5)

    resp = client.post("/api/cart", json={"productId": product.id, "quantity": 2}, headers=auth_headers(user))

    assert resp.status_code == 200
    body = resp.json()
    assert body["subtotal"] == 2000.0
    assert body["itemCount"] == 2
    assert body["item"]["quantity"] == 2


def test_adding_same_product_merges_quantity(client, make_user, make_product, auth_headers):
    user = make_user()
    product = make_product(stock=5)
    headers = auth_headers(user)

    client.post("/api/cart", json={"productId": product.id, "quantity": 2}, headers=headers)
    resp = client.post("/api/cart", json={"productId": product.id, "quantity": 1}, headers=headers)

    body = resp.json()
    assert len(body["items"]) == 1
    assert body["items"][0]["quantity"] == 3


def test_merged_quantity_cannot_exceed_stock(client, make_user, make_product, auth_headers):
    user = make_user()
    product = make_product(stock=5)
    headers = auth_headers(user)

    client.post("/api/cart", json={"productId": product.id, "quantity": 4}, headers=headers)
    resp = client.post("/api/cart", json={"productId": product.id, "quantity": 2}, headers=headers)

    assert resp.status_code == 400
    assert resp.json()["error"] == "Only 5 items available in stock"


def test_update_above_stock_leaves_quantity_unchanged(db, client, make_user, make_product, auth_headers):
    user = make_user()
    product = make_product(price="1000", stock=5)
    headers = auth_headers(user)

    added = client.post("/api/cart", json={"productId": product.id, "quantity": 2}, headers=headers).json()
    item_id = added["item"]["id"]

    resp = client.patch(f"/api/cart/items/{item_id}", json={"quantity": 6}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Only 5 items available in stock"

    db.expire_all()
    assert db.get(CartItem, item_id).quantity == 2
    assert client.get("/api/cart", headers=headers).json()["subtotal"] == 2000.0


def test_update_and_remove_recompute_subtotal(client, make_user, make_product, auth_headers):
    user = make_user()
    first = make_product(price="1000", stock=5)
    second = make_product(price="250", stock=5)
    headers = auth_headers(user)

    client.post("/api/cart", json={"productId": first.id}, headers=headers)
    body = client.post("/api/cart", json={"productId": second.id, "quantity": 2}, headers=headers).json()
    assert body["subtotal"] == 1500.0

    item_id = body["item"]["id"]
    body = client.patch(f"/api/cart/items/{item_id}", json={"quantity": 4}, headers=headers).json()
    assert body["subtotal"] == 2000.0

    body = client.delete(f"/api/cart/items/{item_id}", headers=headers).json()
    assert body["subtotal"] == 1000.0
    assert body["itemCount"] == 1

    body = client.delete("/api/cart", headers=headers).json()
    assert body["items"] == []
    assert body["subtotal"] == 0.0


def test_rejects_non_positive_quantity(client, make_user, make_product, auth_headers):
    user = make_user()
    product = make_product()

    for bad in (0, -1, "abc", 1.5):
        resp = client.post("/api/cart", json={"productId": product.id, "quantity": bad}, headers=auth_headers(user))
        assert resp.status_code == 400
        assert resp.json()["error"] == "Quantity must be a positive integer"


def test_inactive_product_cannot_be_added(client, make_user, make_product, auth_headers):
    user = make_user()
    product = make_product(is_active=False)

    resp = client.post("/api/cart", json={"productId": product.id}, headers=auth_headers(user))
    assert resp.status_code == 400


def test_unknown_product_is_404(client, make_user, auth_headers):
    user = make_user()
    resp = client.post("/api/cart", json={"productId": 9999}, headers=auth_headers(user))
    assert resp.status_code == 404


def test_cannot_touch_another_users_cart_item(client, make_user, make_product, auth_headers):
    owner, other = make_user(), make_user()
    product = make_product()
    item_id = client.post("/api/cart", json={"productId": product.id}, headers=auth_headers(owner)).json()["item"]["id"]

    resp = client.patch(f"/api/cart/items/{item_id}", json={"quantity": 2}, headers=auth_headers(other))
    assert resp.status_code == 404
    assert resp.json()["error"] == "Cart item not found"


def test_cart_requires_session(client, db):
    assert client.get("/api/cart").status_code == 401
