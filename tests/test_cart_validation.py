from decimal import Decimal

from modules.cart.service import cart_service


def _add(client, headers, product, quantity=1):
    return client.post("/api/cart", json={"productId": product.id, "quantity": quantity}, headers=headers)


def test_empty_cart_is_invalid(client, make_user, auth_headers):
    user = make_user()
    body = client.get("/api/cart/validate", headers=auth_headers(user)).json()
    assert body["isValid"] is False
    assert body["errors"] == ["Cart is empty"]


def test_valid_cart(client, make_user, make_product, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    _add(client, headers, make_product(stock=3), 2)

    body = client.get("/api/cart/validate", headers=headers).json()
    assert body == {"isValid": True, "errors": [], "unavailableItems": [], "insufficientStockItems": []}


def test_inactive_product_makes_cart_invalid(db, client, make_user, make_product, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    product = make_product(name="Banarasi Silk")
    _add(client, headers, product)

    product.is_active = False
    db.commit()

    body = client.get("/api/cart/validate", headers=headers).json()
    assert body["isValid"] is False
    assert body["unavailableItems"] == ["Banarasi Silk"]


def test_stock_drop_reports_shortfall(db, client, make_user, make_product, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    product = make_product(stock=5)
    _add(client, headers, product, 4)

    product.stock = 1
    db.commit()

    body = client.get("/api/cart/validate", headers=headers).json()
    assert body["isValid"] is False
    assert body["insufficientStockItems"] == [{"productId": product.id, "requested": 4, "available": 1}]


def test_prune_drops_unavailable_and_clamps(db, client, make_user, make_product, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    gone = make_product(stock=5)
    low = make_product(stock=5)
    _add(client, headers, gone, 2)
    _add(client, headers, low, 4)

    gone.is_active = False
    low.stock = 2
    db.commit()

    removed, clamped = cart_service.prune_unavailable_items(db)
    db.commit()

    assert (removed, clamped) == (1, 1)
    items = client.get("/api/cart", headers=headers).json()["items"]
    assert [(i["productId"], i["quantity"]) for i in items] == [(low.id, 2)]


def test_refresh_prices_restamps_lines(db, client, make_user, make_product, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    product = make_product(price="1000")
    _add(client, headers, product, 2)

    product.price = Decimal("1200")
    db.commit()

    assert cart_service.refresh_prices(db, user.id) == 1
    db.commit()
    body = client.get("/api/cart", headers=headers).json()
    assert body["items"][0]["price"] == 1200.0
    assert body["subtotal"] == 2400.0
