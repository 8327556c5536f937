def test_add_list_remove(client, make_user, make_product, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    product = make_product(name="Jamdani")

    added = client.post("/api/wishlist", json={"productId": product.id}, headers=headers)
    assert added.status_code == 201
    assert added.json()["product"]["name"] == "Jamdani"

    items = client.get("/api/wishlist", headers=headers).json()["items"]
    assert [i["product"]["id"] for i in items] == [product.id]

    item_id = items[0]["id"]
    assert client.delete(f"/api/wishlist/{item_id}", headers=headers).json() == {"success": True}
    assert client.get("/api/wishlist", headers=headers).json()["items"] == []


def test_duplicate_is_409(client, make_user, make_product, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    product = make_product()

    client.post("/api/wishlist", json={"productId": product.id}, headers=headers)
    resp = client.post("/api/wishlist", json={"productId": product.id}, headers=headers)

    assert resp.status_code == 409
    assert resp.json()["error"] == "Product already in wishlist"


def test_unknown_product_is_404(client, make_user, auth_headers):
    resp = client.post("/api/wishlist", json={"productId": 404}, headers=auth_headers(make_user()))
    assert resp.status_code == 404


def test_cannot_remove_someone_elses_item(client, make_user, make_product, auth_headers):
    owner, stranger = make_user(), make_user()
    item_id = client.post("/api/wishlist", json={"productId": make_product().id},
                          headers=auth_headers(owner)).json()["id"]

    resp = client.delete(f"/api/wishlist/{item_id}", headers=auth_headers(stranger))
    assert resp.status_code == 404
