def _address(**overrides):
    data = {
        "name": "Priya Nair", "phone": "9811122233", "addressLine1": "4 Residency Road",
        "city": "Kochi", "state": "Kerala", "pincode": "682001",
    }
    data.update(overrides)
    return data


def test_create_and_list_addresses(client, make_user, auth_headers):
    headers = auth_headers(make_user())

    first = client.post("/api/addresses", json=_address(), headers=headers)
    assert first.status_code == 201
    assert first.json()["country"] == "India"

    second = client.post("/api/addresses", json=_address(city="Thrissur", isDefault=True), headers=headers)
    listed = client.get("/api/addresses", headers=headers).json()

    assert [a["id"] for a in listed] == [second.json()["id"], first.json()["id"]]
    assert listed[0]["isDefault"] is True


def test_addresses_are_private(client, make_user, auth_headers):
    client.post("/api/addresses", json=_address(), headers=auth_headers(make_user()))
    assert client.get("/api/addresses", headers=auth_headers(make_user())).json() == []
    assert client.get("/api/addresses").status_code == 401


def test_missing_fields_rejected(client, make_user, auth_headers):
    resp = client.post("/api/addresses", json={"name": "Priya"}, headers=auth_headers(make_user()))
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("Missing required fields")
