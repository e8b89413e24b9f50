def test_admin_creates_product_with_rounded_price(client, auth, admin):
    res = client.post(
        "/products", json={"name": "Bolt", "sku": " b-10 ", "price": "2.005", "stock": 7}, headers=auth(admin)
    )
    assert res.status_code == 201
    data = res.json()
    assert data["price"] == 2.01
    assert data["sku"] == "B-10"
    assert data["stock"] == 7


def test_non_admin_cannot_write_products(client, auth, employee, customer, products):
    widget, _ = products
    for user in (employee, customer):
        headers = auth(user)
        assert client.post("/products", json={"name": "X", "price": 1}, headers=headers).status_code == 403
        assert client.put(f"/products/{widget.id}", json={"name": "Y"}, headers=headers).status_code == 403
        assert client.delete(f"/products/{widget.id}", headers=headers).status_code == 403


def test_everyone_can_browse(client, auth, customer, products):
    res = client.get("/products", headers=auth(customer))
    assert res.status_code == 200
    assert res.json()["total"] == 2
    assert [p["name"] for p in client.get("/products", params={"q": "wid"}, headers=auth(customer)).json()["items"]] == [
        "Widget"
    ]


def test_duplicate_sku_is_a_conflict(client, auth, admin, products):
    widget, gadget = products
    res = client.post("/products", json={"name": "Copy", "sku": "w-1", "price": 1}, headers=auth(admin))
    assert res.status_code == 409
    assert res.json()["error"] == "conflict"

    res = client.put(f"/products/{gadget.id}", json={"sku": "W-1"}, headers=auth(admin))
    assert res.status_code == 409


def test_update_never_touches_stock(client, auth, admin, products, stock_of):
    widget, _ = products
    res = client.put(
        f"/products/{widget.id}", json={"name": "Widget XL", "price": 17.5, "stock": 999}, headers=auth(admin)
    )
    assert res.status_code == 200
    assert res.json()["name"] == "Widget XL"
    assert res.json()["price"] == 17.5
    assert stock_of(widget.id) == 10


def test_delete_product(client, auth, admin, customer, products):
    widget, gadget = products
    client.post("/orders", json={"items": [{"productId": widget.id, "quantity": 1}]}, headers=auth(customer))

    res = client.delete(f"/products/{widget.id}", headers=auth(admin))
    assert res.status_code == 409

    res = client.delete(f"/products/{gadget.id}", headers=auth(admin))
    assert res.status_code == 200
    assert client.get(f"/products/{gadget.id}", headers=auth(admin)).status_code == 404


def test_product_with_stock_history_cannot_be_deleted(client, auth, admin, products):
    _, gadget = products
    headers = auth(admin)
    client.post("/inventory/adjust", json={"productId": gadget.id, "quantity": 2}, headers=headers)

    res = client.delete(f"/products/{gadget.id}", headers=headers)
    assert res.status_code == 409
    assert res.json()["error"] == "conflict"
    assert client.get("/inventory/logs", params={"productId": gadget.id}, headers=headers).json()["total"] == 1
    assert client.get(f"/products/{gadget.id}", headers=headers).status_code == 200
