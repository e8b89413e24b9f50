from models.log import Log


def _create(client, headers, items, **extra):
    body = {"items": [{"productId": pid, "quantity": qty} for pid, qty in items]}
    body.update(extra)
    return client.post("/orders", json=body, headers=headers)


def test_create_order_returns_items_and_total(client, auth, customer, products, stock_of):
    widget, gadget = products
    res = _create(client, auth(customer), [(widget.id, 2), (gadget.id, 1)])

    assert res.status_code == 201
    data = res.json()
    assert data["status"] == "pending"
    assert data["total"] == 40.0
    assert data["customer_id"] == customer.id
    assert [(i["product_id"], i["quantity"], i["unit_price"]) for i in data["items"]] == [
        (widget.id, 2, 15.0),
        (gadget.id, 1, 10.0),
    ]
    assert data["items"][0]["line_total"] == 30.0
    assert stock_of(widget.id) == 8


def test_create_order_accepts_snake_case(client, auth, customer, products):
    widget, _ = products
    res = client.post(
        "/orders", json={"items": [{"product_id": widget.id, "quantity": 1}]}, headers=auth(customer)
    )
    assert res.status_code == 201


def test_create_order_rejects_bad_quantities(client, auth, customer, products, stock_of):
    widget, _ = products
    for qty in (0, -3):
        res = _create(client, auth(customer), [(widget.id, qty)])
        assert res.status_code == 400
        body = res.json()
        assert body["error"] == "validation_error"
        assert body["field"] == "items[0].quantity"
        assert set(body) == {"error", "detail", "field"}
    res = client.post("/orders", json={"items": []}, headers=auth(customer))
    assert res.status_code == 400
    assert res.json()["field"] == "items"
    assert stock_of(widget.id) == 10


def test_create_order_only_accepts_draft_status(client, auth, customer, products, stock_of):
    widget, _ = products
    res = _create(client, auth(customer), [(widget.id, 1)], status="completed")
    assert res.status_code == 400
    assert res.json()["error"] == "validation_error"
    assert res.json()["field"] == "status"
    assert client.get("/orders", headers=auth(customer)).json() == []
    assert stock_of(widget.id) == 10

    res = _create(client, auth(customer), [(widget.id, 1)], status="draft")
    assert res.status_code == 201
    assert res.json()["status"] == "draft"


def test_customer_assigning_is_forbidden_before_stock_check(client, auth, customer, employee, products):
    _, gadget = products
    res = _create(client, auth(customer), [(gadget.id, 50)], assignedToId=employee.id)
    assert res.status_code == 403
    assert res.json()["error"] == "forbidden"


def test_create_order_unknown_product(client, auth, customer, products):
    res = _create(client, auth(customer), [(999, 1)])
    assert res.status_code == 400
    body = res.json()
    assert body["error"] == "validation_error"
    assert body["field"] == "items[0].product_id"


def test_create_order_insufficient_stock(client, auth, customer, products, stock_of):
    _, gadget = products
    res = _create(client, auth(customer), [(gadget.id, 6)])
    assert res.status_code == 409
    body = res.json()
    assert body["error"] == "insufficient_stock"
    assert body["product_id"] == gadget.id
    assert stock_of(gadget.id) == 5


def test_non_admin_cannot_assign_on_create(client, auth, customer, employee, products):
    widget, _ = products
    res = _create(client, auth(customer), [(widget.id, 1)], assignedToId=employee.id)
    assert res.status_code == 403
    assert res.json()["error"] == "forbidden"


def test_admin_create_with_unmapped_employee(client, auth, admin, customer, employee, products, stock_of):
    widget, _ = products
    res = _create(client, auth(admin), [(widget.id, 1)], customerId=customer.id, assignedToId=employee.id)
    assert res.status_code == 409
    body = res.json()
    assert body["error"] == "mapping_required"
    assert body["mapping_required"] is True
    assert (body["customer_id"], body["employee_id"]) == (customer.id, employee.id)
    assert stock_of(widget.id) == 10

    res = _create(
        client, auth(admin), [(widget.id, 1)],
        customerId=customer.id, assignedToId=employee.id, createMapping=True,
    )
    assert res.status_code == 201
    assert res.json()["status"] == "in_progress"


def test_assign_flow_with_mapping_retry(client, auth, admin, customer, employee, products):
    widget, _ = products
    order_id = _create(client, auth(customer), [(widget.id, 1)]).json()["id"]

    res = client.put(f"/orders/{order_id}/assign", json={"assignedToId": employee.id}, headers=auth(admin))
    assert res.status_code == 409
    assert res.json()["mapping_required"] is True

    res = client.post(
        "/assignments", json={"customerId": customer.id, "employeeId": employee.id}, headers=auth(admin)
    )
    assert res.status_code == 201

    res = client.put(f"/orders/{order_id}/assign", json={"assignedToId": employee.id}, headers=auth(admin))
    assert res.status_code == 200
    assert res.json() == {"ok": True, "assigned_to_id": employee.id, "status": "in_progress"}

    res = client.put(f"/orders/{order_id}/assign", json={"assignedToId": None}, headers=auth(admin))
    assert res.json() == {"ok": True, "assigned_to_id": None, "status": "pending"}


def test_assign_requires_admin(client, auth, customer, employee, products):
    widget, _ = products
    order_id = _create(client, auth(customer), [(widget.id, 1)]).json()["id"]
    res = client.put(f"/orders/{order_id}/assign", json={"assignedToId": employee.id}, headers=auth(employee))
    assert res.status_code == 403


def test_status_endpoint(client, auth, admin, customer, employee, products):
    widget, _ = products
    draft = _create(client, auth(customer), [(widget.id, 1)], status="draft").json()
    assert draft["status"] == "draft"

    res = client.put(f"/orders/{draft['id']}/status", json={"status": "in_progress"}, headers=auth(admin))
    assert res.status_code == 400
    assert res.json()["error"] == "invalid_transition"

    res = client.put(f"/orders/{draft['id']}/status", json={"status": "pending"}, headers=auth(customer))
    assert res.status_code == 200
    assert res.json() == {"ok": True, "status": "pending"}

    res = client.put(f"/orders/{draft['id']}/status", json={"status": "in_progress"}, headers=auth(employee))
    assert res.status_code == 403

    res = client.put(f"/orders/{draft['id']}/status", json={"status": "bogus"}, headers=auth(admin))
    assert res.status_code == 400
    assert res.json()["field"] == "status"


def test_cancel_twice(client, auth, customer, products, stock_of):
    widget, _ = products
    order_id = _create(client, auth(customer), [(widget.id, 4)]).json()["id"]
    assert stock_of(widget.id) == 6

    res = client.post(f"/orders/{order_id}/cancel", headers=auth(customer))
    assert res.status_code == 200
    assert res.json() == {"cancelled": True}
    assert stock_of(widget.id) == 10

    res = client.post(f"/orders/{order_id}/cancel", headers=auth(customer))
    assert res.status_code == 400
    assert res.json()["error"] == "invalid_transition"
    assert stock_of(widget.id) == 10


def test_update_publishes_draft(client, auth, customer, products, stock_of):
    widget, gadget = products
    draft_id = _create(client, auth(customer), [(widget.id, 1)], status="draft").json()["id"]

    res = client.put(
        f"/orders/{draft_id}",
        json={"items": [{"productId": gadget.id, "quantity": 2}], "status": "pending"},
        headers=auth(customer),
    )
    assert res.status_code == 200
    data = res.json()
    assert data["status"] == "pending"
    assert data["total"] == 20.0
    assert stock_of(widget.id) == 10
    assert stock_of(gadget.id) == 3


def test_visibility_over_http(client, auth, customer, other_customer, products):
    widget, _ = products
    order_id = _create(client, auth(customer), [(widget.id, 1)]).json()["id"]

    assert client.get(f"/orders/{order_id}", headers=auth(customer)).status_code == 200
    res = client.get(f"/orders/{order_id}", headers=auth(other_customer))
    assert res.status_code == 404
    assert res.json()["error"] == "not_found"
    assert client.get("/orders", headers=auth(other_customer)).json() == []


def test_trash_restore_and_permanent_delete(client, auth, admin, customer, products, stock_of):
    widget, _ = products
    order_id = _create(client, auth(customer), [(widget.id, 3)]).json()["id"]

    res = client.delete(f"/orders/{order_id}", headers=auth(admin))
    assert res.status_code == 200
    assert res.json()["soft_deleted"] is True
    assert client.get("/orders", headers=auth(admin)).json() == []
    trashed = client.get("/orders", params={"deleted": "true"}, headers=auth(admin)).json()
    assert [o["id"] for o in trashed] == [order_id]
    assert trashed[0]["deleted_at"] is not None

    res = client.post(f"/orders/{order_id}/restore", headers=auth(admin))
    assert res.status_code == 200
    assert res.json()["deleted_at"] is None

    res = client.delete(f"/orders/{order_id}", params={"permanent": "true"}, headers=auth(admin))
    assert res.status_code == 200
    assert res.json()["released"] is True
    assert stock_of(widget.id) == 10
    assert client.get(f"/orders/{order_id}", headers=auth(admin)).status_code == 404


def test_order_actions_are_audited(client, auth, customer, products, db_session):
    widget, _ = products
    order_id = _create(client, auth(customer), [(widget.id, 1)]).json()["id"]
    client.post(f"/orders/{order_id}/cancel", headers=auth(customer))

    db_session.expire_all()
    actions = [log.action for log in db_session.query(Log).order_by(Log.id).all()]
    assert actions == ["ORDER_CREATE", "ORDER_CANCEL"]


def test_invalid_token_is_rejected(client, products):
    res = client.get("/orders", headers={"Authorization": "Bearer not-a-token"})
    assert res.status_code == 401
