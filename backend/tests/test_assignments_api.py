def _pair(customer, employee):
    return {"customerId": customer.id, "employeeId": employee.id}


def test_create_list_delete(client, auth, admin, customer, employee):
    headers = auth(admin)
    res = client.post("/assignments", json=_pair(customer, employee), headers=headers)
    assert res.status_code == 201
    assert res.json()["customer_id"] == customer.id

    listed = client.get("/assignments", params={"employeeId": employee.id}, headers=headers).json()
    assert [(a["customer_id"], a["employee_id"]) for a in listed] == [(customer.id, employee.id)]

    res = client.request("DELETE", "/assignments", json=_pair(customer, employee), headers=headers)
    assert res.status_code == 200
    assert client.get("/assignments", headers=headers).json() == []

    res = client.request("DELETE", "/assignments", json=_pair(customer, employee), headers=headers)
    assert res.status_code == 404


def test_duplicate_pair_is_a_conflict(client, auth, admin, customer, employee):
    headers = auth(admin)
    client.post("/assignments", json=_pair(customer, employee), headers=headers)
    res = client.post("/assignments", json=_pair(customer, employee), headers=headers)
    assert res.status_code == 409
    assert res.json()["error"] == "conflict"


def test_roles_are_checked(client, auth, admin, customer, other_customer, employee):
    headers = auth(admin)
    res = client.post("/assignments", json=_pair(employee, customer), headers=headers)
    assert res.status_code == 400
    res = client.post("/assignments", json=_pair(customer, other_customer), headers=headers)
    assert res.status_code == 400
    assert res.json()["field"] == "employee_id"

    res = client.post("/assignments", json=_pair(customer, employee), headers=auth(employee))
    assert res.status_code == 403
