from conftest import login_headers


def test_root(client):
    assert client.get("/").json() == {"message": "IoT Device Access Manager API running"}


def test_requires_token(client):
    assert client.get("/users").status_code == 401
    assert client.get("/users", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_bootstrap_once(client, admin_headers):
    me = client.get("/auth/me", headers=admin_headers).json()
    assert me["role_label"] == "Super Admin"
    assert all(me["permissions"].values())
    assert "password_hash" not in me["user"]
    assert client.post("/auth/bootstrap").status_code == 400


def test_login_rejects_bad_password(client, admin_headers):
    res = client.post("/auth/login", json={"email": "admin@demo.com", "password": "wrong-one"})
    assert res.status_code == 401


def test_logout_ends_session(client, admin_headers):
    assert client.post("/auth/logout", headers=admin_headers).json() == {"ok": True}
    assert client.get("/auth/me", headers=admin_headers).status_code == 401


def test_billing_admin_is_gated(client, store):
    headers = login_headers(client, store, "billing@example.com", "billing_admin")
    assert client.get("/billing", headers=headers).status_code == 200
    assert client.get("/billing/summary", headers=headers).json()["overdue"] == 1
    assert client.get("/users", headers=headers).status_code == 403
    assert client.get("/devices", headers=headers).status_code == 403
    assert client.get("/calibration", headers=headers).status_code == 403


def test_plain_user_sees_nothing(client, store):
    headers = login_headers(client, store, "plain@example.com", None)
    me = client.get("/auth/me", headers=headers).json()
    assert me["role_label"] == "No Admin Access"
    assert not any(me["permissions"].values())
    assert client.get("/access/unassigned", headers=headers).status_code == 403


def test_inventory_admin_manages_users_and_access(client, store):
    headers = login_headers(client, store, "inv@example.com", "inventory_admin")
    res = client.post("/users", headers=headers, json={
        "name": "New Person",
        "email": "new@example.com",
        "password": "longpassword",
        "confirm_password": "longpassword",
    })
    assert res.status_code == 200
    assert res.json()["id"] == 5

    res = client.post("/users", headers=headers, json={
        "name": "Bad", "email": "bad@example.com", "password": "abc", "confirm_password": "abc",
    })
    assert res.status_code == 400

    assert client.get("/billing", headers=headers).status_code == 403


def test_inventory_admin_cannot_assign_roles(client, store):
    headers = login_headers(client, store, "inv@example.com", "inventory_admin")
    me = client.get("/auth/me", headers=headers).json()["user"]["id"]

    res = client.put(f"/users/{me}/role", headers=headers, json={"admin_role": "super_admin"})
    assert res.status_code == 403
    res = client.patch(f"/users/{me}", headers=headers, json={"admin_role": "super_admin"})
    assert res.status_code == 403
    res = client.post("/users", headers=headers, json={
        "name": "Sidekick", "email": "side@example.com", "admin_role": "super_admin",
    })
    assert res.status_code == 403
    assert store.find_user_by_email("side@example.com") is None
    assert store.get_user(me).admin_role == "inventory_admin"
    assert client.get("/billing", headers=headers).status_code == 403

    # edits that leave the role alone still go through
    res = client.patch(f"/users/{me}", headers=headers, json={"company": "Acme"})
    assert res.status_code == 200


def test_super_admin_assigns_roles(client, admin_headers):
    res = client.put("/users/1/role", headers=admin_headers, json={"admin_role": "qsafe_admin"})
    assert res.status_code == 200
    assert res.json()["admin_role"] == "qsafe_admin"
    res = client.put("/users/1/role", headers=admin_headers, json={"admin_role": "QSAFE_ADMIN"})
    assert res.status_code == 400
    res = client.patch("/users/1", headers=admin_headers, json={"admin_role": None})
    assert res.json()["admin_role"] is None


def test_access_toggle_over_http(client, admin_headers):
    res = client.post("/access/toggle", headers=admin_headers, json={"user_id": 2, "device_id": "DEV002"})
    assert res.json()["granted"] is False
    views = client.get("/access/2", headers=admin_headers).json()
    assert [v["device"]["id"] for v in views] == ["DEV003"]

    res = client.post("/access/toggle", headers=admin_headers, json={"user_id": 2, "device_id": "DEV999"})
    assert res.status_code == 404
    assert "DEV999" in res.json()["detail"]


def test_unassigned_over_http(client, admin_headers):
    client.post("/devices", headers=admin_headers, json={"name": "Spare Lock", "location": "Store Room"})
    ids = [d["id"] for d in client.get("/access/unassigned", headers=admin_headers).json()]
    assert ids == ["DEV005"]


def test_device_config_and_import(client, admin_headers):
    res = client.patch("/devices/DEV003/configuration", headers=admin_headers, json={"resolution": "4K"})
    assert res.json()["configuration"] == {"kind": "camera", "resolution": "4K", "motion_detection": True}
    res = client.patch("/devices/DEV003/configuration", headers=admin_headers, json={"auto_lock": True})
    assert res.status_code == 400

    res = client.post("/devices/import", headers=admin_headers,
                      json={"content": "id,name,location\nDEV010,Soil Sensor,Greenhouse"})
    assert res.status_code == 200
    assert res.json()["added"][0]["status"] == "Offline"
    res = client.post("/devices/import", headers=admin_headers, json={"content": "id,name\nDEV011,x"})
    assert res.status_code == 400


def test_billing_rows_and_payments(client, admin_headers):
    rows = {r["id"]: r for r in client.get("/billing", headers=admin_headers).json()}
    assert rows["DEV002"]["due_amount"] == 0
    assert rows["DEV003"]["payment_status"] == "Overdue"
    assert rows["DEV003"]["assigned_to"]["name"] == "Jane Smith"

    assert client.post("/billing/DEV003/block", headers=admin_headers).json()["blocked"] is True
    res = client.post("/billing/DEV003/payments", headers=admin_headers, json={"amount": 29.99})
    assert res.json()["billing"]["payment_status"] == "Current"
    payments = client.get("/billing/payments", headers=admin_headers, params={"device_id": "DEV003"}).json()
    assert payments[0]["amount"] == 29.99
    assert client.get("/billing/summary", headers=admin_headers).json()["blocked"] == 1


def test_calibration_views(client, admin_headers):
    rows = client.get("/calibration", headers=admin_headers).json()
    assert len(rows) == 4
    assert client.get("/calibration", headers=admin_headers, params={"filters": "sales"}).json()[0]["id"] == "DEV002"
    assert client.get("/calibration", headers=admin_headers, params={"filters": "bogus"}).status_code == 400
    summary = client.get("/calibration/summary", headers=admin_headers).json()
    assert summary["not_scheduled"] == 2


def test_service_reminders(client, admin_headers):
    res = client.patch("/service-reminders/SR001", headers=admin_headers, json={"reminder_months": 6})
    assert res.json()["due_date"] == "2026-10-15"
    rows = client.get("/service-reminders", headers=admin_headers, params={"filters": "disabled"}).json()
    assert [r["id"] for r in rows] == ["SR003"]
    assert rows[0]["user_name"] == "Robert Johnson"
    assert client.get("/service-reminders/summary", headers=admin_headers).json()["enabled"] == 2
    res = client.post("/service-reminders", headers=admin_headers, json={
        "user_id": 1, "service_type": "Pump", "site_location": "Well", "last_service_date": "2026-10-01",
    })
    assert res.json()["due_date"] == "2026-11-01"
    assert client.patch("/service-reminders/SR404", headers=admin_headers,
                        json={"reminder_enabled": False}).status_code == 404
