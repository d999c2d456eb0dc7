from datetime import date

import pytest
from fastapi.testclient import TestClient

from database import create_store, get_store
from main import app

TODAY = date(2026, 10, 19)


@pytest.fixture
def store():
    return create_store()


@pytest.fixture
def empty_store():
    return create_store(seed_data=False)


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(client):
    token = client.post("/auth/bootstrap").json()["token"]
    return {"Authorization": f"Bearer {token}"}


def login_headers(client, store, email, admin_role, password="s3cretpass"):
    store.add_user({
        "name": email.split("@")[0],
        "email": email,
        "role": "Admin",
        "admin_role": admin_role,
        "password": password,
        "confirm_password": password,
    })
    res = client.post("/auth/login", json={"email": email, "password": password})
    assert res.status_code == 200
    return {"Authorization": f"Bearer {res.json()['token']}"}
