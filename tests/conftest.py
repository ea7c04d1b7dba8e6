import os

os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("SEED_DATA", "false")

import pytest
from fastapi.testclient import TestClient

from checkout import OrderService
from database import Store
from main import app, get_store
from repositories import Repositories
from schemas import Address
from seed import seed_store


@pytest.fixture
def store():
    return Store()


@pytest.fixture
def repos(store):
    return Repositories(store)


@pytest.fixture
def service(repos):
    return OrderService(repos)


@pytest.fixture
def make_product(repos):
    def _make(name="Widget", price=10.0, stock=5, category="Gadgets", **extra):
        return repos.products.create({"name": name, "price": price, "stock": stock, "category": category, **extra})
    return _make


@pytest.fixture
def address():
    return Address(street="1 Main St", city="Springfield", state="IL", zip_code="62701", country="US")


@pytest.fixture
def client(store):
    seed_store(store)
    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(client):
    resp = client.post("/api/auth/login", json={"email": "john@example.com", "password": "Ecomm@123"})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['data']['token']}"}
