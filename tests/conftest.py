import mongomock
import pytest
from fastapi.testclient import TestClient

from database import ensure_indexes, get_db
from main import app

PRODUCT = {
    "name": "Cotton Shirt",
    "description": "A plain cotton shirt",
    "price": 19.99,
    "image": "https://cdn.example.com/shirt.jpg",
    "category": "clothing",
    "stock": 10,
}


@pytest.fixture
def db():
    database = mongomock.MongoClient(tz_aware=True)["catalog_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    # https so the Secure session cookie is sent back by the client
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app, base_url="https://testserver")
    app.dependency_overrides.clear()


def register(client, name="A", email="a@x.com", password="secret1", **extra):
    return client.post("/api/auth/register", json={"name": name, "email": email, "password": password, **extra})


def bearer(response):
    return {"Authorization": "Bearer " + response.cookies["token"]}


@pytest.fixture
def user_headers(client):
    return bearer(register(client, name="Shopper", email="shopper@x.com"))


@pytest.fixture
def admin_headers(client, db):
    r = register(client, name="Boss", email="boss@x.com")
    db["user"].update_one({"email": "boss@x.com"}, {"$set": {"role": "admin"}})
    return bearer(r)


@pytest.fixture
def create_product(client, admin_headers):
    def _create(**overrides):
        r = client.post("/api/products", json={**PRODUCT, **overrides}, headers=admin_headers)
        assert r.status_code == 201, r.text
        return r.json()
    return _create
