import mongomock
import pytest
from fastapi.testclient import TestClient
from mongomock.gridfs import enable_gridfs_integration

import database
import orders
import products
import users

enable_gridfs_integration()


@pytest.fixture
def db():
    mock = mongomock.MongoClient().get_database("diremart_test")
    database.set_db(mock)
    yield mock
    database.set_db(None)


@pytest.fixture
def client(db):
    import main
    return TestClient(main.app)


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(display_name="Abebe Kebede", role="buyer", password="secret123"):
        counter["n"] += 1
        return users.register_user(f"user{counter['n']}@example.com", password, display_name, "", role)

    return _make


@pytest.fixture
def make_product(db):
    def _make(name="Habesha Kemis", price=1200.0, seller_id=None, **extra):
        return products.add_product(seller_id, {"name": name, "price": price, **extra})

    return _make


@pytest.fixture
def make_order(db):
    def _make(user_id, product_ids, status="delivered", **extra):
        items = [{"id": pid, "quantity": 1, "price": 100.0} for pid in product_ids]
        return orders.create_order(user_id, {"items": items, "status": status, **extra})

    return _make
