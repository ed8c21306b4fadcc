import pytest

import cart
import orders
from errors import NotFound, PermissionDenied, ValidationError


def test_new_cart_is_empty(db):
    doc = cart.get_cart("u1")
    assert doc["items"] == []
    assert doc["total"] == 0
    cart.get_cart("u1")
    assert db["cart"].count_documents({"user_id": "u1"}) == 1


def test_add_merges_same_product(make_product):
    pid = make_product(name="Jebena", price=300, images=["https://cdn.example.com/jebena.jpg"])
    cart.add_to_cart("u1", pid)
    result = cart.add_to_cart("u1", pid, 2)
    [item] = result["items"]
    assert item["quantity"] == 3
    assert item["image_url"] == "https://cdn.example.com/jebena.jpg"
    assert result["total"] == 900
    assert cart.get_cart("u1")["total"] == 900


def test_update_quantity_and_remove(make_product):
    coffee = make_product(name="Coffee", price=150)
    scarf = make_product(name="Netela", price=400)
    cart.add_to_cart("u1", coffee)
    cart.add_to_cart("u1", scarf)
    assert cart.update_cart_quantity("u1", coffee, 4)["total"] == 1000
    result = cart.update_cart_quantity("u1", coffee, 0)
    assert [i["id"] for i in result["items"]] == [scarf]
    assert cart.remove_from_cart("u1", scarf) == {"items": [], "total": 0}


def test_update_cart_recomputes_total(db):
    result = cart.update_cart("u1", [
        {"id": "p1", "price": 10.5, "quantity": 2},
        {"id": "p2", "price": 4, "quantity": 1},
    ])
    assert result["total"] == 25
    assert db["cart"].find_one({"user_id": "u1"})["total"] == 25


def test_invalid_input(db):
    with pytest.raises(ValidationError):
        cart.update_cart("u1", [{"id": "p1", "quantity": 0}])
    with pytest.raises(ValidationError):
        cart.add_to_cart("u1", "p1", 0)
    with pytest.raises(NotFound):
        cart.add_to_cart("u1", "64b7f0c2a1b2c3d4e5f60718")
    with pytest.raises(PermissionDenied):
        cart.get_cart("")


def test_order_empties_cart(make_user, make_product):
    user = make_user()
    pid = make_product(price=50)
    cart.add_to_cart(user["id"], pid, 2)
    orders.create_order(user["id"], {"items": [{"id": pid, "price": 50, "quantity": 2}]})
    assert cart.get_cart(user["id"])["items"] == []


def test_cart_endpoints(client, make_product):
    pid = make_product(name="Mesob", price=700)
    assert client.get("/api/cart", params={"user_id": "u9"}).json()["items"] == []
    res = client.post("/api/cart", json={"user_id": "u9", "product_id": pid, "quantity": 2})
    assert res.json()["total"] == 1400
    res = client.patch(f"/api/cart/items/{pid}", json={"user_id": "u9", "quantity": 1})
    assert res.json()["total"] == 700
    res = client.delete(f"/api/cart/items/{pid}", params={"user_id": "u9"})
    assert res.json() == {"items": [], "total": 0}
    assert client.post("/api/cart", json={"user_id": "u9", "product_id": "bad"}).status_code == 404
