import pytest

import notifications
import orders
import wallet
from errors import InsufficientFunds, NotFound, PermissionDenied, ValidationError


def test_create_order_computes_total(make_user, make_product):
    user = make_user()
    pid = make_product(price=250)
    order = orders.create_order(user["id"], {
        "items": [{"id": pid, "name": "Habesha Kemis", "price": 250, "quantity": 2}],
        "shipping_address": {"city": "Addis Ababa"},
    })
    assert order["total_amount"] == 500
    assert order["status"] == "pending"
    assert order["payment_method"] == "cod"
    assert order["order_number"].startswith("ORD-")
    assert orders.get_order_by_id(order["id"])["shipping_address"] == {"city": "Addis Ababa"}


def test_order_number_format():
    number = orders.new_order_number()
    prefix, day, suffix = number.split("-")
    assert prefix == "ORD"
    assert len(day) == 8 and day.isdigit()
    assert len(suffix) == 6


def test_order_needs_items_and_user(make_user):
    user = make_user()
    with pytest.raises(ValidationError):
        orders.create_order(user["id"], {"items": []})
    with pytest.raises(PermissionDenied):
        orders.create_order(None, {"items": [{"id": "p"}]})


def test_wallet_order_pays_seller(make_user, make_product):
    buyer = make_user()
    seller = make_user(role="seller")
    pid = make_product(price=80, seller_id=seller["id"])
    wallet.add_funds(buyer["id"], 100)
    order = orders.create_order(buyer["id"], {
        "items": [{"id": pid, "price": 80, "quantity": 1, "seller_id": seller["id"]}],
        "payment_method": "wallet",
    })
    assert wallet.get_wallet_balance(buyer["id"]) == 20
    assert wallet.get_wallet_balance(seller["id"]) == 80
    [sale] = wallet.get_transactions(seller["id"])
    assert sale["order_id"] == order["id"]


def test_wallet_order_without_funds(make_user, make_product):
    buyer = make_user()
    seller = make_user(role="seller")
    pid = make_product(price=80, seller_id=seller["id"])
    with pytest.raises(InsufficientFunds):
        orders.create_order(buyer["id"], {
            "items": [{"id": pid, "price": 80, "quantity": 1, "seller_id": seller["id"]}],
            "payment_method": "wallet",
        })


def test_user_orders_newest_first(make_user, make_product, make_order):
    user = make_user()
    pid = make_product()
    first = make_order(user["id"], [pid])
    second = make_order(user["id"], [pid])
    assert [o["id"] for o in orders.get_user_orders(user["id"])] == [second["id"], first["id"]]


def test_status_update_notifies_buyer(make_user, make_product, make_order):
    user = make_user()
    order = make_order(user["id"], [make_product()], status="processing")
    updated = orders.update_order_status(order["id"], "shipped", "Yonas Shop")
    assert updated["status"] == "shipped"
    [note] = notifications.get_notifications(user["id"])
    assert note["type"] == "order_status"
    assert note["message"] == f"Your order #{order['id']} has been shipped by Yonas Shop."
    assert note["data"] == {"order_id": order["id"], "status": "shipped"}


def test_status_update_validation(make_user, make_product, make_order):
    order = make_order(make_user()["id"], [make_product()])
    with pytest.raises(ValidationError):
        orders.update_order_status(order["id"], "lost")
    with pytest.raises(NotFound):
        orders.update_order_status("64b7f0c2a1b2c3d4e5f60718", "shipped")
    with pytest.raises(NotFound):
        orders.get_order_by_id("64b7f0c2a1b2c3d4e5f60718")
