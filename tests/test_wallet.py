import pytest

import notifications
import wallet
from errors import InsufficientFunds, NotFound, PermissionDenied, ValidationError


@pytest.fixture
def buyer(make_user):
    return make_user("Meron Bekele")


@pytest.fixture
def seller(make_user):
    return make_user("Yonas Shop", role="seller")


def test_registration_creates_empty_wallet(db, buyer, seller):
    assert wallet.get_wallet_balance(buyer["id"]) == 0
    assert wallet.get_wallet(seller["id"])["role"] == "seller"
    assert db["wallet"].count_documents({}) == 2


def test_initialize_is_idempotent(db, buyer):
    wallet.add_funds(buyer["id"], 50)
    again = wallet.initialize_wallet(buyer["id"], "seller")
    assert again["balance"] == 50
    assert again["role"] == "buyer"
    assert db["wallet"].count_documents({"user_id": buyer["id"]}) == 1


def test_get_wallet_creates_missing_wallet(db):
    doc = wallet.get_wallet("64b7f0c2a1b2c3d4e5f60718")
    assert doc["balance"] == 0
    assert doc["currency"] == "ETB"


def test_add_funds_records_deposit(buyer):
    result = wallet.add_funds(buyer["id"], "250.5")
    assert result["balance"] == 250.5
    assert result["last_transaction"]["type"] == "deposit"
    [tx] = wallet.get_transaction_history(buyer["id"])
    assert tx["type"] == "deposit"
    assert tx["amount"] == 250.5
    assert tx["metadata"]["previous_balance"] == 0
    assert tx["metadata"]["new_balance"] == 250.5
    assert tx["reference"].startswith("dep-")
    assert notifications.get_notifications(buyer["id"])[0]["type"] == "wallet"


@pytest.mark.parametrize("amount", [0, -10, "abc", None])
def test_add_funds_rejects_bad_amount(buyer, amount):
    with pytest.raises(ValidationError, match="Valid amount is required"):
        wallet.add_funds(buyer["id"], amount)


def test_withdraw_leaves_pending_debit(buyer):
    wallet.add_funds(buyer["id"], 100)
    tx = wallet.withdraw_funds(buyer["id"], 40)
    assert tx["amount"] == -40
    assert tx["status"] == "pending"
    assert wallet.get_wallet_balance(buyer["id"]) == 60


def test_withdraw_more_than_balance(buyer):
    wallet.add_funds(buyer["id"], 30)
    with pytest.raises(InsufficientFunds):
        wallet.withdraw_funds(buyer["id"], 31)
    assert wallet.get_wallet_balance(buyer["id"]) == 30


def test_withdraw_requires_user():
    with pytest.raises(PermissionDenied):
        wallet.withdraw_funds(None, 10)


def test_payment_moves_money(buyer, seller):
    wallet.add_funds(buyer["id"], 500)
    result = wallet.process_payment(buyer["id"], seller["id"], 120, "order-1")
    assert result["buyer_transaction"]["type"] == "purchase"
    assert result["buyer_transaction"]["amount"] == -120
    assert result["seller_transaction"]["type"] == "sale"
    assert result["seller_transaction"]["related_user_id"] == buyer["id"]
    assert wallet.get_wallet_balance(buyer["id"]) == 380
    assert wallet.get_wallet_balance(seller["id"]) == 120


def test_payment_with_insufficient_funds(buyer, seller):
    wallet.add_funds(buyer["id"], 10)
    with pytest.raises(InsufficientFunds, match="Insufficient funds"):
        wallet.process_payment(buyer["id"], seller["id"], 20, "order-2")
    assert wallet.get_wallet_balance(buyer["id"]) == 10
    assert wallet.get_wallet_balance(seller["id"]) == 0
    assert wallet.get_transactions(seller["id"]) == []


def test_payment_to_missing_seller_wallet(buyer):
    wallet.add_funds(buyer["id"], 100)
    with pytest.raises(NotFound, match="Seller wallet not found"):
        wallet.process_payment(buyer["id"], "no-such-seller", 20, "order-3")
    assert wallet.get_wallet_balance(buyer["id"]) == 100


def test_failed_credit_restores_payer(monkeypatch, buyer, seller):
    wallet.add_funds(buyer["id"], 100)
    real_credit = wallet._credit

    def flaky_credit(user_id, amount, label):
        if label == "Seller":
            raise RuntimeError("write failed")
        return real_credit(user_id, amount, label)

    monkeypatch.setattr(wallet, "_credit", flaky_credit)
    with pytest.raises(RuntimeError):
        wallet.process_payment(buyer["id"], seller["id"], 60, "order-4")
    assert wallet.get_wallet_balance(buyer["id"]) == 100


def test_refund_returns_money_to_buyer(buyer, seller):
    wallet.add_funds(buyer["id"], 200)
    wallet.process_payment(buyer["id"], seller["id"], 200, "order-5")
    result = wallet.process_refund(seller["id"], buyer["id"], 75, "order-5")
    assert result["seller_transaction"]["amount"] == -75
    assert result["buyer_transaction"]["amount"] == 75
    assert wallet.get_wallet_balance(buyer["id"]) == 75
    assert wallet.get_wallet_balance(seller["id"]) == 125


def test_transfer(buyer, seller):
    wallet.add_funds(buyer["id"], 90)
    result = wallet.transfer_funds(buyer["id"], seller["id"], 40, "Gift")
    assert result["sender_transaction"]["description"] == "Gift"
    assert wallet.get_wallet_balance(seller["id"]) == 40
    with pytest.raises(ValidationError, match="Cannot transfer to yourself"):
        wallet.transfer_funds(buyer["id"], buyer["id"], 10)


def test_balance_never_negative_after_repeated_debits(buyer):
    wallet.add_funds(buyer["id"], 100)
    failures = 0
    for _ in range(5):
        try:
            wallet.withdraw_funds(buyer["id"], 30)
        except InsufficientFunds:
            failures += 1
    assert failures == 2
    assert wallet.get_wallet_balance(buyer["id"]) == 10


def test_history_is_newest_first_and_limited(db, buyer):
    for amount in (1, 2, 3):
        wallet.add_funds(buyer["id"], amount)
    history = wallet.get_transaction_history(buyer["id"], limit=2)
    assert [tx["amount"] for tx in history] == [3, 2]
