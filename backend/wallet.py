"""
Customer wallets and the transaction ledger.

Balances live on one `wallet` document per user. Debits are conditional
single-document updates (`balance >= amount`), so a balance never goes
negative even when two debits race. Multi-wallet moves (payments, refunds,
transfers) debit first and credit second; a failed credit puts the debit back.
"""
import logging
import random
import time
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING, ReturnDocument

import config
import notifications
from database import create_document, get_db, now, serialize_doc
from errors import InsufficientFunds, NotFound, PermissionDenied, ValidationError
from schemas import Transaction, Wallet

logger = logging.getLogger(__name__)

TRANSACTION_TYPES = {
    "DEPOSIT": "deposit",
    "WITHDRAWAL": "withdrawal",
    "PURCHASE": "purchase",
    "SALE": "sale",
    "REFUND": "refund",
    "TRANSFER": "transfer",
}

TRANSACTION_STATUS = {
    "PENDING": "pending",
    "COMPLETED": "completed",
    "FAILED": "failed",
    "CANCELLED": "cancelled",
}


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise PermissionDenied("User not authenticated", status_code=401)
    return user_id


def _parse_amount(amount: Any, message: str = "Amount must be greater than zero") -> float:
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise ValidationError(message)
    if value <= 0:
        raise ValidationError(message)
    return value


def _record(user_id: str, tx_type: str, amount: float, **fields) -> Dict[str, Any]:
    tx = Transaction(
        user_id=user_id,
        type=tx_type,
        amount=amount,
        currency=config.DEFAULT_CURRENCY,
        timestamp=now(),
        **fields,
    )
    tid = create_document("transaction", tx)
    return {"id": tid, **tx.model_dump()}


def initialize_wallet(user_id: str, role: str = "buyer") -> Dict[str, Any]:
    user_id = _require_user(user_id)
    stamp = now()
    try:
        fresh = Wallet(user_id=user_id, role=role, currency=config.DEFAULT_CURRENCY).model_dump()
        fresh.pop("user_id")
        res = get_db()["wallet"].update_one(
            {"user_id": user_id},
            {"$setOnInsert": {**fresh, "created_at": stamp, "updated_at": stamp}},
            upsert=True,
        )
    except Exception:
        logger.exception("Error initializing wallet")
        raise
    if res.upserted_id is not None:
        logger.info("Wallet initialized for user %s", user_id)
    else:
        logger.info("Wallet already exists for user %s", user_id)
    return serialize_doc(get_db()["wallet"].find_one({"user_id": user_id}))


def get_wallet(user_id: str) -> Dict[str, Any]:
    user_id = _require_user(user_id)
    doc = get_db()["wallet"].find_one({"user_id": user_id})
    if not doc:
        logger.info("Wallet not found, initializing new wallet for user %s", user_id)
        return initialize_wallet(user_id, "buyer")
    return serialize_doc(doc)


def get_wallet_balance(user_id: str) -> float:
    return float(get_wallet(user_id).get("balance") or 0)


def _credit(user_id: str, amount: float, label: str) -> Dict[str, Any]:
    doc = get_db()["wallet"].find_one_and_update(
        {"user_id": user_id},
        {"$inc": {"balance": amount}, "$set": {"updated_at": now()}},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        raise NotFound(f"{label} wallet not found")
    return doc


def _debit(user_id: str, amount: float, label: str) -> Dict[str, Any]:
    wallets = get_db()["wallet"]
    doc = wallets.find_one_and_update(
        {"user_id": user_id, "balance": {"$gte": amount}},
        {"$inc": {"balance": -amount}, "$set": {"updated_at": now()}},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        if wallets.count_documents({"user_id": user_id}) == 0:
            raise NotFound(f"{label} wallet not found")
        raise InsufficientFunds()
    return doc


def _move(payer_id: str, payee_id: str, amount: float, payer_label: str, payee_label: str) -> None:
    if get_db()["wallet"].count_documents({"user_id": payee_id}) == 0:
        raise NotFound(f"{payee_label} wallet not found")
    _debit(payer_id, amount, payer_label)
    try:
        _credit(payee_id, amount, payee_label)
    except Exception:
        _credit(payer_id, amount, payer_label)
        raise


def add_funds(user_id: str, amount: Any, method: str = "chapa", description: str = "Deposit via Chapa") -> Dict[str, Any]:
    if not user_id:
        raise ValidationError("User ID is required")
    parsed = _parse_amount(amount, "Valid amount is required")
    try:
        get_wallet(user_id)
        doc = _credit(user_id, parsed, "User")
        new_balance = float(doc["balance"])
        _record(
            user_id,
            TRANSACTION_TYPES["DEPOSIT"],
            parsed,
            method=method or "chapa",
            description=description or f"Deposit of {parsed} {config.DEFAULT_CURRENCY} via {method or 'Chapa'}",
            reference=f"dep-{int(time.time() * 1000)}-{random.randint(0, 999)}",
            metadata={
                "previous_balance": new_balance - parsed,
                "new_balance": new_balance,
                "payment_method": method or "chapa",
            },
        )
        notifications.create_wallet_notification(user_id, "deposit", parsed, config.DEFAULT_CURRENCY)
    except Exception:
        logger.exception("Error adding funds to wallet")
        raise
    logger.info("Added %s %s to wallet of %s. New balance: %s", parsed, config.DEFAULT_CURRENCY, user_id, new_balance)
    wallet = serialize_doc(doc)
    wallet["last_transaction"] = {"type": TRANSACTION_TYPES["DEPOSIT"], "amount": parsed, "timestamp": now()}
    return wallet


def withdraw_funds(user_id: str, amount: Any, method: str = "bank_transfer") -> Dict[str, Any]:
    user_id = _require_user(user_id)
    parsed = _parse_amount(amount)
    try:
        _debit(user_id, parsed, "User")
        tx = _record(
            user_id,
            TRANSACTION_TYPES["WITHDRAWAL"],
            -parsed,
            method=method or "bank_transfer",
            status=TRANSACTION_STATUS["PENDING"],
            description=f"Withdrawal of {parsed} {config.DEFAULT_CURRENCY} (pending approval)",
        )
        notifications.create_wallet_notification(user_id, "withdrawal", parsed, config.DEFAULT_CURRENCY)
    except Exception:
        logger.exception("Error withdrawing funds")
        raise
    return tx


def process_payment(buyer_id: str, seller_id: str, amount: Any, order_id: str) -> Dict[str, Any]:
    parsed = _parse_amount(amount)
    try:
        _move(buyer_id, seller_id, parsed, "Buyer", "Seller")
        buyer_tx = _record(
            buyer_id, TRANSACTION_TYPES["PURCHASE"], -parsed,
            order_id=order_id, related_user_id=seller_id,
            description=f"Payment for order #{order_id}",
        )
        seller_tx = _record(
            seller_id, TRANSACTION_TYPES["SALE"], parsed,
            order_id=order_id, related_user_id=buyer_id,
            description=f"Payment received for order #{order_id}",
        )
        notifications.create_wallet_notification(buyer_id, "payment", parsed, config.DEFAULT_CURRENCY)
    except Exception:
        logger.exception("Error processing payment")
        raise
    return {"buyer_transaction": buyer_tx, "seller_transaction": seller_tx}


def process_refund(seller_id: str, buyer_id: str, amount: Any, order_id: str) -> Dict[str, Any]:
    parsed = _parse_amount(amount)
    try:
        _move(seller_id, buyer_id, parsed, "Seller", "Buyer")
        seller_tx = _record(
            seller_id, TRANSACTION_TYPES["REFUND"], -parsed,
            order_id=order_id, related_user_id=buyer_id,
            description=f"Refund for order #{order_id}",
        )
        buyer_tx = _record(
            buyer_id, TRANSACTION_TYPES["REFUND"], parsed,
            order_id=order_id, related_user_id=seller_id,
            description=f"Refund received for order #{order_id}",
        )
        notifications.create_wallet_notification(buyer_id, "refund", parsed, config.DEFAULT_CURRENCY)
    except Exception:
        logger.exception("Error processing refund")
        raise
    return {"seller_transaction": seller_tx, "buyer_transaction": buyer_tx}


def transfer_funds(sender_id: str, recipient_id: str, amount: Any, description: Optional[str] = None) -> Dict[str, Any]:
    parsed = _parse_amount(amount)
    if sender_id == recipient_id:
        raise ValidationError("Cannot transfer to yourself")
    try:
        _move(sender_id, recipient_id, parsed, "Sender", "Recipient")
        sender_tx = _record(
            sender_id, TRANSACTION_TYPES["TRANSFER"], -parsed,
            related_user_id=recipient_id,
            description=description or f"Transfer to user {recipient_id}",
        )
        recipient_tx = _record(
            recipient_id, TRANSACTION_TYPES["TRANSFER"], parsed,
            related_user_id=sender_id,
            description=description or f"Transfer from user {sender_id}",
        )
    except Exception:
        logger.exception("Error transferring funds")
        raise
    return {"sender_transaction": sender_tx, "recipient_transaction": recipient_tx}


def get_transaction_history(user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
    user_id = _require_user(user_id)
    cursor = (
        get_db()["transaction"].find({"user_id": user_id})
        .sort([("created_at", DESCENDING), ("_id", DESCENDING)])
        .limit(limit)
    )
    return [serialize_doc(d) for d in cursor]


def get_transactions(user_id: str) -> List[Dict[str, Any]]:
    return [serialize_doc(d) for d in get_db()["transaction"].find({"user_id": user_id})]
