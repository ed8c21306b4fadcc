"""
Requests to pay wallet money out to a bank account or mobile-money wallet.
Requests are reviewed by staff; this module only records and tracks them.
"""
import logging
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING

from database import create_document, get_db, get_documents, now, to_object_id
from errors import NotFound, ValidationError
from schemas import WithdrawalRequest

logger = logging.getLogger(__name__)

WITHDRAWAL_STATUS = {
    "PENDING": "pending",
    "PROCESSING": "processing",
    "COMPLETED": "completed",
    "REJECTED": "rejected",
}

WITHDRAWAL_METHODS = {
    "CBE": "cbe",
    "TELEBIRR": "telebirr",
    "BANK_TRANSFER": "bank_transfer",
}


def create_withdrawal_request(user_id: str, amount: Any, method: str, bank_details: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    bank_details = bank_details or {}
    try:
        amount = float(amount)
    except (TypeError, ValueError):
        raise ValidationError("Invalid withdrawal amount")
    if amount <= 0:
        raise ValidationError("Invalid withdrawal amount")
    if method not in WITHDRAWAL_METHODS.values():
        raise ValidationError("Invalid withdrawal method")
    if method == WITHDRAWAL_METHODS["CBE"] and not bank_details.get("account_number"):
        raise ValidationError("CBE account number is required")
    if method == WITHDRAWAL_METHODS["TELEBIRR"] and not bank_details.get("phone_number"):
        raise ValidationError("Telebirr phone number is required")
    if not bank_details.get("full_name"):
        raise ValidationError("Account holder full name is required")

    request = WithdrawalRequest(
        user_id=user_id,
        amount=amount,
        method=method,
        bank_details=bank_details,
        notes="Withdrawal request created by user",
    )
    try:
        wid = create_document("withdrawal_request", request)
    except Exception:
        logger.exception("Error creating withdrawal request")
        raise
    return {"id": wid, **request.model_dump()}


def get_withdrawal_requests(user_id: str) -> List[Dict[str, Any]]:
    return get_documents("withdrawal_request", {"user_id": user_id}, sort=[("created_at", DESCENDING), ("_id", DESCENDING)])


def update_withdrawal_status(withdrawal_id: str, status: str, notes: Optional[str] = None) -> None:
    if status not in WITHDRAWAL_STATUS.values():
        raise ValidationError("Invalid withdrawal status")
    res = get_db()["withdrawal_request"].update_one(
        {"_id": to_object_id(withdrawal_id, "Withdrawal request")},
        {"$set": {"status": status, "notes": notes or f"Status updated to {status}", "updated_at": now()}},
    )
    if res.matched_count == 0:
        raise NotFound("Withdrawal request not found")
