"""
Customer accounts: registration, sign-in and profile maintenance.
"""
import hashlib
import logging
import re
from typing import Any, Dict, Optional

from pymongo import DESCENDING

import storage
import wallet
from database import create_document, get_db, now, serialize_doc, to_object_id
from errors import Conflict, NotFound, PermissionDenied, ValidationError
from schemas import User

logger = logging.getLogger(__name__)

ROLES = ("buyer", "seller")

_ETHIOPIAN_PHONE = re.compile(r"^(\+251|251)?9\d{8}$")


def _hash(pw: str) -> str:
    return hashlib.sha256(pw.encode()).hexdigest()


def public_user(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return None
    user = serialize_doc(doc)
    user.pop("password_hash", None)
    return user


def validate_ethiopian_phone_number(phone_number: str) -> bool:
    clean = re.sub(r"[\s\-()]", "", phone_number or "")
    if clean.startswith("0"):
        return bool(_ETHIOPIAN_PHONE.match("251" + clean[1:]))
    if len(clean) == 9 and clean.startswith("9"):
        return bool(_ETHIOPIAN_PHONE.match("251" + clean))
    return bool(_ETHIOPIAN_PHONE.match(clean))


def format_ethiopian_phone_number(phone_number: str) -> str:
    digits = re.sub(r"\D", "", phone_number or "")
    if digits.startswith("0"):
        return "+251" + digits[1:]
    if len(digits) == 9 and digits.startswith("9"):
        return "+251" + digits
    if digits.startswith("251") and len(digits) == 12:
        return "+" + digits
    return phone_number


def register_user(email: str, password: str, display_name: str, phone_number: str = "", role: str = "buyer") -> Dict[str, Any]:
    if role not in ROLES:
        raise ValidationError("Role must be buyer or seller")
    if not password:
        raise ValidationError("Password is required")
    users = get_db()["user"]
    try:
        if users.find_one({"email": email}):
            raise Conflict("Email already registered")
        user = User(
            email=email,
            password_hash=_hash(password),
            display_name=display_name or "",
            phone_number=format_ethiopian_phone_number(phone_number) if phone_number else "",
            role=role,
        )
        uid = create_document("user", user)
        wallet.initialize_wallet(uid, role)
    except Exception:
        logger.exception("Registration error")
        raise
    return get_user(uid)


def login_user(email: str, password: str) -> Dict[str, Any]:
    u = get_db()["user"].find_one({"email": email})
    if not u or u.get("password_hash") != _hash(password or ""):
        raise PermissionDenied("Invalid credentials", status_code=401)
    return public_user(u)


def get_user(user_id: str) -> Optional[Dict[str, Any]]:
    if not user_id:
        raise ValidationError("User ID is required")
    try:
        oid = to_object_id(user_id, "User")
    except NotFound:
        return None
    return public_user(get_db()["user"].find_one({"_id": oid}))


def update_user_profile(user_id: str, display_name: Optional[str], phone_number: Optional[str], role: Optional[str] = None) -> Dict[str, Any]:
    if not user_id:
        raise PermissionDenied("User not authenticated", status_code=401)
    if phone_number and not validate_ethiopian_phone_number(phone_number):
        raise ValidationError(
            "Please enter a valid Ethiopian phone number (e.g., +251 9XX XXX XXX or 09XXXXXXXX)"
        )
    role = role or "buyer"
    if role not in ROLES:
        raise ValidationError("Role must be buyer or seller")
    oid = to_object_id(user_id, "User")
    try:
        res = get_db()["user"].update_one({"_id": oid}, {"$set": {
            "display_name": display_name or "",
            "phone_number": format_ethiopian_phone_number(phone_number) if phone_number else "",
            "role": role,
            "updated_at": now(),
        }})
    except Exception:
        logger.exception("Error updating user profile")
        raise
    if res.matched_count == 0:
        raise NotFound("User not found")
    return get_user(user_id)


def update_profile_photo(user_id: str, data: bytes, content_type: str = "image/jpeg") -> str:
    oid = to_object_id(user_id, "User")
    if not get_db()["user"].find_one({"_id": oid}, {"_id": 1}):
        raise NotFound("User not found")
    url = storage.upload_file(f"profile_photos/{user_id}", data, content_type)
    get_db()["user"].update_one({"_id": oid}, {"$set": {"photo_url": url, "updated_at": now()}})
    return url


def get_user_statistics(user_id: str) -> Dict[str, Any]:
    db = get_db()
    orders = list(db["order"].find({"user_id": user_id}).sort([("created_at", DESCENDING), ("_id", DESCENDING)]))
    spent = sum(float(o.get("total_amount") or 0) for o in orders if o.get("status") != "cancelled")
    return {
        "order_count": len(orders),
        "total_spent": round(spent, 2),
        "review_count": db["review"].count_documents({"user_id": user_id}),
        "last_order_at": orders[0].get("created_at") if orders else None,
    }
