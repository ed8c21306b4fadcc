"""
Saved shipping addresses (the customer's address book).

At most one address per user should be the default. Keeping it that way takes
several writes that are not transactional: a failure between clearing the old
default and setting the new one can leave the user with no default.
"""
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from database import create_document, get_db, now, serialize_doc, timestamp_of, to_object_id
from errors import NotFound, ValidationError
from schemas import Address

logger = logging.getLogger(__name__)

ADDRESS_FIELDS = tuple(f for f in Address.model_fields if f not in ("user_id", "is_default"))


def _require(value, message: str):
    if not value:
        raise ValidationError(message)


def _address_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if k in ADDRESS_FIELDS}


def _validated(user_id: str, fields: Dict[str, Any], is_default: bool = False) -> Address:
    try:
        return Address(**{**fields, "user_id": user_id, "is_default": is_default})
    except PydanticValidationError as exc:
        bad = ", ".join(str(err["loc"][0]) for err in exc.errors() if err.get("loc"))
        raise ValidationError(f"Invalid address data: {bad}")


def get_saved_addresses(user_id: str) -> List[Dict[str, Any]]:
    """Addresses with the default first, the rest newest first."""
    _require(user_id, "User ID is required")
    try:
        docs = [serialize_doc(d) for d in get_db()["address"].find({"user_id": user_id})]
    except Exception:
        logger.exception("Error getting saved addresses")
        raise
    docs.sort(key=lambda a: timestamp_of(a.get("created_at")), reverse=True)
    docs.sort(key=lambda a: not a.get("is_default"))
    return docs


def save_address(user_id: str, data: Dict[str, Any], set_as_default: bool = False) -> Dict[str, Any]:
    _require(user_id, "User ID is required")
    _require(data, "Address data is required")
    address = _validated(user_id, _address_fields(data))
    try:
        if set_as_default:
            update_default_address(user_id, None)
        address.is_default = set_as_default or get_db()["address"].count_documents({"user_id": user_id}) == 0
        address_id = create_document("address", address)
    except Exception:
        logger.exception("Error saving address")
        raise
    return {"id": address_id, **address.model_dump()}


def update_address(user_id: str, address_id: str, data: Dict[str, Any], set_as_default: bool = False) -> Dict[str, Any]:
    _require(user_id, "User ID is required")
    _require(address_id, "Address ID is required")
    _require(data, "Address data is required")
    addresses = get_db()["address"]
    set_as_default = set_as_default or data.get("is_default") is True
    oid = to_object_id(address_id, "Address")
    current = addresses.find_one({"_id": oid, "user_id": user_id})
    if not current:
        raise NotFound("Address not found")
    changed = _address_fields(data)
    merged = _validated(user_id, {**_address_fields(current), **changed})
    fields = {k: getattr(merged, k) for k in changed}
    if set_as_default:
        fields["is_default"] = True
    elif "is_default" in data:
        fields["is_default"] = bool(data["is_default"])
    try:
        if set_as_default:
            update_default_address(user_id, address_id)
        res = addresses.update_one({"_id": oid, "user_id": user_id}, {"$set": {**fields, "updated_at": now()}})
        if res.matched_count == 0:
            raise NotFound("Address not found")
    except Exception:
        logger.exception("Error updating address")
        raise
    return serialize_doc(addresses.find_one({"_id": oid}))


def delete_address(user_id: str, address_id: str) -> None:
    _require(user_id, "User ID is required")
    _require(address_id, "Address ID is required")
    addresses = get_db()["address"]
    oid = to_object_id(address_id, "Address")
    try:
        doc = addresses.find_one({"_id": oid, "user_id": user_id})
        if doc and doc.get("is_default"):
            others = [a for a in get_saved_addresses(user_id) if a["id"] != address_id]
            if others:
                update_default_address(user_id, others[0]["id"])
        addresses.delete_one({"_id": oid, "user_id": user_id})
    except Exception:
        logger.exception("Error deleting address")
        raise


def update_default_address(user_id: str, new_default_id: Optional[str]) -> None:
    """Make `new_default_id` the only default address; None clears every default."""
    _require(user_id, "User ID is required")
    addresses = get_db()["address"]
    target = to_object_id(new_default_id, "Address") if new_default_id else None
    try:
        if target is not None and not addresses.find_one({"_id": target, "user_id": user_id}, {"_id": 1}):
            raise NotFound("Address not found")
        clear = {"user_id": user_id, "is_default": True}
        if target is not None:
            clear["_id"] = {"$ne": target}
        stamp = now()
        addresses.update_many(clear, {"$set": {"is_default": False, "updated_at": stamp}})
        if target is not None:
            addresses.update_one({"_id": target}, {"$set": {"is_default": True, "updated_at": stamp}})
    except Exception:
        logger.exception("Error updating default address")
        raise


def get_default_address(user_id: str) -> Optional[Dict[str, Any]]:
    return next((a for a in get_saved_addresses(user_id) if a.get("is_default")), None)
