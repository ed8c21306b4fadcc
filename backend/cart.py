"""
Per-user shopping cart. The stored total is recomputed on every write.
"""
import logging
from typing import Any, Dict, Iterable, List, Union

from pydantic import ValidationError as PydanticValidationError

import products
from database import get_db, now, serialize_doc
from errors import PermissionDenied, ValidationError
from schemas import Cart, CartItem

logger = logging.getLogger(__name__)


def _require_user(user_id: str) -> str:
    if not user_id:
        raise PermissionDenied("User not authenticated", status_code=401)
    return user_id


def _items(items: Iterable[Union[CartItem, Dict[str, Any]]]) -> List[CartItem]:
    try:
        return [i if isinstance(i, CartItem) else CartItem(**i) for i in items or []]
    except PydanticValidationError:
        raise ValidationError("Invalid cart item")


def cart_total(items: Iterable[CartItem]) -> float:
    return round(sum(i.price * i.quantity for i in items), 2)


def get_cart(user_id: str) -> Dict[str, Any]:
    user_id = _require_user(user_id)
    carts = get_db()["cart"]
    doc = carts.find_one({"user_id": user_id})
    if not doc:
        empty = Cart(user_id=user_id).model_dump(exclude={"user_id"})
        stamp = now()
        carts.update_one(
            {"user_id": user_id},
            {"$setOnInsert": {**empty, "created_at": stamp, "updated_at": stamp}},
            upsert=True,
        )
        doc = carts.find_one({"user_id": user_id})
    return serialize_doc(doc)


def update_cart(user_id: str, items: Iterable[Union[CartItem, Dict[str, Any]]]) -> Dict[str, Any]:
    user_id = _require_user(user_id)
    parsed = _items(items)
    cart = Cart(user_id=user_id, items=parsed, total=cart_total(parsed))
    try:
        get_db()["cart"].update_one(
            {"user_id": user_id},
            {"$set": {**cart.model_dump(), "updated_at": now()}},
            upsert=True,
        )
    except Exception:
        logger.exception("Error updating cart")
        raise
    return {"items": [i.model_dump() for i in parsed], "total": cart.total}


def _current_items(user_id: str) -> List[CartItem]:
    return _items(get_cart(user_id).get("items") or [])


def add_to_cart(user_id: str, product_id: str, quantity: int = 1) -> Dict[str, Any]:
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    items = _current_items(user_id)
    for item in items:
        if item.id == product_id:
            item.quantity += quantity
            break
    else:
        product = products.get_product_by_id(product_id)
        items.append(CartItem(
            id=product_id,
            name=product.get("name"),
            price=product.get("price") or 0,
            quantity=quantity,
            image_url=product.get("image_url"),
            seller_id=product.get("seller_id"),
        ))
    return update_cart(user_id, items)


def update_cart_quantity(user_id: str, product_id: str, quantity: int) -> Dict[str, Any]:
    if quantity <= 0:
        return remove_from_cart(user_id, product_id)
    items = _current_items(user_id)
    for item in items:
        if item.id == product_id:
            item.quantity = quantity
    return update_cart(user_id, items)


def remove_from_cart(user_id: str, product_id: str) -> Dict[str, Any]:
    return update_cart(user_id, [i for i in _current_items(user_id) if i.id != product_id])


def clear_cart(user_id: str) -> Dict[str, Any]:
    return update_cart(user_id, [])
