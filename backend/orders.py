"""
Customer orders.
"""
import logging
import uuid
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING

import cart
import notifications
import wallet
from database import create_document, get_db, now, serialize_doc, to_object_id
from errors import NotFound, PermissionDenied, ValidationError
from schemas import Order, OrderItem

logger = logging.getLogger(__name__)

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")


def new_order_number() -> str:
    return f"ORD-{now():%Y%m%d}-{uuid.uuid4().hex[:6].upper()}"


def create_order(user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    if not user_id:
        raise PermissionDenied("User not authenticated", status_code=401)
    items = [i if isinstance(i, OrderItem) else OrderItem(**i) for i in data.get("items") or []]
    if not items:
        raise ValidationError("Order must contain at least one item")
    total = data.get("total_amount")
    if total is None:
        total = round(sum(i.price * i.quantity for i in items), 2)
    order = Order(
        user_id=user_id,
        order_number=data.get("order_number") or new_order_number(),
        items=items,
        total_amount=total,
        status=data.get("status") or "pending",
        payment_method=data.get("payment_method") or "cod",
        shipping_address=data.get("shipping_address"),
    )
    try:
        oid = create_document("order", order)
        if order.payment_method == "wallet" and items[0].seller_id:
            wallet.process_payment(user_id, items[0].seller_id, order.total_amount, oid)
        cart.clear_cart(user_id)
    except Exception:
        logger.exception("Error creating order")
        raise
    return get_order_by_id(oid)


def get_user_orders(user_id: str) -> List[Dict[str, Any]]:
    if not user_id:
        raise PermissionDenied("User not authenticated", status_code=401)
    cursor = get_db()["order"].find({"user_id": user_id}).sort([("created_at", DESCENDING), ("_id", DESCENDING)])
    return [serialize_doc(d) for d in cursor]


def get_order_by_id(order_id: str) -> Dict[str, Any]:
    if not order_id:
        raise ValidationError("Order ID is required")
    doc = get_db()["order"].find_one({"_id": to_object_id(order_id, "Order")})
    if not doc:
        raise NotFound("Order not found")
    return serialize_doc(doc)


def update_order_status(order_id: str, status: str, seller_name: Optional[str] = None) -> Dict[str, Any]:
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid order status: {status}")
    orders = get_db()["order"]
    oid = to_object_id(order_id, "Order")
    try:
        res = orders.update_one({"_id": oid}, {"$set": {"status": status, "updated_at": now()}})
        if res.matched_count == 0:
            raise NotFound("Order not found")
        order = serialize_doc(orders.find_one({"_id": oid}))
        notifications.create_order_status_notification(order["user_id"], order_id, status, seller_name)
    except Exception:
        logger.exception("Error updating order status")
        raise
    return order
