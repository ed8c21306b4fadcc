"""
In-app notifications and per-user notification preferences.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from pymongo import DESCENDING

from database import create_document, get_db, serialize_doc, to_object_id
from errors import NotFound
from schemas import Notification
from subscriptions import Subscription

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = {
    "order_status_updates": True,
    "delivery_updates": True,
    "wallet_transactions": True,
    "new_products_from_followed_sellers": True,
    "promotions_and_discounts": True,
    "system_announcements": True,
    "email_notifications": True,
    "push_notifications": False,
}


def get_notifications(user_id: str) -> List[Dict[str, Any]]:
    cursor = get_db()["notification"].find({"user_id": user_id}).sort([("created_at", DESCENDING), ("_id", DESCENDING)])
    return [serialize_doc(d) for d in cursor]


def subscribe_notifications(user_id: str, callback: Callable[[List[Dict[str, Any]]], None], start: bool = True) -> Subscription:
    sub = Subscription(lambda: get_notifications(user_id), callback)
    sub.poll()
    return sub.start() if start else sub


def create_notification(user_id: str, title: str, message: str, type: str = "announcement", **data) -> str:
    try:
        return create_document("notification", Notification(
            user_id=user_id, title=title, message=message, type=type, data=data,
        ))
    except Exception:
        logger.exception("Error creating notification")
        raise


def mark_notification_as_read(user_id: str, notification_id: str) -> bool:
    res = get_db()["notification"].update_one(
        {"_id": to_object_id(notification_id, "Notification"), "user_id": user_id},
        {"$set": {"read": True}},
    )
    if res.matched_count == 0:
        raise NotFound("Notification not found")
    return True


def mark_all_notifications_as_read(user_id: str) -> int:
    res = get_db()["notification"].update_many({"user_id": user_id, "read": False}, {"$set": {"read": True}})
    return res.modified_count


def delete_notification(user_id: str, notification_id: str) -> bool:
    res = get_db()["notification"].delete_one(
        {"_id": to_object_id(notification_id, "Notification"), "user_id": user_id}
    )
    if res.deleted_count == 0:
        raise NotFound("Notification not found")
    return True


def get_notification_settings(user_id: str) -> Dict[str, Any]:
    doc = get_db()["notification_settings"].find_one({"user_id": user_id}, {"_id": 0, "user_id": 0})
    if doc:
        return {**DEFAULT_SETTINGS, **doc}
    update_notification_settings(user_id, DEFAULT_SETTINGS)
    return dict(DEFAULT_SETTINGS)


def update_notification_settings(user_id: str, settings: Dict[str, Any]) -> bool:
    unknown = set(settings) - set(DEFAULT_SETTINGS)
    if unknown:
        logger.warning("Ignoring unknown notification settings: %s", ", ".join(sorted(unknown)))
    values = {k: bool(v) for k, v in settings.items() if k in DEFAULT_SETTINGS}
    get_db()["notification_settings"].update_one({"user_id": user_id}, {"$set": values}, upsert=True)
    return True


def get_status_notification_message(status: str, seller_name: Optional[str] = None) -> str:
    seller = seller_name or "the seller"
    if status == "confirmed":
        return f"Your order has been confirmed by {seller} and is being processed."
    if status == "shipped":
        return f"Your order has been shipped by {seller}."
    if status == "delivered":
        return f"Your order has been marked as delivered by {seller}. Please confirm receipt."
    if status == "completed":
        return "Your order has been completed. Thank you for shopping with us!"
    if status == "cancelled":
        return "Your order has been cancelled."
    return f"Your order status has been updated to {status} by {seller}."


def create_order_status_notification(user_id: str, order_id: str, status: str, seller_name: Optional[str] = None) -> str:
    message = get_status_notification_message(status, seller_name).replace(
        "Your order", f"Your order #{order_id}", 1
    )
    return create_notification(
        user_id, "Order Status Update", message, "order_status", order_id=order_id, status=status,
    )


def create_wallet_notification(user_id: str, transaction_type: str, amount: float, currency: str = "ETB") -> str:
    messages = {
        "deposit": f"{amount} {currency} has been added to your wallet.",
        "withdrawal": f"{amount} {currency} has been withdrawn from your wallet.",
        "payment": f"Payment of {amount} {currency} has been processed from your wallet.",
        "refund": f"Refund of {amount} {currency} has been credited to your wallet.",
    }
    message = messages.get(transaction_type, f"A wallet transaction of {amount} {currency} has been processed.")
    return create_notification(
        user_id, "Wallet Update", message, "wallet",
        transaction_type=transaction_type, amount=amount, currency=currency,
    )
