"""
Support chat. Each user has a single conversation thread with the support team;
messages reference the thread by `chat_id`.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from pymongo import ASCENDING

from database import create_document, get_db, now, serialize_doc, to_object_id
from errors import NotFound, ValidationError
from schemas import ChatMessage, ChatThread
from subscriptions import Subscription

logger = logging.getLogger(__name__)


def _thread(user_id: str) -> Optional[Dict[str, Any]]:
    return get_db()["chat_thread"].find_one({"user_id": user_id})


def send_chat_message(user_id: str, message: str, is_from_user: bool = True) -> str:
    if not message or not message.strip():
        raise ValidationError("Message cannot be empty")
    db = get_db()
    try:
        try:
            uid = to_object_id(user_id, "User")
        except NotFound:
            raise NotFound("User not found")
        if not db["user"].find_one({"_id": uid}, {"_id": 1}):
            raise NotFound("User not found")

        stamp = now()
        summary = {
            "status": "active",
            "unread_count": 0 if is_from_user else 1,
            "last_message": message,
            "last_message_time": stamp,
        }
        thread = _thread(user_id)
        if thread is None:
            chat_id = create_document("chat_thread", ChatThread(user_id=user_id, **summary))
        else:
            chat_id = str(thread["_id"])
            db["chat_thread"].update_one({"_id": thread["_id"]}, {"$set": {**summary, "updated_at": stamp}})

        create_document("chat_message", ChatMessage(
            chat_id=chat_id,
            user_id=user_id,
            content=message,
            timestamp=stamp,
            is_from_user=is_from_user,
            # support reads user messages as they arrive
            read=is_from_user,
        ))
    except Exception:
        logger.exception("Error sending chat message")
        raise
    return chat_id


def get_chat_messages(user_id: str) -> List[Dict[str, Any]]:
    thread = _thread(user_id)
    if thread is None:
        return []
    cursor = get_db()["chat_message"].find({"chat_id": str(thread["_id"])}).sort(
        [("timestamp", ASCENDING), ("_id", ASCENDING)]
    )
    return [serialize_doc(d) for d in cursor]


def mark_chat_as_read(user_id: str) -> bool:
    db = get_db()
    thread = _thread(user_id)
    if thread is None:
        return False
    try:
        db["chat_thread"].update_one({"_id": thread["_id"]}, {"$set": {"unread_count": 0}})
        db["chat_message"].update_many({"chat_id": str(thread["_id"]), "read": False}, {"$set": {"read": True}})
    except Exception:
        logger.exception("Error marking chat as read")
        raise
    return True


def get_unread_chat_count(user_id: str) -> int:
    thread = _thread(user_id)
    return int(thread.get("unread_count") or 0) if thread else 0


def close_chat(user_id: str) -> bool:
    thread = _thread(user_id)
    if thread is None:
        return False
    get_db()["chat_thread"].update_one(
        {"_id": thread["_id"]}, {"$set": {"status": "closed", "updated_at": now()}}
    )
    return True


def get_chat_thread(user_id: str) -> Optional[Dict[str, Any]]:
    return serialize_doc(_thread(user_id))


def subscribe_chat_messages(user_id: str, callback: Callable[[List[Dict[str, Any]]], None], start: bool = True) -> Subscription:
    sub = Subscription(lambda: get_chat_messages(user_id), callback)
    sub.poll()
    return sub.start() if start else sub


def subscribe_unread_count(user_id: str, callback: Callable[[int], None], start: bool = True) -> Subscription:
    def fetch():
        try:
            return get_unread_chat_count(user_id)
        except Exception:
            logger.exception("Error getting unread chat count")
            return 0

    sub = Subscription(fetch, callback)
    sub.poll()
    return sub.start() if start else sub
