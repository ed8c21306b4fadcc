"""
Product reviews, helpfulness votes and per-product rating aggregation.

A user may review each product of a delivered order once. Uniqueness is checked
with a query before inserting; it is not a database constraint.
"""
import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from pymongo import ASCENDING, DESCENDING

import products
import storage
from database import create_document, get_db, now, serialize_doc, to_object_id
from errors import Conflict, NotFound, PermissionDenied, ValidationError
from schemas import Review, ReviewVote

logger = logging.getLogger(__name__)

SORT_FIELDS = ("created_at", "rating", "helpful")

ImageUpload = Union[bytes, Tuple[bytes, str]]


def _validate_rating(rating: Any) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError("Rating must be a whole number between 1 and 5")
    return rating


def _upload_images(user_id: str, product_id: str, images: Iterable[ImageUpload]) -> List[str]:
    urls = []
    for image in images or ():
        data, content_type = image if isinstance(image, tuple) else (image, "image/jpeg")
        path = f"reviews/{user_id}/{product_id}/{uuid.uuid4()}"
        urls.append(storage.upload_file(path, data, content_type))
    return urls


def _delete_images(urls: Iterable[str]) -> List[str]:
    """Delete stored images, returning the URLs that were removed."""
    removed = []
    for url in urls:
        try:
            storage.delete_file(url)
            removed.append(url)
        except Exception:
            logger.exception("Error deleting image %s", url)
    return removed


def _get_review(review_id: str) -> Dict[str, Any]:
    doc = get_db()["review"].find_one({"_id": to_object_id(review_id, "Review")})
    if not doc:
        raise NotFound("Review not found")
    return doc


def _has_review(user_id: str, product_id: str, order_id: str) -> bool:
    return get_db()["review"].count_documents(
        {"user_id": user_id, "product_id": product_id, "order_id": order_id}
    ) > 0


def add_review(user_id: str, product_id: str, order_id: str, rating: int, comment: str = "",
               images: Iterable[ImageUpload] = ()) -> str:
    try:
        rating = _validate_rating(rating)
        order = get_db()["order"].find_one({"_id": to_object_id(order_id, "Order")})
        if not order:
            raise NotFound("Order not found")
        if order.get("user_id") != user_id:
            raise PermissionDenied("You can only review products from your own orders")
        if order.get("status") != "delivered":
            raise ValidationError("You can only review products that have been delivered")
        if _has_review(user_id, product_id, order_id):
            raise Conflict("You have already reviewed this product from this order")
        products.get_product_by_id(product_id)

        review = Review(
            user_id=user_id,
            product_id=product_id,
            order_id=order_id,
            rating=rating,
            comment=comment or "",
            images=_upload_images(user_id, product_id, images),
        )
        review_id = create_document("review", review)
        update_product_rating(product_id)
    except Exception:
        logger.exception("Error adding review")
        raise
    return review_id


def get_product_reviews(product_id: str, page_size: int = 10, sort_by: str = "created_at",
                        sort_order: str = "desc", rating_filter: int = 0) -> List[Dict[str, Any]]:
    if sort_by not in SORT_FIELDS:
        raise ValidationError(f"Cannot sort reviews by {sort_by}")
    direction = ASCENDING if sort_order == "asc" else DESCENDING
    filt: Dict[str, Any] = {"product_id": product_id, "status": "active"}
    if rating_filter and rating_filter > 0:
        filt["rating"] = rating_filter
    db = get_db()
    cursor = db["review"].find(filt).sort([(sort_by, direction), ("_id", direction)]).limit(page_size)

    reviews = []
    for doc in cursor:
        review = serialize_doc(doc)
        author = None
        try:
            author = db["user"].find_one({"_id": to_object_id(doc["user_id"], "User")})
        except NotFound:
            pass
        author = author or {}
        review["user"] = {
            "id": doc["user_id"],
            "name": author.get("display_name") or "Anonymous",
            "photo_url": author.get("photo_url"),
        }
        reviews.append(review)
    return reviews


def get_user_reviews(user_id: str) -> List[Dict[str, Any]]:
    cursor = get_db()["review"].find({"user_id": user_id}).sort([("created_at", DESCENDING), ("_id", DESCENDING)])
    reviews = []
    for doc in cursor:
        review = serialize_doc(doc)
        summary = products.product_summary(doc["product_id"])
        review["product"] = summary or {"id": doc["product_id"], "name": "Product not found", "image_url": None}
        reviews.append(review)
    return reviews


def update_review(review_id: str, user_id: str, update: Dict[str, Any],
                  new_images: Iterable[ImageUpload] = (), images_to_delete: Iterable[str] = ()) -> Dict[str, Any]:
    try:
        current = _get_review(review_id)
        if current.get("user_id") != user_id:
            raise PermissionDenied("You can only update your own reviews")

        fields = {k: v for k, v in update.items() if k in ("rating", "comment")}
        if "rating" in fields:
            fields["rating"] = _validate_rating(fields["rating"])

        images = list(current.get("images") or [])
        to_delete = [url for url in images_to_delete or () if url in images]
        images = [url for url in images if url not in to_delete]
        images.extend(_upload_images(user_id, current["product_id"], new_images))

        get_db()["review"].update_one(
            {"_id": current["_id"]},
            {"$set": {**fields, "images": images, "updated_at": now()}},
        )
        # files go only once the review no longer points at them
        _delete_images(to_delete)
        if fields.get("rating") and fields["rating"] != current.get("rating"):
            update_product_rating(current["product_id"])
    except Exception:
        logger.exception("Error updating review")
        raise
    return serialize_doc(get_db()["review"].find_one({"_id": current["_id"]}))


def delete_review(review_id: str, user_id: str) -> None:
    try:
        current = _get_review(review_id)
        if current.get("user_id") != user_id:
            raise PermissionDenied("You can only delete your own reviews")
        get_db()["review"].delete_one({"_id": current["_id"]})
        _delete_images(current.get("images") or [])
        update_product_rating(current["product_id"])
    except Exception:
        logger.exception("Error deleting review")
        raise


def mark_review_helpfulness(review_id: str, user_id: str, is_helpful: bool) -> Dict[str, Any]:
    db = get_db()
    try:
        if db["review_vote"].count_documents({"review_id": review_id, "user_id": user_id}):
            raise Conflict("You have already voted on this review")
        review = _get_review(review_id)
        create_document("review_vote", ReviewVote(review_id=review_id, user_id=user_id, is_helpful=bool(is_helpful)))
        counter = "helpful" if is_helpful else "not_helpful"
        db["review"].update_one({"_id": review["_id"]}, {"$inc": {counter: 1}})
    except Exception:
        logger.exception("Error marking review helpfulness")
        raise
    return serialize_doc(db["review"].find_one({"_id": review["_id"]}))


def get_eligible_orders_for_review(user_id: str) -> List[Dict[str, Any]]:
    """Delivered orders that still have products the user has not reviewed."""
    eligible = []
    try:
        orders = get_db()["order"].find({"user_id": user_id, "status": "delivered"}).sort([("created_at", DESCENDING), ("_id", DESCENDING)])
        for order in orders:
            order_id = str(order["_id"])
            pending = []
            for item in order.get("items") or []:
                product_id = item.get("id")
                if not product_id or _has_review(user_id, product_id, order_id):
                    continue
                summary = products.product_summary(product_id)
                if summary is None:
                    continue
                pending.append({**summary, "quantity": item.get("quantity", 1)})
            if pending:
                eligible.append({
                    "id": order_id,
                    "order_number": order.get("order_number"),
                    "date": order.get("created_at"),
                    "products": pending,
                })
    except Exception:
        logger.exception("Error getting eligible orders for review")
        raise
    return eligible


def _active_ratings(product_id: str) -> List[Dict[str, Any]]:
    return list(get_db()["review"].find(
        {"product_id": product_id, "status": "active"}, {"rating": 1, "images": 1, "comment": 1}
    ))


def update_product_rating(product_id: str) -> Dict[str, Any]:
    reviews = _active_ratings(product_id)
    count = len(reviews)
    average = sum(r["rating"] for r in reviews) / count if count else 0
    try:
        oid = to_object_id(product_id, "Product")
        get_db()["product"].update_one({"_id": oid}, {"$set": {"rating": average, "review_count": count}})
    except Exception:
        logger.exception("Error updating product rating")
        raise
    return {"rating": average, "review_count": count}


def get_review_statistics(product_id: str) -> Dict[str, Any]:
    reviews = _active_ratings(product_id)
    counts = {star: 0 for star in (5, 4, 3, 2, 1)}
    with_images = with_comments = 0
    for r in reviews:
        counts[r["rating"]] = counts.get(r["rating"], 0) + 1
        if r.get("images"):
            with_images += 1
        if (r.get("comment") or "").strip():
            with_comments += 1
    total = len(reviews)
    return {
        "average_rating": sum(r["rating"] for r in reviews) / total if total else 0,
        "total_reviews": total,
        "rating_counts": counts,
        "with_images": with_images,
        "with_comments": with_comments,
    }


def get_review(review_id: str) -> Optional[Dict[str, Any]]:
    return serialize_doc(_get_review(review_id))
