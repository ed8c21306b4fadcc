"""
Product catalogue reads for the storefront.
"""
import logging
import re
from typing import Any, Dict, List, Optional, Union

from pymongo import DESCENDING

from database import create_document, get_db, serialize_doc, to_object_id
from errors import NotFound
from schemas import Product

logger = logging.getLogger(__name__)

SORT_FIELDS = ("created_at", "price", "rating", "name")


def get_products(category: Optional[str] = None, sort_by: str = "created_at", limit: int = 50) -> List[Dict[str, Any]]:
    if sort_by not in SORT_FIELDS:
        sort_by = "created_at"
    filt = {"category": category} if category else {}
    docs = get_db()["product"].find(filt).sort([(sort_by, DESCENDING), ("_id", DESCENDING)]).limit(limit)
    return [serialize_doc(d) for d in docs]


def get_product_by_id(product_id: str) -> Dict[str, Any]:
    doc = get_db()["product"].find_one({"_id": to_object_id(product_id, "Product")})
    if not doc:
        raise NotFound("Product not found")
    return serialize_doc(doc)


def search_products(q: str, limit: int = 24) -> List[Dict[str, Any]]:
    if not q:
        return get_products(limit=limit)
    pattern = re.escape(q.strip())
    filt = {"$or": [
        {"name": {"$regex": pattern, "$options": "i"}},
        {"description": {"$regex": pattern, "$options": "i"}},
    ]}
    docs = get_db()["product"].find(filt).limit(limit)
    return [serialize_doc(d) for d in docs]


def add_product(seller_id: Optional[str], data: Union[Product, Dict[str, Any]]) -> str:
    product = data if isinstance(data, Product) else Product(**data)
    product.seller_id = seller_id or product.seller_id
    if not product.image_url and product.images:
        product.image_url = product.images[0]
    pid = create_document("product", product)
    logger.info("Product %s added by seller %s", pid, product.seller_id)
    return pid


def product_summary(product_id: str) -> Optional[Dict[str, Any]]:
    """Name and image of a product, or None when it no longer exists."""
    try:
        oid = to_object_id(product_id, "Product")
    except NotFound:
        return None
    doc = get_db()["product"].find_one({"_id": oid})
    if not doc:
        return None
    images = doc.get("images") or []
    return {
        "id": str(doc["_id"]),
        "name": doc.get("name"),
        "image_url": doc.get("image_url") or (images[0] if images else None),
    }
