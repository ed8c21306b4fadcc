"""
Help-centre FAQs and their categories.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from pymongo import ASCENDING

from database import create_document, get_db, get_documents, now, serialize_doc, to_object_id
from errors import NotFound
from schemas import Faq, FaqCategory

logger = logging.getLogger(__name__)

INITIAL_CATEGORIES = [
    {"name": "Account & Profile", "order": 1},
    {"name": "Orders & Shipping", "order": 2},
    {"name": "Payments & Wallet", "order": 3},
    {"name": "Products & Shopping", "order": 4},
    {"name": "Returns & Refunds", "order": 5},
    {"name": "Seller Information", "order": 6},
]

INITIAL_FAQS = [
    ("Account & Profile", 1, "How do I create an account?",
     "To create an account, click on the \"Sign Up\" button in the top right corner of the page. "
     "Fill in your details including your name, email address, and password. Once submitted, you'll "
     "receive a verification email. Click the link in the email to verify your account and start shopping!"),
    ("Account & Profile", 2, "How can I update my profile information?",
     "You can update your profile information by going to your profile page. Click on your profile icon "
     "in the top right corner, then select \"Profile\" from the dropdown menu. From there, click the "
     "\"Edit Profile\" button to update your information including name, phone number, and profile picture."),
    ("Orders & Shipping", 1, "How do I track my order?",
     "You can track your order by going to the \"Orders\" section in your account. Click on the specific "
     "order you want to track, and you'll see the current status of your order. The status will be updated "
     "as your order progresses from processing to shipping to delivery."),
    ("Payments & Wallet", 1, "What payment methods do you accept?",
     "We accept various payment methods including credit/debit cards, mobile money, and wallet balance. "
     "For credit/debit cards, we use secure payment processing through Chapa. All transactions are "
     "encrypted and secure."),
    ("Payments & Wallet", 2, "How do I add money to my wallet?",
     "To add money to your wallet, go to the \"Wallet\" section in your account. Click on \"Add Funds\" and "
     "enter the amount you want to add. You'll be redirected to our secure payment gateway where you can "
     "complete the transaction. Once the payment is verified, the funds will be added to your wallet immediately."),
    ("Seller Information", 1, "How can I become a seller on DireMart?",
     "To become a seller on DireMart, go to your profile and click on \"Become a Seller\". You'll need to "
     "provide some additional information about your business. Once approved, you can start listing your "
     "products and selling on our platform."),
    ("Returns & Refunds", 1, "What is your return policy?",
     "Our return policy allows you to return items within 14 days of delivery if you're not satisfied with "
     "your purchase. The item must be in its original condition and packaging. To initiate a return, go to "
     "your order details and click on \"Return Item\". Once the return is approved, you'll receive a refund "
     "to your original payment method or wallet."),
    ("Orders & Shipping", 2, "How long does shipping take?",
     "Shipping times vary depending on your location and the seller. Typically, orders are delivered within "
     "3-7 business days. You can see the estimated delivery time on the product page before making a "
     "purchase. Once your order is shipped, you'll receive a notification with tracking information."),
    ("Orders & Shipping", 3, "Can I cancel my order?",
     "Yes, you can cancel your order as long as it hasn't been shipped yet. To cancel an order, go to your "
     "order details and click on \"Cancel Order\". If the order has already been shipped, you'll need to "
     "wait for delivery and then initiate a return."),
    ("Account & Profile", 3, "How do I contact customer support?",
     "You can contact our customer support team through the chat icon at the bottom of the page, or by "
     "visiting our Support page. Our team is available 24/7 to assist you with any questions or concerns "
     "you may have."),
]


def get_all_faqs(category: Optional[str] = None) -> List[Dict[str, Any]]:
    filt = {"category": category} if category else {}
    try:
        cursor = get_db()["faq"].find(filt).sort([("order", ASCENDING), ("_id", ASCENDING)])
        return [serialize_doc(d) for d in cursor]
    except Exception:
        logger.exception("Error getting FAQs")
        raise


def get_faq_categories() -> List[Dict[str, Any]]:
    return get_documents("faq_category", sort=[("order", ASCENDING), ("_id", ASCENDING)])


def add_faq(data: Dict[str, Any]) -> str:
    return create_document("faq", Faq(**data))


def update_faq(faq_id: str, data: Dict[str, Any]) -> bool:
    fields = {k: v for k, v in data.items() if k in Faq.model_fields}
    res = get_db()["faq"].update_one(
        {"_id": to_object_id(faq_id, "FAQ")}, {"$set": {**fields, "updated_at": now()}}
    )
    if res.matched_count == 0:
        raise NotFound("FAQ not found")
    return True


def delete_faq(faq_id: str) -> bool:
    res = get_db()["faq"].delete_one({"_id": to_object_id(faq_id, "FAQ")})
    if res.deleted_count == 0:
        raise NotFound("FAQ not found")
    return True


def add_faq_category(data: Dict[str, Any]) -> str:
    return create_document("faq_category", FaqCategory(**data))


def search_faqs(faqs: Iterable[Dict[str, Any]], query: str = "", category: Optional[str] = None) -> List[Dict[str, Any]]:
    filtered = list(faqs)
    if query:
        needle = query.lower()
        filtered = [
            f for f in filtered
            if needle in (f.get("question") or "").lower() or needle in (f.get("answer") or "").lower()
        ]
    if category:
        filtered = [f for f in filtered if f.get("category") == category]
    return filtered


def setup_initial_faqs() -> bool:
    if get_all_faqs():
        logger.info("FAQs already exist, skipping setup")
        return False
    try:
        category_ids = {c["name"]: add_faq_category(c) for c in INITIAL_CATEGORIES}
        for category, order, question, answer in INITIAL_FAQS:
            add_faq({"question": question, "answer": answer, "category": category_ids[category], "order": order})
    except Exception:
        logger.exception("Error setting up initial FAQs")
        raise
    logger.info("Initial FAQs setup completed")
    return True
