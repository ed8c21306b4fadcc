import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, File, Form, Request, Response, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr, Field

import cart
import chat
import config
import faq
import notifications
import orders
import products
import reviews
import shipping
import storage
import users
import wallet
import withdrawals
from database import database_status
from errors import NotFound, ServiceError
from schemas import CartItem, OrderItem, Product

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger("diremart")

app = FastAPI(title="DireMart API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
def service_error_handler(request: Request, exc: ServiceError):
    logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/")
def root():
    return {"status": "ok", "service": "DireMart Backend"}


@app.get("/test")
def test_database():
    return database_status()


@app.get("/api/config/map")
def get_map_config():
    return config.map_config()


@app.get("/api/files/{file_id}")
def download_file(file_id: str):
    data, content_type, _ = storage.open_file(file_id)
    return Response(content=data, media_type=content_type)


# ========== AUTH ==========
class RegisterPayload(BaseModel):
    email: EmailStr
    password: str
    display_name: str
    phone_number: str = ""
    role: str = "buyer"

class LoginPayload(BaseModel):
    email: EmailStr
    password: str


@app.post("/api/auth/register")
def register(body: RegisterPayload):
    return users.register_user(body.email, body.password, body.display_name, body.phone_number, body.role)


@app.post("/api/auth/login")
def login(body: LoginPayload):
    return users.login_user(body.email, body.password)


# ========== PROFILE ==========
class ProfilePayload(BaseModel):
    display_name: Optional[str] = None
    phone_number: Optional[str] = None
    role: Optional[str] = None


@app.get("/api/users/{user_id}")
def get_profile(user_id: str):
    user = users.get_user(user_id)
    if user is None:
        raise NotFound("User not found")
    return user


@app.put("/api/users/{user_id}")
def update_profile(user_id: str, body: ProfilePayload):
    return users.update_user_profile(user_id, body.display_name, body.phone_number, body.role)


@app.post("/api/users/{user_id}/photo")
def upload_photo(user_id: str, photo: UploadFile = File(...)):
    url = users.update_profile_photo(user_id, photo.file.read(), photo.content_type or "image/jpeg")
    return {"photo_url": url}


@app.get("/api/users/{user_id}/statistics")
def user_statistics(user_id: str):
    return users.get_user_statistics(user_id)


# ========== PRODUCTS ==========
@app.get("/api/products")
def list_products(q: Optional[str] = None, category: Optional[str] = None, sort_by: str = "created_at", limit: int = 50):
    if q:
        return {"items": products.search_products(q, limit)}
    return {"items": products.get_products(category, sort_by, limit)}


@app.get("/api/products/{product_id}")
def get_product(product_id: str):
    return products.get_product_by_id(product_id)


@app.post("/api/products")
def create_product(body: Product):
    return {"product_id": products.add_product(body.seller_id, body)}


# ========== CART ==========
class CartItemPayload(BaseModel):
    user_id: str
    product_id: str
    quantity: int = 1

class CartPayload(BaseModel):
    user_id: str
    items: List[CartItem]

class CartQuantityPayload(BaseModel):
    user_id: str
    quantity: int


@app.get("/api/cart")
def get_cart(user_id: str):
    return cart.get_cart(user_id)


@app.post("/api/cart")
def add_to_cart(body: CartItemPayload):
    return cart.add_to_cart(body.user_id, body.product_id, body.quantity)


@app.put("/api/cart")
def replace_cart(body: CartPayload):
    return cart.update_cart(body.user_id, body.items)


@app.patch("/api/cart/items/{product_id}")
def set_cart_quantity(product_id: str, body: CartQuantityPayload):
    return cart.update_cart_quantity(body.user_id, product_id, body.quantity)


@app.delete("/api/cart/items/{product_id}")
def remove_from_cart(product_id: str, user_id: str):
    return cart.remove_from_cart(user_id, product_id)


@app.delete("/api/cart")
def clear_cart(user_id: str):
    return cart.clear_cart(user_id)


# ========== ORDERS ==========
class CreateOrderPayload(BaseModel):
    user_id: str
    items: List[OrderItem]
    total_amount: Optional[float] = None
    payment_method: str = "cod"
    shipping_address: Optional[Dict[str, Any]] = None

class OrderStatusPayload(BaseModel):
    status: str
    seller_name: Optional[str] = None


@app.post("/api/orders")
def create_order(body: CreateOrderPayload):
    return orders.create_order(body.user_id, body.model_dump(exclude={"user_id"}))


@app.get("/api/orders")
def list_orders(user_id: str):
    return {"items": orders.get_user_orders(user_id)}


@app.get("/api/orders/{order_id}")
def get_order(order_id: str):
    return orders.get_order_by_id(order_id)


@app.patch("/api/orders/{order_id}/status")
def set_order_status(order_id: str, body: OrderStatusPayload):
    return orders.update_order_status(order_id, body.status, body.seller_name)


# ========== CHAT ==========
class ChatSendPayload(BaseModel):
    message: str
    is_from_user: bool = True


@app.get("/api/chat/{user_id}")
def get_chat(user_id: str):
    return {"thread": chat.get_chat_thread(user_id), "messages": chat.get_chat_messages(user_id)}


@app.post("/api/chat/{user_id}")
def send_chat(user_id: str, body: ChatSendPayload):
    return {"chat_id": chat.send_chat_message(user_id, body.message, body.is_from_user)}


@app.post("/api/chat/{user_id}/read")
def read_chat(user_id: str):
    return {"ok": chat.mark_chat_as_read(user_id)}


@app.get("/api/chat/{user_id}/unread")
def unread_chat(user_id: str):
    return {"unread_count": chat.get_unread_chat_count(user_id)}


@app.post("/api/chat/{user_id}/close")
def close_chat(user_id: str):
    return {"ok": chat.close_chat(user_id)}


# ========== FAQ ==========
class FaqPayload(BaseModel):
    question: str
    answer: str
    category: Optional[str] = None
    order: int = 0

class FaqUpdatePayload(BaseModel):
    question: Optional[str] = None
    answer: Optional[str] = None
    category: Optional[str] = None
    order: Optional[int] = None

class FaqCategoryPayload(BaseModel):
    name: str
    order: int = 0


@app.get("/api/faqs")
def list_faqs(category: Optional[str] = None, q: Optional[str] = None):
    return {"items": faq.search_faqs(faq.get_all_faqs(category), q or "")}


@app.post("/api/faqs")
def create_faq(body: FaqPayload):
    return {"faq_id": faq.add_faq(body.model_dump())}


@app.put("/api/faqs/{faq_id}")
def edit_faq(faq_id: str, body: FaqUpdatePayload):
    return {"ok": faq.update_faq(faq_id, body.model_dump(exclude_none=True))}


@app.delete("/api/faqs/{faq_id}")
def remove_faq(faq_id: str):
    return {"ok": faq.delete_faq(faq_id)}


@app.get("/api/faq-categories")
def list_faq_categories():
    return {"items": faq.get_faq_categories()}


@app.post("/api/faq-categories")
def create_faq_category(body: FaqCategoryPayload):
    return {"category_id": faq.add_faq_category(body.model_dump())}


@app.post("/api/faqs/setup")
def seed_faqs():
    return {"seeded": faq.setup_initial_faqs()}


# ========== REVIEWS ==========
class ReviewUpdatePayload(BaseModel):
    user_id: str
    rating: Optional[int] = None
    comment: Optional[str] = None
    images_to_delete: List[str] = Field(default_factory=list)

class VotePayload(BaseModel):
    user_id: str
    is_helpful: bool


def _uploads(files: Optional[List[UploadFile]]):
    return [(f.file.read(), f.content_type or "image/jpeg") for f in files or []]


@app.post("/api/reviews")
def create_review(
    user_id: str = Form(...),
    product_id: str = Form(...),
    order_id: str = Form(...),
    rating: int = Form(...),
    comment: str = Form(""),
    images: List[UploadFile] = File(default=[]),
):
    review_id = reviews.add_review(user_id, product_id, order_id, rating, comment, _uploads(images))
    return {"review_id": review_id}


@app.patch("/api/reviews/{review_id}")
def edit_review(review_id: str, body: ReviewUpdatePayload):
    update = body.model_dump(include={"rating", "comment"}, exclude_none=True)
    return reviews.update_review(review_id, body.user_id, update, images_to_delete=body.images_to_delete)


@app.post("/api/reviews/{review_id}/images")
def add_review_images(review_id: str, user_id: str = Form(...), images: List[UploadFile] = File(...)):
    return reviews.update_review(review_id, user_id, {}, new_images=_uploads(images))


@app.delete("/api/reviews/{review_id}")
def remove_review(review_id: str, user_id: str):
    reviews.delete_review(review_id, user_id)
    return {"ok": True}


@app.post("/api/reviews/{review_id}/vote")
def vote_review(review_id: str, body: VotePayload):
    return reviews.mark_review_helpfulness(review_id, body.user_id, body.is_helpful)


@app.get("/api/products/{product_id}/reviews")
def product_reviews(product_id: str, page_size: int = 10, sort_by: str = "created_at", sort_order: str = "desc", rating: int = 0):
    return {"items": reviews.get_product_reviews(product_id, page_size, sort_by, sort_order, rating)}


@app.get("/api/products/{product_id}/reviews/stats")
def product_review_stats(product_id: str):
    return reviews.get_review_statistics(product_id)


@app.get("/api/users/{user_id}/reviews")
def user_reviews(user_id: str):
    return {"items": reviews.get_user_reviews(user_id)}


@app.get("/api/users/{user_id}/reviews/eligible")
def eligible_reviews(user_id: str):
    return {"orders": reviews.get_eligible_orders_for_review(user_id)}


# ========== ADDRESSES ==========
class AddressPayload(BaseModel):
    label: Optional[str] = None
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    set_as_default: bool = False


@app.get("/api/users/{user_id}/addresses")
def list_addresses(user_id: str):
    return {"items": shipping.get_saved_addresses(user_id)}


@app.get("/api/users/{user_id}/addresses/default")
def default_address(user_id: str):
    return {"address": shipping.get_default_address(user_id)}


@app.post("/api/users/{user_id}/addresses")
def add_address(user_id: str, body: AddressPayload):
    data = body.model_dump(exclude={"set_as_default"}, exclude_none=True)
    return shipping.save_address(user_id, data, body.set_as_default)


@app.put("/api/users/{user_id}/addresses/{address_id}")
def edit_address(user_id: str, address_id: str, body: AddressPayload):
    data = body.model_dump(exclude={"set_as_default"}, exclude_none=True)
    if not data and body.set_as_default:
        shipping.update_default_address(user_id, address_id)
        return {"ok": True}
    return shipping.update_address(user_id, address_id, data, body.set_as_default)


@app.post("/api/users/{user_id}/addresses/{address_id}/default")
def make_default_address(user_id: str, address_id: str):
    shipping.update_default_address(user_id, address_id)
    return {"ok": True}


@app.delete("/api/users/{user_id}/addresses/{address_id}")
def remove_address(user_id: str, address_id: str):
    shipping.delete_address(user_id, address_id)
    return {"ok": True}


# ========== WALLET ==========
class DepositPayload(BaseModel):
    amount: float
    method: str = "chapa"
    description: Optional[str] = None

class WithdrawPayload(BaseModel):
    amount: float
    method: str = "bank_transfer"

class TransferPayload(BaseModel):
    recipient_id: str
    amount: float
    description: Optional[str] = None

class OrderPaymentPayload(BaseModel):
    buyer_id: str
    seller_id: str
    amount: float
    order_id: str


@app.get("/api/wallet/{user_id}")
def get_wallet(user_id: str):
    return wallet.get_wallet(user_id)


@app.get("/api/wallet/{user_id}/balance")
def get_balance(user_id: str):
    return {"balance": wallet.get_wallet_balance(user_id)}


@app.post("/api/wallet/{user_id}/deposit")
def deposit(user_id: str, body: DepositPayload):
    return wallet.add_funds(user_id, body.amount, body.method, body.description or "Deposit via Chapa")


@app.post("/api/wallet/{user_id}/withdraw")
def withdraw(user_id: str, body: WithdrawPayload):
    return wallet.withdraw_funds(user_id, body.amount, body.method)


@app.post("/api/wallet/{user_id}/transfer")
def transfer(user_id: str, body: TransferPayload):
    return wallet.transfer_funds(user_id, body.recipient_id, body.amount, body.description)


@app.get("/api/wallet/{user_id}/transactions")
def transactions(user_id: str, limit: int = 50):
    return {"items": wallet.get_transaction_history(user_id, limit)}


@app.post("/api/wallet/payments")
def pay_order(body: OrderPaymentPayload):
    return wallet.process_payment(body.buyer_id, body.seller_id, body.amount, body.order_id)


@app.post("/api/wallet/refunds")
def refund_order(body: OrderPaymentPayload):
    return wallet.process_refund(body.seller_id, body.buyer_id, body.amount, body.order_id)


# ========== WITHDRAWALS ==========
class WithdrawalRequestPayload(BaseModel):
    user_id: str
    amount: float
    method: str
    bank_details: Dict[str, Any] = Field(default_factory=dict)

class WithdrawalStatusPayload(BaseModel):
    status: str
    notes: Optional[str] = None


@app.post("/api/withdrawals")
def request_withdrawal(body: WithdrawalRequestPayload):
    return withdrawals.create_withdrawal_request(body.user_id, body.amount, body.method, body.bank_details)


@app.get("/api/withdrawals")
def list_withdrawals(user_id: str):
    return {"items": withdrawals.get_withdrawal_requests(user_id)}


@app.patch("/api/withdrawals/{withdrawal_id}/status")
def set_withdrawal_status(withdrawal_id: str, body: WithdrawalStatusPayload):
    withdrawals.update_withdrawal_status(withdrawal_id, body.status, body.notes)
    return {"ok": True}


# ========== NOTIFICATIONS ==========
@app.get("/api/users/{user_id}/notifications")
def list_notifications(user_id: str):
    return {"items": notifications.get_notifications(user_id)}


@app.post("/api/users/{user_id}/notifications/read")
def read_all_notifications(user_id: str):
    return {"updated": notifications.mark_all_notifications_as_read(user_id)}


@app.post("/api/users/{user_id}/notifications/{notification_id}/read")
def read_notification(user_id: str, notification_id: str):
    return {"ok": notifications.mark_notification_as_read(user_id, notification_id)}


@app.delete("/api/users/{user_id}/notifications/{notification_id}")
def remove_notification(user_id: str, notification_id: str):
    return {"ok": notifications.delete_notification(user_id, notification_id)}


@app.get("/api/users/{user_id}/notification-settings")
def notification_settings(user_id: str):
    return notifications.get_notification_settings(user_id)


@app.put("/api/users/{user_id}/notification-settings")
def save_notification_settings(user_id: str, body: Dict[str, bool]):
    notifications.update_notification_settings(user_id, body)
    return notifications.get_notification_settings(user_id)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
