"""
Database Schemas for the DireMart marketplace
Each Pydantic model represents a MongoDB collection (collection name = class name in snake_case).
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]


# Core users
class User(BaseModel):
    email: EmailStr
    password_hash: str
    display_name: str = ""
    phone_number: str = ""
    role: str = Field(default="buyer", description="buyer | seller")
    email_verified: bool = False
    photo_url: Optional[str] = None


# Products
class Product(BaseModel):
    name: str
    description: Optional[str] = None
    price: float = Field(ge=0)
    category: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    image_url: Optional[str] = None
    rating: float = 0
    review_count: int = 0
    stock: int = 0
    seller_id: Optional[str] = None


# Cart: one document per user
class CartItem(BaseModel):
    id: str = Field(..., description="product id")
    name: Optional[str] = None
    price: float = Field(0, ge=0)
    quantity: int = Field(1, ge=1)
    image_url: Optional[str] = None
    seller_id: Optional[str] = None


class Cart(BaseModel):
    user_id: str
    items: List[CartItem] = Field(default_factory=list)
    total: float = 0


# Orders
class OrderItem(BaseModel):
    id: str = Field(..., description="product id")
    name: Optional[str] = None
    price: float = Field(0, ge=0)
    quantity: int = Field(1, ge=1)
    seller_id: Optional[str] = None


class Order(BaseModel):
    user_id: str
    order_number: str
    items: List[OrderItem]
    total_amount: float = Field(ge=0)
    status: OrderStatus = "pending"
    payment_method: str = Field(default="cod")
    shipping_address: Optional[Dict[str, Any]] = None


# Support chat: one thread per user, messages reference the thread
class ChatThread(BaseModel):
    user_id: str
    status: Literal["active", "closed"] = "active"
    unread_count: int = 0
    last_message: str = ""
    last_message_time: Optional[datetime] = None


class ChatMessage(BaseModel):
    chat_id: str
    user_id: str
    content: str
    timestamp: datetime
    is_from_user: bool = True
    read: bool = False


# Help centre
class FaqCategory(BaseModel):
    name: str
    order: int = 0


class Faq(BaseModel):
    question: str
    answer: str
    category: Optional[str] = None
    order: int = 0


# Reviews
class Review(BaseModel):
    user_id: str
    product_id: str
    order_id: str
    rating: int = Field(ge=1, le=5)
    comment: str = ""
    images: List[str] = Field(default_factory=list)
    helpful: int = 0
    not_helpful: int = 0
    status: str = "active"


class ReviewVote(BaseModel):
    review_id: str
    user_id: str
    is_helpful: bool


# Address book
class Address(BaseModel):
    user_id: str
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
    is_default: bool = False


# Wallet
class Wallet(BaseModel):
    user_id: str
    role: str = "buyer"
    balance: float = 0
    currency: str = "ETB"
    is_active: bool = True
    payment_methods: List[Dict[str, Any]] = Field(default_factory=list)
    settings: Dict[str, Any] = Field(default_factory=lambda: {
        "notifications_enabled": True,
        "low_balance_alert": False,
        "low_balance_threshold": 100,
    })


class Transaction(BaseModel):
    user_id: str
    type: Literal["deposit", "withdrawal", "purchase", "sale", "refund", "transfer"]
    amount: float
    currency: str = "ETB"
    status: Literal["pending", "completed", "failed", "cancelled"] = "completed"
    description: str = ""
    method: Optional[str] = None
    order_id: Optional[str] = None
    related_user_id: Optional[str] = None
    reference: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    timestamp: Optional[datetime] = None


class WithdrawalRequest(BaseModel):
    user_id: str
    amount: float = Field(gt=0)
    method: Literal["cbe", "telebirr", "bank_transfer"]
    bank_details: Dict[str, Any] = Field(default_factory=dict)
    status: Literal["pending", "processing", "completed", "rejected"] = "pending"
    notes: str = ""


# Notifications
class Notification(BaseModel):
    user_id: str
    title: str
    message: str
    type: str = "announcement"
    read: bool = False
    data: Dict[str, Any] = Field(default_factory=dict)
