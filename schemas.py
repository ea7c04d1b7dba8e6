"""
Record schemas for ShopLab

Each Pydantic model corresponds to a collection of the in-memory store.
Collection name is the lowercase class name (User -> "user",
CartItem -> "cartitem"). Records handed out by the stores are model
instances built from copies of the stored documents, so mutating them
never touches the store.
"""
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated, Generic, List, Literal, Optional, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, PlainSerializer

T = TypeVar("T")

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]

# Forward order of the fulfilment workflow; "cancelled" sits outside it.
STATUS_FLOW = ("pending", "processing", "shipped", "delivered")
TERMINAL_STATUSES = ("delivered", "cancelled")
CANCELLABLE_STATUSES = ("pending", "processing")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


CENTS = Decimal("0.01")


def to_cents(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


# Exact cents inside the stores, plain JSON numbers on the wire.
Money = Annotated[Decimal, AfterValidator(to_cents), PlainSerializer(float, return_type=float, when_used="json")]


class User(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    email: EmailStr
    password_hash: str = Field(..., description="BCrypt hash of the password")
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class UserPublic(BaseModel):
    id: str
    email: EmailStr
    first_name: str
    last_name: str
    created_at: datetime


class Product(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    name: str = Field(..., min_length=1)
    description: str = ""
    price: Money = Field(..., ge=0)
    image_url: Optional[str] = None
    category: str
    stock: int = Field(..., ge=0)
    rating: float = Field(0, ge=0, le=5)
    review_count: int = Field(0, ge=0)
    featured: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ProductFilters(BaseModel):
    search: Optional[str] = None
    category: Optional[str] = None
    sort: Optional[str] = None
    featured: bool = False


class CartItem(BaseModel):
    id: str
    user_id: str
    product_id: str
    quantity: int = Field(..., ge=1)
    price: Money = Field(..., ge=0, description="Product price when the item was added")
    added_at: datetime = Field(default_factory=utcnow)


class CartLine(BaseModel):
    id: str
    product_id: str
    quantity: int
    price: Money
    subtotal: Money
    product: Optional[Product] = None
    added_at: datetime


class Totals(BaseModel):
    subtotal: Money = Decimal("0.00")
    tax: Money = Decimal("0.00")
    shipping: Money = Decimal("0.00")
    total: Money = Decimal("0.00")


class CartView(Totals):
    user_id: str
    items: List[CartLine] = []
    total_items: int = 0


class Address(BaseModel):
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)


class OrderItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    order_id: str
    product_id: str
    product_name: str
    quantity: int = Field(..., ge=1)
    price: Money = Field(..., ge=0)
    subtotal: Money = Field(..., ge=0)


class Order(BaseModel):
    id: str
    user_id: str
    order_number: str
    items: List[OrderItem]
    subtotal: Money = Field(..., ge=0)
    tax: Money = Field(..., ge=0)
    shipping: Money = Field(..., ge=0)
    total: Money = Field(..., ge=0)
    status: OrderStatus = "pending"
    shipping_address: Address
    payment_method: str = "credit_card"
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Page(BaseModel, Generic[T]):
    data: List[T]
    page: int
    limit: int
    total: int
    total_pages: int
