"""
Client-side views of the rows the backend sends back.

The backend owns these entities; the storefront only keeps the last copy it
received.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .errors import NotPermitted, StorefrontError, ValidationFailed


class Role(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"


ORDER_STATUSES = ("Pending", "Shipped", "Delivered", "Cancelled")


class Identity(BaseModel):
    """The signed-in user, as resolved by email from the users table."""
    id: int
    email: str
    name: str
    role: Role

    @field_validator("role", mode="before")
    @classmethod
    def normalise_role(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @property
    def is_buyer(self) -> bool:
        return self.role == Role.BUYER

    @property
    def is_seller(self) -> bool:
        return self.role == Role.SELLER

    def require(self, role: Role) -> "Identity":
        if self.role != role:
            raise NotPermitted(f"Only a {role.value} can do this")
        return self


class BookRef(BaseModel):
    id: int
    title: str
    price: float
    seller_id: int
    image_url: Optional[str] = None
    description: Optional[str] = None
    stock: Optional[int] = None


class CartEntry(BaseModel):
    id: int
    quantity: int = Field(..., ge=1)
    book: BookRef

    @property
    def subtotal(self) -> float:
        return self.book.price * self.quantity


class OrderLine(BaseModel):
    id: int
    order_id: int
    book_id: int
    seller_id: int
    quantity: int
    price: float
    title: Optional[str] = None


class OrderSummary(BaseModel):
    id: int
    buyer_id: int
    total_price: float
    status: str
    created_at: Optional[str] = None
    items: List[OrderLine] = []
    buyer_name: Optional[str] = None
    buyer_email: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "OrderSummary":
        lines = [
            OrderLine(**{k: v for k, v in item.items() if k != "book"}, title=(item.get("book") or {}).get("title"))
            for item in row.get("order_items", [])
        ]
        buyer = row.get("buyer") or {}
        return cls(
            id=row["id"],
            buyer_id=row["buyer_id"],
            total_price=row["total_price"],
            status=row["status"],
            created_at=row.get("created_at"),
            items=lines,
            buyer_name=buyer.get("name"),
            buyer_email=buyer.get("email"),
        )


class ShippingAddress(BaseModel):
    address: str
    phone_no: str

    @classmethod
    def from_form(cls, address: str, phone_no: str) -> "ShippingAddress":
        address, phone_no = (address or "").strip(), (phone_no or "").strip()
        if not address or not phone_no:
            raise ValidationFailed("Please fill in all fields")
        return cls(address=address, phone_no=phone_no)


class SavedAddress(ShippingAddress):
    id: int
    created_at: Optional[str] = None


@dataclass
class CheckoutResult:
    order_id: int
    total: float
    # Non-fatal failures from the address and cart-clearing steps.
    warnings: List[StorefrontError] = field(default_factory=list)
    # First purchased book; the caller may ask the buyer to review it.
    review_book: Optional[BookRef] = None

    @property
    def ok(self) -> bool:
        return not self.warnings
