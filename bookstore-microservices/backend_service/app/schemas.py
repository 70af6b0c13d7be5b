"""
Request models for the bookstore backend.

Responses are plain dicts built in main.py; these models only validate
incoming bodies.
"""
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


# --- Auth ---
class SignUpRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1)
    role: str = Field(..., description="buyer | seller")


class SignInRequest(BaseModel):
    email: EmailStr
    password: str


# --- Books ---
class BookCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    price: float = Field(..., ge=0)
    stock: int = Field(..., ge=0)
    image_url: Optional[str] = None


class BookUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    image_url: Optional[str] = None


# --- Cart ---
class CartUpsert(BaseModel):
    """Adds a book to the cart, overwriting the quantity if it is already there."""
    book_id: int
    quantity: int = Field(1, ge=1)


class CartUpdate(BaseModel):
    quantity: int = Field(..., ge=1)


# --- Orders ---
class OrderCreate(BaseModel):
    buyer_id: int
    total_price: float = Field(..., ge=0)


class OrderItemCreate(BaseModel):
    book_id: int
    seller_id: int
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)


class OrderItemsCreate(BaseModel):
    items: List[OrderItemCreate] = Field(..., min_length=1)


class StatusUpdate(BaseModel):
    status: str


# --- Stock procedures ---
class DecrementRequest(BaseModel):
    """Deducts stock for one line of the caller's order, only if enough remains."""
    order_id: int
    book_id: int
    quantity_to_deduct: int = Field(..., ge=1)


class ReleaseItem(BaseModel):
    book_id: int
    quantity: int = Field(..., ge=1)


class ReleaseRequest(BaseModel):
    """Gives back stock an order deducted; used to compensate a failed checkout."""
    items: List[ReleaseItem] = Field(..., min_length=1)


# --- Buyer extras ---
class AddressCreate(BaseModel):
    address: str = Field(..., min_length=1)
    phone_no: str = Field(..., min_length=1)


class ReviewCreate(BaseModel):
    book_id: int
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""
