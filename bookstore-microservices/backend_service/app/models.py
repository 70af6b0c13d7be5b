from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from .database import Base # Import the Base class from our database setup


def utcnow():
    return datetime.now(timezone.utc)


# A registered account. Role is fixed at sign-up.
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False) # Identity key used to resolve the profile.
    name = Column(String, nullable=False)
    role = Column(String, nullable=False) # "buyer" or "seller".
    password_hash = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow)


# A book listed by a seller.
class Book(Base):
    __tablename__ = "books"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="books_stock_non_negative"),
        CheckConstraint("price >= 0", name="books_price_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    seller_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, default="")
    price = Column(Float, nullable=False)
    stock = Column(Integer, nullable=False, default=0) # Remaining purchasable quantity.
    image_url = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    seller = relationship("User")


# One pending (book, quantity) selection in a buyer's cart.
class CartItem(Base):
    __tablename__ = "cart"
    __table_args__ = (
        UniqueConstraint("buyer_id", "book_id", name="cart_buyer_book_key"),
        CheckConstraint("quantity >= 1", name="cart_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    buyer_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    book_id = Column(Integer, ForeignKey("books.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)

    book = relationship("Book")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    buyer_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    total_price = Column(Float, nullable=False)
    status = Column(String, nullable=False, default="Pending") # Pending, Shipped, Delivered or Cancelled.
    created_at = Column(DateTime, default=utcnow)

    buyer = relationship("User")
    items = relationship("OrderItem", back_populates="order", order_by="OrderItem.id")


# Price is captured at order time and never follows later Book.price edits.
# book_id goes NULL when the seller deletes the book; the line stays in history.
class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("stock_deducted >= 0 AND stock_deducted <= quantity", name="order_items_deducted_range"),
    )

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), index=True, nullable=False)
    book_id = Column(Integer, ForeignKey("books.id", ondelete="SET NULL"), nullable=True)
    seller_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    stock_deducted = Column(Integer, nullable=False, default=0) # Units taken from Book.stock and not yet given back.

    order = relationship("Order", back_populates="items")
    book = relationship("Book")


class Address(Base):
    __tablename__ = "buyer_addresses"

    id = Column(Integer, primary_key=True, index=True)
    buyer_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    address = Column(String, nullable=False)
    phone_no = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow)


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (
        CheckConstraint("rating BETWEEN 1 AND 5", name="reviews_rating_range"),
    )

    id = Column(Integer, primary_key=True, index=True)
    buyer_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    book_id = Column(Integer, ForeignKey("books.id", ondelete="CASCADE"), index=True, nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, default="")
    created_at = Column(DateTime, default=utcnow)

    buyer = relationship("User")
