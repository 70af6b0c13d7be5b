# In file: bookstore-microservices/storefront/app/seller.py

from typing import List, Tuple

from .backend import BackendClient
from .config import SELLER_BOOKS_PAGE_SIZE
from .errors import BackendError, InvalidStatusTransition, ValidationFailed
from .models import ORDER_STATUSES, BookRef, Identity, OrderSummary, Role
from .session import AuthSession


def _validate_book_fields(title, price, stock) -> dict:
    title = (title or "").strip()
    if not title:
        raise ValidationFailed("Please enter a book title")
    try:
        price = float(price)
    except (TypeError, ValueError):
        raise ValidationFailed("Please enter a valid price")
    if price <= 0:
        raise ValidationFailed("Please enter a valid price")
    try:
        stock = int(stock)
    except (TypeError, ValueError):
        raise ValidationFailed("Please enter a valid stock quantity")
    if stock < 0:
        raise ValidationFailed("Please enter a valid stock quantity")
    return {"title": title, "price": price, "stock": stock}


class SellerCatalog:
    """Listing, editing and deleting the signed-in seller's books."""

    def __init__(self, client: BackendClient, session: AuthSession):
        self.client = client
        self.session = session

    def _seller(self) -> Identity:
        return self.session.require_user().require(Role.SELLER)

    def list_books(self, search: str = "", page: int = 0) -> Tuple[List[BookRef], bool]:
        """One page of the seller's books, newest first, and whether more pages exist."""
        seller = self._seller()
        result = self.client.list_books(
            q=search.strip() or None,
            seller_id=seller.id,
            offset=page * SELLER_BOOKS_PAGE_SIZE,
            limit=SELLER_BOOKS_PAGE_SIZE,
        )
        books = [BookRef(**row) for row in result["items"]]
        return books, len(books) == SELLER_BOOKS_PAGE_SIZE

    def add_book(self, title, price, stock, description: str = "", image_url: str = "") -> BookRef:
        self._seller()
        fields = _validate_book_fields(title, price, stock)
        fields["description"] = (description or "").strip()
        fields["image_url"] = (image_url or "").strip() or None
        return BookRef(**self.client.create_book(fields))

    def edit_book(self, book_id: int, title, price, stock, description: str = "", image_url: str = "") -> BookRef:
        self._seller()
        fields = _validate_book_fields(title, price, stock)
        fields["description"] = (description or "").strip()
        fields["image_url"] = (image_url or "").strip() or None
        return BookRef(**self.client.update_book(book_id, fields))

    def delete_book(self, book_id: int):
        self._seller()
        self.client.delete_book(book_id)
        print(f" [x] Book {book_id} deleted")


class SellerOrders:
    """Incoming orders for the seller's books, status changes and dashboard numbers."""

    def __init__(self, client: BackendClient, session: AuthSession):
        self.client = client
        self.session = session

    def _seller(self) -> Identity:
        return self.session.require_user().require(Role.SELLER)

    def list_orders(self) -> List[OrderSummary]:
        self._seller()
        return [OrderSummary.from_row(row) for row in self.client.list_seller_orders()]

    def update_status(self, order_id: int, new_status: str) -> OrderSummary:
        """
        Moves an order to `new_status`.
        Which moves are allowed is decided by the backend's transition policy;
        a refused move raises InvalidStatusTransition.
        """
        self._seller()
        if new_status not in ORDER_STATUSES:
            raise ValidationFailed(f"Unknown status '{new_status}'")
        try:
            row = self.client.update_order_status(order_id, new_status)
        except BackendError as e:
            if e.status_code == 409:
                raise InvalidStatusTransition(e.message) from e
            raise
        return OrderSummary.from_row(row)

    def dashboard_stats(self) -> dict:
        self._seller()
        return self.client.seller_stats()
