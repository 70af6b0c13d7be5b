# In file: bookstore-microservices/storefront/app/buyer.py

from typing import List, Tuple

from .backend import BackendClient
from .config import BOOKS_PAGE_SIZE
from .errors import ValidationFailed
from .models import BookRef, Identity, OrderSummary, Role, SavedAddress, ShippingAddress
from .session import AuthSession


class BuyerAccount:
    """Browsing, order history, saved addresses and reviews for the signed-in buyer."""

    def __init__(self, client: BackendClient, session: AuthSession):
        self.client = client
        self.session = session

    def _buyer(self) -> Identity:
        return self.session.require_user().require(Role.BUYER)

    # --- Storefront ---
    def browse(self, search: str = "", page: int = 0) -> Tuple[List[BookRef], bool]:
        """One page of all listed books, newest first, and whether more pages exist."""
        result = self.client.list_books(q=search.strip() or None, offset=page * BOOKS_PAGE_SIZE, limit=BOOKS_PAGE_SIZE)
        books = [BookRef(**row) for row in result["items"]]
        return books, len(books) == BOOKS_PAGE_SIZE

    def book(self, book_id: int) -> BookRef:
        return BookRef(**self.client.get_book(book_id))

    # --- Orders ---
    def order_history(self) -> List[OrderSummary]:
        self._buyer()
        return [OrderSummary.from_row(row) for row in self.client.list_orders()]

    # --- Addresses ---
    def addresses(self) -> List[SavedAddress]:
        """Saved addresses, most recent first; the first one is the checkout default."""
        self._buyer()
        return [SavedAddress(**row) for row in self.client.list_addresses()]

    def add_address(self, address: str, phone_no: str) -> SavedAddress:
        self._buyer()
        form = ShippingAddress.from_form(address, phone_no)
        return SavedAddress(**self.client.create_address(form.address, form.phone_no))

    # --- Reviews ---
    def submit_review(self, book_id: int, rating: int, comment: str = "") -> dict:
        self._buyer()
        if not rating:
            raise ValidationFailed("Please select a rating")
        if not 1 <= rating <= 5:
            raise ValidationFailed("Rating must be between 1 and 5")
        return self.client.create_review(book_id, rating, (comment or "").strip())

    def reviews(self, book_id: int) -> List[dict]:
        return self.client.list_reviews(book_id)
