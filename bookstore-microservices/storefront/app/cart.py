# In file: bookstore-microservices/storefront/app/cart.py

from typing import Dict, List, Optional

from .backend import BackendClient
from .errors import InsufficientStock, StorefrontError, ValidationFailed
from .models import CartEntry, Identity, Role
from .session import SIGNED_OUT, AuthSession
from .stock import check_stock, read_book


class CartStore:
    """
    The buyer's pending selections, mirrored from the backend.
    Every mutation goes to the backend first; local state only changes with
    the row the backend sends back.
    """

    def __init__(self, client: BackendClient, session: AuthSession):
        self.client = client
        self.session = session
        self._items: Dict[int, CartEntry] = {}
        self.loading = True
        self.error: Optional[str] = None
        self._unsubscribe = session.subscribe(self._on_auth_change)

    def _on_auth_change(self, event: str, user: Optional[Identity]):
        if event == SIGNED_OUT:
            self._items = {}
            self.loading = False

    def _buyer(self) -> Identity:
        return self.session.require_user().require(Role.BUYER)

    # --- Read-only views ---
    @property
    def items(self) -> List[CartEntry]:
        return list(self._items.values())

    @property
    def count(self) -> int:
        return sum(item.quantity for item in self._items.values())

    @property
    def total(self) -> float:
        return round(sum(item.subtotal for item in self._items.values()), 2)

    def get(self, item_id: int) -> Optional[CartEntry]:
        return self._items.get(item_id)

    # --- Operations ---
    def load(self) -> List[CartEntry]:
        """Replaces local state with the buyer's cart rows, each joined with its book."""
        try:
            self._buyer()
        except StorefrontError:
            self.loading = False
            raise

        self.loading = True
        try:
            rows = self.client.list_cart()
        except StorefrontError as e:
            print(f"Error fetching cart items: {e}")
            self._items = {}
            self.error = e.message
            return []
        finally:
            self.loading = False

        self._items = {row["id"]: CartEntry(**row) for row in rows}
        self.error = None
        return self.items

    def check_stock(self, book_id: int, quantity: int) -> bool:
        self.session.require_user()
        return check_stock(self.client, book_id, quantity)

    def _ensure_stock(self, book_id: int, quantity: int):
        # Same rule as check_stock (an unreadable book counts as short), but names the book.
        book = read_book(self.client, book_id)
        if book is None:
            raise InsufficientStock()
        if book["stock"] < quantity:
            raise InsufficientStock(book["title"], book["stock"])

    def add(self, book_id: int, quantity: int = 1) -> CartEntry:
        """
        Puts a book in the cart.
        - If the book is already there, its quantity becomes `quantity` (not the sum).
        - Raises InsufficientStock when current stock cannot cover `quantity`.
        """
        self._buyer()
        if quantity < 1:
            raise ValidationFailed("Quantity must be at least 1")
        self._ensure_stock(book_id, quantity)

        entry = CartEntry(**self.client.upsert_cart_item(book_id, quantity))
        self._items[entry.id] = entry
        print(f" [x] Cart item {entry.id}: book {book_id} x{entry.quantity}")
        return entry

    def update_quantity(self, item_id: int, new_quantity: int) -> CartEntry:
        self._buyer()
        if new_quantity < 1:
            raise ValidationFailed("Quantity must be at least 1")

        row = self.client.get_cart_item(item_id)
        self._ensure_stock(row["book_id"], new_quantity)

        entry = CartEntry(**self.client.update_cart_item(item_id, new_quantity))
        self._items[entry.id] = entry
        return entry

    def remove(self, item_id: int):
        self._buyer()
        self.client.delete_cart_item(item_id)
        self._items.pop(item_id, None)

    def clear(self):
        self._buyer()
        self.client.clear_cart()
        self._items = {}
