# In file: bookstore-microservices/storefront/app/orders.py

import threading
from typing import List, Optional, Tuple

from .backend import BackendClient
from .cart import CartStore
from .errors import (
    AddressPersistFailed,
    BackendError,
    CartClearFailed,
    CheckoutInProgress,
    InsufficientStock,
    NotPermitted,
    OrderCreationFailed,
    OrderItemsFailed,
    StockUpdateFailed,
    StorefrontError,
    ValidationFailed,
)
from .models import CartEntry, CheckoutResult, Role, ShippingAddress
from .session import AuthSession
from .stock import verify_stock


class OrderWorkflow:
    """
    Turns the buyer's cart into an order.

    Steps run strictly in this order and the first failure in 1-4 stops the rest:
      1. verify stock for every item
      2. create the order (Pending)
      3. insert all order items as one batch
      4. deduct stock per item with the conditional decrement procedure
      5. save the shipping address if it is new (non-fatal)
      6. clear the cart (non-fatal)

    The backend has no transaction spanning these calls, so a failure in step 3
    or 4 is compensated: stock already deducted is added back and the order is
    cancelled. Nothing is retried automatically.
    """

    def __init__(self, client: BackendClient, session: AuthSession, cart: CartStore):
        self.client = client
        self.session = session
        self.cart = cart
        self._in_flight = threading.Lock()

    @property
    def in_flight(self) -> bool:
        """True while a checkout is running; callers disable their submit action on it."""
        return self._in_flight.locked()

    def place_order(
        self,
        buyer_id: int,
        cart_items: List[CartEntry],
        shipping_address: ShippingAddress,
        total_price: float,
        saved_address_id: Optional[int] = None,
    ) -> CheckoutResult:
        identity = self.session.require_user().require(Role.BUYER)
        if identity.id != buyer_id:
            raise NotPermitted("Orders can only be placed for yourself")
        if not cart_items:
            raise ValidationFailed("Your cart is empty")
        shipping_address = ShippingAddress.from_form(shipping_address.address, shipping_address.phone_no)

        if not self._in_flight.acquire(blocking=False):
            raise CheckoutInProgress()
        try:
            return self._run(buyer_id, cart_items, shipping_address, total_price, saved_address_id)
        finally:
            self._in_flight.release()

    def _run(self, buyer_id, cart_items, shipping_address, total_price, saved_address_id) -> CheckoutResult:
        books = self._verify_stock(cart_items)
        order_id = self._create_order(buyer_id, total_price)

        applied: List[Tuple[int, int]] = []
        try:
            self._insert_items(order_id, cart_items, books)
            self._decrement_stock(order_id, cart_items, applied)
        except StorefrontError as e:
            e.order_id = order_id
            e.compensation_errors = self._compensate(order_id, applied)
            raise

        warnings: List[StorefrontError] = []
        if saved_address_id is None:
            try:
                self.client.create_address(shipping_address.address, shipping_address.phone_no)
            except StorefrontError as e:
                print(f"Order {order_id} placed but address was not saved: {e}")
                warnings.append(AddressPersistFailed(f"Your order was placed, but the address could not be saved: {e.message}"))

        try:
            self.cart.clear()
        except StorefrontError as e:
            print(f"Order {order_id} placed but cart was not cleared: {e}")
            warnings.append(CartClearFailed(f"Your order was placed, but the cart could not be cleared: {e.message}"))

        print(f" [x] Order {order_id} placed ({len(cart_items)} items, total={total_price})")
        return CheckoutResult(order_id=order_id, total=total_price, warnings=warnings, review_book=cart_items[0].book)

    # --- Steps ---
    def _verify_stock(self, cart_items: List[CartEntry]) -> dict:
        books = {}
        for item in cart_items:
            books[item.book.id] = verify_stock(self.client, item.book.id, item.quantity, item.book.title)
        return books

    def _create_order(self, buyer_id: int, total_price: float) -> int:
        try:
            order = self.client.create_order(buyer_id, total_price)
        except StorefrontError as e:
            raise OrderCreationFailed(f"Failed to create the order: {e.message}") from e
        return order["id"]

    def _insert_items(self, order_id: int, cart_items: List[CartEntry], books: dict):
        rows = [
            {
                "book_id": item.book.id,
                "seller_id": books[item.book.id]["seller_id"],
                "quantity": item.quantity,
                # Price as the book is sold right now, not as it was when carted.
                "price": books[item.book.id]["price"],
            }
            for item in cart_items
        ]
        try:
            self.client.insert_order_items(order_id, rows)
        except StorefrontError as e:
            raise OrderItemsFailed(f"Failed to record the order items: {e.message}") from e

    def _decrement_stock(self, order_id: int, cart_items: List[CartEntry], applied: List[Tuple[int, int]]):
        for item in cart_items:
            try:
                self.client.decrement_stock(order_id, item.book.id, item.quantity)
            except BackendError as e:
                if e.status_code == 409:
                    # Someone bought it between verification and now.
                    detail = e.detail if isinstance(e.detail, dict) else {}
                    raise InsufficientStock(
                        detail.get("title", item.book.title), detail.get("available", 0), step="decrement_stock"
                    ) from e
                if e.status_code == 404:
                    # Deleted by its seller since verification.
                    raise InsufficientStock(item.book.title, 0, step="decrement_stock") from e
                raise StockUpdateFailed(f"Failed to update stock for {item.book.title}: {e.message}") from e
            except StorefrontError as e:
                raise StockUpdateFailed(f"Failed to update stock for {item.book.title}: {e.message}") from e
            applied.append((item.book.id, item.quantity))

    def _compensate(self, order_id: int, applied: List[Tuple[int, int]]) -> List[str]:
        """
        Gives back the stock this checkout deducted, then cancels the order.
        Cancelling also returns anything the order still holds, so a deduction
        whose response was lost is covered too. Returns what could not be undone.
        """
        errors = []
        if applied:
            try:
                self.client.release_stock(order_id, list(reversed(applied)))
                print(f"Stock released for order {order_id}: {applied}")
            except StorefrontError as e:
                errors.append(f"could not release stock for order {order_id}: {e.message}")
        try:
            self.client.update_order_status(order_id, "Cancelled")
            print(f"Order {order_id} cancelled after a failed checkout")
        except StorefrontError as e:
            errors.append(f"could not cancel order {order_id}: {e.message}")
        for error in errors:
            print(f"Compensation failed: {error}")
        return errors
