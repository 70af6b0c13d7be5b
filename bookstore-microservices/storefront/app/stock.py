from typing import Optional

from .backend import BackendClient
from .errors import BackendError, BackendUnavailable, InsufficientStock, StorefrontError


def read_book(client: BackendClient, book_id: int) -> Optional[dict]:
    """Current book row, or None when the backend cannot confirm it."""
    try:
        return client.get_book(book_id)
    except StorefrontError as e:
        print(f"Error checking stock for book {book_id}: {e}")
        return None


def check_stock(client: BackendClient, book_id: int, quantity: int) -> bool:
    """
    True iff the book's current stock covers `quantity`.
    A failed read counts as insufficient stock.
    """
    book = read_book(client, book_id)
    if book is None:
        return False
    return book["stock"] >= quantity


def verify_stock(client: BackendClient, book_id: int, quantity: int, title: Optional[str] = None) -> dict:
    """
    Re-reads the book and raises InsufficientStock if it cannot cover `quantity`.
    Returns the fresh row so the caller can capture its current price.
    - A book that no longer exists has nothing available.
    - A transport failure is raised as BackendUnavailable, not as a stock shortfall.
    """
    try:
        book = client.get_book(book_id)
    except BackendUnavailable as e:
        e.step = "verify_stock"
        raise
    except BackendError as e:
        if e.status_code == 404:
            raise InsufficientStock(title or f"book #{book_id}", 0) from e
        e.step = "verify_stock"
        raise

    if book["stock"] < quantity:
        raise InsufficientStock(book["title"], book["stock"])
    return book
