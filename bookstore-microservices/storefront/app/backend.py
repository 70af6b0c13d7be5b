# In file: bookstore-microservices/storefront/app/backend.py

from typing import List, Optional, Tuple

import requests

from .config import BACKEND_URL, REQUEST_TIMEOUT
from .errors import BackendError, BackendUnavailable, NotAuthenticated, NotPermitted


class BackendClient:
    """
    Thin wrapper over the hosted backend's HTTP API.
    - Every call is a single blocking request.
    - Transport failures become BackendUnavailable; non-2xx answers become
      BackendError (NotAuthenticated for 401, NotPermitted for 403).
    - `http` may be any object with a requests-style `request()` method.
    """

    def __init__(self, base_url: str = BACKEND_URL, http=None, timeout: float = REQUEST_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.http = http or requests.Session()
        self.timeout = timeout
        self.token: Optional[str] = None

    def request(self, method: str, path: str, json=None, params=None, timeout: Optional[float] = None):
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        url = f"{self.base_url}{path}"
        try:
            response = self.http.request(
                method, url, json=json, params=params, headers=headers, timeout=timeout or self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise BackendUnavailable(f"Could not reach the store ({method} {path}): {e}") from e

        if response.status_code >= 400:
            raise self._error_for(response)
        if not response.content:
            return None
        return response.json()

    @staticmethod
    def _error_for(response) -> BackendError:
        try:
            body = response.json()
            detail = body.get("detail") if isinstance(body, dict) else body
        except ValueError:
            detail = response.text
        if isinstance(detail, dict):
            message = detail.get("message") or str(detail)
        elif isinstance(detail, list):
            # FastAPI validation errors
            message = "; ".join(str(d.get("msg", d)) for d in detail) or "Invalid data. Please check your inputs"
        else:
            message = detail or f"Request failed with status {response.status_code}"

        if response.status_code == 401:
            return NotAuthenticated(message)
        if response.status_code == 403:
            return NotPermitted(message)
        return BackendError(message, status_code=response.status_code, detail=detail)

    # --- Health ---
    def health(self) -> dict:
        return self.request("GET", "/health")

    # --- Auth ---
    def sign_up(self, email: str, password: str, name: str, role: str) -> dict:
        return self.request("POST", "/auth/signup", json={"email": email, "password": password, "name": name, "role": role})

    def sign_in(self, email: str, password: str) -> dict:
        return self.request("POST", "/auth/signin", json={"email": email, "password": password})

    def sign_out(self):
        return self.request("POST", "/auth/signout")

    def get_user(self, timeout: Optional[float] = None) -> dict:
        return self.request("GET", "/auth/user", timeout=timeout)

    # --- Books ---
    def list_books(self, q: Optional[str] = None, seller_id: Optional[int] = None, offset: int = 0, limit: int = 50) -> dict:
        return self.request("GET", "/api/v1/books", params={"q": q or None, "seller_id": seller_id, "offset": offset, "limit": limit})

    def get_book(self, book_id: int) -> dict:
        return self.request("GET", f"/api/v1/books/{book_id}")

    def create_book(self, fields: dict) -> dict:
        return self.request("POST", "/api/v1/books", json=fields)

    def update_book(self, book_id: int, fields: dict) -> dict:
        return self.request("PATCH", f"/api/v1/books/{book_id}", json=fields)

    def delete_book(self, book_id: int):
        return self.request("DELETE", f"/api/v1/books/{book_id}")

    def list_reviews(self, book_id: int) -> List[dict]:
        return self.request("GET", f"/api/v1/books/{book_id}/reviews")

    def create_review(self, book_id: int, rating: int, comment: str) -> dict:
        return self.request("POST", "/api/v1/reviews", json={"book_id": book_id, "rating": rating, "comment": comment})

    # --- Cart ---
    def list_cart(self) -> List[dict]:
        return self.request("GET", "/api/v1/cart")

    def upsert_cart_item(self, book_id: int, quantity: int) -> dict:
        return self.request("PUT", "/api/v1/cart", json={"book_id": book_id, "quantity": quantity})

    def get_cart_item(self, item_id: int) -> dict:
        return self.request("GET", f"/api/v1/cart/{item_id}")

    def update_cart_item(self, item_id: int, quantity: int) -> dict:
        return self.request("PATCH", f"/api/v1/cart/{item_id}", json={"quantity": quantity})

    def delete_cart_item(self, item_id: int):
        return self.request("DELETE", f"/api/v1/cart/{item_id}")

    def clear_cart(self):
        return self.request("DELETE", "/api/v1/cart")

    # --- Orders ---
    def create_order(self, buyer_id: int, total_price: float) -> dict:
        return self.request("POST", "/api/v1/orders", json={"buyer_id": buyer_id, "total_price": total_price})

    def list_orders(self) -> List[dict]:
        return self.request("GET", "/api/v1/orders")

    def get_order(self, order_id: int) -> dict:
        return self.request("GET", f"/api/v1/orders/{order_id}")

    def insert_order_items(self, order_id: int, items: List[dict]) -> List[dict]:
        return self.request("POST", f"/api/v1/orders/{order_id}/items", json={"items": items})

    def update_order_status(self, order_id: int, status: str) -> dict:
        return self.request("PATCH", f"/api/v1/orders/{order_id}/status", json={"status": status})

    def list_seller_orders(self) -> List[dict]:
        return self.request("GET", "/api/v1/seller/orders")

    def seller_stats(self) -> dict:
        return self.request("GET", "/api/v1/seller/stats")

    # --- Addresses ---
    def list_addresses(self) -> List[dict]:
        return self.request("GET", "/api/v1/addresses")

    def create_address(self, address: str, phone_no: str) -> dict:
        return self.request("POST", "/api/v1/addresses", json={"address": address, "phone_no": phone_no})

    # --- Stock procedures ---
    def decrement_stock(self, order_id: int, book_id: int, quantity_to_deduct: int) -> dict:
        return self.request(
            "POST",
            "/api/v1/rpc/decrement_stock",
            json={"order_id": order_id, "book_id": book_id, "quantity_to_deduct": quantity_to_deduct},
        )

    def release_stock(self, order_id: int, items: List[Tuple[int, int]]) -> dict:
        """Gives back (book_id, quantity) pairs this order deducted."""
        payload = [{"book_id": book_id, "quantity": quantity} for book_id, quantity in items]
        return self.request("POST", f"/api/v1/orders/{order_id}/release", json={"items": payload})
