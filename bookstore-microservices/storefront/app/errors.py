"""
Errors raised by the storefront.

Every error carries a human-readable message that can be shown to the user
as-is, and the name of the step that failed.
"""
from typing import List, Optional


class StorefrontError(Exception):
    step: Optional[str] = None
    default_message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None, step: Optional[str] = None):
        self.message = message or self.default_message
        if step is not None:
            self.step = step
        # Filled in by the order workflow when a checkout fails after the order row exists.
        self.order_id: Optional[int] = None
        self.compensation_errors: List[str] = []
        super().__init__(self.message)


class NotAuthenticated(StorefrontError):
    default_message = "User not authenticated"


class NotPermitted(StorefrontError):
    default_message = "You do not have permission to do this"


class ValidationFailed(StorefrontError):
    default_message = "Please fill in all fields"


class BackendUnavailable(StorefrontError):
    """The backend could not be reached (connection refused, timeout, DNS...)."""
    default_message = "Network error. Please check your connection"


class BackendError(StorefrontError):
    """The backend answered with a non-2xx status."""

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None, detail=None, step: Optional[str] = None):
        super().__init__(message, step)
        self.status_code = status_code
        self.detail = detail


class InsufficientStock(StorefrontError):
    step = "verify_stock"

    def __init__(self, title: Optional[str] = None, available: Optional[int] = None, step: Optional[str] = None):
        self.title = title
        self.available = available
        if title is None:
            message = "Not enough stock available"
        else:
            message = f"Not enough stock for {title}. Only {available} available."
        super().__init__(message, step)


class OrderCreationFailed(StorefrontError):
    step = "create_order"
    default_message = "Failed to create the order. Please try again."


class OrderItemsFailed(StorefrontError):
    step = "insert_items"
    default_message = "Failed to record the order items."


class StockUpdateFailed(StorefrontError):
    step = "decrement_stock"
    default_message = "Failed to update stock for the order."


class AddressPersistFailed(StorefrontError):
    step = "save_address"
    default_message = "Your order was placed, but the address could not be saved."


class CartClearFailed(StorefrontError):
    step = "clear_cart"
    default_message = "Your order was placed, but the cart could not be cleared."


class InvalidStatusTransition(StorefrontError):
    default_message = "That status change is not allowed"


class CheckoutInProgress(StorefrontError):
    default_message = "Your order is already being placed"
