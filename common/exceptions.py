"""
Promise Atelier - Custom Exceptions
====================================
Business-level exceptions that can be caught and converted to HTTP responses.
"""

from typing import List, Optional


class ShopError(Exception):
    """Base exception for all business logic errors."""
    status_code = 400

    def __init__(self, message: str = "Something went wrong."):
        self.message = message
        super().__init__(self.message)


class AuthenticationError(ShopError):
    """Raised when authentication fails."""
    status_code = 401


class AuthorizationError(ShopError):
    """Raised when user lacks permission."""
    status_code = 403


class NotFoundError(ShopError):
    """Raised when a requested resource doesn't exist."""
    status_code = 404


class ValidationError(ShopError):
    """Raised for request values that are well-formed but not acceptable."""
    status_code = 422


class InsufficientStockError(ShopError):
    """Raised when a reservation asks for more units than the product has left."""
    status_code = 409

    def __init__(self, product_name: str = "", available: Optional[int] = None):
        self.product_name = product_name
        self.available = available
        if product_name and available is not None:
            msg = f"Not enough stock for {product_name} (available: {available})."
        elif product_name:
            msg = f"Not enough stock for {product_name}."
        else:
            msg = "Not enough stock."
        super().__init__(msg)


class EmptySelectionError(ShopError):
    """Raised on checkout when no cart line is selected."""
    status_code = 400

    def __init__(self):
        super().__init__("Select at least one item to check out.")


class StockConflictError(ShopError):
    """
    Raised on checkout when one or more selected lines can no longer be covered.
    `conflicts` names every offending product so the shopper can adjust the cart.
    """
    status_code = 409

    def __init__(self, conflicts: List[dict]):
        self.conflicts = conflicts
        names = ", ".join(c["name"] for c in conflicts)
        super().__init__(f"Stock changed for: {names}. Adjust your cart and try again.")


class InvalidTransitionError(ShopError):
    """Raised only in strict mode, for a status change outside the allowed table."""
    status_code = 409

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move order from {current} to {target}.")


class OrderNotCancellableError(ShopError):
    """Raised when a customer tries to cancel an order past the confirmed stage."""
    status_code = 409

    def __init__(self, status: str):
        self.status = status
        super().__init__(
            "This order cannot be cancelled. Only pending or confirmed orders can be cancelled."
        )

