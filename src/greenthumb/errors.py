"""Custom exceptions for greenthumb."""


class GreenthumbError(Exception):
    """Base exception for all greenthumb errors."""

    pass


class ValidationError(GreenthumbError):
    """Raised when input has the wrong shape (empty id, bad quantity, ...)."""

    pass


# --- Not found ---


class NotFoundError(GreenthumbError):
    """Base class for missing records."""

    pass


class OrderNotFoundError(NotFoundError):
    """Raised when an order ID doesn't exist."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class PlantNotFoundError(NotFoundError):
    """Raised when a plant ID doesn't exist."""

    def __init__(self, plant_id: str):
        self.plant_id = plant_id
        super().__init__(f"Plant not found: {plant_id}")


class UserNotFoundError(NotFoundError):
    """Raised when a user ID or username doesn't exist."""

    def __init__(self, user_ref: str):
        self.user_ref = user_ref
        super().__init__(f"User not found: {user_ref}")


class CartItemNotFoundError(NotFoundError):
    """Raised when a plant is not in the shopping cart."""

    def __init__(self, plant_id: str):
        self.plant_id = plant_id
        super().__init__(f"Item not found in cart: {plant_id}")


# --- Business rules ---


class BusinessRuleError(GreenthumbError):
    """Base class for requests that are well-formed but not allowed."""

    pass


class InvalidTransitionError(BusinessRuleError):
    """Raised when the order state machine rejects a status change."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Invalid status transition from {current} to {requested}")


class InvalidStatusError(BusinessRuleError):
    """Raised when an operation requires an order in a specific status."""

    def __init__(self, order_id: str, status: str, reason: str):
        self.order_id = order_id
        self.status = status
        super().__init__(f"{reason} (order {order_id} is {status})")


class InsufficientStockError(BusinessRuleError):
    """Raised when a plant cannot cover a requested quantity."""

    def __init__(
        self,
        plant_id: str,
        requested: int,
        available: int | None = None,
        plant_name: str | None = None,
    ):
        self.plant_id = plant_id
        self.requested = requested
        self.available = available
        self.plant_name = plant_name
        msg = f"Insufficient stock for plant: {plant_name or plant_id}"
        if available is not None:
            msg = f"{msg} (requested {requested}, available {available})"
        super().__init__(msg)


class OrderNotCancellableError(BusinessRuleError):
    """Raised when cancelling an order outside Pending/Processing."""

    def __init__(self, order_id: str, status: str):
        self.order_id = order_id
        self.status = status
        super().__init__(f"Order cannot be cancelled. Current status: {status}")


class OrderNotReturnableError(BusinessRuleError):
    """Raised when returning an order that hasn't been delivered."""

    def __init__(self, order_id: str, status: str):
        self.order_id = order_id
        self.status = status
        super().__init__(f"Order cannot be returned. Current status: {status}")


class EmptyCartError(BusinessRuleError):
    """Raised when checking out an empty cart."""

    def __init__(self):
        super().__init__("Shopping cart is empty.")


class DuplicateUsernameError(BusinessRuleError):
    """Raised when registering a username that is already taken."""

    def __init__(self, username: str):
        self.username = username
        super().__init__(f"Username already exists: {username}")


class PlantInUseError(BusinessRuleError):
    """Raised when deleting a plant that order items still reference."""

    def __init__(self, plant_id: str, item_count: int):
        self.plant_id = plant_id
        self.item_count = item_count
        super().__init__(
            f"Plant {plant_id} is referenced by {item_count} order item(s) and cannot be deleted"
        )


# --- Identity ---


class AuthenticationError(GreenthumbError):
    """Raised when a username/password pair doesn't match."""

    def __init__(self, reason: str = "Invalid username or password."):
        super().__init__(reason)


class AccessDeniedError(GreenthumbError):
    """Raised when a user acts on a record they don't own."""

    def __init__(self, reason: str):
        super().__init__(reason)


# --- Storage ---


class StorageError(GreenthumbError):
    """Raised when the database fails (connectivity, SQL errors)."""

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage error during {operation}: {detail}")


class ContentionError(StorageError):
    """Raised when a transaction times out waiting for a lock. Safe to retry."""

    def __init__(self, operation: str, detail: str = "database is busy"):
        super().__init__(operation, detail)
