"""Error taxonomy for the ordering engine.

Every failure carries a machine-readable ``kind`` and a human-readable
``message``. The class decides how the failure is surfaced (HTTP status,
retryability); the kind tells the caller exactly what went wrong.
"""


class OrderingError(Exception):
    """Base class for all ordering failures."""

    status_code = 500

    def __init__(self, kind: str, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}

    def __repr__(self):
        return f"{type(self).__name__}(kind={self.kind!r}, message={self.message!r})"


class ValidationError(OrderingError):
    """Malformed input: empty cart, unknown status, bad arguments."""

    status_code = 400


class NotFoundError(OrderingError):
    """Missing cart line, order or product."""

    status_code = 404


class AuthorizationError(OrderingError):
    """The actor is not the buyer or a seller of the resource."""

    status_code = 403


class ConflictError(OrderingError):
    """Insufficient stock, unavailable product, invalid transition, duplicate number."""

    status_code = 409


class TransientStoreError(OrderingError):
    """Retryable I/O failure against a backing store."""

    status_code = 503


# Shorthand constructors for the kinds raised in more than one place
def empty_cart(user_id):
    return ValidationError("EmptyCart", f"Cart for user {user_id} is empty")


def invalid_status(status):
    return ValidationError("InvalidStatus", f"Unknown order status: {status!r}")


def invalid_transition(current, target):
    return ConflictError("InvalidTransition", f"Cannot move from {current} to {target}")


def order_not_found(order_id):
    return NotFoundError("OrderNotFound", f"Order {order_id} not found")


def product_not_found(product_id):
    return NotFoundError("ProductNotFound", f"Product {product_id} not found")


def product_unavailable(product_id):
    return ConflictError("ProductUnavailable", f"Product {product_id} is not available")


def insufficient_stock(product_id, requested):
    return ConflictError(
        "InsufficientStock",
        f"Insufficient stock for product {product_id} (requested {requested})",
    )


def unauthorized(message="Not authorized to access this order"):
    return AuthorizationError("Unauthorized", message)
