"""Typed failures raised by the ordering context.

Malformed input is reported with Protean's ``ValidationError``; everything
else a caller can act on is one of the errors below. Each carries a stable
``code`` and structured ``details`` so the API layer can render it without
inspecting messages.
"""


class StorefrontError(Exception):
    code = "storefront_error"

    def __init__(self, message: str, **details) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message, "details": self.details}


class NotFound(StorefrontError):
    code = "not_found"


class EmptyCart(StorefrontError):
    code = "empty_cart"

    def __init__(self, message: str = "Cart is empty", **details) -> None:
        super().__init__(message, **details)


class InsufficientStock(StorefrontError):
    code = "insufficient_stock"

    def __init__(self, product_id: str, name: str | None, requested: int, available: int) -> None:
        label = name or product_id
        super().__init__(
            f"Insufficient stock for {label}: requested {requested}, available {available}",
            product_id=product_id,
            name=name,
            requested=requested,
            available=available,
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class CouponInvalid(StorefrontError):
    code = "coupon_invalid"

    def __init__(self, reason: str, **details) -> None:
        super().__init__(reason, **details)
        self.reason = reason


class InvalidTransition(StorefrontError):
    code = "invalid_transition"

    def __init__(self, message: str, current_status: str, target_status: str | None = None) -> None:
        super().__init__(message, current_status=current_status, target_status=target_status)
        self.current_status = current_status
        self.target_status = target_status


class SignatureMismatch(StorefrontError):
    code = "signature_mismatch"

    def __init__(self, message: str = "Payment signature verification failed", **details) -> None:
        super().__init__(message, **details)


class Unauthorized(StorefrontError):
    code = "unauthorized"


class Conflict(StorefrontError):
    code = "conflict"


class AlreadyPaid(Conflict):
    code = "already_paid"

    def __init__(self, order_id: str) -> None:
        super().__init__("Order is already paid", order_id=order_id)


class Unauthenticated(StorefrontError):
    code = "unauthenticated"

    def __init__(self, message: str = "Authentication required", **details) -> None:
        super().__init__(message, **details)
