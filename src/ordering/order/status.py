"""Order and fulfillment status rules.

Order states move forward along ``pending -> processing -> shipped ->
delivered`` with side exits to ``cancelled``, ``returned`` and ``refunded``:

    pending     -> processing, shipped, delivered, cancelled, returned, refunded
    processing  -> shipped, delivered, cancelled, returned, refunded
    shipped     -> delivered, cancelled, returned, refunded
    delivered   -> returned, refunded
    cancelled   -> refunded
    returned    -> refunded
    refunded    (terminal)

Line items carry their own fulfillment status, advanced by the vendor who
owns them. The order status follows the items only through
``derive_status``; nothing else changes it implicitly.
"""

from enum import Enum


class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"
    REFUNDED = "refunded"


class FulfillmentStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class PaymentMethod(Enum):
    CARD = "card"
    PAYPAL = "paypal"
    GATEWAY = "gateway"
    COD = "cod"


_PAYMENT_METHOD_ALIASES = {
    "razorpay": PaymentMethod.GATEWAY.value,
    "cash-on-delivery": PaymentMethod.COD.value,
    "cash_on_delivery": PaymentMethod.COD.value,
}

# Forward progression shared by orders and items
_PROGRESSION = ["pending", "processing", "shipped", "delivered"]

_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
        OrderStatus.RETURNED,
        OrderStatus.REFUNDED,
    },
    OrderStatus.PROCESSING: {
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
        OrderStatus.RETURNED,
        OrderStatus.REFUNDED,
    },
    OrderStatus.SHIPPED: {
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
        OrderStatus.RETURNED,
        OrderStatus.REFUNDED,
    },
    OrderStatus.DELIVERED: {OrderStatus.RETURNED, OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: {OrderStatus.REFUNDED},
    OrderStatus.RETURNED: {OrderStatus.REFUNDED},
    OrderStatus.REFUNDED: set(),
}

CANCELLABLE_STATES = {OrderStatus.PENDING, OrderStatus.PROCESSING, OrderStatus.SHIPPED}

# Orders in these states no longer accept item fulfillment updates
CLOSED_STATES = {OrderStatus.CANCELLED, OrderStatus.RETURNED, OrderStatus.REFUNDED}

# Item statuses a vendor may set through the fulfillment operation
FULFILLABLE_ITEM_STATES = {
    FulfillmentStatus.PROCESSING,
    FulfillmentStatus.SHIPPED,
    FulfillmentStatus.DELIVERED,
}

# Entering one of these returns the order's stock to the ledger
STOCK_RELEASING_STATES = {OrderStatus.CANCELLED, OrderStatus.RETURNED}


def normalize_payment_method(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip().lower()
    return _PAYMENT_METHOD_ALIASES.get(value, value)


def rank(status: str) -> int:
    """Position on the forward progression, or -1 for side-exit states."""
    try:
        return _PROGRESSION.index(status)
    except ValueError:
        return -1


def can_transition(current: str, target: str) -> bool:
    return OrderStatus(target) in _VALID_TRANSITIONS[OrderStatus(current)]


def derive_status(item_statuses: list[str], current: str) -> str:
    """Order status implied by its items' fulfillment statuses.

    All items delivered makes the order delivered; all items at least shipped
    makes it shipped unless it is already further along. Any other mix leaves
    ``current`` untouched, as do orders that are cancelled, returned or
    refunded.
    """
    if not item_statuses or OrderStatus(current) in CLOSED_STATES:
        return current

    if all(s == FulfillmentStatus.DELIVERED.value for s in item_statuses):
        return OrderStatus.DELIVERED.value

    shipped_rank = rank(FulfillmentStatus.SHIPPED.value)
    if all(rank(s) >= shipped_rank for s in item_statuses) and rank(current) < shipped_rank:
        return OrderStatus.SHIPPED.value

    return current
