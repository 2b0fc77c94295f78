"""Who may see and change an order.

Requests carry the caller's id and role. Customers reach their own orders,
vendors reach orders containing at least one of their items, admins reach
everything.
"""

from enum import Enum

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.errors import NotFound, Unauthorized
from ordering.order.order import Order


class Role(Enum):
    CUSTOMER = "customer"
    VENDOR = "vendor"
    ADMIN = "admin"


def load_order(order_id) -> Order:
    try:
        return current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError as exc:
        raise NotFound("Order not found", order_id=str(order_id)) from exc


def can_view(order: Order, user_id, role: str) -> bool:
    if role == Role.ADMIN.value:
        return True
    if role == Role.VENDOR.value and order.has_items_from(user_id):
        return True
    return str(order.customer_id) == str(user_id)


def ensure_can_view(order: Order, user_id, role: str) -> None:
    if not can_view(order, user_id, role):
        raise Unauthorized("Not authorized to view this order", order_id=str(order.id))


def ensure_can_manage(order: Order, user_id, role: str) -> None:
    """Admins manage any order; vendors only orders that carry their items."""
    if role == Role.ADMIN.value:
        return
    if role == Role.VENDOR.value and order.has_items_from(user_id):
        return
    raise Unauthorized("Not authorized to update this order", order_id=str(order.id))
