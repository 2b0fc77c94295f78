"""Read-side views of orders.

Orders are served straight from the aggregate. Vendors get a projection that
keeps only their own items and a ``vendorSubtotal``; everyone else sees the
whole order.
"""

from datetime import timedelta
from decimal import Decimal

from protean.utils.globals import current_domain

from ordering.errors import NotFound
from ordering.order.access import Role
from ordering.order.order import Order
from ordering.order.pricing import to_cents

EXPECTED_DELIVERY_DAYS = 7


def _iso(value):
    return value.isoformat() if value else None


def _address(address) -> dict | None:
    if address is None:
        return None
    return {
        "street": address.street,
        "city": address.city,
        "state": address.state,
        "postal_code": address.postal_code,
        "country": address.country,
    }


def item_to_dict(item) -> dict:
    return {
        "id": str(item.id),
        "product_id": str(item.product_id),
        "seller_id": str(item.seller_id),
        "name": item.name,
        "image": item.image,
        "quantity": item.quantity,
        "unit_price": item.unit_price,
        "selected_variant": item.selected_variant,
        "total": item.total,
        "fulfillment_status": item.fulfillment_status,
        "tracking_info": item.tracking_info,
        "shipped_at": _iso(item.shipped_at),
        "delivered_at": _iso(item.delivered_at),
    }


def order_to_dict(order: Order, items=None) -> dict:
    pricing = order.pricing
    return {
        "id": str(order.id),
        "customer_id": str(order.customer_id),
        "customer_email": order.customer_email,
        "items": [item_to_dict(item) for item in (order.ordered_items if items is None else items)],
        "shipping_address": _address(order.shipping_address),
        "billing_address": _address(order.billing_address),
        "payment_method": order.payment_method,
        "items_price": pricing.items_price,
        "tax_price": pricing.tax_price,
        "shipping_price": pricing.shipping_price,
        "discount_amount": pricing.discount_amount,
        "total_price": pricing.total_price,
        "currency": pricing.currency,
        "coupon_code": order.coupon_code,
        "is_paid": bool(order.is_paid),
        "paid_at": _iso(order.paid_at),
        "status": order.status,
        "status_history": [
            {
                "status": entry.status,
                "note": entry.note,
                "changed_by": entry.changed_by,
                "updated_at": _iso(entry.updated_at),
            }
            for entry in order.history
        ],
        "tracking_number": order.tracking_number,
        "notes": order.notes,
        "refund_required": bool(order.refund_required),
        "created_at": _iso(order.created_at),
        "updated_at": _iso(order.updated_at),
        "delivered_at": _iso(order.delivered_at),
        "cancelled_at": _iso(order.cancelled_at),
    }


def vendor_view(order: Order, seller_id) -> dict:
    items = order.items_for_seller(seller_id)
    view = order_to_dict(order, items=items)
    view["vendor_subtotal"] = float(to_cents(sum(Decimal(str(item.total)) for item in items)))
    return view


def view_for(order: Order, user_id, role: str) -> dict:
    if role == Role.VENDOR.value and str(order.customer_id) != str(user_id):
        return vendor_view(order, user_id)
    return order_to_dict(order)


def tracking_view(tracking_number: str) -> dict:
    orders = (
        current_domain.repository_for(Order)._dao.query.filter(tracking_number=tracking_number).all().items
    )
    if not orders:
        raise NotFound("Order not found", tracking_number=tracking_number)

    order = orders[0]
    expected = order.created_at + timedelta(days=EXPECTED_DELIVERY_DAYS) if order.created_at else None
    return {
        "tracking_number": order.tracking_number,
        "status": order.status,
        "status_history": [
            {"status": entry.status, "note": entry.note, "updated_at": _iso(entry.updated_at)}
            for entry in order.history
        ],
        "items": [
            {
                "name": item.name,
                "quantity": item.quantity,
                "fulfillment_status": item.fulfillment_status,
                "tracking_info": item.tracking_info,
            }
            for item in order.ordered_items
        ],
        "shipping_city": order.shipping_address.city if order.shipping_address else None,
        "created_at": _iso(order.created_at),
        "delivered_at": _iso(order.delivered_at),
        "expected_delivery": _iso(expected),
    }


def _page(query, page: int, limit: int):
    page = max(1, page)
    limit = max(1, limit)
    result = query.order_by("-created_at").limit(limit).offset((page - 1) * limit).all()
    return result.items, result.total


def _paginated(orders, total: int, page: int, limit: int) -> dict:
    limit = max(1, limit)
    return {
        "orders": orders,
        "page": max(1, page),
        "limit": limit,
        "total": total,
        "pages": (total + limit - 1) // limit,
    }


def customer_orders(customer_id, page: int = 1, limit: int = 10) -> dict:
    query = current_domain.repository_for(Order)._dao.query.filter(customer_id=str(customer_id))
    orders, total = _page(query, page, limit)
    return _paginated([order_to_dict(o) for o in orders], total, page, limit)


def all_orders(page: int = 1, limit: int = 20, status: str | None = None) -> dict:
    query = current_domain.repository_for(Order)._dao.query
    if status:
        query = query.filter(status=status)
    orders, total = _page(query, page, limit)
    return _paginated([order_to_dict(o) for o in orders], total, page, limit)


def vendor_orders(seller_id, page: int = 1, limit: int = 20) -> dict:
    """Projections of the orders that contain at least one of the vendor's items."""
    query = current_domain.repository_for(Order)._dao.query.filter(seller_refs__contains=f"|{seller_id}|")
    orders, total = _page(query, page, limit)
    return _paginated([vendor_view(o, seller_id) for o in orders], total, page, limit)
