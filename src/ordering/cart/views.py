"""Read-side view of a cart."""

from ordering.cart.cart import Cart


def cart_to_dict(cart: Cart | None, customer_id=None) -> dict:
    if cart is None:
        return {
            "customer_id": str(customer_id) if customer_id is not None else None,
            "items": [],
            "total_items": 0,
            "subtotal": 0.0,
            "discount_amount": 0.0,
            "total_price": 0.0,
            "coupon_code": None,
        }

    items = sorted(cart.items, key=lambda item: item.added_at.timestamp() if item.added_at else 0)
    return {
        "customer_id": str(cart.customer_id),
        "items": [
            {
                "id": str(item.id),
                "product_id": str(item.product_id),
                "name": item.name,
                "image": item.image,
                "quantity": item.quantity,
                "selected_variant": item.variant,
                "unit_price": item.unit_price,
                "line_total": item.line_total,
            }
            for item in items
        ],
        "total_items": cart.total_items,
        "subtotal": cart.subtotal,
        "discount_amount": cart.discount_amount or 0.0,
        "total_price": cart.total_price,
        "coupon_code": cart.coupon_code,
    }
