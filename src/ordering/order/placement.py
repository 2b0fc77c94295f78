"""Checkout: turn a customer's cart into an order.

``place_order`` runs the whole sequence and either returns a committed order
or raises with nothing left behind:

1. validate addresses and payment method
2. load the cart (``EmptyCart`` when there is nothing to buy)
3. check every line against the live catalogue and stock
4. re-price every line from the catalogue
5. evaluate the coupon, if any
6. compute tax, shipping and total
7. generate a tracking number
8. reserve stock for every line and claim the coupon redemption
9. in one unit of work: persist the order, clear the cart, record the
   coupon usage

Steps 1 to 7 have no side effects. Once reservations start, any failure that
keeps the order from being stored (including a failed commit) releases every
reserved line and revokes the coupon claim before the error propagates. An
error raised by an event handler after the order is stored propagates with the
order, its stock and its coupon claim left in place.
"""

from decimal import Decimal

import structlog
from catalogue.service import get_catalogue
from inventory.ledger import get_ledger
from protean.core.unit_of_work import UnitOfWork
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.cart.cart import Cart
from ordering.cart.items import load_cart
from ordering.config import get_settings
from ordering.coupon.coupon import Coupon
from ordering.coupon.evaluation import USAGE_LIMIT_REACHED, evaluate
from ordering.coupon.management import coupon_by_code
from ordering.coupon.redemptions import get_redemptions
from ordering.errors import CouponInvalid, EmptyCart, InsufficientStock, NotFound
from ordering.order.order import Address, Order, OrderPricing
from ordering.order.pricing import line_total, quote
from ordering.order.status import PaymentMethod, normalize_payment_method
from ordering.order.tracking import generate_tracking_number, tracking_number_taken

logger = structlog.get_logger(__name__)

ADDRESS_FIELDS = ("street", "city", "state", "postal_code", "country")


def validate_address(address: dict | None, label: str) -> Address:
    if not address:
        raise ValidationError({label: ["Address is required"]})

    missing = [f for f in ADDRESS_FIELDS if not str(address.get(f) or "").strip()]
    if missing:
        raise ValidationError({label: [f"Missing address fields: {', '.join(missing)}"]})

    return Address(**{f: str(address[f]).strip() for f in ADDRESS_FIELDS})


def validate_payment_method(payment_method: str | None) -> str:
    method = normalize_payment_method(payment_method)
    if method not in {m.value for m in PaymentMethod}:
        allowed = ", ".join(m.value for m in PaymentMethod)
        raise ValidationError({"payment_method": [f"Payment method must be one of: {allowed}"]})
    return method


def _price_lines(cart: Cart) -> list[dict]:
    """Re-price every cart line from the live catalogue, checking stock."""
    catalogue = get_catalogue()
    lines = []
    for item in cart.items:
        product = catalogue.get_product(str(item.product_id))
        if product is None:
            raise NotFound("Product not found", product_id=str(item.product_id), name=item.name)
        if product.stock_count < item.quantity:
            raise InsufficientStock(product.product_id, product.name, item.quantity, product.stock_count)

        unit_price = product.unit_price
        lines.append(
            {
                "product_id": product.product_id,
                "seller_id": product.seller_id,
                "name": product.name,
                "image": product.image,
                "quantity": item.quantity,
                "unit_price": unit_price,
                "selected_variant": item.selected_variant,
                "total": line_total(unit_price, item.quantity),
            }
        )
    return lines


def _evaluate_coupon(code: str, customer_id: str, items_price: float) -> tuple[Coupon, float]:
    coupon = coupon_by_code(code)
    if coupon is None:
        raise CouponInvalid("Invalid or expired coupon code", code=code)

    result = evaluate(coupon, customer_id, items_price)
    if not result.valid:
        raise CouponInvalid(result.reason, code=coupon.code)
    return coupon, result.discount


def place_order(
    customer_id,
    shipping_address: dict,
    payment_method: str,
    billing_address: dict | None = None,
    coupon_code: str | None = None,
    customer_email: str | None = None,
) -> Order:
    shipping = validate_address(shipping_address, "shipping_address")
    billing = validate_address(billing_address, "billing_address") if billing_address else shipping
    method = validate_payment_method(payment_method)

    cart = load_cart(customer_id)
    if cart is None or not cart.items:
        raise EmptyCart()

    lines = _price_lines(cart)
    items_price = float(sum(Decimal(str(line["total"])) for line in lines))

    coupon, discount = None, 0.0
    code = coupon_code or cart.coupon_code
    if code:
        coupon, discount = _evaluate_coupon(code, str(customer_id), items_price)

    settings = get_settings()
    price = quote(items_price, discount, settings)
    tracking_number = generate_tracking_number()

    ledger = get_ledger()
    redemptions = get_redemptions()
    reserved: list[tuple[str, int]] = []
    claimed = False
    order = None

    try:
        for line in lines:
            result = ledger.reserve(line["product_id"], line["quantity"])
            if not result.ok:
                raise InsufficientStock(line["product_id"], line["name"], line["quantity"], result.remaining)
            reserved.append((line["product_id"], line["quantity"]))

        if coupon is not None:
            claimed = redemptions.claim(
                coupon.code,
                str(customer_id),
                coupon.usage_limit or 0,
                coupon.per_user_limit or 0,
                used=coupon.used_count or 0,
                user_used=coupon.usage_for(customer_id),
            )
            if not claimed:
                raise CouponInvalid(USAGE_LIMIT_REACHED, code=coupon.code)
            total_used, user_used = redemptions.usage(coupon.code, str(customer_id))

        with UnitOfWork():
            order = Order.place(
                customer_id=customer_id,
                customer_email=customer_email,
                lines=lines,
                shipping_address=shipping,
                billing_address=billing,
                payment_method=method,
                pricing=OrderPricing(currency=settings.currency, **price.to_dict()),
                tracking_number=tracking_number,
                coupon_code=coupon.code if coupon else None,
            )
            current_domain.repository_for(Order).add(order)

            cart.clear()
            current_domain.repository_for(Cart).add(cart)

            if coupon is not None:
                # Redemptions committed since the coupon was evaluated are on the stored record
                stored = current_domain.repository_for(Coupon).get(coupon.id)
                stored.record_redemption(customer_id, order.id, total_used=total_used, user_used=user_used)
                current_domain.repository_for(Coupon).add(stored)
    except Exception:
        if order is not None and tracking_number_taken(tracking_number):
            # Committed; the failure came from a handler dispatched after the commit
            logger.error(
                "Order committed but post-commit processing failed",
                order_id=str(order.id),
                customer_id=str(customer_id),
                exc_info=True,
            )
            raise

        if claimed:
            redemptions.revoke(coupon.code, str(customer_id))
        for product_id, quantity in reversed(reserved):
            ledger.release(product_id, quantity)
        logger.warning(
            "Checkout rolled back",
            customer_id=str(customer_id),
            released_lines=len(reserved),
            coupon_revoked=claimed,
        )
        raise

    logger.info(
        "Order placed",
        order_id=str(order.id),
        customer_id=str(customer_id),
        tracking_number=order.tracking_number,
        total_price=order.pricing.total_price,
        status=order.status,
    )
    return order
