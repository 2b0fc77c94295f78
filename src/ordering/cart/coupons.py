"""Cart coupon management: commands and handler."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.cart.cart import Cart
from ordering.cart.items import load_cart
from ordering.coupon.evaluation import evaluate
from ordering.coupon.management import coupon_by_code
from ordering.domain import ordering
from ordering.errors import CouponInvalid, EmptyCart, NotFound


@ordering.command(part_of="Cart")
class ApplyCouponToCart:
    """Evaluate a coupon against the cart subtotal and attach it."""

    customer_id = Identifier(required=True)
    coupon_code = String(required=True, max_length=50)


@ordering.command(part_of="Cart")
class RemoveCouponFromCart:
    customer_id = Identifier(required=True)


@ordering.command_handler(part_of=Cart)
class CartCouponHandler:
    @handle(ApplyCouponToCart)
    def apply_coupon(self, command):
        cart = load_cart(command.customer_id)
        if cart is None or not cart.items:
            raise EmptyCart()

        coupon = coupon_by_code(command.coupon_code)
        if coupon is None:
            raise CouponInvalid("Invalid or expired coupon code", code=command.coupon_code)

        result = evaluate(coupon, str(command.customer_id), cart.subtotal)
        if not result.valid:
            raise CouponInvalid(result.reason, code=coupon.code)

        cart.apply_coupon(coupon.code, result.discount)
        current_domain.repository_for(Cart).add(cart)
        return result.discount

    @handle(RemoveCouponFromCart)
    def remove_coupon(self, command):
        cart = load_cart(command.customer_id)
        if cart is None:
            raise NotFound("Cart not found", customer_id=str(command.customer_id))
        cart.remove_coupon()
        current_domain.repository_for(Cart).add(cart)
