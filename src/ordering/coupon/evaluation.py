"""Coupon evaluation: decide whether a coupon applies and how much it takes off.

``evaluate`` is a pure function of the coupon record, the customer and the
cart total. Checks run in a fixed order and stop at the first failure:

1. the coupon is active
2. now falls inside ``[start_date, end_date]``
3. the global usage cap is not exhausted
4. the cart total meets the minimum purchase
5. the customer's own usage cap is not exhausted

It never mutates anything; usage is recorded by checkout once the order exists.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal

from ordering.coupon.coupon import Coupon, DiscountType, as_utc

INACTIVE = "Coupon is inactive"
OUT_OF_WINDOW = "Coupon is expired or not yet active"
USAGE_LIMIT_REACHED = "Coupon usage limit has been reached"
USER_LIMIT_REACHED = "You have reached the usage limit for this coupon"
APPLIED = "Coupon applied successfully"


def minimum_purchase_message(min_purchase: float) -> str:
    return f"Minimum purchase amount of ${min_purchase:g} required"


@dataclass(frozen=True)
class CouponEvaluation:
    valid: bool
    discount: float = 0.0
    reason: str = ""


def _cents(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def compute_discount(coupon: Coupon, cart_total: float) -> float:
    """Discount for an eligible coupon, always within ``[0, cart_total]``."""
    total = Decimal(str(cart_total))
    value = Decimal(str(coupon.value or 0))

    if coupon.discount_type == DiscountType.PERCENTAGE.value:
        discount = total * value / Decimal("100")
        if coupon.max_discount:
            discount = min(discount, Decimal(str(coupon.max_discount)))
    else:
        discount = min(value, total)

    discount = max(Decimal("0"), min(discount, total))
    return float(_cents(discount))


def evaluate(coupon: Coupon, user_id: str | None, cart_total: float, now: datetime | None = None) -> CouponEvaluation:
    now = as_utc(now) if now else datetime.now(UTC)

    if not coupon.is_active:
        return CouponEvaluation(valid=False, reason=INACTIVE)

    if now < as_utc(coupon.start_date) or now > as_utc(coupon.end_date):
        return CouponEvaluation(valid=False, reason=OUT_OF_WINDOW)

    if coupon.usage_limit and (coupon.used_count or 0) >= coupon.usage_limit:
        return CouponEvaluation(valid=False, reason=USAGE_LIMIT_REACHED)

    if cart_total < (coupon.min_purchase or 0):
        return CouponEvaluation(valid=False, reason=minimum_purchase_message(coupon.min_purchase))

    if user_id and coupon.per_user_limit and coupon.usage_for(user_id) >= coupon.per_user_limit:
        return CouponEvaluation(valid=False, reason=USER_LIMIT_REACHED)

    return CouponEvaluation(valid=True, discount=compute_discount(coupon, cart_total), reason=APPLIED)
