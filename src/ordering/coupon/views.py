"""Read-side views of coupons for administrators."""

from protean.utils.globals import current_domain

from ordering.coupon.coupon import Coupon


def _iso(value):
    return value.isoformat() if value else None


def coupon_to_dict(coupon: Coupon) -> dict:
    return {
        "id": str(coupon.id),
        "code": coupon.code,
        "description": coupon.description,
        "discount_type": coupon.discount_type,
        "value": coupon.value,
        "min_purchase": coupon.min_purchase,
        "max_discount": coupon.max_discount,
        "start_date": _iso(coupon.start_date),
        "end_date": _iso(coupon.end_date),
        "is_active": bool(coupon.is_active),
        "usage_limit": coupon.usage_limit,
        "used_count": coupon.used_count,
        "per_user_limit": coupon.per_user_limit,
        "usages": [
            {"user_id": str(u.user_id), "used_count": u.used_count, "last_used": _iso(u.last_used)}
            for u in coupon.usages
        ],
    }


def list_coupons(active_only: bool = False) -> list[dict]:
    query = current_domain.repository_for(Coupon)._dao.query
    if active_only:
        query = query.filter(is_active=True)
    return [coupon_to_dict(c) for c in query.order_by("code").all().items]
