"""Coupon aggregate (CQRS): an admin-managed discount rule.

A coupon has an activity window, a global usage cap and a per-customer cap
(0 means unlimited for both). ``used_count`` and ``usages`` are the
persisted record of redemptions; the atomic claim that enforces the caps
under concurrency lives in ``ordering.coupon.redemptions``.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String

from ordering.coupon.events import CouponCreated, CouponDeactivated, CouponRedeemed, CouponUpdated
from ordering.domain import ordering


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


_EDITABLE_FIELDS = (
    "description",
    "discount_type",
    "value",
    "min_purchase",
    "max_discount",
    "start_date",
    "end_date",
    "is_active",
    "usage_limit",
    "per_user_limit",
)


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@ordering.entity(part_of="Coupon")
class CouponUsage:
    user_id = Identifier(required=True)
    used_count = Integer(default=0, min_value=0)
    last_used = DateTime()


@ordering.aggregate
class Coupon:
    code = String(required=True, max_length=50, unique=True)
    description = String(max_length=500)
    discount_type = String(required=True, choices=DiscountType)
    value = Float(required=True, min_value=0.0)
    min_purchase = Float(default=0.0, min_value=0.0)
    max_discount = Float(min_value=0.0)
    start_date = DateTime(required=True)
    end_date = DateTime(required=True)
    is_active = Boolean(default=True)
    usage_limit = Integer(default=0, min_value=0)
    used_count = Integer(default=0, min_value=0)
    per_user_limit = Integer(default=0, min_value=0)
    usages = HasMany(CouponUsage)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def window_must_be_ordered(self):
        if self.start_date and self.end_date and as_utc(self.end_date) < as_utc(self.start_date):
            raise ValidationError({"end_date": ["End date must not be before the start date"]})

    @invariant.post
    def percentage_must_not_exceed_hundred(self):
        if self.discount_type == DiscountType.PERCENTAGE.value and self.value is not None and self.value > 100:
            raise ValidationError({"value": ["A percentage discount cannot exceed 100"]})

    @invariant.post
    def usage_must_respect_global_limit(self):
        if self.usage_limit and self.used_count > self.usage_limit:
            raise ValidationError({"used_count": ["Usage count exceeds the usage limit"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        code,
        discount_type,
        value,
        end_date,
        start_date=None,
        description=None,
        min_purchase=0.0,
        max_discount=None,
        usage_limit=0,
        per_user_limit=0,
        is_active=True,
    ):
        now = datetime.now(UTC)
        coupon = cls(
            code=normalize_code(code),
            description=description,
            discount_type=discount_type,
            value=value,
            min_purchase=min_purchase or 0.0,
            max_discount=max_discount,
            start_date=start_date or now,
            end_date=end_date,
            is_active=is_active,
            usage_limit=usage_limit or 0,
            per_user_limit=per_user_limit or 0,
            used_count=0,
            created_at=now,
            updated_at=now,
        )
        coupon.raise_(
            CouponCreated(
                coupon_id=str(coupon.id),
                code=coupon.code,
                discount_type=coupon.discount_type,
                value=coupon.value,
                created_at=now,
            )
        )
        return coupon

    # -------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------
    def update_terms(self, **changes):
        """Edit the rule; usage counters and the code are never editable."""
        unknown = set(changes) - set(_EDITABLE_FIELDS)
        if unknown:
            raise ValidationError({field: ["Field cannot be edited"] for field in sorted(unknown)})

        with atomic_change(self):
            for field, value in changes.items():
                setattr(self, field, value)
            self.updated_at = datetime.now(UTC)

        self.raise_(CouponUpdated(coupon_id=str(self.id), code=self.code, changed_fields=",".join(sorted(changes))))

    def deactivate(self):
        if not self.is_active:
            return
        self.is_active = False
        self.updated_at = datetime.now(UTC)
        self.raise_(CouponDeactivated(coupon_id=str(self.id), code=self.code))

    # -------------------------------------------------------------------
    # Usage
    # -------------------------------------------------------------------
    def usage_for(self, user_id) -> int:
        usage = next((u for u in self.usages if str(u.user_id) == str(user_id)), None)
        return usage.used_count if usage else 0

    def record_redemption(self, user_id, order_id, total_used=None, user_used=None):
        """Mirror a claimed redemption onto the coupon record.

        ``total_used`` and ``user_used`` are the redemption counters right after
        the claim; the record never falls behind them.
        """
        now = datetime.now(UTC)
        usage = next((u for u in self.usages if str(u.user_id) == str(user_id)), None)
        with atomic_change(self):
            self.used_count = max((self.used_count or 0) + 1, total_used or 0)
            if usage is None:
                self.add_usages(CouponUsage(user_id=str(user_id), used_count=max(1, user_used or 0), last_used=now))
            else:
                usage.used_count = max(usage.used_count + 1, user_used or 0)
                usage.last_used = now
            self.updated_at = now
        self.raise_(
            CouponRedeemed(
                coupon_id=str(self.id),
                code=self.code,
                user_id=str(user_id),
                order_id=str(order_id),
                used_count=self.used_count,
            )
        )


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()
