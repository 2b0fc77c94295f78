"""Coupon administration: commands and handler."""

import structlog
from protean import handle
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.coupon.coupon import Coupon, normalize_code
from ordering.domain import ordering
from ordering.errors import Conflict, NotFound

logger = structlog.get_logger(__name__)


def coupon_by_code(code: str) -> Coupon | None:
    """Find a coupon by its (case-insensitive) code."""
    results = (
        current_domain.repository_for(Coupon)._dao.query.filter(code=normalize_code(code)).all().items
    )
    return results[0] if results else None


def load_coupon(coupon_id: str) -> Coupon:
    coupon = current_domain.repository_for(Coupon)._dao.query.filter(id=coupon_id).all().items
    if not coupon:
        raise NotFound("Coupon not found", coupon_id=coupon_id)
    return coupon[0]


@ordering.command(part_of="Coupon")
class CreateCoupon:
    code = String(required=True, max_length=50)
    description = String(max_length=500)
    discount_type = String(required=True, max_length=20)
    value = Float(required=True, min_value=0.0)
    min_purchase = Float(default=0.0, min_value=0.0)
    max_discount = Float(min_value=0.0)
    start_date = DateTime()
    end_date = DateTime(required=True)
    usage_limit = Integer(default=0, min_value=0)
    per_user_limit = Integer(default=0, min_value=0)
    is_active = Boolean(default=True)


@ordering.command(part_of="Coupon")
class UpdateCoupon:
    """Edit a coupon's terms. Omitted fields keep their current value."""

    coupon_id = Identifier(required=True)
    description = String(max_length=500)
    discount_type = String(max_length=20)
    value = Float(min_value=0.0)
    min_purchase = Float(min_value=0.0)
    max_discount = Float(min_value=0.0)
    start_date = DateTime()
    end_date = DateTime()
    usage_limit = Integer(min_value=0)
    per_user_limit = Integer(min_value=0)
    is_active = Boolean()


@ordering.command(part_of="Coupon")
class DeactivateCoupon:
    coupon_id = Identifier(required=True)


@ordering.command_handler(part_of=Coupon)
class ManageCouponHandler:
    @handle(CreateCoupon)
    def create_coupon(self, command):
        if coupon_by_code(command.code) is not None:
            raise Conflict("Coupon code already exists", code=normalize_code(command.code))

        coupon = Coupon.create(
            code=command.code,
            description=command.description,
            discount_type=command.discount_type,
            value=command.value,
            min_purchase=command.min_purchase,
            max_discount=command.max_discount,
            start_date=command.start_date,
            end_date=command.end_date,
            usage_limit=command.usage_limit,
            per_user_limit=command.per_user_limit,
            is_active=command.is_active if command.is_active is not None else True,
        )
        current_domain.repository_for(Coupon).add(coupon)
        logger.info("Coupon created", coupon_id=str(coupon.id), code=coupon.code)
        return str(coupon.id)

    @handle(UpdateCoupon)
    def update_coupon(self, command):
        coupon = load_coupon(command.coupon_id)
        changes = {
            field: value
            for field, value in command.to_dict().items()
            if field != "coupon_id" and value is not None and not field.startswith("_")
        }
        coupon.update_terms(**changes)
        current_domain.repository_for(Coupon).add(coupon)

    @handle(DeactivateCoupon)
    def deactivate_coupon(self, command):
        coupon = load_coupon(command.coupon_id)
        coupon.deactivate()
        current_domain.repository_for(Coupon).add(coupon)
        logger.info("Coupon deactivated", coupon_id=str(coupon.id), code=coupon.code)
