"""Order payment: gateway order creation and signed confirmation.

A customer first asks for a gateway order (the amount is the order total in
minor units), pays on the gateway, then submits the gateway's signed
confirmation. The signature is an HMAC over ``"<gateway order>|<payment>"``
keyed with the shared gateway secret; an order is marked paid at most once.
"""

import structlog
from payments.gateway import get_gateway
from payments.signature import verify
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.config import get_settings
from ordering.domain import ordering
from ordering.errors import AlreadyPaid, SignatureMismatch, Unauthorized
from ordering.order.access import Role, load_order
from ordering.order.order import Order
from ordering.order.pricing import to_cents

logger = structlog.get_logger(__name__)


def _ensure_owner(order, customer_id, role) -> None:
    if role != Role.ADMIN.value and str(order.customer_id) != str(customer_id):
        raise Unauthorized("Not authorized to pay for this order", order_id=str(order.id))


def minor_units(amount: float) -> int:
    return int(to_cents(amount) * 100)


@ordering.command(part_of="Order")
class CreateGatewayOrder:
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    role = String(default=Role.CUSTOMER.value, max_length=20)


@ordering.command(part_of="Order")
class VerifyPayment:
    order_id = Identifier(required=True)
    gateway_order_id = String(required=True, max_length=255)
    gateway_payment_id = String(required=True, max_length=255)
    signature = String(required=True, max_length=255)
    email_address = String(max_length=255)
    customer_id = Identifier(required=True)
    role = String(default=Role.CUSTOMER.value, max_length=20)


@ordering.command_handler(part_of=Order)
class OrderPaymentHandler:
    @handle(CreateGatewayOrder)
    def create_gateway_order(self, command):
        order = load_order(command.order_id)
        _ensure_owner(order, command.customer_id, command.role)
        if order.is_paid:
            raise AlreadyPaid(str(order.id))

        gateway_order = get_gateway().create_order(
            amount=minor_units(order.pricing.total_price),
            currency=order.pricing.currency or get_settings().currency,
            receipt=f"order_{order.id}",
        )
        order.record_gateway_order(gateway_order.gateway_order_id, gateway_order.amount, gateway_order.currency)
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Gateway order created",
            order_id=str(order.id),
            gateway_order_id=gateway_order.gateway_order_id,
            amount=gateway_order.amount,
        )
        return {
            "gateway_order_id": gateway_order.gateway_order_id,
            "amount": gateway_order.amount,
            "currency": gateway_order.currency,
            "receipt": gateway_order.receipt,
        }

    @handle(VerifyPayment)
    def verify_payment(self, command):
        order = load_order(command.order_id)
        _ensure_owner(order, command.customer_id, command.role)
        if order.is_paid:
            raise AlreadyPaid(str(order.id))

        if order.gateway_order_id and order.gateway_order_id != command.gateway_order_id:
            logger.warning("Gateway order mismatch", order_id=str(order.id))
            raise SignatureMismatch("Payment does not belong to this order's gateway order", order_id=str(order.id))

        secret = get_settings().payment_gateway_secret
        if not verify(command.gateway_order_id, command.gateway_payment_id, command.signature, secret):
            logger.warning("Payment signature mismatch", order_id=str(order.id))
            raise SignatureMismatch(order_id=str(order.id))

        order.mark_paid(
            payment_id=command.gateway_payment_id,
            gateway_order_id=command.gateway_order_id,
            signature=command.signature,
            email_address=command.email_address,
        )
        current_domain.repository_for(Order).add(order)

        logger.info("Payment verified", order_id=str(order.id), payment_id=command.gateway_payment_id)
        return order


def payment_status(order: Order) -> dict:
    result = order.payment_result
    return {
        "order_id": str(order.id),
        "is_paid": bool(order.is_paid),
        "paid_at": order.paid_at.isoformat() if order.paid_at else None,
        "payment_method": order.payment_method,
        "status": order.status,
        "total_price": order.pricing.total_price,
        "amount_due": 0.0 if order.is_paid else order.pricing.total_price,
        "gateway_order_id": order.gateway_order_id,
        "payment_result": (
            {
                "payment_id": result.payment_id,
                "status": result.status,
                "update_time": result.update_time.isoformat() if result.update_time else None,
                "email_address": result.email_address,
            }
            if result
            else None
        ),
    }
