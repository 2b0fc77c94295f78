"""Order cancellation and admin/vendor status changes: commands and handler.

Both operations may return the order's stock to the ledger. The handler only
flags the order (``mark_stock_released``); the ledger itself is credited
after the change commits, by ``ordering.order.stock``.
"""

import json

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.errors import Unauthorized
from ordering.order.access import Role, ensure_can_manage, load_order
from ordering.order.order import Order

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(max_length=500)
    cancelled_by = Identifier(required=True)
    role = String(default=Role.CUSTOMER.value, max_length=20)


@ordering.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    note = String(max_length=1000)
    changed_by = Identifier(required=True)
    role = String(required=True, max_length=20)
    tracking_info = Text()  # JSON: {"carrier", "tracking_number", "tracking_url"}


@ordering.command_handler(part_of=Order)
class OrderStatusHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        order = load_order(command.order_id)
        if command.role != Role.ADMIN.value and str(order.customer_id) != str(command.cancelled_by):
            raise Unauthorized("Not authorized to cancel this order", order_id=str(order.id))

        if order.cancel(reason=command.reason, cancelled_by=str(command.cancelled_by)):
            order.mark_stock_released()
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Order cancelled",
            order_id=str(order.id),
            cancelled_by=str(command.cancelled_by),
            refund_required=order.refund_required,
        )
        return order

    @handle(UpdateOrderStatus)
    def update_order_status(self, command):
        order = load_order(command.order_id)
        ensure_can_manage(order, command.changed_by, command.role)

        tracking_info = json.loads(command.tracking_info) if command.tracking_info else None
        previous = order.status
        if order.update_status(
            command.status,
            note=command.note,
            changed_by=str(command.changed_by),
            tracking_info=tracking_info,
        ):
            order.mark_stock_released()
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Order status updated",
            order_id=str(order.id),
            previous_status=previous,
            status=order.status,
            changed_by=str(command.changed_by),
        )
        return order
