"""Vendor item fulfillment: command and handler.

Vendors move their own line items through processing, shipped and
delivered; admins may move any item. The order status is re-derived from
the items after every batch.
"""

import json

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.access import Role, ensure_can_manage, load_order
from ordering.order.order import Order

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class FulfillOrderItems:
    order_id = Identifier(required=True)
    item_ids = Text(required=True)  # JSON list of item ids
    status = String(required=True, max_length=20)
    tracking_info = Text()  # JSON: {"carrier", "tracking_number", "tracking_url"}
    fulfilled_by = Identifier(required=True)
    role = String(required=True, max_length=20)


@ordering.command_handler(part_of=Order)
class FulfillOrderItemsHandler:
    @handle(FulfillOrderItems)
    def fulfill_order_items(self, command):
        order = load_order(command.order_id)
        ensure_can_manage(order, command.fulfilled_by, command.role)

        order.fulfill_items(
            item_ids=json.loads(command.item_ids),
            status=command.status,
            tracking_info=json.loads(command.tracking_info) if command.tracking_info else None,
            seller_id=None if command.role == Role.ADMIN.value else str(command.fulfilled_by),
            fulfilled_by=str(command.fulfilled_by),
        )
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Order items fulfilled",
            order_id=str(order.id),
            fulfillment_status=command.status,
            order_status=order.status,
            fulfilled_by=str(command.fulfilled_by),
        )
        return order
