"""Returns an order's stock to the inventory ledger once release is committed."""

import json

import structlog
from inventory.ledger import get_ledger
from protean.utils.mixins import handle

from ordering.domain import ordering
from ordering.order.events import OrderStockReleased
from ordering.order.order import Order

logger = structlog.get_logger(__name__)


@ordering.event_handler(part_of=Order)
class OrderStockEventHandler:
    @handle(OrderStockReleased)
    def on_stock_released(self, event: OrderStockReleased) -> None:
        ledger = get_ledger()
        lines = json.loads(event.lines)
        for line in lines:
            ledger.release(line["product_id"], line["quantity"])

        logger.info(
            "Order stock released",
            order_id=str(event.order_id),
            reason=event.reason,
            line_count=len(lines),
        )
