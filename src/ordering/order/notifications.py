"""Outbound order notifications.

Placement and status changes are forwarded to the notifier port after the
change commits. Delivery is fire-and-forget: a failing notifier is logged
and never fails the order operation that raised the event.
"""

import structlog
from notifications.notifier import get_notifier
from protean.utils.mixins import handle

from ordering.domain import ordering
from ordering.order.events import OrderPlaced, OrderStatusChanged
from ordering.order.order import Order

logger = structlog.get_logger(__name__)


def _send(recipient, subject: str, body: str, metadata: dict) -> None:
    try:
        message_id = get_notifier().send(recipient, subject, body, metadata)
    except Exception as exc:
        logger.warning(
            "Order notification failed", subject=subject, error=str(exc), error_type=type(exc).__name__, **metadata
        )
        return
    logger.info("Order notification sent", message_id=message_id, **metadata)


@ordering.event_handler(part_of=Order)
class OrderNotificationHandler:
    @handle(OrderPlaced)
    def on_order_placed(self, event: OrderPlaced) -> None:
        _send(
            event.customer_email or str(event.customer_id),
            f"Order {event.tracking_number} confirmed",
            f"Thank you for your order. Total: {event.total_price:.2f}. Status: {event.status}.",
            {"order_id": str(event.order_id), "notification": "order_placed"},
        )

    @handle(OrderStatusChanged)
    def on_status_changed(self, event: OrderStatusChanged) -> None:
        body = f"Your order {event.tracking_number} is now {event.status}."
        if event.note:
            body = f"{body} {event.note}"
        _send(
            event.customer_email or str(event.customer_id),
            f"Order {event.tracking_number} {event.status}",
            body,
            {"order_id": str(event.order_id), "notification": "order_status_changed", "status": event.status},
        )
