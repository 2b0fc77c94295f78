"""Domain events for the Order aggregate.

Events are immutable facts raised by the aggregate and dispatched when the
unit of work commits. Notification and audit handlers subscribe to them.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A checkout produced a new order."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    customer_email = String()
    tracking_number = String(required=True)
    status = String(required=True)
    payment_method = String(required=True)
    item_count = Integer(required=True)
    items_price = Float(required=True)
    discount_amount = Float()
    total_price = Float(required=True)
    coupon_code = String()
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    customer_email = String()
    tracking_number = String(required=True)
    previous_status = String(required=True)
    status = String(required=True)
    note = String()
    changed_by = String()
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    reason = String()
    cancelled_by = String()
    refund_required = Boolean(default=False)
    cancelled_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderItemsFulfilled:
    """A vendor (or admin) moved a batch of line items forward."""

    __version__ = 1

    order_id = Identifier(required=True)
    item_ids = Text(required=True)  # JSON list
    fulfillment_status = String(required=True)
    fulfilled_by = String()
    order_status = String(required=True)


@ordering.event(part_of="Order")
class OrderPaid:
    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    gateway_order_id = String()
    gateway_payment_id = String(required=True)
    amount = Float(required=True)
    paid_at = DateTime(required=True)


@ordering.event(part_of="Order")
class GatewayOrderRecorded:
    __version__ = 1

    order_id = Identifier(required=True)
    gateway_order_id = String(required=True)
    amount = Integer(required=True)  # minor units
    currency = String(required=True)


@ordering.event(part_of="Order")
class OrderStockReleased:
    """The order's reserved quantities are due back in the inventory ledger."""

    __version__ = 1

    order_id = Identifier(required=True)
    lines = Text(required=True)  # JSON list of {"product_id", "quantity"}
    reason = String(required=True)
