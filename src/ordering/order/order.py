"""Order aggregate (CQRS): the priced, immutable record of a checkout.

An order is created once from a cart snapshot. Its pricing value object is
never replaced afterwards; what changes over its life is payment state, the
order status and the per-item fulfillment status.

Status moves are explicit: ``update_status`` for admin/vendor moves,
``cancel`` for cancellation and ``fulfill_items`` for vendor item updates,
after which the order status is re-derived from the items (see
``ordering.order.status``). Every order-level change appends to
``status_history``, which is never edited.
"""

import json
from datetime import UTC, datetime

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from ordering.domain import ordering
from ordering.errors import AlreadyPaid, Conflict, InvalidTransition, Unauthorized
from ordering.order.events import (
    GatewayOrderRecorded,
    OrderCancelled,
    OrderItemsFulfilled,
    OrderPaid,
    OrderPlaced,
    OrderStatusChanged,
    OrderStockReleased,
)
from ordering.order.pricing import pricing_identity_holds
from ordering.order.status import (
    CANCELLABLE_STATES,
    CLOSED_STATES,
    FULFILLABLE_ITEM_STATES,
    STOCK_RELEASING_STATES,
    FulfillmentStatus,
    OrderStatus,
    PaymentMethod,
    can_transition,
    derive_status,
    rank,
)


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class Address:
    """A delivery or billing address captured at checkout time."""

    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)


@ordering.value_object(part_of="Order")
class OrderPricing:
    """Prices locked at checkout."""

    items_price = Float(default=0.0)
    tax_price = Float(default=0.0)
    shipping_price = Float(default=0.0)
    discount_amount = Float(default=0.0)
    total_price = Float(default=0.0)
    currency = String(max_length=3, default="USD")


@ordering.value_object(part_of="Order")
class PaymentResult:
    """What the payment gateway confirmed."""

    payment_id = String(required=True, max_length=255)
    gateway_order_id = String(max_length=255)
    signature = String(max_length=255)
    status = String(max_length=50)
    update_time = DateTime()
    email_address = String(max_length=255)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A priced line of the order, fulfilled by the vendor that sells it."""

    line_no = Integer(default=0)
    product_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    image = String(max_length=1000)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    selected_variant = Text(default="{}")
    total = Float(required=True, min_value=0.0)
    fulfillment_status = String(choices=FulfillmentStatus, default=FulfillmentStatus.PENDING.value)
    carrier = String(max_length=100)
    tracking_code = String(max_length=255)
    tracking_url = String(max_length=1000)
    shipped_at = DateTime()
    delivered_at = DateTime()

    @property
    def tracking_info(self) -> dict | None:
        if not (self.carrier or self.tracking_code or self.tracking_url):
            return None
        return {"carrier": self.carrier, "tracking_number": self.tracking_code, "tracking_url": self.tracking_url}


@ordering.entity(part_of="Order")
class StatusEntry:
    sequence = Integer(required=True)
    status = String(required=True, max_length=20)
    note = String(max_length=1000)
    changed_by = String(max_length=255)
    updated_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    customer_id = Identifier(required=True)
    customer_email = String(max_length=255)
    items = HasMany(OrderItem)
    shipping_address = ValueObject(Address, required=True)
    billing_address = ValueObject(Address)
    payment_method = String(required=True, choices=PaymentMethod)
    pricing = ValueObject(OrderPricing, required=True)
    coupon_code = String(max_length=50)
    is_paid = Boolean(default=False)
    paid_at = DateTime()
    payment_result = ValueObject(PaymentResult)
    gateway_order_id = String(max_length=255)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    status_history = HasMany(StatusEntry)
    tracking_number = String(required=True, max_length=50, unique=True)
    notes = Text()
    seller_refs = Text()
    stock_released = Boolean(default=False)
    refund_required = Boolean(default=False)
    created_at = DateTime()
    updated_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    returned_at = DateTime()
    refunded_at = DateTime()

    @invariant.post
    def pricing_must_add_up(self):
        p = self.pricing
        if p and not pricing_identity_holds(
            p.items_price, p.tax_price, p.shipping_price, p.discount_amount, p.total_price
        ):
            raise ValidationError({"pricing": ["Total must equal items + tax + shipping - discount"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        customer_id,
        lines,
        shipping_address,
        billing_address,
        payment_method,
        pricing,
        tracking_number,
        coupon_code=None,
        customer_email=None,
    ):
        """Build a new order from priced checkout lines.

        Args:
            lines: dicts with product_id, seller_id, name, image, quantity,
                   unit_price, selected_variant and total.
            pricing: an ``OrderPricing`` value object.
        """
        now = datetime.now(UTC)
        sellers = sorted({str(line["seller_id"]) for line in lines})
        initial = OrderStatus.PROCESSING if payment_method == PaymentMethod.COD.value else OrderStatus.PENDING

        order = cls(
            customer_id=customer_id,
            customer_email=customer_email,
            items=[OrderItem(line_no=index, **line) for index, line in enumerate(lines)],
            shipping_address=shipping_address,
            billing_address=billing_address or shipping_address,
            payment_method=payment_method,
            pricing=pricing,
            coupon_code=coupon_code,
            status=initial.value,
            tracking_number=tracking_number,
            seller_refs="|" + "|".join(sellers) + "|",
            created_at=now,
            updated_at=now,
        )
        order.add_status_history(StatusEntry(sequence=0, status=initial.value, note="Order placed", updated_at=now))

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                customer_id=str(customer_id),
                customer_email=customer_email,
                tracking_number=tracking_number,
                status=initial.value,
                payment_method=payment_method,
                item_count=sum(line["quantity"] for line in lines),
                items_price=pricing.items_price,
                discount_amount=pricing.discount_amount,
                total_price=pricing.total_price,
                coupon_code=coupon_code,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def ordered_items(self) -> list:
        return sorted(self.items, key=lambda item: item.line_no or 0)

    @property
    def history(self) -> list:
        return sorted(self.status_history, key=lambda entry: entry.sequence)

    def items_for_seller(self, seller_id) -> list:
        return [item for item in self.ordered_items if str(item.seller_id) == str(seller_id)]

    def has_items_from(self, seller_id) -> bool:
        return any(str(item.seller_id) == str(seller_id) for item in self.items)

    # -------------------------------------------------------------------
    # Status transitions
    # -------------------------------------------------------------------
    def _record_status(self, target: OrderStatus, note, changed_by, now):
        previous = self.status
        self.status = target.value
        self.add_status_history(
            StatusEntry(
                sequence=len(self.status_history),
                status=target.value,
                note=note,
                changed_by=changed_by,
                updated_at=now,
            )
        )
        self.updated_at = now

        if target == OrderStatus.DELIVERED:
            self.delivered_at = now
        elif target == OrderStatus.CANCELLED:
            self.cancelled_at = now
        elif target == OrderStatus.RETURNED:
            self.returned_at = now
        elif target == OrderStatus.REFUNDED:
            self.refunded_at = now

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                customer_email=self.customer_email,
                tracking_number=self.tracking_number,
                previous_status=previous,
                status=target.value,
                note=note,
                changed_by=changed_by,
                changed_at=now,
            )
        )

    def _cascade_to_items(self, target: OrderStatus, now, tracking_info=None):
        """Keep item fulfillment statuses consistent with an order-level move."""
        if target in (OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
            for item in self.items:
                if rank(item.fulfillment_status) < rank(target.value):
                    self._advance_item(item, FulfillmentStatus(target.value), now, tracking_info)
        elif target == OrderStatus.CANCELLED:
            for item in self.items:
                if item.fulfillment_status != FulfillmentStatus.DELIVERED.value:
                    item.fulfillment_status = FulfillmentStatus.CANCELLED.value
        elif target == OrderStatus.RETURNED:
            for item in self.items:
                item.fulfillment_status = FulfillmentStatus.RETURNED.value

    @staticmethod
    def _advance_item(item, target: FulfillmentStatus, now, tracking_info=None):
        item.fulfillment_status = target.value
        if target in (FulfillmentStatus.SHIPPED, FulfillmentStatus.DELIVERED) and item.shipped_at is None:
            item.shipped_at = now
        if target == FulfillmentStatus.DELIVERED:
            item.delivered_at = now
        if tracking_info:
            item.carrier = tracking_info.get("carrier") or item.carrier
            item.tracking_code = tracking_info.get("tracking_number") or item.tracking_code
            item.tracking_url = tracking_info.get("tracking_url") or item.tracking_url

    def update_status(self, status, note=None, changed_by=None, tracking_info=None) -> bool:
        """Admin/vendor order-level transition.

        Returns True when the move requires the order's stock to be returned
        to the ledger (entering cancelled or returned for the first time).
        """
        try:
            target = OrderStatus(status)
        except ValueError as exc:
            raise ValidationError({"status": [f"Invalid status: {status}"]}) from exc

        if not can_transition(self.status, target.value):
            raise InvalidTransition(
                f"Cannot change order status from {self.status} to {target.value}",
                current_status=self.status,
                target_status=target.value,
            )

        now = datetime.now(UTC)
        with atomic_change(self):
            self._cascade_to_items(target, now, tracking_info)
            self._record_status(target, note or f"Status updated to {target.value}", changed_by, now)
            if target in STOCK_RELEASING_STATES and self.is_paid:
                self.refund_required = True

        return target in STOCK_RELEASING_STATES and not self.stock_released

    def cancel(self, reason=None, cancelled_by=None) -> bool:
        """Cancel from pending, processing or shipped.

        Returns True when stock still has to be released for this order.
        """
        if OrderStatus(self.status) not in CANCELLABLE_STATES:
            raise InvalidTransition(
                f"Order cannot be cancelled in its current status: {self.status}",
                current_status=self.status,
                target_status=OrderStatus.CANCELLED.value,
            )

        now = datetime.now(UTC)
        with atomic_change(self):
            self._cascade_to_items(OrderStatus.CANCELLED, now)
            self._record_status(OrderStatus.CANCELLED, reason or "Order cancelled", cancelled_by, now)
            if reason:
                line = f"Cancellation reason: {reason}"
                self.notes = f"{self.notes}\n{line}" if self.notes else line
            if self.is_paid:
                self.refund_required = True

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                reason=reason,
                cancelled_by=cancelled_by,
                refund_required=bool(self.refund_required),
                cancelled_at=now,
            )
        )
        return not self.stock_released

    def mark_stock_released(self):
        """Flag the order as having returned its stock.

        The ledger is credited by the handler of ``OrderStockReleased`` once
        this change commits, so a rolled-back cancellation never credits it.
        """
        if self.stock_released:
            raise Conflict("Stock has already been released for this order", order_id=str(self.id))
        self.stock_released = True
        self.raise_(
            OrderStockReleased(
                order_id=str(self.id),
                lines=json.dumps(
                    [{"product_id": str(item.product_id), "quantity": item.quantity} for item in self.ordered_items]
                ),
                reason=self.status,
            )
        )

    # -------------------------------------------------------------------
    # Fulfillment
    # -------------------------------------------------------------------
    def fulfill_items(self, item_ids, status, tracking_info=None, seller_id=None, fulfilled_by=None):
        """Move a batch of items to ``status`` and re-derive the order status.

        ``seller_id`` restricts the batch to that vendor's items; None means
        an admin acting on any item. The whole batch is validated before any
        item changes.
        """
        try:
            target = FulfillmentStatus(status)
        except ValueError as exc:
            raise ValidationError({"status": [f"Invalid fulfillment status: {status}"]}) from exc

        if target not in FULFILLABLE_ITEM_STATES:
            raise ValidationError({"status": ["Fulfillment status must be processing, shipped or delivered"]})
        if not item_ids:
            raise ValidationError({"item_ids": ["At least one item is required"]})
        if target == FulfillmentStatus.SHIPPED and not (tracking_info and tracking_info.get("tracking_number")):
            raise ValidationError({"tracking_info": ["Tracking information is required when shipping items"]})
        if OrderStatus(self.status) in CLOSED_STATES:
            raise InvalidTransition(
                f"Items of a {self.status} order cannot be fulfilled",
                current_status=self.status,
                target_status=target.value,
            )

        by_id = {str(item.id): item for item in self.items}
        batch = []
        for item_id in dict.fromkeys(str(i) for i in item_ids):
            item = by_id.get(item_id)
            if item is None:
                raise ValidationError({"item_ids": [f"Item {item_id} is not part of this order"]})
            if seller_id is not None and str(item.seller_id) != str(seller_id):
                raise Unauthorized("You can only fulfill your own items", item_id=item_id)
            if rank(target.value) < rank(item.fulfillment_status):
                raise InvalidTransition(
                    f"Item {item_id} cannot move from {item.fulfillment_status} back to {target.value}",
                    current_status=self.status,
                    target_status=target.value,
                )
            batch.append(item)

        now = datetime.now(UTC)
        with atomic_change(self):
            for item in batch:
                self._advance_item(item, target, now, tracking_info)
            self.updated_at = now

            derived = derive_status([item.fulfillment_status for item in self.items], self.status)
            if derived != self.status:
                self._record_status(OrderStatus(derived), f"All items {derived}", fulfilled_by, now)

        self.raise_(
            OrderItemsFulfilled(
                order_id=str(self.id),
                item_ids=json.dumps([str(item.id) for item in batch]),
                fulfillment_status=target.value,
                fulfilled_by=fulfilled_by,
                order_status=self.status,
            )
        )

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def record_gateway_order(self, gateway_order_id, amount, currency):
        if self.is_paid:
            raise AlreadyPaid(str(self.id))
        self.gateway_order_id = gateway_order_id
        self.updated_at = datetime.now(UTC)
        self.raise_(
            GatewayOrderRecorded(
                order_id=str(self.id),
                gateway_order_id=gateway_order_id,
                amount=amount,
                currency=currency,
            )
        )

    def mark_paid(self, payment_id, gateway_order_id, signature, email_address=None):
        if self.is_paid:
            raise AlreadyPaid(str(self.id))

        now = datetime.now(UTC)
        with atomic_change(self):
            self.is_paid = True
            self.paid_at = now
            self.payment_result = PaymentResult(
                payment_id=payment_id,
                gateway_order_id=gateway_order_id,
                signature=signature,
                status="completed",
                update_time=now,
                email_address=email_address,
            )
            if self.status == OrderStatus.PENDING.value:
                self._record_status(OrderStatus.PROCESSING, "Payment received", "payment-gateway", now)
            elif OrderStatus(self.status) in STOCK_RELEASING_STATES:
                self.refund_required = True
            self.updated_at = now

        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                gateway_order_id=gateway_order_id,
                gateway_payment_id=payment_id,
                amount=self.pricing.total_price,
                paid_at=now,
            )
        )
