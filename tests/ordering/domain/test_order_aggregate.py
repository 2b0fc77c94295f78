"""Tests for the Order aggregate: placement, status moves, fulfillment and payment."""

import json

import pytest
from ordering.errors import AlreadyPaid, Conflict, InvalidTransition, Unauthorized
from ordering.order.events import (
    OrderCancelled,
    OrderItemsFulfilled,
    OrderPaid,
    OrderPlaced,
    OrderStatusChanged,
    OrderStockReleased,
)
from ordering.order.order import Address, Order, OrderPricing
from ordering.order.pricing import quote
from protean.exceptions import ValidationError

ADDRESS = Address(street="1 Main St", city="Springfield", state="IL", postal_code="62701", country="US")
TRACKING = {"carrier": "UPS", "tracking_number": "1Z999", "tracking_url": "https://ups.example/1Z999"}


def _line(product_id, seller_id, quantity=1, unit_price=20.0):
    return {
        "product_id": product_id,
        "seller_id": seller_id,
        "name": f"Product {product_id}",
        "image": None,
        "quantity": quantity,
        "unit_price": unit_price,
        "selected_variant": "{}",
        "total": unit_price * quantity,
    }


def _order(payment_method="card", lines=None):
    lines = lines or [
        _line("p1", "vendor-a"),
        _line("p2", "vendor-a"),
        _line("p3", "vendor-b"),
    ]
    items_price = sum(line["total"] for line in lines)
    order = Order.place(
        customer_id="cust-001",
        customer_email="cust@example.com",
        lines=lines,
        shipping_address=ADDRESS,
        billing_address=None,
        payment_method=payment_method,
        pricing=OrderPricing(**quote(items_price).to_dict()),
        tracking_number="WC20260101ABCDEF0123456789",
    )
    order._events.clear()
    return order


def _item_ids(order, seller_id=None):
    items = order.items_for_seller(seller_id) if seller_id else order.ordered_items
    return [str(item.id) for item in items]


class TestPlacement:
    def test_card_order_starts_pending(self):
        order = _order()

        assert order.status == "pending"
        assert order.billing_address == ADDRESS
        assert len(order.history) == 1
        assert order.history[0].note == "Order placed"
        assert all(item.fulfillment_status == "pending" for item in order.items)

    def test_cod_order_starts_processing(self):
        assert _order(payment_method="cod").status == "processing"

    def test_raises_order_placed(self):
        order = Order.place(
            customer_id="cust-001",
            lines=[_line("p1", "vendor-a", quantity=2)],
            shipping_address=ADDRESS,
            billing_address=ADDRESS,
            payment_method="card",
            pricing=OrderPricing(**quote(40.0).to_dict()),
            tracking_number="WC20260101FFFFFFFFFFFFFFFF",
        )

        event = order._events[-1]
        assert isinstance(event, OrderPlaced)
        assert event.item_count == 2
        assert event.total_price == 57.2

    def test_inconsistent_pricing_is_rejected(self):
        with pytest.raises(ValidationError):
            Order.place(
                customer_id="cust-001",
                lines=[_line("p1", "vendor-a")],
                shipping_address=ADDRESS,
                billing_address=ADDRESS,
                payment_method="card",
                pricing=OrderPricing(items_price=20.0, tax_price=3.6, shipping_price=10.0, total_price=99.0),
                tracking_number="WC20260101EEEEEEEEEEEEEEEE",
            )

    def test_items_keep_checkout_order(self):
        order = _order()

        assert [str(item.product_id) for item in order.ordered_items] == ["p1", "p2", "p3"]


class TestVendorViews:
    def test_items_for_seller(self):
        order = _order()

        assert len(order.items_for_seller("vendor-a")) == 2
        assert len(order.items_for_seller("vendor-b")) == 1

    def test_has_items_from(self):
        order = _order()

        assert order.has_items_from("vendor-b")
        assert not order.has_items_from("vendor-z")


class TestUpdateStatus:
    def test_forward_move_appends_history(self):
        order = _order()

        needs_release = order.update_status("processing", note="Packed", changed_by="admin-1")

        assert needs_release is False
        assert order.status == "processing"
        assert [entry.status for entry in order.history] == ["pending", "processing"]
        assert isinstance(order._events[-1], OrderStatusChanged)

    def test_order_move_advances_lagging_items(self):
        order = _order()

        order.update_status("shipped", tracking_info=TRACKING)

        assert all(item.fulfillment_status == "shipped" for item in order.items)
        assert all(item.tracking_code == "1Z999" for item in order.items)
        assert all(item.shipped_at is not None for item in order.items)

    def test_backward_move_is_rejected(self):
        order = _order()
        order.update_status("shipped")

        with pytest.raises(InvalidTransition) as exc:
            order.update_status("processing")

        assert exc.value.current_status == "shipped"
        assert order.status == "shipped"

    def test_unknown_status_is_rejected(self):
        with pytest.raises(ValidationError):
            _order().update_status("lost")

    def test_returned_requires_stock_release_once(self):
        order = _order()
        order.update_status("delivered")

        assert order.update_status("returned") is True
        order.mark_stock_released()
        assert order.update_status("refunded") is False

    def test_entering_returned_for_paid_order_flags_refund(self):
        order = _order()
        order.mark_paid("pay-1", "gw-1", "sig")
        order.update_status("delivered")

        order.update_status("returned")

        assert order.refund_required is True
        assert all(item.fulfillment_status == "returned" for item in order.items)


class TestCancel:
    def test_cancel_pending_order(self):
        order = _order()

        needs_release = order.cancel(reason="Changed my mind", cancelled_by="cust-001")

        assert needs_release is True
        assert order.status == "cancelled"
        assert order.cancelled_at is not None
        assert "Cancellation reason: Changed my mind" in order.notes
        assert all(item.fulfillment_status == "cancelled" for item in order.items)
        assert isinstance(order._events[-1], OrderCancelled)

    def test_cancel_paid_order_requires_refund(self):
        order = _order()
        order.mark_paid("pay-1", "gw-1", "sig")

        order.cancel()

        assert order.refund_required is True

    def test_payment_after_cancellation_requires_refund(self):
        order = _order()
        order.cancel()
        assert order.refund_required is False

        order.mark_paid("pay-1", "gw-1", "sig")

        assert order.is_paid is True
        assert order.status == "cancelled"
        assert order.refund_required is True

    def test_cannot_cancel_delivered_order(self):
        order = _order()
        order.update_status("delivered")

        with pytest.raises(InvalidTransition):
            order.cancel()
        assert order.status == "delivered"

    def test_cannot_cancel_twice(self):
        order = _order()
        order.cancel()

        with pytest.raises(InvalidTransition):
            order.cancel()


class TestStockRelease:
    def test_mark_stock_released_raises_event_with_lines(self):
        order = _order(lines=[_line("p1", "vendor-a", quantity=5)])
        order.cancel()

        order.mark_stock_released()

        event = order._events[-1]
        assert isinstance(event, OrderStockReleased)
        assert json.loads(event.lines) == [{"product_id": "p1", "quantity": 5}]
        assert order.stock_released is True

    def test_stock_is_released_at_most_once(self):
        order = _order()
        order.cancel()
        order.mark_stock_released()

        with pytest.raises(Conflict):
            order.mark_stock_released()


class TestFulfillItems:
    def test_order_ships_only_after_last_item_ships(self):
        order = _order()
        first, second, third = _item_ids(order)

        order.fulfill_items([first], "shipped", tracking_info=TRACKING)
        assert order.status == "pending"
        order.fulfill_items([second], "shipped", tracking_info=TRACKING)
        assert order.status == "pending"
        order.fulfill_items([third], "shipped", tracking_info=TRACKING)

        assert order.status == "shipped"
        assert order.history[-1].status == "shipped"

    def test_all_items_delivered_delivers_order(self):
        order = _order()

        order.fulfill_items(_item_ids(order), "delivered")

        assert order.status == "delivered"
        assert order.delivered_at is not None

    def test_vendor_may_only_touch_own_items(self):
        order = _order()
        foreign = _item_ids(order, "vendor-b")

        with pytest.raises(Unauthorized):
            order.fulfill_items(foreign, "processing", seller_id="vendor-a")

    def test_batch_is_all_or_nothing(self):
        order = _order()
        own = _item_ids(order, "vendor-a")

        with pytest.raises(ValidationError):
            order.fulfill_items([*own, "not-an-item"], "processing", seller_id="vendor-a")
        assert all(item.fulfillment_status == "pending" for item in order.items)

    def test_shipping_requires_tracking(self):
        order = _order()

        with pytest.raises(ValidationError):
            order.fulfill_items(_item_ids(order)[:1], "shipped")

    def test_items_never_move_backwards(self):
        order = _order()
        item_id = _item_ids(order)[0]
        order.fulfill_items([item_id], "delivered")

        with pytest.raises(InvalidTransition):
            order.fulfill_items([item_id], "processing")

    def test_cancelled_orders_cannot_be_fulfilled(self):
        order = _order()
        order.cancel()

        with pytest.raises(InvalidTransition):
            order.fulfill_items(_item_ids(order)[:1], "processing")

    def test_only_forward_fulfillment_statuses(self):
        order = _order()

        with pytest.raises(ValidationError):
            order.fulfill_items(_item_ids(order)[:1], "returned")

    def test_raises_items_fulfilled_event(self):
        order = _order()
        own = _item_ids(order, "vendor-a")

        order.fulfill_items(own, "processing", seller_id="vendor-a", fulfilled_by="vendor-a")

        event = order._events[-1]
        assert isinstance(event, OrderItemsFulfilled)
        assert json.loads(event.item_ids) == own


class TestPayment:
    def test_mark_paid_moves_pending_to_processing(self):
        order = _order()

        order.mark_paid("pay-1", "gw-1", "sig", email_address="cust@example.com")

        assert order.is_paid is True
        assert order.paid_at is not None
        assert order.status == "processing"
        assert order.payment_result.payment_id == "pay-1"
        assert order.payment_result.status == "completed"
        assert isinstance(order._events[-1], OrderPaid)

    def test_paid_once(self):
        order = _order()
        order.mark_paid("pay-1", "gw-1", "sig")

        with pytest.raises(AlreadyPaid):
            order.mark_paid("pay-2", "gw-1", "sig")
        assert order.payment_result.payment_id == "pay-1"

    def test_cod_order_payment_keeps_status(self):
        order = _order(payment_method="cod")

        order.mark_paid("pay-1", "gw-1", "sig")

        assert order.status == "processing"
        assert len(order.history) == 1

    def test_record_gateway_order(self):
        order = _order()

        order.record_gateway_order("gw-123", 5720, "USD")

        assert order.gateway_order_id == "gw-123"

    def test_record_gateway_order_after_payment_is_rejected(self):
        order = _order()
        order.mark_paid("pay-1", "gw-1", "sig")

        with pytest.raises(AlreadyPaid):
            order.record_gateway_order("gw-2", 100, "USD")
