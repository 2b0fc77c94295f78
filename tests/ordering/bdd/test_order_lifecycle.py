"""BDD tests for fulfillment and cancellation of placed orders."""

import json

from ordering.order.access import load_order
from ordering.order.cancellation import CancelOrder, UpdateOrderStatus
from ordering.order.fulfillment import FulfillOrderItems
from ordering.order.placement import place_order
from protean import current_domain
from pytest_bdd import given, parsers, scenarios, then, when

scenarios("features/order_lifecycle.feature")


def _attempt(outcome, command):
    try:
        outcome["order"] = current_domain.process(command, asynchronous=False)
    except Exception as exc:
        outcome["exc"] = exc
    return outcome


def _item_ids(order, seller_id):
    return json.dumps([str(item.id) for item in order.items_for_seller(seller_id)])


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("the customer has placed an order", target_fixture="outcome")
def _(outcome, customer_id, shipping_address):
    outcome["order"] = place_order(customer_id=customer_id, shipping_address=shipping_address, payment_method="card")
    return outcome


@given(parsers.cfparse('the order was marked "{status}"'), target_fixture="outcome")
def _(outcome, status):
    command = UpdateOrderStatus(
        order_id=str(outcome["order"].id), status=status, changed_by="admin-1", role="admin"
    )
    outcome["order"] = current_domain.process(command, asynchronous=False)
    return outcome


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("the customer cancels the order", target_fixture="outcome")
@when("the customer tries to cancel the order", target_fixture="outcome")
def _(outcome, customer_id):
    command = CancelOrder(order_id=str(outcome["order"].id), reason="Changed my mind", cancelled_by=customer_id)
    return _attempt(outcome, command)


@when(parsers.cfparse('"{seller_id}" ships their items with tracking "{tracking_number}"'), target_fixture="outcome")
def _(outcome, seller_id, tracking_number):
    order = load_order(str(outcome["order"].id))
    command = FulfillOrderItems(
        order_id=str(order.id),
        item_ids=_item_ids(order, seller_id),
        status="shipped",
        tracking_info=json.dumps({"carrier": "UPS", "tracking_number": tracking_number}),
        fulfilled_by=seller_id,
        role="vendor",
    )
    return _attempt(outcome, command)


@when(parsers.cfparse('"{actor}" tries to ship the "{seller_id}" items'), target_fixture="outcome")
def _(outcome, actor, seller_id):
    order = load_order(str(outcome["order"].id))
    command = FulfillOrderItems(
        order_id=str(order.id),
        item_ids=_item_ids(order, seller_id),
        status="shipped",
        tracking_info=json.dumps({"carrier": "UPS", "tracking_number": "1Z999"}),
        fulfilled_by=actor,
        role="vendor",
    )
    return _attempt(outcome, command)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the "{seller_id}" items are "{status}"'))
def _(outcome, seller_id, status):
    order = load_order(str(outcome["order"].id))
    assert {item.fulfillment_status for item in order.items_for_seller(seller_id)} == {status}
