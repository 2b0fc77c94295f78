"""Shared BDD fixtures and step definitions for checkout and order flows."""

from datetime import UTC, datetime, timedelta

import pytest
from catalogue.service import set_catalogue
from catalogue.service.memory_adapter import MemoryCatalogue
from inventory.ledger import get_ledger
from ordering.cart.items import AddToCart, load_cart
from ordering.coupon.management import CreateCoupon
from ordering.errors import StorefrontError
from ordering.order.access import load_order
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then

SHIPPING_ADDRESS = {
    "street": "12 Market St",
    "city": "Springfield",
    "state": "IL",
    "postal_code": "62701",
    "country": "US",
}


# ---------------------------------------------------------------------------
# Scalar fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def customer_id():
    return "cust-001"


@pytest.fixture()
def shipping_address():
    return dict(SHIPPING_ADDRESS)


@pytest.fixture()
def shop():
    cat = MemoryCatalogue()
    set_catalogue(cat)
    return cat


@pytest.fixture()
def outcome():
    """Container for the result of a When step: the order or the error raised."""
    return {"order": None, "exc": None}


def error_code(exc) -> str:
    if isinstance(exc, StorefrontError):
        return exc.code
    if isinstance(exc, ValidationError):
        return "validation_error"
    return type(exc).__name__


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('the catalogue has "{product_id}" priced {price:g} with {stock:d} in stock from "{seller_id}"'))
def _(shop, product_id, price, stock, seller_id):
    shop.add_product(product_id, f"Product {product_id}", price, seller_id=seller_id, stock=stock)


@given(parsers.cfparse('a "{discount_type}" coupon "{code}" worth {value:g}'))
def _(discount_type, code, value):
    _create_coupon(code, discount_type, value)


@given(parsers.cfparse('a "{discount_type}" coupon "{code}" worth {value:g} with minimum purchase {minimum:g}'))
def _(discount_type, code, value, minimum):
    _create_coupon(code, discount_type, value, min_purchase=minimum)


def _create_coupon(code, discount_type, value, **extra):
    now = datetime.now(UTC)
    current_domain.process(
        CreateCoupon(
            code=code,
            discount_type=discount_type,
            value=value,
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=30),
            **extra,
        ),
        asynchronous=False,
    )


@given(parsers.cfparse('the customer has {quantity:d} of "{product_id}" in their cart'))
def _(customer_id, quantity, product_id):
    current_domain.process(
        AddToCart(customer_id=customer_id, product_id=product_id, quantity=quantity),
        asynchronous=False,
    )


@given(parsers.cfparse('"{product_id}" drops to {stock:d} in stock'))
def _(product_id, stock):
    get_ledger().set_stock(product_id, stock)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(outcome, status):
    assert outcome["exc"] is None, f"Unexpected failure: {outcome['exc']!r}"
    assert load_order(str(outcome["order"].id)).status == status


@then(parsers.cfparse('"{product_id}" has {stock:d} left in stock'))
def _(product_id, stock):
    assert get_ledger().stock_of(product_id) == stock


@then(parsers.cfparse('the action fails with "{code}"'))
@then(parsers.cfparse('checkout fails with "{code}"'))
def _(outcome, code):
    assert outcome["exc"] is not None, "Expected a failure but none was raised"
    assert error_code(outcome["exc"]) == code


@then("the cart is empty")
def _(customer_id):
    cart = load_cart(customer_id)
    assert cart is None or not cart.items


@then(parsers.cfparse("the cart still holds {quantity:d} items"))
def _(customer_id, quantity):
    assert load_cart(customer_id).total_items == quantity
