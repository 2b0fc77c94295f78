"""Application tests for checkout: cart to order with stock and coupon guarantees."""

import json

import pytest
from inventory.ledger import get_ledger, set_ledger
from inventory.ledger.memory_adapter import MemoryLedger
from inventory.ledger.port import ReservationResult
from ordering.cart.cart import Cart
from ordering.cart.items import AddToCart
from ordering.coupon.coupon import Coupon
from ordering.coupon.evaluation import USAGE_LIMIT_REACHED
from ordering.coupon.redemptions import get_redemptions
from ordering.errors import CouponInvalid, EmptyCart, InsufficientStock, NotFound
from ordering.order import notifications, placement
from ordering.order.order import Order
from ordering.order.placement import place_order
from protean import current_domain
from protean.exceptions import ValidationError


def _add(product_id="prod-001", quantity=1, customer_id="cust-001"):
    current_domain.process(
        AddToCart(customer_id=customer_id, product_id=product_id, quantity=quantity), asynchronous=False
    )


def _orders():
    return current_domain.repository_for(Order)._dao.query.all().items


class RaceLosingLedger(MemoryLedger):
    """Loses the reservation race for one product, as if another checkout got there first."""

    def __init__(self, initial, losing_product):
        super().__init__(initial)
        self.losing_product = losing_product

    def reserve(self, product_id, quantity):
        if product_id == self.losing_product:
            return ReservationResult(product_id, quantity, ok=False, remaining=0)
        return super().reserve(product_id, quantity)


class TestPlaceOrder:
    def test_worked_example(self, catalogue, make_coupon, address):
        make_coupon(code="SAVE10", value=10.0, min_purchase=50.0)
        _add(quantity=2)

        order = place_order("cust-001", address, "card", coupon_code="SAVE10")

        assert order.pricing.items_price == 100.0
        assert order.pricing.discount_amount == 10.0
        assert order.pricing.tax_price == 16.2
        assert order.pricing.shipping_price == 0.0
        assert order.pricing.total_price == 106.2
        assert order.status == "pending"
        assert order.coupon_code == "SAVE10"

    def test_persists_order_and_clears_cart(self, catalogue, address):
        _add(quantity=2)
        _add(product_id="prod-002")

        order = place_order("cust-001", address, "card")

        stored = current_domain.repository_for(Order).get(order.id)
        assert len(stored.items) == 2
        assert {str(i.seller_id) for i in stored.items} == {"vendor-a", "vendor-b"}
        assert stored.tracking_number.startswith("WC")
        assert not current_domain.repository_for(Cart).get("cust-001").items

    def test_reserves_stock(self, catalogue, address):
        _add(quantity=3)

        place_order("cust-001", address, "card")

        assert get_ledger().stock_of("prod-001") == 7

    def test_reprices_from_live_catalogue(self, catalogue, address):
        _add(quantity=1)
        catalogue.update_product("prod-001", price=80.0)

        order = place_order("cust-001", address, "card")

        assert order.items[0].unit_price == 80.0
        assert order.pricing.items_price == 80.0

    def test_applies_product_discount(self, catalogue, address):
        _add(product_id="prod-003", quantity=2)

        order = place_order("cust-001", address, "card")

        assert order.items[0].unit_price == 30.0
        assert order.pricing.items_price == 60.0

    def test_cod_starts_processing(self, catalogue, address):
        _add()

        assert place_order("cust-001", address, "cash-on-delivery").status == "processing"

    def test_gateway_alias(self, catalogue, address):
        _add()

        assert place_order("cust-001", address, "razorpay").payment_method == "gateway"

    def test_billing_defaults_to_shipping(self, catalogue, address):
        _add()

        order = place_order("cust-001", address, "card")

        assert order.billing_address == order.shipping_address

    def test_uses_coupon_applied_to_cart(self, catalogue, make_coupon, address):
        from ordering.cart.coupons import ApplyCouponToCart

        make_coupon(code="SAVE10", value=10.0)
        _add(quantity=2)
        current_domain.process(ApplyCouponToCart(customer_id="cust-001", coupon_code="SAVE10"), asynchronous=False)

        order = place_order("cust-001", address, "card")

        assert order.pricing.discount_amount == 10.0


class TestCheckoutRejections:
    def test_empty_cart(self, catalogue, address):
        with pytest.raises(EmptyCart):
            place_order("cust-001", address, "card")

    def test_missing_address_fields(self, catalogue, address):
        _add()
        address.pop("postal_code")

        with pytest.raises(ValidationError) as exc:
            place_order("cust-001", address, "card")

        assert "shipping_address" in exc.value.messages

    def test_unknown_payment_method(self, catalogue, address):
        _add()

        with pytest.raises(ValidationError):
            place_order("cust-001", address, "bitcoin")

    def test_product_removed_from_catalogue(self, catalogue, address):
        _add()
        catalogue.remove_product("prod-001")

        with pytest.raises(NotFound):
            place_order("cust-001", address, "card")

    def test_insufficient_stock_has_no_side_effects(self, catalogue, address):
        _add(quantity=2)
        _add(product_id="prod-002", quantity=5)
        get_ledger().set_stock("prod-002", 4)

        with pytest.raises(InsufficientStock) as exc:
            place_order("cust-001", address, "card")

        assert exc.value.product_id == "prod-002"
        assert get_ledger().stock_of("prod-001") == 10
        assert get_ledger().stock_of("prod-002") == 4
        assert not _orders()
        assert len(current_domain.repository_for(Cart).get("cust-001").items) == 2

    def test_invalid_coupon(self, catalogue, address):
        _add()

        with pytest.raises(CouponInvalid):
            place_order("cust-001", address, "card", coupon_code="BOGUS")
        assert get_ledger().stock_of("prod-001") == 10


class TestCheckoutCompensation:
    def test_lost_reservation_race_releases_earlier_lines(self, catalogue, address):
        _add(quantity=2)
        _add(product_id="prod-002", quantity=1)
        set_ledger(RaceLosingLedger({"prod-001": 10, "prod-002": 5}, losing_product="prod-002"))

        with pytest.raises(InsufficientStock):
            place_order("cust-001", address, "card")

        assert get_ledger().stock_of("prod-001") == 10
        assert not _orders()

    def test_exhausted_coupon_releases_stock(self, catalogue, make_coupon, address):
        coupon = make_coupon(code="ONCE", usage_limit=1)
        # Another checkout already holds the only redemption
        get_redemptions().claim(coupon.code, "cust-999", 1, 0)
        _add()

        with pytest.raises(CouponInvalid) as exc:
            place_order("cust-001", address, "card", coupon_code="ONCE")

        assert exc.value.reason == USAGE_LIMIT_REACHED
        assert get_ledger().stock_of("prod-001") == 10
        assert not _orders()

    def test_failed_commit_releases_stock_and_revokes_claim(self, catalogue, make_coupon, address, monkeypatch):
        make_coupon(code="SAVE10", value=10.0)
        _add(quantity=2)

        def broken_clear(self):
            raise RuntimeError("storage unavailable")

        monkeypatch.setattr(Cart, "clear", broken_clear)

        with pytest.raises(RuntimeError):
            place_order("cust-001", address, "card", coupon_code="SAVE10")

        assert get_ledger().stock_of("prod-001") == 10
        assert get_redemptions().usage("SAVE10", "cust-001") == (0, 0)
        assert not _orders()

    def test_failure_after_commit_keeps_stock_and_claim(self, catalogue, make_coupon, address, monkeypatch):
        make_coupon(code="SAVE10", value=10.0)
        _add(quantity=2)

        def failing_send(*args, **kwargs):
            raise RuntimeError("handler crashed")

        monkeypatch.setattr(notifications, "_send", failing_send)

        with pytest.raises(Exception):  # noqa: B017
            place_order("cust-001", address, "card", coupon_code="SAVE10")

        assert len(_orders()) == 1
        assert get_ledger().stock_of("prod-001") == 8
        assert get_redemptions().usage("SAVE10", "cust-001") == (1, 1)


class TestCouponRedemption:
    def test_successful_checkout_records_usage(self, catalogue, make_coupon, address):
        make_coupon(code="SAVE10", value=10.0)
        _add(quantity=2)

        order = place_order("cust-001", address, "card", coupon_code="SAVE10")

        coupon = current_domain.repository_for(Coupon)._dao.query.filter(code="SAVE10").all().items[0]
        assert coupon.used_count == 1
        assert coupon.usage_for("cust-001") == 1
        assert order.coupon_code == "SAVE10"

    def test_single_use_coupon_is_redeemed_once(self, catalogue, make_coupon, address):
        make_coupon(code="ONCE", usage_limit=1)
        _add(customer_id="cust-001")
        _add(customer_id="cust-002")

        place_order("cust-001", address, "card", coupon_code="ONCE")
        with pytest.raises(CouponInvalid):
            place_order("cust-002", address, "card", coupon_code="ONCE")

        assert len(_orders()) == 1

    def test_per_user_limit(self, catalogue, make_coupon, address):
        make_coupon(code="ONEEACH", per_user_limit=1)
        _add()
        place_order("cust-001", address, "card", coupon_code="ONEEACH")
        _add()

        with pytest.raises(CouponInvalid):
            place_order("cust-001", address, "card", coupon_code="ONEEACH")

    def test_stale_coupon_record_still_counts_every_redemption(self, catalogue, make_coupon, address, monkeypatch):
        stale = make_coupon(code="SAVE10", value=10.0)
        monkeypatch.setattr(placement, "coupon_by_code", lambda code: stale)
        _add(customer_id="cust-001")
        _add(customer_id="cust-002")

        place_order("cust-001", address, "card", coupon_code="SAVE10")
        place_order("cust-002", address, "card", coupon_code="SAVE10")

        coupon = current_domain.repository_for(Coupon).get(stale.id)
        assert coupon.used_count == 2
        assert coupon.usage_for("cust-001") == 1
        assert coupon.usage_for("cust-002") == 1


class TestNoOversell:
    def test_sequential_checkouts_against_limited_stock(self, catalogue, address):
        catalogue.add_product("prod-hot", "Limited Print", 25.0, seller_id="vendor-a", stock=3)
        for i in range(5):
            _add(product_id="prod-hot", customer_id=f"cust-{i}")

        placed, rejected = 0, 0
        for i in range(5):
            try:
                place_order(f"cust-{i}", address, "card")
                placed += 1
            except InsufficientStock:
                rejected += 1

        assert placed == 3
        assert rejected == 2
        assert get_ledger().stock_of("prod-hot") == 0


class TestTrackingNumbers:
    def test_tracking_numbers_are_unique(self, catalogue, address):
        numbers = set()
        for i in range(5):
            _add(customer_id=f"cust-{i}")
            numbers.add(place_order(f"cust-{i}", address, "card").tracking_number)

        assert len(numbers) == 5

    def test_order_line_variant_is_carried_over(self, catalogue, address):
        current_domain.process(
            AddToCart(
                customer_id="cust-001",
                product_id="prod-001",
                quantity=1,
                selected_variant=json.dumps({"size": "L"}),
            ),
            asynchronous=False,
        )

        order = place_order("cust-001", address, "card")

        assert json.loads(order.items[0].selected_variant) == {"size": "L"}
