from datetime import UTC, datetime, timedelta

import pytest
from catalogue.service import set_catalogue
from catalogue.service.memory_adapter import MemoryCatalogue
from notifications.notifier import set_notifier
from notifications.notifier.fake_adapter import FakeNotifier
from payments.gateway import set_gateway
from payments.gateway.fake_adapter import FakeGateway
from protean.integrations.pytest import DomainFixture

SHIPPING_ADDRESS = {
    "street": "12 Market St",
    "city": "Springfield",
    "state": "IL",
    "postal_code": "62701",
    "country": "US",
}


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield

        from protean import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


@pytest.fixture()
def catalogue():
    """A catalogue with two vendors' products, stock seeded in the ledger."""
    cat = MemoryCatalogue()
    cat.add_product("prod-001", "Linen Shirt", 50.0, seller_id="vendor-a", stock=10)
    cat.add_product("prod-002", "Canvas Tote", 20.0, seller_id="vendor-b", stock=5)
    cat.add_product("prod-003", "Wool Scarf", 40.0, seller_id="vendor-c", stock=3, discount_percentage=25)
    set_catalogue(cat)
    return cat


@pytest.fixture()
def notifier():
    fake = FakeNotifier()
    set_notifier(fake)
    return fake


@pytest.fixture()
def gateway():
    fake = FakeGateway()
    set_gateway(fake)
    return fake


@pytest.fixture()
def address():
    return dict(SHIPPING_ADDRESS)


@pytest.fixture()
def make_coupon():
    """Create a live coupon through the admin command and return it."""
    from ordering.coupon.management import CreateCoupon, load_coupon
    from protean import current_domain

    def _make(code="SAVE10", discount_type="percentage", value=10.0, **overrides):
        now = datetime.now(UTC)
        fields = {
            "code": code,
            "discount_type": discount_type,
            "value": value,
            "start_date": now - timedelta(days=1),
            "end_date": now + timedelta(days=30),
        }
        fields.update(overrides)
        coupon_id = current_domain.process(CreateCoupon(**fields), asynchronous=False)
        return load_coupon(coupon_id)

    return _make
