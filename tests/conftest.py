import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Select the config overlay before any domain is imported."""
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(autouse=True)
def reset_adapters():
    """Every test starts with fresh in-memory adapters and default settings."""
    from catalogue.service import reset_catalogue
    from inventory.ledger import reset_ledger
    from notifications.notifier import reset_notifier
    from ordering.config import reset_settings
    from ordering.coupon.redemptions import reset_redemptions
    from payments.gateway import reset_gateway

    yield

    reset_catalogue()
    reset_ledger()
    reset_redemptions()
    reset_gateway()
    reset_notifier()
    reset_settings()
