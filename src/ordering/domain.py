"""Ordering bounded context: Shopping Cart, Coupons and Orders.

Handles the per-customer cart (CQRS), coupon administration and redemption,
checkout that turns a cart into an immutable priced order, payment
verification and per-item vendor fulfillment.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
