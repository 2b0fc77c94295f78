"""Tracking number generation.

Format: ``<prefix><YYYYMMDD><16 hex chars>``, e.g. ``WC20260119A3F09C1B22DE47B1``.
The random part is 64 bits from ``uuid4``. Uniqueness is guaranteed by the
unique constraint on ``Order.tracking_number``; generation additionally
skips any candidate that is already taken.
"""

from datetime import UTC, datetime
from uuid import uuid4

from protean.utils.globals import current_domain

from ordering.config import get_settings

_MAX_ATTEMPTS = 5


def _candidate(prefix: str, now: datetime) -> str:
    return f"{prefix}{now:%Y%m%d}{uuid4().hex[:16].upper()}"


def tracking_number_taken(tracking_number: str) -> bool:
    from ordering.order.order import Order

    return bool(
        current_domain.repository_for(Order)._dao.query.filter(tracking_number=tracking_number).all().items
    )


def generate_tracking_number(now: datetime | None = None) -> str:
    now = now or datetime.now(UTC)
    prefix = get_settings().tracking_prefix

    for _ in range(_MAX_ATTEMPTS):
        candidate = _candidate(prefix, now)
        if not tracking_number_taken(candidate):
            return candidate

    raise RuntimeError("Could not generate a unique tracking number")
