"""Coupon redemption counter factory.

Uses the SQL adapter when a ledger database is configured, so stock and
coupon usage live in the same database; MemoryRedemptions otherwise.
"""

from ordering.coupon.redemptions.memory_adapter import MemoryRedemptions
from ordering.coupon.redemptions.port import CouponRedemptions

_current_redemptions: CouponRedemptions | None = None


def get_redemptions() -> CouponRedemptions:
    global _current_redemptions
    if _current_redemptions is None:
        from ordering.config import get_settings

        uri = get_settings().ledger_database_uri
        if uri:
            from ordering.coupon.redemptions.sql_adapter import SqlRedemptions

            _current_redemptions = SqlRedemptions(uri)
        else:
            _current_redemptions = MemoryRedemptions()
    return _current_redemptions


def set_redemptions(redemptions: CouponRedemptions) -> None:
    global _current_redemptions
    _current_redemptions = redemptions


def reset_redemptions() -> None:
    global _current_redemptions
    _current_redemptions = None
