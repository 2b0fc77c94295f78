"""Coupon redemption counter port.

Usage caps are enforced here rather than on the Coupon record: ``claim``
checks both caps and increments both counters in one indivisible step, so
two checkouts racing for the last redemption cannot both win. ``revoke``
undoes a claim whose order was never created.

``used`` and ``user_used`` passed to ``claim`` are the counts already on the
coupon record; an adapter never counts below them.
"""

from abc import ABC, abstractmethod


class CouponRedemptions(ABC):
    @abstractmethod
    def claim(
        self,
        code: str,
        user_id: str,
        usage_limit: int,
        per_user_limit: int,
        used: int = 0,
        user_used: int = 0,
    ) -> bool:
        """Take one redemption for ``user_id``; False when either cap is exhausted."""
        ...

    @abstractmethod
    def revoke(self, code: str, user_id: str) -> None:
        """Give back a redemption taken by ``claim``."""
        ...

    @abstractmethod
    def usage(self, code: str, user_id: str | None = None) -> tuple[int, int]:
        """Return ``(total_used, used_by_user)``."""
        ...
