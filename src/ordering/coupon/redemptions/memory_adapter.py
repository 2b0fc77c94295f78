"""In-process coupon redemption counters guarded by a lock."""

import threading

from ordering.coupon.redemptions.port import CouponRedemptions


class MemoryRedemptions(CouponRedemptions):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._totals: dict[str, int] = {}
        self._per_user: dict[tuple[str, str], int] = {}

    def claim(self, code, user_id, usage_limit, per_user_limit, used=0, user_used=0) -> bool:
        key = (code, str(user_id))
        with self._lock:
            total = max(self._totals.get(code, 0), used)
            mine = max(self._per_user.get(key, 0), user_used)

            if usage_limit and total >= usage_limit:
                return False
            if per_user_limit and mine >= per_user_limit:
                return False

            self._totals[code] = total + 1
            self._per_user[key] = mine + 1
            return True

    def revoke(self, code, user_id) -> None:
        key = (code, str(user_id))
        with self._lock:
            if self._totals.get(code, 0) > 0:
                self._totals[code] -= 1
            if self._per_user.get(key, 0) > 0:
                self._per_user[key] -= 1

    def usage(self, code, user_id=None) -> tuple[int, int]:
        with self._lock:
            total = self._totals.get(code, 0)
            mine = self._per_user.get((code, str(user_id)), 0) if user_id else 0
            return total, mine
