"""In-process inventory ledger.

Stock lives in a dict guarded by a single lock, which makes each reserve and
release indivisible for all threads of the process. Suitable for development,
tests and single-process deployments.
"""

import threading

import structlog

from inventory.ledger.port import InventoryLedger, ReservationResult

logger = structlog.get_logger(__name__)


class MemoryLedger(InventoryLedger):
    def __init__(self, initial: dict[str, int] | None = None) -> None:
        self._lock = threading.Lock()
        self._stock: dict[str, int] = {}
        self.movements: list[tuple[str, str, int]] = []
        for product_id, quantity in (initial or {}).items():
            self.set_stock(product_id, quantity)

    def reserve(self, product_id: str, quantity: int) -> ReservationResult:
        if quantity < 1:
            raise ValueError("Reservation quantity must be at least 1")

        with self._lock:
            available = self._stock.get(str(product_id), 0)
            if available < quantity:
                return ReservationResult(str(product_id), quantity, ok=False, remaining=available)
            self._stock[str(product_id)] = available - quantity
            self.movements.append(("reserve", str(product_id), quantity))
            remaining = available - quantity

        logger.debug("Stock reserved", product_id=str(product_id), quantity=quantity, remaining=remaining)
        return ReservationResult(str(product_id), quantity, ok=True, remaining=remaining)

    def release(self, product_id: str, quantity: int) -> int:
        if quantity < 1:
            raise ValueError("Release quantity must be at least 1")

        with self._lock:
            current = self._stock.get(str(product_id), 0) + quantity
            self._stock[str(product_id)] = current
            self.movements.append(("release", str(product_id), quantity))

        logger.debug("Stock released", product_id=str(product_id), quantity=quantity, stock=current)
        return current

    def stock_of(self, product_id: str) -> int | None:
        with self._lock:
            return self._stock.get(str(product_id))

    def set_stock(self, product_id: str, quantity: int) -> None:
        if quantity < 0:
            raise ValueError("Stock cannot be negative")
        with self._lock:
            self._stock[str(product_id)] = quantity
