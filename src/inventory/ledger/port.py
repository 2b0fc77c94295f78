"""Inventory ledger port (abstract interface).

The ledger is the only writer of per-product stock counts. Every adapter must
make ``reserve`` a single indivisible compare-and-decrement: the
``stock >= quantity`` check and the decrement can never be split by another
reservation against the same product.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ReservationResult:
    """Outcome of a reservation attempt."""

    product_id: str
    requested: int
    ok: bool
    remaining: int


class InventoryLedger(ABC):
    """Abstract stock ledger."""

    @abstractmethod
    def reserve(self, product_id: str, quantity: int) -> ReservationResult:
        """Atomically decrement stock when at least ``quantity`` is available.

        ``remaining`` is the stock left after a successful reservation, or the
        stock observed at the time of a rejected one.
        """
        ...

    @abstractmethod
    def release(self, product_id: str, quantity: int) -> int:
        """Atomically return ``quantity`` units to stock and return the new count."""
        ...

    @abstractmethod
    def stock_of(self, product_id: str) -> int | None:
        """Current stock, or None when the product is unknown to the ledger."""
        ...

    @abstractmethod
    def set_stock(self, product_id: str, quantity: int) -> None:
        """Seed or overwrite the stock count of a product."""
        ...
