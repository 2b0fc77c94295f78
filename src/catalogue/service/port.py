"""Catalogue service port.

Product data is owned by a separate catalogue service; ordering only reads
what it needs to price and fulfill a line. ``stock_count`` must come from the
same store the inventory ledger mutates.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal


@dataclass(frozen=True)
class ProductInfo:
    product_id: str
    name: str
    price: float
    seller_id: str
    stock_count: int
    discount_percentage: float = 0.0
    image: str | None = None

    @property
    def unit_price(self) -> float:
        """Price after the product's own discount, rounded to cents."""
        price = Decimal(str(self.price)) * (Decimal("1") - Decimal(str(self.discount_percentage)) / Decimal("100"))
        return float(price.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class Catalogue(ABC):
    @abstractmethod
    def get_product(self, product_id: str) -> ProductInfo | None:
        """Return the product, or None when it no longer exists."""
        ...
