"""In-memory catalogue for development and testing.

Holds product listings locally and reads live stock from the active
inventory ledger, so both always agree on the stock count.
"""

from dataclasses import replace

from inventory.ledger import get_ledger

from catalogue.service.port import Catalogue, ProductInfo


class MemoryCatalogue(Catalogue):
    def __init__(self) -> None:
        self._products: dict[str, ProductInfo] = {}

    def add_product(
        self,
        product_id: str,
        name: str,
        price: float,
        seller_id: str,
        stock: int = 0,
        discount_percentage: float = 0.0,
        image: str | None = None,
    ) -> ProductInfo:
        """Register a product listing and seed its stock in the ledger."""
        product = ProductInfo(
            product_id=str(product_id),
            name=name,
            price=price,
            seller_id=str(seller_id),
            stock_count=stock,
            discount_percentage=discount_percentage,
            image=image,
        )
        self._products[product.product_id] = product
        get_ledger().set_stock(product.product_id, stock)
        return product

    def update_product(self, product_id: str, **changes) -> ProductInfo:
        product = replace(self._products[str(product_id)], **changes)
        self._products[product.product_id] = product
        return product

    def remove_product(self, product_id: str) -> None:
        self._products.pop(str(product_id), None)

    def get_product(self, product_id: str) -> ProductInfo | None:
        product = self._products.get(str(product_id))
        if product is None:
            return None
        stock = get_ledger().stock_of(product.product_id)
        return replace(product, stock_count=stock or 0)
