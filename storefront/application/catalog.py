"""
Name: Product Catalog Snapshot

Responsibilities:
  - Hold the latest known product list
  - Answer price lookups for totals and remote add-item requests

Collaborators:
  - domain.services.ProductService: source of the snapshot
  - application.cart: prices at call time (never cached per cart line)

Constraints:
  - A failed refresh keeps the previous snapshot
"""

from typing import Iterable

from ..domain.entities import Product, normalize_product_id
from ..domain.services import ProductService
from ..logger import logger


class ProductCatalog:
    """R: In-memory snapshot of GET /products."""

    def __init__(self, product_service: ProductService | None = None):
        self._service = product_service
        self._products: dict[str, Product] = {}

    @property
    def is_empty(self) -> bool:
        return not self._products

    @property
    def products(self) -> list[Product]:
        return list(self._products.values())

    def load(self, products: Iterable[Product]) -> None:
        """R: Replace the snapshot."""
        self._products = {p.id: p for p in products}

    async def refresh(self) -> int:
        """R: Reload from the product service.

        Raises:
            NetworkError: the previous snapshot is kept
        """
        if self._service is None:
            return len(self._products)
        products = await self._service.list_products()
        self.load(products)
        logger.info("Catalog refreshed", extra={"product_count": len(self._products)})
        return len(self._products)

    def get(self, product_id: object) -> Product | None:
        return self._products.get(normalize_product_id(product_id))

    def price_of(self, product_id: object) -> float | None:
        product = self.get(product_id)
        return product.new_price if product else None
