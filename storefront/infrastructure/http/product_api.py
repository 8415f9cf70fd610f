"""
Name: Product Catalog API Adapter

Responsibilities:
  - GET /products and GET /products/:id mapped to Product entities

Collaborators:
  - infrastructure.http.client.ApiClient
  - infrastructure.http.schemas.ProductPayload

Notes:
  - Entries that fail validation are skipped (logged), not fatal
"""

from typing import Any, Sequence
from urllib.parse import quote

from pydantic import ValidationError

from ...domain.entities import Product
from ...exceptions import NetworkError
from ...logger import logger
from .client import ApiClient
from .schemas import ProductPayload


def _parse(raw: Any) -> Product | None:
    try:
        return ProductPayload.model_validate(raw).to_entity()
    except ValidationError as exc:
        logger.warning("Skipping malformed product", extra={"error": str(exc)})
        return None


class HttpProductService:
    def __init__(self, client: ApiClient):
        self._client = client

    async def list_products(self) -> Sequence[Product]:
        payload = await self._client.get("/products")
        if isinstance(payload, dict):
            payload = payload.get("products", [])
        products = [_parse(raw) for raw in payload or []]
        return [p for p in products if p is not None]

    async def get_product(self, product_id: str) -> Product | None:
        try:
            payload = await self._client.get(f"/products/{quote(str(product_id), safe='')}")
        except NetworkError as exc:
            if exc.status_code == 404:
                return None
            raise
        if not payload:
            return None
        return _parse(payload)
