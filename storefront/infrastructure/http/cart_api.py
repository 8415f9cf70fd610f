"""
Name: Cart API Adapter

Responsibilities:
  - Map the CartService contract onto /cart/:userId endpoints
  - Parse cart payloads into CartSnapshot

Collaborators:
  - infrastructure.http.client.ApiClient
  - infrastructure.http.schemas.CartPayload
  - domain.services.CartService (implemented contract)

Notes:
  - GET /cart/:userId           -> {items: [{productId, quantity, price}]}
  - POST /cart/:userId/items    {productId, quantity, price}
  - DELETE /cart/:userId/items/:productId
  - PATCH /cart/:userId/items/:productId {quantity}
  - POST /cart/:userId/sync     {frontendCart}
"""

from typing import Any, Mapping
from urllib.parse import quote

from pydantic import ValidationError

from ...domain.entities import CartSnapshot
from ...exceptions import DataError
from .client import ApiClient
from .schemas import CartPayload


def _segment(value: str) -> str:
    return quote(str(value), safe="")


def _to_snapshot(payload: Any) -> CartSnapshot:
    if payload is None:
        return CartSnapshot()
    try:
        return CartPayload.model_validate(payload).to_snapshot()
    except ValidationError as exc:
        raise DataError("Malformed cart payload.", original_error=exc) from exc


class HttpCartService:
    def __init__(self, client: ApiClient):
        self._client = client

    async def get_cart(self, user_id: str) -> CartSnapshot:
        return _to_snapshot(await self._client.get(f"/cart/{_segment(user_id)}"))

    async def add_item(
        self, user_id: str, product_id: str, quantity: int, price: float
    ) -> None:
        await self._client.post(
            f"/cart/{_segment(user_id)}/items",
            json={"productId": product_id, "quantity": quantity, "price": price},
        )

    async def remove_item(self, user_id: str, product_id: str) -> None:
        await self._client.delete(
            f"/cart/{_segment(user_id)}/items/{_segment(product_id)}"
        )

    async def update_quantity(
        self, user_id: str, product_id: str, quantity: int
    ) -> None:
        await self._client.patch(
            f"/cart/{_segment(user_id)}/items/{_segment(product_id)}",
            json={"quantity": quantity},
        )

    async def sync(self, user_id: str, items: Mapping[str, int]) -> CartSnapshot:
        payload = await self._client.post(
            f"/cart/{_segment(user_id)}/sync", json={"frontendCart": dict(items)}
        )
        return _to_snapshot(payload)
