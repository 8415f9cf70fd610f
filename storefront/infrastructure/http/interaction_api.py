"""
Name: Interaction Sink Adapter

Responsibilities:
  - POST /interactions {productId, userId, type}

Notes:
  - Callers fire this in the background; errors are theirs to swallow
"""

from .client import ApiClient


class HttpInteractionSink:
    def __init__(self, client: ApiClient):
        self._client = client

    async def track(self, product_id: str, user_id: str, interaction_type: str) -> None:
        await self._client.post(
            "/interactions",
            json={"productId": product_id, "userId": user_id, "type": interaction_type},
        )
