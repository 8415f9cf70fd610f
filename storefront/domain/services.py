"""
Name: Domain Service Interfaces

Responsibilities:
  - Define contracts for the remote collaborators the core consumes
  - Auth service, cart service, product catalog, interaction sink

Collaborators:
  - Implementations in infrastructure.http

Constraints:
  - Pure interfaces (Protocol), no implementation
  - Every method is a coroutine; failures raise NetworkError
  - Only the shape matters: the REST backend itself is out of scope

Notes:
  - Tests substitute in-memory fakes implementing these protocols
"""

from typing import Any, Mapping, Protocol, Sequence

from .entities import CartSnapshot, Product


class AuthService(Protocol):
    """R: Issues bearer tokens."""

    async def login(self, credentials: Mapping[str, Any]) -> str:
        """
        R: Exchange credentials for a token.

        Raises:
            AuthError: credentials rejected
            NetworkError: transport failure
        """
        ...

    async def signup(self, user_data: Mapping[str, Any]) -> str:
        """R: Register and return a token (same errors as login)."""
        ...


class CartService(Protocol):
    """R: Remote cart endpoints under /cart/:userId."""

    async def get_cart(self, user_id: str) -> CartSnapshot:
        ...

    async def add_item(
        self, user_id: str, product_id: str, quantity: int, price: float
    ) -> None:
        ...

    async def remove_item(self, user_id: str, product_id: str) -> None:
        ...

    async def update_quantity(
        self, user_id: str, product_id: str, quantity: int
    ) -> None:
        ...

    async def sync(self, user_id: str, items: Mapping[str, int]) -> CartSnapshot:
        """R: Bulk reconcile the local view before checkout."""
        ...


class ProductService(Protocol):
    """R: Product catalog (GET /products, GET /products/:id)."""

    async def list_products(self) -> Sequence[Product]:
        ...

    async def get_product(self, product_id: str) -> Product | None:
        ...


class InteractionSink(Protocol):
    """R: Fire-and-forget analytics (POST /interactions)."""

    async def track(self, product_id: str, user_id: str, interaction_type: str) -> None:
        ...
