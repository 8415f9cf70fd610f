"""
Name: Storefront Session

Responsibilities:
  - Own one user session: storage, access control, catalog, cart, checkout
  - Run start-up in order: identity, catalog snapshot, cart
  - Release network resources and log context at teardown

Collaborators:
  - container.build_session: wires the concrete adapters
  - web.main: one session per app instance

Notes:
  - login/signup wait for the guest cart merge so callers observe the
    merged cart; AccessControl itself does not wait
"""

from __future__ import annotations

from typing import Any, Mapping
from uuid import uuid4

from .application.cart import CartStore, CheckoutCoordinator
from .application.catalog import ProductCatalog
from .application.preferences import Preferences
from .context import clear_context, session_id_var
from .domain.repositories import KeyValueStore
from .exceptions import StorefrontError
from .identity.access_control import AccessControl, AuthResult
from .infrastructure.http import ApiClient
from .logger import logger


class StorefrontSession:
    def __init__(
        self,
        *,
        storage: KeyValueStore,
        access: AccessControl,
        catalog: ProductCatalog,
        cart: CartStore,
        checkout: CheckoutCoordinator,
        preferences: Preferences,
        client: ApiClient | None = None,
    ):
        self.session_id = str(uuid4())
        self.storage = storage
        self.access = access
        self.catalog = catalog
        self.cart = cart
        self.checkout = checkout
        self.preferences = preferences
        self._client = client

    async def initialize(self) -> None:
        session_id_var.set(self.session_id)
        self.access.initialize()
        try:
            await self.catalog.refresh()
        except StorefrontError as exc:
            logger.warning("Catalog unavailable at start-up", extra={"error": exc.message})
        await self.cart.initialize()
        logger.info(
            "Storefront session ready",
            extra={
                "role": self.access.role.value,
                "cart_state": self.cart.state.value,
                "item_count": self.cart.total_item_count(),
            },
        )

    async def login(self, credentials: Mapping[str, Any]) -> AuthResult:
        result = await self.access.login(credentials)
        if result.success:
            await self.cart.wait_until_settled()
        return result

    async def signup(self, user_data: Mapping[str, Any]) -> AuthResult:
        result = await self.access.signup(user_data)
        if result.success:
            await self.cart.wait_until_settled()
        return result

    def logout(self) -> None:
        self.access.logout()

    async def teardown(self) -> None:
        await self.cart.teardown()
        if self._client is not None:
            await self._client.aclose()
        logger.info("Storefront session closed")
        clear_context()
