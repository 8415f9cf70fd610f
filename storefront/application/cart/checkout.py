"""
Name: Checkout Cart Synchronization

Responsibilities:
  - Push the local cart view to the account before an order is placed
  - Refuse checkout for guests and for carts that end up empty
  - Refresh the local view once the order is placed

Collaborators:
  - application.cart.cart_store.CartStore: local view + reconcile
  - domain.services.CartService: POST /cart/:userId/sync

Constraints:
  - Never raises for remote failures; returns CartSyncResult errors
"""

from __future__ import annotations

from ...context import operation_scope
from ...domain.services import CartService
from ...exceptions import StorefrontError
from ...identity.access_control import AccessControl
from ...logger import logger
from .cart_results import CartError, CartErrorCode, CartSyncResult
from .cart_store import CartStore

NOT_AUTHENTICATED_MESSAGE = "Please login to checkout."
EMPTY_CART_MESSAGE = "Your cart is empty."
SYNC_FAILED_MESSAGE = "Could not prepare your cart for checkout. Please try again."


class CheckoutCoordinator:
    def __init__(self, access: AccessControl, cart: CartStore, cart_service: CartService):
        self._access = access
        self._cart = cart
        self._cart_service = cart_service

    async def sync_for_checkout(self) -> CartSyncResult:
        """R: Reconcile the local cart with the account and return the result."""
        with operation_scope("cart.checkout_sync"):
            if not self._access.check_expiry():
                return CartSyncResult(
                    error=CartError(CartErrorCode.NOT_AUTHENTICATED, NOT_AUTHENTICATED_MESSAGE)
                )
            await self._cart.wait_until_settled()

            generation = self._cart.generation
            user_id = self._access.user_id
            try:
                snapshot = await self._cart_service.sync(user_id, self._cart.items)
            except StorefrontError as exc:
                logger.warning("Checkout sync failed", extra={"error": exc.message})
                return CartSyncResult(
                    error=CartError(CartErrorCode.NETWORK_ERROR, SYNC_FAILED_MESSAGE)
                )

            if not self._cart.reconcile(snapshot, generation):
                return CartSyncResult(
                    error=CartError(CartErrorCode.NOT_AUTHENTICATED, NOT_AUTHENTICATED_MESSAGE)
                )
            if snapshot.is_empty:
                logger.info("Checkout refused for an empty cart")
                return CartSyncResult(
                    snapshot=snapshot,
                    error=CartError(CartErrorCode.EMPTY_CART, EMPTY_CART_MESSAGE),
                )
            return CartSyncResult(snapshot=snapshot)

    async def after_order_placed(self) -> CartSyncResult:
        """R: The backend empties the cart on order; re-read it."""
        return await self._cart.refresh()
