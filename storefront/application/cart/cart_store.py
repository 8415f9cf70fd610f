"""
Name: Session Cart Store

Responsibilities:
  - Own the session's cart (productId -> quantity) and its lifecycle state
  - Guest mode: mutate and persist the guest cart locally, no network
  - Authenticated mode: optimistic mutations reconciled with the remote cart
  - Merge the guest cart into the account exactly once per login
  - Compute totals against the catalog snapshot

Collaborators:
  - identity.access_control.AccessControl: identity + change notifications
  - application.cart.merge.GuestCartMerger: guest -> account merge
  - application.cart.pending.PendingMutation: two-phase local changes
  - application.catalog.ProductCatalog: prices
  - domain.services.CartService / InteractionSink: remote calls

Constraints:
  - State machine: UNINITIALIZED -> GUEST -> MERGING -> AUTHENTICATED,
    and AUTHENTICATED -> GUEST (empty) on logout
  - Mutations issued while MERGING wait for the merge to finish
  - Remote and storage failures are returned as CartMutationResult errors,
    never raised; a failed guest save leaves memory as it was
  - Responses from a previous identity (older generation) never touch state
  - Adopting a server cart re-applies the deltas of mutations still in
    flight, so their later commit or compensation stays exact
  - With serialize_mutations, at most one remote mutation per product is
    in flight

Notes:
  - The identity listener is synchronous: logout resets the cart before
    AccessControl.logout() returns; login schedules the merge as a task
"""

from __future__ import annotations

import asyncio
from contextlib import nullcontext
from typing import AsyncContextManager, Mapping

from ...context import operation_scope
from ...domain.entities import (
    CartLine,
    CartSnapshot,
    CartState,
    Identity,
    normalize_product_id,
)
from ...domain.repositories import GUEST_CART_KEY, KeyValueStore
from ...domain.services import CartService, InteractionSink
from ...exceptions import StorefrontError
from ...identity.access_control import AccessControl
from ...logger import logger
from ..catalog import ProductCatalog
from .cart_results import (
    CartError,
    CartErrorCode,
    CartMutationResult,
    CartSyncResult,
    MergeReport,
)
from .merge import GuestCartMerger
from .pending import CartItems, MutationStatus, PendingMutation

CART_ADD_INTERACTION = "cart_add"

ADD_FAILED_MESSAGE = "Could not add the item to your cart. Please try again."
REMOVE_FAILED_MESSAGE = "Could not update your cart. Please try again."
FETCH_FAILED_MESSAGE = "Could not load your cart. Please try again."
PRODUCT_NOT_FOUND_MESSAGE = "This product is no longer available."
SAVE_FAILED_MESSAGE = "Could not save your cart on this device."


class CartStore:
    """R: The single source of truth for the session's cart."""

    def __init__(
        self,
        access: AccessControl,
        storage: KeyValueStore,
        catalog: ProductCatalog,
        cart_service: CartService,
        interactions: InteractionSink | None = None,
        *,
        serialize_mutations: bool = True,
        retain_failed_merges: bool = False,
        track_interactions: bool = True,
    ):
        self._access = access
        self._storage = storage
        self._catalog = catalog
        self._cart_service = cart_service
        self._interactions = interactions
        self._serialize_mutations = serialize_mutations
        self._track_interactions = track_interactions
        self._merger = GuestCartMerger(
            storage, catalog, cart_service, retain_failures=retain_failed_merges
        )

        self._items = CartItems()
        self._state = CartState.UNINITIALIZED
        self._generation = 0
        self._login_transitions = 0
        self._merged_transition = 0
        self._pending_transition: int | None = None
        self._merge_task: asyncio.Task | None = None
        self._merge_lock = asyncio.Lock()
        self._locks: dict[str, asyncio.Lock] = {}
        self._pending: list[PendingMutation] = []
        self._background: set[asyncio.Task] = set()
        self.last_merge_report: MergeReport | None = None

        self._unsubscribe = access.subscribe(self._on_identity_change)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> CartState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_guest(self) -> bool:
        return self._state != CartState.AUTHENTICATED

    @property
    def items(self) -> dict[str, int]:
        return self._items.as_dict()

    def quantity_of(self, product_id: object) -> int:
        return self._items.get(normalize_product_id(product_id))

    def snapshot(self) -> CartSnapshot:
        """R: Local view as cart lines priced from the catalog."""
        return CartSnapshot(
            lines=tuple(
                CartLine(pid, qty, self._catalog.price_of(pid))
                for pid, qty in self._items.as_dict().items()
            )
        )

    def total_amount(self) -> float:
        """R: Sum of quantity x current price; unknown products contribute 0."""
        total = 0.0
        for product_id, quantity in self._items.as_dict().items():
            price = self._catalog.price_of(product_id)
            if price is not None:
                total += price * quantity
        return total

    def total_item_count(self) -> int:
        return sum(self._items.as_dict().values())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> CartState:
        """R: Load the guest cart, or merge and fetch for an authenticated user."""
        if self._state != CartState.UNINITIALIZED:
            await self.wait_until_settled()
            return self._state

        if self._access.check_expiry():
            self._start_merge()
            await self.wait_until_settled()
        else:
            self._items.replace(
                CartItems.from_json(self._storage.get(GUEST_CART_KEY)).as_dict()
            )
            self._state = CartState.GUEST
            logger.info(
                "Guest cart loaded", extra={"item_count": self.total_item_count()}
            )
        return self._state

    async def wait_until_settled(self) -> None:
        """R: Wait for a running merge (if any) to reach AUTHENTICATED."""
        if self._pending_transition is not None:
            self._schedule_merge()
        task = self._merge_task
        if task is not None and not task.done():
            await asyncio.shield(task)

    async def flush_background(self) -> None:
        """R: Wait for fire-and-forget interaction events."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def teardown(self) -> None:
        """R: Detach from AccessControl and cancel outstanding work."""
        self._unsubscribe()
        self._generation += 1
        self._pending.clear()
        self._pending_transition = None
        tasks = [t for t in (self._merge_task, *self._background) if t and not t.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._merge_task = None
        self._items.clear()
        self._state = CartState.UNINITIALIZED

    # ------------------------------------------------------------------
    # Identity transitions
    # ------------------------------------------------------------------

    def _on_identity_change(self, previous: Identity, current: Identity) -> None:
        if self._state == CartState.UNINITIALIZED:
            return
        same_user = previous.user_id == current.user_id
        if previous.is_authenticated and not (current.is_authenticated and same_user):
            self._reset_to_guest()
        if current.is_authenticated and not (previous.is_authenticated and same_user):
            self._start_merge()

    def _reset_to_guest(self) -> None:
        self._generation += 1
        self._pending.clear()
        self._pending_transition = None
        self._merge_task = None
        self._items.clear()
        self._state = CartState.GUEST
        logger.info("Cart reset to an empty guest cart")

    def _start_merge(self) -> None:
        self._login_transitions += 1
        self._pending_transition = self._login_transitions
        self._state = CartState.MERGING
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet: the next awaited cart call starts the merge.
            return
        self._schedule_merge()

    def _schedule_merge(self) -> None:
        transition = self._pending_transition
        self._pending_transition = None
        self._merge_task = asyncio.get_running_loop().create_task(
            self._merge(transition, self._generation)
        )

    async def _merge(self, transition: int, generation: int) -> None:
        async with self._merge_lock:
            try:
                await self._run_merge(transition, generation)
            finally:
                # Never leave the current session stuck in MERGING.
                if generation == self._generation and self._state == CartState.MERGING:
                    self._state = (
                        CartState.AUTHENTICATED
                        if self._access.is_authenticated
                        else CartState.GUEST
                    )

    async def _run_merge(self, transition: int, generation: int) -> None:
        if transition <= self._merged_transition:
            return
        self._merged_transition = transition
        user_id = self._access.user_id
        if generation != self._generation or user_id is None:
            return

        with operation_scope("cart.merge"):
            report = None
            try:
                report = await self._merger.merge(user_id)
            except Exception:
                logger.exception("Guest cart merge failed")
            snapshot = await self._fetch_remote(user_id)

        if generation != self._generation:
            logger.info("Discarding merge result from a previous session")
            return
        self.last_merge_report = report
        if snapshot is not None:
            self._adopt(snapshot.as_items())
        self._state = CartState.AUTHENTICATED

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def _ensure_ready(self) -> None:
        self._access.check_expiry()
        if self._state == CartState.UNINITIALIZED:
            await self.initialize()
        await self.wait_until_settled()

    def _lock_for(self, product_id: str) -> AsyncContextManager:
        if not self._serialize_mutations:
            return nullcontext()
        lock = self._locks.get(product_id)
        if lock is None:
            lock = self._locks[product_id] = asyncio.Lock()
        return lock

    def _persist_guest_cart(self) -> bool:
        try:
            self._storage.set(GUEST_CART_KEY, self._items.to_json())
        except OSError as exc:
            logger.error("Guest cart not saved", extra={"error": str(exc)})
            return False
        return True

    def _mutate_guest(self, pid: str, delta: int) -> CartMutationResult:
        mutation = PendingMutation(self._items, pid, delta, self._generation)
        if not self._persist_guest_cart():
            mutation.compensate()
            return CartMutationResult(
                pid,
                self._items.get(pid),
                is_guest=True,
                error=CartError(CartErrorCode.STORAGE_ERROR, SAVE_FAILED_MESSAGE),
            )
        mutation.commit()
        return CartMutationResult(pid, mutation.quantity, is_guest=True)

    def _begin(self, pid: str, delta: int) -> PendingMutation:
        mutation = PendingMutation(self._items, pid, delta, self._generation)
        self._pending.append(mutation)
        return mutation

    def _settle(self, mutation: PendingMutation) -> bool:
        """R: Drop a mutation from the in-flight set; False if its session is gone."""
        if mutation in self._pending:
            self._pending.remove(mutation)
        if mutation.generation != self._generation:
            mutation.abandon()
            return False
        return True

    def _adopt(self, confirmed: Mapping[str, int]) -> None:
        """R: Take a server cart as truth, keeping in-flight optimistic deltas."""
        self._items.replace(confirmed)
        for pending in self._pending:
            self._items.adjust(pending.product_id, pending.delta)

    def _commit(self, mutation: PendingMutation, snapshot: CartSnapshot | None = None) -> None:
        if not self._settle(mutation):
            return
        mutation.commit()
        if snapshot is not None:
            self._adopt(snapshot.as_items())

    def _compensate(self, mutation: PendingMutation) -> None:
        if not self._settle(mutation):
            return
        mutation.compensate()

    async def add_item(self, product_id: object) -> CartMutationResult:
        """R: Add one unit of a product."""
        pid = normalize_product_id(product_id)
        with operation_scope("cart.add_item"):
            while True:
                await self._ensure_ready()
                if self._state == CartState.GUEST:
                    return self._mutate_guest(pid, 1)
                async with self._lock_for(pid):
                    if self._state != CartState.AUTHENTICATED:
                        continue
                    return await self._add_remote(pid)

    async def _add_remote(self, pid: str) -> CartMutationResult:
        product = self._catalog.get(pid)
        if product is None:
            logger.warning("Add to cart for unknown product", extra={"product_id": pid})
            return CartMutationResult(
                pid,
                self._items.get(pid),
                error=CartError(CartErrorCode.PRODUCT_NOT_FOUND, PRODUCT_NOT_FOUND_MESSAGE),
            )

        user_id = self._access.user_id
        mutation = self._begin(pid, 1)
        try:
            await self._cart_service.add_item(user_id, pid, 1, product.new_price)
        except StorefrontError as exc:
            self._compensate(mutation)
            logger.warning(
                "Add to cart failed", extra={"product_id": pid, "error": exc.message}
            )
            return CartMutationResult(
                pid,
                self._items.get(pid),
                error=CartError(CartErrorCode.NETWORK_ERROR, ADD_FAILED_MESSAGE),
            )
        except BaseException:
            self._compensate(mutation)
            raise

        # The add succeeded; a failed refetch keeps the optimistic quantity.
        snapshot = await self._fetch_remote(user_id)
        self._commit(mutation, snapshot)
        if mutation.status == MutationStatus.COMMITTED:
            self._track(pid, user_id)
        return CartMutationResult(pid, self._items.get(pid))

    async def remove_item(self, product_id: object) -> CartMutationResult:
        """R: Remove one unit of a product; absent products are a no-op."""
        pid = normalize_product_id(product_id)
        with operation_scope("cart.remove_item"):
            while True:
                await self._ensure_ready()
                if self._items.get(pid) == 0:
                    return CartMutationResult(pid, 0, is_guest=self.is_guest)
                if self._state == CartState.GUEST:
                    return self._mutate_guest(pid, -1)
                async with self._lock_for(pid):
                    if self._state != CartState.AUTHENTICATED:
                        continue
                    return await self._remove_remote(pid)

    async def _remove_remote(self, pid: str) -> CartMutationResult:
        if self._items.get(pid) == 0:
            return CartMutationResult(pid, 0)

        user_id = self._access.user_id
        mutation = self._begin(pid, -1)
        try:
            if mutation.quantity == 0:
                await self._cart_service.remove_item(user_id, pid)
            else:
                await self._cart_service.update_quantity(user_id, pid, mutation.quantity)
        except StorefrontError as exc:
            self._compensate(mutation)
            logger.warning(
                "Remove from cart failed", extra={"product_id": pid, "error": exc.message}
            )
            return CartMutationResult(
                pid,
                self._items.get(pid),
                error=CartError(CartErrorCode.NETWORK_ERROR, REMOVE_FAILED_MESSAGE),
            )
        except BaseException:
            self._compensate(mutation)
            raise

        self._commit(mutation)
        return CartMutationResult(pid, self._items.get(pid))

    # ------------------------------------------------------------------
    # Remote reconciliation
    # ------------------------------------------------------------------

    async def _fetch_remote(self, user_id: str) -> CartSnapshot | None:
        try:
            return await self._cart_service.get_cart(user_id)
        except StorefrontError as exc:
            logger.warning("Cart fetch failed", extra={"error": exc.message})
            return None

    def reconcile(self, snapshot: CartSnapshot, generation: int) -> bool:
        """R: Adopt a server cart unless the identity changed since the request."""
        if generation != self._generation or self._state != CartState.AUTHENTICATED:
            logger.info("Ignoring cart snapshot from a previous session")
            return False
        self._adopt(snapshot.as_items())
        return True

    async def refresh(self) -> CartSyncResult:
        """R: Re-read the authoritative cart (remote, or the persisted guest cart)."""
        await self._ensure_ready()
        if self._state == CartState.GUEST:
            self._items.replace(
                CartItems.from_json(self._storage.get(GUEST_CART_KEY)).as_dict()
            )
            return CartSyncResult(snapshot=self.snapshot())

        generation = self._generation
        user_id = self._access.user_id
        try:
            snapshot = await self._cart_service.get_cart(user_id)
        except StorefrontError as exc:
            logger.warning("Cart refresh failed", extra={"error": exc.message})
            return CartSyncResult(
                error=CartError(CartErrorCode.NETWORK_ERROR, FETCH_FAILED_MESSAGE)
            )
        self.reconcile(snapshot, generation)
        return CartSyncResult(snapshot=snapshot)

    # ------------------------------------------------------------------
    # Interaction events
    # ------------------------------------------------------------------

    def _track(self, product_id: str, user_id: str) -> None:
        if not self._track_interactions or self._interactions is None:
            return
        task = asyncio.get_running_loop().create_task(
            self._send_interaction(product_id, user_id)
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _send_interaction(self, product_id: str, user_id: str) -> None:
        try:
            await self._interactions.track(product_id, user_id, CART_ADD_INTERACTION)
        except Exception as exc:
            logger.warning(
                "Interaction event not recorded",
                extra={"product_id": product_id, "error": str(exc)},
            )
