"""
Name: Guest Cart Merge

Responsibilities:
  - Submit every guest cart entry to the account's remote cart
  - Erase the guest cart afterwards, whatever happened to each entry
  - Optionally keep failed entries for the next login (retain policy)

Collaborators:
  - domain.repositories.KeyValueStore: guest-cart / pending-merge keys
  - application.catalog.ProductCatalog: prices at merge time
  - domain.services.CartService: remote add

Constraints:
  - Best-effort: one failed entry never aborts the others
  - Entries whose product is no longer in the catalog are skipped
  - Runs once per login transition (enforced by CartStore)

Notes:
  - Under the discard policy a failed entry is lost; the report and a
    WARNING log record which ones
"""

from __future__ import annotations

import asyncio
from typing import Awaitable

from ...domain.repositories import GUEST_CART_KEY, PENDING_MERGE_KEY, KeyValueStore
from ...domain.services import CartService
from ...exceptions import StorefrontError
from ...logger import logger
from ..catalog import ProductCatalog
from .cart_results import MergeReport
from .pending import CartItems


class GuestCartMerger:
    def __init__(
        self,
        storage: KeyValueStore,
        catalog: ProductCatalog,
        cart_service: CartService,
        *,
        retain_failures: bool = False,
    ):
        self._storage = storage
        self._catalog = catalog
        self._cart_service = cart_service
        self._retain_failures = retain_failures

    def _pending_entries(self) -> dict[str, int]:
        entries = CartItems.from_json(self._storage.get(GUEST_CART_KEY)).as_dict()
        if self._retain_failures:
            retained = CartItems.from_json(self._storage.get(PENDING_MERGE_KEY))
            for product_id in retained:
                entries[product_id] = entries.get(product_id, 0) + retained.get(product_id)
        return entries

    async def _ensure_catalog(self) -> None:
        if not self._catalog.is_empty:
            return
        try:
            await self._catalog.refresh()
        except StorefrontError as exc:
            logger.warning(
                "Catalog unavailable during merge", extra={"error": exc.message}
            )

    async def _submit(
        self, user_id: str, product_id: str, quantity: int, price: float
    ) -> bool:
        try:
            await self._cart_service.add_item(user_id, product_id, quantity, price)
            return True
        except StorefrontError as exc:
            logger.warning(
                "Guest cart entry not merged",
                extra={"product_id": product_id, "error": exc.message},
            )
            return False

    async def merge(self, user_id: str) -> MergeReport:
        """R: Push guest entries to the remote cart, then clear the guest cart."""
        report = MergeReport()
        entries = self._pending_entries()

        if entries:
            await self._ensure_catalog()

        submissions: list[tuple[str, Awaitable[bool]]] = []
        for product_id, quantity in entries.items():
            price = self._catalog.price_of(product_id)
            if price is None:
                report.skipped.append(product_id)
                continue
            submissions.append(
                (product_id, self._submit(user_id, product_id, quantity, price))
            )

        outcomes = await asyncio.gather(
            *(call for _, call in submissions), return_exceptions=True
        )
        for (product_id, _), outcome in zip(submissions, outcomes):
            if outcome is True:
                report.submitted.append(product_id)
                continue
            if isinstance(outcome, BaseException):
                logger.error(
                    "Unexpected error merging guest cart entry",
                    extra={"product_id": product_id},
                    exc_info=outcome,
                )
            report.failed.append(product_id)

        self._storage.remove(GUEST_CART_KEY)
        if self._retain_failures and report.failed:
            report.retained = list(report.failed)
            self._storage.set(
                PENDING_MERGE_KEY,
                CartItems({pid: entries[pid] for pid in report.failed}).to_json(),
            )
        else:
            self._storage.remove(PENDING_MERGE_KEY)

        if report.failed or report.skipped:
            logger.warning(
                "Guest cart merge incomplete",
                extra={
                    "submitted": len(report.submitted),
                    "failed": len(report.failed),
                    "skipped": len(report.skipped),
                    "retained": len(report.retained),
                },
            )
        else:
            logger.info(
                "Guest cart merged", extra={"submitted": len(report.submitted)}
            )
        return report
