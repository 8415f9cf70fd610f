"""
Name: Two-Phase Cart Mutations

Responsibilities:
  - Apply a tentative local quantity change before the remote call
  - Resolve it exactly once: commit (accept server state) or compensate

Constraints:
  - Compensation reverses the delta against the current quantity; the
    owner must re-apply still-pending deltas whenever it replaces the map
    with a server cart
  - Resolving twice is a programming error
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Iterator, Mapping

from ...logger import logger


class CartItems:
    """R: productId -> positive quantity; zero removes the key."""

    def __init__(self, items: Mapping[str, int] | None = None):
        self._items: dict[str, int] = {}
        if items:
            self.replace(items)

    def get(self, product_id: str) -> int:
        return self._items.get(product_id, 0)

    def adjust(self, product_id: str, delta: int) -> int:
        quantity = self.get(product_id) + delta
        if quantity > 0:
            self._items[product_id] = quantity
        else:
            self._items.pop(product_id, None)
            quantity = 0
        return quantity

    def replace(self, items: Mapping[str, int]) -> None:
        self._items = {str(k): int(v) for k, v in items.items() if int(v) > 0}

    def clear(self) -> None:
        self._items = {}

    def as_dict(self) -> dict[str, int]:
        return dict(self._items)

    def to_json(self) -> str:
        return json.dumps(self._items)

    @classmethod
    def from_json(cls, raw: str | None) -> "CartItems":
        """R: Parse a persisted cart blob; unreadable content yields an empty cart."""
        if not raw:
            return cls()
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable persisted cart")
            return cls()
        if not isinstance(data, dict):
            logger.warning("Discarding persisted cart with unexpected shape")
            return cls()
        items: dict[str, int] = {}
        for key, value in data.items():
            if isinstance(value, bool):
                continue
            try:
                quantity = int(value)
            except (TypeError, ValueError):
                continue
            if quantity > 0:
                items[str(key)] = quantity
        return cls(items)

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)


class MutationStatus(str, Enum):
    PENDING = "pending"
    COMMITTED = "committed"
    COMPENSATED = "compensated"
    ABANDONED = "abandoned"


class PendingMutation:
    """R: A tentative +/- delta on one product awaiting remote confirmation."""

    def __init__(self, items: CartItems, product_id: str, delta: int, generation: int):
        self._items = items
        self.product_id = product_id
        self.delta = delta
        self.generation = generation
        self.status = MutationStatus.PENDING
        self.quantity = items.adjust(product_id, delta)

    def _resolve(self, status: MutationStatus) -> None:
        if self.status != MutationStatus.PENDING:
            raise RuntimeError(f"Mutation already {self.status.value}")
        self.status = status

    def commit(self, confirmed: Mapping[str, int] | None = None) -> None:
        """R: Accept the change; a confirmed server cart replaces local state."""
        self._resolve(MutationStatus.COMMITTED)
        if confirmed is not None:
            self._items.replace(confirmed)

    def compensate(self) -> None:
        """R: Undo exactly this delta."""
        self._resolve(MutationStatus.COMPENSATED)
        self._items.adjust(self.product_id, -self.delta)

    def abandon(self) -> None:
        """R: The session moved on; leave the (already reset) state alone."""
        self._resolve(MutationStatus.ABANDONED)
