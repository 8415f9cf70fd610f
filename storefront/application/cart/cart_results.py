"""
Name: Cart Operation Results

Responsibilities:
  - Describe the outcome of a cart mutation without raising
  - Carry a stable error code the UI can branch on

Notes:
  - Remote failures are logged where they happen; results only carry
    a user-facing message
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ...domain.entities import CartSnapshot


class CartErrorCode(str, Enum):
    NETWORK_ERROR = "NETWORK_ERROR"
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    EMPTY_CART = "EMPTY_CART"
    STORAGE_ERROR = "STORAGE_ERROR"


@dataclass(frozen=True)
class CartError:
    code: CartErrorCode
    message: str

    def to_dict(self) -> dict:
        return {"code": self.code.value, "message": self.message}


@dataclass(frozen=True)
class CartMutationResult:
    """R: Outcome of add_item / remove_item."""

    product_id: str
    quantity: int = 0
    is_guest: bool = False
    error: CartError | None = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class CartSyncResult:
    """R: Outcome of a whole-cart fetch or checkout synchronization."""

    snapshot: CartSnapshot | None = None
    error: CartError | None = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class MergeReport:
    """R: What one guest-to-account merge did."""

    submitted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    retained: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed
