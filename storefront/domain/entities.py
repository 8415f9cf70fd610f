"""
Name: Domain Entities

Responsibilities:
  - Define the shapes shared by identity and cart code
  - Identity: decoded bearer credential (user, role, permissions, expiry)
  - Product: catalog entry the cart prices against
  - CartSnapshot: authoritative remote cart contents

Collaborators:
  - identity.rbac: UserRole, Permission
  - identity.tokens: builds Identity from token claims
  - infrastructure.http: maps wire payloads to Product / CartSnapshot

Constraints:
  - Frozen dataclasses; no I/O, no framework imports
  - Product ids are strings (local storage keys are strings)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from ..identity.rbac import Permission, UserRole


def normalize_product_id(product_id: object) -> str:
    """R: Canonical product key (JSON object keys are always strings)."""
    return str(product_id).strip()


@dataclass(frozen=True)
class Identity:
    """R: Who is using the storefront right now."""

    role: UserRole = UserRole.GUEST
    user_id: str | None = None
    email: str | None = None
    username: str | None = None
    permissions: frozenset[Permission] = field(default_factory=frozenset)
    expires_at: datetime | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None and self.role != UserRole.GUEST

    def is_expired(self, now: datetime) -> bool:
        if self.expires_at is None:
            return False
        return now > self.expires_at


GUEST_IDENTITY = Identity()


@dataclass(frozen=True)
class Product:
    """R: Catalog entry (at least id, name, new_price, image)."""

    id: str
    name: str
    new_price: float
    image: str | None = None
    old_price: float | None = None
    category: str | None = None


@dataclass(frozen=True)
class CartLine:
    product_id: str
    quantity: int
    price: float | None = None


@dataclass(frozen=True)
class CartSnapshot:
    """R: Remote cart as returned by GET /cart/:userId."""

    lines: tuple[CartLine, ...] = ()

    def as_items(self) -> dict[str, int]:
        """R: productId -> quantity, dropping non-positive quantities."""
        items: dict[str, int] = {}
        for line in self.lines:
            if line.quantity > 0:
                items[line.product_id] = items.get(line.product_id, 0) + line.quantity
        return items

    @property
    def is_empty(self) -> bool:
        return not self.as_items()


class CartState(str, Enum):
    """Lifecycle of the session cart."""

    UNINITIALIZED = "uninitialized"
    GUEST = "guest"
    MERGING = "merging"
    AUTHENTICATED = "authenticated"
