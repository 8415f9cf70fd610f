"""
Name: Domain Repository Interfaces

Responsibilities:
  - Define the contract for client-side persistent storage
  - Provide abstraction over the storage technology (file, memory)

Collaborators:
  - Implementations in infrastructure.storage

Constraints:
  - Pure interfaces (Protocol), no implementation
  - String keys and string values only; each key independent

Notes:
  - Mirrors the browser's local key/value store: values survive restart
    until explicitly removed
  - Shared across processes without locking (last writer wins)
"""

from typing import Protocol

GUEST_CART_KEY = "guest-cart"
AUTH_TOKEN_KEY = "auth-token"
LOGGED_IN_KEY = "isLoggedIn"
THEME_KEY = "theme"
PENDING_MERGE_KEY = "pending-merge"


class KeyValueStore(Protocol):
    """
    R: Interface for persistent string key/value storage.

    Implementations must provide:
      - Synchronous get/set/remove (callers rely on write-through)
      - Durability across process restarts (file-backed variant)
    """

    def get(self, key: str) -> str | None:
        """R: Return the stored value or None when absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """R: Store value under key, replacing any previous value."""
        ...

    def remove(self, key: str) -> None:
        """R: Delete key; absent keys are ignored."""
        ...
