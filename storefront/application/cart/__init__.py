from .cart_results import (
    CartError,
    CartErrorCode,
    CartMutationResult,
    CartSyncResult,
    MergeReport,
)
from .cart_store import CartStore
from .checkout import CheckoutCoordinator

__all__ = [
    "CartError",
    "CartErrorCode",
    "CartMutationResult",
    "CartStore",
    "CartSyncResult",
    "CheckoutCoordinator",
    "MergeReport",
]
