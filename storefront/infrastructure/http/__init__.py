from .auth_api import HttpAuthService
from .cart_api import HttpCartService
from .client import ApiClient
from .interaction_api import HttpInteractionSink
from .product_api import HttpProductService

__all__ = [
    "ApiClient",
    "HttpAuthService",
    "HttpCartService",
    "HttpInteractionSink",
    "HttpProductService",
]
