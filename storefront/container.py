"""
Name: Composition Root

Responsibilities:
  - Build a StorefrontSession from Settings
  - Pick the storage backend (file when STORAGE_PATH is set, else memory)
  - Share one ApiClient between the HTTP adapters

Collaborators:
  - config.get_settings
  - infrastructure.http / infrastructure.storage (implementations)
  - application.* / identity.* (core)

Notes:
  - No business logic here
  - Tests pass their own transport and storage
"""

from __future__ import annotations

from functools import lru_cache

import httpx

from .application.cart import CartStore, CheckoutCoordinator
from .application.catalog import ProductCatalog
from .application.preferences import Preferences
from .config import Settings, get_settings
from .domain.repositories import KeyValueStore
from .identity.access_control import AccessControl
from .identity.tokens import TokenSettings
from .infrastructure.http import (
    ApiClient,
    HttpAuthService,
    HttpCartService,
    HttpInteractionSink,
    HttpProductService,
)
from .infrastructure.storage import InMemoryKeyValueStore, JsonFileKeyValueStore
from .session import StorefrontSession


def build_storage(settings: Settings) -> KeyValueStore:
    if settings.storage_path:
        return JsonFileKeyValueStore(settings.storage_path)
    return InMemoryKeyValueStore()


def build_session(
    settings: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    storage: KeyValueStore | None = None,
) -> StorefrontSession:
    """Wire the concrete adapters into one session."""
    settings = settings or get_settings()
    storage = storage if storage is not None else build_storage(settings)

    client = ApiClient(
        settings.api_base_url,
        storage=storage,
        timeout=settings.request_timeout_seconds,
        transport=transport,
        retry_max_attempts=settings.retry_max_attempts,
        retry_base_delay=settings.retry_base_delay_seconds,
        retry_max_delay=settings.retry_max_delay_seconds,
    )
    cart_service = HttpCartService(client)

    access = AccessControl(
        storage,
        HttpAuthService(client),
        token_settings=TokenSettings(
            verify_signature=settings.jwt_verify_signature,
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        ),
    )
    catalog = ProductCatalog(HttpProductService(client))
    cart = CartStore(
        access,
        storage,
        catalog,
        cart_service,
        HttpInteractionSink(client),
        serialize_mutations=settings.serialize_cart_mutations,
        retain_failed_merges=settings.retains_failed_merges,
        track_interactions=settings.track_interactions,
    )
    return StorefrontSession(
        storage=storage,
        access=access,
        catalog=catalog,
        cart=cart,
        checkout=CheckoutCoordinator(access, cart, cart_service),
        preferences=Preferences(storage),
        client=client,
    )


@lru_cache(maxsize=1)
def get_session() -> StorefrontSession:
    """Process-wide session for the web shell."""
    return build_session()
