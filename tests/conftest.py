"""
Name: Pytest Configuration and Shared Fixtures

Responsibilities:
  - Provide in-memory fakes for the remote collaborators
  - Provide a controllable clock and a bearer token factory
  - Assemble AccessControl / CartStore the way the container does

Notes:
  - Fixtures are function-scoped for isolation
  - Async tests are marked explicitly with @pytest.mark.asyncio
"""

import asyncio
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping

import jwt
import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from storefront import config as storefront_config  # noqa: E402

storefront_config.Settings.model_config["env_file"] = None
os.environ.setdefault("APP_ENV", "test")

from storefront.application.catalog import ProductCatalog  # noqa: E402
from storefront.application.cart import CartStore  # noqa: E402
from storefront.domain.entities import CartLine, CartSnapshot, Product  # noqa: E402
from storefront.exceptions import AuthError, NetworkError  # noqa: E402
from storefront.identity.access_control import AccessControl  # noqa: E402
from storefront.identity.tokens import TokenSettings  # noqa: E402
from storefront.infrastructure.storage import InMemoryKeyValueStore  # noqa: E402

TEST_SECRET = "storefront-test-secret-0123456789abcdef"
TOKEN_SETTINGS = TokenSettings(verify_signature=False, secret="", algorithm="HS256")


def pytest_configure(config) -> None:
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )


# ============================================================================
# Clock and tokens
# ============================================================================


class FrozenClock:
    def __init__(self, at: datetime):
        self.now = at

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc))


def encode_token(
    *,
    now: datetime,
    role: str = "customer",
    user_id: str | None = "user-1",
    permissions: Iterable[str] = ("cart.manage.own", "orders.create"),
    expires_in: float = 3600,
    **claims: Any,
) -> str:
    payload: dict[str, Any] = {
        "role": role,
        "permissions": list(permissions),
        "email": "shopper@example.com",
        "username": "shopper",
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
    }
    if user_id is not None:
        payload["userId"] = user_id
    payload.update(claims)
    return jwt.encode(payload, TEST_SECRET, algorithm="HS256")


@pytest.fixture
def make_token(clock: FrozenClock):
    def _make(**kwargs: Any) -> str:
        return encode_token(now=clock.now, **kwargs)

    return _make


# ============================================================================
# Fakes
# ============================================================================


class FakeAuthService:
    def __init__(self):
        self.token: str | None = None
        self.error: Exception | None = None
        self.calls: list[tuple[str, dict]] = []

    async def login(self, credentials: Mapping[str, Any]) -> str:
        return self._issue("login", credentials)

    async def signup(self, user_data: Mapping[str, Any]) -> str:
        return self._issue("signup", user_data)

    def _issue(self, action: str, payload: Mapping[str, Any]) -> str:
        self.calls.append((action, dict(payload)))
        if self.error is not None:
            raise self.error
        if self.token is None:
            raise AuthError("Invalid credentials.")
        return self.token


class FakeCartService:
    def __init__(self):
        self.carts: dict[str, dict[str, int]] = {}
        self.calls: list[tuple] = []
        self.failing_products: set[str] = set()
        self.fail_writes = False
        self.fail_reads = False
        self.add_gate: asyncio.Event | None = None
        self.product_gates: dict[str, asyncio.Event] = {}

    def _error(self) -> NetworkError:
        return NetworkError("Service unavailable", status_code=503)

    def _snapshot(self, user_id: str) -> CartSnapshot:
        cart = self.carts.get(user_id, {})
        return CartSnapshot(lines=tuple(CartLine(pid, qty) for pid, qty in cart.items()))

    async def get_cart(self, user_id: str) -> CartSnapshot:
        self.calls.append(("get", user_id))
        if self.fail_reads:
            raise self._error()
        return self._snapshot(user_id)

    async def add_item(self, user_id: str, product_id: str, quantity: int, price: float) -> None:
        self.calls.append(("add", user_id, product_id, quantity, price))
        if self.add_gate is not None:
            await self.add_gate.wait()
        if product_id in self.product_gates:
            await self.product_gates[product_id].wait()
        if self.fail_writes or product_id in self.failing_products:
            raise self._error()
        cart = self.carts.setdefault(user_id, {})
        cart[product_id] = cart.get(product_id, 0) + quantity

    async def remove_item(self, user_id: str, product_id: str) -> None:
        self.calls.append(("remove", user_id, product_id))
        if self.fail_writes:
            raise self._error()
        self.carts.setdefault(user_id, {}).pop(product_id, None)

    async def update_quantity(self, user_id: str, product_id: str, quantity: int) -> None:
        self.calls.append(("update", user_id, product_id, quantity))
        if self.fail_writes:
            raise self._error()
        self.carts.setdefault(user_id, {})[product_id] = quantity

    async def sync(self, user_id: str, items: Mapping[str, int]) -> CartSnapshot:
        self.calls.append(("sync", user_id, dict(items)))
        if self.fail_writes:
            raise self._error()
        self.carts[user_id] = {k: v for k, v in items.items() if v > 0}
        return self._snapshot(user_id)

    def writes(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in {"add", "remove", "update"}]


class FakeProductService:
    def __init__(self, products: Iterable[Product] = ()):
        self.products = list(products)
        self.error: Exception | None = None

    async def list_products(self) -> list[Product]:
        if self.error is not None:
            raise self.error
        return list(self.products)

    async def get_product(self, product_id: str) -> Product | None:
        return next((p for p in self.products if p.id == product_id), None)


class FakeInteractionSink:
    def __init__(self):
        self.events: list[tuple[str, str, str]] = []
        self.error: Exception | None = None

    async def track(self, product_id: str, user_id: str, interaction_type: str) -> None:
        if self.error is not None:
            raise self.error
        self.events.append((product_id, user_id, interaction_type))


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def products() -> list[Product]:
    return [
        Product(id="p1", name="Linen Shirt", new_price=100.0, old_price=120.0),
        Product(id="p2", name="Canvas Tote", new_price=50.0),
        Product(id="p3", name="Wool Scarf", new_price=25.0),
    ]


@pytest.fixture
def storage() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def auth_service() -> FakeAuthService:
    return FakeAuthService()


@pytest.fixture
def cart_service() -> FakeCartService:
    return FakeCartService()


@pytest.fixture
def product_service(products) -> FakeProductService:
    return FakeProductService(products)


@pytest.fixture
def interactions() -> FakeInteractionSink:
    return FakeInteractionSink()


@pytest.fixture
def catalog(products, product_service) -> ProductCatalog:
    catalog = ProductCatalog(product_service)
    catalog.load(products)
    return catalog


@pytest.fixture
def access(storage, auth_service, clock) -> AccessControl:
    return AccessControl(storage, auth_service, now=clock, token_settings=TOKEN_SETTINGS)


@pytest.fixture
def make_cart(access, storage, catalog, cart_service, interactions):
    def _make(**kwargs: Any) -> CartStore:
        return CartStore(access, storage, catalog, cart_service, interactions, **kwargs)

    return _make


@pytest.fixture
def cart(make_cart) -> CartStore:
    return make_cart()
