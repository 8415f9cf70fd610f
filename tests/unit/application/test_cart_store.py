"""
Name: CartStore Tests

Responsibilities:
  - Guest mode persistence, idempotent remove and add/remove round trips
  - Guest -> account merge (success, partial failure, one-shot)
  - Authenticated optimistic mutations and their compensation
  - Logout reset and late responses from a previous session
  - Per-product serialization and interaction events
"""

import asyncio
import json

import pytest

from storefront.application.cart import CartErrorCode, CartStore
from storefront.domain.entities import CartState
from storefront.domain.repositories import AUTH_TOKEN_KEY, GUEST_CART_KEY

pytestmark = pytest.mark.unit


async def _yield(times: int = 5) -> None:
    for _ in range(times):
        await asyncio.sleep(0)


async def _start(access, cart: CartStore) -> CartState:
    access.initialize()
    return await cart.initialize()


def _persisted(storage) -> dict:
    raw = storage.get(GUEST_CART_KEY)
    return json.loads(raw) if raw else {}


@pytest.fixture
def signed_in(storage, make_token):
    def _sign_in(user_id: str = "u1", **kwargs) -> str:
        token = make_token(user_id=user_id, **kwargs)
        storage.set(AUTH_TOKEN_KEY, token)
        return token

    return _sign_in


@pytest.fixture
def login(access, auth_service, make_token, cart):
    async def _login(user_id: str = "u1"):
        auth_service.token = make_token(user_id=user_id)
        result = await access.login({"email": "a@b.c", "password": "pw"})
        await cart.wait_until_settled()
        return result

    return _login


# =============================================================================
# Guest mode
# =============================================================================


@pytest.mark.asyncio
async def test_guest_start_loads_persisted_cart(access, cart, storage):
    storage.set(GUEST_CART_KEY, json.dumps({"p1": 2, "p9": 0, "bad": "x"}))

    state = await _start(access, cart)

    assert state == CartState.GUEST
    assert cart.items == {"p1": 2}


@pytest.mark.asyncio
async def test_guest_start_with_unreadable_cart_is_empty(access, cart, storage):
    storage.set(GUEST_CART_KEY, "{not json")

    await _start(access, cart)

    assert cart.items == {}


@pytest.mark.asyncio
async def test_guest_mutations_are_persisted_after_each_call(access, cart, storage, cart_service):
    await _start(access, cart)

    for op, pid in [("add", "p1"), ("add", "p1"), ("add", "p2"), ("remove", "p1"), ("remove", "p2")]:
        result = await (cart.add_item(pid) if op == "add" else cart.remove_item(pid))
        assert result.success
        assert result.is_guest
        assert _persisted(storage) == cart.items

    assert cart.items == {"p1": 1}
    assert cart_service.calls == []


@pytest.mark.asyncio
async def test_remove_absent_product_is_noop(access, cart, storage):
    await _start(access, cart)
    await cart.add_item("p1")

    result = await cart.remove_item("p2")

    assert result.success
    assert result.quantity == 0
    assert cart.items == {"p1": 1}


@pytest.mark.asyncio
async def test_guest_add_then_remove_round_trip(access, cart):
    await _start(access, cart)
    await cart.add_item("p1")
    before = cart.items

    await cart.add_item("p2")
    await cart.remove_item("p2")

    assert cart.items == before
    assert "p2" not in cart.items


@pytest.mark.asyncio
async def test_guest_save_failure_is_returned_and_rolled_back(
    access, cart, storage, monkeypatch
):
    await _start(access, cart)
    await cart.add_item("p1")

    def disk_full(key, value):
        raise OSError("disk full")

    monkeypatch.setattr(storage, "set", disk_full)
    added = await cart.add_item("p1")
    removed = await cart.remove_item("p1")

    assert added.error.code == CartErrorCode.STORAGE_ERROR
    assert removed.error.code == CartErrorCode.STORAGE_ERROR
    assert cart.items == {"p1": 1}
    assert _persisted(storage) == cart.items


@pytest.mark.asyncio
async def test_totals(access, cart):
    await _start(access, cart)
    await cart.add_item("p1")
    await cart.add_item("p1")
    await cart.add_item("p2")

    assert cart.total_amount() == 250
    assert cart.total_item_count() == 3


@pytest.mark.asyncio
async def test_totals_ignore_products_missing_from_catalog(access, cart, storage):
    storage.set(GUEST_CART_KEY, json.dumps({"p1": 1, "gone": 4}))
    await _start(access, cart)

    assert cart.total_amount() == 100
    assert cart.total_item_count() == 5


@pytest.mark.asyncio
async def test_expired_credential_at_start_leaves_guest_cart(
    access, cart, storage, signed_in, clock
):
    signed_in(expires_in=60)
    storage.set(GUEST_CART_KEY, json.dumps({"p3": 1}))
    clock.advance(61)

    state = await _start(access, cart)

    assert state == CartState.GUEST
    assert access.role.value == "guest"
    assert storage.get(AUTH_TOKEN_KEY) is None
    assert cart.items == {"p3": 1}


# =============================================================================
# Merge
# =============================================================================


@pytest.mark.asyncio
async def test_login_merges_guest_cart_and_keeps_totals(
    access, cart, storage, cart_service, login
):
    await _start(access, cart)
    await cart.add_item("p1")
    await cart.add_item("p1")
    await cart.add_item("p2")

    result = await login("u1")

    assert result.success
    assert cart.state == CartState.AUTHENTICATED
    assert sorted(c for c in cart_service.calls if c[0] == "add") == [
        ("add", "u1", "p1", 2, 100.0),
        ("add", "u1", "p2", 1, 50.0),
    ]
    assert storage.get(GUEST_CART_KEY) is None
    assert cart.items == {"p1": 2, "p2": 1}
    assert cart.total_amount() == 250
    assert cart.total_item_count() == 3


@pytest.mark.asyncio
async def test_merge_adds_to_existing_remote_cart(access, cart, cart_service, login):
    cart_service.carts["u1"] = {"p1": 1, "p3": 4}
    await _start(access, cart)
    await cart.add_item("p1")

    await login("u1")

    assert cart.items == {"p1": 2, "p3": 4}


@pytest.mark.parametrize("failing", [set(), {"p2"}, {"p1", "p2", "p3"}])
@pytest.mark.asyncio
async def test_merge_completes_regardless_of_failures(
    access, cart, storage, cart_service, login, failing
):
    await _start(access, cart)
    for pid in ("p1", "p2", "p3"):
        await cart.add_item(pid)
    cart_service.failing_products = failing

    await login("u1")

    assert cart.state == CartState.AUTHENTICATED
    assert storage.get(GUEST_CART_KEY) is None
    assert sorted(cart.last_merge_report.failed) == sorted(failing)
    assert set(cart.items) == {"p1", "p2", "p3"} - failing


@pytest.mark.asyncio
async def test_merge_skips_products_missing_from_catalog(access, cart, storage, cart_service, login):
    storage.set(GUEST_CART_KEY, json.dumps({"p1": 1, "gone": 2}))
    await _start(access, cart)

    await login("u1")

    assert cart.last_merge_report.skipped == ["gone"]
    assert [c[2] for c in cart_service.calls if c[0] == "add"] == ["p1"]
    assert storage.get(GUEST_CART_KEY) is None


@pytest.mark.asyncio
async def test_merge_runs_once_per_login(access, cart, storage, cart_service, login, auth_service, make_token):
    await _start(access, cart)
    await cart.add_item("p1")
    await login("u1")
    adds = len(cart_service.writes())

    # Re-authenticating as the same user (refreshed token) is not a new login.
    auth_service.token = make_token(user_id="u1", expires_in=7200)
    await access.login({"email": "a@b.c", "password": "pw"})
    await cart.initialize()
    await cart.wait_until_settled()

    assert len(cart_service.writes()) == adds


@pytest.mark.asyncio
async def test_authenticated_start_drains_leftover_guest_cart(
    access, cart, storage, cart_service, signed_in
):
    signed_in("u1")
    storage.set(GUEST_CART_KEY, json.dumps({"p2": 3}))

    state = await _start(access, cart)

    assert state == CartState.AUTHENTICATED
    assert cart_service.carts["u1"] == {"p2": 3}
    assert storage.get(GUEST_CART_KEY) is None


@pytest.mark.asyncio
async def test_mutation_during_merge_waits_for_merge(access, cart, cart_service, login, auth_service, make_token):
    await _start(access, cart)
    await cart.add_item("p1")
    cart_service.add_gate = asyncio.Event()

    auth_service.token = make_token(user_id="u1")
    await access.login({"email": "a@b.c", "password": "pw"})
    assert cart.state == CartState.MERGING

    pending = asyncio.create_task(cart.add_item("p2"))
    await _yield()
    assert not pending.done()

    cart_service.add_gate.set()
    result = await pending

    assert result.success
    assert not result.is_guest
    assert cart_service.carts["u1"] == {"p1": 1, "p2": 1}
    assert cart.items == {"p1": 1, "p2": 1}


@pytest.mark.asyncio
async def test_remote_fetch_failure_after_merge_still_authenticates(access, cart, cart_service, login):
    await _start(access, cart)
    await cart.add_item("p1")
    cart_service.fail_reads = True

    await login("u1")

    assert cart.state == CartState.AUTHENTICATED
    assert cart.items == {"p1": 1}


# =============================================================================
# Authenticated mutations
# =============================================================================


@pytest.mark.asyncio
async def test_authenticated_add_uses_current_price_and_refetches(
    access, cart, cart_service, signed_in, interactions
):
    signed_in("u1")
    await _start(access, cart)

    result = await cart.add_item("p3")
    await cart.flush_background()

    assert result.success
    assert result.quantity == 1
    assert ("add", "u1", "p3", 1, 25.0) in cart_service.calls
    assert cart_service.calls[-1] == ("get", "u1")
    assert interactions.events == [("p3", "u1", "cart_add")]


@pytest.mark.asyncio
async def test_authenticated_add_failure_reverts(access, cart, cart_service, signed_in):
    cart_service.carts["u1"] = {"p3": 2}
    signed_in("u1")
    await _start(access, cart)
    cart_service.fail_writes = True

    result = await cart.add_item("p3")

    assert not result.success
    assert result.error.code == CartErrorCode.NETWORK_ERROR
    assert cart.quantity_of("p3") == 2


@pytest.mark.asyncio
async def test_authenticated_add_unknown_product(access, cart, cart_service, signed_in):
    signed_in("u1")
    await _start(access, cart)

    result = await cart.add_item("nope")

    assert result.error.code == CartErrorCode.PRODUCT_NOT_FOUND
    assert cart_service.writes() == []
    assert cart.items == {}


@pytest.mark.asyncio
async def test_interaction_failure_does_not_fail_add(access, cart, signed_in, interactions):
    signed_in("u1")
    await _start(access, cart)
    interactions.error = RuntimeError("analytics down")

    result = await cart.add_item("p1")
    await cart.flush_background()

    assert result.success


@pytest.mark.asyncio
async def test_interactions_can_be_disabled(access, make_cart, signed_in, interactions):
    cart = make_cart(track_interactions=False)
    signed_in("u1")
    await _start(access, cart)

    await cart.add_item("p1")
    await cart.flush_background()

    assert interactions.events == []


@pytest.mark.asyncio
async def test_authenticated_remove_patches_then_deletes(access, cart, cart_service, signed_in):
    cart_service.carts["u1"] = {"p1": 2}
    signed_in("u1")
    await _start(access, cart)

    await cart.remove_item("p1")
    assert cart.items == {"p1": 1}
    await cart.remove_item("p1")

    assert cart.items == {}
    assert cart_service.writes() == [("update", "u1", "p1", 1), ("remove", "u1", "p1")]


@pytest.mark.asyncio
async def test_authenticated_remove_failure_compensates(access, cart, cart_service, signed_in):
    cart_service.carts["u1"] = {"p1": 1}
    signed_in("u1")
    await _start(access, cart)
    cart_service.fail_writes = True

    result = await cart.remove_item("p1")

    assert result.error.code == CartErrorCode.NETWORK_ERROR
    assert cart.items == {"p1": 1}


@pytest.mark.asyncio
async def test_authenticated_round_trip(access, cart, cart_service, signed_in):
    cart_service.carts["u1"] = {"p2": 1}
    signed_in("u1")
    await _start(access, cart)

    await cart.add_item("p1")
    await cart.remove_item("p1")

    assert cart.items == {"p2": 1}
    assert cart_service.carts["u1"] == {"p2": 1}


@pytest.mark.asyncio
async def test_same_product_mutations_are_serialized(access, cart, cart_service, signed_in):
    signed_in("u1")
    await _start(access, cart)
    cart_service.add_gate = asyncio.Event()

    first = asyncio.create_task(cart.add_item("p1"))
    second = asyncio.create_task(cart.add_item("p1"))
    await _yield()
    assert len(cart_service.writes()) == 1

    cart_service.add_gate.set()
    await asyncio.gather(first, second)

    assert cart.items == {"p1": 2}


@pytest.mark.asyncio
async def test_unserialized_mutations_run_concurrently(access, make_cart, cart_service, signed_in):
    cart = make_cart(serialize_mutations=False)
    signed_in("u1")
    await _start(access, cart)
    cart_service.add_gate = asyncio.Event()

    tasks = [asyncio.create_task(cart.add_item("p1")) for _ in range(2)]
    await _yield()
    assert len(cart_service.writes()) == 2

    cart_service.add_gate.set()
    await asyncio.gather(*tasks)
    assert cart_service.carts["u1"] == {"p1": 2}


@pytest.mark.asyncio
async def test_failed_add_stays_exact_after_concurrent_add_commits(
    access, cart, cart_service, signed_in
):
    cart_service.carts["u1"] = {"p2": 1}
    signed_in("u1")
    await _start(access, cart)
    gate = cart_service.product_gates["p2"] = asyncio.Event()
    cart_service.failing_products = {"p2"}

    held = asyncio.create_task(cart.add_item("p2"))
    await _yield()
    assert cart.items == {"p2": 2}

    other = await cart.add_item("p1")
    assert other.success
    assert cart.items == {"p1": 1, "p2": 2}

    gate.set()
    failed = await held

    assert failed.error.code == CartErrorCode.NETWORK_ERROR
    assert cart.items == cart_service.carts["u1"] == {"p1": 1, "p2": 1}


@pytest.mark.asyncio
async def test_refresh_keeps_in_flight_adds(access, cart, cart_service, signed_in):
    cart_service.carts["u1"] = {"p2": 1}
    signed_in("u1")
    await _start(access, cart)
    gate = cart_service.product_gates["p2"] = asyncio.Event()

    held = asyncio.create_task(cart.add_item("p2"))
    await _yield()
    await cart.refresh()
    assert cart.items == {"p2": 2}

    gate.set()
    result = await held

    assert result.success
    assert cart.items == cart_service.carts["u1"] == {"p2": 2}


# =============================================================================
# Logout and liveness
# =============================================================================


@pytest.mark.asyncio
async def test_logout_resets_to_empty_guest_cart(access, cart, storage, cart_service, signed_in):
    cart_service.carts["u1"] = {"p1": 3}
    signed_in("u1")
    await _start(access, cart)
    storage.set(GUEST_CART_KEY, json.dumps({"p3": 5}))

    access.logout()

    assert cart.state == CartState.GUEST
    assert cart.items == {}

    await cart.add_item("p2")
    assert _persisted(storage) == {"p2": 1}


@pytest.mark.asyncio
async def test_late_response_after_logout_is_ignored(access, cart, storage, cart_service, signed_in):
    signed_in("u1")
    await _start(access, cart)
    cart_service.add_gate = asyncio.Event()

    pending = asyncio.create_task(cart.add_item("p1"))
    await _yield()
    assert cart.quantity_of("p1") == 1

    access.logout()
    assert cart.items == {}
    cart_service.add_gate.set()
    await pending

    assert cart.items == {}
    assert cart.state == CartState.GUEST
    assert storage.get(GUEST_CART_KEY) is None


@pytest.mark.asyncio
async def test_expiry_switches_to_guest_mode_on_next_mutation(
    access, cart, storage, cart_service, signed_in, clock
):
    signed_in("u1", expires_in=60)
    await _start(access, cart)
    clock.advance(61)

    result = await cart.add_item("p1")

    assert result.is_guest
    assert storage.get(AUTH_TOKEN_KEY) is None
    assert cart_service.writes() == []


@pytest.mark.asyncio
async def test_refresh_reads_remote_cart(access, cart, cart_service, signed_in):
    signed_in("u1")
    await _start(access, cart)
    cart_service.carts["u1"] = {"p2": 2}

    result = await cart.refresh()

    assert result.success
    assert cart.items == {"p2": 2}


@pytest.mark.asyncio
async def test_refresh_failure_is_returned(access, cart, cart_service, signed_in):
    signed_in("u1")
    await _start(access, cart)
    cart_service.fail_reads = True

    result = await cart.refresh()

    assert result.error.code == CartErrorCode.NETWORK_ERROR


@pytest.mark.asyncio
async def test_teardown_detaches_from_access(access, cart, signed_in):
    signed_in("u1")
    await _start(access, cart)

    await cart.teardown()
    access.logout()

    assert cart.state == CartState.UNINITIALIZED
    assert cart.items == {}
