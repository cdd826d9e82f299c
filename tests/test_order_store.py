import asyncio
import json

import pytest

from tiffin.core.errors import InvalidTransition, NotFound
from tiffin.models import STATUS_SEQUENCE, Order, OrderStatus
from tiffin.services.store import DatabaseOrderStore, InMemoryOrderStore, JsonFileOrderStore


def make_order(qty=1):
    return Order(
        mobile="9876543210",
        plan_type="daily",
        qty=qty,
        distance_km=2,
        unit_price=90,
        delivery_fee=20,
        amount=90 * qty + 20,
    )


def mark_paid(order):
    order.transition_to(OrderStatus.PAID, actor="redirect")


@pytest.fixture(params=["memory", "json", "database"])
async def store(request, tmp_path):
    if request.param == "memory":
        order_store = InMemoryOrderStore()
    elif request.param == "json":
        order_store = JsonFileOrderStore(
            tmp_path / "db.json",
            menu={"pricing": {"dailyMeal": 90}},
            config={"upiId": "sharma@okicici"},
        )
    else:
        order_store = DatabaseOrderStore(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")

    await order_store.init()
    yield order_store
    await order_store.close()


async def test_create_assigns_id_and_get_returns_it(store):
    order_id = await store.create(make_order(qty=2))

    order = await store.get(order_id)
    assert order.id == order_id
    assert order.qty == 2
    assert order.amount == 200
    assert order.status == OrderStatus.PENDING_PAYMENT


async def test_get_unknown_raises_not_found(store):
    with pytest.raises(NotFound):
        await store.get("missing1")


async def test_list_is_most_recent_first(store):
    first = await store.create(make_order(qty=1))
    second = await store.create(make_order(qty=2))
    third = await store.create(make_order(qty=3))

    assert [o.id for o in await store.list()] == [third, second, first]


async def test_update_persists_and_is_idempotent(store):
    order_id = await store.create(make_order())

    updated = await store.update(order_id, mark_paid)
    again = await store.update(order_id, mark_paid)

    assert updated.status == OrderStatus.PAID
    assert again.status == OrderStatus.PAID
    assert len(again.history) == 1
    assert (await store.get(order_id)).status == OrderStatus.PAID


async def test_update_unknown_raises_not_found(store):
    await store.create(make_order())
    before = [o.model_dump() for o in await store.list()]

    with pytest.raises(NotFound):
        await store.update("missing1", mark_paid)

    assert [o.model_dump() for o in await store.list()] == before


async def test_rejected_mutation_leaves_order_unchanged(store):
    order_id = await store.create(make_order())
    await store.update(order_id, lambda o: o.transition_to(OrderStatus.DELIVERED))

    with pytest.raises(InvalidTransition):
        await store.update(order_id, mark_paid)

    assert (await store.get(order_id)).status == OrderStatus.DELIVERED


async def test_returned_orders_are_copies(store):
    order_id = await store.create(make_order())

    order = await store.get(order_id)
    order.status = OrderStatus.CANCELLED

    assert (await store.get(order_id)).status == OrderStatus.PENDING_PAYMENT


async def test_concurrent_updates_are_not_lost(store):
    order_id = await store.create(make_order())

    def advance(order):
        order.transition_to(STATUS_SEQUENCE[STATUS_SEQUENCE.index(order.status) + 1])

    await asyncio.gather(store.update(order_id, advance), store.update(order_id, advance))

    order = await store.get(order_id)
    assert order.status == OrderStatus.PREPARING
    assert [h.status for h in order.history] == [OrderStatus.PAID, OrderStatus.PREPARING]


async def test_memory_store_concurrent_creates_get_unique_ids():
    store = InMemoryOrderStore()

    ids = await asyncio.gather(*(store.create(make_order()) for _ in range(1000)))

    assert len(set(ids)) == 1000
    assert len(store) == 1000


async def test_json_store_concurrent_creates_all_persist(tmp_path):
    store = JsonFileOrderStore(tmp_path / "db.json")
    await store.init()

    ids = await asyncio.gather(*(store.create(make_order()) for _ in range(50)))

    assert len(set(ids)) == 50
    document = json.loads((tmp_path / "db.json").read_text(encoding="utf-8"))
    assert {o["id"] for o in document["orders"]} == set(ids)


async def test_json_store_document_layout(tmp_path):
    path = tmp_path / "db.json"
    store = JsonFileOrderStore(
        path,
        menu={"pricing": {"dailyMeal": 90}},
        config={"delivery": {"slabs": [{"maxKm": 3, "fee": 20}]}},
    )
    await store.init()
    order_id = await store.create(make_order())

    document = json.loads(path.read_text(encoding="utf-8"))
    assert document["menu"] == {"pricing": {"dailyMeal": 90}}
    assert document["config"]["delivery"]["slabs"][0]["fee"] == 20
    assert document["orders"][0]["id"] == order_id
    assert document["orders"][0]["distanceKm"] == 2
    assert not list(tmp_path.glob("*.tmp"))


async def test_json_store_survives_restart(tmp_path):
    path = tmp_path / "db.json"
    store = JsonFileOrderStore(path)
    await store.init()
    order_id = await store.create(make_order())
    await store.update(order_id, mark_paid)

    reopened = JsonFileOrderStore(path)
    await reopened.init()

    order = await reopened.get(order_id)
    assert order.status == OrderStatus.PAID


async def test_json_store_unchanged_update_does_not_rewrite(tmp_path):
    path = tmp_path / "db.json"
    store = JsonFileOrderStore(path)
    await store.init()
    order_id = await store.create(make_order())
    await store.update(order_id, mark_paid)
    before = path.stat().st_mtime_ns

    await store.update(order_id, mark_paid)

    assert path.stat().st_mtime_ns == before
