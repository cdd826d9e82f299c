import pytest

from tiffin.core.errors import InvalidTransition, MissingCredentials, NotFound, ValidationError
from tiffin.models import Order, OrderStatus
from tiffin.services.admin import AdminGateway
from tiffin.services.store import InMemoryOrderStore


async def setup_gateway(pin="4321"):
    store = InMemoryOrderStore()
    order_id = await store.create(Order(
        mobile="9876543210",
        plan_type="breakfast",
        qty=1,
        unit_price=40,
        delivery_fee=20,
        amount=60,
    ))
    return AdminGateway(store, pin), store, order_id


async def test_authenticate():
    gateway, _, _ = await setup_gateway()

    assert gateway.authenticate("4321") is True
    assert gateway.authenticate("0000") is False
    assert gateway.authenticate(None) is False


async def test_authenticate_without_configured_pin():
    gateway, _, _ = await setup_gateway(pin=None)

    with pytest.raises(MissingCredentials):
        gateway.authenticate("1234")


async def test_set_status_moves_forward():
    gateway, store, order_id = await setup_gateway()

    order = await gateway.set_status(order_id, "preparing")

    assert order.status == OrderStatus.PREPARING
    assert order.history[-1].actor == "admin"
    assert (await store.get(order_id)).status == OrderStatus.PREPARING


async def test_set_status_unknown_order_leaves_store_unchanged():
    gateway, store, _ = await setup_gateway()
    before = [o.model_dump() for o in await store.list()]

    with pytest.raises(NotFound):
        await gateway.set_status("unknown1", "delivered")

    assert [o.model_dump() for o in await store.list()] == before


@pytest.mark.parametrize("status", ["paid", "pending_payment", "shipped", ""])
async def test_set_status_rejects_non_admin_statuses(status):
    gateway, _, order_id = await setup_gateway()

    with pytest.raises(ValidationError) as exc_info:
        await gateway.set_status(order_id, status)
    assert exc_info.value.error == "invalid_status"


async def test_set_status_cannot_leave_delivered():
    gateway, _, order_id = await setup_gateway()
    await gateway.set_status(order_id, "delivered")

    with pytest.raises(InvalidTransition):
        await gateway.set_status(order_id, "cancelled")


async def test_list_orders_most_recent_first():
    gateway, store, first = await setup_gateway()
    second = await store.create((await store.get(first)).model_copy(update={"qty": 2}))

    assert [o.id for o in await gateway.list_orders()] == [second, first]
