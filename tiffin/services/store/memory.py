"""
In-Memory Order Store

Keeps orders in a process-local dict. Used by the test suite and for quick
local runs (STORE_BACKEND=memory); nothing survives a restart.
"""

import asyncio
import logging

from tiffin.core.errors import NotFound
from tiffin.models import Order
from tiffin.services.store.base import BaseOrderStore, KeyedLocks, OrderMutator

logger = logging.getLogger(__name__)


class InMemoryOrderStore(BaseOrderStore):
    """
    Dict-backed order store.

    Returned orders are copies, so callers can never modify stored state
    outside of update().
    """

    def __init__(self):
        self._orders: dict[str, Order] = {}
        self._create_lock = asyncio.Lock()
        self._locks = KeyedLocks()

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "memory"

    async def create(self, order: Order) -> str:
        async with self._create_lock:
            order_id = self._generate_id(lambda candidate: candidate in self._orders)
            self._orders[order_id] = order.model_copy(update={"id": order_id}, deep=True)

        logger.debug(f"Memory: Order #{order_id} created")
        return order_id

    async def get(self, order_id: str) -> Order:
        order = self._orders.get(order_id)
        if order is None:
            raise NotFound(f"Order {order_id} not found")
        return order.model_copy(deep=True)

    async def list(self) -> list[Order]:
        return [order.model_copy(deep=True) for order in reversed(self._orders.values())]

    async def update(self, order_id: str, mutator: OrderMutator) -> Order:
        async with self._locks.lock(order_id):
            current = self._orders.get(order_id)
            if current is None:
                raise NotFound(f"Order {order_id} not found")

            updated, changed = self._apply(current, mutator)
            if changed:
                self._orders[order_id] = updated
                logger.debug(f"Memory: Order #{order_id} updated")

        return updated.model_copy(deep=True)

    def __len__(self) -> int:
        return len(self._orders)
