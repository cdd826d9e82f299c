"""
Order Store Abstract Base Class

Defines the interface contract for all order store implementations
(in-memory, JSON document file, SQL database). The rest of the application
only talks to this interface, so a test can hand any implementation to the
app.

Contract:
    - create() assigns a fresh unique id and persists the order
    - get() / update() raise NotFound for unknown ids
    - list() returns most recent orders first
    - update() serializes read-modify-write per order id
    - create() and update() are durable before they return

Version: 1.0.0
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from tiffin.core.errors import StoreError
from tiffin.models import Order, new_order_id

# Mutators edit the order in place; the store persists the result
OrderMutator = Callable[[Order], None]

logger = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 10


class KeyedLocks:
    """
    One asyncio.Lock per key, created on demand and dropped when idle.

    Example:
        >>> locks = KeyedLocks()
        >>> async with locks.lock("abc123"):
        ...     ...  # exclusive for "abc123" only
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: defaultdict[str, int] = defaultdict(int)

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                self._locks.pop(key, None)

    def __len__(self) -> int:
        return len(self._locks)


class BaseOrderStore(ABC):
    """Abstract base class for order stores."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the store backend.

        Returns:
            str: Backend name (e.g., "memory", "json", "database")
        """
        pass

    async def init(self) -> None:
        """Prepare the backend (create files or tables). Called at startup."""

    async def close(self) -> None:
        """Release backend resources. Called at shutdown."""

    @abstractmethod
    async def create(self, order: Order) -> str:
        """
        Persist a new order under a freshly generated id.

        Any id already on ``order`` is ignored.

        Returns:
            str: The assigned order id
        """
        pass

    @abstractmethod
    async def get(self, order_id: str) -> Order:
        """
        Fetch one order.

        Raises:
            NotFound: if no order has that id
        """
        pass

    @abstractmethod
    async def list(self) -> list[Order]:
        """All orders, most recent first."""
        pass

    @abstractmethod
    async def update(self, order_id: str, mutator: OrderMutator) -> Order:
        """
        Apply ``mutator`` to the stored order and persist the result.

        Calls for the same id are serialized so no update is lost. When the
        mutator leaves the order unchanged nothing is written.

        Returns:
            Order: The order after the mutation

        Raises:
            NotFound: if no order has that id
        """
        pass

    async def health_check(self) -> bool:
        """
        Verify the backend is usable.

        Returns:
            bool: True if orders can be read
        """
        try:
            await self.list()
            return True
        except Exception as e:
            logger.error(f"{self.provider_name} store health check failed: {e}")
            return False

    # ==========================================================================
    # SHARED HELPERS
    # ==========================================================================

    @staticmethod
    def _generate_id(exists: Callable[[str], bool]) -> str:
        """Generate an order id not accepted by ``exists``."""
        for _ in range(MAX_ID_ATTEMPTS):
            order_id = new_order_id()
            if not exists(order_id):
                return order_id
        raise StoreError("Could not allocate a unique order id")

    @staticmethod
    def _apply(current: Order, mutator: OrderMutator) -> tuple[Order, bool]:
        """
        Run a mutator against a copy of ``current``.

        Returns:
            tuple: (updated order, whether anything changed)
        """
        working = current.model_copy(deep=True)
        mutator(working)
        if working.id != current.id or working.created_at != current.created_at:
            raise ValueError("Order id and createdAt are immutable")
        return working, working != current
