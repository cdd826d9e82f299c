"""
Order Store Factory

Builds the order store selected by STORE_BACKEND. Unlike the payment
service, the store is not cached here: the serving process constructs it
once at startup and owns it (see tiffin.services.build_services).

Usage:
    from tiffin.services.store import create_order_store

    store = create_order_store(settings, menu=engine.menu())
    await store.init()
    order_id = await store.create(order)

Backends:
    - STORE_BACKEND=memory   → InMemoryOrderStore (lost on restart)
    - STORE_BACKEND=json     → JsonFileOrderStore (data/db.json)
    - STORE_BACKEND=database → DatabaseOrderStore (DATABASE_URL)
"""

import logging
from typing import Any, Optional

from tiffin.core.config import Settings, StoreBackend
from tiffin.services.store.base import BaseOrderStore, KeyedLocks, OrderMutator
from tiffin.services.store.database import DatabaseOrderStore
from tiffin.services.store.json_file import JsonFileOrderStore
from tiffin.services.store.memory import InMemoryOrderStore

logger = logging.getLogger(__name__)


def create_order_store(
    settings: Settings,
    menu: Optional[dict[str, Any]] = None,
    config: Optional[dict[str, Any]] = None,
) -> BaseOrderStore:
    """
    Create the configured order store.

    Args:
        settings: Application settings
        menu: Pricing snapshot written into the JSON document
        config: Delivery/UPI/business snapshot written into the JSON document

    Returns:
        BaseOrderStore: Store instance (call ``init()`` before use)
    """
    if settings.store_backend == StoreBackend.MEMORY:
        logger.info("Order Store: Using InMemoryOrderStore")
        return InMemoryOrderStore()

    if settings.store_backend == StoreBackend.DATABASE:
        logger.info("Order Store: Using DatabaseOrderStore")
        return DatabaseOrderStore(settings.database_url, echo=settings.debug)

    logger.info(f"Order Store: Using JsonFileOrderStore ({settings.store_path})")
    return JsonFileOrderStore(
        settings.store_path,
        menu=menu,
        config=config,
        lock_timeout=settings.store_lock_timeout,
    )


__all__ = [
    "create_order_store",
    "BaseOrderStore",
    "OrderMutator",
    "KeyedLocks",
    "InMemoryOrderStore",
    "JsonFileOrderStore",
    "DatabaseOrderStore",
]
