"""
JSON Document Order Store with Concurrency Control

Persists everything in a single JSON document:

    {
        "orders": [Order, ...],          # most recent first
        "menu": {"pricing": {...}},
        "config": {"delivery": {"slabs": [...]}, "upiId": ..., "businessName": ...}
    }

Writes are all-or-nothing: the new document is written to a temp file in
the same directory, fsynced, then swapped in with os.replace(). A FileLock
serializes writers across processes; an asyncio.Lock serializes them inside
this process. Blocking file I/O runs in a worker thread.
"""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, List, Optional, TypeVar, Union

from filelock import FileLock, Timeout

from tiffin.core.errors import NotFound, StoreError
from tiffin.models import Order
from tiffin.services.store.base import BaseOrderStore, OrderMutator

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _empty_document() -> dict[str, Any]:
    return {"orders": [], "menu": {}, "config": {}}


class JsonFileOrderStore(BaseOrderStore):
    """Order store backed by one JSON file."""

    def __init__(
        self,
        path: Union[str, os.PathLike],
        menu: Optional[dict[str, Any]] = None,
        config: Optional[dict[str, Any]] = None,
        lock_timeout: float = 30,
    ):
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.lock_timeout = lock_timeout
        self._menu = menu
        self._config = config
        self._lock = asyncio.Lock()

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "json"

    # ==========================================================================
    # FILE HELPERS (run in a worker thread)
    # ==========================================================================

    def _file_lock(self) -> FileLock:
        return FileLock(str(self.lock_path), timeout=self.lock_timeout)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return _empty_document()
        with self.path.open(encoding="utf-8") as fh:
            document = json.load(fh)
        for key, value in _empty_document().items():
            document.setdefault(key, value)
        return document

    def _write(self, document: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=str(self.path.parent),
            prefix=f".{self.path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, indent=2, ensure_ascii=False)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def _locked_modify(self, modify: Callable[[dict[str, Any]], tuple[T, bool]]) -> T:
        """
        Read, modify and rewrite the document under the file lock.

        ``modify`` returns ``(result, dirty)``; the file is only rewritten
        when ``dirty`` is true.
        """
        with self._file_lock():
            document = self._read()
            result, dirty = modify(document)
            if dirty:
                self._write(document)
            return result

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(func, *args)
        except Timeout:
            logger.error(f"JSON store: lock timeout on {self.lock_path}")
            raise StoreError(f"Lock timeout ({self.lock_timeout}s)")
        except (OSError, ValueError) as e:
            logger.exception(f"JSON store: I/O error on {self.path}")
            raise StoreError(detail=type(e).__name__)

    # ==========================================================================
    # LIFECYCLE
    # ==========================================================================

    async def init(self) -> None:
        """Create the document if needed and refresh its menu/config snapshot."""

        def refresh(document: dict[str, Any]) -> tuple[int, bool]:
            if self._menu is not None:
                document["menu"] = self._menu
            if self._config is not None:
                document["config"] = self._config
            return len(document["orders"]), True

        async with self._lock:
            count = await self._run(self._locked_modify, refresh)
        logger.info(f"JSON store ready at {self.path} ({count} orders)")

    # ==========================================================================
    # ORDER OPERATIONS
    # ==========================================================================

    async def create(self, order: Order) -> str:

        def insert(document: dict[str, Any]) -> tuple[str, bool]:
            taken = {o.get("id") for o in document["orders"]}
            order_id = self._generate_id(lambda candidate: candidate in taken)
            stored = order.model_copy(update={"id": order_id})
            document["orders"].insert(0, stored.to_public())
            return order_id, True

        async with self._lock:
            order_id = await self._run(self._locked_modify, insert)

        logger.debug(f"JSON store: Order #{order_id} created")
        return order_id

    async def get(self, order_id: str) -> Order:
        document = await self._run(self._read)
        for raw in document["orders"]:
            if raw.get("id") == order_id:
                return Order.model_validate(raw)
        raise NotFound(f"Order {order_id} not found")

    async def update(self, order_id: str, mutator: OrderMutator) -> Order:

        def apply(document: dict[str, Any]) -> tuple[Order, bool]:
            for index, raw in enumerate(document["orders"]):
                if raw.get("id") == order_id:
                    updated, changed = self._apply(Order.model_validate(raw), mutator)
                    if changed:
                        document["orders"][index] = updated.to_public()
                    return updated, changed
            raise NotFound(f"Order {order_id} not found")

        async with self._lock:
            updated = await self._run(self._locked_modify, apply)

        logger.debug(f"JSON store: Order #{order_id} updated")
        return updated

    async def list(self) -> List[Order]:
        document = await self._run(self._read)
        return [Order.model_validate(raw) for raw in document["orders"]]
