"""
Database Order Store

SQLAlchemy async implementation (PostgreSQL via psycopg in production,
SQLite via aiosqlite in tests). Each create/update commits its own
transaction before returning. Updates take a per-id asyncio lock and a
row lock (SELECT ... FOR UPDATE where the database supports it).
"""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from tiffin.core.errors import NotFound, StoreError
from tiffin.database import OrderRecord, create_engine, create_session_maker, init_db
from tiffin.models import Order, new_order_id
from tiffin.services.store.base import MAX_ID_ATTEMPTS, BaseOrderStore, KeyedLocks, OrderMutator

logger = logging.getLogger(__name__)


class DatabaseOrderStore(BaseOrderStore):
    """Order store backed by the ``orders`` table."""

    def __init__(self, database_url: str, echo: bool = False):
        self.engine = create_engine(database_url, echo=echo)
        self.session_maker = create_session_maker(self.engine)
        self._locks = KeyedLocks()

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "database"

    async def init(self) -> None:
        try:
            await init_db(self.engine)
        except SQLAlchemyError as e:
            logger.exception("Database store: could not create tables")
            raise StoreError("Database unavailable", detail=type(e).__name__)
        logger.info("Database store ready")

    async def close(self) -> None:
        await self.engine.dispose()

    async def create(self, order: Order) -> str:
        for _ in range(MAX_ID_ATTEMPTS):
            order_id = new_order_id()
            record = OrderRecord.from_order(order.model_copy(update={"id": order_id}))

            async with self.session_maker() as session:
                session.add(record)
                try:
                    await session.commit()
                except IntegrityError:
                    # Id already taken, draw another one
                    await session.rollback()
                    continue
                except SQLAlchemyError as e:
                    await session.rollback()
                    logger.exception("Database store: insert failed")
                    raise StoreError(detail=type(e).__name__)

            logger.debug(f"Database store: Order #{order_id} created")
            return order_id

        raise StoreError("Could not allocate a unique order id")

    async def get(self, order_id: str) -> Order:
        async with self.session_maker() as session:
            result = await session.execute(
                select(OrderRecord).where(OrderRecord.order_id == order_id)
            )
            record = result.scalar_one_or_none()

        if record is None:
            raise NotFound(f"Order {order_id} not found")
        return record.to_order()

    async def update(self, order_id: str, mutator: OrderMutator) -> Order:
        async with self._locks.lock(order_id):
            try:
                async with self.session_maker() as session:
                    async with session.begin():
                        result = await session.execute(
                            select(OrderRecord)
                            .where(OrderRecord.order_id == order_id)
                            .with_for_update()
                        )
                        record = result.scalar_one_or_none()
                        if record is None:
                            raise NotFound(f"Order {order_id} not found")

                        updated, changed = self._apply(record.to_order(), mutator)
                        if changed:
                            record.apply(updated)
            except SQLAlchemyError as e:
                logger.exception(f"Database store: update of Order #{order_id} failed")
                raise StoreError(detail=type(e).__name__)

        logger.debug(f"Database store: Order #{order_id} updated")
        return updated

    async def list(self) -> List[Order]:
        async with self.session_maker() as session:
            result = await session.execute(
                select(OrderRecord).order_by(OrderRecord.seq.desc())
            )
            records = result.scalars().all()
        return [record.to_order() for record in records]
