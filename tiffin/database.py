"""
Database Connection Module
Async SQLAlchemy engine/session factory and the orders table used by the
database order store (STORE_BACKEND=database).
"""

from sqlalchemy import Column, DateTime, Float, Integer, JSON, String
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.sql import func

from tiffin.models import Order


# Base class for all our models
class Base(DeclarativeBase):
    pass


class OrderRecord(Base):
    """
    One row per order.

    The full order document lives in ``document``; id, status, amount and
    timestamps are duplicated into columns for lookups and ordering.
    """
    __tablename__ = "orders"

    # Insertion sequence, drives most-recent-first listing
    seq = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(32), nullable=False, unique=True, index=True)
    status = Column(String(32), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    document = Column(JSON, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @classmethod
    def from_order(cls, order: Order) -> "OrderRecord":
        return cls(
            order_id=order.id,
            status=order.status.value,
            amount=order.amount,
            document=order.to_public(),
            created_at=order.created_at,
        )

    def to_order(self) -> Order:
        return Order.model_validate(self.document)

    def apply(self, order: Order) -> None:
        self.status = order.status.value
        self.amount = order.amount
        self.document = order.to_public()

    def __repr__(self):
        return f"<OrderRecord #{self.order_id} - {self.status}>"


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine for ``database_url``."""
    return create_async_engine(database_url, echo=echo)


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory - creates new database sessions."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Objects remain accessible after commit
    )


async def init_db(engine: AsyncEngine) -> None:
    """
    Create all tables in database.
    Called once at application startup.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
