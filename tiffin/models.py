"""
Order Domain Models

Pydantic models for the order record as it is stored and served, plus the
order status workflow.

Status workflow:
    pending_payment → paid → preparing → out_for_delivery → delivered
    cancelled is reachable from any state before delivered.

Transitions only move forward (steps may be skipped). delivered and
cancelled are terminal. Re-applying the current status is a no-op.

Version: 1.0.0
"""

import enum
import secrets
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tiffin.core.errors import InvalidTransition


class PlanType(str, enum.Enum):
    """Meal plans a customer can order."""
    DAILY = "daily"
    BREAKFAST = "breakfast"
    MONTHLY_VEG = "monthlyVeg"
    MONTHLY_NON_VEG = "monthlyNonVeg"


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


STATUS_SEQUENCE = (
    OrderStatus.PENDING_PAYMENT,
    OrderStatus.PAID,
    OrderStatus.PREPARING,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Whether an order in ``current`` may move to ``target``."""
    if current == target:
        return True
    if current in TERMINAL_STATUSES:
        return False
    if target == OrderStatus.CANCELLED:
        return True
    return STATUS_SEQUENCE.index(target) > STATUS_SEQUENCE.index(current)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_order_id() -> str:
    """Generate an 8 character url-safe order id."""
    return secrets.token_urlsafe(6)


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys, matching the mobile client."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_public(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class CustomerInfo(CamelModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    email: Optional[str] = None


class PaymentRecord(CamelModel):
    """Proof of a verified payment, attached when an order becomes paid."""
    provider_ref: Optional[str] = None
    verified: bool = True
    at: datetime = Field(default_factory=utcnow)
    source: str = "redirect"
    event: Optional[str] = None


class StatusChange(CamelModel):
    status: OrderStatus
    at: datetime = Field(default_factory=utcnow)
    actor: str = "system"


class Order(CamelModel):
    """
    A tiffin order.

    Prices are always computed server-side by the pricing engine; ``amount``
    equals ``unit_price * qty + delivery_fee``. ``id`` is assigned by the
    order store on create and never changes afterwards.
    """

    id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    # Customer
    mobile: Optional[str] = None
    customer: Optional[CustomerInfo] = None

    # Order details
    plan_type: PlanType = Field(alias="type")
    qty: int = Field(default=1, ge=1)
    distance_km: float = Field(default=0.0, ge=0)
    note: str = ""

    # Pricing
    unit_price: float = Field(ge=0)
    delivery_fee: float = Field(ge=0)
    amount: float = Field(ge=0)

    # Status
    status: OrderStatus = OrderStatus.PENDING_PAYMENT
    payment: Optional[PaymentRecord] = None
    history: list[StatusChange] = Field(default_factory=list)

    @property
    def contact_phone(self) -> Optional[str]:
        if self.customer and self.customer.phone:
            return self.customer.phone
        return self.mobile

    @property
    def is_paid(self) -> bool:
        return self.payment is not None and self.payment.verified

    def transition_to(self, target: OrderStatus, actor: str = "system") -> bool:
        """
        Move the order to ``target`` and record it in the history.

        Returns:
            bool: False when the order already has that status (no-op)

        Raises:
            InvalidTransition: if the move is backwards or out of a terminal state
        """
        if self.status == target:
            return False
        if not can_transition(self.status, target):
            raise InvalidTransition(
                f"Order {self.id} cannot move from {self.status.value} to {target.value}",
                detail={"from": self.status.value, "to": target.value},
            )
        self.status = target
        self.history.append(StatusChange(status=target, actor=actor))
        return True

    def __repr__(self) -> str:
        return f"<Order #{self.id} - {self.plan_type.value} x{self.qty} - {self.status.value}>"
