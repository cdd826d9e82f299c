"""
Admin Gateway

PIN-protected access for the kitchen: list orders and move them through
preparing → out_for_delivery → delivered, or cancel them.
"""

import hmac
import logging
from typing import List, Optional, Union

from tiffin.core.errors import MissingCredentials, ValidationError
from tiffin.models import Order, OrderStatus
from tiffin.services.store import BaseOrderStore

logger = logging.getLogger(__name__)

# Statuses an admin may set; paid only comes from a verified payment
ADMIN_STATUSES = frozenset({
    OrderStatus.PREPARING,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
})


class AdminGateway:
    """Privileged order operations."""

    def __init__(self, store: BaseOrderStore, pin: Optional[str]):
        self.store = store
        self._pin = pin

    def authenticate(self, pin: Optional[str]) -> bool:
        """
        Constant-time PIN check.

        Raises:
            MissingCredentials: if no admin PIN is configured
        """
        if not self._pin:
            raise MissingCredentials("ADMIN_PIN is not configured", error="no_admin_pin")
        return hmac.compare_digest((pin or "").encode("utf-8"), self._pin.encode("utf-8"))

    async def list_orders(self) -> List[Order]:
        return await self.store.list()

    async def set_status(self, order_id: str, status: Union[OrderStatus, str]) -> Order:
        """
        Move an order to a new status.

        Raises:
            ValidationError: if ``status`` is not an admin status
            NotFound: if the order does not exist
            InvalidTransition: if the move goes backwards or leaves a terminal state
        """
        try:
            target = OrderStatus(status)
        except ValueError:
            target = None
        if target not in ADMIN_STATUSES:
            allowed = sorted(s.value for s in ADMIN_STATUSES)
            raise ValidationError(
                f"Invalid status. Options: {allowed}",
                error="invalid_status",
            )

        order = await self.store.update(
            order_id,
            lambda o: o.transition_to(target, actor="admin"),
        )
        logger.info(f"Admin set Order #{order_id} to {target.value}")
        return order
