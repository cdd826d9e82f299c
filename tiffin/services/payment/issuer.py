"""
Payment Link Issuer

Turns a stored order into something the customer can pay: a UPI deep link
or a hosted payment link. The caller picks the method; it is never inferred.
"""

import enum
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional

from tiffin.models import Order
from tiffin.services.payment.base import BasePaymentLinkService, CustomerDetails
from tiffin.services.payment.upi import UpiDeepLinkBuilder

logger = logging.getLogger(__name__)


class PaymentMethod(str, enum.Enum):
    UPI = "upi"
    PAYMENT_LINK = "payment_link"


@dataclass
class PayableReference:
    """What the client needs to collect payment."""
    method: PaymentMethod
    url: str
    amount: float
    reference_id: str
    provider_ref: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: dict[str, Any] = {
            "method": self.method.value,
            "url": self.url,
            "amount": self.amount,
            "referenceId": self.reference_id,
        }
        if self.method == PaymentMethod.UPI:
            data["upiUrl"] = self.url
        if self.provider_ref:
            data["providerRef"] = self.provider_ref
        return data


def customer_for(order: Order) -> CustomerDetails:
    customer = order.customer
    return CustomerDetails(
        name=customer.name if customer else None,
        phone=order.contact_phone,
        email=customer.email if customer else None,
    )


class PaymentLinkIssuer:
    """
    Issues payable references for orders.

    Example:
        >>> issuer = PaymentLinkIssuer(upi_builder, link_service)
        >>> ref = await issuer.issue(order, PaymentMethod.UPI)
        >>> ref.url
        'upi://pay?pa=...'
    """

    def __init__(self, upi: UpiDeepLinkBuilder, link_service: BasePaymentLinkService):
        self.upi = upi
        self.link_service = link_service

    async def issue(
        self,
        order: Order,
        method: PaymentMethod,
        callback_url: Optional[str] = None,
        description: Optional[str] = None,
    ) -> PayableReference:
        """
        Produce a payable reference for a stored order.

        Hosted links use the order id as reference id and carry it in
        ``notes.orderId`` so webhook events can be matched to the order.
        """
        if order.id is None:
            raise ValueError("Order must be stored before payment is issued")

        method = PaymentMethod(method)

        if method == PaymentMethod.UPI:
            return PayableReference(
                method=method,
                url=self.upi.build(order),
                amount=order.amount,
                reference_id=order.id,
            )

        result = await self.link_service.create_payment_link(
            amount=order.amount,
            customer=customer_for(order),
            reference_id=order.id,
            description=description or f"{self.upi.payee_name} Order {order.id}",
            callback_url=callback_url,
            notes={"orderId": order.id},
        )
        logger.info(f"Payment link issued for Order #{order.id} via {self.link_service.provider_name}")

        return PayableReference(
            method=method,
            url=result.url,
            amount=order.amount,
            reference_id=order.id,
            provider_ref=result.link_id,
        )

    async def create_standalone_link(
        self,
        amount: Any,
        customer: Optional[CustomerDetails],
        description: Optional[str] = None,
        callback_url: Optional[str] = None,
    ) -> PayableReference:
        """
        Hosted payment link not tied to a stored order.

        A fresh unique reference id is generated for each call.
        """
        reference_id = f"link_{uuid.uuid4().hex[:16]}"
        result = await self.link_service.create_payment_link(
            amount=amount,
            customer=customer or CustomerDetails(),
            reference_id=reference_id,
            description=description,
            callback_url=callback_url,
        )
        return PayableReference(
            method=PaymentMethod.PAYMENT_LINK,
            url=result.url,
            amount=result.amount,
            reference_id=reference_id,
            provider_ref=result.link_id,
        )
