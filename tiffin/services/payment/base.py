"""
Payment Link Service Abstract Base Class

Defines the interface contract for hosted payment-link providers.
Both MockPaymentLinkService and RazorpayPaymentLinkService implement it,
so the issuer works the same regardless of which one is active.

Design Pattern: Strategy Pattern
    - Allows runtime switching between payment providers
    - Facilitates testing with mock implementations

Failures are raised, not returned:
    - ValidationError: amount or customer name/phone missing
    - MissingCredentials: provider keys not configured
    - ProviderError: provider answered with an error status or was unreachable

Version: 1.0.0
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from tiffin.core.errors import ValidationError


@dataclass
class CustomerDetails:
    """Customer details forwarded to the payment provider."""
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


@dataclass
class PaymentLinkResult:
    """
    Standardized result from payment link creation.

    Attributes:
        url: Shareable payment page URL (Razorpay short_url)
        link_id: Provider id of the link (plink_xxx)
        reference_id: Our reference passed to the provider (the order id)
        amount: Amount in rupees
        currency: Currency code
        status: Link status reported by the provider
        response_time_ms: Time taken by the provider call
        raw: Full provider response
    """
    url: str
    link_id: Optional[str] = None
    reference_id: Optional[str] = None
    amount: Optional[float] = None
    currency: str = "INR"
    status: Optional[str] = None
    response_time_ms: float = 0.0
    raw: Optional[dict] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "url": self.url,
            "link_id": self.link_id,
            "reference_id": self.reference_id,
            "amount": self.amount,
            "currency": self.currency,
            "status": self.status,
            "response_time_ms": self.response_time_ms,
        }


def to_minor_units(amount: float) -> int:
    """
    Convert rupees to paise.

    Razorpay expects amounts in the smallest currency unit.

    Args:
        amount: Amount in rupees (e.g., 220.5)

    Returns:
        int: Amount in paise (e.g., 22050)
    """
    return int(round(amount * 100))


def validate_link_request(amount: Any, customer: Optional[CustomerDetails]) -> float:
    """
    Check the fields every payment link needs.

    Returns:
        float: The amount as a number

    Raises:
        ValidationError: if amount or customer name/phone is missing
    """
    if not amount or customer is None or not customer.name or not customer.phone:
        raise ValidationError(
            "Provide amount and customer {name, phone}",
            error="missing_parameters",
        )
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise ValidationError("amount must be a number", error="missing_parameters")
    if value <= 0:
        raise ValidationError("amount must be greater than 0", error="missing_parameters")
    return value


class BasePaymentLinkService(ABC):
    """
    Abstract base class for payment link services.

    Example:
        >>> service = create_payment_link_service(settings)
        >>> result = await service.create_payment_link(
        ...     amount=220,
        ...     customer=CustomerDetails(name="Asha", phone="9876543210"),
        ...     reference_id="Xy12_abc",
        ... )
        >>> print(result.url)
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the payment provider.

        Returns:
            str: Provider name (e.g., "mock", "razorpay")
        """
        pass

    @abstractmethod
    async def create_payment_link(
        self,
        amount: float,
        customer: CustomerDetails,
        reference_id: str,
        description: Optional[str] = None,
        callback_url: Optional[str] = None,
        notes: Optional[dict] = None,
    ) -> PaymentLinkResult:
        """
        Create a shareable payment link.

        Args:
            amount: Amount in rupees (converted to paise by the provider call)
            customer: Name and phone are required, email optional
            reference_id: Unique reference, the order id where there is one
            description: Text shown on the payment page
            callback_url: Where the provider redirects after payment (GET)
            notes: Key-value data echoed back in webhook events

        Returns:
            PaymentLinkResult: Contains the shareable URL
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify the provider is usable.

        Returns:
            bool: True if the service is configured and operational
        """
        pass

    async def aclose(self) -> None:
        """Release network resources."""
