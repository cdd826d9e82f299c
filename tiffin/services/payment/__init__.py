"""
Payment Service Factory

Provides a single entry point for obtaining the hosted payment-link service.
The factory keeps the rest of the application agnostic about which
implementation is being used.

Usage:
    from tiffin.services.payment import create_payment_link_service

    link_service = create_payment_link_service(settings)
    result = await link_service.create_payment_link(220, customer, "Xy12_abc")

Environment Switching:
    - ENV_MODE=development → MockPaymentLinkService (no API calls)
    - ENV_MODE=staging → RazorpayPaymentLinkService (test keys)
    - ENV_MODE=production → RazorpayPaymentLinkService (live keys)
"""

import logging

from tiffin.core.config import Settings
from tiffin.services.payment.base import (
    BasePaymentLinkService,
    CustomerDetails,
    PaymentLinkResult,
)
from tiffin.services.payment.issuer import PayableReference, PaymentLinkIssuer, PaymentMethod
from tiffin.services.payment.mock import MockPaymentLinkService
from tiffin.services.payment.razorpay import RazorpayPaymentLinkService
from tiffin.services.payment.upi import UpiDeepLinkBuilder, build_upi_url

logger = logging.getLogger(__name__)


def create_payment_link_service(settings: Settings) -> BasePaymentLinkService:
    """
    Create the configured payment link service.

    Returns:
        BasePaymentLinkService: Mock in development, Razorpay otherwise
    """
    if settings.is_development:
        logger.info("Payment Service: Using MockPaymentLinkService (development mode)")
        return MockPaymentLinkService()

    logger.info(
        f"Payment Service: Using RazorpayPaymentLinkService "
        f"({settings.env_mode.value} mode)"
    )
    return RazorpayPaymentLinkService(
        key_id=settings.razorpay_key_id,
        key_secret=settings.razorpay_key_secret,
        api_base=settings.razorpay_api_base,
        timeout=settings.razorpay_timeout_seconds,
        business_name=settings.business_name,
    )


# Export commonly used types and functions
__all__ = [
    "create_payment_link_service",
    "BasePaymentLinkService",
    "CustomerDetails",
    "PaymentLinkResult",
    "PaymentLinkIssuer",
    "PaymentMethod",
    "PayableReference",
    "MockPaymentLinkService",
    "RazorpayPaymentLinkService",
    "UpiDeepLinkBuilder",
    "build_upi_url",
]
