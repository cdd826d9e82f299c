"""
Razorpay Payment Link Service Implementation

Production implementation calling the Razorpay Payment Links REST API
(POST /v1/payment_links) with httpx.
Used when ENV_MODE=production or ENV_MODE=staging.

Requirements:
    - RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET must be set in environment

Notes:
    - Amounts are sent in paise
    - reference_id is the order id, so a retried request for the same
      order is rejected by Razorpay instead of creating a second link
    - Every call has a bounded timeout (RAZORPAY_TIMEOUT_SECONDS)

API Documentation:
    https://razorpay.com/docs/api/payments/payment-links/

Version: 1.0.0
"""

import logging
from datetime import datetime
from typing import Any, Optional

import httpx

from tiffin.core.errors import MissingCredentials, ProviderError
from tiffin.services.payment.base import (
    BasePaymentLinkService,
    CustomerDetails,
    PaymentLinkResult,
    to_minor_units,
    validate_link_request,
)

logger = logging.getLogger(__name__)


class RazorpayPaymentLinkService(BasePaymentLinkService):
    """
    Production Razorpay payment link service.

    Example:
        >>> service = RazorpayPaymentLinkService("rzp_test_x", "secret")
        >>> result = await service.create_payment_link(
        ...     amount=220,
        ...     customer=CustomerDetails(name="Asha", phone="9876543210"),
        ...     reference_id="Xy12_abc",
        ... )
        >>> result.url
        'https://rzp.io/i/abc123'
    """

    def __init__(
        self,
        key_id: Optional[str],
        key_secret: Optional[str],
        api_base: str = "https://api.razorpay.com/v1",
        timeout: float = 10.0,
        business_name: str = "Sharma Tiffin",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the HTTP client.

        Missing keys do not fail here; create_payment_link() raises
        MissingCredentials so the API can report the misconfiguration.

        Args:
            key_id: Razorpay key id
            key_secret: Razorpay key secret
            api_base: REST API base URL
            timeout: Seconds before a provider call is abandoned
            business_name: Default description on the payment page
            transport: Custom httpx transport (tests)
        """
        self._key_id = key_id
        self._key_secret = key_secret
        self._business_name = business_name
        self._client = httpx.AsyncClient(
            base_url=api_base,
            timeout=timeout,
            transport=transport,
        )

        if not (key_id and key_secret):
            logger.warning("Razorpay credentials not configured")

        logger.info(f"RazorpayPaymentLinkService initialized (timeout={timeout}s)")

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "razorpay"

    def _require_credentials(self) -> tuple[str, str]:
        if not (self._key_id and self._key_secret):
            raise MissingCredentials("Set RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET in .env")
        return self._key_id, self._key_secret

    async def create_payment_link(
        self,
        amount: float,
        customer: CustomerDetails,
        reference_id: str,
        description: Optional[str] = None,
        callback_url: Optional[str] = None,
        notes: Optional[dict] = None,
    ) -> PaymentLinkResult:
        """Create a Razorpay payment link and return its short URL."""
        amount = validate_link_request(amount, customer)
        auth = self._require_credentials()
        start_time = datetime.now()

        body: dict[str, Any] = {
            "amount": to_minor_units(amount),
            "currency": "INR",
            "accept_partial": False,
            "reference_id": reference_id,
            "description": description or f"{self._business_name} Order",
            "customer": {
                "name": customer.name,
                "contact": customer.phone,
                "email": customer.email or "",
            },
            "notify": {"sms": True, "email": True},
            "notes": notes or {},
        }
        if callback_url:
            body["callback_url"] = callback_url
            body["callback_method"] = "get"

        logger.info(f"Razorpay: Creating payment link {reference_id} for ₹{amount:.2f}")

        try:
            response = await self._client.post("/payment_links", json=body, auth=auth)
        except httpx.TimeoutException:
            logger.error(f"Razorpay: Timed out creating link {reference_id}")
            raise ProviderError(504, detail="timeout", message="Payment provider timed out")
        except httpx.HTTPError as e:
            logger.error(f"Razorpay: Connection error - {e}")
            raise ProviderError(
                502,
                detail=type(e).__name__,
                message="Payment provider temporarily unavailable",
            )

        elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000

        try:
            data = response.json()
        except ValueError:
            data = {"body": response.text[:500]}

        if response.status_code >= 400:
            logger.error(
                f"Razorpay: Link {reference_id} rejected - "
                f"status={response.status_code}"
            )
            raise ProviderError(response.status_code, detail=data)

        url = data.get("short_url")
        if not url:
            raise ProviderError(502, detail=data, message="Payment provider returned no link URL")

        logger.info(f"Razorpay: Payment link created - {data.get('id')} - {url}")

        return PaymentLinkResult(
            url=url,
            link_id=data.get("id"),
            reference_id=data.get("reference_id", reference_id),
            amount=amount,
            currency=data.get("currency", "INR"),
            status=data.get("status"),
            response_time_ms=elapsed_ms,
            raw=data,
        )

    async def health_check(self) -> bool:
        """Razorpay is usable when its keys are configured."""
        return bool(self._key_id and self._key_secret)

    async def aclose(self) -> None:
        await self._client.aclose()
