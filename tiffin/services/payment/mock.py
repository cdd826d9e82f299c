"""
Mock Payment Link Service Implementation

Simulates Razorpay payment links without making real API calls.
Used in development mode (ENV_MODE=development) to:
    - Test the complete order flow locally
    - Develop without Razorpay test keys

Behavior:
    - Optional simulated latency
    - Optional random provider failures (failure_rate)
    - Generates Razorpay-like ids (plink_xxx) and rzp.io-like URLs
"""

import asyncio
import logging
import random
import uuid
from typing import Optional

from tiffin.core.errors import ProviderError
from tiffin.services.payment.base import (
    BasePaymentLinkService,
    CustomerDetails,
    PaymentLinkResult,
    validate_link_request,
)

logger = logging.getLogger(__name__)


class MockPaymentLinkService(BasePaymentLinkService):
    """
    Mock implementation of the payment link service.

    Attributes:
        failure_rate: Probability of a simulated provider failure (0.0-1.0)
        min_latency: Minimum simulated response time in seconds
        max_latency: Maximum simulated response time in seconds
        max_links: Most links remembered; the oldest is dropped past this
        links: Recent links created, keyed by reference id, oldest first
    """

    def __init__(
        self,
        failure_rate: float = 0.0,
        min_latency: float = 0.0,
        max_latency: float = 0.0,
        max_links: int = 10_000,
    ):
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency
        self.max_links = max_links
        self.links: dict[str, PaymentLinkResult] = {}

        logger.info(
            f"MockPaymentLinkService initialized "
            f"(failure_rate={failure_rate:.0%}, "
            f"latency={min_latency}-{max_latency}s)"
        )

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "mock"

    async def _simulate_latency(self) -> float:
        latency = random.uniform(self.min_latency, self.max_latency)
        if latency:
            await asyncio.sleep(latency)
        return latency * 1000

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    async def create_payment_link(
        self,
        amount: float,
        customer: CustomerDetails,
        reference_id: str,
        description: Optional[str] = None,
        callback_url: Optional[str] = None,
        notes: Optional[dict] = None,
    ) -> PaymentLinkResult:
        """Simulate creating a payment link."""
        amount = validate_link_request(amount, customer)
        latency_ms = await self._simulate_latency()

        if self._should_fail():
            logger.debug(f"Mock: Simulated provider failure for {reference_id}")
            raise ProviderError(502, detail={"error": {"code": "SERVER_ERROR"}})

        # Razorpay rejects a reused reference_id; mirror that
        if reference_id in self.links:
            raise ProviderError(
                400,
                detail={"error": {"code": "BAD_REQUEST_ERROR",
                                  "description": "reference_id already exists"}},
            )

        token = uuid.uuid4().hex[:10]
        result = PaymentLinkResult(
            url=f"https://rzp.io/i/mock{token}",
            link_id=f"plink_mock_{token}",
            reference_id=reference_id,
            amount=amount,
            status="created",
            response_time_ms=latency_ms,
            raw={
                "customer": {"name": customer.name, "contact": customer.phone},
                "description": description,
                "callback_url": callback_url,
                "notes": notes or {},
                "mock": True,
            },
        )
        self.links[reference_id] = result
        while len(self.links) > self.max_links:
            del self.links[next(iter(self.links))]

        logger.info(f"Mock: Payment link created - {result.link_id} - ₹{amount:.2f}")
        return result

    async def health_check(self) -> bool:
        """Mock health check always returns True."""
        return True
