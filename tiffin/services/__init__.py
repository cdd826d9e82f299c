"""
                        Services Module

Contains all business logic services. The serving process builds one
``Services`` container at startup and owns it; routes reach it through
``app.state.services``. Tests build their own container around an
in-memory store and a mock payment link service.

Services:
    - pricing: meal and delivery pricing
    - store: order persistence (memory / JSON file / database)
    - payment: UPI deep links and hosted payment links
    - verification: signed payment callbacks
    - admin: PIN-protected order status updates
"""

import logging
from dataclasses import dataclass
from typing import Optional

from tiffin.core.config import Settings
from tiffin.services.admin import AdminGateway
from tiffin.services.payment import (
    BasePaymentLinkService,
    PaymentLinkIssuer,
    UpiDeepLinkBuilder,
    create_payment_link_service,
)
from tiffin.services.pricing import PricingEngine
from tiffin.services.store import BaseOrderStore, create_order_store
from tiffin.services.verification import PaymentVerifier

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a request handler needs, wired together."""
    settings: Settings
    pricing: PricingEngine
    store: BaseOrderStore
    link_service: BasePaymentLinkService
    issuer: PaymentLinkIssuer
    verifier: PaymentVerifier
    admin: AdminGateway

    async def startup(self) -> None:
        """Validate pricing and open the store. Raises on misconfiguration."""
        self.pricing.validate_complete()
        await self.store.init()

    async def shutdown(self) -> None:
        await self.link_service.aclose()
        await self.store.close()


def build_services(
    settings: Settings,
    store: Optional[BaseOrderStore] = None,
    link_service: Optional[BasePaymentLinkService] = None,
) -> Services:
    """
    Wire the services from settings.

    Args:
        settings: Application settings
        store: Order store to use instead of the configured backend
        link_service: Payment link service to use instead of the configured one
    """
    pricing = PricingEngine(settings.pricing, settings.delivery_slabs)

    if store is None:
        store = create_order_store(
            settings,
            menu=pricing.menu(),
            config={
                "delivery": pricing.delivery_config(),
                "upiId": settings.upi_id,
                "businessName": settings.business_name,
            },
        )
    if link_service is None:
        link_service = create_payment_link_service(settings)

    issuer = PaymentLinkIssuer(
        upi=UpiDeepLinkBuilder(settings.upi_id, settings.business_name),
        link_service=link_service,
    )

    return Services(
        settings=settings,
        pricing=pricing,
        store=store,
        link_service=link_service,
        issuer=issuer,
        verifier=PaymentVerifier(
            store,
            key_secret=settings.razorpay_key_secret,
            webhook_secret=settings.razorpay_webhook_secret,
        ),
        admin=AdminGateway(store, settings.admin_pin),
    )


__all__ = ["Services", "build_services"]
