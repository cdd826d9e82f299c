"""
Payment Verification

Authenticates payment confirmations from Razorpay and marks the matching
order as paid. Two callback shapes arrive:

    RedirectConfirmation
        GET /payments/webhook after the customer pays a payment link.
        Signature = HMAC-SHA256(key secret, "<link or order id>|<payment id>").
        Both the payment-link id and the Razorpay order id are tried when
        present; the first match wins.

    WebhookEvent
        POST /payments/razorpay-webhook from the Razorpay dashboard webhook.
        Signature = HMAC-SHA256(webhook secret, raw request body), sent in
        the x-razorpay-signature header. There is no fallback to the key
        secret.

Providers deliver at least once and in any order, so applying a
confirmation is idempotent: only a pending_payment order moves to paid,
anything else (unknown order, already paid, further along, cancelled)
is left untouched.

Version: 1.0.0
"""

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from tiffin.core.errors import MissingSecret, NotFound, SignatureMismatch, ValidationError
from tiffin.models import Order, OrderStatus, PaymentRecord
from tiffin.services.store import BaseOrderStore

logger = logging.getLogger(__name__)

# Webhook events that confirm money was received
PAID_EVENTS = frozenset({"payment.captured", "payment_link.paid", "order.paid"})


def sign(secret: str, message: Union[str, bytes]) -> str:
    """Hex HMAC-SHA256 of ``message`` keyed with ``secret``."""
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def signature_matches(expected: str, given: Optional[str]) -> bool:
    """Constant-time comparison; any non-hex input simply fails to match."""
    if not given:
        return False
    return hmac.compare_digest(
        expected.encode("ascii"),
        given.encode("utf-8", "surrogateescape"),
    )


def _dig(data: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


# =============================================================================
# CALLBACK SOURCES
# =============================================================================

@dataclass(frozen=True)
class RedirectConfirmation:
    """
    Query parameters of a payment-link callback redirect.

    Attributes:
        payment_id: razorpay_payment_id
        signature: razorpay_signature
        payment_link_id: razorpay_payment_link_id
        provider_order_id: razorpay_order_id
        order_id: our order id, added to the callback URL when the link was issued
        link_reference_id: razorpay_payment_link_reference_id
        link_status: razorpay_payment_link_status
    """
    payment_id: Optional[str]
    signature: Optional[str]
    payment_link_id: Optional[str] = None
    provider_order_id: Optional[str] = None
    order_id: Optional[str] = None
    link_reference_id: Optional[str] = None
    link_status: Optional[str] = None

    @classmethod
    def from_query(cls, params: Mapping[str, str]) -> "RedirectConfirmation":
        return cls(
            payment_id=params.get("razorpay_payment_id"),
            signature=params.get("razorpay_signature"),
            payment_link_id=params.get("razorpay_payment_link_id"),
            provider_order_id=params.get("razorpay_order_id"),
            order_id=params.get("orderId"),
            link_reference_id=params.get("razorpay_payment_link_reference_id"),
            link_status=params.get("razorpay_payment_link_status"),
        )

    def signed_messages(self) -> list[str]:
        """Every message the provider may have signed for this redirect."""
        if not self.payment_id:
            return []

        messages = []
        if self.payment_link_id:
            messages.append(f"{self.payment_link_id}|{self.payment_id}")
            # Full payment-link form, sent when the link has a reference id
            if self.link_reference_id and self.link_status:
                messages.append(
                    f"{self.payment_link_id}|{self.link_reference_id}|"
                    f"{self.link_status}|{self.payment_id}"
                )
        if self.provider_order_id:
            messages.append(f"{self.provider_order_id}|{self.payment_id}")
        return messages


@dataclass(frozen=True)
class WebhookEvent:
    """Raw webhook delivery: the exact body bytes plus the signature header."""
    body: bytes
    signature: Optional[str]


CallbackSource = Union[RedirectConfirmation, WebhookEvent]


@dataclass
class VerificationResult:
    """
    Outcome of checking a callback.

    Attributes:
        verified: Whether the signature matched
        order_id: Order the callback refers to, if any
        applied: Whether this call moved the order to paid
        event: Webhook event name (webhooks only)
        provider_ref: Razorpay payment id
    """
    verified: bool
    order_id: Optional[str] = None
    applied: bool = False
    event: Optional[str] = None
    provider_ref: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "verified": self.verified,
            "orderId": self.order_id,
            "applied": self.applied,
            "event": self.event,
            "providerRef": self.provider_ref,
        }


# =============================================================================
# VERIFIER
# =============================================================================

class PaymentVerifier:
    """
    Verifies payment callbacks and applies them to stored orders.

    Example:
        >>> verifier = PaymentVerifier(store, key_secret="...", webhook_secret="...")
        >>> result = await verifier.verify_callback(
        ...     RedirectConfirmation.from_query(request.query_params)
        ... )
        >>> result.applied
        True
    """

    def __init__(
        self,
        store: BaseOrderStore,
        key_secret: Optional[str],
        webhook_secret: Optional[str],
    ):
        self.store = store
        self._key_secret = key_secret
        self._webhook_secret = webhook_secret

    def authenticate(self, source: CallbackSource) -> VerificationResult:
        """
        Check a callback's signature without touching any order.

        Raises:
            MissingSecret: if the secret for this callback shape is not configured
            ValidationError: if a correctly signed webhook body is not JSON
        """
        if isinstance(source, RedirectConfirmation):
            return self._authenticate_redirect(source)
        if isinstance(source, WebhookEvent):
            return self._authenticate_webhook(source)
        raise TypeError(f"Unsupported callback source: {type(source).__name__}")

    def _authenticate_redirect(self, source: RedirectConfirmation) -> VerificationResult:
        if not self._key_secret:
            raise MissingSecret("Missing RAZORPAY_KEY_SECRET")

        verified = any(
            signature_matches(sign(self._key_secret, message), source.signature)
            for message in source.signed_messages()
        )
        return VerificationResult(
            verified=verified,
            order_id=source.order_id if verified else None,
            provider_ref=source.payment_id if verified else None,
        )

    def _authenticate_webhook(self, source: WebhookEvent) -> VerificationResult:
        if not self._webhook_secret:
            raise MissingSecret("Missing webhook secret")

        expected = sign(self._webhook_secret, source.body)
        if not signature_matches(expected, source.signature):
            return VerificationResult(verified=False)

        try:
            data = json.loads(source.body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            raise ValidationError("Webhook body is not valid JSON", error="invalid_payload")

        payload = _dig(data, "payload") or {}
        order_id = (
            _dig(payload, "payment", "entity", "notes", "orderId")
            or _dig(payload, "payment_link", "entity", "reference_id")
            or _dig(payload, "payment_link", "entity", "notes", "orderId")
        )
        return VerificationResult(
            verified=True,
            order_id=order_id,
            event=data.get("event") if isinstance(data, dict) else None,
            provider_ref=_dig(payload, "payment", "entity", "id"),
        )

    async def verify_callback(self, source: CallbackSource) -> VerificationResult:
        """
        Authenticate a callback and mark its order paid.

        Returns:
            VerificationResult: ``applied`` is False for duplicates and for
            callbacks whose order is unknown or no longer awaiting payment

        Raises:
            SignatureMismatch: if the signature does not match (nothing is changed)
            MissingSecret: if the needed secret is not configured
        """
        result = self.authenticate(source)
        if not result.verified:
            logger.warning(f"Payment callback rejected: bad signature ({type(source).__name__})")
            raise SignatureMismatch(
                "Signature verification failed"
                if isinstance(source, RedirectConfirmation) else "Bad signature"
            )

        if isinstance(source, WebhookEvent) and result.event not in PAID_EVENTS:
            logger.info(f"Webhook event {result.event} acknowledged, no payment to apply")
            return result

        if not result.order_id:
            logger.info("Verified payment callback carries no order reference")
            return result

        record = PaymentRecord(
            provider_ref=result.provider_ref or result.event,
            verified=True,
            source="webhook" if isinstance(source, WebhookEvent) else "redirect",
            event=result.event,
        )
        result.applied = await self._mark_paid(result.order_id, record)
        return result

    async def _mark_paid(self, order_id: str, record: PaymentRecord) -> bool:
        applied = False

        def mark_paid(order: Order) -> None:
            nonlocal applied
            if order.status != OrderStatus.PENDING_PAYMENT:
                return
            order.transition_to(OrderStatus.PAID, actor=record.source)
            order.payment = record
            applied = True

        try:
            order = await self.store.update(order_id, mark_paid)
        except NotFound:
            logger.info(f"Payment callback for unknown Order #{order_id} ignored")
            return False

        if applied:
            logger.info(f"Order #{order_id} marked paid ({record.source}, ref={record.provider_ref})")
        elif order.status == OrderStatus.CANCELLED:
            logger.warning(f"Payment received for cancelled Order #{order_id}, status left unchanged")
        else:
            logger.info(f"Duplicate payment callback for Order #{order_id} ({order.status.value})")
        return applied
