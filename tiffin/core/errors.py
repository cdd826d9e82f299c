"""
Application Error Taxonomy

Every failure the service reports to a client is one of these exceptions.
Each class carries the HTTP status it maps to and a machine-readable
``error`` code; the FastAPI exception handler in ``tiffin.main`` renders
them as ``{"ok": false, "error": ..., "message": ..., "detail": ...}``.
"""

from typing import Any, Optional


class TiffinError(Exception):
    """Base class for all errors raised by the service."""

    status_code: int = 500
    error: str = "server_error"
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        detail: Any = None,
        error: Optional[str] = None,
    ):
        self.message = message or self.default_message
        self.detail = detail
        if error:
            self.error = error
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON error body."""
        body: dict[str, Any] = {
            "ok": False,
            "error": self.error,
            "message": self.message,
        }
        if self.detail is not None:
            body["detail"] = self.detail
        return body


class ValidationError(TiffinError):
    """Missing or invalid request fields."""
    status_code = 400
    error = "validation_error"
    default_message = "Invalid request"


class UnknownPlanType(ValidationError):
    """Plan type has no entry in the pricing table."""
    error = "unknown_plan_type"

    def __init__(self, plan_type: str):
        super().__init__(f"Unknown plan type: {plan_type}")
        self.plan_type = plan_type


class Unauthorized(TiffinError):
    status_code = 401
    error = "unauthorized"
    default_message = "Admin PIN required"


class NotFound(TiffinError):
    status_code = 404
    error = "not_found"
    default_message = "Order not found"


class InvalidTransition(TiffinError):
    """Requested status would move an order backwards or out of a terminal state."""
    status_code = 409
    error = "invalid_transition"
    default_message = "Status transition not allowed"


class MissingCredentials(TiffinError):
    """Provider keys or the admin PIN are not configured."""
    status_code = 500
    error = "no_credentials"
    default_message = "Payment provider credentials are not configured"


class MissingSecret(TiffinError):
    """A signing secret needed to verify a callback is not configured."""
    status_code = 500
    error = "missing_secret"
    default_message = "Signing secret is not configured"


class ProviderError(TiffinError):
    """The upstream payment API answered with an error status."""
    error = "razorpay_error"
    default_message = "Payment provider error"

    def __init__(self, status: int, detail: Any = None, message: Optional[str] = None):
        super().__init__(message, detail=detail)
        self.status = status
        self.status_code = status


class SignatureMismatch(TiffinError):
    """Callback signature does not match; the callback is untrusted."""
    status_code = 400
    error = "signature_mismatch"
    default_message = "Signature verification failed"


class StoreError(TiffinError):
    """Persistence failed; the store was left unchanged."""
    status_code = 500
    error = "store_error"
    default_message = "Could not persist order"
