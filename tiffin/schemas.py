"""
Pydantic Schemas for Request/Response Validation

Field names follow the mobile client's camelCase JSON.

Version: 1.0.0
"""

import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from tiffin.models import CustomerInfo, PlanType
from tiffin.services.payment import PaymentMethod


class CamelSchema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _check_phone(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    cleaned = re.sub(r"[^\d]", "", v)
    if len(cleaned) < 10:
        raise ValueError("Phone number must have at least 10 digits")
    return v.strip()


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class OrderCreate(CamelSchema):
    """Request schema for placing a new order."""

    mobile: Optional[str] = Field(None, examples=["9876543210"])
    customer: Optional[CustomerInfo] = None
    plan_type: PlanType = Field(..., alias="type", examples=["daily"])
    qty: int = Field(default=1, ge=1, le=1000, examples=[2])
    distance_km: float = Field(default=0.0, ge=0, examples=[5])
    note: str = Field(default="", max_length=500)
    payment_method: PaymentMethod = Field(default=PaymentMethod.UPI, examples=["upi"])

    @field_validator("mobile")
    @classmethod
    def validate_mobile(cls, v: Optional[str]) -> Optional[str]:
        return _check_phone(v)

    @model_validator(mode="after")
    def validate_contact(self) -> "OrderCreate":
        phone = self.customer.phone if self.customer else None
        if not (self.mobile or phone):
            raise ValueError("Provide mobile or customer.phone")
        _check_phone(phone)
        if self.payment_method == PaymentMethod.PAYMENT_LINK and not (
            self.customer and self.customer.name
        ):
            raise ValueError("customer.name is required for payment links")
        return self


class AdminLoginRequest(BaseModel):
    pin: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: str
    pin: Optional[str] = None


class PaymentLinkCustomer(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class PaymentLinkCreate(CamelSchema):
    """
    Request for a hosted payment link.

    Fields are optional here so that missing values are reported as
    ``missing_parameters`` by the payment service. When ``orderId`` is given
    the stored order's amount is charged and ``amount`` is ignored.
    """
    amount: Optional[float] = None
    customer: Optional[PaymentLinkCustomer] = None
    description: Optional[str] = Field(None, max_length=255)
    order_id: Optional[str] = None


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class QuoteResponse(CamelSchema):
    unit_price: float
    delivery_fee: float
    amount: float


class DeliveryFeeResponse(BaseModel):
    km: float
    fee: float


class PaymentInfo(CamelSchema):
    method: PaymentMethod
    url: str
    amount: float
    reference_id: str
    upi_url: Optional[str] = None
    provider_ref: Optional[str] = None


class OrderCreateResponse(BaseModel):
    """Response after successfully creating an order."""
    ok: bool = True
    order: dict[str, Any]
    payment: PaymentInfo


class OkResponse(BaseModel):
    ok: bool


class StatusUpdateResponse(BaseModel):
    ok: bool = True
    order: dict[str, Any]


class PaymentLinkResponse(BaseModel):
    ok: bool = True
    url: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    ok: bool = False
    error: str
    message: Optional[str] = None
    detail: Optional[Any] = None


class HealthResponse(CamelSchema):
    """Health check response."""
    ok: bool
    status: str
    store: str
    payment_provider: str


