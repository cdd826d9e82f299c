"""
UPI Deep Links

Builds ``upi://pay`` links that open the customer's UPI app with the payee,
amount and note filled in. Pure string construction, no network call.
"""

from typing import Optional
from urllib.parse import quote, urlencode

from tiffin.core.errors import MissingCredentials
from tiffin.models import Order

UPI_CURRENCY = "INR"


def format_amount(amount: float) -> str:
    """Rupees with exactly two decimals, as UPI apps expect."""
    return f"{amount:.2f}"


def build_upi_url(
    payee_vpa: str,
    amount: float,
    payee_name: Optional[str] = None,
    note: Optional[str] = None,
) -> str:
    """
    Build a UPI deep link.

    Example:
        >>> build_upi_url("sharma@okicici", 220, "Sharma Tiffin", "Order Xy12")
        'upi://pay?pa=sharma%40okicici&pn=Sharma%20Tiffin&am=220.00&cu=INR&tn=Order%20Xy12'
    """
    params = {
        "pa": payee_vpa,
        "pn": payee_name or "Sharma Tiffin",
        "am": format_amount(amount),
        "cu": UPI_CURRENCY,
        "tn": note or "Tiffin order",
    }
    return f"upi://pay?{urlencode(params, quote_via=quote, safe='')}"


class UpiDeepLinkBuilder:
    """Builds UPI links for orders, paying the configured VPA."""

    def __init__(self, payee_vpa: Optional[str], payee_name: str):
        self.payee_vpa = payee_vpa
        self.payee_name = payee_name

    def build(self, order: Order) -> str:
        if not self.payee_vpa:
            raise MissingCredentials("UPI_ID is not configured", error="no_upi_id")
        return build_upi_url(
            payee_vpa=self.payee_vpa,
            amount=order.amount,
            payee_name=self.payee_name,
            note=f"Order {order.id}",
        )
