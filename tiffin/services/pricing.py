"""
Pricing Engine

Computes the authoritative price of an order from the pricing table and the
distance-based delivery slabs. Client-supplied amounts are never used; every
order amount is recomputed here.

    unit_price   = pricing[plan key]
    delivery_fee = fee of the first slab with max_km >= distance,
                   or the last slab's fee beyond the ceiling
    amount       = unit_price * qty + delivery_fee
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Union

from tiffin.core.errors import UnknownPlanType, ValidationError
from tiffin.models import PlanType

logger = logging.getLogger(__name__)


# Plan type → key in the pricing table shared with the mobile client
PRICING_KEYS = {
    PlanType.DAILY: "dailyMeal",
    PlanType.BREAKFAST: "breakfast",
    PlanType.MONTHLY_VEG: "monthlyVeg",
    PlanType.MONTHLY_NON_VEG: "monthlyNonVeg",
}


@dataclass(frozen=True)
class DeliverySlab:
    max_km: float
    fee: float

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DeliverySlab":
        max_km = data.get("maxKm", data.get("max_km"))
        fee = data.get("fee")
        if max_km is None or fee is None:
            raise ValueError(f"Delivery slab needs maxKm and fee: {dict(data)}")
        return cls(max_km=float(max_km), fee=float(fee))

    def to_dict(self) -> dict[str, float]:
        return {"maxKm": self.max_km, "fee": self.fee}


@dataclass(frozen=True)
class Quote:
    unit_price: float
    delivery_fee: float
    amount: float

    def to_dict(self) -> dict[str, float]:
        """Convert to dictionary for JSON serialization."""
        return {
            "unitPrice": self.unit_price,
            "deliveryFee": self.delivery_fee,
            "amount": self.amount,
        }


class PricingEngine:
    """
    Pure pricing calculator.

    Example:
        >>> engine = PricingEngine(
        ...     {"dailyMeal": 90},
        ...     [DeliverySlab(3, 20), DeliverySlab(7, 40)],
        ... )
        >>> engine.quote("daily", 2, 5).amount
        220.0
    """

    def __init__(
        self,
        pricing: Mapping[str, float],
        slabs: Iterable[Union[DeliverySlab, Mapping[str, Any]]],
    ):
        self._pricing = {key: float(price) for key, price in pricing.items()}
        self._slabs = tuple(
            s if isinstance(s, DeliverySlab) else DeliverySlab.from_dict(s)
            for s in slabs
        )

        if not self._slabs:
            raise ValueError("At least one delivery slab is required")
        for prev, nxt in zip(self._slabs, self._slabs[1:]):
            if nxt.max_km < prev.max_km:
                raise ValueError("Delivery slabs must be sorted ascending by maxKm")
        for key, price in self._pricing.items():
            if price < 0:
                raise ValueError(f"Price for {key} must not be negative")
        for slab in self._slabs:
            if slab.fee < 0:
                raise ValueError("Delivery fees must not be negative")

    @property
    def slabs(self) -> tuple[DeliverySlab, ...]:
        return self._slabs

    def validate_complete(self) -> None:
        """
        Fail fast when a plan type has no price.

        Called once at startup so a misconfigured pricing table stops the
        service instead of silently pricing meals at zero.

        Raises:
            ValueError: listing the missing pricing keys
        """
        missing = [key for key in PRICING_KEYS.values() if key not in self._pricing]
        if missing:
            raise ValueError(f"Pricing table is missing entries: {missing}")

    def unit_price(self, plan_type: Union[PlanType, str]) -> float:
        try:
            plan = PlanType(plan_type)
        except ValueError:
            raise UnknownPlanType(str(plan_type))

        key = PRICING_KEYS[plan]
        if key not in self._pricing:
            raise UnknownPlanType(plan.value)
        return self._pricing[key]

    def delivery_fee(self, distance_km: float) -> float:
        if not math.isfinite(distance_km):
            raise ValidationError("distanceKm must be a finite number")
        if distance_km < 0:
            raise ValidationError("distanceKm must not be negative")
        for slab in self._slabs:
            if distance_km <= slab.max_km:
                return slab.fee
        return self._slabs[-1].fee

    def quote(
        self,
        plan_type: Union[PlanType, str],
        qty: int,
        distance_km: float = 0.0,
    ) -> Quote:
        if qty < 1:
            raise ValidationError("qty must be a positive integer")

        unit_price = self.unit_price(plan_type)
        delivery_fee = self.delivery_fee(distance_km)
        amount = round(unit_price * qty + delivery_fee, 2)

        return Quote(unit_price=unit_price, delivery_fee=delivery_fee, amount=amount)

    def menu(self) -> dict[str, Any]:
        """Pricing table snapshot served to clients."""
        return {"pricing": dict(self._pricing)}

    def delivery_config(self) -> dict[str, Any]:
        return {"slabs": [s.to_dict() for s in self._slabs]}
