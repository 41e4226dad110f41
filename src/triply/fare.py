from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from triply.geo.models import RouteSummary


class VehicleClass(str, Enum):
    CAR = "car"
    MOTORCYCLE = "motorcycle"
    SCOOTER = "scooter"


class FareRule(BaseModel):
    """Pricing parameters for one vehicle class."""

    model_config = ConfigDict(frozen=True)

    name: str
    icon: str
    base_fare: float = Field(ge=0)
    per_km: float = Field(ge=0)
    per_min: float = Field(ge=0)
    min_fare: float = Field(ge=0)


PRICING_CONFIG: dict[VehicleClass, FareRule] = {
    VehicleClass.CAR: FareRule(
        name="سيارة", icon="🚗", base_fare=5, per_km=5.0, per_min=0.30, min_fare=15
    ),
    VehicleClass.MOTORCYCLE: FareRule(
        name="دراجة نارية", icon="🏍️", base_fare=3, per_km=2.5, per_min=0.20, min_fare=10
    ),
    VehicleClass.SCOOTER: FareRule(
        name="سكوتر", icon="🛵", base_fare=2, per_km=1.5, per_min=0.15, min_fare=8
    ),
}


def _round_half_up(value: float, places: str) -> Decimal:
    return Decimal(repr(value)).quantize(Decimal(places), rounding=ROUND_HALF_UP)


class FareCalculator:
    """Prices a leg for a vehicle class from its route summary.

    The estimate is computed before any rounding. Two roundings are applied
    downstream and are intentionally different: the figure shown while the
    rider picks a vehicle is a whole number, the price stored on a confirmed
    trip keeps two decimals.
    """

    def __init__(self, pricing: dict[VehicleClass, FareRule] | None = None):
        self.pricing = dict(pricing or PRICING_CONFIG)

    def rule_for(self, vehicle_class: VehicleClass) -> FareRule:
        return self.pricing[VehicleClass(vehicle_class)]

    def estimate(
        self, vehicle_class: VehicleClass, route_summary: RouteSummary | None
    ) -> float:
        """
        Raw price for a leg, never below the class minimum.

        Without a route the class minimum is quoted as a floor price.
        """
        rule = self.rule_for(vehicle_class)
        if route_summary is None:
            return rule.min_fare

        distance_km = route_summary.distance_km
        duration_min = route_summary.duration_min
        if distance_km < 0:
            raise ValueError("Distance must be non-negative")
        if duration_min < 0:
            raise ValueError("Duration must be non-negative")

        price = rule.base_fare + rule.per_km * distance_km + rule.per_min * duration_min
        return max(price, rule.min_fare)

    def display_estimate(
        self, vehicle_class: VehicleClass, route_summary: RouteSummary | None
    ) -> int:
        """Estimate rounded to the nearest whole unit for presentation."""
        return int(_round_half_up(self.estimate(vehicle_class, route_summary), "1"))

    def confirmed_price(
        self, vehicle_class: VehicleClass, route_summary: RouteSummary | None
    ) -> float:
        """Estimate rounded to 2 decimals, the price billed on a confirmed trip."""
        return float(_round_half_up(self.estimate(vehicle_class, route_summary), "0.01"))

    def quote_all(self, route_summary: RouteSummary | None) -> dict[VehicleClass, int]:
        """Display estimates for every vehicle class, in table order."""
        return {
            vehicle_class: self.display_estimate(vehicle_class, route_summary)
            for vehicle_class in self.pricing
        }
