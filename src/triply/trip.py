"""Trip model as projected on the rider's side."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from triply.fare import VehicleClass
from triply.geo.models import GeoPoint


class TripStatus(str, Enum):
    """Statuses of a persisted trip, as asserted by the authoritative store."""

    SEARCHING = "searching"
    ACCEPTED = "accepted"
    ARRIVED = "arrived"
    STARTED = "started"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


ACTIVE_STATUSES = frozenset(
    {TripStatus.SEARCHING, TripStatus.ACCEPTED, TripStatus.ARRIVED, TripStatus.STARTED}
)
TERMINAL_STATUSES = frozenset({TripStatus.COMPLETED, TripStatus.CANCELLED})


class VehicleInfo(BaseModel):
    model: str
    plate: str


class DriverInfo(BaseModel):
    """Driver details attached by the backend once a trip is accepted."""

    id: str
    name: str
    vehicle: VehicleInfo
    rating: float = Field(ge=0, le=5)
    location: GeoPoint | None = None
    eta: str | None = None


class TripRequest(BaseModel):
    """Fields the client supplies when creating a trip."""

    rider_id: str
    pickup: GeoPoint
    dropoff: GeoPoint
    vehicle_class: VehicleClass
    price: float = Field(ge=0)


class Trip(BaseModel):
    """Read-mostly projection of a stored trip.

    Everything except ``status`` is written once: at creation, or at
    completion for ``completed_at`` and ``final_price``.
    """

    id: str
    rider_id: str
    pickup: GeoPoint
    dropoff: GeoPoint
    vehicle_class: VehicleClass
    price: float = Field(ge=0)
    status: TripStatus = TripStatus.SEARCHING
    created_at: datetime
    completed_at: datetime | None = None
    final_price: float | None = None
    driver_id: str | None = None
    driver_info: DriverInfo | None = None
    cancellation_reason: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def billed_price(self) -> float:
        return self.final_price if self.final_price is not None else self.price
