"""Geographic value types shared by every component."""

from pydantic import BaseModel, ConfigDict, Field

# Coordinates closer than this are considered the same place.
COORDINATE_TOLERANCE = 1e-6


class GeoPoint(BaseModel):
    """A coordinate pair with an optional human-readable address.

    Frozen: edits are made by building a new point (see ``with_address``), so
    an address can never drift away from the coordinates it was resolved for.
    """

    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)
    address: str | None = None

    @property
    def has_address(self) -> bool:
        return bool(self.address and self.address.strip())

    def with_address(self, address: str | None) -> "GeoPoint":
        return GeoPoint(lat=self.lat, lng=self.lng, address=address)

    def same_coordinates(self, other: "GeoPoint") -> bool:
        return (
            abs(self.lat - other.lat) <= COORDINATE_TOLERANCE
            and abs(self.lng - other.lng) <= COORDINATE_TOLERANCE
        )

    def as_tuple(self) -> tuple[float, float]:
        return (self.lat, self.lng)


class RouteSummary(BaseModel):
    """Aggregate distance and duration of a leg, without geometry."""

    model_config = ConfigDict(frozen=True)

    total_distance_meters: float = Field(ge=0)
    total_duration_seconds: float = Field(ge=0)

    @property
    def distance_km(self) -> float:
        return self.total_distance_meters / 1000

    @property
    def duration_min(self) -> float:
        return self.total_duration_seconds / 60
