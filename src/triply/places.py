from enum import Enum

from pydantic import BaseModel, Field

from triply.geo.models import GeoPoint


class PlaceCategory(str, Enum):
    HOME = "home"
    WORK = "work"
    GYM = "gym"
    GENERIC = "generic"


PLACE_ICONS: dict[PlaceCategory, str] = {
    PlaceCategory.HOME: "🏠",
    PlaceCategory.WORK: "🏢",
    PlaceCategory.GYM: "🏋️",
    PlaceCategory.GENERIC: "📍",
}


class PlaceLocation(BaseModel):
    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)


class NewPlace(BaseModel):
    """A place as submitted by its owner, before the store assigns an id."""

    name: str = Field(min_length=1)
    address: str
    location: PlaceLocation
    category: PlaceCategory = PlaceCategory.GENERIC


class SavedPlace(NewPlace):
    id: str
    owner_id: str

    @property
    def icon(self) -> str:
        return PLACE_ICONS[self.category]

    def to_point(self) -> GeoPoint:
        return GeoPoint(lat=self.location.lat, lng=self.location.lng, address=self.address)
