from unittest.mock import AsyncMock

import pytest

from tests.factories import StepClock
from triply.geo.models import GeoPoint, RouteSummary
from triply.places import NewPlace, PlaceCategory, PlaceLocation
from triply.store.memory import InMemoryStore


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def store(clock: StepClock) -> InMemoryStore:
    return InMemoryStore(clock=clock)


@pytest.fixture
def pickup() -> GeoPoint:
    return GeoPoint(lat=30.0444, lng=31.2357, address="Tahrir Square, Cairo")


@pytest.fixture
def dropoff() -> GeoPoint:
    return GeoPoint(lat=30.0626, lng=31.2497, address="Ramses Station, Cairo")


@pytest.fixture
def route_summary() -> RouteSummary:
    return RouteSummary(total_distance_meters=4000, total_duration_seconds=600)


@pytest.fixture
def route_provider(route_summary: RouteSummary) -> AsyncMock:
    provider = AsyncMock()
    provider.get_route.return_value = route_summary
    return provider


@pytest.fixture
def geocoder() -> AsyncMock:
    """Geocoder double with ``search`` and ``reverse`` coroutines."""
    mock = AsyncMock()
    mock.search.return_value = [
        GeoPoint(lat=30.05, lng=31.24, address="Zamalek, Cairo"),
    ]
    mock.reverse.return_value = "Garden City, Cairo"
    return mock


@pytest.fixture
def home_place() -> NewPlace:
    return NewPlace(
        name="Home",
        address="12 Nile St, Giza",
        location=PlaceLocation(lat=30.0131, lng=31.2089),
        category=PlaceCategory.HOME,
    )


@pytest.fixture
def work_place() -> NewPlace:
    return NewPlace(
        name="Work",
        address="Smart Village, Giza",
        location=PlaceLocation(lat=30.0712, lng=31.0173),
        category=PlaceCategory.WORK,
    )
