"""Contracts of the authoritative store the engine reads from and writes to."""

from collections.abc import AsyncGenerator
from typing import Any, Protocol

from triply.places import NewPlace, SavedPlace
from triply.trip import Trip, TripRequest


class TripStore(Protocol):
    async def create_trip(self, request: TripRequest) -> Trip:
        """Persist a new trip in ``searching`` status and return it."""
        ...

    async def get_trip(self, trip_id: str) -> Trip | None: ...

    async def update_trip(self, trip_id: str, **changes: Any) -> Trip:
        """Apply server-side changes (status, driver, final price)."""
        ...

    async def recent_trips(self, rider_id: str, limit: int = 2) -> list[Trip]:
        """Completed trips, newest first."""
        ...

    async def all_trips(self, rider_id: str) -> list[Trip]: ...

    def watch_active_trips(self, rider_id: str) -> AsyncGenerator[list[Trip], None]:
        """Snapshots of the rider's active trips: the current one first, then
        one per matching change. Raises ``StoreError`` when the feed breaks."""
        ...


class PlaceStore(Protocol):
    async def saved_places(self, owner_id: str, limit: int | None = None) -> list[SavedPlace]:
        """Places ordered by name."""
        ...

    async def add_place(self, owner_id: str, place: NewPlace) -> SavedPlace: ...

    async def delete_place(self, owner_id: str, place_id: str) -> None: ...
