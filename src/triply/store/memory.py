import asyncio
import logging
import uuid
from collections import defaultdict
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime
from typing import Any

from triply.core.exceptions import StoreError
from triply.places import NewPlace, SavedPlace
from triply.trip import Trip, TripRequest, TripStatus

logger = logging.getLogger(__name__)


class InMemoryStore:
    """Process-local trip and place store with push notifications.

    Does not enforce the one-active-trip rule, so it can reproduce the write
    race that readers have to tolerate.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self._clock = clock or (lambda: datetime.now(UTC))
        self._trips: dict[str, Trip] = {}
        self._places: dict[str, dict[str, SavedPlace]] = defaultdict(dict)
        self._watchers: dict[str, list[asyncio.Queue]] = defaultdict(list)

    # Trips

    async def create_trip(self, request: TripRequest) -> Trip:
        trip = Trip(
            id=uuid.uuid4().hex,
            status=TripStatus.SEARCHING,
            created_at=self._clock(),
            **request.model_dump(),
        )
        self._trips[trip.id] = trip
        self._notify(trip.rider_id)
        return trip

    async def get_trip(self, trip_id: str) -> Trip | None:
        return self._trips.get(trip_id)

    async def update_trip(self, trip_id: str, **changes: Any) -> Trip:
        current = self._trips.get(trip_id)
        if current is None:
            raise StoreError(f"Trip {trip_id} not found", details={"trip_id": trip_id})
        data = current.model_dump()
        data.update(changes)
        if data["status"] == TripStatus.COMPLETED and data.get("completed_at") is None:
            data["completed_at"] = self._clock()
        trip = Trip.model_validate(data)
        self._trips[trip_id] = trip
        self._notify(trip.rider_id)
        return trip

    async def recent_trips(self, rider_id: str, limit: int = 2) -> list[Trip]:
        completed = [
            trip
            for trip in await self.all_trips(rider_id)
            if trip.status == TripStatus.COMPLETED
        ]
        return completed[:limit]

    async def all_trips(self, rider_id: str) -> list[Trip]:
        trips = [trip for trip in self._trips.values() if trip.rider_id == rider_id]
        return sorted(trips, key=lambda trip: trip.created_at, reverse=True)

    def active_snapshot(self, rider_id: str) -> list[Trip]:
        return [
            trip
            for trip in self._trips.values()
            if trip.rider_id == rider_id and trip.is_active
        ]

    async def watch_active_trips(self, rider_id: str) -> AsyncGenerator[list[Trip], None]:
        queue: asyncio.Queue = asyncio.Queue()
        self._watchers[rider_id].append(queue)
        try:
            yield self.active_snapshot(rider_id)
            while True:
                item = await queue.get()
                if isinstance(item, Exception):
                    raise item
                yield item
        finally:
            self._watchers[rider_id].remove(queue)

    def fail_watchers(self, rider_id: str, error: Exception | None = None) -> None:
        """Break every open feed for ``rider_id`` (transport drop)."""
        error = error or StoreError("Subscription dropped")
        for queue in self._watchers[rider_id]:
            queue.put_nowait(error)

    def watcher_count(self, rider_id: str) -> int:
        return len(self._watchers[rider_id])

    def _notify(self, rider_id: str) -> None:
        snapshot = self.active_snapshot(rider_id)
        for queue in self._watchers[rider_id]:
            queue.put_nowait(snapshot)

    # Places

    async def saved_places(self, owner_id: str, limit: int | None = None) -> list[SavedPlace]:
        places = sorted(self._places[owner_id].values(), key=lambda place: place.name)
        return places if limit is None else places[:limit]

    async def add_place(self, owner_id: str, place: NewPlace) -> SavedPlace:
        saved = SavedPlace(id=uuid.uuid4().hex, owner_id=owner_id, **place.model_dump())
        self._places[owner_id][saved.id] = saved
        return saved

    async def delete_place(self, owner_id: str, place_id: str) -> None:
        self._places[owner_id].pop(place_id, None)
