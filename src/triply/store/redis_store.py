"""Redis-backed trip and place store.

Trips are JSON documents under ``triply:trip:{id}``, indexed per rider in a
sorted set scored by creation time. Every write publishes the rider's id on
``triply:rider-trips:{rider_id}`` so watchers can re-read the active set.
"""

import logging
import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime
from typing import Any, TypeVar

import redis.asyncio as redis
from pydantic import BaseModel, ValidationError
from redis.exceptions import RedisError

from triply.core.exceptions import StoreError
from triply.places import NewPlace, SavedPlace
from triply.settings import RedisSettings
from triply.trip import Trip, TripRequest, TripStatus

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

KEY_PREFIX = "triply"


def trip_key(trip_id: str) -> str:
    return f"{KEY_PREFIX}:trip:{trip_id}"


def rider_index_key(rider_id: str) -> str:
    return f"{KEY_PREFIX}:rider:{rider_id}:trips"


def rider_channel(rider_id: str) -> str:
    return f"{KEY_PREFIX}:rider-trips:{rider_id}"


def places_key(owner_id: str) -> str:
    return f"{KEY_PREFIX}:user:{owner_id}:places"


def _decode(model: type[M], raw: str) -> M:
    try:
        return model.model_validate_json(raw)
    except ValidationError as e:
        raise StoreError(
            f"Corrupt {model.__name__} document: {e.error_count()} errors",
            details={"model": model.__name__},
        ) from e


class RedisStore:
    def __init__(
        self,
        client: "redis.Redis",
        clock: Callable[[], datetime] | None = None,
    ):
        self._client = client
        self._clock = clock or (lambda: datetime.now(UTC))

    @classmethod
    def from_settings(cls, settings: RedisSettings) -> "RedisStore":
        client = redis.Redis(
            host=settings.host,
            port=settings.port,
            db=settings.db,
            password=settings.password or None,
            ssl=settings.ssl,
            decode_responses=True,
        )
        return cls(client)

    async def close(self) -> None:
        await self._client.aclose()

    # Trips

    async def create_trip(self, request: TripRequest) -> Trip:
        trip = Trip(
            id=uuid.uuid4().hex,
            status=TripStatus.SEARCHING,
            created_at=self._clock(),
            **request.model_dump(),
        )
        await self._save_trip(trip, index=True)
        return trip

    async def get_trip(self, trip_id: str) -> Trip | None:
        try:
            raw = await self._client.get(trip_key(trip_id))
        except RedisError as e:
            raise StoreError(f"Failed to read trip {trip_id}: {e}") from e
        return _decode(Trip, raw) if raw else None

    async def update_trip(self, trip_id: str, **changes: Any) -> Trip:
        current = await self.get_trip(trip_id)
        if current is None:
            raise StoreError(f"Trip {trip_id} not found", details={"trip_id": trip_id})
        data = current.model_dump()
        data.update(changes)
        if data["status"] == TripStatus.COMPLETED and data.get("completed_at") is None:
            data["completed_at"] = self._clock()
        trip = Trip.model_validate(data)
        await self._save_trip(trip, index=False)
        return trip

    async def _save_trip(self, trip: Trip, index: bool) -> None:
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.set(trip_key(trip.id), trip.model_dump_json())
                if index:
                    pipe.zadd(
                        rider_index_key(trip.rider_id),
                        {trip.id: trip.created_at.timestamp()},
                    )
                pipe.publish(rider_channel(trip.rider_id), trip.id)
                await pipe.execute()
        except RedisError as e:
            raise StoreError(f"Failed to write trip {trip.id}: {e}") from e

    async def all_trips(self, rider_id: str) -> list[Trip]:
        try:
            trip_ids = await self._client.zrevrange(rider_index_key(rider_id), 0, -1)
            if not trip_ids:
                return []
            raws = await self._client.mget([trip_key(trip_id) for trip_id in trip_ids])
        except RedisError as e:
            raise StoreError(f"Failed to list trips for rider: {e}") from e
        return [_decode(Trip, raw) for raw in raws if raw]

    async def recent_trips(self, rider_id: str, limit: int = 2) -> list[Trip]:
        trips = await self.all_trips(rider_id)
        return [trip for trip in trips if trip.status == TripStatus.COMPLETED][:limit]

    async def active_snapshot(self, rider_id: str) -> list[Trip]:
        return [trip for trip in await self.all_trips(rider_id) if trip.is_active]

    async def watch_active_trips(self, rider_id: str) -> AsyncGenerator[list[Trip], None]:
        pubsub = self._client.pubsub()
        try:
            await pubsub.subscribe(rider_channel(rider_id))
            yield await self.active_snapshot(rider_id)
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                yield await self.active_snapshot(rider_id)
        except RedisError as e:
            raise StoreError(f"Active trip feed dropped: {e}") from e
        finally:
            try:
                await pubsub.unsubscribe()
                await pubsub.aclose()
            except RedisError as e:
                logger.debug(f"Error closing pubsub: {e}")

    # Places

    async def saved_places(self, owner_id: str, limit: int | None = None) -> list[SavedPlace]:
        try:
            raws = await self._client.hvals(places_key(owner_id))
        except RedisError as e:
            raise StoreError(f"Failed to read saved places: {e}") from e
        places = sorted(
            (_decode(SavedPlace, raw) for raw in raws),
            key=lambda place: place.name,
        )
        return places if limit is None else places[:limit]

    async def add_place(self, owner_id: str, place: NewPlace) -> SavedPlace:
        saved = SavedPlace(id=uuid.uuid4().hex, owner_id=owner_id, **place.model_dump())
        try:
            await self._client.hset(places_key(owner_id), saved.id, saved.model_dump_json())
        except RedisError as e:
            raise StoreError(f"Failed to save place: {e}") from e
        return saved

    async def delete_place(self, owner_id: str, place_id: str) -> None:
        try:
            await self._client.hdel(places_key(owner_id), place_id)
        except RedisError as e:
            raise StoreError(f"Failed to delete place {place_id}: {e}") from e
