"""Entry points the UI layer calls.

Identity and collaborators are passed in explicitly; nothing here reads
process-wide state.
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol

from pydantic import BaseModel

from triply.active_trip_sync import ActiveTripCallback, ActiveTripSync, Subscription
from triply.core.retry import RetryConfig
from triply.fare import FareCalculator, VehicleClass
from triply.gemini_client import build_suggestion_backend
from triply.geo.models import GeoPoint, RouteSummary
from triply.geo.nominatim_client import NominatimClient
from triply.geo.osrm_client import OSRMClient
from triply.geo.position import PositionProvider
from triply.lifecycle import RouteProvider, TripLifecycle
from triply.location_resolver import LocationResolver
from triply.places import NewPlace, SavedPlace
from triply.settings import Settings
from triply.store.base import PlaceStore, TripStore
from triply.suggestions import Suggestion, SuggestionRanker
from triply.trip import Trip

logger = logging.getLogger(__name__)


class Store(TripStore, PlaceStore, Protocol):
    pass


class HomeFeed(BaseModel):
    recent_trips: list[Trip]
    saved_places: list[SavedPlace]
    suggestions: list[Suggestion]


class TripTracker:
    """Feeds active-trip updates into a lifecycle one at a time, in order."""

    def __init__(self, lifecycle: TripLifecycle):
        self.lifecycle = lifecycle
        self.subscription: Subscription | None = None
        self._queue: asyncio.Queue[Trip | None] = asyncio.Queue()
        self._worker = asyncio.get_running_loop().create_task(self._drain())

    def push(self, trip: Trip | None) -> None:
        self._queue.put_nowait(trip)

    async def _drain(self) -> None:
        while True:
            trip = await self._queue.get()
            try:
                await self.lifecycle.apply_remote(trip)
            except Exception:
                logger.exception("Failed to apply active trip update")
            finally:
                self._queue.task_done()

    async def settled(self) -> None:
        """Wait until every received update has been applied."""
        await self._queue.join()

    def cancel(self) -> None:
        if self.subscription is not None:
            self.subscription.cancel()
        self._worker.cancel()

    async def aclose(self) -> None:
        self.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker


class TripOrchestrator:
    def __init__(
        self,
        resolver: LocationResolver,
        route_provider: RouteProvider,
        store: Store,
        fare_calculator: FareCalculator | None = None,
        suggestion_ranker: SuggestionRanker | None = None,
        clock: Callable[[], datetime] | None = None,
        recent_trip_count: int = 2,
        saved_place_count: int = 2,
    ):
        self.resolver = resolver
        self.route_provider = route_provider
        self.store = store
        self.fare_calculator = fare_calculator or FareCalculator()
        self.suggestion_ranker = suggestion_ranker or SuggestionRanker(backend=None)
        self.sync = ActiveTripSync(store)
        self._clock = clock or (lambda: datetime.now(UTC))
        self.recent_trip_count = recent_trip_count
        self.saved_place_count = saved_place_count

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: Store,
        position_provider: PositionProvider | None = None,
    ) -> "TripOrchestrator":
        geocoder = NominatimClient(
            base_url=settings.geocoder.base_url,
            user_agent=settings.geocoder.user_agent,
            language=settings.geocoder.language,
            timeout=settings.geocoder.timeout,
        )
        resolver = LocationResolver(
            geocoder,
            position_provider=position_provider,
            settings=settings.geocoder,
            fix_timeout=settings.location.fix_timeout_seconds,
        )
        router = OSRMClient(
            base_url=settings.osrm.base_url,
            timeout=settings.osrm.timeout,
            retry_config=RetryConfig.from_settings(settings.osrm),
        )
        ranker = SuggestionRanker(
            build_suggestion_backend(settings.suggestions),
            suggestion_count=settings.suggestions.suggestion_count,
        )
        return cls(
            resolver,
            router,
            store,
            suggestion_ranker=ranker,
            recent_trip_count=settings.suggestions.recent_trip_count,
            saved_place_count=settings.suggestions.saved_place_count,
        )

    # Location

    async def resolve_location(self) -> GeoPoint:
        """Current position with its address. Raises ``LocationUnavailable``."""
        return await self.resolver.resolve_current()

    async def search_locations(self, text: str) -> list[GeoPoint]:
        return await self.resolver.search(text)

    # Pricing

    def estimate_fare(
        self, vehicle_class: VehicleClass, route_summary: RouteSummary | None = None
    ) -> float:
        return self.fare_calculator.estimate(vehicle_class, route_summary)

    # Trips

    def start_trip(self, rider_id: str) -> TripLifecycle:
        return TripLifecycle(
            rider_id,
            self.store,
            self.route_provider,
            fare_calculator=self.fare_calculator,
            resolver=self.resolver,
        )

    async def confirm_trip(
        self, lifecycle: TripLifecycle, vehicle_class: VehicleClass | None = None
    ) -> Trip | None:
        return await lifecycle.confirm(vehicle_class)

    def subscribe_active_trip(
        self, rider_id: str, on_change: ActiveTripCallback
    ) -> Subscription:
        return self.sync.subscribe(rider_id, on_change)

    def track(self, lifecycle: TripLifecycle) -> TripTracker:
        """Drive ``lifecycle`` from the rider's active trip feed."""
        tracker = TripTracker(lifecycle)
        tracker.subscription = self.subscribe_active_trip(lifecycle.rider_id, tracker.push)
        return tracker

    # Home screen

    async def home_feed(self, rider_id: str) -> HomeFeed:
        """Recent trips, saved places and suggestions; each part degrades to empty."""
        trips, places = await asyncio.gather(
            self.store.recent_trips(rider_id, limit=self.recent_trip_count),
            self.store.saved_places(rider_id, limit=self.saved_place_count),
            return_exceptions=True,
        )
        if isinstance(trips, Exception):
            logger.warning(f"Failed to load recent trips: {trips}")
            trips = []
        if isinstance(places, Exception):
            logger.warning(f"Failed to load saved places: {places}")
            places = []

        suggestions = await self.suggestion_ranker.rank(trips, places, self._clock())
        return HomeFeed(recent_trips=trips, saved_places=places, suggestions=suggestions)

    async def save_place(self, owner_id: str, place: NewPlace) -> SavedPlace:
        return await self.store.add_place(owner_id, place)

    async def remove_place(self, owner_id: str, place_id: str) -> None:
        await self.store.delete_place(owner_id, place_id)
