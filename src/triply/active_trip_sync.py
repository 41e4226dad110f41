"""Live projection of a rider's single active trip."""

import asyncio
import logging
from collections.abc import Callable, Iterable

from triply.store.base import TripStore
from triply.trip import ACTIVE_STATUSES, Trip

logger = logging.getLogger(__name__)

ActiveTripCallback = Callable[[Trip | None], None]


def select_active_trip(trips: Iterable[Trip], rider_id: str) -> Trip | None:
    """Pick the one trip to surface from a store snapshot.

    At most one active trip should exist per rider. If a creation race left
    more than one, the earliest created wins (ties broken by id) and the rest
    are ignored.
    """
    candidates = [
        trip for trip in trips if trip.rider_id == rider_id and trip.status in ACTIVE_STATUSES
    ]
    if not candidates:
        return None
    if len(candidates) > 1:
        logger.warning(
            f"Rider has {len(candidates)} active trips, keeping the earliest",
            extra={"trip_ids": [trip.id for trip in candidates]},
        )
    return min(candidates, key=lambda trip: (trip.created_at, trip.id))


class Subscription:
    """Handle returned by ``ActiveTripSync.subscribe``.

    ``cancel`` takes effect immediately: no callback runs after it returns,
    even for snapshots already received.
    """

    def __init__(self, rider_id: str, on_change: ActiveTripCallback):
        self.rider_id = rider_id
        self._on_change = on_change
        self._cancelled = False
        self.task: asyncio.Task[None] | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self.task is not None and not self.task.done():
            self.task.cancel()

    def deliver(self, trip: Trip | None) -> None:
        if self._cancelled:
            return
        try:
            self._on_change(trip)
        except Exception:
            logger.exception("Active trip callback failed")


class ActiveTripSync:
    """Keeps a caller's view of "the rider's active trip" aligned with the store.

    Updates are applied in delivery order. A broken feed reports ``None`` so
    nobody keeps showing a trip that may no longer be current; resubscribing
    is left to the caller or the transport.
    """

    def __init__(self, store: TripStore):
        self.store = store

    def subscribe(self, rider_id: str, on_change: ActiveTripCallback) -> Subscription:
        subscription = Subscription(rider_id, on_change)
        subscription.task = asyncio.get_running_loop().create_task(self._pump(subscription))
        return subscription

    async def _pump(self, subscription: Subscription) -> None:
        feed = self.store.watch_active_trips(subscription.rider_id)
        try:
            async for snapshot in feed:
                if subscription.cancelled:
                    return
                subscription.deliver(select_active_trip(snapshot, subscription.rider_id))
        except Exception as e:
            logger.warning(f"Active trip subscription failed: {e}")
            subscription.deliver(None)
            return
        finally:
            await feed.aclose()

        # Feed ended without error: the transport closed on us.
        logger.info("Active trip feed closed")
        subscription.deliver(None)
