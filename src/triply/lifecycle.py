"""Trip lifecycle state machine.

Before a trip exists the lifecycle is a write-once initiator: it collects a
leg, prices it and creates exactly one trip. Afterwards it is a read-through
projection of the stored trip's status and never advances on its own.
"""

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from triply.core.correlation import with_correlation
from triply.core.exceptions import (
    IncompleteTripRequest,
    InvalidTransition,
    StoreError,
    TripAlreadyInFlight,
)
from triply.fare import FareCalculator, VehicleClass
from triply.geo.models import GeoPoint, RouteSummary
from triply.location_resolver import LocationResolver
from triply.store.base import TripStore
from triply.trip import Trip, TripRequest, TripStatus

logger = logging.getLogger(__name__)


class LifecycleState(str, Enum):
    IDLE = "idle"
    SELECTING_VEHICLE = "selecting_vehicle"
    SEARCHING = "searching"
    ACCEPTED = "accepted"
    ARRIVED = "arrived"
    STARTED = "started"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES

    @property
    def has_trip(self) -> bool:
        return self in TRIP_STATES


TERMINAL_STATES = frozenset({LifecycleState.COMPLETED, LifecycleState.CANCELLED})
DRAFT_STATES = frozenset({LifecycleState.IDLE, LifecycleState.SELECTING_VEHICLE})
TRIP_STATES = frozenset(
    {
        LifecycleState.SEARCHING,
        LifecycleState.ACCEPTED,
        LifecycleState.ARRIVED,
        LifecycleState.STARTED,
    }
)

STATUS_TO_STATE: dict[TripStatus, LifecycleState] = {
    status: LifecycleState(status.value) for status in TripStatus
}


# Events


@dataclass(frozen=True)
class LegChanged:
    """Pickup or drop-off replaced; ``complete`` when both carry an address."""

    complete: bool


@dataclass(frozen=True)
class EditRequested:
    """Rider went back from vehicle selection to edit the leg."""


@dataclass(frozen=True)
class TripCreated:
    pass


@dataclass(frozen=True)
class TripAdopted:
    """An already active trip was reported for this rider."""

    status: TripStatus


@dataclass(frozen=True)
class RemoteStatus:
    status: TripStatus


@dataclass(frozen=True)
class ActiveTripCleared:
    """The tracked trip vanished from the store without a readable outcome."""


@dataclass(frozen=True)
class Abandoned:
    pass


@dataclass(frozen=True)
class Reset:
    pass


LifecycleEvent = (
    LegChanged
    | EditRequested
    | TripCreated
    | TripAdopted
    | RemoteStatus
    | ActiveTripCleared
    | Abandoned
    | Reset
)


def transition(state: LifecycleState, event: LifecycleEvent) -> LifecycleState:
    """Next state for ``event``, or ``InvalidTransition``. Pure."""
    if isinstance(event, LegChanged) and state in DRAFT_STATES:
        return LifecycleState.SELECTING_VEHICLE if event.complete else LifecycleState.IDLE
    if isinstance(event, EditRequested) and state in DRAFT_STATES:
        return LifecycleState.IDLE
    if isinstance(event, TripCreated) and state == LifecycleState.SELECTING_VEHICLE:
        return LifecycleState.SEARCHING
    if isinstance(event, TripAdopted) and state in DRAFT_STATES:
        return STATUS_TO_STATE[event.status]
    # Remote statuses may arrive out of order; the last applied one wins.
    if isinstance(event, RemoteStatus) and state in TRIP_STATES:
        return STATUS_TO_STATE[event.status]
    if isinstance(event, ActiveTripCleared) and state in TRIP_STATES:
        return LifecycleState.IDLE
    if isinstance(event, Abandoned) and state in DRAFT_STATES:
        return LifecycleState.CANCELLED
    if isinstance(event, Reset) and state.is_terminal:
        return LifecycleState.IDLE

    raise InvalidTransition(
        f"{type(event).__name__} not allowed in state {state.value}",
        details={"state": state.value, "event": type(event).__name__},
    )


class RouteProvider(Protocol):
    async def get_route(self, origin: GeoPoint, destination: GeoPoint) -> RouteSummary: ...


class TripLifecycle:
    """One rider's trip flow, from picking a leg to a terminal status."""

    def __init__(
        self,
        rider_id: str,
        store: TripStore,
        route_provider: RouteProvider,
        fare_calculator: FareCalculator | None = None,
        resolver: LocationResolver | None = None,
    ):
        self.rider_id = rider_id
        self.store = store
        self.route_provider = route_provider
        self.fare_calculator = fare_calculator or FareCalculator()
        self.resolver = resolver

        self.state = LifecycleState.IDLE
        self.pickup: GeoPoint | None = None
        self.dropoff: GeoPoint | None = None
        self.route_summary: RouteSummary | None = None
        self.vehicle_class: VehicleClass | None = None
        self.trip: Trip | None = None

        self._confirming = False
        self._leg_generation = 0

    @property
    def trip_id(self) -> str | None:
        return self.trip.id if self.trip else None

    @property
    def confirming(self) -> bool:
        return self._confirming

    @property
    def leg_complete(self) -> bool:
        return bool(
            self.pickup and self.dropoff and self.pickup.has_address and self.dropoff.has_address
        )

    def _apply(self, event: LifecycleEvent) -> LifecycleState:
        previous = self.state
        self.state = transition(self.state, event)
        if self.state != previous:
            logger.debug(f"Lifecycle {previous.value} -> {self.state.value}")
        return self.state

    # Leg editing

    async def set_pickup(self, point: GeoPoint | None) -> None:
        self._guard_leg_edit()
        self.pickup = point
        await self._leg_changed()

    async def set_dropoff(self, point: GeoPoint | None) -> None:
        self._guard_leg_edit()
        self.dropoff = point
        await self._leg_changed()

    async def use_current_location(self) -> GeoPoint:
        """Set the pickup from a fresh GPS fix. Raises ``LocationUnavailable``."""
        if self.resolver is None:
            raise InvalidTransition("No location resolver configured")
        point = await self.resolver.resolve_current()
        await self.set_pickup(point)
        return point

    async def prefill_destination(self, point: GeoPoint) -> None:
        """Drop-off from a suggestion or saved place; addresses missing ones."""
        if self.resolver is not None:
            point = await self.resolver.ensure_address(point)
        await self.set_dropoff(point)

    def back(self) -> None:
        """Return from vehicle selection to leg editing."""
        self._guard_leg_edit()
        self._discard_route()
        self._apply(EditRequested())

    def _guard_leg_edit(self) -> None:
        if self._confirming:
            raise TripAlreadyInFlight("Leg cannot change while a confirmation is in flight")
        if self.state not in DRAFT_STATES:
            raise InvalidTransition(
                f"Leg cannot change in state {self.state.value}",
                details={"state": self.state.value},
            )

    def _discard_route(self) -> None:
        self._leg_generation += 1
        self.route_summary = None

    async def _leg_changed(self) -> None:
        self._discard_route()
        if self._apply(LegChanged(complete=self.leg_complete)) == LifecycleState.SELECTING_VEHICLE:
            await self.refresh_route()

    async def refresh_route(self) -> RouteSummary | None:
        """Fetch the route summary for the current leg.

        A failed lookup leaves the leg without a route, so it can still be
        quoted at minimum fares but not confirmed. A result that arrives after
        the leg changed again is dropped.
        """
        if self.state != LifecycleState.SELECTING_VEHICLE or not self.leg_complete:
            return None
        generation = self._leg_generation
        try:
            summary = await self.route_provider.get_route(self.pickup, self.dropoff)
        except Exception as e:
            logger.warning(f"Route lookup failed: {e}")
            return None
        if generation != self._leg_generation or self.state != LifecycleState.SELECTING_VEHICLE:
            logger.debug("Dropping route for a superseded leg")
            return None
        self.route_summary = summary
        return summary

    # Pricing and confirmation

    def select_vehicle(self, vehicle_class: VehicleClass) -> None:
        if self.state != LifecycleState.SELECTING_VEHICLE:
            raise InvalidTransition(f"Cannot select a vehicle in state {self.state.value}")
        self.vehicle_class = VehicleClass(vehicle_class)

    def quotes(self) -> dict[VehicleClass, int]:
        """Display estimates per class; minimum fares until a route exists."""
        if self.state != LifecycleState.SELECTING_VEHICLE:
            return {}
        return self.fare_calculator.quote_all(self.route_summary)

    def _missing_fields(self, vehicle_class: VehicleClass | None) -> list[str]:
        missing = []
        if self.pickup is None or not self.pickup.has_address:
            missing.append("pickup")
        if self.dropoff is None or not self.dropoff.has_address:
            missing.append("dropoff")
        if vehicle_class is None:
            missing.append("vehicle_class")
        if self.route_summary is None:
            missing.append("route_summary")
        return missing

    async def confirm(self, vehicle_class: VehicleClass | None = None) -> Trip | None:
        """Create the trip for the current leg.

        Raises ``TripAlreadyInFlight`` if another confirmation is running and
        ``IncompleteTripRequest`` if the leg, class or route is missing; both
        leave the state untouched. Returns ``None`` when the store rejects the
        write, also without a state change.
        """
        if self._confirming:
            raise TripAlreadyInFlight(
                "A trip confirmation is already in progress",
                details={"rider_id": self.rider_id},
            )
        vehicle_class = vehicle_class or self.vehicle_class
        missing = self._missing_fields(vehicle_class)
        if missing or self.state != LifecycleState.SELECTING_VEHICLE:
            raise IncompleteTripRequest(
                f"Cannot confirm trip, missing: {', '.join(missing) or 'vehicle selection step'}",
                details={"missing": missing, "state": self.state.value},
            )

        vehicle_class = VehicleClass(vehicle_class)
        price = self.fare_calculator.confirmed_price(vehicle_class, self.route_summary)
        request = TripRequest(
            rider_id=self.rider_id,
            pickup=self.pickup,
            dropoff=self.dropoff,
            vehicle_class=vehicle_class,
            price=price,
        )

        self._confirming = True
        try:
            with with_correlation(uuid.uuid4().hex, rider_id=self.rider_id):
                try:
                    trip = await self.store.create_trip(request)
                except StoreError as e:
                    logger.error(f"Failed to create trip: {e}")
                    return None
                logger.info(
                    f"Trip {trip.id} requested: {vehicle_class.value} at {price:.2f}"
                )
        finally:
            self._confirming = False

        self.vehicle_class = vehicle_class
        if self.trip is not None:
            # The active trip feed got here first.
            if self.trip.id != trip.id:
                logger.warning(f"Created trip {trip.id} while tracking {self.trip.id}")
            return self.trip
        self.trip = trip
        self._apply(TripCreated())
        return trip

    # Server-driven updates

    async def apply_remote(self, trip: Trip | None) -> LifecycleState:
        """Reflect what the active trip feed reports for this rider."""
        if trip is not None and trip.rider_id != self.rider_id:
            logger.debug("Ignoring update for another rider")
            return self.state

        if self.trip is None:
            if trip is not None and trip.is_active and self.state in DRAFT_STATES:
                logger.info(f"Resuming active trip {trip.id}")
                self.trip = trip
                self._discard_route()
                self._apply(TripAdopted(status=trip.status))
            return self.state

        if self.state.is_terminal:
            logger.debug(f"Ignoring update after terminal state {self.state.value}")
            return self.state

        if trip is None:
            return await self._resolve_departed_trip()

        if trip.id != self.trip.id:
            return await self._resolve_surfaced_trip(trip)

        self.trip = trip
        return self._apply(RemoteStatus(status=trip.status))

    async def _resolve_surfaced_trip(self, surfaced: Trip) -> LifecycleState:
        """The feed reports a different trip than the tracked one.

        Only the earliest active trip is ever surfaced, so the tracked trip
        either already ended or lost a creation race. An ended trip reports
        its outcome; otherwise the surfaced trip replaces it.
        """
        if not surfaced.is_active:
            logger.debug(f"Ignoring update for untracked trip {surfaced.id}")
            return self.state

        trip_id = self.trip.id
        try:
            latest = await self.store.get_trip(trip_id)
        except StoreError as e:
            logger.warning(f"Could not read trip {trip_id} while another is active: {e}")
            latest = None

        if latest is not None and latest.status.is_terminal:
            self.trip = latest
            return self._apply(RemoteStatus(status=latest.status))

        logger.warning(f"Trip {trip_id} superseded by earlier active trip {surfaced.id}")
        self.trip = surfaced
        return self._apply(RemoteStatus(status=surfaced.status))

    async def _resolve_departed_trip(self) -> LifecycleState:
        trip_id = self.trip.id
        try:
            latest = await self.store.get_trip(trip_id)
        except StoreError as e:
            logger.warning(f"Could not read trip {trip_id} after it left the active set: {e}")
            latest = None

        if latest is None:
            self.trip = None
            return self._apply(ActiveTripCleared())
        # Still active means the feed dropped, not the trip.
        self.trip = latest
        return self._apply(RemoteStatus(status=latest.status))

    # Exits

    def abandon(self) -> None:
        """Give up a flow before any trip was created."""
        if self._confirming:
            raise TripAlreadyInFlight("Cannot abandon while a confirmation is in flight")
        self._apply(Abandoned())
        self._discard_route()

    def reset(self) -> None:
        """Start a new flow after a terminal state."""
        self._apply(Reset())
        self.pickup = None
        self.dropoff = None
        self.vehicle_class = None
        self.trip = None
        self._discard_route()
