"""Tests for the active trip projection."""

import logging
from datetime import UTC, datetime

import pytest

from tests.factories import make_trip, settle
from triply.active_trip_sync import ActiveTripSync, select_active_trip
from triply.core.exceptions import StoreError
from triply.fare import VehicleClass
from triply.trip import TripRequest, TripStatus


def _request(pickup, dropoff, rider_id="r1") -> TripRequest:
    return TripRequest(
        rider_id=rider_id,
        pickup=pickup,
        dropoff=dropoff,
        vehicle_class=VehicleClass.CAR,
        price=28.0,
    )


@pytest.mark.unit
class TestSelectActiveTrip:
    def test_no_trips(self):
        assert select_active_trip([], "r1") is None

    def test_terminal_trips_ignored(self):
        trips = [
            make_trip("a", status=TripStatus.COMPLETED),
            make_trip("b", status=TripStatus.CANCELLED),
        ]
        assert select_active_trip(trips, "r1") is None

    def test_other_rider_ignored(self):
        assert select_active_trip([make_trip("a", rider_id="r2")], "r1") is None

    @pytest.mark.critical
    def test_earliest_created_wins(self, caplog):
        later = make_trip("a", created_at=datetime(2025, 3, 3, 9, 0, tzinfo=UTC))
        earlier = make_trip(
            "z", status=TripStatus.ACCEPTED, created_at=datetime(2025, 3, 3, 8, 0, tzinfo=UTC)
        )

        with caplog.at_level(logging.WARNING):
            selected = select_active_trip([later, earlier], "r1")

        assert selected.id == "z"
        assert "2 active trips" in caplog.text

    def test_tie_broken_by_id(self):
        created = datetime(2025, 3, 3, 8, 0, tzinfo=UTC)
        trips = [make_trip("b", created_at=created), make_trip("a", created_at=created)]

        assert select_active_trip(trips, "r1").id == "a"

    @pytest.mark.parametrize(
        "status",
        [TripStatus.SEARCHING, TripStatus.ACCEPTED, TripStatus.ARRIVED, TripStatus.STARTED],
    )
    def test_every_active_status_counts(self, status):
        assert select_active_trip([make_trip(status=status)], "r1").status == status


class TestActiveTripSync:
    async def test_initial_snapshot_delivered(self, store):
        received = []
        subscription = ActiveTripSync(store).subscribe("r1", received.append)
        await settle()

        assert received == [None]
        subscription.cancel()

    async def test_follows_store_changes(self, store, pickup, dropoff):
        received = []
        subscription = ActiveTripSync(store).subscribe("r1", received.append)
        await settle()

        trip = await store.create_trip(_request(pickup, dropoff))
        await settle()
        await store.update_trip(trip.id, status=TripStatus.ACCEPTED)
        await settle()
        await store.update_trip(trip.id, status=TripStatus.COMPLETED)
        await settle()

        assert [t.status if t else None for t in received] == [
            None,
            TripStatus.SEARCHING,
            TripStatus.ACCEPTED,
            None,
        ]
        subscription.cancel()

    async def test_other_riders_trips_not_reported(self, store, pickup, dropoff):
        received = []
        subscription = ActiveTripSync(store).subscribe("r1", received.append)
        await settle()

        await store.create_trip(_request(pickup, dropoff, rider_id="r2"))
        await settle()

        assert received == [None]
        subscription.cancel()

    @pytest.mark.critical
    async def test_duplicate_active_trips_resolve_to_earliest(self, store, pickup, dropoff):
        first = await store.create_trip(_request(pickup, dropoff))
        await store.create_trip(_request(pickup, dropoff))
        received = []

        subscription = ActiveTripSync(store).subscribe("r1", received.append)
        await settle()

        assert received[-1].id == first.id
        subscription.cancel()

    async def test_cancel_stops_callbacks(self, store, pickup, dropoff):
        received = []
        subscription = ActiveTripSync(store).subscribe("r1", received.append)
        await settle()

        subscription.cancel()
        await store.create_trip(_request(pickup, dropoff))
        await settle()

        assert received == [None]
        assert subscription.cancelled
        assert store.watcher_count("r1") == 0

    async def test_cancel_is_idempotent(self, store):
        subscription = ActiveTripSync(store).subscribe("r1", lambda trip: None)
        await settle()

        subscription.cancel()
        subscription.cancel()
        await settle()

        assert subscription.task.done()

    async def test_cancel_before_first_snapshot(self, store):
        received = []
        subscription = ActiveTripSync(store).subscribe("r1", received.append)

        subscription.cancel()
        await settle()

        assert received == []

    async def test_feed_failure_reports_no_trip(self, store, pickup, dropoff):
        await store.create_trip(_request(pickup, dropoff))
        received = []
        subscription = ActiveTripSync(store).subscribe("r1", received.append)
        await settle()

        store.fail_watchers("r1", StoreError("connection reset"))
        await settle()

        assert received[0] is not None
        assert received[-1] is None
        assert subscription.task.done()
        assert store.watcher_count("r1") == 0

    async def test_feed_end_reports_no_trip(self, pickup, dropoff):
        trip = make_trip()

        class OneShotStore:
            async def watch_active_trips(self, rider_id):
                yield [trip]

        received = []
        ActiveTripSync(OneShotStore()).subscribe("r1", received.append)
        await settle()

        assert received == [trip, None]

    async def test_callback_error_does_not_break_feed(self, store, pickup, dropoff):
        calls = []

        def flaky(trip):
            calls.append(trip)
            if len(calls) == 1:
                raise RuntimeError("render failed")

        subscription = ActiveTripSync(store).subscribe("r1", flaky)
        await settle()
        await store.create_trip(_request(pickup, dropoff))
        await settle()

        assert len(calls) == 2
        assert calls[1].status == TripStatus.SEARCHING
        subscription.cancel()
