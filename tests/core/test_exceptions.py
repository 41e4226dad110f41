"""Tests for the exception hierarchy."""

import pytest

from triply.core import exceptions
from triply.core.exceptions import (
    ConfigurationError,
    GeocoderError,
    IncompleteTripRequest,
    InvalidTransition,
    LocationUnavailable,
    PermanentError,
    RoutingError,
    StoreError,
    SuggestionServiceError,
    TransientError,
    TransportFailure,
    TripAlreadyInFlight,
    TriplyError,
)
from triply.geo.osrm_client import NoRouteFoundError, OSRMServiceError, OSRMTimeoutError


class TestExceptionHierarchy:
    """Test that exception classes follow the correct inheritance."""

    def test_transport_failures_are_transient(self):
        assert issubclass(TransportFailure, TransientError)
        for cls in (GeocoderError, RoutingError, StoreError, SuggestionServiceError):
            assert issubclass(cls, TransportFailure)

    def test_caller_errors_are_permanent(self):
        for cls in (
            LocationUnavailable,
            IncompleteTripRequest,
            TripAlreadyInFlight,
            InvalidTransition,
            ConfigurationError,
        ):
            assert issubclass(cls, PermanentError)
            assert not issubclass(cls, TransientError)

    def test_osrm_errors(self):
        assert issubclass(OSRMServiceError, RoutingError)
        assert issubclass(OSRMTimeoutError, RoutingError)
        assert issubclass(NoRouteFoundError, PermanentError)

    def test_everything_is_a_triply_error(self):
        assert issubclass(TransientError, TriplyError)
        assert issubclass(PermanentError, TriplyError)

    def test_does_not_shadow_pydantic_validation_error(self):
        assert not hasattr(exceptions, "ValidationError")


class TestExceptionAttributes:
    def test_stores_message(self):
        err = TriplyError("test message")
        assert err.message == "test message"
        assert str(err) == "test message"

    def test_default_details_is_empty_dict(self):
        assert TriplyError("test").details == {}

    def test_incomplete_request_details(self):
        err = IncompleteTripRequest("missing", details={"missing": ["dropoff"]})
        assert err.details["missing"] == ["dropoff"]

    def test_can_be_caught_as_base(self):
        with pytest.raises(TriplyError):
            raise GeocoderError("boom")
