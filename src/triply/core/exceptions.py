"""Standardized exception hierarchy for the trip orchestration engine."""

from typing import Any


class TriplyError(Exception):
    """Base exception for all orchestration errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class TransientError(TriplyError):
    """Errors that may succeed on retry."""

    pass


class TransportFailure(TransientError):
    """A collaborator call (geocoder, router, store, generative service) failed.

    Always caught at the component boundary and converted to the component's
    fail-soft value.
    """

    pass


class GeocoderError(TransportFailure):
    """Geocoding service unreachable or returned an unusable payload."""

    pass


class RoutingError(TransportFailure):
    """Routing service unreachable or returned a server error."""

    pass


class StoreError(TransportFailure):
    """Authoritative store read, write or subscription failed."""

    pass


class SuggestionServiceError(TransportFailure):
    """Generative suggestion service failed or returned malformed output."""

    pass


class PermanentError(TriplyError):
    """Errors that will not succeed on retry."""

    pass


class LocationUnavailable(PermanentError):
    """Platform denied or timed out acquiring a position fix.

    Fatal to the current action, recoverable by asking again.
    """

    pass


class IncompleteTripRequest(PermanentError):
    """Confirm called without pickup, drop-off, vehicle class or route."""

    pass


class TripAlreadyInFlight(PermanentError):
    """A confirmation is already in progress for this flow."""

    pass


class InvalidTransition(PermanentError):
    """Event not accepted by the trip lifecycle in its current state."""

    pass


class ConfigurationError(PermanentError):
    """Missing or invalid configuration."""

    pass
