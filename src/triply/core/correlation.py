"""Correlation context so log lines of one trip request can be grouped."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

current_correlation_id: ContextVar[str | None] = ContextVar(
    "correlation_id", default=None
)
current_rider_id: ContextVar[str | None] = ContextVar("rider_id", default=None)


class CorrelationFilter(logging.Filter):
    """Logging filter that adds correlation and rider IDs to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = current_correlation_id.get() or "-"
        record.rider_id = current_rider_id.get() or "-"
        return True


@contextmanager
def with_correlation(correlation_id: str, rider_id: str | None = None) -> Iterator[None]:
    """Context manager to set correlation ID for a block of code.

    Usage:
        with with_correlation(request_id, rider_id="r1"):
            logger.info("Creating trip")  # includes correlation_id and rider_id
    """
    token = current_correlation_id.set(correlation_id)
    rider_token = current_rider_id.set(rider_id) if rider_id is not None else None
    try:
        yield
    finally:
        current_correlation_id.reset(token)
        if rider_token is not None:
            current_rider_id.reset(rider_token)


def get_current_correlation_id() -> str | None:
    """Get the current correlation ID from context."""
    return current_correlation_id.get()
