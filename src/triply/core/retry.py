"""Exponential backoff for calls to external services."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass, field
from typing import TypeVar

from .exceptions import TransientError

T = TypeVar("T")
logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """``max_attempts`` counts the first call; 1 disables retrying."""

    max_attempts: int = 3
    base_delay: float = 0.5
    multiplier: float = 2.0
    max_delay: float = 30.0
    retryable_exceptions: tuple[type[Exception], ...] = field(
        default_factory=lambda: (TransientError,)
    )

    @classmethod
    def from_settings(cls, settings) -> "RetryConfig":
        """Build from any settings section exposing ``max_retries``,
        ``retry_base_delay`` and ``retry_multiplier``."""
        return cls(
            max_attempts=settings.max_retries,
            base_delay=settings.retry_base_delay,
            multiplier=settings.retry_multiplier,
        )

    def delays(self) -> Iterator[float]:
        """Sleep before each retry, capped at ``max_delay``."""
        for attempt in range(self.max_attempts - 1):
            yield min(self.base_delay * (self.multiplier**attempt), self.max_delay)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    operation_name: str = "operation",
    on_retry: Callable[[Exception, int], None] | None = None,
) -> T:
    """Run ``operation`` until it succeeds, a non-retryable error is raised, or
    attempts run out. The last retryable error is re-raised unchanged."""
    config = config or RetryConfig()

    for attempt, delay in enumerate(config.delays(), start=1):
        try:
            return await operation()
        except config.retryable_exceptions as e:
            logger.warning(
                f"{operation_name} failed (attempt {attempt}/{config.max_attempts}), "
                f"retrying in {delay:.1f}s: {e}"
            )
            if on_retry:
                on_retry(e, attempt - 1)
            await asyncio.sleep(delay)

    try:
        return await operation()
    except config.retryable_exceptions as e:
        if config.max_attempts > 1:
            logger.error(f"{operation_name} failed after {config.max_attempts} attempts: {e}")
        raise
