"""Turns free text and raw coordinates into addressed points."""

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import Protocol

from triply.core.exceptions import LocationUnavailable
from triply.geo.models import GeoPoint
from triply.geo.position import PositionProvider, acquire_fix
from triply.settings import GeocoderSettings

logger = logging.getLogger(__name__)

UNKNOWN_LOCATION = "unknown location"


class Geocoder(Protocol):
    async def search(self, text: str, limit: int = 5) -> list[GeoPoint]: ...

    async def reverse(self, lat: float, lng: float) -> str | None: ...


class LocationResolver:
    """Fail-soft facade over a geocoder and a position provider.

    Only ``resolve_current`` raises (``LocationUnavailable``); search and
    reverse geocoding are advisory and degrade to an empty list or
    ``UNKNOWN_LOCATION``.
    """

    def __init__(
        self,
        geocoder: Geocoder,
        position_provider: PositionProvider | None = None,
        settings: GeocoderSettings | None = None,
        fix_timeout: float = 8.0,
    ):
        self.geocoder = geocoder
        self.position_provider = position_provider
        self.settings = settings or GeocoderSettings()
        self.fix_timeout = fix_timeout

    def is_searchable(self, text: str) -> bool:
        return len(text.strip()) >= self.settings.min_query_length

    async def resolve_current(self) -> GeoPoint:
        if self.position_provider is None:
            raise LocationUnavailable(
                "No position provider configured", details={"reason": "unsupported"}
            )
        lat, lng = await acquire_fix(self.position_provider, self.fix_timeout)
        try:
            point = GeoPoint(lat=lat, lng=lng)
        except ValueError as e:
            raise LocationUnavailable(
                f"Position fix out of range: {lat},{lng}", details={"reason": "invalid"}
            ) from e
        return point.with_address(await self.reverse_geocode(lat, lng))

    async def search(self, text: str) -> list[GeoPoint]:
        if not self.is_searchable(text):
            return []
        limit = self.settings.search_limit
        try:
            results = await self.geocoder.search(text.strip(), limit=limit)
        except Exception as e:
            logger.warning(f"Location search failed for {len(text)}-char query: {e}")
            return []
        return [point for point in results if point.has_address][:limit]

    async def reverse_geocode(self, lat: float, lng: float) -> str:
        try:
            address = await self.geocoder.reverse(lat, lng)
        except Exception as e:
            logger.warning(f"Reverse geocoding failed: {e}")
            return UNKNOWN_LOCATION
        return address or UNKNOWN_LOCATION

    async def ensure_address(self, point: GeoPoint) -> GeoPoint:
        """Return ``point`` unchanged if addressed, else a reverse-geocoded copy."""
        if point.has_address:
            return point
        return point.with_address(await self.reverse_geocode(point.lat, point.lng))

    def debouncer(
        self, on_results: Callable[[list[GeoPoint]], None]
    ) -> "SearchDebouncer":
        return SearchDebouncer(self, on_results, delay=self.settings.debounce_seconds)


class SearchDebouncer:
    """Coalesces searches for a text buffer that changes on every keystroke.

    Each ``update`` supersedes whatever is pending or in flight; a request is
    only issued after ``delay`` seconds without another update. Results of a
    superseded or cancelled search are dropped, never delivered.
    """

    def __init__(
        self,
        resolver: LocationResolver,
        on_results: Callable[[list[GeoPoint]], None],
        delay: float = 0.5,
    ):
        self.resolver = resolver
        self.on_results = on_results
        self.delay = delay
        self._generation = 0
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def update(self, text: str) -> asyncio.Task[None] | None:
        """Register the latest buffer contents. Must run inside an event loop."""
        if self._closed:
            return None
        self._supersede()
        if not self.resolver.is_searchable(text):
            self.on_results([])
            return None
        generation = self._generation
        self._task = asyncio.get_running_loop().create_task(self._run(text, generation))
        return self._task

    async def _run(self, text: str, generation: int) -> None:
        await asyncio.sleep(self.delay)
        results = await self.resolver.search(text)
        if self._closed or generation != self._generation:
            logger.debug("Dropping superseded search results")
            return
        self.on_results(results)

    def _supersede(self) -> None:
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def cancel(self) -> None:
        """Stop for good; safe to call more than once."""
        self._closed = True
        self._supersede()

    async def flush(self) -> None:
        """Wait for the pending search, if any, to deliver or be dropped."""
        task = self._task
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task
