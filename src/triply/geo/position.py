"""Platform position fixes."""

import asyncio
from typing import Protocol

from triply.core.exceptions import LocationUnavailable


class PositionProvider(Protocol):
    """Source of raw GPS fixes (device, browser bridge, test double).

    ``max_age_seconds=0`` asks for a fresh fix; cached fixes must not be
    returned. Implementations raise ``PermissionError`` when the user denies
    access.
    """

    async def current_position(self, max_age_seconds: float = 0) -> tuple[float, float]: ...


class StaticPositionProvider:
    """Always reports the same fix. Useful for kiosks and tests."""

    def __init__(self, lat: float, lng: float):
        self.lat = lat
        self.lng = lng

    async def current_position(self, max_age_seconds: float = 0) -> tuple[float, float]:
        return (self.lat, self.lng)


async def acquire_fix(provider: PositionProvider, timeout: float) -> tuple[float, float]:
    """Fresh fix within ``timeout`` seconds or ``LocationUnavailable``."""
    try:
        return await asyncio.wait_for(provider.current_position(max_age_seconds=0), timeout)
    except TimeoutError as e:
        raise LocationUnavailable(
            f"No position fix within {timeout}s", details={"reason": "timeout"}
        ) from e
    except PermissionError as e:
        raise LocationUnavailable(
            "Position access denied", details={"reason": "denied"}
        ) from e
    except OSError as e:
        raise LocationUnavailable(
            f"Position unavailable: {e}", details={"reason": "unavailable"}
        ) from e
