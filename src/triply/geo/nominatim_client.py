import logging

import httpx

from triply.core.exceptions import GeocoderError

from .models import GeoPoint

logger = logging.getLogger(__name__)


class NominatimClient:
    """Forward and reverse geocoding against an OpenStreetMap Nominatim server.

    Raises ``GeocoderError`` for any transport or payload problem; callers
    decide how to degrade.
    """

    def __init__(
        self,
        base_url: str = "https://nominatim.openstreetmap.org",
        user_agent: str = "triply/0.1",
        language: str = "ar",
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.language = language
        self.timeout = timeout
        self._transport = transport

    async def _get(self, path: str, params: dict) -> object:
        params = {**params, "format": "json", "accept-language": self.language}
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={"User-Agent": self.user_agent},
            ) as client:
                response = await client.get(f"{self.base_url}/{path}", params=params)
                response.raise_for_status()
                return response.json()
        except httpx.TimeoutException as e:
            raise GeocoderError(f"Geocoder timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise GeocoderError(
                f"Geocoder error: {e.response.status_code}",
                details={"path": path},
            ) from e
        except httpx.HTTPError as e:
            raise GeocoderError(f"Network error: {e}") from e
        except ValueError as e:
            raise GeocoderError(f"Invalid JSON from geocoder: {e}") from e

    async def search(self, text: str, limit: int = 5) -> list[GeoPoint]:
        data = await self._get(
            "search", {"q": text, "addressdetails": 1, "limit": limit}
        )
        if not isinstance(data, list):
            raise GeocoderError("Unexpected search payload", details={"type": type(data).__name__})

        results = []
        for item in data:
            try:
                results.append(
                    GeoPoint(
                        lat=float(item["lat"]),
                        lng=float(item["lon"]),
                        address=item.get("display_name"),
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"Skipping malformed search result: {e}")
        return results[:limit]

    async def reverse(self, lat: float, lng: float) -> str | None:
        data = await self._get("reverse", {"lat": lat, "lon": lng})
        if not isinstance(data, dict):
            raise GeocoderError("Unexpected reverse payload", details={"type": type(data).__name__})
        return data.get("display_name") or None
