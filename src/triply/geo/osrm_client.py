import httpx
from pydantic import BaseModel

from triply.core.exceptions import (
    PermanentError,
    RoutingError,
)
from triply.core.retry import RetryConfig, with_retry

from .models import GeoPoint, RouteSummary


class RouteResponse(BaseModel):
    distance_meters: float
    duration_seconds: float
    osrm_code: str

    def to_summary(self) -> RouteSummary:
        return RouteSummary(
            total_distance_meters=self.distance_meters,
            total_duration_seconds=self.duration_seconds,
        )


class NoRouteFoundError(PermanentError):
    """No route found between coordinates. Non-retryable."""

    pass


class OSRMServiceError(RoutingError):
    """OSRM service error (5xx or network). Retryable."""

    pass


class OSRMTimeoutError(RoutingError):
    """OSRM request timeout. Retryable."""

    pass


class OSRMClient:
    """Route summaries from an OSRM server; geometry is not requested."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        retry_config: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_config = retry_config or RetryConfig(max_attempts=1)
        self._transport = transport

    async def fetch_route(
        self, origin: tuple[float, float], destination: tuple[float, float]
    ) -> RouteResponse:
        """Get route between two (lat, lon) coordinates using OSRM."""
        origin_lat, origin_lon = origin
        dest_lat, dest_lon = destination

        url = (
            f"{self.base_url}/route/v1/driving/"
            f"{origin_lon},{origin_lat};{dest_lon},{dest_lat}"
        )
        params = {"overview": "false"}

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(url, params=params)

                if response.status_code >= 500:
                    raise OSRMServiceError(f"OSRM server error: {response.status_code}")

                data = response.json()

                if data.get("code") == "NoRoute" or not data.get("routes"):
                    raise NoRouteFoundError("No route found between coordinates")

                route = data["routes"][0]
                return RouteResponse(
                    distance_meters=float(route["distance"]),
                    duration_seconds=float(route["duration"]),
                    osrm_code=data["code"],
                )

        except httpx.TimeoutException as e:
            raise OSRMTimeoutError(f"Request timed out after {self.timeout}s") from e
        except httpx.NetworkError as e:
            raise OSRMServiceError(f"Network error: {e}") from e
        except (ValueError, KeyError, TypeError) as e:
            raise OSRMServiceError(f"Malformed OSRM response: {e}") from e

    async def get_route(self, origin: GeoPoint, destination: GeoPoint) -> RouteSummary:
        """Route summary for a leg, retrying transient failures."""
        response = await with_retry(
            lambda: self.fetch_route(origin.as_tuple(), destination.as_tuple()),
            config=self.retry_config,
            operation_name="osrm.route",
        )
        return response.to_summary()
