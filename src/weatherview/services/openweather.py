"""OpenWeatherMap API client."""

from typing import Any

import httpx
from prometheus_client import Counter, Histogram

from weatherview.config import Settings
from weatherview.errors import ConfigurationError

CURRENT_PATH = "/data/2.5/weather"
UV_PATH = "/data/2.5/uvi"
AIR_POLLUTION_PATH = "/data/2.5/air_pollution"
FORECAST_PATH = "/data/2.5/forecast"
GEOCODING_PATH = "/geo/1.0/direct"


class OpenWeatherError(Exception):
    """Base exception for OpenWeatherMap client errors."""


class OpenWeatherConnectionError(OpenWeatherError):
    """Raised when the upstream cannot be reached."""


class OpenWeatherTimeoutError(OpenWeatherConnectionError):
    """Raised when upstream request times out."""


class OpenWeatherAPIError(OpenWeatherError):
    """Raised when upstream returns an error."""

    def __init__(self, message: str, status_code: int, provider_message: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.provider_message = provider_message


# Metrics
upstream_requests = Counter(
    "upstream_requests_total",
    "Total upstream API requests",
    ["endpoint", "status"],
)
upstream_duration = Histogram(
    "upstream_request_duration_seconds",
    "Upstream request duration in seconds",
    ["endpoint"],
    buckets=[0.05, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0],
)


class OpenWeatherClient:
    """HTTP client for the OpenWeatherMap weather, pollution and geocoding APIs.

    Weather payloads are requested in imperial units. Responses are returned
    as decoded JSON; interpreting them is the normalizer's job.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize client with settings."""
        self._base_url = settings.upstream_base_url.rstrip("/")
        self._timeout = settings.upstream_timeout_seconds
        self._api_key = settings.openweather_api_key or None

    @property
    def is_configured(self) -> bool:
        return self._api_key is not None

    def ensure_configured(self, message: str = "OpenWeatherMap API key not configured") -> None:
        """Raise ConfigurationError when no API key was provided."""
        if not self.is_configured:
            raise ConfigurationError(message)

    async def get_current_weather(self, lat: float, lon: float) -> dict[str, Any]:
        """Fetch current conditions for coordinates."""
        data = await self._get(CURRENT_PATH, {"lat": lat, "lon": lon, "units": "imperial"})
        if not isinstance(data, dict):
            raise OpenWeatherError("Unexpected current weather payload")
        return data

    async def get_uv_index(self, lat: float, lon: float) -> dict[str, Any]:
        """Fetch the UV index for coordinates."""
        return await self._get(UV_PATH, {"lat": lat, "lon": lon})

    async def get_air_pollution(self, lat: float, lon: float) -> dict[str, Any]:
        """Fetch air pollution data (provider AQI on a 1-5 scale)."""
        return await self._get(AIR_POLLUTION_PATH, {"lat": lat, "lon": lon})

    async def get_forecast(self, lat: float, lon: float) -> dict[str, Any]:
        """Fetch the 5-day / 3-hour forecast for coordinates."""
        return await self._get(FORECAST_PATH, {"lat": lat, "lon": lon, "units": "imperial"})

    async def geocode(self, city: str, limit: int = 1) -> list[dict[str, Any]]:
        """Resolve a city name to candidate locations."""
        data = await self._get(GEOCODING_PATH, {"q": city, "limit": limit})
        if not isinstance(data, list):
            raise OpenWeatherError("Unexpected geocoding payload")
        return data

    async def _get(self, path: str, params: dict[str, Any]) -> Any:
        """Perform one GET request against the API.

        Raises:
            ConfigurationError: If no API key is configured
            OpenWeatherTimeoutError: If request times out
            OpenWeatherConnectionError: If the upstream cannot be reached
            OpenWeatherAPIError: If upstream returns an error
        """
        self.ensure_configured()
        query = {**params, "appid": self._api_key}

        with upstream_duration.labels(endpoint=path).time():
            try:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(f"{self._base_url}{path}", params=query)

            except httpx.TimeoutException as e:
                upstream_requests.labels(endpoint=path, status="timeout").inc()
                raise OpenWeatherTimeoutError(
                    f"OpenWeatherMap request timed out after {self._timeout}s"
                ) from e

            except httpx.RequestError as e:
                upstream_requests.labels(endpoint=path, status="error").inc()
                raise OpenWeatherConnectionError(f"OpenWeatherMap request failed: {e}") from e

        if not response.is_success:
            upstream_requests.labels(endpoint=path, status="error").inc()
            provider_message = self._error_message(response)
            raise OpenWeatherAPIError(
                f"OpenWeatherMap returned {response.status_code}: {provider_message}",
                response.status_code,
                provider_message,
            )

        upstream_requests.labels(endpoint=path, status="success").inc()
        try:
            return response.json()
        except ValueError as e:
            raise OpenWeatherError("OpenWeatherMap returned invalid JSON") from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str | None:
        """Extract the provider's error message from an error response."""
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return None
