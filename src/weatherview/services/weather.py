"""Weather service orchestrating cache, upstream client and normalizer."""

from __future__ import annotations

import asyncio
import math
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from weatherview.api.schemas import WeatherSnapshot
from weatherview.errors import (
    CacheUnavailableError,
    NetworkError,
    UpstreamError,
    ValidationError,
)
from weatherview.services.cache import CoordinateKey, WeatherCache
from weatherview.services.normalizer import MalformedPayloadError, WeatherNormalizer
from weatherview.services.openweather import (
    OpenWeatherAPIError,
    OpenWeatherClient,
    OpenWeatherConnectionError,
    OpenWeatherError,
)

logger = structlog.get_logger()

MISSING_COORDINATES = "Latitude and longitude are required"
MISSING_API_KEY = (
    "OpenWeatherMap API key not configured. "
    "Please set OPENWEATHER_API_KEY environment variable."
)
NETWORK_FAILURE = (
    "Failed to fetch weather data. Please check your internet connection and try again."
)


def parse_coordinates(lat: Any, lon: Any) -> tuple[float, float]:
    """Validate raw latitude/longitude input.

    Raises:
        ValidationError: If either value is missing, not numeric or out of range
    """
    if lat is None or lon is None or lat == "" or lon == "":
        raise ValidationError(MISSING_COORDINATES)
    try:
        lat_value, lon_value = float(lat), float(lon)
    except (TypeError, ValueError) as e:
        raise ValidationError("Latitude and longitude must be numbers") from e
    if not (math.isfinite(lat_value) and math.isfinite(lon_value)):
        raise ValidationError("Latitude and longitude must be numbers")
    if not -90 <= lat_value <= 90:
        raise ValidationError("Latitude must be between -90 and 90")
    if not -180 <= lon_value <= 180:
        raise ValidationError("Longitude must be between -180 and 180")
    return lat_value, lon_value


class WeatherService:
    """Service for fetching weather snapshots with caching.

    One request makes a single attempt against the provider: current
    conditions are required, UV, air quality and forecast are best effort.
    Concurrent misses for the same key each fetch on their own unless
    ``coalesce`` is enabled.
    """

    def __init__(
        self,
        cache: WeatherCache,
        client: OpenWeatherClient,
        normalizer: WeatherNormalizer,
        coalesce: bool = False,
    ) -> None:
        """Initialize service with cache, client and normalizer."""
        self._cache = cache
        self._client = client
        self._normalizer = normalizer
        self._coalesce = coalesce
        self._inflight: dict[CoordinateKey, asyncio.Future[WeatherSnapshot]] = {}

    async def get_weather(self, lat: Any, lon: Any) -> WeatherSnapshot:
        """Get the weather snapshot for coordinates.

        Checks cache first, fetches from upstream on cache miss.

        Args:
            lat: Latitude, as received from the client
            lon: Longitude, as received from the client

        Returns:
            Canonical weather snapshot

        Raises:
            ValidationError: If coordinates are missing or invalid
            ConfigurationError: If the provider API key is not configured
            UpstreamError: If the provider rejects the current-conditions request
            NetworkError: If the provider cannot be reached
        """
        lat, lon = parse_coordinates(lat, lon)
        self._client.ensure_configured(MISSING_API_KEY)

        cached = self._lookup(lat, lon)
        if cached is not None:
            logger.info("Cache hit for weather request", lat=lat, lon=lon, cache_hit=True)
            return cached

        logger.info("Cache miss, fetching from upstream", lat=lat, lon=lon, cache_hit=False)

        if not self._coalesce:
            return await self._fetch_and_store(lat, lon)

        key = self._cache.make_key(lat, lon)
        future = self._inflight.get(key)
        if future is None:
            future = asyncio.ensure_future(self._fetch_and_store(lat, lon))
            self._inflight[key] = future
            future.add_done_callback(lambda _f: self._inflight.pop(key, None))
        else:
            logger.info("Joining in-flight upstream fetch", lat=lat, lon=lon)
        return await asyncio.shield(future)

    def _lookup(self, lat: float, lon: float) -> WeatherSnapshot | None:
        try:
            return self._cache.lookup(lat, lon)
        except CacheUnavailableError as e:
            logger.warning(
                "Cache unavailable, falling back to upstream", lat=lat, lon=lon, error=str(e)
            )
            return None

    async def _fetch_and_store(self, lat: float, lon: float) -> WeatherSnapshot:
        snapshot = await self._fetch_snapshot(lat, lon)
        try:
            self._cache.store(lat, lon, snapshot)
        except CacheUnavailableError as e:
            logger.warning(
                "Cache unavailable, snapshot not stored", lat=lat, lon=lon, error=str(e)
            )
        return snapshot

    async def _fetch_snapshot(self, lat: float, lon: float) -> WeatherSnapshot:
        try:
            current = await self._client.get_current_weather(lat, lon)

        except OpenWeatherAPIError as e:
            logger.error(
                "Upstream API error",
                lat=lat,
                lon=lon,
                status_code=e.status_code,
                error=str(e),
            )
            detail = e.provider_message or "Failed to fetch weather data"
            raise UpstreamError(f"Weather API error: {detail}", e.status_code) from e

        except OpenWeatherConnectionError as e:
            logger.error("Upstream request failed", lat=lat, lon=lon, error=str(e))
            raise NetworkError(NETWORK_FAILURE) from e

        except OpenWeatherError as e:
            logger.error(
                "Upstream returned an unusable response", lat=lat, lon=lon, error=str(e)
            )
            raise UpstreamError("Weather API error: Invalid response from provider", 502) from e

        uv = await self._fetch_secondary("uv", self._client.get_uv_index, lat, lon)
        air = await self._fetch_secondary("air_quality", self._client.get_air_pollution, lat, lon)
        forecast = await self._fetch_secondary("forecast", self._client.get_forecast, lat, lon)

        try:
            return self._normalizer.normalize(current, uv=uv, air=air, forecast=forecast)
        except MalformedPayloadError as e:
            logger.error(
                "Malformed current conditions payload", lat=lat, lon=lon, error=str(e)
            )
            raise UpstreamError("Weather API error: Invalid response from provider", 502) from e

    async def _fetch_secondary(
        self,
        name: str,
        fetch: Callable[[float, float], Awaitable[Any]],
        lat: float,
        lon: float,
    ) -> Any:
        """Fetch optional data; failures degrade to ``None``."""
        try:
            return await fetch(lat, lon)
        except OpenWeatherError as e:
            logger.warning(
                "Secondary data unavailable", data=name, lat=lat, lon=lon, error=str(e)
            )
            return None
