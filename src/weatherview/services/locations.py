"""City name lookup backed by the OpenWeatherMap geocoding API."""

import structlog
from cachetools import TTLCache

from weatherview.api.schemas import Location
from weatherview.config import Settings
from weatherview.errors import NetworkError, NotFoundError, UpstreamError, ValidationError
from weatherview.services.openweather import (
    OpenWeatherAPIError,
    OpenWeatherClient,
    OpenWeatherConnectionError,
    OpenWeatherError,
)

logger = structlog.get_logger()

LOCATION_FAILURE = "Failed to fetch location data"


class LocationService:
    """Resolves city names to coordinates, memoizing successful lookups."""

    def __init__(self, settings: Settings, client: OpenWeatherClient) -> None:
        self._client = client
        self._cache: TTLCache[str, Location] = TTLCache(
            maxsize=settings.geocoding_cache_max_size,
            ttl=settings.geocoding_cache_ttl_seconds,
        )

    async def find_city(self, city: str | None) -> Location:
        """Look up the best match for a city name.

        Raises:
            ValidationError: If no city name was given
            ConfigurationError: If the provider API key is not configured
            NotFoundError: If the provider knows no such city
            UpstreamError: If the provider returns an error
            NetworkError: If the provider cannot be reached
        """
        name = (city or "").strip()
        if not name:
            raise ValidationError("City name is required")
        self._client.ensure_configured()

        key = name.casefold()
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("Geocoding cache hit", city=name)
            return cached

        try:
            results = await self._client.geocode(name, limit=1)

        except OpenWeatherAPIError as e:
            if e.status_code == 404:
                raise NotFoundError("City not found") from e
            logger.error(
                "Geocoding API error", city=name, status_code=e.status_code, error=str(e)
            )
            raise UpstreamError(LOCATION_FAILURE, e.status_code) from e

        except OpenWeatherConnectionError as e:
            logger.error("Geocoding request failed", city=name, error=str(e))
            raise NetworkError(LOCATION_FAILURE) from e

        except OpenWeatherError as e:
            logger.error("Geocoding returned an unusable response", city=name, error=str(e))
            raise UpstreamError(LOCATION_FAILURE, 502) from e

        if not results:
            raise NotFoundError("City not found")

        match = results[0]
        try:
            location = Location(
                lat=match["lat"],
                lon=match["lon"],
                city=match.get("name"),
                country=match.get("country"),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Malformed geocoding result", city=name, result=match)
            raise UpstreamError(LOCATION_FAILURE, 502) from e

        self._cache[key] = location
        return location
