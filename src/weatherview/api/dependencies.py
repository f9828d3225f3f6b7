"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends

from weatherview.config import Settings, get_settings
from weatherview.services.cache import WeatherCache
from weatherview.services.locations import LocationService
from weatherview.services.normalizer import WeatherNormalizer
from weatherview.services.openweather import OpenWeatherClient
from weatherview.services.users import InMemoryUserRepository, UserService
from weatherview.services.weather import WeatherService

# Singleton instances for services
_weather_cache: WeatherCache | None = None
_openweather_client: OpenWeatherClient | None = None
_weather_service: WeatherService | None = None
_location_service: LocationService | None = None
_user_service: UserService | None = None


def get_weather_cache(settings: Annotated[Settings, Depends(get_settings)]) -> WeatherCache:
    """Get weather cache instance (singleton)."""
    global _weather_cache
    if _weather_cache is None:
        _weather_cache = WeatherCache(settings)
    return _weather_cache


def get_openweather_client(
    settings: Annotated[Settings, Depends(get_settings)],
) -> OpenWeatherClient:
    """Get OpenWeatherMap client instance (singleton)."""
    global _openweather_client
    if _openweather_client is None:
        _openweather_client = OpenWeatherClient(settings)
    return _openweather_client


def get_weather_normalizer(
    settings: Annotated[Settings, Depends(get_settings)],
) -> WeatherNormalizer:
    return WeatherNormalizer.from_settings(settings)


def get_weather_service(
    settings: Annotated[Settings, Depends(get_settings)],
    cache: Annotated[WeatherCache, Depends(get_weather_cache)],
    client: Annotated[OpenWeatherClient, Depends(get_openweather_client)],
    normalizer: Annotated[WeatherNormalizer, Depends(get_weather_normalizer)],
) -> WeatherService:
    """Get weather service instance (singleton, it owns the in-flight map)."""
    global _weather_service
    if _weather_service is None:
        _weather_service = WeatherService(
            cache,
            client,
            normalizer,
            coalesce=settings.coalesce_requests,
        )
    return _weather_service


def get_location_service(
    settings: Annotated[Settings, Depends(get_settings)],
    client: Annotated[OpenWeatherClient, Depends(get_openweather_client)],
) -> LocationService:
    """Get location service instance (singleton)."""
    global _location_service
    if _location_service is None:
        _location_service = LocationService(settings, client)
    return _location_service


def get_user_service() -> UserService:
    """Get user service instance (singleton)."""
    global _user_service
    if _user_service is None:
        _user_service = UserService(InMemoryUserRepository())
    return _user_service


# Type aliases for dependency injection
CacheDep = Annotated[WeatherCache, Depends(get_weather_cache)]
WeatherServiceDep = Annotated[WeatherService, Depends(get_weather_service)]
LocationServiceDep = Annotated[LocationService, Depends(get_location_service)]
UserServiceDep = Annotated[UserService, Depends(get_user_service)]


def reset_singletons() -> None:
    """Reset singleton instances (for testing)."""
    global _weather_cache, _openweather_client, _weather_service
    global _location_service, _user_service
    _weather_cache = None
    _openweather_client = None
    _weather_service = None
    _location_service = None
    _user_service = None
