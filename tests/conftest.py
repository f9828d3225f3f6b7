"""Test fixtures."""

import asyncio
from collections.abc import Iterator, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from fastapi.testclient import TestClient

from weatherview.api.dependencies import get_weather_normalizer, reset_singletons
from weatherview.config import Settings, get_settings
from weatherview.main import create_app
from weatherview.services.cache import (
    CacheEntry,
    CoordinateKey,
    InMemoryCacheBackend,
    WeatherCache,
)
from weatherview.services.normalizer import WeatherNormalizer
from weatherview.services.openweather import OpenWeatherClient, OpenWeatherError

BASE_URL = "https://api.openweathermap.org"
CURRENT_URL = f"{BASE_URL}/data/2.5/weather"
UV_URL = f"{BASE_URL}/data/2.5/uvi"
AIR_URL = f"{BASE_URL}/data/2.5/air_pollution"
FORECAST_URL = f"{BASE_URL}/data/2.5/forecast"
GEOCODING_URL = f"{BASE_URL}/geo/1.0/direct"

# 2024-06-15 09:00 UTC, 14:00 in Karachi (UTC+5)
NOW = datetime(2024, 6, 15, 9, 0, tzinfo=UTC)
KARACHI_OFFSET = 5 * 3600


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class BrokenBackend(InMemoryCacheBackend):
    """Cache backend whose storage is unreachable."""

    def append(self, entry: CacheEntry) -> None:
        raise ConnectionError("store down")

    def entries_for(self, key: CoordinateKey) -> Sequence[CacheEntry]:
        raise ConnectionError("store down")

    def delete_older_than(self, cutoff: datetime) -> int:
        raise ConnectionError("store down")

    def count(self) -> int:
        raise ConnectionError("store down")


class SlowClient(OpenWeatherClient):
    """Client that yields to the event loop before answering.

    Secondary endpoints return nothing, so snapshots carry default values.
    """

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        self.current_calls = 0

    async def get_current_weather(self, lat: float, lon: float) -> dict[str, Any]:
        self.current_calls += 1
        await asyncio.sleep(0.01)
        return current_payload()

    async def get_uv_index(self, lat: float, lon: float) -> dict[str, Any]:
        raise OpenWeatherError("not mocked")

    async def get_air_pollution(self, lat: float, lon: float) -> dict[str, Any]:
        raise OpenWeatherError("not mocked")

    async def get_forecast(self, lat: float, lon: float) -> dict[str, Any]:
        raise OpenWeatherError("not mocked")


def current_payload(**overrides: Any) -> dict[str, Any]:
    """OpenWeatherMap current weather response for Karachi, imperial units."""
    payload: dict[str, Any] = {
        "name": "Karachi",
        "dt": int(NOW.timestamp()),
        "timezone": KARACHI_OFFSET,
        "sys": {
            "country": "PK",
            "sunrise": int(datetime(2024, 6, 15, 0, 42, tzinfo=UTC).timestamp()),
            "sunset": int(datetime(2024, 6, 15, 14, 23, tzinfo=UTC).timestamp()),
        },
        "main": {
            "temp": 91.4,
            "feels_like": 99.6,
            "humidity": 62,
            "pressure": 1002,
        },
        "weather": [{"id": 800, "main": "Clear", "description": "clear sky", "icon": "01d"}],
        "visibility": 6000,
        "wind": {"speed": 12.6, "deg": 225},
    }
    payload.update(overrides)
    return payload


def forecast_payload(days: int = 5) -> dict[str, Any]:
    """3-hourly forecast covering ``days`` local calendar days from NOW."""
    start = int(NOW.timestamp())
    entries = []
    for step in range(days * 8):
        entries.append(
            {
                "dt": start + step * 3 * 3600,
                "main": {
                    "temp": 85.0 + step % 8,
                    "temp_min": 80.0 + step % 8,
                    "temp_max": 90.0 + step % 8,
                },
                "weather": [{"main": "Clouds", "icon": "03d"}],
                "pop": 0.1,
            }
        )
    return {"list": entries, "city": {"name": "Karachi", "timezone": KARACHI_OFFSET}}


@pytest.fixture
def settings() -> Settings:
    """Create test settings."""
    return Settings(
        openweather_api_key="test-key",
        upstream_base_url=BASE_URL,
        upstream_timeout_seconds=1.0,
        cache_freshness_seconds=600,
        cache_retention_seconds=3600,
        log_level="DEBUG",
        log_format="text",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def weather_cache(settings: Settings, clock: FakeClock) -> WeatherCache:
    """Create test weather cache on a fake clock."""
    return WeatherCache(settings, clock=clock)


@pytest.fixture
def normalizer(clock: FakeClock) -> WeatherNormalizer:
    return WeatherNormalizer(forecast_days=10, padding="repeat", clock=clock)


@pytest.fixture
def openweather_client(settings: Settings) -> OpenWeatherClient:
    """Create test OpenWeatherMap client."""
    return OpenWeatherClient(settings)


@pytest.fixture
def app(monkeypatch: pytest.MonkeyPatch, clock: FakeClock):
    """Create test application with a fake API key, normalizing on the fake clock."""
    monkeypatch.setenv("OPENWEATHER_API_KEY", "test-key")
    monkeypatch.setenv("LOG_FORMAT", "text")
    # Reset singletons before each test
    reset_singletons()
    # Clear settings cache
    get_settings.cache_clear()
    application = create_app()
    application.dependency_overrides[get_weather_normalizer] = lambda: WeatherNormalizer(
        clock=clock
    )
    yield application
    reset_singletons()
    get_settings.cache_clear()


@pytest.fixture
def client(app) -> Iterator[TestClient]:
    """Create test client."""
    with TestClient(app) as test_client:
        yield test_client
