"""API request and response schemas."""

import datetime as dt

from pydantic import BaseModel, Field


class CurrentConditions(BaseModel):
    """Current weather conditions in display units."""

    location: str = Field(..., description="Location label, e.g. 'Karachi, PK'")
    temperature: int = Field(..., description="Temperature")
    feelsLike: int = Field(..., description="Feels-like temperature")  # noqa: N815
    description: str = Field(..., description="Short condition text")
    humidity: int = Field(..., ge=0, le=100, description="Relative humidity in percent")
    pressure: str = Field(..., description="Pressure in inHg, 2 decimals")
    visibility: int = Field(..., ge=0, description="Visibility")
    windSpeed: int = Field(..., ge=0, description="Wind speed")  # noqa: N815
    windDirection: str = Field(..., description="16-point compass label")  # noqa: N815
    uvIndex: int = Field(..., ge=0, description="UV index")  # noqa: N815
    uvLevel: str = Field(..., description="UV severity band")  # noqa: N815
    aqi: int = Field(..., ge=0, description="US EPA air quality index")
    aqiLevel: str = Field(..., description="Air quality band")  # noqa: N815
    icon: str = Field(..., description="Internal icon identifier")
    sunrise: str = Field(..., description="Local sunrise time")
    sunset: str = Field(..., description="Local sunset time")
    isDay: bool = Field(..., description="Whether it is daytime at the location")  # noqa: N815
    lastUpdated: str = Field(..., description="ISO-8601 time of normalization")  # noqa: N815


class ForecastDay(BaseModel):
    """One day of the forecast."""

    date: dt.date
    dayName: str = Field(..., description="'Today', 'Tomorrow' or weekday")  # noqa: N815
    icon: str
    description: str
    tempHigh: int  # noqa: N815
    tempLow: int  # noqa: N815
    precipitationChance: int = Field(..., ge=0, le=100)  # noqa: N815


class WeatherSnapshot(BaseModel):
    """Canonical weather payload served to the client."""

    current: CurrentConditions
    forecast: list[ForecastDay]


class Location(BaseModel):
    """Geocoded city."""

    lat: float = Field(..., ge=-90, le=90, description="Latitude")
    lon: float = Field(..., ge=-180, le=180, description="Longitude")
    city: str | None = None
    country: str | None = None


class MessageResponse(BaseModel):
    """Plain message body, used for errors and administrative actions."""

    message: str


class CachePurgeResponse(MessageResponse):
    """Result of a cache purge."""

    removed: int


class UserCreate(BaseModel):
    """Request body for creating a user."""

    username: str = Field(..., min_length=1, max_length=64)


class User(BaseModel):
    """Registered user."""

    id: int
    username: str
    createdAt: dt.datetime  # noqa: N815


class SavedLocationCreate(BaseModel):
    """Request body for saving a location."""

    name: str = Field(..., min_length=1)
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)
    country: str | None = None
    isDefault: bool = False  # noqa: N815


class SavedLocationUpdate(BaseModel):
    """Partial update of a saved location."""

    name: str | None = Field(default=None, min_length=1)
    lat: float | None = Field(default=None, ge=-90, le=90)
    lon: float | None = Field(default=None, ge=-180, le=180)
    country: str | None = None
    isDefault: bool | None = None  # noqa: N815


class SavedLocation(BaseModel):
    """Location saved by a user."""

    id: int
    userId: int  # noqa: N815
    name: str
    lat: float
    lon: float
    country: str | None = None
    isDefault: bool = False  # noqa: N815


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Health status")


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    status: str = Field(..., description="Readiness status")
    checks: dict[str, str] = Field(default_factory=dict, description="Component checks")
