"""API route definitions."""

from typing import Annotated

import structlog
from fastapi import APIRouter, HTTPException, Query, status

from weatherview.api.dependencies import (
    CacheDep,
    LocationServiceDep,
    UserServiceDep,
    WeatherServiceDep,
)
from weatherview.api.schemas import (
    CachePurgeResponse,
    HealthResponse,
    Location,
    MessageResponse,
    ReadinessResponse,
    SavedLocation,
    SavedLocationCreate,
    SavedLocationUpdate,
    User,
    UserCreate,
    WeatherSnapshot,
)
from weatherview.services.units import UnitSystem, localize_snapshot

logger = structlog.get_logger()

# API router for weather and location endpoints
api_router = APIRouter(prefix="/api", tags=["weather"])

# Users router for saved locations
users_router = APIRouter(prefix="/api/users", tags=["users"])

# Health router for health checks
health_router = APIRouter(prefix="/health", tags=["health"])

ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    400: {"model": MessageResponse, "description": "Missing or invalid parameters"},
    500: {"model": MessageResponse, "description": "Misconfiguration or network failure"},
}


@api_router.get(
    "/weather",
    response_model=WeatherSnapshot,
    responses={
        **ERROR_RESPONSES,
        502: {"model": MessageResponse, "description": "Upstream API error"},
    },
)
async def get_weather(
    weather_service: WeatherServiceDep,
    lat: Annotated[str | None, Query(description="Latitude")] = None,
    lon: Annotated[str | None, Query(description="Longitude")] = None,
    units: Annotated[UnitSystem, Query(description="Display unit system")] = UnitSystem.IMPERIAL,
) -> WeatherSnapshot:
    """Get current conditions and a 10-day forecast for coordinates.

    Snapshots are cached per coordinate pair for 10 minutes.
    """
    snapshot = await weather_service.get_weather(lat, lon)
    return localize_snapshot(snapshot, units)


@api_router.get(
    "/location",
    response_model=Location,
    responses={
        **ERROR_RESPONSES,
        404: {"model": MessageResponse, "description": "City not found"},
    },
)
async def get_location(
    location_service: LocationServiceDep,
    city: Annotated[str | None, Query(description="City name")] = None,
) -> Location:
    """Resolve a city name to coordinates."""
    return await location_service.find_city(city)


@api_router.delete("/cache/clear", response_model=CachePurgeResponse)
async def clear_cache(cache: CacheDep) -> CachePurgeResponse:
    """Purge cache entries older than the retention window."""
    removed = cache.purge_older_than()
    return CachePurgeResponse(
        message=f"Removed {removed} expired cache entries",
        removed=removed,
    )


@users_router.post("", response_model=User, status_code=status.HTTP_201_CREATED)
async def create_user(user_service: UserServiceDep, body: UserCreate) -> User:
    return user_service.create_user(body.username)


@users_router.get("/{user_id}", response_model=User)
async def get_user(user_service: UserServiceDep, user_id: int) -> User:
    return user_service.get_user(user_id)


@users_router.get("/{user_id}/locations", response_model=list[SavedLocation])
async def list_locations(user_service: UserServiceDep, user_id: int) -> list[SavedLocation]:
    return user_service.list_locations(user_id)


@users_router.post(
    "/{user_id}/locations",
    response_model=SavedLocation,
    status_code=status.HTTP_201_CREATED,
)
async def add_location(
    user_service: UserServiceDep,
    user_id: int,
    body: SavedLocationCreate,
) -> SavedLocation:
    """Save a location; a new default replaces the previous one."""
    return user_service.add_location(user_id, body)


@users_router.patch("/{user_id}/locations/{location_id}", response_model=SavedLocation)
async def update_location(
    user_service: UserServiceDep,
    user_id: int,
    location_id: int,
    body: SavedLocationUpdate,
) -> SavedLocation:
    return user_service.update_location(user_id, location_id, body)


@users_router.put("/{user_id}/locations/{location_id}/default", response_model=SavedLocation)
async def set_default_location(
    user_service: UserServiceDep,
    user_id: int,
    location_id: int,
) -> SavedLocation:
    return user_service.set_default_location(user_id, location_id)


@users_router.delete("/{user_id}/locations/{location_id}", response_model=MessageResponse)
async def delete_location(
    user_service: UserServiceDep,
    user_id: int,
    location_id: int,
) -> MessageResponse:
    user_service.delete_location(user_id, location_id)
    return MessageResponse(message="Location deleted")


@health_router.get("/live", response_model=HealthResponse)
async def liveness() -> HealthResponse:
    """Liveness probe - checks if the service is running."""
    return HealthResponse(status="ok")


@health_router.get("/ready", response_model=ReadinessResponse)
async def readiness(cache: CacheDep) -> ReadinessResponse:
    """Readiness probe - checks if the service is ready to accept traffic."""
    cache_status = "ok" if cache.is_healthy() else "unhealthy"

    overall_status = "ok" if cache_status == "ok" else "unhealthy"

    response = ReadinessResponse(
        status=overall_status,
        checks={"cache": cache_status},
    )

    if overall_status != "ok":
        logger.warning("Readiness check failed", checks=response.checks)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=response.model_dump(),
        )

    return response
