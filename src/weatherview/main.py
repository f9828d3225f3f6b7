"""Application entry point."""

import asyncio
import contextlib
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from weatherview import __version__
from weatherview.api.dependencies import get_weather_cache
from weatherview.api.errors import register_exception_handlers
from weatherview.api.routes import api_router, health_router, users_router
from weatherview.config import Settings, get_settings
from weatherview.errors import CacheUnavailableError
from weatherview.middleware.logging import LoggingMiddleware, configure_logging

logger = structlog.get_logger()


async def purge_cache_periodically(settings: Settings) -> None:
    """Purge expired cache entries every ``cache_purge_interval_seconds``."""
    cache = get_weather_cache(settings)
    while True:
        await asyncio.sleep(settings.cache_purge_interval_seconds)
        try:
            cache.purge_older_than()
        except CacheUnavailableError as e:
            logger.error("Scheduled cache purge failed", error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the background purge task while the app is serving."""
    settings = get_settings()
    if not settings.openweather_api_key:
        logger.warning(
            "No OpenWeatherMap API key found. "
            "Set OPENWEATHER_API_KEY or OPENWEATHERMAP_API_KEY environment variable."
        )

    task = None
    if settings.cache_purge_interval_seconds > 0:
        task = asyncio.create_task(purge_cache_periodically(settings))
    try:
        yield
    finally:
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    # Configure logging
    configure_logging(settings)

    # Create FastAPI app
    app = FastAPI(
        title="Weatherview API",
        description="Caching OpenWeatherMap proxy for the weather display client",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add middleware
    app.add_middleware(LoggingMiddleware)

    register_exception_handlers(app)

    # Include routers
    app.include_router(api_router)
    app.include_router(users_router)
    app.include_router(health_router)

    # Mount Prometheus metrics endpoint
    metrics_app = make_asgi_app()
    app.mount("/metrics", metrics_app)

    return app


# Create app instance for ASGI servers
app = create_app()


def run() -> None:
    """Run the application with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "weatherview.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
