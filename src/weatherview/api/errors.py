"""Exception handlers rendering errors as ``{"message": ...}`` bodies."""

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from weatherview.errors import WeatherAppError

logger = structlog.get_logger()


async def handle_app_error(request: Request, exc: WeatherAppError) -> JSONResponse:
    """Render a WeatherAppError with its status and sanitized message."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Request failed",
        error_type=type(exc).__name__,
        status_code=exc.status_code,
        error=exc.message,
        cause=repr(exc.__cause__) if exc.__cause__ else None,
    )
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render FastAPI input validation failures as 400 responses."""
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'][1:]) or 'body'}: {error['msg']}"
        for error in exc.errors()
    )
    logger.warning("Invalid request", errors=problems)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": f"Invalid request: {problems}"},
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    """Log anything unhandled and hide its details from the client."""
    logger.exception("Unhandled error", error_type=type(exc).__name__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal Server Error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(WeatherAppError, handle_app_error)  # type: ignore[arg-type]
    app.add_exception_handler(
        RequestValidationError,
        handle_request_validation_error,  # type: ignore[arg-type]
    )
    app.add_exception_handler(Exception, handle_unexpected_error)
