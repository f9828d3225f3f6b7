"""Application error taxonomy.

Every error carries the HTTP status it maps to and a message that is safe
to show to API clients. Details meant for operators go to the logs.
"""


class WeatherAppError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(WeatherAppError):
    """Missing or malformed request input."""

    status_code = 400


class ConfigurationError(WeatherAppError):
    """Service is misconfigured, e.g. the provider API key is missing."""

    status_code = 500


class UpstreamError(WeatherAppError):
    """Weather provider answered with a non-success response."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class NetworkError(WeatherAppError):
    """Weather provider could not be reached."""

    status_code = 500


class NotFoundError(WeatherAppError):
    """Requested city, user or location does not exist."""

    status_code = 404


class StorageError(WeatherAppError):
    """Backing store failed."""

    status_code = 500


class CacheUnavailableError(StorageError):
    """Weather cache backend failed; callers fall back to a live fetch."""
