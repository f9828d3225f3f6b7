"""Weather display backend: normalizing, caching proxy for OpenWeatherMap."""

__version__ = "0.1.0"
