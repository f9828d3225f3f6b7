"""Coordinate-keyed cache for normalized weather snapshots."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

import structlog
from prometheus_client import Counter, Gauge

from weatherview.api.schemas import WeatherSnapshot
from weatherview.config import Settings
from weatherview.errors import CacheUnavailableError
from weatherview.services.clock import Clock, utc_now

logger = structlog.get_logger()

# Metrics
cache_hits = Counter("cache_hits_total", "Total cache hits")
cache_misses = Counter("cache_misses_total", "Total cache misses")
cache_entries_gauge = Gauge("cache_entries", "Current number of cache entries")


@dataclass(frozen=True)
class CoordinateKey:
    """Cache key for a (latitude, longitude) pair."""

    lat: float
    lon: float

    @classmethod
    def from_coordinates(
        cls, lat: float, lon: float, precision: int | None = None
    ) -> CoordinateKey:
        """Build a key, optionally rounding to ``precision`` decimal places."""
        if precision is not None:
            lat, lon = round(lat, precision), round(lon, precision)
        return cls(float(lat), float(lon))


@dataclass(frozen=True)
class CacheEntry:
    """Stored snapshot; payload is the snapshot serialized as JSON."""

    key: CoordinateKey
    payload: str
    cached_at: datetime


class CacheBackend(Protocol):
    """Storage for cache entries. Entries are never mutated once appended."""

    def append(self, entry: CacheEntry) -> None: ...

    def entries_for(self, key: CoordinateKey) -> Sequence[CacheEntry]: ...

    def delete_older_than(self, cutoff: datetime) -> int: ...

    def count(self) -> int: ...

    def clear(self) -> None: ...


class InMemoryCacheBackend:
    """Process-local backend: each key maps to its entries in insertion order."""

    def __init__(self) -> None:
        self._entries: dict[CoordinateKey, list[CacheEntry]] = {}

    def append(self, entry: CacheEntry) -> None:
        self._entries.setdefault(entry.key, []).append(entry)

    def entries_for(self, key: CoordinateKey) -> Sequence[CacheEntry]:
        return tuple(self._entries.get(key, ()))

    def delete_older_than(self, cutoff: datetime) -> int:
        removed = 0
        for key in list(self._entries):
            kept = [entry for entry in self._entries[key] if entry.cached_at >= cutoff]
            removed += len(self._entries[key]) - len(kept)
            if kept:
                self._entries[key] = kept
            else:
                del self._entries[key]
        return removed

    def count(self) -> int:
        return sum(len(entries) for entries in self._entries.values())

    def clear(self) -> None:
        self._entries.clear()


class WeatherCache:
    """Append-only snapshot cache with a freshness and a retention window.

    ``lookup`` serves the newest entry for a key while it is no older than the
    freshness window. Stale entries stay in place until ``purge_older_than``
    removes everything older than the retention window.

    Any backend failure is raised as ``CacheUnavailableError``.
    """

    def __init__(
        self,
        settings: Settings,
        backend: CacheBackend | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize cache with settings."""
        self._backend: CacheBackend = backend if backend is not None else InMemoryCacheBackend()
        self._clock = clock
        self._freshness = timedelta(seconds=settings.cache_freshness_seconds)
        self._retention = timedelta(seconds=settings.cache_retention_seconds)
        self._precision = settings.cache_coordinate_precision

    @property
    def retention_window(self) -> timedelta:
        return self._retention

    def make_key(self, lat: float, lon: float) -> CoordinateKey:
        return CoordinateKey.from_coordinates(lat, lon, self._precision)

    def lookup(self, lat: float, lon: float) -> WeatherSnapshot | None:
        """Return the freshest cached snapshot for coordinates, if still fresh."""
        key = self.make_key(lat, lon)
        try:
            entries = self._backend.entries_for(key)
            snapshot = None
            if entries:
                newest = max(entries, key=lambda entry: entry.cached_at)
                if self._clock() - newest.cached_at <= self._freshness:
                    snapshot = WeatherSnapshot.model_validate_json(newest.payload)
        except Exception as e:
            raise CacheUnavailableError(f"Cache lookup failed: {e}") from e

        if snapshot is None:
            cache_misses.inc()
        else:
            cache_hits.inc()
        return snapshot

    def store(self, lat: float, lon: float, snapshot: WeatherSnapshot) -> CacheEntry:
        """Append a new entry for coordinates."""
        entry = CacheEntry(
            key=self.make_key(lat, lon),
            payload=snapshot.model_dump_json(),
            cached_at=self._clock(),
        )
        try:
            self._backend.append(entry)
            cache_entries_gauge.set(self._backend.count())
        except Exception as e:
            raise CacheUnavailableError(f"Cache store failed: {e}") from e
        return entry

    def purge_older_than(self, window: timedelta | None = None) -> int:
        """Delete entries older than ``window`` (retention window by default).

        Returns:
            Number of entries removed
        """
        cutoff = self._clock() - (window if window is not None else self._retention)
        try:
            removed = self._backend.delete_older_than(cutoff)
            cache_entries_gauge.set(self._backend.count())
        except Exception as e:
            raise CacheUnavailableError(f"Cache purge failed: {e}") from e
        logger.info("Purged cache entries", removed=removed, cutoff=cutoff.isoformat())
        return removed

    def clear(self) -> None:
        """Clear all cache entries."""
        self._backend.clear()
        cache_entries_gauge.set(0)

    @property
    def size(self) -> int:
        """Return current number of entries."""
        return self._backend.count()

    def is_healthy(self) -> bool:
        """Check if the backend answers."""
        try:
            self._backend.count()
        except Exception:
            logger.warning("Cache backend health check failed", exc_info=True)
            return False
        return True
