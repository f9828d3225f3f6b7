"""Normalization of OpenWeatherMap payloads into the canonical snapshot."""

from __future__ import annotations

import math
import random
from collections import defaultdict
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta, timezone
from typing import Any

import structlog

from weatherview.api.schemas import CurrentConditions, ForecastDay, WeatherSnapshot
from weatherview.config import Settings
from weatherview.services.clock import Clock, utc_now
from weatherview.services.units import (
    SpeedUnit,
    TemperatureUnit,
    convert_speed,
    convert_temperature,
    meters_to_miles,
    pressure_to_inhg,
    round_half_away_from_zero,
)

logger = structlog.get_logger()

DIRECTIONS = (
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
)  # fmt: skip
WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

AQI_SCALE_FACTOR = 50
DEFAULT_VISIBILITY_METERS = 10000
JITTER_RANGE = 3
NOON_MINUTES = 12 * 60
# UTC offsets must lie strictly within one day
MAX_TZ_OFFSET_SECONDS = 24 * 3600

# OpenWeatherMap icon code prefix -> (day icon, night icon)
CODE_ICONS = {
    "01": ("clear-day", "clear-night"),
    "02": ("partly-cloudy-day", "partly-cloudy-night"),
    "03": ("cloudy", "cloudy"),
    "04": ("cloudy", "cloudy"),
    "09": ("rain", "rain"),
    "10": ("rain", "rain"),
    "11": ("thunderstorm", "thunderstorm"),
    "13": ("snow", "snow"),
    "50": ("fog", "fog"),
}

# Condition keywords, checked in order, for providers without icon codes
CONDITION_ICONS = (
    (("squall", "tornado", "wind", "gale"), ("wind", "wind")),
    (("thunder", "storm"), ("thunderstorm", "thunderstorm")),
    (("snow", "sleet", "ice"), ("snow", "snow")),
    (("rain", "drizzle", "shower"), ("rain", "rain")),
    (("mist", "fog", "haze", "smoke", "dust", "sand", "ash"), ("fog", "fog")),
    (("partly", "few", "scattered"), ("partly-cloudy-day", "partly-cloudy-night")),
    (("cloud", "overcast"), ("cloudy", "cloudy")),
    (("clear", "sun"), ("clear-day", "clear-night")),
)
WIND_CONDITIONS = {"squall", "tornado"}
DEFAULT_ICON = "cloudy"


class MalformedPayloadError(ValueError):
    """Raised when the current-conditions payload cannot be normalized."""


def get_uv_level(uv_index: float) -> str:
    if uv_index <= 2:
        return "Low"
    if uv_index <= 5:
        return "Moderate"
    if uv_index <= 7:
        return "High"
    if uv_index <= 10:
        return "Very High"
    return "Extreme"


def get_aqi_level(aqi: float) -> str:
    if aqi <= 50:
        return "Good"
    if aqi <= 100:
        return "Moderate"
    if aqi <= 150:
        return "Unhealthy for Sensitive Groups"
    if aqi <= 200:
        return "Unhealthy"
    if aqi <= 300:
        return "Very Unhealthy"
    return "Hazardous"


def scale_provider_aqi(index: float) -> float:
    """Scale a provider's 1-6 air quality index onto the US EPA range."""
    return index * AQI_SCALE_FACTOR


def get_wind_direction(degrees: float) -> str:
    """Return the 16-point compass label for a bearing in degrees."""
    return DIRECTIONS[round_half_away_from_zero(degrees / 22.5) % 16]


def get_day_name(day: date, today: date) -> str:
    if day == today:
        return "Today"
    if day == today + timedelta(days=1):
        return "Tomorrow"
    return WEEKDAYS[day.weekday()]


def map_icon(code: str | None, condition: str | None = None, is_day: bool | None = None) -> str:
    """Map a provider icon code or condition text to an internal icon name.

    A ``d``/``n`` suffix on the code decides between day and night variants.
    Without it ``is_day`` is used, and the day variant is the default.
    """
    if code and code[-1] in ("d", "n"):
        is_day = code[-1] == "d"
    day_index = 0 if is_day is None or is_day else 1

    text = (condition or "").strip().lower()
    if text in WIND_CONDITIONS:
        return "wind"
    if code and code[:2] in CODE_ICONS:
        return CODE_ICONS[code[:2]][day_index]
    for keywords, icons in CONDITION_ICONS:
        if any(keyword in text for keyword in keywords):
            return icons[day_index]
    return DEFAULT_ICON


def format_local_time(timestamp: int, tz_offset: int) -> str:
    """Format a unix timestamp as a 12-hour clock time, e.g. '6:42 AM'."""
    local = datetime.fromtimestamp(timestamp, timezone(timedelta(seconds=tz_offset)))
    suffix = "AM" if local.hour < 12 else "PM"
    return f"{local.hour % 12 or 12}:{local.minute:02d} {suffix}"


@dataclass(frozen=True)
class _Sample:
    """One sub-daily forecast entry."""

    when: datetime
    high: float
    low: float
    pop: float
    icon: str | None
    description: str | None


class WeatherNormalizer:
    """Builds canonical snapshots from OpenWeatherMap responses.

    Only the current-conditions payload is required. UV, air quality and
    forecast payloads may be ``None`` or malformed, in which case defaults
    are substituted and a warning is logged.
    """

    def __init__(
        self,
        forecast_days: int = 10,
        padding: str = "repeat",
        rng: random.Random | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._forecast_days = forecast_days
        self._padding = padding
        self._rng = rng or random.Random()
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, clock: Clock = utc_now) -> WeatherNormalizer:
        return cls(
            forecast_days=settings.forecast_days,
            padding=settings.forecast_padding,
            rng=random.Random(settings.forecast_jitter_seed),
            clock=clock,
        )

    def normalize(
        self,
        current: dict[str, Any],
        uv: dict[str, Any] | None = None,
        air: dict[str, Any] | None = None,
        forecast: dict[str, Any] | None = None,
    ) -> WeatherSnapshot:
        """Build a snapshot from raw provider payloads.

        Raises:
            MalformedPayloadError: If the current-conditions payload is unusable
        """
        now = self._clock()
        tz_offset = _tz_offset(current.get("timezone"), source="current")
        try:
            conditions = self._normalize_current(current, uv, air, tz_offset, now)
        except MalformedPayloadError:
            raise
        except (AttributeError, TypeError, ValueError, OverflowError, OSError) as e:
            raise MalformedPayloadError(f"Current conditions payload is malformed: {e}") from e
        days = self._normalize_forecast(forecast, conditions, tz_offset, now)
        return WeatherSnapshot(current=conditions, forecast=days)

    def _normalize_current(
        self,
        data: dict[str, Any],
        uv: dict[str, Any] | None,
        air: dict[str, Any] | None,
        tz_offset: int,
        now: datetime,
    ) -> CurrentConditions:
        try:
            main = data["main"]
            temperature = float(main["temp"])
            feels_like = float(main["feels_like"])
            humidity = float(main["humidity"])
            pressure = float(main["pressure"])
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedPayloadError(
                "Current conditions payload is missing required 'main' fields"
            ) from e

        condition = _first_condition(data)
        wind = _as_dict(data.get("wind"))
        sys_info = _as_dict(data.get("sys"))
        sunrise = _as_int(sys_info.get("sunrise"))
        sunset = _as_int(sys_info.get("sunset"))
        observed = _as_int(data.get("dt"))

        icon_code = condition.get("icon")
        if not isinstance(icon_code, str):
            icon_code = None
        is_day = _is_daytime(icon_code, observed, sunrise, sunset)
        description = condition.get("main")
        if not isinstance(description, str) or not description:
            description = "Clear"

        visibility = data.get("visibility")
        if visibility is None:
            visibility = DEFAULT_VISIBILITY_METERS

        uv_index = self._extract_uv(uv)
        aqi = self._extract_aqi(air)

        return CurrentConditions(
            location=_location_label(data),
            temperature=convert_temperature(temperature, TemperatureUnit.FAHRENHEIT),
            feelsLike=convert_temperature(feels_like, TemperatureUnit.FAHRENHEIT),
            description=description,
            humidity=min(max(round_half_away_from_zero(humidity), 0), 100),
            pressure=pressure_to_inhg(pressure),
            visibility=max(meters_to_miles(float(visibility)), 0),
            windSpeed=max(convert_speed(_as_float(wind.get("speed")), SpeedUnit.MPH), 0),
            windDirection=get_wind_direction(_as_float(wind.get("deg"))),
            uvIndex=round_half_away_from_zero(uv_index),
            uvLevel=get_uv_level(uv_index),
            aqi=round_half_away_from_zero(aqi),
            aqiLevel=get_aqi_level(aqi),
            icon=map_icon(icon_code, description, is_day),
            sunrise=format_local_time(sunrise, tz_offset) if sunrise is not None else "--:--",
            sunset=format_local_time(sunset, tz_offset) if sunset is not None else "--:--",
            isDay=is_day,
            lastUpdated=now.astimezone(UTC).isoformat(timespec="seconds"),
        )

    def _extract_uv(self, payload: dict[str, Any] | None) -> float:
        if payload is None:
            return 0.0
        try:
            value = float(payload.get("value") or 0)
        except (AttributeError, TypeError, ValueError):
            logger.warning("Malformed UV payload, using default", payload=payload)
            return 0.0
        return max(value, 0.0)

    def _extract_aqi(self, payload: dict[str, Any] | None) -> float:
        if payload is None:
            return 0.0
        try:
            index = float(payload["list"][0]["main"]["aqi"])
        except (KeyError, IndexError, TypeError, ValueError):
            logger.warning("Malformed air quality payload, using default", payload=payload)
            return 0.0
        return max(scale_provider_aqi(index), 0.0)

    def _normalize_forecast(
        self,
        payload: dict[str, Any] | None,
        current: CurrentConditions,
        tz_offset: int,
        now: datetime,
    ) -> list[ForecastDay]:
        if isinstance(payload, dict):
            city = _as_dict(payload.get("city"))
            tz_offset = _tz_offset(city.get("timezone"), default=tz_offset, source="forecast")
        tz = timezone(timedelta(seconds=tz_offset))
        today = now.astimezone(tz).date()

        days = self._daily_forecast(payload, tz, today)
        if not days:
            logger.warning("No usable forecast data, seeding from current conditions")
            days = [
                ForecastDay(
                    date=today,
                    dayName=get_day_name(today, today),
                    icon=current.icon,
                    description=current.description,
                    tempHigh=current.temperature,
                    tempLow=current.temperature,
                    precipitationChance=0,
                )
            ]

        days = days[: self._forecast_days]
        while len(days) < self._forecast_days:
            days.append(self._pad_day(days[-1], today))
        return days

    def _daily_forecast(
        self,
        payload: dict[str, Any] | None,
        tz: timezone,
        today: date,
    ) -> list[ForecastDay]:
        """Reduce sub-daily entries to one entry per local calendar date."""
        if payload is None:
            return []
        entries = payload.get("list") if isinstance(payload, dict) else None
        if not isinstance(entries, list):
            logger.warning("Malformed forecast payload, ignoring it")
            return []

        by_date: dict[date, list[_Sample]] = defaultdict(list)
        skipped = 0
        for entry in entries:
            sample = _parse_sample(entry, tz)
            if sample is None:
                skipped += 1
                continue
            by_date[sample.when.date()].append(sample)
        if skipped:
            logger.warning("Skipped malformed forecast entries", skipped=skipped)

        days = []
        for day in sorted(by_date):
            samples = by_date[day]
            # Icon and description come from the sample closest to local noon
            noon = min(
                samples,
                key=lambda s: abs(s.when.hour * 60 + s.when.minute - NOON_MINUTES),
            )
            description = noon.description or "Clear"
            pop = max(s.pop for s in samples)
            days.append(
                ForecastDay(
                    date=day,
                    dayName=get_day_name(day, today),
                    icon=map_icon(noon.icon, description),
                    description=description,
                    tempHigh=convert_temperature(
                        max(s.high for s in samples), TemperatureUnit.FAHRENHEIT
                    ),
                    tempLow=convert_temperature(
                        min(s.low for s in samples), TemperatureUnit.FAHRENHEIT
                    ),
                    precipitationChance=min(max(round_half_away_from_zero(pop * 100), 0), 100),
                )
            )
        return days

    def _pad_day(self, last: ForecastDay, today: date) -> ForecastDay:
        """Extrapolate the day after ``last``."""
        next_date = last.date + timedelta(days=1)
        high, low = last.tempHigh, last.tempLow
        if self._padding == "jitter":
            high += self._rng.randint(-JITTER_RANGE, JITTER_RANGE)
            low += self._rng.randint(-JITTER_RANGE, JITTER_RANGE)
            low = min(low, high)
        return last.model_copy(
            update={
                "date": next_date,
                "dayName": get_day_name(next_date, today),
                "tempHigh": high,
                "tempLow": low,
            }
        )


def _parse_sample(entry: Any, tz: timezone) -> _Sample | None:
    try:
        when = datetime.fromtimestamp(int(entry["dt"]), tz)
        main = entry["main"]
        high = float(main.get("temp_max", main["temp"]))
        low = float(main.get("temp_min", main["temp"]))
        pop = float(entry.get("pop") or 0)
    except (KeyError, TypeError, ValueError, AttributeError, OverflowError, OSError):
        return None
    if not all(math.isfinite(v) for v in (high, low, pop)):
        return None
    condition = _first_condition(entry)
    icon, description = condition.get("icon"), condition.get("main")
    return _Sample(
        when=when,
        high=high,
        low=low,
        pop=pop,
        icon=icon if isinstance(icon, str) else None,
        description=description if isinstance(description, str) else None,
    )


def _first_condition(data: dict[str, Any]) -> dict[str, Any]:
    weather = data.get("weather")
    if isinstance(weather, list) and weather and isinstance(weather[0], dict):
        return weather[0]
    return {}


def _location_label(data: dict[str, Any]) -> str:
    name = data.get("name")
    country = _as_dict(data.get("sys")).get("country")
    label = ", ".join(part for part in (name, country) if isinstance(part, str) and part)
    return label or "Unknown location"


def _is_daytime(
    icon_code: str | None,
    observed: int | None,
    sunrise: int | None,
    sunset: int | None,
) -> bool:
    if icon_code and icon_code[-1] in ("d", "n"):
        return icon_code[-1] == "d"
    if observed is not None and sunrise is not None and sunset is not None:
        return sunrise <= observed < sunset
    return True


def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _as_int(value: Any, default: int | None = None) -> int | None:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _tz_offset(value: Any, default: int = 0, source: str = "current") -> int:
    """Parse a provider UTC offset in seconds, falling back to ``default``."""
    if value is None:
        return default
    offset = _as_int(value)
    if offset is None or abs(offset) >= MAX_TZ_OFFSET_SECONDS:
        logger.warning(
            "Invalid timezone offset, using fallback",
            source=source,
            timezone=value,
            fallback=default,
        )
        return default
    return offset
