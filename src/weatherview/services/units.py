"""Unit conversion for display values.

Canonical snapshots are stored in imperial base units (Fahrenheit, mph,
miles) with pressure as an inHg string. Every converter rounds exactly once,
on the final value.
"""

from __future__ import annotations

import math
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from weatherview.api.schemas import WeatherSnapshot

KM_PER_MILE = 1.60934
MILES_PER_METER = 0.000621371
INHG_PER_HPA = 0.02953


class TemperatureUnit(StrEnum):
    FAHRENHEIT = "fahrenheit"
    CELSIUS = "celsius"


class SpeedUnit(StrEnum):
    MPH = "mph"
    KMH = "kmh"


class DistanceUnit(StrEnum):
    MILES = "mi"
    KILOMETERS = "km"


class UnitSystem(StrEnum):
    """Display unit system selectable per request."""

    IMPERIAL = "imperial"
    METRIC = "metric"


def round_half_away_from_zero(value: float) -> int:
    """Round to the nearest integer, ties away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def convert_temperature(value_f: float, unit: TemperatureUnit) -> int:
    """Convert a Fahrenheit value to the target unit."""
    if unit == TemperatureUnit.CELSIUS:
        return round_half_away_from_zero((value_f - 32) * 5 / 9)
    return round_half_away_from_zero(value_f)


def convert_speed(value_mph: float, unit: SpeedUnit) -> int:
    """Convert a speed in mph to the target unit."""
    if unit == SpeedUnit.KMH:
        return round_half_away_from_zero(value_mph * KM_PER_MILE)
    return round_half_away_from_zero(value_mph)


def convert_distance(value_miles: float, unit: DistanceUnit) -> int:
    """Convert a distance in miles to the target unit."""
    if unit == DistanceUnit.KILOMETERS:
        return round_half_away_from_zero(value_miles * KM_PER_MILE)
    return round_half_away_from_zero(value_miles)


def pressure_to_inhg(value_hpa: float) -> str:
    """Format a pressure in hPa as inHg with two decimals."""
    return f"{value_hpa * INHG_PER_HPA:.2f}"


def meters_to_miles(meters: float) -> int:
    return round_half_away_from_zero(meters * MILES_PER_METER)


def kelvin_to_fahrenheit(kelvin: float) -> int:
    return round_half_away_from_zero((kelvin - 273.15) * 9 / 5 + 32)


def kelvin_to_celsius(kelvin: float) -> int:
    return round_half_away_from_zero(kelvin - 273.15)


def localize_snapshot(snapshot: WeatherSnapshot, system: UnitSystem) -> WeatherSnapshot:
    """Return the snapshot expressed in the given unit system.

    The input must be canonical (imperial). It is never modified; a metric
    request gets a converted copy. Pressure stays in inHg.
    """
    if system == UnitSystem.IMPERIAL:
        return snapshot

    celsius = TemperatureUnit.CELSIUS
    current = snapshot.current.model_copy(
        update={
            "temperature": convert_temperature(snapshot.current.temperature, celsius),
            "feelsLike": convert_temperature(snapshot.current.feelsLike, celsius),
            "windSpeed": convert_speed(snapshot.current.windSpeed, SpeedUnit.KMH),
            "visibility": convert_distance(
                snapshot.current.visibility, DistanceUnit.KILOMETERS
            ),
        }
    )
    forecast = [
        day.model_copy(
            update={
                "tempHigh": convert_temperature(day.tempHigh, celsius),
                "tempLow": convert_temperature(day.tempLow, celsius),
            }
        )
        for day in snapshot.forecast
    ]
    return snapshot.model_copy(update={"current": current, "forecast": forecast})
