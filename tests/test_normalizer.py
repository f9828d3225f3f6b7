"""Tests for payload normalization."""

import random
from datetime import date

import pytest
from conftest import NOW, FakeClock, current_payload, forecast_payload

from weatherview.services.normalizer import (
    MalformedPayloadError,
    WeatherNormalizer,
    format_local_time,
    get_aqi_level,
    get_day_name,
    get_uv_level,
    get_wind_direction,
    map_icon,
    scale_provider_aqi,
)

UV_PAYLOAD = {"lat": 24.86, "lon": 67.0, "value": 6.4}
AIR_PAYLOAD = {"list": [{"main": {"aqi": 3}, "components": {"pm2_5": 40.1}}]}


class TestClassifications:
    """Tests for derived classification fields."""

    @pytest.mark.parametrize(
        ("uv", "level"),
        [(0, "Low"), (2, "Low"), (3, "Moderate"), (5, "Moderate"), (6, "High"),
         (7, "High"), (8, "Very High"), (10, "Very High"), (11, "Extreme")],
    )  # fmt: skip
    def test_uv_level(self, uv: float, level: str) -> None:
        assert get_uv_level(uv) == level

    @pytest.mark.parametrize(
        ("aqi", "level"),
        [(0, "Good"), (50, "Good"), (51, "Moderate"), (100, "Moderate"),
         (150, "Unhealthy for Sensitive Groups"), (200, "Unhealthy"),
         (300, "Very Unhealthy"), (301, "Hazardous")],
    )  # fmt: skip
    def test_aqi_level(self, aqi: float, level: str) -> None:
        assert get_aqi_level(aqi) == level

    def test_scale_provider_aqi(self) -> None:
        assert scale_provider_aqi(1) == 50
        assert scale_provider_aqi(6) == 300

    @pytest.mark.parametrize(
        ("degrees", "direction"),
        [(0, "N"), (90, "E"), (359, "N"), (11.25, "NNE"), (180, "S"),
         (225, "SW"), (337.5, "NNW"), (360, "N")],
    )  # fmt: skip
    def test_wind_direction(self, degrees: float, direction: str) -> None:
        assert get_wind_direction(degrees) == direction

    def test_day_name(self) -> None:
        today = date(2024, 6, 15)
        assert get_day_name(date(2024, 6, 15), today) == "Today"
        assert get_day_name(date(2024, 6, 16), today) == "Tomorrow"
        assert get_day_name(date(2024, 6, 17), today) == "Mon"
        assert get_day_name(date(2024, 6, 14), today) == "Fri"

    def test_format_local_time(self) -> None:
        # 2024-06-15 00:42 UTC in UTC+5
        assert format_local_time(1718412120, 5 * 3600) == "5:42 AM"
        assert format_local_time(1718412120, -5 * 3600) == "7:42 PM"


class TestIconMapping:
    """Tests for provider icon mapping."""

    @pytest.mark.parametrize(
        ("code", "icon"),
        [("01d", "clear-day"), ("01n", "clear-night"), ("02d", "partly-cloudy-day"),
         ("02n", "partly-cloudy-night"), ("04n", "cloudy"), ("09d", "rain"),
         ("10n", "rain"), ("11d", "thunderstorm"), ("13n", "snow"), ("50d", "fog")],
    )  # fmt: skip
    def test_icon_codes(self, code: str, icon: str) -> None:
        assert map_icon(code) == icon

    def test_squall_maps_to_wind(self) -> None:
        assert map_icon("50d", "Squall") == "wind"

    def test_condition_text_without_code_defaults_to_day(self) -> None:
        assert map_icon(None, "Clear") == "clear-day"
        assert map_icon(None, "Partly cloudy") == "partly-cloudy-day"

    def test_condition_text_uses_explicit_night(self) -> None:
        assert map_icon(None, "Clear", is_day=False) == "clear-night"

    def test_code_suffix_overrides_flag(self) -> None:
        assert map_icon("01n", "Clear", is_day=True) == "clear-night"

    def test_unknown_condition(self) -> None:
        assert map_icon("99x", "Something odd") == "cloudy"


class TestCurrentConditions:
    """Tests for current conditions normalization."""

    def test_normalize_current(self, normalizer: WeatherNormalizer) -> None:
        snapshot = normalizer.normalize(current_payload(), uv=UV_PAYLOAD, air=AIR_PAYLOAD)
        current = snapshot.current

        assert current.location == "Karachi, PK"
        assert current.temperature == 91
        assert current.feelsLike == 100
        assert current.description == "Clear"
        assert current.humidity == 62
        assert current.pressure == "29.59"
        assert current.visibility == 4
        assert current.windSpeed == 13
        assert current.windDirection == "SW"
        assert current.uvIndex == 6
        assert current.uvLevel == "High"
        assert current.aqi == 150
        assert current.aqiLevel == "Unhealthy for Sensitive Groups"
        assert current.icon == "clear-day"
        assert current.isDay is True
        assert current.sunrise == "5:42 AM"
        assert current.sunset == "7:23 PM"
        assert current.lastUpdated == "2024-06-15T09:00:00+00:00"

    def test_night_icon(self, normalizer: WeatherNormalizer) -> None:
        payload = current_payload(weather=[{"main": "Clear", "icon": "01n"}])
        current = normalizer.normalize(payload).current
        assert current.icon == "clear-night"
        assert current.isDay is False

    def test_day_flag_from_sun_times_without_icon(self, normalizer: WeatherNormalizer) -> None:
        payload = current_payload(weather=[{"main": "Clear"}])
        payload["dt"] = payload["sys"]["sunset"] + 60
        current = normalizer.normalize(payload).current
        assert current.isDay is False
        assert current.icon == "clear-night"

    def test_missing_secondary_data_defaults_to_zero(
        self, normalizer: WeatherNormalizer
    ) -> None:
        current = normalizer.normalize(current_payload(), uv=None, air=None).current
        assert current.uvIndex == 0
        assert current.uvLevel == "Low"
        assert current.aqi == 0
        assert current.aqiLevel == "Good"

    def test_malformed_secondary_data_defaults_to_zero(
        self, normalizer: WeatherNormalizer
    ) -> None:
        current = normalizer.normalize(
            current_payload(),
            uv={"value": "n/a"},
            air={"list": []},
        ).current
        assert current.uvIndex == 0
        assert current.aqi == 0

    def test_missing_optional_fields(self, normalizer: WeatherNormalizer) -> None:
        payload = current_payload()
        del payload["visibility"]
        del payload["wind"]
        del payload["sys"]
        del payload["name"]
        current = normalizer.normalize(payload).current

        assert current.visibility == 6
        assert current.windSpeed == 0
        assert current.windDirection == "N"
        assert current.location == "Unknown location"
        assert current.sunrise == "--:--"

    def test_malformed_current_payload_raises(self, normalizer: WeatherNormalizer) -> None:
        with pytest.raises(MalformedPayloadError):
            normalizer.normalize({"name": "Karachi", "weather": []})

    def test_non_object_optional_sections(self, normalizer: WeatherNormalizer) -> None:
        payload = current_payload(wind=[1, 2], sys="x", weather=[{"main": 7, "icon": 1}])
        current = normalizer.normalize(payload).current

        assert current.windSpeed == 0
        assert current.windDirection == "N"
        assert current.location == "Karachi"
        assert current.sunrise == "--:--"
        assert current.description == "Clear"

    def test_out_of_range_timezone_uses_utc(self, normalizer: WeatherNormalizer) -> None:
        current = normalizer.normalize(current_payload(timezone=100000)).current
        assert current.sunrise == "12:42 AM"

    def test_unrepresentable_sun_time_raises(self, normalizer: WeatherNormalizer) -> None:
        payload = current_payload(sys={"country": "PK", "sunrise": 10**20, "sunset": 0})
        with pytest.raises(MalformedPayloadError):
            normalizer.normalize(payload)


class TestForecast:
    """Tests for forecast reduction and padding."""

    def test_forecast_has_ten_days(self, normalizer: WeatherNormalizer) -> None:
        snapshot = normalizer.normalize(current_payload(), forecast=forecast_payload())
        assert len(snapshot.forecast) == 10

    def test_one_entry_per_local_date(self, normalizer: WeatherNormalizer) -> None:
        forecast = normalizer.normalize(current_payload(), forecast=forecast_payload()).forecast
        dates = [day.date for day in forecast]

        assert dates[0] == date(2024, 6, 15)
        assert len(set(dates)) == 10
        assert dates == sorted(dates)

    def test_day_labels(self, normalizer: WeatherNormalizer) -> None:
        forecast = normalizer.normalize(current_payload(), forecast=forecast_payload()).forecast
        labels = [day.dayName for day in forecast]
        assert labels == [
            "Today", "Tomorrow", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun", "Mon",
        ]  # fmt: skip

    def test_daily_aggregates(self, normalizer: WeatherNormalizer) -> None:
        forecast = normalizer.normalize(current_payload(), forecast=forecast_payload()).forecast
        tomorrow = forecast[1]

        assert tomorrow.tempHigh == 97
        assert tomorrow.tempLow == 80
        assert tomorrow.precipitationChance == 10
        assert tomorrow.icon == "cloudy"
        assert tomorrow.description == "Clouds"

    def test_prefers_noon_sample_for_condition(self, normalizer: WeatherNormalizer) -> None:
        payload = forecast_payload(days=2)
        for entry in payload["list"]:
            # 06:00 UTC is 11:00 in Karachi, the closest sample to noon
            if (entry["dt"] - int(NOW.timestamp())) % 86400 == 21 * 3600:
                entry["weather"] = [{"main": "Rain", "icon": "10d"}]
        forecast = normalizer.normalize(current_payload(), forecast=payload).forecast

        assert forecast[1].description == "Rain"
        assert forecast[1].icon == "rain"

    def test_repeat_padding_copies_last_day(self, normalizer: WeatherNormalizer) -> None:
        forecast = normalizer.normalize(current_payload(), forecast=forecast_payload()).forecast
        last_real = forecast[5]

        assert last_real.date == date(2024, 6, 20)
        for offset, day in enumerate(forecast[6:], start=1):
            assert (day.date - last_real.date).days == offset
            assert day.tempHigh == last_real.tempHigh
            assert day.tempLow == last_real.tempLow
            assert day.icon == last_real.icon

    def test_jitter_padding_is_reproducible_with_seed(self) -> None:
        def build() -> list[tuple[int, int]]:
            normalizer = WeatherNormalizer(
                padding="jitter",
                rng=random.Random(42),
                clock=FakeClock(),
            )
            forecast = normalizer.normalize(current_payload(), forecast=forecast_payload()).forecast
            return [(day.tempHigh, day.tempLow) for day in forecast]

        first, second = build(), build()
        assert first == second
        for (high, low), (prev_high, _) in zip(first[6:], first[5:], strict=False):
            assert low <= high
            assert abs(high - prev_high) <= 3

    def test_truncates_long_forecasts(self, clock: FakeClock) -> None:
        normalizer = WeatherNormalizer(forecast_days=3, clock=clock)
        forecast = normalizer.normalize(current_payload(), forecast=forecast_payload()).forecast
        assert [day.date for day in forecast] == [
            date(2024, 6, 15),
            date(2024, 6, 16),
            date(2024, 6, 17),
        ]

    def test_missing_forecast_is_seeded_from_current(
        self, normalizer: WeatherNormalizer
    ) -> None:
        forecast = normalizer.normalize(current_payload(), forecast=None).forecast

        assert len(forecast) == 10
        assert forecast[0].dayName == "Today"
        assert forecast[0].tempHigh == 91
        assert forecast[0].tempLow == 91
        assert forecast[0].icon == "clear-day"

    @pytest.mark.parametrize("city", ["Karachi", {"name": "Karachi", "timezone": 90000}])
    def test_malformed_forecast_city_falls_back_to_current_offset(
        self, normalizer: WeatherNormalizer, city: object
    ) -> None:
        payload = forecast_payload()
        payload["city"] = city
        forecast = normalizer.normalize(current_payload(), forecast=payload).forecast

        assert len(forecast) == 10
        assert forecast[0].date == date(2024, 6, 15)
        assert forecast[1].tempHigh == 97

    def test_non_finite_entries_are_skipped(self, normalizer: WeatherNormalizer) -> None:
        payload = forecast_payload(days=1)
        payload["list"][0]["main"]["temp_max"] = float("nan")
        forecast = normalizer.normalize(current_payload(), forecast=payload).forecast
        assert len(forecast) == 10

    def test_malformed_entries_are_skipped(self, normalizer: WeatherNormalizer) -> None:
        payload = forecast_payload(days=1)
        payload["list"].insert(0, {"dt": "soon"})
        payload["list"].append({"main": {"temp": 80}})
        forecast = normalizer.normalize(current_payload(), forecast=payload).forecast

        assert len(forecast) == 10
        assert forecast[0].date == date(2024, 6, 15)

    def test_normalization_is_deterministic(self, normalizer: WeatherNormalizer) -> None:
        first = normalizer.normalize(current_payload(), UV_PAYLOAD, AIR_PAYLOAD, forecast_payload())
        second = normalizer.normalize(
            current_payload(), UV_PAYLOAD, AIR_PAYLOAD, forecast_payload()
        )
        assert first == second
