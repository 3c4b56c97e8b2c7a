"""Tests for the metric registry and unit conversions."""

from __future__ import annotations

import pytest

from climate_edge.common.errors import ClimateEdgeError, UnsupportedMetricError
from climate_edge.common.types import (
    celsius_to_fahrenheit,
    cm_to_inches,
    fahrenheit_to_celsius,
    inches_to_cm,
    kmh_to_mph,
    mm_to_inches,
    mph_to_kmh,
)
from climate_edge.profiles import (
    DataSource,
    Metric,
    Scenario,
    all_profiles,
    detect_metric,
    get_profile,
)


class TestUnitConversions:
    def test_freezing_and_boiling(self):
        assert celsius_to_fahrenheit(0.0) == pytest.approx(32.0)
        assert celsius_to_fahrenheit(100.0) == pytest.approx(212.0)
        assert fahrenheit_to_celsius(212.0) == pytest.approx(100.0)

    def test_lengths(self):
        assert cm_to_inches(2.54) == pytest.approx(1.0)
        assert inches_to_cm(1.0) == pytest.approx(2.54)
        assert mm_to_inches(25.4) == pytest.approx(1.0)

    def test_speed_round_trip(self):
        assert mph_to_kmh(kmh_to_mph(100.0)) == pytest.approx(100.0)


class TestRegistry:
    def test_every_metric_has_a_profile(self):
        metrics = {p.metric for p in all_profiles()}
        assert metrics == set(Metric)

    def test_lookup_by_string_is_case_insensitive(self):
        assert get_profile(" Temperature ").metric == Metric.TEMPERATURE

    def test_lookup_by_enum(self):
        assert get_profile(Metric.RAINFALL).primary_unit == "mm"

    def test_unknown_metric_raises(self):
        with pytest.raises(UnsupportedMetricError) as exc_info:
            get_profile("humidity")
        assert exc_info.value.metric == "humidity"
        assert isinstance(exc_info.value, ClimateEdgeError)
        assert isinstance(exc_info.value, ValueError)

    def test_display_unit_prefers_secondary(self):
        temp = get_profile(Metric.TEMPERATURE)
        assert temp.display_unit == "°F"
        assert temp.to_display(0.0) == pytest.approx(32.0)
        assert temp.from_display(32.0) == pytest.approx(0.0)

    def test_display_unit_without_secondary(self):
        quake = get_profile(Metric.EARTHQUAKE_MAGNITUDE)
        assert quake.display_unit == "M"
        assert quake.to_display(5.5) == 5.5

    def test_global_metric_needs_no_location(self):
        anomaly = get_profile(Metric.CLIMATE_ANOMALY)
        assert anomaly.requires_location is False
        assert anomaly.data_source == DataSource.TREND_INDEX

    def test_earthquake_backtests_only_climatological(self):
        quake = get_profile(Metric.EARTHQUAKE_MAGNITUDE)
        assert quake.scenarios == (Scenario.CLIMATOLOGICAL,)

    def test_weather_profiles_carry_simulation(self):
        for metric in (Metric.TEMPERATURE, Metric.SNOWFALL, Metric.RAINFALL, Metric.WIND_SPEED):
            profile = get_profile(metric)
            assert profile.simulation is not None
            assert len(profile.simulation.model_spreads) == 2
            assert profile.locations


class TestDetectMetric:
    @pytest.mark.parametrize(
        "title,expected",
        [
            ("Highest temperature in NYC on July 4?", Metric.TEMPERATURE),
            ("How much snow in Denver this week?", Metric.SNOWFALL),
            ("Will it rain in Seattle on Friday?", Metric.RAINFALL),
            ("Hurricane landfall wind speed in Miami?", Metric.WIND_SPEED),
            ("Earthquake of magnitude 6+ in California?", Metric.EARTHQUAKE_MAGNITUDE),
            ("February 2026 global temperature increase?", Metric.CLIMATE_ANOMALY),
        ],
    )
    def test_keywords(self, title, expected):
        assert detect_metric(title) == expected

    def test_anomaly_phrase_beats_plain_temperature(self):
        assert detect_metric("Temperature anomaly for March") == Metric.CLIMATE_ANOMALY

    def test_no_match_raises(self):
        with pytest.raises(UnsupportedMetricError):
            detect_metric("Who wins the election?")

    @pytest.mark.parametrize("title", ["Will Ukraine sign a ceasefire?", "Brainstorm summit attendance?"])
    def test_keywords_inside_other_words_do_not_match(self, title):
        with pytest.raises(UnsupportedMetricError):
            detect_metric(title)

    def test_keyword_prefix_of_longer_word(self):
        assert detect_metric("Total rainfall in Houston?") == Metric.RAINFALL
        assert detect_metric("Windy day in Chicago?") == Metric.WIND_SPEED
