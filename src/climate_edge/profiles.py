"""Metric configuration registry.

One immutable MetricProfile per supported metric. Every component takes a
profile instead of branching on metric names, and ``get_profile`` is the
only place a raw metric key is validated.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from climate_edge.common.errors import UnsupportedMetricError
from climate_edge.common.types import (
    celsius_to_fahrenheit,
    cm_to_inches,
    fahrenheit_to_celsius,
    inches_to_cm,
    inches_to_mm,
    kmh_to_mph,
    mm_to_inches,
    mph_to_kmh,
)


class Metric(Enum):
    """Supported outcome metrics."""

    TEMPERATURE = "temperature"
    SNOWFALL = "snowfall"
    RAINFALL = "rainfall"
    WIND_SPEED = "wind_speed"
    EARTHQUAKE_MAGNITUDE = "earthquake_magnitude"
    CLIMATE_ANOMALY = "climate_anomaly"


class DataSource(Enum):
    """How a metric's probability distribution is built."""

    FORECAST_ENSEMBLE = "forecast_ensemble"  # Open-Meteo multi-model ensembles
    HISTORICAL_FREQUENCY = "historical_frequency"  # USGS event history
    TREND_INDEX = "trend_index"  # NASA GISTEMP monthly index


class Scenario(Enum):
    """Market-pricing scenario used by the backtest."""

    CLIMATOLOGICAL = "climatological"
    NOISY_FORECAST = "noisy_forecast"


SCENARIO_DESCRIPTIONS: dict[Scenario, tuple[str, str]] = {
    Scenario.CLIMATOLOGICAL: (
        "Climatological Market",
        "Market priced by historical base rates (naive traders)",
    ),
    Scenario.NOISY_FORECAST: (
        "Noisy Forecast Market",
        "Market priced by less accurate forecasts (decent traders)",
    ),
}


@dataclass(frozen=True)
class Location:
    name: str
    lat: float
    lon: float


@dataclass(frozen=True)
class BucketScheme:
    """How outcome buckets are laid out for a metric.

    Exactly one layout applies:
        width: percentile buckets of this width in the display unit
        edges: fixed contiguous edges in the primary unit
        thresholds: independent ">= X" binary buckets in the primary unit
    """

    width: float | None = None
    edges: tuple[float, ...] = ()
    thresholds: tuple[float, ...] = ()
    # Bucket from same-month climatology (True) or the full record (False)
    seasonal: bool = True
    # Label fixed edges in the primary unit instead of the display unit
    label_in_primary: bool = False


@dataclass(frozen=True)
class SimulationProfile:
    """Backtest constants for simulated forecasts and market prices.

    Attributes:
        forecast_bias_std: error of our simulated forecast mean vs. actual
        model_spreads: per-model (name, member count, member spread) triples
        market_bias_std: error of the simulated market's forecast mean
        market_sigma: uncertainty the simulated market prices with
    """

    forecast_bias_std: float
    model_spreads: tuple[tuple[str, int, float], ...]
    market_bias_std: float
    market_sigma: float


@dataclass(frozen=True)
class MetricProfile:
    metric: Metric
    category: str
    primary_unit: str
    default_sigma: float
    daily_aggregation: str  # "max", "sum" or "mean"
    data_source: DataSource
    requires_location: bool
    bucket_scheme: BucketScheme
    secondary_unit: str | None = None
    to_secondary: Callable[[float], float] | None = None
    to_primary: Callable[[float], float] | None = None
    forecast_daily_var: str | None = None
    ensemble_daily_var: str | None = None
    archive_daily_var: str | None = None
    simulation: SimulationProfile | None = None
    locations: tuple[Location, ...] = ()
    scenarios: tuple[Scenario, ...] = (Scenario.CLIMATOLOGICAL, Scenario.NOISY_FORECAST)
    label: str = field(default="")

    @property
    def display_unit(self) -> str:
        """Unit that buckets are labelled in (secondary when one exists)."""
        return self.secondary_unit or self.primary_unit

    def to_display(self, value: float) -> float:
        return self.to_secondary(value) if self.to_secondary else value

    def from_display(self, value: float) -> float:
        return self.to_primary(value) if self.to_primary else value


_WEATHER_MODELS = ("ecmwf_ifs025", "gfs025")

_NEW_YORK = Location("New York", 40.71, -74.01)
_CHICAGO = Location("Chicago", 41.88, -87.63)
_MIAMI = Location("Miami", 25.76, -80.19)
_DENVER = Location("Denver", 39.74, -104.99)
_LOS_ANGELES = Location("Los Angeles", 34.05, -118.24)
_SEATTLE = Location("Seattle", 47.61, -122.33)


def _weather_sim(
    bias: float, ecmwf_spread: float, gfs_spread: float,
    market_bias: float, market_sigma: float,
) -> SimulationProfile:
    return SimulationProfile(
        forecast_bias_std=bias,
        model_spreads=(
            (_WEATHER_MODELS[0], 51, ecmwf_spread),
            (_WEATHER_MODELS[1], 31, gfs_spread),
        ),
        market_bias_std=market_bias,
        market_sigma=market_sigma,
    )


_PROFILES: dict[Metric, MetricProfile] = {
    Metric.TEMPERATURE: MetricProfile(
        metric=Metric.TEMPERATURE,
        label="Temperature",
        category="Temperature",
        primary_unit="°C",
        secondary_unit="°F",
        to_secondary=celsius_to_fahrenheit,
        to_primary=fahrenheit_to_celsius,
        default_sigma=1.5,
        daily_aggregation="max",
        data_source=DataSource.FORECAST_ENSEMBLE,
        requires_location=True,
        bucket_scheme=BucketScheme(width=2.0),
        forecast_daily_var="temperature_2m_max",
        ensemble_daily_var="temperature_2m_max",
        archive_daily_var="temperature_2m_max",
        simulation=_weather_sim(0.8, 1.0, 1.3, 1.8, 2.5),
        locations=(_NEW_YORK, _CHICAGO, _MIAMI, _DENVER, _LOS_ANGELES),
    ),
    Metric.SNOWFALL: MetricProfile(
        metric=Metric.SNOWFALL,
        label="Snowfall",
        category="Snow",
        primary_unit="cm",
        secondary_unit="in",
        to_secondary=cm_to_inches,
        to_primary=inches_to_cm,
        default_sigma=2.0,
        daily_aggregation="sum",
        data_source=DataSource.FORECAST_ENSEMBLE,
        requires_location=True,
        bucket_scheme=BucketScheme(
            edges=tuple(inches_to_cm(x) for x in (0.1, 1.0, 3.0, 6.0, 12.0)),
            seasonal=False,
        ),
        forecast_daily_var="snowfall_sum",
        ensemble_daily_var="snowfall_sum",
        archive_daily_var="snowfall_sum",
        simulation=_weather_sim(1.5, 2.0, 2.5, 3.0, 4.0),
        locations=(
            _DENVER, _CHICAGO, _NEW_YORK,
            Location("Minneapolis", 44.98, -93.27),
            Location("Boston", 42.36, -71.06),
        ),
    ),
    Metric.RAINFALL: MetricProfile(
        metric=Metric.RAINFALL,
        label="Rainfall",
        category="Rain",
        primary_unit="mm",
        secondary_unit="in",
        to_secondary=mm_to_inches,
        to_primary=inches_to_mm,
        default_sigma=5.0,
        daily_aggregation="sum",
        data_source=DataSource.FORECAST_ENSEMBLE,
        requires_location=True,
        bucket_scheme=BucketScheme(
            edges=(0.1, 2.0, 10.0, 25.0, 50.0), seasonal=False, label_in_primary=True,
        ),
        forecast_daily_var="precipitation_sum",
        ensemble_daily_var="precipitation_sum",
        archive_daily_var="precipitation_sum",
        simulation=_weather_sim(3.0, 4.0, 5.0, 6.0, 8.0),
        locations=(
            _SEATTLE, _MIAMI,
            Location("Houston", 29.76, -95.37),
            _NEW_YORK,
            Location("Portland", 45.52, -122.68),
        ),
    ),
    Metric.WIND_SPEED: MetricProfile(
        metric=Metric.WIND_SPEED,
        label="Wind Speed",
        category="Storm",
        primary_unit="km/h",
        secondary_unit="mph",
        to_secondary=kmh_to_mph,
        to_primary=mph_to_kmh,
        default_sigma=10.0,
        daily_aggregation="max",
        data_source=DataSource.FORECAST_ENSEMBLE,
        requires_location=True,
        bucket_scheme=BucketScheme(width=5.0),
        forecast_daily_var="wind_gusts_10m_max",
        ensemble_daily_var="wind_gusts_10m_max",
        archive_daily_var="wind_gusts_10m_max",
        simulation=_weather_sim(5.0, 7.0, 9.0, 12.0, 15.0),
        locations=(
            _MIAMI, _CHICAGO,
            Location("Oklahoma City", 35.47, -97.52),
            _NEW_YORK, _DENVER,
        ),
    ),
    Metric.EARTHQUAKE_MAGNITUDE: MetricProfile(
        metric=Metric.EARTHQUAKE_MAGNITUDE,
        label="Earthquake",
        category="Earthquake",
        primary_unit="M",
        default_sigma=0.5,
        daily_aggregation="max",
        data_source=DataSource.HISTORICAL_FREQUENCY,
        requires_location=True,
        bucket_scheme=BucketScheme(thresholds=(3.0, 4.0, 5.0, 6.0), seasonal=False),
        locations=(
            _LOS_ANGELES,
            Location("San Francisco", 37.77, -122.42),
            Location("Anchorage", 61.22, -149.90),
            _SEATTLE,
            Location("Salt Lake City", 40.76, -111.89),
        ),
        scenarios=(Scenario.CLIMATOLOGICAL,),
    ),
    Metric.CLIMATE_ANOMALY: MetricProfile(
        metric=Metric.CLIMATE_ANOMALY,
        label="Climate Anomaly",
        category="ClimateAnomaly",
        primary_unit="°C",
        default_sigma=0.15,
        daily_aggregation="mean",
        data_source=DataSource.TREND_INDEX,
        requires_location=False,
        bucket_scheme=BucketScheme(width=0.1),
        # Model members come from the trend fit, not from simulated model runs
        simulation=SimulationProfile(
            forecast_bias_std=0.0,
            model_spreads=(),
            market_bias_std=0.2,
            market_sigma=0.3,
        ),
        locations=(Location("Global", 0.0, 0.0),),
    ),
}


def get_profile(metric: str | Metric) -> MetricProfile:
    """Look up the profile for a metric key.

    Raises:
        UnsupportedMetricError: for keys with no registered profile.
    """
    if isinstance(metric, Metric):
        return _PROFILES[metric]
    try:
        key = Metric(str(metric).strip().lower())
    except ValueError:
        raise UnsupportedMetricError(metric) from None
    return _PROFILES[key]


def all_profiles() -> list[MetricProfile]:
    return list(_PROFILES.values())


# Checked in order: climate-anomaly phrases must win over plain "temperature".
_TITLE_KEYWORDS: tuple[tuple[Metric, tuple[str, ...]], ...] = (
    (Metric.CLIMATE_ANOMALY, (
        "temperature increase", "temperature anomaly", "temperature decrease",
        "global temperature", "gistemp", "land-ocean temperature index",
        "global land-ocean",
    )),
    (Metric.TEMPERATURE, ("temperature", "highest temp", "lowest temp")),
    (Metric.SNOWFALL, ("snow",)),
    (Metric.EARTHQUAKE_MAGNITUDE, ("earthquake", "seismic")),
    (Metric.WIND_SPEED, ("hurricane", "storm", "cyclone", "wind", "tornado")),
    (Metric.RAINFALL, ("rain", "precipitation")),
    (Metric.TEMPERATURE, ("hottest", "warmest", "coldest")),
)


def detect_metric(title: str) -> Metric:
    """Detect the metric an event title is about.

    Keywords must start at a word boundary ("rainfall" matches "rain",
    "Ukraine" does not).

    Raises:
        UnsupportedMetricError: when no keyword matches.
    """
    t = title.lower()
    for metric, keywords in _TITLE_KEYWORDS:
        if any(re.search(rf"\b{re.escape(kw)}", t) for kw in keywords):
            return metric
    raise UnsupportedMetricError(title)
