"""Historical data loading for the backtest.

The engine only sees ``LocationHistory`` values. ``HistoryProvider`` is the
seam for swapping in cached or synthetic data; the default provider talks to
Open-Meteo, USGS and NASA GISS.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Protocol

from climate_edge.backtest.models import BacktestConfig
from climate_edge.forecasting.earthquake import daily_max_magnitude
from climate_edge.profiles import DataSource, Location, MetricProfile
from climate_edge.weather.gistemp import fetch_gistemp_records
from climate_edge.weather.openmeteo import fetch_historical_series
from climate_edge.weather.usgs import fetch_point_events

logger = logging.getLogger(__name__)

DailySeries = list[tuple[date, float]]


@dataclass(frozen=True)
class LocationHistory:
    """Everything the engine needs for one location.

    Attributes:
        location: where the data was taken
        observed: actual values over the backtest window
        climatology: historical values used for buckets and base-rate prices.
            Monthly metrics key each value by the first day of its month.
        magnitudes: earthquake magnitudes before the backtest window
        lookback_years: years of history ``magnitudes`` covers
    """

    location: Location
    observed: DailySeries
    climatology: DailySeries
    magnitudes: tuple[float, ...] = field(default_factory=tuple)
    lookback_years: float = 0.0


class HistoryProvider(Protocol):
    async def load(
        self,
        profile: MetricProfile,
        location: Location,
        config: BacktestConfig,
    ) -> LocationHistory:
        """Load observed and climatological history for one location.

        Fetch failures must propagate; the engine never backtests on
        partial history.
        """
        ...


class ProviderHistory:
    """Default provider backed by the public data APIs."""

    async def load(
        self,
        profile: MetricProfile,
        location: Location,
        config: BacktestConfig,
    ) -> LocationHistory:
        if profile.data_source == DataSource.FORECAST_ENSEMBLE:
            return await self._load_archive(profile, location, config)
        if profile.data_source == DataSource.HISTORICAL_FREQUENCY:
            return await self._load_earthquakes(location, config)
        if profile.data_source == DataSource.TREND_INDEX:
            return await self._load_index(location, config)
        raise ValueError(f"No history loader for data source {profile.data_source}")

    async def _load_archive(
        self, profile: MetricProfile, location: Location, config: BacktestConfig,
    ) -> LocationHistory:
        if profile.archive_daily_var is None:
            raise ValueError(f"Profile {profile.metric.value} has no archive variable")
        observed, climatology = await asyncio.gather(
            fetch_historical_series(
                location.lat, location.lon, config.start, config.end, profile.archive_daily_var,
            ),
            fetch_historical_series(
                location.lat, location.lon, config.climate_start, config.climate_end,
                profile.archive_daily_var,
            ),
        )
        logger.info(
            "%s: %d observed day(s), %d climatology day(s)",
            location.name, len(observed), len(climatology),
        )
        return LocationHistory(location=location, observed=observed, climatology=climatology)

    async def _load_earthquakes(self, location: Location, config: BacktestConfig) -> LocationHistory:
        lookback_start = config.start - timedelta(days=round(config.earthquake_lookback_years * 365.25))
        fetch_start = min(lookback_start, config.climate_start)
        events = await fetch_point_events(
            location.lat, location.lon, config.earthquake_radius_km, fetch_start, config.end,
        )

        window = config.earthquake_window_days
        observed = daily_max_magnitude(events, config.start, config.end, window)
        climatology = daily_max_magnitude(events, config.climate_start, config.climate_end, window)

        # Rate model only sees events before the backtest window
        cutoff_lo = datetime(lookback_start.year, lookback_start.month, lookback_start.day, tzinfo=timezone.utc)
        cutoff_hi = datetime(config.start.year, config.start.month, config.start.day, tzinfo=timezone.utc)
        magnitudes = tuple(e.magnitude for e in events if cutoff_lo <= e.time < cutoff_hi)

        logger.info(
            "%s: %d event(s) fetched, %d in the %d-year rate window",
            location.name, len(events), len(magnitudes), config.earthquake_lookback_years,
        )
        return LocationHistory(
            location=location,
            observed=observed,
            climatology=climatology,
            magnitudes=magnitudes,
            lookback_years=float(config.earthquake_lookback_years),
        )

    async def _load_index(self, location: Location, config: BacktestConfig) -> LocationHistory:
        records = await fetch_gistemp_records()
        monthly = sorted((date(r.year, r.month, 1), r.anomaly) for r in records)
        window_start = date(config.start.year, config.start.month, 1)
        observed = [(d, v) for d, v in monthly if window_start <= d <= config.end]
        logger.info(
            "GISTEMP: %d monthly value(s), %d in the backtest window", len(monthly), len(observed),
        )
        return LocationHistory(location=location, observed=observed, climatology=monthly)
