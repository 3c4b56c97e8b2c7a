"""Resolve a computed signal against the observed outcome."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta

from climate_edge.common.errors import UpstreamDataError
from climate_edge.config import get_settings
from climate_edge.forecasting.earthquake import daily_max_magnitude
from climate_edge.markets.buckets import Bucket, resolves
from climate_edge.profiles import DataSource, MetricProfile
from climate_edge.signals.analyzer import realized_pnl
from climate_edge.signals.models import TradeSignal
from climate_edge.weather.gistemp import fetch_gistemp_records
from climate_edge.weather.openmeteo import fetch_historical_series
from climate_edge.weather.usgs import fetch_point_events

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    observed_value: float
    resolved_yes: bool
    pnl: float


def resolve_outcome(
    signal: TradeSignal,
    bucket: Bucket,
    observed_value: float,
    fee_bps: float,
    slippage_bps: float,
) -> Resolution:
    """Settle a signal at its suggested size. NO_TRADE signals book zero P&L."""
    resolved_yes = resolves(observed_value, bucket)
    pnl = 0.0
    if signal.is_trade:
        pnl = realized_pnl(
            signal.recommendation, resolved_yes, signal.market_price,
            signal.suggested_size, fee_bps, slippage_bps,
        )
    return Resolution(observed_value=observed_value, resolved_yes=resolved_yes, pnl=pnl)


async def fetch_observed_value(
    profile: MetricProfile,
    lat: float | None,
    lon: float | None,
    target_date: date,
) -> float:
    """Observed value of the metric on the resolution date.

    Monthly-index metrics resolve on the month containing ``target_date``.

    Raises:
        UpstreamDataError: if the provider has no value for that date yet.
    """
    settings = get_settings()

    if profile.data_source == DataSource.FORECAST_ENSEMBLE:
        series = await fetch_historical_series(
            lat, lon, target_date, target_date, profile.archive_daily_var,  # type: ignore[arg-type]
        )
        for day, value in series:
            if day == target_date:
                return value
        raise UpstreamDataError(
            f"No archived {profile.archive_daily_var} for ({lat}, {lon}) on {target_date}"
        )

    if profile.data_source == DataSource.HISTORICAL_FREQUENCY:
        half = timedelta(days=settings.earthquake_window_days // 2)
        events = await fetch_point_events(
            lat, lon, settings.earthquake_radius_km,  # type: ignore[arg-type]
            target_date - half, target_date + half + timedelta(days=1),
        )
        [(_, magnitude)] = daily_max_magnitude(
            events, target_date, target_date, settings.earthquake_window_days,
        )
        return magnitude

    if profile.data_source == DataSource.TREND_INDEX:
        records = await fetch_gistemp_records()
        for record in records:
            if record.year == target_date.year and record.month == target_date.month:
                return record.anomaly
        raise UpstreamDataError(
            f"GISTEMP has not published {target_date.year}-{target_date.month:02d} yet"
        )

    raise ValueError(f"No observation source for {profile.data_source}")
