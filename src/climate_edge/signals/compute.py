"""Signal computation: fetch forecast data once, then score every bucket.

``fetch_forecast_data`` does all the I/O for one location and date.
``compute_signal`` is pure and can be called any number of times against
the same ForecastData, once per sub-market.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Sequence

import numpy as np

from climate_edge.common.errors import ClimateEdgeError, InsufficientDataError
from climate_edge.config import get_settings
from climate_edge.forecasting.base import ForecastData, pool_ensembles
from climate_edge.forecasting.climate_index import build_climate_ensemble
from climate_edge.forecasting.earthquake import build_earthquake_ensemble
from climate_edge.forecasting.ensemble import fetch_multi_model_ensemble
from climate_edge.forecasting.probability import ProbabilityResult, estimate_probability
from climate_edge.markets.buckets import Bucket, describe
from climate_edge.markets.events import EventDefinition
from climate_edge.profiles import DataSource, MetricProfile, get_profile
from climate_edge.signals.analyzer import decide
from climate_edge.signals.models import SignalOutcome, TradeSignal
from climate_edge.weather.gistemp import (
    fetch_monthly_index,
    resolve_month_from_title,
    resolve_year_from_title,
)
from climate_edge.weather.openmeteo import fetch_point_forecast
from climate_edge.weather.usgs import fetch_point_events

logger = logging.getLogger(__name__)


def _target_date(resolution_time: datetime | date) -> date:
    return resolution_time.date() if isinstance(resolution_time, datetime) else resolution_time


async def fetch_forecast_data(
    profile: MetricProfile,
    lat: float | None,
    lon: float | None,
    resolution_time: datetime | date,
    title: str = "",
    rng: np.random.Generator | None = None,
) -> ForecastData:
    """Fetch everything needed to price one event.

    Dispatches on ``profile.data_source``:
        forecast_ensemble: Open-Meteo point forecast plus the multi-model ensemble
        historical_frequency: USGS history plus Poisson synthesis
        trend_index: GISTEMP monthly series plus trend synthesis

    Raises:
        ValueError: if the metric needs a location and none was given.
        UpstreamDataError: if a required fetch fails.
    """
    if profile.requires_location and (lat is None or lon is None):
        raise ValueError(f"{profile.metric.value} requires a latitude and longitude")

    settings = get_settings()
    target = _target_date(resolution_time)

    if profile.data_source == DataSource.FORECAST_ENSEMBLE:
        if profile.forecast_daily_var is None:
            raise ValueError(f"Profile {profile.metric.value} has no forecast variable")
        mean = await fetch_point_forecast(lat, lon, target, profile.forecast_daily_var)  # type: ignore[arg-type]
        pooled = await fetch_multi_model_ensemble(lat, lon, target, profile)  # type: ignore[arg-type]
        sources = ["open-meteo forecast"]
        if pooled is not None:
            sources.append(f"open-meteo ensemble ({pooled.label})")
        return ForecastData(
            metric=profile.metric,
            mean=mean,
            sigma=profile.default_sigma,
            ensemble=pooled,
            target_date=target,
            sources=tuple(sources),
        )

    if profile.data_source == DataSource.HISTORICAL_FREQUENCY:
        lookback = settings.earthquake_lookback_years
        start = target - timedelta(days=round(lookback * 365.25))
        events = await fetch_point_events(
            lat, lon, settings.earthquake_radius_km, start, target,  # type: ignore[arg-type]
        )
        ensemble = build_earthquake_ensemble(
            [e.magnitude for e in events],
            lookback_years=lookback,
            window_days=settings.earthquake_window_days,
            n_members=settings.synthetic_members,
            rng=rng,
        )
        return ForecastData(
            metric=profile.metric,
            mean=float(np.mean(ensemble.members)),
            sigma=profile.default_sigma,
            ensemble=pool_ensembles([ensemble]),
            target_date=target,
            sources=(f"usgs ({len(events)} events, {settings.earthquake_radius_km:.0f} km)",),
        )

    if profile.data_source == DataSource.TREND_INDEX:
        month = resolve_month_from_title(title) or target.month
        year = resolve_year_from_title(title) or target.year
        series = await fetch_monthly_index(month)
        if len(series) < 2:
            raise InsufficientDataError(f"GISTEMP has {len(series)} value(s) for month {month}")
        ensemble, fit = build_climate_ensemble(series, year, settings.synthetic_members, rng=rng)
        return ForecastData(
            metric=profile.metric,
            mean=fit.value,
            sigma=fit.residual_std if fit.residual_std > 0 else profile.default_sigma,
            ensemble=pool_ensembles([ensemble]),
            target_date=target,
            sources=(f"nasa giss {year}-{month:02d} trend ({fit.n_points} yrs)",),
        )

    raise ValueError(f"No forecast loader for data source {profile.data_source}")


def _rationale(
    bucket: Bucket,
    forecast: ForecastData,
    prob: ProbabilityResult,
    signal: TradeSignal,
    fee_bps: float,
    slippage_bps: float,
    min_edge: float,
    confidence: float,
) -> tuple[str, ...]:
    unit = get_profile(forecast.metric).primary_unit
    condition = describe(bucket, unit)
    lines = [f"Forecast mean for {forecast.target_date}: {forecast.mean:.2f} {unit}"]

    if prob.method == "ensemble" and prob.stats is not None:
        lines.append(
            f"Ensemble: {prob.stats.count} members from {len(prob.per_model)} model(s)"
        )
        for m in prob.per_model:
            lines.append(
                f"  {m.model} ({m.member_count}m): P50={m.stats.p50}, σ={m.stats.std}"
                f" -> P({condition}) = {m.probability * 100:.1f}%"
            )
        agree = ""
        if prob.models_agree is not None:
            agree = " (models agree)" if prob.models_agree else " (models disagree)"
        lines.append(
            f"Combined: P10={prob.stats.p10}, P50={prob.stats.p50}, P90={prob.stats.p90},"
            f" σ={prob.stats.std}"
        )
        lines.append(f"Pooled probability: P({condition}) = {prob.probability * 100:.1f}%{agree}")
    else:
        lines.append(
            f"Probability (normal, σ={forecast.sigma:g}): P({condition}) = {prob.probability * 100:.1f}%"
        )

    lines.append(f"Market implied: {signal.market_implied_prob * 100:.1f}%")
    lines.append(
        f"Edge: {signal.edge * 100:.2f}% (after {fee_bps:g}bps fees + {slippage_bps:g}bps slippage)"
    )
    if signal.is_trade:
        lines.append(
            f"Kelly fraction: {signal.kelly_fraction * 100:.1f}% -> full ${signal.kelly_size:.2f},"
            f" half ${signal.half_kelly_size:.2f}"
        )
        lines.append(
            f"Suggested size (half-Kelly x {confidence:g}% confidence): ${signal.suggested_size:.2f}"
        )
    else:
        lines.append(f"Edge within ±{min_edge * 100:.1f}%: no trade")
    return tuple(lines)


def compute_signal(
    bucket_set: Sequence[Bucket],
    forecast_data: ForecastData,
    market_prices: Sequence[float],
    fee_bps: float,
    slippage_bps: float,
    min_edge: float,
    bankroll: float,
    confidence: float,
) -> list[SignalOutcome]:
    """Score every bucket against one shared ForecastData.

    A bucket that fails (e.g. an out-of-range price) gets an outcome with
    its error message; the remaining buckets are still scored.

    Raises:
        ValueError: if bucket_set and market_prices differ in length.
    """
    if len(bucket_set) != len(market_prices):
        raise ValueError(
            f"{len(bucket_set)} bucket(s) but {len(market_prices)} market price(s)"
        )

    outcomes: list[SignalOutcome] = []
    for bucket, price in zip(bucket_set, market_prices):
        try:
            if not 0.0 <= price <= 1.0:
                raise ValueError(f"market price {price} outside [0, 1]")
            prob = estimate_probability(bucket, forecast_data)
            signal = decide(
                model_prob=prob.probability,
                market_price=price,
                fee_bps=fee_bps,
                slippage_bps=slippage_bps,
                min_edge=min_edge,
                bankroll=bankroll,
                confidence=confidence,
                label=bucket.label,
            )
            rationale = _rationale(
                bucket, forecast_data, prob, signal, fee_bps, slippage_bps, min_edge, confidence,
            )
        except (ClimateEdgeError, ValueError, TypeError) as exc:
            logger.warning("Signal for %r failed: %s", bucket.label, exc)
            outcomes.append(SignalOutcome(label=bucket.label, error=str(exc)))
            continue
        outcomes.append(
            SignalOutcome(label=bucket.label, signal=signal, probability=prob, rationale=rationale)
        )
    return outcomes


def compute_event_signals(
    event: EventDefinition,
    forecast_data: ForecastData,
    fee_bps: float,
    slippage_bps: float,
    min_edge: float,
    bankroll: float,
    confidence: float,
) -> list[SignalOutcome]:
    """Score an event's sub-markets in file order.

    Sub-markets that failed to parse come back as error outcomes; the valid
    ones are scored together through ``compute_signal``.
    """
    scored = iter(compute_signal(
        event.buckets, forecast_data, event.prices,
        fee_bps=fee_bps,
        slippage_bps=slippage_bps,
        min_edge=min_edge,
        bankroll=bankroll,
        confidence=confidence,
    ))
    return [
        next(scored) if market.ok else SignalOutcome(label=market.label, error=market.error)
        for market in event.markets
    ]
