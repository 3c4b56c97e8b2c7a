"""Strategy backtest engine.

Replays the signal pipeline over historical dates for every location and
market-pricing scenario of a metric:

1. Build climatological buckets for the date (skip if fewer than 3).
2. Price each bucket with the scenario's simulated market.
3. Build the model ensemble and the per-bucket model probability.
4. Keep the strongest trades per event, resolve them against the observed
   value and book the realized P&L.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Sequence

import numpy as np

from climate_edge.backtest.data import HistoryProvider, LocationHistory, ProviderHistory
from climate_edge.backtest.models import BacktestConfig, BacktestOutput, TradeResult
from climate_edge.backtest.pricing import (
    climatological_prices,
    noisy_forecast_prices,
    simulate_forecast_ensemble,
)
from climate_edge.backtest.summary import summarize
from climate_edge.common.http import Throttle
from climate_edge.forecasting.climate_index import build_climate_ensemble
from climate_edge.forecasting.earthquake import build_earthquake_ensemble
from climate_edge.forecasting.probability import clamp_probability, ensemble_probability
from climate_edge.forecasting.sampling import get_rng
from climate_edge.markets.buckets import MIN_BUCKETS, Bucket, climatological_buckets, resolves
from climate_edge.profiles import (
    SCENARIO_DESCRIPTIONS,
    DataSource,
    MetricProfile,
    Scenario,
    get_profile,
)
from climate_edge.signals.analyzer import decide, realized_pnl
from climate_edge.signals.models import TradeSignal

logger = logging.getLogger(__name__)

# Climatology days needed in a calendar month before its dates are traded
MIN_CLIMATE_DAYS = 30

# Prior years of a calendar month needed for monthly-index buckets
MIN_CLIMATE_YEARS = 5

# Candidates smaller than this are not worth executing
MIN_TRADE_SIZE = 1.0


def find_trades(
    buckets: Sequence[Bucket],
    model_probs: Sequence[float],
    market_prices: Sequence[float],
    config: BacktestConfig,
) -> list[tuple[Bucket, TradeSignal]]:
    """Strongest tradeable buckets for one event-date.

    Candidates need a suggested size of at least $1; they are ranked by
    |edge| and capped at ``config.max_trades_per_event``.
    """
    candidates: list[tuple[Bucket, TradeSignal]] = []
    for bucket, model_prob, price in zip(buckets, model_probs, market_prices):
        signal = decide(
            model_prob=clamp_probability(model_prob),
            market_price=price,
            fee_bps=config.fee_bps,
            slippage_bps=config.slippage_bps,
            min_edge=config.min_edge,
            bankroll=config.base_size,
            confidence=config.confidence,
            label=bucket.label,
        )
        if signal.is_trade and signal.suggested_size >= MIN_TRADE_SIZE:
            candidates.append((bucket, signal))

    candidates.sort(key=lambda c: abs(c[1].edge), reverse=True)
    return candidates[: config.max_trades_per_event]


def _execute(
    day: date,
    location: str,
    actual: float,
    trades: Sequence[tuple[Bucket, TradeSignal]],
    config: BacktestConfig,
) -> list[TradeResult]:
    results = []
    for bucket, signal in trades:
        resolved_yes = resolves(actual, bucket)
        pnl = realized_pnl(
            signal.recommendation, resolved_yes, signal.market_price,
            signal.suggested_size, config.fee_bps, config.slippage_bps,
        )
        results.append(
            TradeResult(
                date=day,
                location=location,
                bucket_label=bucket.label,
                side=signal.recommendation,
                model_prob=signal.model_prob,
                market_price=signal.market_price,
                edge=signal.edge,
                kelly_fraction=signal.kelly_fraction,
                size=signal.suggested_size,
                resolved_yes=resolved_yes,
                pnl=pnl,
                won=pnl > 0,
            )
        )
    return results


class _ClimateSampler:
    """Picks the climatological sample a date's buckets are built from."""

    def __init__(self, profile: MetricProfile, history: LocationHistory, config: BacktestConfig):
        self.profile = profile
        self.config = config
        self.all_values = [v for _, v in history.climatology]
        self.by_month: dict[int, list[float]] = defaultdict(list)
        for day, value in history.climatology:
            self.by_month[day.month].append(value)
        self.monthly_index = history.climatology

    def values_for(self, day: date) -> list[float] | None:
        if self.profile.data_source == DataSource.TREND_INDEX:
            values = [
                v for d, v in self.monthly_index
                if d.month == day.month
                and d.year < day.year
                and self.config.climate_start <= d <= self.config.climate_end
            ]
            return values if len(values) >= MIN_CLIMATE_YEARS else None
        if self.profile.bucket_scheme.seasonal:
            values = self.by_month.get(day.month, [])
        else:
            values = self.all_values
        return values if len(values) >= MIN_CLIMATE_DAYS else None


def _model_members(
    profile: MetricProfile,
    history: LocationHistory,
    day: date,
    actual: float,
    config: BacktestConfig,
    gen: np.random.Generator,
    cache: dict,
) -> Sequence[float]:
    if profile.data_source == DataSource.HISTORICAL_FREQUENCY:
        if "earthquake" not in cache:
            cache["earthquake"] = build_earthquake_ensemble(
                history.magnitudes,
                lookback_years=history.lookback_years,
                window_days=config.earthquake_window_days,
                n_members=config.synthetic_members,
                rng=gen,
            ).members
        return cache["earthquake"]

    if profile.data_source == DataSource.TREND_INDEX:
        series = [(d.year, v) for d, v in history.climatology if d.month == day.month and d.year < day.year]
        ensemble, fit = build_climate_ensemble(series, day.year, config.synthetic_members, rng=gen)
        logger.debug(
            "%s: trend %.2f ± %.2f from %d point(s)", day, fit.value, fit.residual_std, fit.n_points,
        )
        return ensemble.members

    if profile.simulation is None:
        raise ValueError(f"Profile {profile.metric.value} has no simulation constants")
    members: list[float] = []
    for result in simulate_forecast_ensemble(actual, profile.simulation, gen):
        members.extend(result.members)
    return members


def backtest_location(
    profile: MetricProfile,
    scenario: Scenario,
    history: LocationHistory,
    config: BacktestConfig,
    rng: np.random.Generator | None = None,
) -> list[TradeResult]:
    """All trades for one location under one pricing scenario."""
    gen = get_rng(rng)
    sampler = _ClimateSampler(profile, history, config)
    cache: dict = {}
    results: list[TradeResult] = []
    skipped = 0

    if scenario == Scenario.NOISY_FORECAST and profile.simulation is None:
        raise ValueError(f"{profile.metric.value} does not support the noisy-forecast scenario")

    for day, actual in history.observed:
        climate_values = sampler.values_for(day)
        if climate_values is None:
            skipped += 1
            continue

        buckets = climatological_buckets(climate_values, profile)
        if len(buckets) < MIN_BUCKETS:
            skipped += 1
            continue

        if scenario == Scenario.CLIMATOLOGICAL:
            prices = climatological_prices(buckets, climate_values)
        else:
            prices = noisy_forecast_prices(buckets, actual, profile.simulation, gen)  # type: ignore[arg-type]

        members = _model_members(profile, history, day, actual, config, gen, cache)
        model_probs = [ensemble_probability(members, b) for b in buckets]

        trades = find_trades(buckets, model_probs, prices, config)
        results.extend(_execute(day, history.location.name, actual, trades, config))

    logger.info(
        "%s [%s]: %d trade(s), %d date(s) skipped",
        history.location.name, scenario.value, len(results), skipped,
    )
    return results


async def run_backtest(
    config: BacktestConfig,
    provider: HistoryProvider | None = None,
    throttle: Throttle | None = None,
    rng: np.random.Generator | None = None,
) -> BacktestOutput:
    """Run every scenario of the configured metric.

    Locations are loaded one at a time through ``throttle``. A failed load
    aborts the whole run. Scenarios that produce no trades are left out of
    the output.
    """
    profile = get_profile(config.metric)
    provider = provider or ProviderHistory()
    throttle = throttle or Throttle()
    gen = get_rng(rng)

    histories: list[LocationHistory] = []
    for location in config.locations:
        await throttle.wait()
        histories.append(await provider.load(profile, location, config))

    summaries = []
    for scenario in profile.scenarios:
        results: list[TradeResult] = []
        for history in histories:
            results.extend(backtest_location(profile, scenario, history, config, gen))

        name, description = SCENARIO_DESCRIPTIONS[scenario]
        if not results:
            logger.info("Scenario %r produced no trades", name)
            continue
        summaries.append(summarize(name, description, results))

    return BacktestOutput(
        config=config,
        computed_at=datetime.now(timezone.utc),
        scenarios=summaries,
    )
