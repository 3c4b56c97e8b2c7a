"""Simulated market prices and simulated model ensembles for the backtest."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from climate_edge.forecasting.base import EnsembleResult
from climate_edge.forecasting.probability import normal_probability
from climate_edge.forecasting.sampling import gaussian, get_rng
from climate_edge.markets.buckets import Bucket, resolves
from climate_edge.profiles import SimulationProfile

PRICE_FLOOR = 0.02
PRICE_CEIL = 0.98


def _clamp_price(p: float) -> float:
    return max(PRICE_FLOOR, min(PRICE_CEIL, p))


def climatological_prices(buckets: Sequence[Bucket], climate_values: Sequence[float]) -> list[float]:
    """Base-rate YES prices: (count + 0.5) / (n + 0.5 * k), normalized, clamped."""
    n = len(climate_values)
    k = len(buckets)
    counts = [sum(1 for v in climate_values if resolves(v, b)) for b in buckets]
    smoothed = [(c + 0.5) / (n + 0.5 * k) for c in counts]
    total = sum(smoothed)
    return [_clamp_price(p / total) for p in smoothed]


def noisy_forecast_prices(
    buckets: Sequence[Bucket],
    actual: float,
    sim: SimulationProfile,
    rng: np.random.Generator | None = None,
) -> list[float]:
    """YES prices from a market that forecasts worse than our model.

    One market mean is drawn as actual + N(0, market_bias_std); each bucket is
    priced with Normal(market mean, market_sigma), then normalized and clamped.
    """
    gen = get_rng(rng)
    market_mean = actual + gaussian(gen) * sim.market_bias_std
    probs = [normal_probability(market_mean, sim.market_sigma, b) for b in buckets]
    total = sum(probs)
    if total <= 0:
        return [_clamp_price(1.0 / len(buckets)) for _ in buckets]
    return [_clamp_price(p / total) for p in probs]


def simulate_forecast_ensemble(
    actual: float,
    sim: SimulationProfile,
    rng: np.random.Generator | None = None,
) -> list[EnsembleResult]:
    """Per-model members around a forecast mean of actual + N(0, forecast_bias_std)."""
    gen = get_rng(rng)
    forecast_mean = actual + gaussian(gen) * sim.forecast_bias_std
    results = []
    for model, count, spread in sim.model_spreads:
        members = [forecast_mean + gaussian(gen) * spread for _ in range(count)]
        results.append(EnsembleResult.from_values(members, model))
    return results
