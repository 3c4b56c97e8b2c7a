"""Probability engine: P(bucket resolves YES) from an ensemble or a normal fallback."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

from climate_edge.forecasting.base import MIN_POOLED_MEMBERS, ForecastData
from climate_edge.forecasting.utils import DistributionStats, summarize
from climate_edge.markets.buckets import Bucket, BucketKind, resolves

PROB_FLOOR = 0.01
PROB_CEIL = 0.99

# Abramowitz & Stegun 7.1.26 coefficients
_A1 = 0.254829592
_A2 = -0.284496736
_A3 = 1.421413741
_A4 = -1.453152027
_A5 = 1.061405429
_P = 0.3275911


def normal_cdf(x: float) -> float:
    """Standard normal CDF via the Abramowitz-Stegun erf approximation (|err| < 1.5e-7)."""
    sign = -1.0 if x < 0 else 1.0
    z = abs(x) / math.sqrt(2.0)
    t = 1.0 / (1.0 + _P * z)
    y = 1.0 - (((((_A5 * t + _A4) * t) + _A3) * t + _A2) * t + _A1) * t * math.exp(-z * z)
    return 0.5 * (1.0 + sign * y)


def clamp_probability(p: float) -> float:
    return max(PROB_FLOOR, min(PROB_CEIL, p))


def ensemble_probability(members: Sequence[float], bucket: Bucket) -> float:
    """Laplace-smoothed hit rate: (hits + 1) / (n + 2)."""
    hits = sum(1 for m in members if resolves(m, bucket))
    return (hits + 1) / (len(members) + 2)


def normal_probability(mean: float, sigma: float, bucket: Bucket) -> float:
    """P(bucket) under Normal(mean, sigma).

    A non-positive sigma is a point mass at ``mean``.
    """
    if sigma <= 0:
        return 1.0 if resolves(mean, bucket) else 0.0

    def cdf(threshold: float) -> float:
        return normal_cdf((threshold - mean) / sigma)

    if bucket.kind == BucketKind.CLOSED_RANGE:
        return cdf(bucket.high) - cdf(bucket.low)  # type: ignore[arg-type]
    if bucket.low is not None:
        return 1.0 - cdf(bucket.low)
    return cdf(bucket.high)  # type: ignore[arg-type]


@dataclass(frozen=True)
class ModelBreakdown:
    """One model's view of a bucket."""

    model: str
    member_count: int
    stats: DistributionStats
    probability: float


@dataclass(frozen=True)
class ProbabilityResult:
    """Probability for one bucket plus the distribution behind it.

    Attributes:
        probability: clamped to [0.01, 0.99]
        method: "ensemble" or "normal"
        stats: pooled member summary (None on the normal path)
        per_model: per-model probabilities for this bucket
        models_agree: every model on the same side of 0.5 (None with < 2 models).
            Informational only; never gates a trade.
    """

    probability: float
    method: str
    stats: DistributionStats | None = None
    per_model: tuple[ModelBreakdown, ...] = ()
    models_agree: bool | None = None

    def to_dict(self) -> dict:
        return {
            "probability": round(self.probability, 4),
            "method": self.method,
            "stats": None if self.stats is None else {
                "p10": self.stats.p10,
                "p50": self.stats.p50,
                "p90": self.stats.p90,
                "mean": self.stats.mean,
                "std": self.stats.std,
                "count": self.stats.count,
            },
            "per_model": [
                {
                    "model": m.model,
                    "member_count": m.member_count,
                    "p50": m.stats.p50,
                    "std": m.stats.std,
                    "probability": round(m.probability, 4),
                }
                for m in self.per_model
            ],
            "models_agree": self.models_agree,
        }


def estimate_probability(bucket: Bucket, forecast: ForecastData) -> ProbabilityResult:
    """Estimate P(bucket) from pre-fetched forecast data.

    Uses the pooled ensemble when it has at least MIN_POOLED_MEMBERS members,
    otherwise Normal(forecast.mean, forecast.sigma).
    """
    ensemble = forecast.ensemble
    if ensemble is None or ensemble.member_count < MIN_POOLED_MEMBERS:
        raw = normal_probability(forecast.mean, forecast.sigma, bucket)
        return ProbabilityResult(probability=clamp_probability(raw), method="normal")

    raw = ensemble_probability(ensemble.members, bucket)
    per_model = tuple(
        ModelBreakdown(
            model=result.label,
            member_count=result.member_count,
            stats=summarize(result.members),
            probability=ensemble_probability(result.members, bucket),
        )
        for result in ensemble.per_model
    )

    agree: bool | None = None
    if len(per_model) >= 2:
        agree = (
            all(m.probability > 0.5 for m in per_model)
            or all(m.probability < 0.5 for m in per_model)
        )

    return ProbabilityResult(
        probability=clamp_probability(raw),
        method="ensemble",
        stats=summarize(ensemble.members),
        per_model=per_model,
        models_agree=agree,
    )
