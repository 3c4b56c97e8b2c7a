"""Climate-index distribution from a trend-adjusted monthly anomaly series.

A linear trend is fitted to recent years of one calendar month's anomaly,
extrapolated to the target year, and members are sampled around it with the
historical residual spread.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np
from scipy import stats

from climate_edge.common.errors import InsufficientDataError
from climate_edge.forecasting.base import EnsembleResult
from climate_edge.forecasting.sampling import gaussian, get_rng
from climate_edge.forecasting.utils import sample_std

logger = logging.getLogger(__name__)

ENSEMBLE_LABEL = "nasa_giss_trend"

# Years of history used for the trend fit
TREND_WINDOW_YEARS = 30

# Fewer recent points than this: no trend, use all history
MIN_TREND_POINTS = 5


@dataclass(frozen=True)
class TrendFit:
    """Trend extrapolation for one target year.

    Attributes:
        value: trend value at the target year
        residual_std: spread of historical points around the fitted line
        slope: anomaly change per year (0.0 when no trend was fitted)
        n_points: number of points used
        trended: False when the all-history fallback was used
    """

    value: float
    residual_std: float
    slope: float
    n_points: int
    trended: bool


def fit_trend(series: Sequence[tuple[int, float]], target_year: int) -> TrendFit:
    """Fit an OLS trend of anomaly vs. year on the last 30 years.

    Raises:
        InsufficientDataError: if the series has fewer than two points.
    """
    if len(series) < 2:
        raise InsufficientDataError(
            f"Need at least 2 yearly values to fit a trend, got {len(series)}"
        )

    cutoff = target_year - TREND_WINDOW_YEARS
    recent = sorted((y, a) for y, a in series if y >= cutoff)

    if len(recent) < MIN_TREND_POINTS:
        values = [a for _, a in series]
        mean = float(np.mean(values))
        logger.info(
            "Only %d point(s) since %d: using all-history mean %.2f without trend",
            len(recent), cutoff, mean,
        )
        return TrendFit(
            value=mean, residual_std=sample_std(values),
            slope=0.0, n_points=len(values), trended=False,
        )

    years = np.array([y for y, _ in recent], dtype=np.float64)
    anomalies = np.array([a for _, a in recent], dtype=np.float64)

    if np.ptp(years) == 0:
        slope, intercept = 0.0, float(anomalies.mean())
    else:
        fit = stats.linregress(years, anomalies)
        slope, intercept = float(fit.slope), float(fit.intercept)

    residuals = anomalies - (intercept + slope * years)
    dof = len(recent) - 2 or 1
    residual_std = float(np.sqrt(np.sum(residuals**2) / dof))

    return TrendFit(
        value=intercept + slope * target_year,
        residual_std=residual_std,
        slope=slope,
        n_points=len(recent),
        trended=True,
    )


def build_climate_ensemble(
    series: Sequence[tuple[int, float]],
    target_year: int,
    n_members: int = 1000,
    rng: np.random.Generator | None = None,
) -> tuple[EnsembleResult, TrendFit]:
    """Sample members from Normal(trend value, residual std).

    Args:
        series: (year, anomaly) pairs for one calendar month
        target_year: year to forecast
        n_members: number of synthetic members
        rng: optional seeded generator

    Returns:
        (ensemble, trend fit)
    """
    gen = get_rng(rng)
    fit = fit_trend(series, target_year)
    members = [
        round(fit.value + fit.residual_std * gaussian(gen), 2)
        for _ in range(n_members)
    ]
    return EnsembleResult.from_values(members, ENSEMBLE_LABEL), fit
