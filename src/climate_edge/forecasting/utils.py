"""Shared forecasting utilities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np


def percentile(values: Sequence[float], p: float) -> float:
    """Linear-interpolated percentile (p in [0, 100]).

    Returns 0.0 for an empty sequence.
    """
    if len(values) == 0:
        return 0.0
    return float(np.percentile(np.asarray(values, dtype=np.float64), p, method="linear"))


def sample_std(values: Sequence[float]) -> float:
    """Sample standard deviation (n - 1 denominator), 0.0 below two values."""
    if len(values) < 2:
        return 0.0
    return float(np.std(np.asarray(values, dtype=np.float64), ddof=1))


@dataclass(frozen=True)
class DistributionStats:
    """Summary of a member list, rounded for display."""

    p10: float
    p50: float
    p90: float
    mean: float
    std: float
    count: int


def summarize(values: Sequence[float]) -> DistributionStats:
    arr = np.asarray(values, dtype=np.float64)
    mean = float(arr.mean()) if arr.size else 0.0
    return DistributionStats(
        p10=round(percentile(arr, 10), 1),
        p50=round(percentile(arr, 50), 1),
        p90=round(percentile(arr, 90), 1),
        mean=round(mean, 2),
        std=round(sample_std(arr), 2),
        count=int(arr.size),
    )
