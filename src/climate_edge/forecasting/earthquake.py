"""Earthquake magnitude distribution from historical event frequency.

The regional event rate is assumed Poisson. Each synthetic member is the
largest magnitude drawn over one forecast window, or 0 when the window has
no qualifying event.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Sequence

import numpy as np

from climate_edge.forecasting.base import EnsembleResult
from climate_edge.forecasting.sampling import get_rng, poisson_sample

logger = logging.getLogger(__name__)

ENSEMBLE_LABEL = "usgs_historical_frequency"

# Below this many historical events the empirical fit is too unstable
MIN_HISTORICAL_EVENTS = 5

# Degenerate low-seismicity branch: chance of a moderate event per member
_LOW_SEISMICITY_EVENT_PROB = 0.005
_LOW_SEISMICITY_MAG_RANGE = (2.0, 6.0)


@dataclass(frozen=True)
class EarthquakeEvent:
    """One historical event from the USGS catalogue."""

    time: datetime
    magnitude: float


def daily_event_rate(n_events: int, lookback_years: float) -> float:
    """Empirical daily event rate over the lookback period."""
    if lookback_years <= 0:
        return 0.0
    return n_events / (lookback_years * 365.25)


def build_earthquake_ensemble(
    magnitudes: Sequence[float],
    lookback_years: float = 20,
    window_days: float = 7,
    n_members: int = 1000,
    rng: np.random.Generator | None = None,
) -> EnsembleResult:
    """Synthesize window-max magnitudes from a historical magnitude list.

    Args:
        magnitudes: historical event magnitudes within the search radius
        lookback_years: years of history the magnitudes cover
        window_days: length of the forecast window
        n_members: number of synthetic members
        rng: optional seeded generator

    Returns:
        EnsembleResult with n_members values (0.0 = no qualifying event)
    """
    gen = get_rng(rng)
    mags = np.asarray([m for m in magnitudes if m is not None and m > 0], dtype=np.float64)

    if mags.size < MIN_HISTORICAL_EVENTS:
        logger.info(
            "Only %d historical event(s): using low-seismicity generator", mags.size,
        )
        lo, hi = _LOW_SEISMICITY_MAG_RANGE
        members = [
            lo + gen.random() * (hi - lo) if gen.random() < _LOW_SEISMICITY_EVENT_PROB else 0.0
            for _ in range(n_members)
        ]
        return EnsembleResult.from_values(members, ENSEMBLE_LABEL)

    window_rate = daily_event_rate(mags.size, lookback_years) * window_days

    members = []
    for _ in range(n_members):
        n_events = poisson_sample(window_rate, gen)
        if n_events == 0:
            members.append(0.0)
            continue
        picks = gen.integers(0, mags.size, size=n_events)
        members.append(float(mags[picks].max()))

    return EnsembleResult.from_values(members, ENSEMBLE_LABEL)


def daily_max_magnitude(
    events: Sequence[EarthquakeEvent],
    start: date,
    end: date,
    window_days: int = 7,
) -> list[tuple[date, float]]:
    """Daily series of the largest magnitude within a window centred on each day.

    Days with no event in their window get 0.0.
    """
    half = timedelta(days=window_days // 2)
    ordered = sorted(events, key=lambda e: e.time)
    series: list[tuple[date, float]] = []

    day = start
    while day <= end:
        midnight = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
        lo, hi = midnight - half, midnight + half
        max_mag = 0.0
        for event in ordered:
            if event.time > hi:
                break
            if event.time >= lo and event.magnitude > max_mag:
                max_mag = event.magnitude
        series.append((day, max_mag))
        day += timedelta(days=1)

    return series
