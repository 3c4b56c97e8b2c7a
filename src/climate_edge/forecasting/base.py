"""Distribution shapes shared by the builders and the probability engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Sequence

from climate_edge.profiles import Metric

logger = logging.getLogger(__name__)

# Models returning fewer members than this are discarded before pooling
MIN_MODEL_MEMBERS = 3

# Pools smaller than this fall back to the normal distribution
MIN_POOLED_MEMBERS = 5


@dataclass(frozen=True)
class EnsembleResult:
    """Member values from one model run or synthetic builder.

    Attributes:
        members: one scalar per ensemble member, in the metric's primary unit
        label: source model id (e.g. "ecmwf_ifs025", "usgs_historical_frequency")
    """

    members: tuple[float, ...]
    label: str

    @classmethod
    def from_values(cls, values: Iterable[float], label: str) -> EnsembleResult:
        return cls(members=tuple(float(v) for v in values), label=label)

    @property
    def member_count(self) -> int:
        return len(self.members)


@dataclass(frozen=True)
class PooledEnsemble:
    """Members pooled across every model that returned usable data."""

    members: tuple[float, ...]
    per_model: tuple[EnsembleResult, ...]
    label: str

    @property
    def member_count(self) -> int:
        return len(self.members)


def pool_ensembles(results: Sequence[EnsembleResult | None]) -> PooledEnsemble | None:
    """Pool per-model results into one member list.

    Models with fewer than MIN_MODEL_MEMBERS members are dropped. Returns
    None when nothing survives or the pool is smaller than MIN_POOLED_MEMBERS.
    """
    usable: list[EnsembleResult] = []
    for result in results:
        if result is None:
            continue
        if result.member_count < MIN_MODEL_MEMBERS:
            logger.info(
                "Discarding %s: only %d member(s)", result.label, result.member_count,
            )
            continue
        usable.append(result)

    if not usable:
        return None

    pooled: list[float] = []
    for result in usable:
        pooled.extend(result.members)

    if len(pooled) < MIN_POOLED_MEMBERS:
        return None

    return PooledEnsemble(
        members=tuple(pooled),
        per_model=tuple(usable),
        label="+".join(r.label for r in usable),
    )


@dataclass(frozen=True)
class ForecastData:
    """Everything the probability engine needs for one location and date.

    Fetched once and shared read-only across every bucket of an event.

    Attributes:
        metric: metric the values are measured in (primary unit)
        mean: central forecast value, used by the normal fallback
        sigma: normal-fallback uncertainty
        ensemble: pooled members, or None when no ensemble is available
        target_date: resolution date
        sources: human-readable data sources
    """

    metric: Metric
    mean: float
    sigma: float
    ensemble: PooledEnsemble | None = None
    target_date: date | None = None
    sources: tuple[str, ...] = field(default_factory=tuple)
