"""Outcome buckets: construction and resolution.

Thresholds are always stored in the metric's primary unit. Labels use the
display unit, which is what the markets themselves quote.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from climate_edge.common.errors import BucketDefinitionError
from climate_edge.forecasting.utils import percentile
from climate_edge.profiles import MetricProfile

# Climatology percentiles that anchor the open tails
_LOW_PERCENTILE = 5
_HIGH_PERCENTILE = 95

# Events with fewer buckets than this are skipped by the backtest
MIN_BUCKETS = 3


class BucketKind(Enum):
    OPEN_TAIL = "open_tail"  # single-sided: value >= low, or value <= high
    CLOSED_RANGE = "closed_range"  # low <= value <= high (or < high when half-open)


@dataclass(frozen=True)
class Bucket:
    """One outcome of a market.

    Attributes:
        label: display label (e.g. "60-62°F", "≥6.0 M")
        kind: open tail or closed range
        low: lower bound, primary unit (None for a "≤ high" tail)
        high: upper bound, primary unit (None for a "≥ low" tail)
        high_inclusive: False makes the upper bound exclusive, so buckets
            generated as a partition never share an edge value
    """

    label: str
    kind: BucketKind
    low: float | None = None
    high: float | None = None
    high_inclusive: bool = True

    def __post_init__(self) -> None:
        if self.kind == BucketKind.OPEN_TAIL:
            if (self.low is None) == (self.high is None):
                raise BucketDefinitionError(
                    f"Open-tail bucket {self.label!r} must set exactly one bound "
                    f"(low={self.low}, high={self.high})"
                )
        elif self.kind == BucketKind.CLOSED_RANGE:
            if self.low is None or self.high is None:
                raise BucketDefinitionError(
                    f"Closed-range bucket {self.label!r} must set both bounds "
                    f"(low={self.low}, high={self.high})"
                )
            if self.low > self.high:
                raise BucketDefinitionError(
                    f"Closed-range bucket {self.label!r} has low {self.low} > high {self.high}"
                )
            if not self.high_inclusive and self.low >= self.high:
                raise BucketDefinitionError(
                    f"Half-open bucket {self.label!r} is empty (low {self.low}, high {self.high})"
                )
        for bound in (self.low, self.high):
            if bound is not None and math.isnan(bound):
                raise BucketDefinitionError(f"Bucket {self.label!r} has a NaN bound")

    @classmethod
    def at_least(cls, label: str, low: float) -> Bucket:
        return cls(label=label, kind=BucketKind.OPEN_TAIL, low=low)

    @classmethod
    def at_most(cls, label: str, high: float) -> Bucket:
        return cls(label=label, kind=BucketKind.OPEN_TAIL, high=high)

    @classmethod
    def between(cls, label: str, low: float, high: float) -> Bucket:
        return cls(label=label, kind=BucketKind.CLOSED_RANGE, low=low, high=high)

    @classmethod
    def below(cls, label: str, high: float) -> Bucket:
        return cls(label=label, kind=BucketKind.OPEN_TAIL, high=high, high_inclusive=False)

    @classmethod
    def half_open(cls, label: str, low: float, high: float) -> Bucket:
        return cls(label=label, kind=BucketKind.CLOSED_RANGE, low=low, high=high, high_inclusive=False)

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "kind": self.kind.value,
            "low": self.low,
            "high": self.high,
            "high_inclusive": self.high_inclusive,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Bucket:
        return cls(
            label=data["label"],
            kind=BucketKind(data["kind"]),
            low=data.get("low"),
            high=data.get("high"),
            high_inclusive=data.get("high_inclusive", True),
        )


def resolves(value: float, bucket: Bucket) -> bool:
    """Whether an observed value falls in the bucket.

    The lower bound is always inclusive. The upper bound is inclusive unless
    the bucket was built half-open.
    """
    if bucket.kind == BucketKind.OPEN_TAIL:
        if bucket.low is not None and bucket.high is None:
            return value >= bucket.low
        if bucket.high is not None and bucket.low is None:
            return value <= bucket.high if bucket.high_inclusive else value < bucket.high
    elif bucket.kind == BucketKind.CLOSED_RANGE:
        if bucket.low is not None and bucket.high is not None:
            if bucket.high_inclusive:
                return bucket.low <= value <= bucket.high
            return bucket.low <= value < bucket.high
    # Unreachable for buckets built through __post_init__
    raise BucketDefinitionError(f"Malformed bucket {bucket!r}")


def _fmt(value: float) -> str:
    """Compact number for labels: 60 -> '60', 0.25 -> '0.25'."""
    return f"{value:g}"


def _join_unit(number: str, unit: str) -> str:
    # Degree units attach directly, others take a space
    return f"{number}{unit}" if unit.startswith("°") else f"{number} {unit}"


def _round_to(value: float, step: float) -> float:
    # Absorbs float noise from floor/ceil multiples (0.30000000000000004 -> 0.3)
    return round(value / step) * step if step >= 1 else round(value, 10)


def percentile_buckets(values: Sequence[float], profile: MetricProfile, width: float) -> list[Bucket]:
    """Open tails at the rounded 5th/95th percentile, fixed-width ranges between.

    Percentiles and widths are in the display unit. Ranges are half-open
    ``[start, stop)`` and the low tail is ``< lo``, so every real value lands
    in exactly one bucket, including values on an edge.
    """
    display = [profile.to_display(v) for v in values]
    p_low = percentile(display, _LOW_PERCENTILE)
    p_high = percentile(display, _HIGH_PERCENTILE)
    lo = _round_to(math.floor(p_low / width) * width, width)
    hi = _round_to(math.ceil(p_high / width) * width, width)
    unit = profile.display_unit

    buckets = [Bucket.below(f"<{_join_unit(_fmt(lo), unit)}", profile.from_display(lo))]
    n_ranges = int(round((hi - lo) / width))
    for i in range(n_ranges):
        start = _round_to(lo + i * width, width)
        stop = _round_to(start + width, width)
        buckets.append(
            Bucket.half_open(
                f"{_fmt(start)}-{_join_unit(_fmt(stop), unit)}",
                profile.from_display(start),
                profile.from_display(stop),
            )
        )
    buckets.append(Bucket.at_least(f"≥{_join_unit(_fmt(hi), unit)}", profile.from_display(hi)))
    return buckets


def fixed_edge_buckets(edges: Sequence[float], profile: MetricProfile) -> list[Bucket]:
    """Contiguous half-open buckets from fixed primary-unit edges.

    Labels use the display unit unless the scheme asks for the primary one
    (rainfall edges like 0.1 mm have no readable inch form).
    """
    if len(edges) < 2:
        raise BucketDefinitionError(f"Need at least 2 edges, got {len(edges)}")
    in_primary = profile.bucket_scheme.label_in_primary
    unit = profile.primary_unit if in_primary else profile.display_unit

    def label(v: float) -> str:
        return _fmt(round(v if in_primary else profile.to_display(v), 2))

    buckets = [Bucket.below(f"<{_join_unit(label(edges[0]), unit)}", edges[0])]
    for start, stop in zip(edges, edges[1:]):
        buckets.append(
            Bucket.half_open(f"{label(start)}-{_join_unit(label(stop), unit)}", start, stop)
        )
    buckets.append(Bucket.at_least(f"≥{_join_unit(label(edges[-1]), unit)}", edges[-1]))
    return buckets


def threshold_buckets(thresholds: Sequence[float], profile: MetricProfile) -> list[Bucket]:
    """Independent "at least X" binary markets (not a partition)."""
    return [
        Bucket.at_least(f"≥{t:.1f} {profile.display_unit}", t)
        for t in thresholds
    ]


def climatological_buckets(values: Sequence[float], profile: MetricProfile) -> list[Bucket]:
    """Build the bucket set for one event from a climatological sample.

    Callers should skip the event when fewer than MIN_BUCKETS come back.
    """
    scheme = profile.bucket_scheme
    if scheme.width is not None:
        if len(values) == 0:
            return []
        return percentile_buckets(values, profile, scheme.width)
    if scheme.edges:
        return fixed_edge_buckets(scheme.edges, profile)
    if scheme.thresholds:
        return threshold_buckets(scheme.thresholds, profile)
    raise BucketDefinitionError(f"Profile {profile.metric.value} has no bucket scheme")


def bucket_from_market(
    label: str,
    rule_type: str,
    threshold_low: float | None,
    threshold_high: float | None,
) -> Bucket:
    """Build a bucket from a market's sub-market definition.

    rule_type is "above_below" (one threshold set) or "range" (both set).
    Thresholds must already be in the primary unit.
    """
    if rule_type == "above_below":
        if threshold_low is not None and threshold_high is None:
            return Bucket.at_least(label, threshold_low)
        if threshold_high is not None and threshold_low is None:
            return Bucket.at_most(label, threshold_high)
        raise BucketDefinitionError(
            f"above_below market {label!r} must set exactly one threshold"
        )
    if rule_type == "range":
        if threshold_low is None or threshold_high is None:
            raise BucketDefinitionError(f"range market {label!r} must set both thresholds")
        return Bucket.between(label, threshold_low, threshold_high)
    raise BucketDefinitionError(f"Unknown rule_type {rule_type!r} for market {label!r}")


def describe(bucket: Bucket, unit: str) -> str:
    """Threshold description for rationale lines, e.g. 'value ≥ 30.0°C'."""
    def fmt(v: float) -> str:
        return _join_unit(f"{v:.1f}", unit)

    upper = "≤" if bucket.high_inclusive else "<"
    if bucket.kind == BucketKind.CLOSED_RANGE:
        return f"{fmt(bucket.low)} ≤ value {upper} {fmt(bucket.high)}"  # type: ignore[arg-type]
    if bucket.low is not None:
        return f"value ≥ {fmt(bucket.low)}"
    return f"value {upper} {fmt(bucket.high)}"  # type: ignore[arg-type]
