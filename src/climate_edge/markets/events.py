"""Event definitions: one event, many sub-markets sharing a forecast.

Events are read from JSON files shaped like::

    {
      "title": "Highest temperature in New York on October 20?",
      "metric": "temperature",              # optional, detected from title
      "lat": 40.71, "lon": -74.01,          # omitted for global metrics
      "resolution_time": "2026-10-20T18:00:00Z",
      "markets": [
        {"label": "≥30°C", "rule_type": "above_below",
         "threshold_low": 30.0, "yes_price": 0.42}
      ]
    }

Thresholds are in the metric's primary unit.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from climate_edge.common.errors import BucketDefinitionError
from climate_edge.markets.buckets import Bucket, bucket_from_market
from climate_edge.profiles import MetricProfile, detect_metric, get_profile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubMarket:
    """One sub-market. A malformed definition keeps its error instead of a bucket."""

    label: str
    bucket: Bucket | None = None
    yes_price: float | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class EventDefinition:
    title: str
    profile: MetricProfile
    lat: float | None
    lon: float | None
    resolution_time: datetime
    markets: tuple[SubMarket, ...]

    @property
    def valid_markets(self) -> list[SubMarket]:
        return [m for m in self.markets if m.ok]

    @property
    def buckets(self) -> list[Bucket]:
        return [m.bucket for m in self.valid_markets]  # type: ignore[misc]

    @property
    def prices(self) -> list[float]:
        return [m.yes_price for m in self.valid_markets]  # type: ignore[misc]


def _optional_float(raw: dict, key: str) -> float | None:
    value = raw.get(key)
    return None if value is None else float(value)


def _parse_market(index: int, raw: dict) -> SubMarket:
    label = str(raw.get("label") or f"market-{index}")
    try:
        if raw.get("yes_price") is None:
            raise ValueError(f"market #{index} is missing 'yes_price'")
        bucket = bucket_from_market(
            label=label,
            rule_type=str(raw.get("rule_type", "")),
            threshold_low=_optional_float(raw, "threshold_low"),
            threshold_high=_optional_float(raw, "threshold_high"),
        )
        yes_price = float(raw["yes_price"])
    except (BucketDefinitionError, ValueError, TypeError) as exc:
        logger.warning("Skipping sub-market %r: %s", label, exc)
        return SubMarket(label=label, error=str(exc))
    return SubMarket(label=label, bucket=bucket, yes_price=yes_price)


def parse_event(raw: dict) -> EventDefinition:
    """Validate a raw event dict.

    A malformed sub-market does not reject the event: it is kept with its
    error so the remaining sub-markets can still be scored.

    Raises:
        ValueError: for missing event-level fields or an empty market list.
        UnsupportedMetricError: for an unknown or undetectable metric.
    """
    title = str(raw.get("title", ""))
    metric_key = raw.get("metric")
    profile = get_profile(metric_key if metric_key else detect_metric(title))

    if "resolution_time" not in raw:
        raise ValueError("event is missing 'resolution_time'")
    resolution_time = datetime.fromisoformat(str(raw["resolution_time"]).replace("Z", "+00:00"))

    raw_markets = raw.get("markets") or []
    if not raw_markets:
        raise ValueError("event has no 'markets'")

    markets = [_parse_market(i, m) for i, m in enumerate(raw_markets)]

    return EventDefinition(
        title=title,
        profile=profile,
        lat=_optional_float(raw, "lat"),
        lon=_optional_float(raw, "lon"),
        resolution_time=resolution_time,
        markets=tuple(markets),
    )


def load_event(path: Path) -> EventDefinition:
    with path.open(encoding="utf-8") as f:
        return parse_event(json.load(f))
