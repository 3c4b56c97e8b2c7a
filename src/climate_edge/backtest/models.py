"""Backtest configuration, per-trade results and summary records."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import date, datetime

from climate_edge.config import Settings, get_settings
from climate_edge.profiles import Location, Metric, get_profile
from climate_edge.signals.analyzer import check_trade_params
from climate_edge.signals.models import Recommendation


@dataclass(frozen=True)
class BacktestConfig:
    """Parameters for one backtest run.

    Build with ``from_settings`` so unset fields pick up the configured
    defaults and the metric's default locations.
    """

    metric: Metric
    start: date
    end: date
    fee_bps: float
    slippage_bps: float
    base_size: float
    confidence: float
    min_edge: float
    max_trades_per_event: int
    climate_start: date
    climate_end: date
    locations: tuple[Location, ...]
    synthetic_members: int = 1000
    earthquake_radius_km: float = 250.0
    earthquake_lookback_years: int = 20
    earthquake_window_days: int = 7

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"start {self.start} is after end {self.end}")
        if self.climate_start > self.climate_end:
            raise ValueError(
                f"climate_start {self.climate_start} is after climate_end {self.climate_end}"
            )
        if not self.locations:
            raise ValueError("at least one location is required")
        check_trade_params(
            self.fee_bps, self.slippage_bps, self.min_edge, self.base_size, self.confidence,
        )
        if self.max_trades_per_event < 1:
            raise ValueError(f"max_trades_per_event must be >= 1, got {self.max_trades_per_event}")
        if self.synthetic_members < 1:
            raise ValueError(f"synthetic_members must be >= 1, got {self.synthetic_members}")

    @classmethod
    def from_settings(
        cls,
        metric: str | Metric,
        settings: Settings | None = None,
        **overrides: object,
    ) -> BacktestConfig:
        """Config for a metric with defaults from Settings; None overrides are ignored."""
        settings = settings or get_settings()
        profile = get_profile(metric)
        config = cls(
            metric=profile.metric,
            start=settings.backtest_start,
            end=settings.backtest_end,
            fee_bps=settings.fee_bps,
            slippage_bps=settings.slippage_bps,
            base_size=settings.base_size,
            confidence=settings.confidence,
            min_edge=settings.min_edge,
            max_trades_per_event=settings.max_trades_per_event,
            climate_start=settings.climate_start,
            climate_end=settings.climate_end,
            locations=profile.locations,
            synthetic_members=settings.synthetic_members,
            earthquake_radius_km=settings.earthquake_radius_km,
            earthquake_lookback_years=settings.earthquake_lookback_years,
            earthquake_window_days=settings.earthquake_window_days,
        )
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(config, **changes) if changes else config

    def to_dict(self) -> dict:
        profile = get_profile(self.metric)
        return {
            "metric": self.metric.value,
            "unit": profile.primary_unit,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "locations": [loc.name for loc in self.locations],
            "base_size": self.base_size,
            "fee_bps": self.fee_bps,
            "slippage_bps": self.slippage_bps,
            "min_edge": self.min_edge,
            "confidence": self.confidence,
            "max_trades_per_event": self.max_trades_per_event,
            "climate_start": self.climate_start.isoformat(),
            "climate_end": self.climate_end.isoformat(),
        }


@dataclass(frozen=True)
class TradeResult:
    """Realized outcome of one executed backtest trade."""

    date: date
    location: str
    bucket_label: str
    side: Recommendation
    model_prob: float
    market_price: float
    edge: float
    kelly_fraction: float
    size: float
    resolved_yes: bool
    pnl: float
    won: bool

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "location": self.location,
            "bucket": self.bucket_label,
            "side": self.side.value,
            "model_prob": round(self.model_prob, 4),
            "market_price": round(self.market_price, 4),
            "edge": round(self.edge, 4),
            "kelly_fraction": round(self.kelly_fraction, 4),
            "size": self.size,
            "resolved_yes": self.resolved_yes,
            "pnl": self.pnl,
            "won": self.won,
        }


@dataclass(frozen=True)
class TradeExtreme:
    pnl: float
    location: str
    date: str
    side: str
    bucket: str


@dataclass(frozen=True)
class ScenarioMetrics:
    """Headline statistics. Percentages are 0-100 rounded to one decimal."""

    total_pnl: float
    total_invested: float
    roi_pct: float
    win_rate_pct: float
    wins: int
    losses: int
    total_trades: int
    avg_edge_pct: float
    avg_pnl_per_trade: float
    sharpe: float
    max_drawdown: float
    profit_factor: float
    longest_losing_streak: int
    best_trade: TradeExtreme
    worst_trade: TradeExtreme


@dataclass(frozen=True)
class DailyPnl:
    date: str
    pnl: float
    cumulative: float


@dataclass(frozen=True)
class MonthlyPnl:
    month: str
    pnl: float
    cumulative: float
    win_rate_pct: float
    trades: int


@dataclass(frozen=True)
class LocationBreakdown:
    location: str
    pnl: float
    win_rate_pct: float
    trades: int


@dataclass(frozen=True)
class SideBreakdown:
    side: str
    pnl: float
    win_rate_pct: float
    trades: int
    avg_edge_pct: float


@dataclass(frozen=True)
class CalibrationBin:
    """Predicted vs realized YES rate for one model-probability decile."""

    label: str
    predicted_pct: float
    actual_pct: float
    count: int


@dataclass(frozen=True)
class EdgeBin:
    label: str
    count: int


@dataclass(frozen=True)
class ScenarioSummary:
    name: str
    description: str
    metrics: ScenarioMetrics
    daily_pnl: list[DailyPnl] = field(default_factory=list)
    monthly_pnl: list[MonthlyPnl] = field(default_factory=list)
    location_breakdown: list[LocationBreakdown] = field(default_factory=list)
    side_breakdown: list[SideBreakdown] = field(default_factory=list)
    calibration: list[CalibrationBin] = field(default_factory=list)
    edge_histogram: list[EdgeBin] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class BacktestOutput:
    config: BacktestConfig
    computed_at: datetime
    scenarios: list[ScenarioSummary]

    def to_dict(self) -> dict:
        return {
            "config": self.config.to_dict(),
            "computed_at": self.computed_at.isoformat(),
            "scenarios": [s.to_dict() for s in self.scenarios],
        }
