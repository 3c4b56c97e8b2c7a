"""Aggregate per-trade backtest results into scenario statistics.

Everything here is derived from the TradeResult list alone, so a summary
can be recomputed at any time.
"""

from __future__ import annotations

import math
from collections import defaultdict
from typing import Sequence

import numpy as np

from climate_edge.backtest.models import (
    CalibrationBin,
    DailyPnl,
    EdgeBin,
    LocationBreakdown,
    MonthlyPnl,
    ScenarioMetrics,
    ScenarioSummary,
    SideBreakdown,
    TradeExtreme,
    TradeResult,
)
from climate_edge.signals.models import Recommendation

TRADING_DAYS_PER_YEAR = 252

# Reported when a scenario has no losing trades
PROFIT_FACTOR_SENTINEL = 999.0

# Calibration deciles with fewer trades are suppressed
MIN_CALIBRATION_SAMPLES = 5

_EDGE_BINS: tuple[tuple[str, float, float], ...] = (
    ("3-5%", 0.03, 0.05),
    ("5-8%", 0.05, 0.08),
    ("8-12%", 0.08, 0.12),
    ("12-20%", 0.12, 0.20),
    ("20-30%", 0.20, 0.30),
    ("30%+", 0.30, math.inf),
)


def _pct(numerator: float, denominator: float) -> float:
    return round(numerator / denominator * 100, 1) if denominator > 0 else 0.0


def _daily_totals(results: Sequence[TradeResult]) -> list[tuple[str, float]]:
    by_day: dict[str, float] = defaultdict(float)
    for r in results:
        by_day[r.date.isoformat()] += r.pnl
    return sorted(by_day.items())


def sharpe_ratio(daily_pnl: Sequence[float]) -> float:
    """Annualized mean/std of daily P&L (sample std); 0 with one day or zero spread."""
    if len(daily_pnl) < 2:
        return 0.0
    arr = np.asarray(daily_pnl, dtype=np.float64)
    std = float(arr.std(ddof=1))
    if std == 0:
        return 0.0
    return float(arr.mean()) / std * math.sqrt(TRADING_DAYS_PER_YEAR)


def max_drawdown(daily_pnl: Sequence[float]) -> float:
    """Largest drop from the running peak of cumulative P&L (peak starts at 0)."""
    peak = 0.0
    cumulative = 0.0
    worst = 0.0
    for pnl in daily_pnl:
        cumulative += pnl
        peak = max(peak, cumulative)
        worst = max(worst, peak - cumulative)
    return worst


def longest_losing_streak(results: Sequence[TradeResult]) -> int:
    streak = 0
    longest = 0
    for r in sorted(results, key=lambda r: r.date):
        if r.pnl < 0:
            streak += 1
            longest = max(longest, streak)
        else:
            streak = 0
    return longest


def profit_factor(results: Sequence[TradeResult]) -> float:
    gross_profit = sum(r.pnl for r in results if r.pnl > 0)
    gross_loss = abs(sum(r.pnl for r in results if r.pnl < 0))
    if gross_loss == 0:
        return PROFIT_FACTOR_SENTINEL
    return round(gross_profit / gross_loss, 2)


def _extreme(r: TradeResult) -> TradeExtreme:
    return TradeExtreme(
        pnl=r.pnl,
        location=r.location,
        date=r.date.isoformat(),
        side=r.side.value,
        bucket=r.bucket_label,
    )


def compute_metrics(results: Sequence[TradeResult]) -> ScenarioMetrics:
    n = len(results)
    total_pnl = sum(r.pnl for r in results)
    total_invested = sum(r.size for r in results)
    wins = sum(1 for r in results if r.won)
    losses = sum(1 for r in results if not r.won and r.pnl < 0)
    daily = [pnl for _, pnl in _daily_totals(results)]

    return ScenarioMetrics(
        total_pnl=round(total_pnl, 2),
        total_invested=round(total_invested, 2),
        roi_pct=_pct(total_pnl, total_invested),
        win_rate_pct=_pct(wins, n),
        wins=wins,
        losses=losses,
        total_trades=n,
        avg_edge_pct=_pct(sum(abs(r.edge) for r in results), n),
        avg_pnl_per_trade=round(total_pnl / max(1, n), 2),
        sharpe=round(sharpe_ratio(daily), 2),
        max_drawdown=round(max_drawdown(daily), 2),
        profit_factor=profit_factor(results),
        longest_losing_streak=longest_losing_streak(results),
        best_trade=_extreme(max(results, key=lambda r: r.pnl)),
        worst_trade=_extreme(min(results, key=lambda r: r.pnl)),
    )


def daily_pnl(results: Sequence[TradeResult]) -> list[DailyPnl]:
    series = []
    cumulative = 0.0
    for day, pnl in _daily_totals(results):
        cumulative += pnl
        series.append(DailyPnl(date=day, pnl=round(pnl, 2), cumulative=round(cumulative, 2)))
    return series


def monthly_pnl(results: Sequence[TradeResult]) -> list[MonthlyPnl]:
    by_month: dict[str, list[TradeResult]] = defaultdict(list)
    for r in results:
        by_month[r.date.strftime("%Y-%m")].append(r)

    series = []
    cumulative = 0.0
    for month in sorted(by_month):
        trades = by_month[month]
        pnl = sum(r.pnl for r in trades)
        cumulative += pnl
        series.append(
            MonthlyPnl(
                month=month,
                pnl=round(pnl, 2),
                cumulative=round(cumulative, 2),
                win_rate_pct=_pct(sum(1 for r in trades if r.won), len(trades)),
                trades=len(trades),
            )
        )
    return series


def location_breakdown(results: Sequence[TradeResult]) -> list[LocationBreakdown]:
    """Per-location totals, most profitable first."""
    by_location: dict[str, list[TradeResult]] = defaultdict(list)
    for r in results:
        by_location[r.location].append(r)

    rows = [
        LocationBreakdown(
            location=name,
            pnl=round(sum(r.pnl for r in trades), 2),
            win_rate_pct=_pct(sum(1 for r in trades if r.won), len(trades)),
            trades=len(trades),
        )
        for name, trades in by_location.items()
    ]
    return sorted(rows, key=lambda row: row.pnl, reverse=True)


def side_breakdown(results: Sequence[TradeResult]) -> list[SideBreakdown]:
    rows = []
    for side in (Recommendation.BUY_YES, Recommendation.BUY_NO):
        trades = [r for r in results if r.side == side]
        rows.append(
            SideBreakdown(
                side=side.value,
                pnl=round(sum(r.pnl for r in trades), 2),
                win_rate_pct=_pct(sum(1 for r in trades if r.won), len(trades)),
                trades=len(trades),
                avg_edge_pct=_pct(sum(abs(r.edge) for r in trades), len(trades)),
            )
        )
    return rows


def calibration(results: Sequence[TradeResult]) -> list[CalibrationBin]:
    """Average predicted vs realized YES rate per model-probability decile."""
    deciles: list[list[TradeResult]] = [[] for _ in range(10)]
    for r in results:
        deciles[min(9, int(r.model_prob * 10))].append(r)

    bins = []
    for i, trades in enumerate(deciles):
        if len(trades) < MIN_CALIBRATION_SAMPLES:
            continue
        predicted = sum(r.model_prob for r in trades) / len(trades)
        bins.append(
            CalibrationBin(
                label=f"{i * 10}-{(i + 1) * 10}%",
                predicted_pct=round(predicted * 100, 1),
                actual_pct=_pct(sum(1 for r in trades if r.resolved_yes), len(trades)),
                count=len(trades),
            )
        )
    return bins


def edge_histogram(results: Sequence[TradeResult]) -> list[EdgeBin]:
    return [
        EdgeBin(label=label, count=sum(1 for r in results if lo <= abs(r.edge) < hi))
        for label, lo, hi in _EDGE_BINS
    ]


def summarize(name: str, description: str, results: Sequence[TradeResult]) -> ScenarioSummary:
    """Full scenario summary.

    Raises:
        ValueError: if ``results`` is empty (scenarios without trades are
            omitted by the engine).
    """
    if not results:
        raise ValueError(f"Scenario {name!r} has no trades to summarize")
    return ScenarioSummary(
        name=name,
        description=description,
        metrics=compute_metrics(results),
        daily_pnl=daily_pnl(results),
        monthly_pnl=monthly_pnl(results),
        location_breakdown=location_breakdown(results),
        side_breakdown=side_breakdown(results),
        calibration=calibration(results),
        edge_histogram=edge_histogram(results),
    )
