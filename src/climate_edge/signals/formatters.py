"""Output formatters: Rich tables and JSON for signals and backtests."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Sequence

from rich.console import Console
from rich.table import Table

from climate_edge.backtest.models import BacktestOutput, ScenarioSummary
from climate_edge.signals.models import Recommendation, SignalOutcome
from climate_edge.storage import RunRecord

_SIDE_COLORS = {
    Recommendation.BUY_YES: "green",
    Recommendation.BUY_NO: "red",
    Recommendation.NO_TRADE: "dim",
}


def format_signal_table(
    outcomes: Sequence[SignalOutcome],
    title: str = "Signals",
    console: Console | None = None,
) -> None:
    """Print one row per bucket, in bucket order."""
    if console is None:
        console = Console()

    if not outcomes:
        console.print("[yellow]No buckets to score.[/yellow]")
        return

    table = Table(
        title=title,
        caption=f"Generated at {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}",
        show_lines=True,
    )
    table.add_column("Bucket")
    table.add_column("Side", style="bold", no_wrap=True, min_width=8)
    table.add_column("Model P", justify="right", no_wrap=True)
    table.add_column("Market", justify="right", no_wrap=True)
    table.add_column("Edge", justify="right", no_wrap=True)
    table.add_column("Kelly %", justify="right", no_wrap=True)
    table.add_column("Size $", justify="right", no_wrap=True)
    table.add_column("Method")

    for o in outcomes:
        if not o.ok:
            table.add_row(o.label, "[red]ERROR[/red]", "", "", "", "", "", o.error or "")
            continue
        s = o.signal
        color = _SIDE_COLORS[s.recommendation]  # type: ignore[union-attr]
        edge_color = "green" if s.edge > 0 else "red"  # type: ignore[union-attr]
        table.add_row(
            o.label,
            f"[{color}]{s.recommendation.value}[/{color}]",  # type: ignore[union-attr]
            f"{s.model_prob:.1%}",  # type: ignore[union-attr]
            f"{s.market_price:.1%}",  # type: ignore[union-attr]
            f"[{edge_color}]{s.edge:+.1%}[/{edge_color}]",  # type: ignore[union-attr]
            f"{s.kelly_fraction:.1%}",  # type: ignore[union-attr]
            f"{s.suggested_size:.2f}",  # type: ignore[union-attr]
            o.probability.method if o.probability else "",
        )

    console.print(table)
    trades = sum(1 for o in outcomes if o.ok and o.signal.is_trade)  # type: ignore[union-attr]
    console.print(f"\n[dim]{trades} trade(s) across {len(outcomes)} bucket(s)[/dim]")


def format_rationale(outcomes: Sequence[SignalOutcome], console: Console | None = None) -> None:
    if console is None:
        console = Console()
    for o in outcomes:
        if not o.rationale:
            continue
        console.print(f"[bold]{o.label}[/bold]")
        for line in o.rationale:
            console.print(f"  {line}")


def format_signals_json(outcomes: Sequence[SignalOutcome]) -> str:
    return json.dumps([o.to_dict() for o in outcomes], indent=2, ensure_ascii=False)


def _format_scenario(summary: ScenarioSummary, unit: str, console: Console) -> None:
    m = summary.metrics
    pnl_color = "green" if m.total_pnl >= 0 else "red"

    table = Table(title=f"{summary.name}", caption=summary.description, show_lines=False)
    table.add_column("Metric", width=22)
    table.add_column("Value", justify="right", width=14)
    rows = [
        ("Total P&L", f"[{pnl_color}]${m.total_pnl:,.2f}[/{pnl_color}]"),
        ("Invested", f"${m.total_invested:,.2f}"),
        ("ROI", f"{m.roi_pct:.1f}%"),
        ("Trades", str(m.total_trades)),
        ("Win rate", f"{m.win_rate_pct:.1f}% ({m.wins}W/{m.losses}L)"),
        ("Avg |edge|", f"{m.avg_edge_pct:.1f}%"),
        ("Avg P&L / trade", f"${m.avg_pnl_per_trade:,.2f}"),
        ("Sharpe", f"{m.sharpe:.2f}"),
        ("Max drawdown", f"${m.max_drawdown:,.2f}"),
        ("Profit factor", f"{m.profit_factor:.2f}"),
        ("Longest losing streak", str(m.longest_losing_streak)),
        ("Best trade", f"${m.best_trade.pnl:,.2f} {m.best_trade.location} {m.best_trade.date}"),
        ("Worst trade", f"${m.worst_trade.pnl:,.2f} {m.worst_trade.location} {m.worst_trade.date}"),
    ]
    for name, value in rows:
        table.add_row(name, value)
    console.print(table)

    if summary.location_breakdown:
        loc_table = Table(title="By location", show_lines=False)
        loc_table.add_column("Location", width=16)
        loc_table.add_column("P&L", justify="right", width=10)
        loc_table.add_column("Win %", justify="right", width=7)
        loc_table.add_column("Trades", justify="right", width=7)
        for row in summary.location_breakdown:
            loc_table.add_row(row.location, f"${row.pnl:,.2f}", f"{row.win_rate_pct:.1f}", str(row.trades))
        console.print(loc_table)

    if summary.calibration:
        cal_table = Table(title=f"Calibration ({unit})", show_lines=False)
        cal_table.add_column("Decile", width=9)
        cal_table.add_column("Predicted %", justify="right", width=11)
        cal_table.add_column("Actual %", justify="right", width=9)
        cal_table.add_column("n", justify="right", width=6)
        for b in summary.calibration:
            cal_table.add_row(b.label, f"{b.predicted_pct:.1f}", f"{b.actual_pct:.1f}", str(b.count))
        console.print(cal_table)


def format_backtest(output: BacktestOutput, unit: str, console: Console | None = None) -> None:
    if console is None:
        console = Console()

    cfg = output.config
    console.print(
        f"[bold]{cfg.metric.value}[/bold] backtest {cfg.start} -> {cfg.end}, "
        f"{len(cfg.locations)} location(s), ${cfg.base_size:g} bankroll, "
        f"{cfg.fee_bps:g}+{cfg.slippage_bps:g} bps"
    )
    if not output.scenarios:
        console.print("[yellow]No scenario produced any trades.[/yellow]")
        return
    for summary in output.scenarios:
        _format_scenario(summary, unit, console)


def format_backtest_json(output: BacktestOutput) -> str:
    return json.dumps(output.to_dict(), indent=2, ensure_ascii=False)


def format_runs_table(records: Sequence[RunRecord], console: Console | None = None) -> None:
    if console is None:
        console = Console()

    if not records:
        console.print("[yellow]No runs stored yet.[/yellow]")
        return

    table = Table(title="Stored runs", show_lines=False)
    table.add_column("Run ID", no_wrap=True)
    table.add_column("Kind")
    table.add_column("Batch")
    table.add_column("Label")
    table.add_column("Created")
    for r in records:
        label = str(r.payload.get("label") or r.payload.get("title") or "")
        table.add_row(r.run_id, r.kind, (r.batch_id or "")[:12], label[:60], r.created_at[:19])
    console.print(table)
