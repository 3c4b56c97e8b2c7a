"""Typer CLI: climate-edge profiles, signal, backtest, runs, resolve."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

if TYPE_CHECKING:
    from climate_edge.markets.events import EventDefinition
    from climate_edge.signals.models import SignalOutcome
    from climate_edge.signals.resolver import Resolution

app = typer.Typer(
    name="climate-edge",
    help="Probability, edge and Kelly sizing for weather and climate prediction markets",
    no_args_is_help=True,
)
console = Console()


def setup_logging(level: int = logging.WARNING) -> None:
    """Configure logging with rich formatting."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
    )


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Log fetches, fallbacks and per-location progress",
    ),
) -> None:
    setup_logging(logging.DEBUG if verbose else logging.WARNING)


@app.command()
def profiles() -> None:
    """List supported metrics and how each one is modelled."""
    from climate_edge.profiles import all_profiles

    table = Table(title="Metric profiles", show_lines=True)
    table.add_column("Metric", style="bold", no_wrap=True)
    table.add_column("Category")
    table.add_column("Unit", no_wrap=True)
    table.add_column("Data source")
    table.add_column("σ", justify="right")
    table.add_column("Backtest locations")

    for p in all_profiles():
        unit = p.primary_unit if not p.secondary_unit else f"{p.primary_unit}/{p.secondary_unit}"
        table.add_row(
            p.metric.value,
            p.category,
            unit,
            p.data_source.value,
            f"{p.default_sigma:g}",
            ", ".join(loc.name for loc in p.locations),
        )
    console.print(table)


@app.command()
def signal(
    event_file: Path = typer.Argument(help="JSON event definition with its sub-markets"),
    output: str = typer.Option(
        "table", "--output", "-o",
        help="Output format: table, json",
    ),
    min_edge: Optional[float] = typer.Option(
        None, "--min-edge",
        help="Override minimum edge threshold (e.g. 0.05 for 5%)",
    ),
    fee_bps: Optional[float] = typer.Option(None, "--fee-bps", help="Override fee in bps"),
    slippage_bps: Optional[float] = typer.Option(
        None, "--slippage-bps", help="Override slippage in bps",
    ),
    bankroll: Optional[float] = typer.Option(
        None, "--bankroll", help="Override bankroll used for Kelly sizing",
    ),
    confidence: Optional[float] = typer.Option(
        None, "--confidence", help="Override confidence (0-100)",
    ),
    explain: bool = typer.Option(
        False, "--explain", "-e",
        help="Print the rationale behind every bucket",
    ),
    save: bool = typer.Option(False, "--save", "-s", help="Store the signals for later resolution"),
) -> None:
    """Price every sub-market of one event from a single shared forecast."""
    from climate_edge.common.errors import ClimateEdgeError
    from climate_edge.config import get_settings
    from climate_edge.markets.events import load_event
    from climate_edge.signals.analyzer import check_trade_params
    from climate_edge.signals.formatters import (
        format_rationale,
        format_signal_table,
        format_signals_json,
    )

    try:
        event = load_event(event_file)
    except (OSError, ValueError, ClimateEdgeError) as exc:
        console.print(f"[red]Invalid event file {event_file}: {exc}[/red]")
        raise typer.Exit(1)

    settings = get_settings()
    params = {
        "fee_bps": fee_bps if fee_bps is not None else settings.fee_bps,
        "slippage_bps": slippage_bps if slippage_bps is not None else settings.slippage_bps,
        "min_edge": min_edge if min_edge is not None else settings.min_edge,
        "bankroll": bankroll if bankroll is not None else settings.base_size,
        "confidence": confidence if confidence is not None else settings.confidence,
    }
    try:
        check_trade_params(**params)
    except ValueError as exc:
        console.print(f"[red]Invalid parameters: {exc}[/red]")
        raise typer.Exit(1)

    async def _run() -> None:
        from climate_edge.signals.compute import compute_event_signals, fetch_forecast_data

        try:
            forecast = await fetch_forecast_data(
                event.profile, event.lat, event.lon, event.resolution_time, event.title,
            )
        except (ValueError, ClimateEdgeError) as exc:
            console.print(f"[red]Could not build a forecast: {exc}[/red]")
            raise typer.Exit(1)

        outcomes = compute_event_signals(event, forecast, **params)

        if output == "json":
            typer.echo(format_signals_json(outcomes))
        else:
            format_signal_table(outcomes, title=event.title or "Signals", console=console)
            if explain:
                format_rationale(outcomes, console)

        if save:
            await _save_signals(event, outcomes, params)

    asyncio.run(_run())


async def _save_signals(
    event: EventDefinition, outcomes: list[SignalOutcome], params: dict,
) -> None:
    import uuid

    from climate_edge.storage import RunStore

    store = RunStore()
    batch_id = uuid.uuid4().hex
    saved = 0
    for market, outcome in zip(event.markets, outcomes):
        if not outcome.ok:
            continue
        await store.save(
            "signal",
            {
                "title": event.title,
                "metric": event.profile.metric.value,
                "lat": event.lat,
                "lon": event.lon,
                "resolution_time": event.resolution_time.isoformat(),
                "label": outcome.label,
                "bucket": market.bucket.to_dict(),  # type: ignore[union-attr]
                "fee_bps": params["fee_bps"],
                "slippage_bps": params["slippage_bps"],
                "outcome": outcome.to_dict(),
                "resolution": None,
            },
            batch_id=batch_id,
        )
        saved += 1
    console.print(f"[green]Saved {saved} signal(s), batch {batch_id}[/green]")


@app.command()
def backtest(
    metric: str = typer.Option(..., "--metric", "-m", help="Metric key, e.g. temperature"),
    start: Optional[datetime] = typer.Option(
        None, "--start", formats=["%Y-%m-%d"], help="First backtest date",
    ),
    end: Optional[datetime] = typer.Option(
        None, "--end", formats=["%Y-%m-%d"], help="Last backtest date",
    ),
    min_edge: Optional[float] = typer.Option(None, "--min-edge", help="Override minimum edge"),
    fee_bps: Optional[float] = typer.Option(None, "--fee-bps", help="Override fee in bps"),
    slippage_bps: Optional[float] = typer.Option(
        None, "--slippage-bps", help="Override slippage in bps",
    ),
    base_size: Optional[float] = typer.Option(
        None, "--base-size", help="Override bankroll per trade decision",
    ),
    confidence: Optional[float] = typer.Option(
        None, "--confidence", help="Override confidence (0-100)",
    ),
    output: str = typer.Option("table", "--output", "-o", help="Output format: table, json"),
    save: bool = typer.Option(False, "--save", "-s", help="Store the backtest output"),
) -> None:
    """Replay the strategy against simulated markets for one metric."""
    from climate_edge.backtest.models import BacktestConfig
    from climate_edge.common.errors import ClimateEdgeError
    from climate_edge.profiles import get_profile
    from climate_edge.signals.formatters import format_backtest, format_backtest_json

    try:
        profile = get_profile(metric)
        config = BacktestConfig.from_settings(
            profile.metric,
            start=start.date() if start else None,
            end=end.date() if end else None,
            min_edge=min_edge,
            fee_bps=fee_bps,
            slippage_bps=slippage_bps,
            base_size=base_size,
            confidence=confidence,
        )
    except (ValueError, ClimateEdgeError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)

    async def _run() -> None:
        from climate_edge.backtest.engine import run_backtest

        try:
            result = await run_backtest(config)
        except ClimateEdgeError as exc:
            console.print(f"[red]Backtest failed: {exc}[/red]")
            raise typer.Exit(1)

        if output == "json":
            typer.echo(format_backtest_json(result))
        else:
            format_backtest(result, profile.primary_unit, console)

        if save:
            from climate_edge.storage import RunStore

            run_id = await RunStore().save("backtest", result.to_dict())
            console.print(f"[green]Saved backtest {run_id}[/green]")

    asyncio.run(_run())


@app.command()
def runs(
    kind: Optional[str] = typer.Option(None, "--kind", "-k", help="Filter: signal or backtest"),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of runs to show"),
) -> None:
    """List recently stored runs."""

    async def _run() -> None:
        from climate_edge.signals.formatters import format_runs_table
        from climate_edge.storage import RunStore

        records = await RunStore().recent(kind=kind, limit=limit)
        format_runs_table(records, console)

    asyncio.run(_run())


@app.command()
def resolve(
    run_id: str = typer.Argument(help="Stored signal id, or a batch id to resolve every signal in it"),
) -> None:
    """Settle stored signals against the observed outcome."""

    async def _run() -> None:
        from climate_edge.common.errors import ClimateEdgeError
        from climate_edge.storage import RunStore

        store = RunStore()
        record = await store.get(run_id)
        records = [record] if record is not None else await store.list_batch(run_id)
        records = [r for r in records if r.kind == "signal"]
        if not records:
            console.print(f"[red]No stored signal or batch {run_id}[/red]")
            raise typer.Exit(1)

        table = Table(title="Resolutions", show_lines=False)
        table.add_column("Bucket")
        table.add_column("Side", no_wrap=True)
        table.add_column("Observed", justify="right")
        table.add_column("Resolved")
        table.add_column("P&L", justify="right", no_wrap=True)

        for r in records:
            if r.payload.get("resolution") is not None:
                res = r.payload["resolution"]
                table.add_row(
                    r.payload["label"], r.payload["outcome"]["signal"]["recommendation"],
                    f"{res['observed_value']:g}", "YES" if res["resolved_yes"] else "NO",
                    f"{res['pnl']:+.2f} (cached)",
                )
                continue
            try:
                resolution = await _resolve_record(r.payload)
            except (ValueError, ClimateEdgeError) as exc:
                console.print(f"[yellow]{r.payload['label']}: {exc}[/yellow]")
                continue
            payload = dict(r.payload)
            payload["resolution"] = {
                "observed_value": resolution.observed_value,
                "resolved_yes": resolution.resolved_yes,
                "pnl": resolution.pnl,
            }
            await store.update(r.run_id, payload)
            color = "green" if resolution.pnl >= 0 else "red"
            table.add_row(
                r.payload["label"], r.payload["outcome"]["signal"]["recommendation"],
                f"{resolution.observed_value:g}", "YES" if resolution.resolved_yes else "NO",
                f"[{color}]{resolution.pnl:+.2f}[/{color}]",
            )

        console.print(table)

    asyncio.run(_run())


async def _resolve_record(payload: dict) -> Resolution:
    from climate_edge.markets.buckets import Bucket
    from climate_edge.profiles import get_profile
    from climate_edge.signals.models import TradeSignal
    from climate_edge.signals.resolver import fetch_observed_value, resolve_outcome

    profile = get_profile(payload["metric"])
    target = datetime.fromisoformat(payload["resolution_time"]).date()
    observed = await fetch_observed_value(profile, payload["lat"], payload["lon"], target)
    return resolve_outcome(
        TradeSignal.from_dict(payload["outcome"]["signal"]),
        Bucket.from_dict(payload["bucket"]),
        observed,
        payload["fee_bps"],
        payload["slippage_bps"],
    )
