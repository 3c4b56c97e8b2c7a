"""Tests for Rich table and JSON formatters."""

from __future__ import annotations

import io
import json
from datetime import date, datetime, timezone

import pytest
from rich.console import Console

from climate_edge.backtest.models import BacktestConfig, BacktestOutput, TradeResult
from climate_edge.backtest.summary import summarize
from climate_edge.profiles import Location, Metric
from climate_edge.signals.compute import compute_signal
from climate_edge.signals.formatters import (
    format_backtest,
    format_backtest_json,
    format_rationale,
    format_runs_table,
    format_signal_table,
    format_signals_json,
)
from climate_edge.signals.models import Recommendation
from climate_edge.storage import RunRecord

COSTS = dict(fee_bps=100, slippage_bps=50, min_edge=0.03, bankroll=100.0, confidence=70.0)


def _console() -> Console:
    return Console(file=io.StringIO(), width=200, force_terminal=False)


@pytest.fixture
def outcomes(hot_buckets, ensemble_forecast):
    return compute_signal(hot_buckets, ensemble_forecast, [0.2, 1.5, 0.3], **COSTS)


@pytest.fixture
def backtest_output():
    config = BacktestConfig(
        metric=Metric.TEMPERATURE,
        start=date(2024, 1, 1), end=date(2024, 1, 31),
        fee_bps=100.0, slippage_bps=50.0, base_size=100.0, confidence=70.0,
        min_edge=0.03, max_trades_per_event=3,
        climate_start=date(2020, 1, 1), climate_end=date(2023, 12, 31),
        locations=(Location("Testville", 0.0, 0.0),),
    )
    results = [
        TradeResult(
            date=date(2024, 1, d), location="Testville", bucket_label="30-32°F",
            side=Recommendation.BUY_YES, model_prob=0.4, market_price=0.2, edge=0.185,
            kelly_fraction=0.25, size=8.75, resolved_yes=d % 2 == 0,
            pnl=6.87 if d % 2 == 0 else -1.88, won=d % 2 == 0,
        )
        for d in range(1, 11)
    ]
    summary = summarize("Climatological Market", "base rates", results)
    return BacktestOutput(config=config, computed_at=datetime(2024, 2, 1, tzinfo=timezone.utc), scenarios=[summary])


class TestSignalFormatters:
    def test_table_lists_every_bucket(self, outcomes):
        console = _console()
        format_signal_table(outcomes, title="NYC July 4", console=console)
        text = console.file.getvalue()
        assert "NYC July 4" in text
        assert "≥30°C" in text
        assert "ERROR" in text
        assert "BUY_YES" in text

    def test_empty(self):
        console = _console()
        format_signal_table([], console=console)
        assert "No buckets" in console.file.getvalue()

    def test_rationale(self, outcomes):
        console = _console()
        format_rationale(outcomes, console)
        assert "Market implied" in console.file.getvalue()

    def test_json(self, outcomes):
        data = json.loads(format_signals_json(outcomes))
        assert len(data) == 3
        assert data[1]["error"] is not None
        assert data[2]["signal"]["recommendation"] == "BUY_YES"
        assert data[2]["probability"]["method"] == "ensemble"


class TestBacktestFormatters:
    def test_table(self, backtest_output):
        console = _console()
        format_backtest(backtest_output, "°C", console)
        text = console.file.getvalue()
        assert "Climatological Market" in text
        assert "Profit factor" in text
        assert "Calibration" in text

    def test_no_scenarios(self, backtest_output):
        empty = BacktestOutput(config=backtest_output.config, computed_at=backtest_output.computed_at, scenarios=[])
        console = _console()
        format_backtest(empty, "°C", console)
        assert "No scenario produced any trades" in console.file.getvalue()

    def test_json(self, backtest_output):
        data = json.loads(format_backtest_json(backtest_output))
        assert data["config"]["metric"] == "temperature"
        [scenario] = data["scenarios"]
        assert scenario["metrics"]["total_trades"] == 10
        assert scenario["metrics"]["wins"] == 5
        assert len(scenario["daily_pnl"]) == 10


def test_runs_table():
    records = [
        RunRecord("abc123", "signal", "batch1", {"label": "≥30°C"}, "2026-07-01T00:00:00+00:00", "2026-07-01T00:00:00+00:00"),
    ]
    console = _console()
    format_runs_table(records, console)
    text = console.file.getvalue()
    assert "abc123" in text and "≥30°C" in text

    console = _console()
    format_runs_table([], console)
    assert "No runs stored" in console.file.getvalue()
