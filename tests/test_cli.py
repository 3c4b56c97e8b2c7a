"""Tests for CLI commands with mocked dependencies."""

from __future__ import annotations

import asyncio
import json
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from climate_edge.backtest.models import BacktestConfig, BacktestOutput
from climate_edge.cli import app
from climate_edge.common.errors import FetchError
from climate_edge.forecasting.base import ForecastData
from climate_edge.profiles import Metric
from climate_edge.storage import RunStore

runner = CliRunner(env={"COLUMNS": "200"})


@pytest.fixture
def event_file(tmp_path):
    path = tmp_path / "event.json"
    path.write_text(
        json.dumps({
            "title": "Highest temperature in New York on July 4?",
            "lat": 40.71,
            "lon": -74.01,
            "resolution_time": "2026-07-04T18:00:00Z",
            "markets": [
                {"label": "≤25°C", "rule_type": "above_below", "threshold_high": 25.0, "yes_price": 0.2},
                {"label": "25-30°C", "rule_type": "range", "threshold_low": 25.0, "threshold_high": 30.0, "yes_price": 0.5},
                {"label": "≥30°C", "rule_type": "above_below", "threshold_low": 30.0, "yes_price": 0.3},
            ],
        }),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def forecast():
    return ForecastData(metric=Metric.TEMPERATURE, mean=31.0, sigma=1.5, target_date=date(2026, 7, 4))


class TestProfilesCommand:
    def test_lists_metrics(self):
        result = runner.invoke(app, ["profiles"])
        assert result.exit_code == 0
        assert "temperature" in result.output
        assert "earthquake_magnitude" in result.output


class TestSignalCommand:
    def test_json_output(self, event_file, forecast):
        with patch("climate_edge.signals.compute.fetch_forecast_data", new_callable=AsyncMock) as mock_fetch:
            mock_fetch.return_value = forecast
            result = runner.invoke(app, ["signal", str(event_file), "--output", "json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [d["label"] for d in data] == ["≤25°C", "25-30°C", "≥30°C"]
        assert data[2]["signal"]["recommendation"] == "BUY_YES"
        mock_fetch.assert_awaited_once()

    def test_table_output_with_overrides(self, event_file, forecast):
        with patch("climate_edge.signals.compute.fetch_forecast_data", new_callable=AsyncMock) as mock_fetch:
            mock_fetch.return_value = forecast
            result = runner.invoke(app, ["signal", str(event_file), "--min-edge", "0.9", "--explain"])

        assert result.exit_code == 0, result.output
        assert "NO_TRADE" in result.output
        assert "Market implied" in result.output

    def test_invalid_event_file(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        result = runner.invoke(app, ["signal", str(path)])
        assert result.exit_code == 1
        assert "Invalid event file" in result.output

    def test_malformed_sub_market_scores_siblings(self, tmp_path, forecast):
        path = tmp_path / "event.json"
        path.write_text(
            json.dumps({
                "title": "Highest temperature in New York on July 4?",
                "lat": 40.71,
                "lon": -74.01,
                "resolution_time": "2026-07-04T18:00:00Z",
                "markets": [
                    {"label": "≥30°C", "rule_type": "above_below", "threshold_low": 30.0, "yes_price": 0.3},
                    {"label": "bad", "rule_type": "range", "threshold_low": 30.0, "yes_price": 0.4},
                ],
            }),
            encoding="utf-8",
        )
        with patch("climate_edge.signals.compute.fetch_forecast_data", new_callable=AsyncMock) as mock_fetch:
            mock_fetch.return_value = forecast
            result = runner.invoke(app, ["signal", str(path), "--output", "json"])

        assert result.exit_code == 0, result.output
        good, bad = json.loads(result.output)
        assert good["signal"]["recommendation"] == "BUY_YES"
        assert bad["signal"] is None
        assert "both thresholds" in bad["error"]

    def test_out_of_range_confidence(self, event_file):
        with patch("climate_edge.signals.compute.fetch_forecast_data", new_callable=AsyncMock) as mock_fetch:
            result = runner.invoke(app, ["signal", str(event_file), "--confidence", "150"])
        assert result.exit_code == 1
        assert "Invalid parameters" in result.output
        mock_fetch.assert_not_awaited()

    def test_forecast_failure(self, event_file):
        with patch("climate_edge.signals.compute.fetch_forecast_data", new_callable=AsyncMock) as mock_fetch:
            mock_fetch.side_effect = FetchError("open-meteo down")
            result = runner.invoke(app, ["signal", str(event_file)])
        assert result.exit_code == 1
        assert "Could not build a forecast" in result.output


class TestBacktestCommand:
    def test_unknown_metric(self):
        result = runner.invoke(app, ["backtest", "--metric", "humidity"])
        assert result.exit_code == 1
        assert "Unsupported metric" in result.output

    def test_out_of_range_overrides(self):
        result = runner.invoke(app, ["backtest", "--metric", "temperature", "--fee-bps=-500"])
        assert result.exit_code == 1
        assert "fee_bps" in result.output

    def test_passes_overrides(self):
        captured = {}

        async def fake_run(config):
            captured["config"] = config
            return BacktestOutput(config=config, computed_at=datetime.now(timezone.utc), scenarios=[])

        with patch("climate_edge.backtest.engine.run_backtest", side_effect=fake_run):
            result = runner.invoke(app, [
                "backtest", "--metric", "rainfall",
                "--start", "2025-01-01", "--end", "2025-01-31", "--fee-bps", "20",
            ])

        assert result.exit_code == 0, result.output
        config: BacktestConfig = captured["config"]
        assert config.metric == Metric.RAINFALL
        assert config.start == date(2025, 1, 1)
        assert config.fee_bps == 20.0
        assert "No scenario produced any trades" in result.output

    def test_json_output(self):
        async def fake_run(config):
            return BacktestOutput(config=config, computed_at=datetime.now(timezone.utc), scenarios=[])

        with patch("climate_edge.backtest.engine.run_backtest", side_effect=fake_run):
            result = runner.invoke(app, ["backtest", "-m", "temperature", "-o", "json"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["scenarios"] == []


class TestSaveAndResolve:
    def test_round_trip(self, event_file, forecast, patched_db):
        with patch("climate_edge.signals.compute.fetch_forecast_data", new_callable=AsyncMock) as mock_fetch:
            mock_fetch.return_value = forecast
            result = runner.invoke(app, ["signal", str(event_file), "--save"])
        assert result.exit_code == 0, result.output
        assert "Saved 3 signal(s)" in result.output

        records = asyncio.run(RunStore(patched_db).recent(kind="signal"))
        assert len(records) == 3
        batch_id = records[0].batch_id

        result = runner.invoke(app, ["runs", "--kind", "signal"])
        assert result.exit_code == 0
        assert "Stored runs" in result.output

        with patch("climate_edge.signals.resolver.fetch_observed_value", new_callable=AsyncMock) as mock_obs:
            mock_obs.return_value = 32.0
            result = runner.invoke(app, ["resolve", batch_id])
        assert result.exit_code == 0, result.output
        assert mock_obs.await_count == 3

        stored = asyncio.run(RunStore(patched_db).list_batch(batch_id))
        by_label = {r.payload["label"]: r.payload["resolution"] for r in stored}
        assert by_label["≥30°C"]["resolved_yes"] is True
        assert by_label["≥30°C"]["pnl"] > 0
        assert by_label["≤25°C"]["resolved_yes"] is False

    def test_resolve_unknown_run(self, patched_db):
        result = runner.invoke(app, ["resolve", "missing"])
        assert result.exit_code == 1
        assert "No stored signal" in result.output
