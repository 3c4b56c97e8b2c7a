"""Tests for forecast fetching, per-bucket signal computation and resolution."""

from __future__ import annotations

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from climate_edge.common.errors import FetchError, UpstreamDataError
from climate_edge.forecasting.base import EnsembleResult, ForecastData
from climate_edge.forecasting.ensemble import fetch_multi_model_ensemble
from climate_edge.markets.buckets import Bucket
from climate_edge.profiles import Metric, get_profile
from climate_edge.signals.analyzer import decide
from climate_edge.markets.events import parse_event
from climate_edge.signals.compute import compute_event_signals, compute_signal, fetch_forecast_data
from climate_edge.signals.models import Recommendation
from climate_edge.signals.resolver import fetch_observed_value, resolve_outcome
from climate_edge.weather.gistemp import GistempRecord

RESOLUTION = datetime(2026, 7, 4, 18, tzinfo=timezone.utc)

COSTS = dict(fee_bps=100, slippage_bps=50, min_edge=0.03, bankroll=100.0, confidence=70.0)


class TestMultiModelEnsemble:
    @pytest.mark.asyncio
    async def test_failed_model_is_dropped(self, temperature_profile):
        async def fake_fetch(lat, lon, target, model_id, daily_var):
            if model_id == "gfs025":
                raise FetchError("HTTP 503")
            return EnsembleResult.from_values([30.0 + i * 0.1 for i in range(51)], model_id)

        with patch("climate_edge.forecasting.ensemble.fetch_model_ensemble", side_effect=fake_fetch):
            pooled = await fetch_multi_model_ensemble(
                40.7, -74.0, date(2026, 7, 4), temperature_profile,
                models=["ecmwf_ifs025", "gfs025"],
            )

        assert pooled.member_count == 51
        assert pooled.label == "ecmwf_ifs025"

    @pytest.mark.asyncio
    async def test_all_models_fail(self, temperature_profile):
        with patch(
            "climate_edge.forecasting.ensemble.fetch_model_ensemble",
            new_callable=AsyncMock, side_effect=FetchError("down"),
        ):
            pooled = await fetch_multi_model_ensemble(
                40.7, -74.0, date(2026, 7, 4), temperature_profile, models=["a", "b"],
            )
        assert pooled is None


class TestFetchForecastData:
    @pytest.mark.asyncio
    async def test_location_required(self, temperature_profile):
        with pytest.raises(ValueError):
            await fetch_forecast_data(temperature_profile, None, None, RESOLUTION)

    @pytest.mark.asyncio
    async def test_weather_path(self, temperature_profile):
        with patch("climate_edge.signals.compute.fetch_point_forecast", new_callable=AsyncMock) as mock_point, \
             patch("climate_edge.signals.compute.fetch_multi_model_ensemble", new_callable=AsyncMock) as mock_ens:
            mock_point.return_value = 31.4
            mock_ens.return_value = None
            data = await fetch_forecast_data(temperature_profile, 40.7, -74.0, RESOLUTION)

        assert data.mean == 31.4
        assert data.sigma == temperature_profile.default_sigma
        assert data.ensemble is None
        assert data.target_date == date(2026, 7, 4)
        assert mock_point.call_args.args[2] == date(2026, 7, 4)

    @pytest.mark.asyncio
    async def test_earthquake_path(self, rng):
        quake = get_profile(Metric.EARTHQUAKE_MAGNITUDE)
        with patch("climate_edge.signals.compute.fetch_point_events", new_callable=AsyncMock) as mock_events:
            mock_events.return_value = []
            data = await fetch_forecast_data(quake, 34.05, -118.24, RESOLUTION, rng=rng)

        assert data.ensemble is not None
        assert data.ensemble.member_count == 1000
        assert data.sources[0].startswith("usgs (0 events")

    @pytest.mark.asyncio
    async def test_climate_index_path_reads_title(self, rng):
        anomaly = get_profile(Metric.CLIMATE_ANOMALY)
        series = [(y, 0.5 + 0.02 * (y - 2000)) for y in range(2000, 2026)]
        with patch("climate_edge.signals.compute.fetch_monthly_index", new_callable=AsyncMock) as mock_index:
            mock_index.return_value = series
            data = await fetch_forecast_data(
                anomaly, None, None, RESOLUTION, title="February 2027 temperature anomaly", rng=rng,
            )

        mock_index.assert_awaited_once_with(2)
        assert data.mean == pytest.approx(0.5 + 0.02 * 27)
        assert "2027-02" in data.sources[0]
        assert data.ensemble.member_count == 1000


class TestComputeSignal:
    def test_one_outcome_per_bucket(self, hot_buckets, ensemble_forecast):
        outcomes = compute_signal(hot_buckets, ensemble_forecast, [0.2, 0.5, 0.3], **COSTS)
        assert [o.label for o in outcomes] == ["≤25°C", "25-30°C", "≥30°C"]
        assert all(o.ok for o in outcomes)

        top = outcomes[2]
        assert top.probability.method == "ensemble"
        assert top.signal.recommendation == Recommendation.BUY_YES
        assert any("Pooled probability" in line for line in top.rationale)

    def test_matches_direct_decision(self, hot_buckets, ensemble_forecast):
        outcomes = compute_signal(hot_buckets, ensemble_forecast, [0.2, 0.5, 0.3], **COSTS)
        expected = decide(61 / 84, 0.3, label="≥30°C", **COSTS)
        assert outcomes[2].signal == expected

    def test_idempotent(self, hot_buckets, ensemble_forecast):
        first = compute_signal(hot_buckets, ensemble_forecast, [0.2, 0.5, 0.3], **COSTS)
        second = compute_signal(hot_buckets, ensemble_forecast, [0.2, 0.5, 0.3], **COSTS)
        assert [o.to_dict() for o in first] == [o.to_dict() for o in second]

    def test_bad_price_isolated(self, hot_buckets, normal_forecast):
        outcomes = compute_signal(hot_buckets, normal_forecast, [0.2, 1.5, 0.3], **COSTS)
        assert outcomes[0].ok and outcomes[2].ok
        assert not outcomes[1].ok
        assert "outside [0, 1]" in outcomes[1].error
        assert outcomes[2].probability.method == "normal"

    def test_length_mismatch(self, hot_buckets, normal_forecast):
        with pytest.raises(ValueError):
            compute_signal(hot_buckets, normal_forecast, [0.5], **COSTS)

    def test_no_trade_rationale(self, normal_forecast):
        bucket = Bucket.at_least("≥31°C", 31.0)
        [outcome] = compute_signal([bucket], normal_forecast, [0.5], **COSTS)
        assert outcome.signal.recommendation == Recommendation.NO_TRADE
        assert outcome.rationale[-1].endswith("no trade")


class TestComputeEventSignals:
    def test_malformed_sub_market_keeps_siblings(self, normal_forecast):
        event = parse_event({
            "title": "Highest temperature in New York on July 4?",
            "lat": 40.71,
            "lon": -74.01,
            "resolution_time": "2026-07-04T18:00:00Z",
            "markets": [
                {"label": "≤25°C", "rule_type": "above_below", "threshold_high": 25.0, "yes_price": 0.2},
                {"label": "bad", "rule_type": "range", "threshold_low": 30.0, "yes_price": 0.4},
                {"label": "≥30°C", "rule_type": "above_below", "threshold_low": 30.0, "yes_price": 0.3},
            ],
        })
        outcomes = compute_event_signals(event, normal_forecast, **COSTS)

        assert [o.label for o in outcomes] == ["≤25°C", "bad", "≥30°C"]
        assert outcomes[0].ok and outcomes[2].ok
        assert "both thresholds" in outcomes[1].error
        assert outcomes[2].signal.recommendation == Recommendation.BUY_YES

    def test_matches_compute_signal_for_valid_events(self, hot_buckets, ensemble_forecast):
        event = parse_event({
            "title": "Highest temperature in New York on July 4?",
            "resolution_time": "2026-07-04T18:00:00Z",
            "markets": [
                {"label": "≤25°C", "rule_type": "above_below", "threshold_high": 25.0, "yes_price": 0.2},
                {"label": "25-30°C", "rule_type": "range", "threshold_low": 25.0, "threshold_high": 30.0, "yes_price": 0.5},
                {"label": "≥30°C", "rule_type": "above_below", "threshold_low": 30.0, "yes_price": 0.3},
            ],
        })
        direct = compute_signal(hot_buckets, ensemble_forecast, [0.2, 0.5, 0.3], **COSTS)
        via_event = compute_event_signals(event, ensemble_forecast, **COSTS)
        assert [o.to_dict() for o in via_event] == [o.to_dict() for o in direct]


class TestResolveOutcome:
    def test_yes_win(self):
        signal = decide(0.70, 0.50, **COSTS)
        res = resolve_outcome(signal, Bucket.at_least("≥30", 30.0), 31.0, 100, 50)
        assert res.resolved_yes
        assert res.pnl == pytest.approx(round(0.5 * signal.suggested_size - 0.015 * signal.suggested_size, 2))

    def test_no_trade_books_zero(self):
        signal = decide(0.50, 0.50, **COSTS)
        res = resolve_outcome(signal, Bucket.at_least("≥30", 30.0), 31.0, 100, 50)
        assert res.resolved_yes
        assert res.pnl == 0.0


class TestFetchObservedValue:
    @pytest.mark.asyncio
    async def test_archive_value(self, temperature_profile):
        with patch("climate_edge.signals.resolver.fetch_historical_series", new_callable=AsyncMock) as mock_hist:
            mock_hist.return_value = [(date(2026, 7, 4), 32.1)]
            value = await fetch_observed_value(temperature_profile, 40.7, -74.0, date(2026, 7, 4))
        assert value == 32.1

    @pytest.mark.asyncio
    async def test_archive_not_ready(self, temperature_profile):
        with patch("climate_edge.signals.resolver.fetch_historical_series", new_callable=AsyncMock) as mock_hist:
            mock_hist.return_value = []
            with pytest.raises(UpstreamDataError):
                await fetch_observed_value(temperature_profile, 40.7, -74.0, date(2026, 7, 4))

    @pytest.mark.asyncio
    async def test_monthly_index(self):
        anomaly = get_profile(Metric.CLIMATE_ANOMALY)
        records = [GistempRecord(2026, 1, 1.1), GistempRecord(2026, 2, 1.25)]
        with patch("climate_edge.signals.resolver.fetch_gistemp_records", new_callable=AsyncMock) as mock_recs:
            mock_recs.return_value = records
            value = await fetch_observed_value(anomaly, None, None, date(2026, 2, 28))
            assert value == 1.25
            with pytest.raises(UpstreamDataError):
                await fetch_observed_value(anomaly, None, None, date(2026, 3, 1))

    @pytest.mark.asyncio
    async def test_earthquake_window_max(self):
        from climate_edge.forecasting.earthquake import EarthquakeEvent

        quake = get_profile(Metric.EARTHQUAKE_MAGNITUDE)
        events = [EarthquakeEvent(datetime(2026, 7, 5, 3, tzinfo=timezone.utc), 4.4)]
        with patch("climate_edge.signals.resolver.fetch_point_events", new_callable=AsyncMock) as mock_events:
            mock_events.return_value = events
            value = await fetch_observed_value(quake, 34.05, -118.24, date(2026, 7, 4))
        assert value == 4.4


def test_forecast_data_is_shared_read_only(ensemble_forecast):
    with pytest.raises(AttributeError):
        ensemble_forecast.mean = 0.0  # type: ignore[misc]
    assert isinstance(ensemble_forecast, ForecastData)
