"""Tests for edge calculation, Kelly sizing and realized P&L."""

from __future__ import annotations

import pytest

from climate_edge.signals.analyzer import (
    KELLY_CAP,
    check_trade_params,
    compute_edge,
    compute_kelly,
    decide,
    realized_pnl,
    recommend,
    size_position,
    total_cost,
)
from climate_edge.signals.models import Recommendation, TradeSignal


class TestComputeKelly:
    def test_positive_edge_yes(self):
        kelly = compute_kelly(0.60, 0.50, Recommendation.BUY_YES, 0.0)
        assert kelly == pytest.approx(0.2)

    def test_capped(self):
        kelly = compute_kelly(0.70, 0.50, Recommendation.BUY_YES, 0.015)
        assert kelly == KELLY_CAP

    def test_no_side_uses_complement(self):
        kelly = compute_kelly(0.40, 0.50, Recommendation.BUY_NO, 0.0)
        assert kelly == pytest.approx(0.2)

    def test_no_trade_zero(self):
        assert compute_kelly(0.9, 0.1, Recommendation.NO_TRADE, 0.0) == 0.0

    def test_effective_price_at_one(self):
        assert compute_kelly(0.99, 0.99, Recommendation.BUY_YES, 0.02) == 0.0

    def test_kelly_never_out_of_range(self):
        for p in (0.01, 0.2, 0.5, 0.8, 0.99):
            for price in (0.02, 0.3, 0.6, 0.98):
                for side in (Recommendation.BUY_YES, Recommendation.BUY_NO):
                    kelly = compute_kelly(p, price, side, 0.015)
                    assert 0.0 <= kelly <= KELLY_CAP


class TestRecommend:
    def test_strict_threshold(self):
        assert recommend(0.03, 0.03) == Recommendation.NO_TRADE
        assert recommend(-0.03, 0.03) == Recommendation.NO_TRADE
        assert recommend(0.0301, 0.03) == Recommendation.BUY_YES
        assert recommend(-0.0301, 0.03) == Recommendation.BUY_NO


class TestDecide:
    def test_buy_yes(self):
        signal = decide(0.70, 0.50, 100, 50, 0.03, 100.0, 70.0, label="≥30°C")
        assert isinstance(signal, TradeSignal)
        assert signal.recommendation == Recommendation.BUY_YES
        assert signal.total_cost == pytest.approx(0.015)
        assert signal.edge == pytest.approx(0.185)
        assert signal.kelly_fraction == pytest.approx(0.25)
        assert signal.kelly_size == 25.0
        assert signal.half_kelly_size == 12.5
        assert signal.suggested_size == 8.75
        assert signal.label == "≥30°C"

    def test_buy_no(self):
        signal = decide(0.20, 0.50, 100, 50, 0.03, 100.0, 100.0)
        assert signal.recommendation == Recommendation.BUY_NO
        assert signal.edge == pytest.approx(-0.315)
        assert signal.suggested_size == 12.5

    def test_fair_price_no_trade(self):
        signal = decide(0.50, 0.50, 100, 50, 0.03, 100.0, 70.0)
        assert signal.recommendation == Recommendation.NO_TRADE
        assert signal.edge == pytest.approx(-0.015)
        assert signal.kelly_fraction == 0.0
        assert signal.suggested_size == 0.0
        assert not signal.is_trade

    def test_zero_confidence(self):
        signal = decide(0.70, 0.50, 0, 0, 0.03, 100.0, 0.0)
        assert signal.is_trade
        assert signal.suggested_size == 0.0

    @pytest.mark.parametrize("fee, slip, min_edge, bankroll, confidence", [
        (100, 50, 0.03, 100.0, 150.0),
        (-500, 50, 0.03, 100.0, 70.0),
        (100, -1, 0.03, 100.0, 70.0),
        (100, 50, 1.5, 100.0, 70.0),
        (100, 50, 0.03, -100.0, 70.0),
    ])
    def test_rejects_out_of_range_inputs(self, fee, slip, min_edge, bankroll, confidence):
        with pytest.raises(ValueError):
            decide(0.70, 0.50, fee, slip, min_edge, bankroll, confidence)

    def test_dict_round_trip(self):
        signal = decide(0.70, 0.50, 100, 50, 0.03, 100.0, 70.0)
        restored = TradeSignal.from_dict(signal.to_dict())
        assert restored.recommendation == signal.recommendation
        assert restored.suggested_size == signal.suggested_size


def test_check_trade_params_accepts_bounds():
    check_trade_params(0, 0, 0.0, 0.0, 0.0)
    check_trade_params(100, 50, 0.99, 1000.0, 100.0)


def test_helpers():
    assert total_cost(100, 50) == pytest.approx(0.015)
    assert compute_edge(0.6, 0.5, 0.01) == pytest.approx(0.09)
    assert size_position(100.0, 0.1, 50.0) == (10.0, 5.0, 2.5)


class TestRealizedPnl:
    def test_yes_win(self):
        assert realized_pnl(Recommendation.BUY_YES, True, 0.4, 10.0, 100, 50) == pytest.approx(5.85)

    def test_yes_loss(self):
        assert realized_pnl(Recommendation.BUY_YES, False, 0.4, 10.0, 100, 50) == pytest.approx(-4.15)

    def test_no_win(self):
        assert realized_pnl(Recommendation.BUY_NO, False, 0.4, 10.0, 100, 50) == pytest.approx(3.85)

    def test_no_loss(self):
        assert realized_pnl(Recommendation.BUY_NO, True, 0.4, 10.0, 100, 50) == pytest.approx(-6.15)

    def test_no_trade(self):
        assert realized_pnl(Recommendation.NO_TRADE, True, 0.4, 10.0, 100, 50) == 0.0
