"""Signal data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from climate_edge.forecasting.probability import ProbabilityResult


class Recommendation(Enum):
    BUY_YES = "BUY_YES"
    BUY_NO = "BUY_NO"
    NO_TRADE = "NO_TRADE"


@dataclass(frozen=True)
class TradeSignal:
    """Trade decision for one bucket at one point in time.

    Attributes:
        label: bucket label
        model_prob: model probability of YES (clamped)
        market_price: YES price
        market_implied_prob: probability implied by the YES price
        total_cost: fees plus slippage as a fraction of size
        edge: model_prob - market_price - total_cost
        recommendation: BUY_YES, BUY_NO or NO_TRADE
        kelly_fraction: capped Kelly fraction in [0, 0.25]
        kelly_size: bankroll * kelly_fraction
        half_kelly_size: kelly_size * 0.5
        suggested_size: half-Kelly scaled by confidence (0 for NO_TRADE)
    """

    label: str
    model_prob: float
    market_price: float
    market_implied_prob: float
    total_cost: float
    edge: float
    recommendation: Recommendation
    kelly_fraction: float
    kelly_size: float
    half_kelly_size: float
    suggested_size: float

    @property
    def is_trade(self) -> bool:
        return self.recommendation != Recommendation.NO_TRADE

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "model_prob": round(self.model_prob, 4),
            "market_price": self.market_price,
            "market_implied_prob": self.market_implied_prob,
            "total_cost": self.total_cost,
            "edge": round(self.edge, 4),
            "recommendation": self.recommendation.value,
            "kelly_fraction": round(self.kelly_fraction, 4),
            "kelly_size": self.kelly_size,
            "half_kelly_size": self.half_kelly_size,
            "suggested_size": self.suggested_size,
        }

    @classmethod
    def from_dict(cls, data: dict) -> TradeSignal:
        return cls(
            label=data["label"],
            model_prob=data["model_prob"],
            market_price=data["market_price"],
            market_implied_prob=data["market_implied_prob"],
            total_cost=data["total_cost"],
            edge=data["edge"],
            recommendation=Recommendation(data["recommendation"]),
            kelly_fraction=data["kelly_fraction"],
            kelly_size=data["kelly_size"],
            half_kelly_size=data["half_kelly_size"],
            suggested_size=data["suggested_size"],
        )


@dataclass(frozen=True)
class SignalOutcome:
    """Result for one bucket of a batch: a signal, or the error that stopped it."""

    label: str
    signal: TradeSignal | None = None
    probability: ProbabilityResult | None = None
    rationale: tuple[str, ...] = field(default_factory=tuple)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.signal is not None

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "signal": self.signal.to_dict() if self.signal else None,
            "probability": self.probability.to_dict() if self.probability else None,
            "rationale": list(self.rationale),
            "error": self.error,
        }
