"""Edge calculation and Kelly criterion sizing."""

from __future__ import annotations

from climate_edge.signals.models import Recommendation, TradeSignal

# Hard cap on the Kelly fraction regardless of edge
KELLY_CAP = 0.25


def check_trade_params(
    fee_bps: float,
    slippage_bps: float,
    min_edge: float,
    bankroll: float,
    confidence: float,
) -> None:
    """Reject cost, threshold and sizing inputs outside the ranges Settings allows.

    Raises:
        ValueError: naming the first offending parameter.
    """
    if fee_bps < 0 or slippage_bps < 0:
        raise ValueError(f"fee_bps and slippage_bps must be >= 0, got {fee_bps} and {slippage_bps}")
    if not 0.0 <= min_edge < 1.0:
        raise ValueError(f"min_edge must be in [0, 1), got {min_edge}")
    if bankroll < 0:
        raise ValueError(f"bankroll must be >= 0, got {bankroll}")
    if not 0.0 <= confidence <= 100.0:
        raise ValueError(f"confidence must be in [0, 100], got {confidence}")


def total_cost(fee_bps: float, slippage_bps: float) -> float:
    """Round-trip cost as a fraction of position size."""
    return (fee_bps + slippage_bps) / 10000.0


def compute_edge(model_prob: float, market_price: float, cost: float) -> float:
    """Edge after costs: model_prob - market_price - cost."""
    return model_prob - market_price - cost


def recommend(edge: float, min_edge: float) -> Recommendation:
    """BUY_YES above +min_edge, BUY_NO below -min_edge, else NO_TRADE (strict)."""
    if edge > min_edge:
        return Recommendation.BUY_YES
    if edge < -min_edge:
        return Recommendation.BUY_NO
    return Recommendation.NO_TRADE


def compute_kelly(
    model_prob: float,
    market_price: float,
    side: Recommendation,
    cost: float,
) -> float:
    """Compute the capped Kelly fraction for a binary contract.

    Kelly = (p - ep) / (1 - ep)
    where ep is the effective price paid for the chosen side including costs:
    market_price + cost for YES, (1 - market_price) + cost for NO, and p is
    the model probability of that side winning.

    Args:
        model_prob: Model probability of YES
        market_price: YES price
        side: Recommended side (NO_TRADE gives 0)
        cost: Total cost fraction

    Returns:
        Kelly fraction clamped to [0, KELLY_CAP]
    """
    if side == Recommendation.BUY_YES:
        p = model_prob
        effective_price = market_price + cost
    elif side == Recommendation.BUY_NO:
        p = 1.0 - model_prob
        effective_price = (1.0 - market_price) + cost
    else:
        return 0.0

    if effective_price >= 1.0:
        return 0.0

    kelly = (p - effective_price) / (1.0 - effective_price)
    return max(0.0, min(KELLY_CAP, kelly))


def size_position(
    bankroll: float,
    kelly: float,
    confidence: float,
) -> tuple[float, float, float]:
    """Dollar sizes (full Kelly, half Kelly, suggested), each rounded to cents.

    Suggested = half Kelly scaled by confidence (0-100).
    """
    kelly_size = round(bankroll * kelly, 2)
    half_kelly_size = round(kelly_size * 0.5, 2)
    suggested_size = round(half_kelly_size * confidence / 100.0, 2)
    return kelly_size, half_kelly_size, suggested_size


def decide(
    model_prob: float,
    market_price: float,
    fee_bps: float,
    slippage_bps: float,
    min_edge: float,
    bankroll: float,
    confidence: float,
    label: str = "",
) -> TradeSignal:
    """Build the trade signal for one bucket.

    Suggested size is forced to 0 for NO_TRADE.

    Raises:
        ValueError: for out-of-range costs, threshold, bankroll or confidence.
    """
    check_trade_params(fee_bps, slippage_bps, min_edge, bankroll, confidence)
    cost = total_cost(fee_bps, slippage_bps)
    edge = compute_edge(model_prob, market_price, cost)
    side = recommend(edge, min_edge)
    kelly = compute_kelly(model_prob, market_price, side, cost)
    kelly_size, half_kelly_size, suggested_size = size_position(bankroll, kelly, confidence)

    if side == Recommendation.NO_TRADE:
        suggested_size = 0.0

    return TradeSignal(
        label=label,
        model_prob=model_prob,
        market_price=market_price,
        market_implied_prob=market_price,
        total_cost=cost,
        edge=edge,
        recommendation=side,
        kelly_fraction=kelly,
        kelly_size=kelly_size,
        half_kelly_size=half_kelly_size,
        suggested_size=suggested_size,
    )


def realized_pnl(
    side: Recommendation,
    resolved_yes: bool,
    yes_price: float,
    size: float,
    fee_bps: float,
    slippage_bps: float,
) -> float:
    """Realized P&L of a position held to resolution, rounded to cents.

    YES pays (1 - price) per dollar on a win and loses price; NO pays price
    and loses (1 - price). Costs are charged on size either way.
    """
    if side == Recommendation.BUY_YES:
        gross = (1.0 - yes_price) * size if resolved_yes else -yes_price * size
    elif side == Recommendation.BUY_NO:
        no_price = 1.0 - yes_price
        gross = (1.0 - no_price) * size if not resolved_yes else -no_price * size
    else:
        return 0.0
    return round(gross - total_cost(fee_bps, slippage_bps) * size, 2)
