"""
Time-decayed signal fusion.

Combines price-to-strike position, a technical up-probability, short-horizon
momentum, order-book imbalance and recent volatility into a side and a
confidence (probability the side is correct, 0-100).

Far from settlement the technical signal carries real weight; in the last
minutes the raw price position dominates because there is little time left
for the price to cross the strike. Weights come from discrete bands so the
output is reproducible at exact boundary minutes.

Pure: no I/O, identical inputs give identical output.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from scanner.models import Decision, Side, SignalBundle

NEUTRAL = 50.0


@dataclass(frozen=True)
class TimeBand:
    """Weights used when minutes_to_settlement <= max_minutes."""
    max_minutes: float
    price_weight: float
    signal_weight: float


DEFAULT_TIME_BANDS: tuple[TimeBand, ...] = (
    TimeBand(5.0, 0.95, 0.05),
    TimeBand(15.0, 0.85, 0.15),
    TimeBand(30.0, 0.70, 0.30),
    TimeBand(math.inf, 0.60, 0.40),
)

# (min distance %, score for the side the price is on), widest first
DEFAULT_PRICE_THRESHOLDS: tuple[tuple[float, float], ...] = (
    (1.0, 97.0),
    (0.5, 95.0),
    (0.2, 92.0),
    (0.1, 90.0),
    (0.05, 88.0),
    (0.02, 85.0),
    (0.01, 75.0),
    (0.005, 62.0),
)

# (5m move as % of price, confidence penalty), largest first
DEFAULT_VOLATILITY_PENALTIES: tuple[tuple[float, float], ...] = (
    (0.5, 20.0),
    (0.25, 10.0),
)


@dataclass(frozen=True)
class FusionParams:
    time_bands: tuple[TimeBand, ...] = DEFAULT_TIME_BANDS
    price_thresholds: tuple[tuple[float, float], ...] = DEFAULT_PRICE_THRESHOLDS
    # Momentum nudges, in confidence points
    momentum_with: float = 3.0
    momentum_against: float = 5.0
    # Full imbalance (+/-1) moves confidence this many points
    imbalance_points: float = 3.0
    volatility_penalties: tuple[tuple[float, float], ...] = DEFAULT_VOLATILITY_PENALTIES
    confidence_floor: float = 5.0
    confidence_ceiling: float = 95.0


DEFAULT_FUSION_PARAMS = FusionParams()


def band_for(minutes_to_settlement: float | None, params: FusionParams = DEFAULT_FUSION_PARAMS) -> TimeBand:
    """Band for the given time to settlement. Unknown time uses the widest band."""
    if minutes_to_settlement is None:
        return params.time_bands[-1]
    for band in params.time_bands:
        if minutes_to_settlement <= band.max_minutes:
            return band
    return params.time_bands[-1]


def price_position_score(distance_pct: float, params: FusionParams = DEFAULT_FUSION_PARAMS) -> float:
    """Confidence for the side the price is currently on. Saturates at the widest threshold."""
    for threshold, score in params.price_thresholds:
        if distance_pct >= threshold:
            return score
    return NEUTRAL


def _oriented(probability_up: float, side: Side) -> float:
    return probability_up if side is Side.ABOVE else 100.0 - probability_up


def momentum_adjustment(
    momentum_1m: float | None,
    side: Side,
    params: FusionParams = DEFAULT_FUSION_PARAMS,
) -> float:
    """+ when price moves away from the strike in the side's direction, - when toward it."""
    if not momentum_1m:
        return 0.0
    moving_up = momentum_1m > 0
    with_side = moving_up if side is Side.ABOVE else not moving_up
    return params.momentum_with if with_side else -params.momentum_against


def imbalance_adjustment(
    imbalance: float | None,
    side: Side,
    params: FusionParams = DEFAULT_FUSION_PARAMS,
) -> float:
    if imbalance is None:
        return 0.0
    imbalance = max(-1.0, min(1.0, imbalance))
    oriented = imbalance if side is Side.ABOVE else -imbalance
    return oriented * params.imbalance_points


def volatility_penalty(
    momentum_5m: float | None,
    reference_price: float,
    params: FusionParams = DEFAULT_FUSION_PARAMS,
) -> float:
    if not momentum_5m or reference_price <= 0:
        return 0.0
    move_pct = abs(momentum_5m) / reference_price * 100.0
    for threshold, penalty in params.volatility_penalties:
        if move_pct > threshold:
            return penalty
    return 0.0


def fuse(
    reference_price: float | None,
    strike: float | None,
    signals: SignalBundle | None,
    minutes_to_settlement: float | None,
    params: FusionParams = DEFAULT_FUSION_PARAMS,
) -> Decision:
    """
    Fuse all signals into a Decision.

    The side is fixed by the weighted price/technical combination; momentum,
    imbalance and volatility only move the confidence of that side and can
    never flip it. A missing price or strike yields side=None.
    """
    if not reference_price or not strike or reference_price <= 0 or strike <= 0:
        return Decision(
            side=None,
            confidence=NEUTRAL,
            reference_price=reference_price,
            strike=strike,
            minutes_to_settlement=minutes_to_settlement,
        )

    signals = signals or SignalBundle.neutral()
    distance_pct = abs(reference_price - strike) / strike * 100.0
    is_above = reference_price > strike
    price_side = Side.ABOVE if is_above else Side.BELOW

    band = band_for(minutes_to_settlement, params)
    price_score = price_position_score(distance_pct, params)
    if signals.directional_probability is None:
        signal_score = NEUTRAL
    else:
        signal_score = _oriented(signals.directional_probability, price_side)

    # Scores are expressed for price_side; >= 50 keeps it, exact 50 defaults to it
    combined = band.price_weight * price_score + band.signal_weight * signal_score
    if combined >= NEUTRAL:
        side, side_confidence = price_side, combined
    else:
        side, side_confidence = price_side.opposite, 100.0 - combined

    momentum_adj = momentum_adjustment(signals.momentum_1m, side, params)
    imbalance_adj = imbalance_adjustment(signals.order_book_imbalance, side, params)
    vol_penalty = volatility_penalty(signals.momentum_5m, reference_price, params)

    raw = side_confidence + momentum_adj + imbalance_adj - vol_penalty
    confidence = max(params.confidence_floor, min(params.confidence_ceiling, raw))

    return Decision(
        side=side,
        confidence=round(confidence, 1),
        reference_price=reference_price,
        strike=strike,
        minutes_to_settlement=minutes_to_settlement,
        price_distance_pct=distance_pct,
        is_above=is_above,
        components={
            "price_score": price_score,
            "signal_score": signal_score,
            "price_weight": band.price_weight,
            "signal_weight": band.signal_weight,
            "combined": round(combined, 3),
            "momentum_adj": momentum_adj,
            "imbalance_adj": round(imbalance_adj, 3),
            "volatility_penalty": vol_penalty,
        },
    )
