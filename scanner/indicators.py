"""
Default technical-signal collaborator.

Turns a chronological candle series into a SignalBundle (an up-probability
from RSI, MACD histogram and Heiken-Ashi streak, plus 1m/5m deltas), turns a
raw venue orderbook into an OrderBookSummary, and measures recent range
volatility for the risk gate.

The fusion engine only sees the resulting SignalBundle, so any of this can
be swapped without touching the core.
"""

from __future__ import annotations

import logging

import numpy as np

from scanner.models import Candle, OrderBookSummary, SignalBundle

logger = logging.getLogger(__name__)

RSI_PERIOD = 14
MACD_FAST = 12
MACD_SLOW = 26
MACD_SIGNAL = 9

# Fewer candles than this and the up-probability stays unknown
MIN_CANDLES_FOR_PROBABILITY = 11

# Up-probability is a weak vote: clamp it well inside 0-100
PROBABILITY_FLOOR = 30.0
PROBABILITY_CEILING = 70.0

RSI_BULLISH = 55.0
RSI_BEARISH = 45.0
RSI_POINTS = 5.0
MACD_POINTS = 5.0
STREAK_POINTS = 3.0


def rsi(closes: np.ndarray | list[float], period: int = RSI_PERIOD) -> float | None:
    """Simple-average RSI over the last `period` changes. None if too short."""
    closes = np.asarray(closes, dtype=float)
    if len(closes) < 2:
        return None
    deltas = np.diff(closes[-(period + 1):])
    avg_gain = float(np.mean(np.where(deltas > 0, deltas, 0.0)))
    avg_loss = float(np.mean(np.where(deltas < 0, -deltas, 0.0)))
    if avg_loss == 0:
        return 100.0 if avg_gain > 0 else 50.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def _ema(values: np.ndarray, period: int) -> np.ndarray:
    ema = np.zeros_like(values)
    k = 2.0 / (period + 1)
    ema[0] = values[0]
    for i in range(1, len(values)):
        ema[i] = (values[i] - ema[i - 1]) * k + ema[i - 1]
    return ema


def macd_histogram(
    closes: np.ndarray | list[float],
    fast: int = MACD_FAST,
    slow: int = MACD_SLOW,
    signal: int = MACD_SIGNAL,
) -> float | None:
    """Latest MACD line minus its signal line. None with fewer than `slow` closes."""
    closes = np.asarray(closes, dtype=float)
    if len(closes) < slow:
        return None
    macd_line = _ema(closes, fast) - _ema(closes, slow)
    signal_line = _ema(macd_line, signal)
    return float(macd_line[-1] - signal_line[-1])


def heiken_ashi_streak(candles: list[Candle]) -> tuple[str | None, int]:
    """
    Colour and length of the trailing run of same-coloured Heiken-Ashi bars.
    Returns (None, 0) for an empty series; doji bars end a run.
    """
    colours: list[str | None] = []
    ha_open = ha_close = None
    for c in candles:
        close = (c.open + c.high + c.low + c.close) / 4.0
        if ha_open is None:
            open_ = (c.open + c.close) / 2.0
        else:
            open_ = (ha_open + ha_close) / 2.0
        ha_open, ha_close = open_, close
        if close > open_:
            colours.append("green")
        elif close < open_:
            colours.append("red")
        else:
            colours.append(None)

    if not colours or colours[-1] is None:
        return None, 0
    last = colours[-1]
    count = 0
    for colour in reversed(colours):
        if colour != last:
            break
        count += 1
    return last, count


def directional_probability(candles: list[Candle]) -> float | None:
    """Score RSI, MACD and HA streak into P(up), clamped to [30, 70]."""
    if len(candles) < MIN_CANDLES_FOR_PROBABILITY:
        return None
    closes = np.array([c.close for c in candles], dtype=float)
    score = 50.0

    rsi_now = rsi(closes)
    if rsi_now is not None:
        if rsi_now > RSI_BULLISH:
            score += RSI_POINTS
        elif rsi_now < RSI_BEARISH:
            score -= RSI_POINTS

    hist = macd_histogram(closes)
    if hist is not None:
        if hist > 0:
            score += MACD_POINTS
        elif hist < 0:
            score -= MACD_POINTS

    colour, _ = heiken_ashi_streak(candles)
    if colour == "green":
        score += STREAK_POINTS
    elif colour == "red":
        score -= STREAK_POINTS

    return max(PROBABILITY_FLOOR, min(PROBABILITY_CEILING, score))


def compute_signal_bundle(candles: list[Candle]) -> SignalBundle:
    """Bundle from 1-minute candles (chronological). Empty input gives a neutral bundle."""
    if not candles:
        return SignalBundle.neutral()
    closes = [c.close for c in candles]
    momentum_1m = closes[-1] - closes[-2] if len(closes) >= 2 else None
    momentum_5m = closes[-1] - closes[-6] if len(closes) >= 6 else None
    return SignalBundle(
        directional_probability=directional_probability(candles),
        momentum_1m=momentum_1m,
        momentum_5m=momentum_5m,
    )


def recent_volatility_pct(
    candles: list[Candle],
    reference_price: float | None,
    window: int = 5,
) -> float | None:
    """
    High-minus-low range of the last `window` candles as % of the reference price.
    None when the price is unknown or there are fewer candles than the window.
    """
    if not reference_price or reference_price <= 0 or window <= 0 or len(candles) < window:
        return None
    recent = candles[-window:]
    high = max(c.high for c in recent)
    low = min(c.low for c in recent)
    return (high - low) / reference_price * 100.0


def _levels(raw_side) -> list[tuple[int, float]]:
    levels = []
    for level in raw_side or []:
        try:
            price, qty = int(level[0]), float(level[1])
        except (TypeError, ValueError, IndexError):
            continue
        if 0 < price < 100 and qty > 0:
            levels.append((price, qty))
    return levels


def summarize_order_book(raw: dict | None) -> OrderBookSummary | None:
    """
    Summarize a venue orderbook payload: {"orderbook": {"yes": [[price, qty], ...], "no": [...]}}.

    Both sides are resting bids. The YES ask implied by the best NO bid is
    100 - best_no_bid, so spread = (100 - best_no_bid) - best_yes_bid.
    """
    if not isinstance(raw, dict):
        return None
    book = raw.get("orderbook") or raw
    if not isinstance(book, dict):
        return None
    yes = _levels(book.get("yes"))
    no = _levels(book.get("no"))
    if not yes and not no:
        return None

    best_yes = max((p for p, _ in yes), default=None)
    best_no = max((p for p, _ in no), default=None)
    spread = None
    if best_yes is not None and best_no is not None:
        spread = (100 - best_no) - best_yes
    return OrderBookSummary(
        best_yes_bid=best_yes,
        best_no_bid=best_no,
        yes_liquidity=sum(q for _, q in yes),
        no_liquidity=sum(q for _, q in no),
        spread=spread,
    )
