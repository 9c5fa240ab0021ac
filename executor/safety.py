"""
Pre-trade risk gate. Fail-fast on violations.

Each verify_* check raises SafetyCheckFailed carrying a VetoReason; admit()
runs them in a fixed order and reports the first failure. No I/O.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from config import Config
from scanner.models import Decision, GateResult, VetoKind, VetoReason

logger = logging.getLogger(__name__)


class SafetyCheckFailed(Exception):
    """Raised when a pre-trade safety check fails. Trade should be skipped."""

    def __init__(self, reason: VetoReason) -> None:
        super().__init__(reason.message)
        self.reason = reason


@dataclass(frozen=True)
class GateLimits:
    min_confidence: float = 50.0
    min_strike_distance_usd: float = 20.0
    max_volatility_pct: float = 0.8
    max_execution_price_cents: int = 95
    min_edge: float | None = None

    @classmethod
    def from_config(cls, cfg: Config) -> GateLimits:
        return cls(
            min_confidence=cfg.min_confidence,
            min_strike_distance_usd=cfg.min_strike_distance_usd,
            max_volatility_pct=cfg.max_volatility_pct,
            max_execution_price_cents=cfg.max_execution_price_cents,
            min_edge=cfg.min_edge,
        )


def _fail(kind: VetoKind, message: str, **context: float | None) -> None:
    raise SafetyCheckFailed(VetoReason(kind=kind, message=message, context=context))


def verify_data_present(decision: Decision) -> None:
    if decision.side is None or not decision.reference_price or not decision.strike:
        _fail(
            VetoKind.MISSING_DATA,
            "Missing side, reference price or strike",
            reference_price=decision.reference_price,
            strike=decision.strike,
        )


def verify_strike_distance(decision: Decision, limits: GateLimits) -> None:
    """Coin-flip guard: too near the strike to call either way."""
    distance = abs(decision.reference_price - decision.strike)
    if distance < limits.min_strike_distance_usd:
        _fail(
            VetoKind.TOO_CLOSE,
            f"Too close to call: ${distance:.2f} from strike < ${limits.min_strike_distance_usd:.2f}",
            distance_usd=distance,
            min_distance_usd=limits.min_strike_distance_usd,
        )


def verify_volatility(recent_volatility: float | None, limits: GateLimits) -> None:
    """Skipped when volatility is unknown."""
    if recent_volatility is None:
        return
    if recent_volatility > limits.max_volatility_pct:
        _fail(
            VetoKind.VOLATILITY_TOO_HIGH,
            f"Volatility too high: {recent_volatility:.3f}% > {limits.max_volatility_pct:.3f}%",
            volatility_pct=recent_volatility,
            max_volatility_pct=limits.max_volatility_pct,
        )


def verify_confidence(decision: Decision, limits: GateLimits) -> None:
    if decision.confidence < limits.min_confidence:
        _fail(
            VetoKind.CONFIDENCE_TOO_LOW,
            f"Confidence {decision.confidence:.1f}% < {limits.min_confidence:.1f}%",
            confidence=decision.confidence,
            min_confidence=limits.min_confidence,
        )


def verify_execution_price(execution_price: int | None, limits: GateLimits) -> None:
    if execution_price is None or execution_price <= 0:
        _fail(VetoKind.PRICE_UNATTRACTIVE, "No ask price for the chosen side", price_cents=None)
    if execution_price >= limits.max_execution_price_cents:
        _fail(
            VetoKind.PRICE_UNATTRACTIVE,
            f"Price {execution_price}c >= {limits.max_execution_price_cents}c, no upside",
            price_cents=float(execution_price),
            max_price_cents=float(limits.max_execution_price_cents),
        )


def verify_edge(decision: Decision, execution_price: int, limits: GateLimits) -> None:
    """Confidence must beat the implied probability of the ask by min_edge points. Off when None."""
    if limits.min_edge is None:
        return
    edge = decision.confidence - execution_price
    if edge < limits.min_edge:
        _fail(
            VetoKind.EDGE_TOO_LOW,
            f"Edge {edge:.1f} pts < {limits.min_edge:.1f} pts",
            edge=edge,
            min_edge=limits.min_edge,
        )


def admit(
    decision: Decision,
    execution_price: int | None,
    recent_volatility: float | None,
    limits: GateLimits,
) -> GateResult:
    """
    Run every check in order. The first failure wins; later checks are not evaluated.
    """
    try:
        verify_data_present(decision)
        verify_strike_distance(decision, limits)
        verify_volatility(recent_volatility, limits)
        verify_confidence(decision, limits)
        verify_execution_price(execution_price, limits)
        verify_edge(decision, execution_price, limits)
    except SafetyCheckFailed as e:
        logger.info("Trade vetoed (%s): %s", e.reason.kind.value, e.reason.message)
        return GateResult(proceed=False, reason=e.reason)
    return GateResult(proceed=True)
