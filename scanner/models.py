"""
Data models for the hourly trader. Pure data, no behavior beyond small helpers.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any


class Side(Enum):
    """Binary outcome. Values are the venue's side strings."""
    ABOVE = "yes"
    BELOW = "no"

    @property
    def opposite(self) -> Side:
        return Side.BELOW if self is Side.ABOVE else Side.ABOVE


@dataclass(frozen=True)
class MarketInstance:
    """One tradeable strike within a settlement event. Prices in cents (1-99)."""
    ticker: str
    event_id: str
    strike: float
    settlement_time: datetime  # tz-aware UTC
    yes_ask: int | None = None
    no_ask: int | None = None
    yes_bid: int | None = None
    no_bid: int | None = None
    open_interest: float = 0.0
    volume: float = 0.0
    title: str = ""

    def ask_for(self, side: Side) -> int | None:
        return self.yes_ask if side is Side.ABOVE else self.no_ask


@dataclass(frozen=True)
class SelectionResult:
    market: MarketInstance
    reference_price: float
    minutes_to_settlement: float
    distance_usd: float
    distance_pct: float

    @property
    def is_above(self) -> bool:
        return self.reference_price > self.market.strike


@dataclass(frozen=True)
class Candle:
    time: float  # epoch seconds, candle open
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


@dataclass(frozen=True)
class SignalBundle:
    """
    Technical summary for one cycle. Every field is optional; absent
    fields are treated as neutral by the fusion engine.
    """
    directional_probability: float | None = None  # P(up) in 0-100
    momentum_1m: float | None = None  # signed USD delta
    momentum_5m: float | None = None
    order_book_imbalance: float | None = None  # -1..1, positive = YES pressure

    @classmethod
    def neutral(cls) -> SignalBundle:
        return cls()

    def with_imbalance(self, imbalance: float | None) -> SignalBundle:
        return replace(self, order_book_imbalance=imbalance)


@dataclass(frozen=True)
class OrderBookSummary:
    best_yes_bid: int | None
    best_no_bid: int | None
    yes_liquidity: float
    no_liquidity: float
    spread: int | None = None

    @property
    def imbalance(self) -> float | None:
        total = self.yes_liquidity + self.no_liquidity
        if total <= 0:
            return None
        return (self.yes_liquidity - self.no_liquidity) / total


class VetoKind(Enum):
    MISSING_DATA = "missing_data"
    TOO_CLOSE = "too_close_to_call"
    VOLATILITY_TOO_HIGH = "volatility_too_high"
    CONFIDENCE_TOO_LOW = "confidence_too_low"
    PRICE_UNATTRACTIVE = "price_unavailable_or_unattractive"
    EDGE_TOO_LOW = "edge_too_low"


@dataclass(frozen=True)
class VetoReason:
    kind: VetoKind
    message: str
    context: dict[str, float | None] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message, "context": dict(self.context)}


@dataclass(frozen=True)
class Decision:
    """Output of fusion (and, once gated, of the risk gate). Immutable."""
    side: Side | None
    confidence: float
    reference_price: float | None
    strike: float | None
    minutes_to_settlement: float | None = None
    price_distance_pct: float = 0.0
    is_above: bool = False
    components: dict[str, float] = field(default_factory=dict)
    vetoed: bool = False
    veto: VetoReason | None = None

    def with_veto(self, reason: VetoReason) -> Decision:
        return replace(self, vetoed=True, veto=reason)

    def to_dict(self) -> dict[str, Any]:
        return {
            "side": self.side.value if self.side else None,
            "confidence": self.confidence,
            "reference_price": self.reference_price,
            "strike": self.strike,
            "minutes_to_settlement": self.minutes_to_settlement,
            "price_distance_pct": round(self.price_distance_pct, 4),
            "is_above": self.is_above,
            "components": dict(self.components),
            "vetoed": self.vetoed,
            "veto": self.veto.to_dict() if self.veto else None,
        }


@dataclass(frozen=True)
class GateResult:
    proceed: bool
    reason: VetoReason | None = None


class AttemptOutcome(Enum):
    FILLED = "filled"
    REJECTED = "rejected"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class OrderAttempt:
    ticker: str
    side: Side
    contract_count: int
    price_cents: int
    attempt_number: int  # 1-based
    outcome: AttemptOutcome
    order_type: str = "limit"
    order_id: str | None = None
    status_code: int | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticker": self.ticker,
            "side": self.side.value,
            "contract_count": self.contract_count,
            "price_cents": self.price_cents,
            "order_type": self.order_type,
            "attempt_number": self.attempt_number,
            "outcome": self.outcome.value,
            "order_id": self.order_id,
            "status_code": self.status_code,
            "error": self.error,
        }


class OutcomeStatus(Enum):
    FILLED = "filled"
    REJECTED = "rejected"
    EXHAUSTED = "exhausted"
    NO_CREDENTIALS = "no_credentials"
    SIGNING_FAILED = "signing_failed"


@dataclass(frozen=True)
class OrderOutcome:
    status: OutcomeStatus
    attempts: tuple[OrderAttempt, ...] = ()
    order_id: str | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.status is OutcomeStatus.FILLED

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "order_id": self.order_id,
            "error": self.error,
            "attempts": [a.to_dict() for a in self.attempts],
        }


class CycleStatus(Enum):
    NO_PRICE = "no_price"
    NO_MARKET = "no_market"
    VETOED = "vetoed"
    DRY_RUN = "dry_run"
    NO_CREDENTIALS = "no_credentials"
    FILLED = "filled"
    REJECTED = "rejected"
    EXHAUSTED = "exhausted"
    SIGNING_FAILED = "signing_failed"
    ERROR = "error"


_OUTCOME_TO_CYCLE = {
    OutcomeStatus.FILLED: CycleStatus.FILLED,
    OutcomeStatus.REJECTED: CycleStatus.REJECTED,
    OutcomeStatus.EXHAUSTED: CycleStatus.EXHAUSTED,
    OutcomeStatus.NO_CREDENTIALS: CycleStatus.NO_CREDENTIALS,
    OutcomeStatus.SIGNING_FAILED: CycleStatus.SIGNING_FAILED,
}


def cycle_status_for(outcome: OrderOutcome) -> CycleStatus:
    return _OUTCOME_TO_CYCLE[outcome.status]


@dataclass(frozen=True)
class CycleReport:
    """Structured result of one cycle. Serialized to JSON in single-run mode."""
    timestamp: str
    status: CycleStatus
    reference_price: float | None = None
    selection: SelectionResult | None = None
    signals: SignalBundle | None = None
    recent_volatility_pct: float | None = None
    decision: Decision | None = None
    gate: GateResult | None = None
    balance_usd: float | None = None
    contract_count: int | None = None
    execution_price_cents: int | None = None
    outcome: OrderOutcome | None = None
    elapsed_ms: float = 0.0
    error: str | None = None

    @property
    def traded(self) -> bool:
        return self.outcome is not None and self.outcome.success

    def to_dict(self) -> dict[str, Any]:
        selection = None
        if self.selection is not None:
            m = self.selection.market
            selection = {
                "ticker": m.ticker,
                "event_id": m.event_id,
                "strike": m.strike,
                "settlement_time": m.settlement_time.isoformat(),
                "minutes_to_settlement": round(self.selection.minutes_to_settlement, 2),
                "distance_usd": round(self.selection.distance_usd, 2),
                "distance_pct": round(self.selection.distance_pct, 4),
                "yes_ask": m.yes_ask,
                "no_ask": m.no_ask,
            }
        signals = None
        if self.signals is not None:
            signals = {
                "directional_probability": self.signals.directional_probability,
                "momentum_1m": self.signals.momentum_1m,
                "momentum_5m": self.signals.momentum_5m,
                "order_book_imbalance": self.signals.order_book_imbalance,
            }
        gate = None
        if self.gate is not None:
            gate = {
                "proceed": self.gate.proceed,
                "reason": self.gate.reason.to_dict() if self.gate.reason else None,
            }
        return {
            "timestamp": self.timestamp,
            "status": self.status.value,
            "reference_price": self.reference_price,
            "selection": selection,
            "signals": signals,
            "recent_volatility_pct": self.recent_volatility_pct,
            "decision": self.decision.to_dict() if self.decision else None,
            "gate": gate,
            "balance_usd": self.balance_usd,
            "contract_count": self.contract_count,
            "execution_price_cents": self.execution_price_cents,
            "outcome": self.outcome.to_dict() if self.outcome else None,
            "elapsed_ms": round(self.elapsed_ms, 1),
            "error": self.error,
        }
