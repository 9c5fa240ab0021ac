"""
Market selection for hourly strike ladders.

The venue lists every strike of every open hourly event. We pick the event
that settles soonest, then the single strike in it that best balances
proximity to the reference price against time to settlement.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from datetime import datetime, timezone

from scanner.models import MarketInstance, SelectionResult

logger = logging.getLogger(__name__)

# Numeric substrings at or below this are never BTC strikes (dates, hours, "T1")
STRIKE_SANITY_FLOOR = 1000.0

# Ranking weights: relative distance dominates, imminence breaks near-ties
DISTANCE_WEIGHT = 0.7
TIME_WEIGHT = 0.3

_TITLE_NUMBER = re.compile(r"\$?(\d[\d,]*(?:\.\d+)?)")
_TICKER_STRIKE = re.compile(r"-T(\d+(?:\.\d+)?)", re.IGNORECASE)

# Trading-close first: hourly markets carry a far-off terminal expiration_time
_SETTLEMENT_FIELDS = ("close_time", "expected_expiration_time", "expiration_time")


def _plausible(value: float | None) -> float | None:
    if value is None:
        return None
    if value != value or value <= STRIKE_SANITY_FLOOR:  # NaN or too small
        return None
    return value


def _to_float(raw) -> float | None:
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


def _strike_from_text(raw: dict, dollar_only: bool) -> float | None:
    for text_field in ("subtitle", "yes_sub_title", "title"):
        text = raw.get(text_field) or ""
        for match in _TITLE_NUMBER.finditer(text):
            if dollar_only and not match.group(0).startswith("$"):
                continue
            value = _plausible(_to_float(match.group(1).replace(",", "")))
            if value is not None:
                return value
    return None


def parse_strike(raw: dict) -> float | None:
    """
    Extract the strike from a venue market dict.

    Tries, in order: the ticker suffix (KXBTCD-26JAN3122-T78749.99),
    dollar amounts in subtitle/title text ("$78,750 or above"),
    floor_strike / ceiling_strike, and finally any bare number in the text.
    Values at or below STRIKE_SANITY_FLOOR are ignored.
    """
    match = _TICKER_STRIKE.search(raw.get("ticker") or "")
    if match:
        value = _plausible(_to_float(match.group(1)))
        if value is not None:
            return value

    value = _strike_from_text(raw, dollar_only=True)
    if value is not None:
        return value

    for numeric_field in ("floor_strike", "ceiling_strike"):
        value = _plausible(_to_float(raw.get(numeric_field)))
        if value is not None:
            return value

    return _strike_from_text(raw, dollar_only=False)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp ('Z' suffix allowed). Naive values are taken as UTC."""
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, TypeError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_settlement_time(raw: dict) -> datetime | None:
    """First parseable of close_time, expected_expiration_time, expiration_time."""
    for name in _SETTLEMENT_FIELDS:
        dt = parse_timestamp(raw.get(name))
        if dt is not None:
            return dt
    return None


def _cents(raw) -> int | None:
    value = _to_float(raw)
    if value is None or value <= 0 or value >= 100:
        return None
    return int(round(value))


def parse_market(raw: dict) -> MarketInstance | None:
    """Build a MarketInstance from a venue dict. None if ticker, strike or time is missing."""
    ticker = raw.get("ticker")
    if not ticker:
        return None
    strike = parse_strike(raw)
    settlement = parse_settlement_time(raw)
    if strike is None or settlement is None:
        logger.debug("Skipping %s: strike=%s settlement=%s", ticker, strike, settlement)
        return None
    return MarketInstance(
        ticker=ticker,
        event_id=raw.get("event_ticker") or "",
        strike=strike,
        settlement_time=settlement,
        yes_ask=_cents(raw.get("yes_ask")),
        no_ask=_cents(raw.get("no_ask")),
        yes_bid=_cents(raw.get("yes_bid")),
        no_bid=_cents(raw.get("no_bid")),
        open_interest=_to_float(raw.get("open_interest")) or 0.0,
        volume=_to_float(raw.get("volume")) or 0.0,
        title=raw.get("title") or "",
    )


def group_by_event(instances: list[MarketInstance]) -> dict[str, list[MarketInstance]]:
    groups: dict[str, list[MarketInstance]] = defaultdict(list)
    for inst in instances:
        if inst.event_id:
            groups[inst.event_id].append(inst)
    return dict(groups)


def next_event_instances(
    instances: list[MarketInstance],
    now: datetime,
) -> list[MarketInstance]:
    """
    Instances of the event with the earliest strictly-future settlement.
    Instances inside the event that already settled are dropped as well.
    """
    earliest: datetime | None = None
    chosen: list[MarketInstance] = []
    for event_id, members in group_by_event(instances).items():
        live = [m for m in members if m.settlement_time > now]
        if not live:
            continue
        settles = min(m.settlement_time for m in live)
        if earliest is None or settles < earliest:
            earliest = settles
            chosen = live
    return chosen


def minutes_until(when: datetime, now: datetime) -> float:
    return (when - now).total_seconds() / 60.0


def score_instance(inst: MarketInstance, reference_price: float, now: datetime) -> float:
    """Lower is better."""
    rel_distance = abs(inst.strike - reference_price) / reference_price
    return DISTANCE_WEIGHT * rel_distance + TIME_WEIGHT * (minutes_until(inst.settlement_time, now) / 60.0)


def select_market(
    raw_markets: list[dict],
    reference_price: float | None,
    now: datetime | None = None,
) -> SelectionResult | None:
    """
    Pick the single instance to trade this cycle.

    Returns None (a normal no-trade outcome) when the reference price is
    unavailable or no open instance settles in the future.
    """
    if not reference_price or reference_price <= 0:
        return None
    now = now or datetime.now(timezone.utc)

    instances = [inst for inst in (parse_market(m) for m in raw_markets) if inst is not None]
    candidates = next_event_instances(instances, now)
    if not candidates:
        logger.debug("No future event among %d parsed instances", len(instances))
        return None

    best = min(candidates, key=lambda inst: score_instance(inst, reference_price, now))
    distance = abs(reference_price - best.strike)
    return SelectionResult(
        market=best,
        reference_price=reference_price,
        minutes_to_settlement=minutes_until(best.settlement_time, now),
        distance_usd=distance,
        distance_pct=distance / best.strike * 100.0,
    )
