"""
One trading cycle: fetch, select, fuse, gate, size, execute.

Phase 1 fetches everything independent of the selection concurrently
(spot, ticker, candles, open markets, balance). Phase 2 fetches the
orderbook of the selected instance only. Any single fetch failure degrades
to "absent" and the cycle continues; an absent reference price ends the
cycle as NO_PRICE.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable

import httpx

from client.kalshi_auth import SigningError
from client.platform import MarketDataSource, VenueClient
from config import Config
from executor.engine import OrderExecutor
from executor.safety import GateLimits, admit
from executor.sizing import compute_contract_count
from monitor.logger import get_trade_logger
from scanner.fusion import DEFAULT_FUSION_PARAMS, FusionParams, fuse
from scanner.indicators import compute_signal_bundle, recent_volatility_pct, summarize_order_book
from scanner.models import CycleReport, CycleStatus, cycle_status_for
from scanner.selector import select_market

logger = logging.getLogger(__name__)
trade_log = get_trade_logger()

# Failures a collaborator fetch may raise; each degrades to an absent value
_FETCH_ERRORS = (httpx.HTTPError, SigningError, ValueError, KeyError, TypeError)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CycleDeps:
    """Everything one cycle needs. Built once at startup and reused every hour."""
    market_data: MarketDataSource
    venue: VenueClient
    executor: OrderExecutor
    limits: GateLimits = field(default_factory=GateLimits)
    series_ticker: str = "KXBTCD"
    candle_granularity: int = 60
    candle_limit: int = 30
    volatility_window: int = 5
    position_size_pct: float = 10.0
    min_contracts: int = 1
    max_contracts: int = 100
    fetch_balance: bool = True
    dry_run: bool = False
    fusion_params: FusionParams = DEFAULT_FUSION_PARAMS
    clock: Callable[[], datetime] = _utcnow

    @classmethod
    def from_config(
        cls,
        cfg: Config,
        market_data: MarketDataSource,
        venue: VenueClient,
        executor: OrderExecutor,
        fetch_balance: bool,
        dry_run: bool = False,
    ) -> CycleDeps:
        return cls(
            market_data=market_data,
            venue=venue,
            executor=executor,
            limits=GateLimits.from_config(cfg),
            series_ticker=cfg.kalshi_series_ticker,
            candle_granularity=cfg.candle_granularity_sec,
            candle_limit=cfg.candle_limit,
            volatility_window=cfg.volatility_window_candles,
            position_size_pct=cfg.position_size_pct,
            min_contracts=cfg.min_contracts,
            max_contracts=cfg.max_contracts,
            fetch_balance=fetch_balance,
            dry_run=dry_run,
        )


def _safe_fetch(name: str, fn: Callable[[], Any]) -> Any:
    """Run one fetch; log and return None on collaborator failure."""
    try:
        return fn()
    except _FETCH_ERRORS as e:
        trade_log.warning("Fetch %s failed: %s", name, e)
        return None


def fetch_phase_one(deps: CycleDeps) -> dict[str, Any]:
    """Concurrent independent fetches. Missing values are None."""
    tasks: dict[str, Callable[[], Any]] = {
        "spot": deps.market_data.get_spot_price,
        "ticker": deps.market_data.get_ticker_price,
        "candles": lambda: deps.market_data.get_candles(deps.candle_granularity, deps.candle_limit),
        "markets": lambda: deps.venue.get_all_markets(series_ticker=deps.series_ticker, status="open"),
    }
    if deps.fetch_balance:
        tasks["balance"] = deps.venue.get_balance

    with ThreadPoolExecutor(max_workers=len(tasks)) as pool:
        futures = {name: pool.submit(_safe_fetch, name, fn) for name, fn in tasks.items()}
        results = {name: future.result() for name, future in futures.items()}
    results.setdefault("balance", None)
    return results


def run_cycle(deps: CycleDeps) -> CycleReport:
    """
    Run one cycle. Never raises: unexpected errors become a CycleReport with
    status ERROR so the scheduler keeps going.
    """
    start = time.perf_counter()
    now = deps.clock()
    try:
        report = _run(deps, now)
    except Exception as e:
        logger.exception("Cycle failed: %s", e)
        report = CycleReport(timestamp=now.isoformat(), status=CycleStatus.ERROR, error=str(e))
    return replace(report, elapsed_ms=(time.perf_counter() - start) * 1000)


def _run(deps: CycleDeps, now: datetime) -> CycleReport:
    timestamp = now.isoformat()
    fetched = fetch_phase_one(deps)

    reference_price = fetched["spot"] or fetched["ticker"]
    balance = fetched["balance"]
    if not reference_price:
        logger.warning("No reference price (spot and ticker both unavailable)")
        return CycleReport(timestamp=timestamp, status=CycleStatus.NO_PRICE, balance_usd=balance)

    candles = fetched["candles"] or []
    markets = fetched["markets"] or []
    selection = select_market(markets, reference_price, now)
    if selection is None:
        logger.info("No suitable market among %d listings", len(markets))
        return CycleReport(
            timestamp=timestamp,
            status=CycleStatus.NO_MARKET,
            reference_price=reference_price,
            balance_usd=balance,
        )
    market = selection.market

    signals = compute_signal_bundle(candles)
    volatility = recent_volatility_pct(candles, reference_price, deps.volatility_window)

    book = _safe_fetch("orderbook", lambda: deps.venue.get_orderbook(market.ticker))
    summary = summarize_order_book(book) if book else None
    if summary is not None:
        signals = signals.with_imbalance(summary.imbalance)

    decision = fuse(
        reference_price,
        market.strike,
        signals,
        selection.minutes_to_settlement,
        deps.fusion_params,
    )
    execution_price = market.ask_for(decision.side) if decision.side is not None else None

    gate = admit(decision, execution_price, volatility, deps.limits)
    common = dict(
        timestamp=timestamp,
        reference_price=reference_price,
        selection=selection,
        signals=signals,
        recent_volatility_pct=volatility,
        gate=gate,
        balance_usd=balance,
        execution_price_cents=execution_price,
    )
    if not gate.proceed:
        return CycleReport(status=CycleStatus.VETOED, decision=decision.with_veto(gate.reason), **common)

    count = compute_contract_count(
        balance,
        execution_price,
        deps.position_size_pct,
        deps.min_contracts,
        deps.max_contracts,
    )
    if deps.dry_run:
        logger.info(
            "[DRY-RUN] Would buy %s %s x%d @ %dc",
            market.ticker, decision.side.value, count, execution_price,
        )
        return CycleReport(status=CycleStatus.DRY_RUN, decision=decision, contract_count=count, **common)

    outcome = deps.executor.execute(market.ticker, decision.side, count, execution_price)
    return CycleReport(
        status=cycle_status_for(outcome),
        decision=decision,
        contract_count=count,
        outcome=outcome,
        **common,
    )
