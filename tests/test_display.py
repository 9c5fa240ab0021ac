"""
Unit tests for monitor/display.py -- startup block and per-cycle summaries.
"""

from __future__ import annotations

import argparse
import logging
from datetime import datetime, timezone

from config import Config
from monitor.display import print_cycle_error, print_report, print_startup
from monitor.logger import TRADE_LOGGER_NAME
from scanner.models import (
    CycleReport,
    CycleStatus,
    Decision,
    GateResult,
    MarketInstance,
    OrderOutcome,
    OutcomeStatus,
    SelectionResult,
    Side,
    VetoKind,
    VetoReason,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _selection() -> SelectionResult:
    market = MarketInstance(
        ticker="KXBTCD-26JAN3122-T78749.99",
        event_id="KXBTCD-26JAN3122",
        strike=78749.99,
        settlement_time=datetime(2026, 1, 31, 22, 0, tzinfo=timezone.utc),
        yes_ask=62,
        no_ask=40,
    )
    return SelectionResult(
        market=market, reference_price=78771.37, minutes_to_settlement=44.0,
        distance_usd=21.38, distance_pct=0.0271,
    )


def _decision() -> Decision:
    return Decision(side=Side.ABOVE, confidence=71.0, reference_price=78771.37, strike=78749.99)


def _report(status: CycleStatus, **kwargs) -> CycleReport:
    base = dict(
        timestamp="2026-01-31T21:16:00+00:00",
        status=status,
        reference_price=78771.37,
        selection=_selection(),
        decision=_decision(),
        execution_price_cents=62,
    )
    base.update(kwargs)
    return CycleReport(**base)


def _collect_logs(caplog, name, func, *args, **kwargs):
    """Call a display function and return the log messages emitted on one logger."""
    with caplog.at_level(logging.INFO, logger=name):
        func(*args, **kwargs)
    return [r.message for r in caplog.records if r.name == name]


def _notifications(caplog, report):
    return _collect_logs(caplog, TRADE_LOGGER_NAME, print_report, report)


# ---------------------------------------------------------------------------
# print_startup
# ---------------------------------------------------------------------------

class TestPrintStartup:
    def _args(self, **kwargs):
        return argparse.Namespace(dry_run=kwargs.get("dry_run", False), daemon=kwargs.get("daemon", False))

    def test_observe_only_without_credentials(self, caplog):
        msgs = _collect_logs(caplog, "monitor.display", print_startup, Config(_env_file=None), self._args())
        assert "OBSERVE-ONLY" in msgs[0]
        assert "single run" in msgs[0]

    def test_dry_run_label(self, caplog):
        msgs = _collect_logs(
            caplog, "monitor.display", print_startup, Config(_env_file=None), self._args(dry_run=True),
        )
        assert "DRY-RUN" in msgs[0]

    def test_live_daemon(self, caplog):
        cfg = Config(_env_file=None, kalshi_api_key_id="key", kalshi_private_key_path="/k.pem", run_at_minute=45)
        msgs = _collect_logs(caplog, "monitor.display", print_startup, cfg, self._args(daemon=True))
        assert "LIVE" in msgs[0]
        assert "daemon @ :45" in msgs[0]

    def test_gate_thresholds(self, caplog):
        msgs = _collect_logs(caplog, "monitor.display", print_startup, Config(_env_file=None), self._args())
        gate = next(m for m in msgs if "Gate:" in m)
        assert "conf >= 50%" in gate
        assert "edge off" in gate


# ---------------------------------------------------------------------------
# print_report
# ---------------------------------------------------------------------------

class TestPrintReport:
    def test_filled(self, caplog):
        outcome = OrderOutcome(status=OutcomeStatus.FILLED, order_id="ord-1")
        msgs = _notifications(caplog, _report(CycleStatus.FILLED, outcome=outcome, contract_count=16))
        assert "above strike $78,749.99" in msgs[0]
        assert "ABOVE @ 71.0% confidence (ask 62c)" in msgs[1]
        assert "16 contracts, order_id=ord-1" in msgs[-1]

    def test_vetoed_shows_reason(self, caplog):
        reason = VetoReason(VetoKind.TOO_CLOSE, "Too close to call: $3.01 from strike < $20.00")
        report = _report(CycleStatus.VETOED, gate=GateResult(proceed=False, reason=reason))
        msgs = _notifications(caplog, report)
        assert "Skipped: Too close to call" in msgs[-1]

    def test_exhausted_shows_error(self, caplog):
        outcome = OrderOutcome(status=OutcomeStatus.EXHAUSTED, error="HTTP 503")
        msgs = _notifications(caplog, _report(CycleStatus.EXHAUSTED, outcome=outcome))
        assert "exhausted after 0 attempt(s): HTTP 503" in msgs[-1]

    def test_no_price(self, caplog):
        report = CycleReport(timestamp="t", status=CycleStatus.NO_PRICE)
        msgs = _notifications(caplog, report)
        assert len(msgs) == 1
        assert "No reference price" in msgs[0]

    def test_no_market(self, caplog):
        report = CycleReport(timestamp="t", status=CycleStatus.NO_MARKET, reference_price=78771.37)
        msgs = _notifications(caplog, report)
        assert "no suitable market" in msgs[0]

    def test_dry_run(self, caplog):
        msgs = _notifications(caplog, _report(CycleStatus.DRY_RUN, contract_count=16))
        assert "dry_run (16 contracts)" in msgs[-1]


class TestPrintCycleError:
    def test_logged_as_error(self, caplog):
        with caplog.at_level(logging.INFO, logger=TRADE_LOGGER_NAME):
            print_cycle_error("boom")
        records = [r for r in caplog.records if r.name == TRADE_LOGGER_NAME]
        assert records[0].levelno == logging.ERROR
        assert "Cycle error: boom" in records[0].message
