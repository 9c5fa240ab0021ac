"""
Clean, scannable output for the hourly trader.

Pure formatting functions that emit log lines. Per-cycle summaries go to the
trade logger, so they land in the trade log and the webhook as well as the
console. All data arrives via arguments.
"""

from __future__ import annotations

import argparse
import logging

from config import Config, has_credentials
from monitor.logger import get_trade_logger
from scanner.models import CycleReport, CycleStatus

logger = logging.getLogger(__name__)

# Box-drawing characters
_TOP = "\u250c"  # ┌
_MID = "\u2502"  # │
_BOT = "\u2514"  # └

_STATUS_ICONS = {
    CycleStatus.FILLED: "\u2705",  # ✅
    CycleStatus.VETOED: "\u23ed\ufe0f",  # ⏭️
    CycleStatus.DRY_RUN: "\U0001f9ea",  # 🧪
    CycleStatus.NO_CREDENTIALS: "\U0001f440",  # 👀
}
_FAILURE_ICON = "\u274c"  # ❌


def _mode_label(args: argparse.Namespace, cfg: Config) -> str:
    if getattr(args, "dry_run", False):
        return "DRY-RUN"
    if not has_credentials(cfg):
        return "OBSERVE-ONLY"
    return "LIVE"


def print_startup(cfg: Config, args: argparse.Namespace) -> None:
    """Compact config block emitted once at startup."""
    mode = _mode_label(args, cfg)
    schedule = f"daemon @ :{cfg.run_at_minute:02d}" if getattr(args, "daemon", False) else "single run"
    logger.info("  Mode: %-13s Series: %s  Schedule: %s", mode, cfg.kalshi_series_ticker, schedule)
    edge = "off" if cfg.min_edge is None else f"{cfg.min_edge:.1f}pts"
    logger.info(
        "  Gate: conf >= %.0f%%  dist >= $%.0f  vol <= %.2f%%  price < %dc  edge %s",
        cfg.min_confidence, cfg.min_strike_distance_usd, cfg.max_volatility_pct,
        cfg.max_execution_price_cents, edge,
    )
    logger.info(
        "  Orders: %s +%dc  size %.0f%% [%d-%d]  retries %d @ %.1fs",
        cfg.order_type, cfg.price_buffer_cents, cfg.position_size_pct,
        cfg.min_contracts, cfg.max_contracts, cfg.max_retries, cfg.retry_backoff_sec,
    )


def print_report(report: CycleReport) -> None:
    """Emit the per-cycle summary box to the trade logger."""
    notify = get_trade_logger().info
    status = report.status

    if report.reference_price is None:
        notify("%s %s No reference price available", _TOP, _FAILURE_ICON)
        return
    if report.selection is None:
        notify("%s %s BTC $%.2f, no suitable market", _TOP, _FAILURE_ICON, report.reference_price)
        return

    market = report.selection.market
    notify(
        "%s BTC $%.2f %s strike $%s (%s, %.1f min to settle)",
        _TOP, report.reference_price, "above" if report.selection.is_above else "below",
        f"{market.strike:,.2f}", market.ticker, report.selection.minutes_to_settlement,
    )
    if report.decision is not None and report.decision.side is not None:
        notify(
            "%s Prediction: %s @ %.1f%% confidence (ask %sc)",
            _MID, report.decision.side.name, report.decision.confidence,
            report.execution_price_cents if report.execution_price_cents is not None else "-",
        )

    icon = _STATUS_ICONS.get(status, _FAILURE_ICON)
    if status is CycleStatus.VETOED and report.gate is not None and report.gate.reason is not None:
        notify("%s %s Skipped: %s", _BOT, icon, report.gate.reason.message)
    elif status is CycleStatus.FILLED and report.outcome is not None:
        notify(
            "%s %s Order placed: %d contracts, order_id=%s",
            _BOT, icon, report.contract_count or 0, report.outcome.order_id,
        )
    elif report.outcome is not None and report.outcome.error:
        notify(
            "%s %s %s after %d attempt(s): %s",
            _BOT, icon, status.value, report.outcome.attempt_count, report.outcome.error,
        )
    else:
        notify("%s %s %s (%d contracts)", _BOT, icon, status.value, report.contract_count or 0)


def print_cycle_error(error: str) -> None:
    get_trade_logger().error("%s %s Cycle error: %s", _TOP, _FAILURE_ICON, error)
