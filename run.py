#!/usr/bin/env python3
"""
Hourly BTC binary-market trader -- single entry point.

Each cycle:
  1. Fetch spot/ticker/candles/markets/balance concurrently
  2. Select the strike instance of the next-settling event
  3. Fuse signals into a side + confidence
  4. Risk-gate, size, and submit one order with bounded retries

Usage:
  python run.py                 # one cycle now, JSON report on stdout
  python run.py --dry-run       # one cycle, never submits an order
  python run.py --daemon        # fire once per hour at RUN_AT_MINUTE (default :50)
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys

from pydantic import ValidationError

from client.coinbase import CoinbaseClient
from client.kalshi import KalshiClient
from client.kalshi_auth import build_kalshi_auth
from config import Config, load_config
from executor.engine import OrderExecutor
from monitor.display import print_cycle_error, print_report, print_startup
from monitor.logger import setup_logging
from pipeline.cycle import CycleDeps, run_cycle
from pipeline.scheduler import HourlyScheduler
from scanner.models import CycleReport, CycleStatus
from state.fired_marker import build_fired_marker

logger = logging.getLogger(__name__)

_BANNER = """
  ===========================================
    Hourly BTC Trader
  ===========================================
"""


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Hourly BTC binary-market trader")
    parser.add_argument("--daemon", action="store_true", help="Run every hour at RUN_AT_MINUTE until interrupted")
    parser.add_argument("--dry-run", action="store_true", help="Run the full pipeline but never submit an order")
    parser.add_argument("--json-log", type=str, default=None, help="Path to JSON log file for machine-readable output")
    return parser.parse_args(argv)


def build_deps(cfg: Config, dry_run: bool) -> CycleDeps:
    """Wire clients, executor and limits. Raises if a configured key cannot be loaded."""
    auth = build_kalshi_auth(cfg)
    venue = KalshiClient(
        auth,
        host=cfg.kalshi_host,
        timeout=cfg.fetch_timeout_sec,
        order_timeout=cfg.order_timeout_sec,
    )
    market_data = CoinbaseClient(
        base_url=cfg.coinbase_base_url,
        exchange_url=cfg.coinbase_exchange_url,
        product_id=cfg.product_id,
        timeout=cfg.fetch_timeout_sec,
    )
    executor = OrderExecutor.from_config(venue, cfg, auth_present=auth is not None)
    return CycleDeps.from_config(
        cfg,
        market_data=market_data,
        venue=venue,
        executor=executor,
        fetch_balance=auth is not None,
        dry_run=dry_run,
    )


def run_and_report(deps: CycleDeps) -> CycleReport:
    report = run_cycle(deps)
    if report.status is CycleStatus.ERROR:
        print_cycle_error(report.error or "unknown error")
    else:
        print_report(report)
    return report


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    try:
        cfg = load_config()
    except ValidationError as e:
        setup_logging("INFO")
        logger.error("Invalid configuration: %s", e)
        sys.exit(1)

    setup_logging(
        cfg.log_level,
        trade_log_file=cfg.trade_log_file or None,
        json_log_file=args.json_log,
        webhook_url=cfg.notify_webhook or None,
    )
    logger.info(_BANNER.strip())
    print_startup(cfg, args)

    try:
        deps = build_deps(cfg, dry_run=args.dry_run)
    except (OSError, ValueError, TypeError) as e:
        logger.error("Failed to load Kalshi private key %s: %s", cfg.kalshi_private_key_path, e)
        sys.exit(1)

    if not args.daemon:
        report = run_and_report(deps)
        sys.stdout.write(json.dumps(report.to_dict(), indent=2) + "\n")
        sys.stdout.flush()
        return

    marker = build_fired_marker(cfg.fired_marker_db)
    scheduler = HourlyScheduler(
        lambda: run_and_report(deps),
        run_at_minute=cfg.run_at_minute,
        marker=marker,
        poll_interval_sec=cfg.poll_interval_sec,
    )

    def handle_signal(signum, frame):
        logger.info("Signal %d received, stopping after the current poll", signum)
        scheduler.stop()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)
    try:
        scheduler.run_forever()
    finally:
        marker.close()


if __name__ == "__main__":
    main()
