"""
Structured logging with up to four outputs:
  - stderr: human-readable, ANSI-colored console output (stdout is reserved
    for the single-run JSON report)
  - file: append-only trade log, one "[ISO-8601] message" line per notification
  - file (optional): machine-readable single-line JSON (ndjson)
  - webhook (optional): each notification POSTed as {"text": message}

Notifications are ordinary log records on the "trades" logger; they also
propagate to the console.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import time
from datetime import datetime, timezone

import httpx

TRADE_LOGGER_NAME = "trades"

_WEBHOOK_TIMEOUT = 5.0

# ANSI color codes
_RESET = "\033[0m"
_BOLD = "\033[1m"
_DIM = "\033[2m"
_RED = "\033[31m"
_YELLOW = "\033[33m"
_CYAN = "\033[36m"
_WHITE = "\033[37m"

_LEVEL_STYLES = {
    "DEBUG": (_DIM, "DBG"),
    "INFO": (_CYAN, "INF"),
    "WARNING": (_YELLOW, "WRN"),
    "ERROR": (_RED, "ERR"),
    "CRITICAL": (_RED + _BOLD, "CRT"),
}


def get_trade_logger() -> logging.Logger:
    """Logger whose INFO+ records go to the trade log and webhook."""
    return logging.getLogger(TRADE_LOGGER_NAME)


class ConsoleFormatter(logging.Formatter):
    """Human-readable log lines with timestamps and color-coded levels."""

    def __init__(self, use_color: bool = True):
        super().__init__()
        self._use_color = use_color and _supports_color()

    def format(self, record: logging.LogRecord) -> str:
        ts = time.strftime("%H:%M:%S", time.localtime(record.created))
        color, tag = _LEVEL_STYLES.get(record.levelname, (_WHITE, "???"))
        msg = record.getMessage()

        if self._use_color:
            line = f"{_DIM}{ts}{_RESET} {color}{tag}{_RESET} {msg}"
        else:
            line = f"{ts} {tag} {msg}"

        if record.exc_info and record.exc_info[1]:
            if self._use_color:
                line += f"\n{_RED}     {record.exc_info[1]}{_RESET}"
            else:
                line += f"\n     {record.exc_info[1]}"

        return line


class JSONFormatter(logging.Formatter):
    """Single-line JSON for machine consumption."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = str(record.exc_info[1])
        return json.dumps(entry, separators=(",", ":"))


class TradeLogFormatter(logging.Formatter):
    """'[2026-01-31T21:50:00.123+00:00] message' lines for the append-only trade log."""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds")
        return f"[{ts}] {record.getMessage()}"


class WebhookHandler(logging.Handler):
    """
    POSTs {"text": message} to a chat webhook. Formatting and delivery failures
    go through Handler.handleError and never reach the caller.
    """

    def __init__(
        self,
        url: str,
        level: int = logging.INFO,
        timeout: float = _WEBHOOK_TIMEOUT,
        http: httpx.Client | None = None,
    ) -> None:
        super().__init__(level=level)
        self.url = url
        self._http = http or httpx.Client(timeout=timeout)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            resp = self._http.post(self.url, json={"text": self.format(record)})
            resp.raise_for_status()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        self._http.close()
        super().close()


def setup_logging(
    level: str = "INFO",
    trade_log_file: str | None = None,
    json_log_file: str | None = None,
    webhook_url: str | None = None,
) -> None:
    """
    Configure the root logger and the trade logger.
      - Always: ConsoleFormatter on stderr at the configured level
      - trade_log_file: append-only TradeLogFormatter handler on the trade logger
      - json_log_file: JSONFormatter handler on the root logger
      - webhook_url: WebhookHandler on the trade logger
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(getattr(logging, level.upper(), logging.INFO))
    console.setFormatter(ConsoleFormatter())
    root.addHandler(console)

    if json_log_file:
        fh = logging.FileHandler(json_log_file, mode="a")
        fh.setFormatter(JSONFormatter())
        root.addHandler(fh)

    trades = get_trade_logger()
    trades.setLevel(logging.INFO)
    for handler in trades.handlers[:]:
        trades.removeHandler(handler)
        handler.close()

    if trade_log_file:
        th = logging.FileHandler(trade_log_file, mode="a", encoding="utf-8")
        th.setLevel(logging.INFO)
        th.setFormatter(TradeLogFormatter())
        trades.addHandler(th)

    if webhook_url:
        wh = WebhookHandler(webhook_url)
        wh.setFormatter(logging.Formatter("%(message)s"))
        trades.addHandler(wh)

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _supports_color() -> bool:
    """Check if stderr supports ANSI color."""
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()
