"""
Order execution engine. Submits one authenticated order with bounded retries.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

import httpx

from client.kalshi_auth import SigningError
from client.platform import VenueClient
from config import Config
from executor.exec_state import ExecState, transition_to
from monitor.logger import get_trade_logger
from scanner.models import (
    AttemptOutcome,
    OrderAttempt,
    OrderOutcome,
    OutcomeStatus,
    Side,
)

logger = logging.getLogger(__name__)
trade_log = get_trade_logger()

MAX_PRICE_CENTS = 99

# Venue order status meaning the request was accepted but the order is dead
_DEAD_ORDER_STATUSES = frozenset({"canceled", "cancelled"})


def protective_price(price_cents: int, buffer_cents: int = 1) -> int:
    """Ask plus a small buffer to improve fill odds, capped at 99c."""
    return min(MAX_PRICE_CENTS, price_cents + buffer_cents)


class OrderExecutor:
    """
    Drives a single order through ExecState.

    Retries on non-2xx, timeouts and transport errors with a fixed backoff,
    at most max_retries + 1 attempts in total. Signing failures and
    venue-side cancellations are terminal and never retried.

    Retries are not deduplicated: if a timed-out request actually reached
    the venue, a retry can place a second order.
    """

    def __init__(
        self,
        venue: VenueClient | None,
        auth_present: bool,
        max_retries: int = 2,
        backoff_sec: float = 0.5,
        price_buffer_cents: int = 1,
        order_type: str = "limit",
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        if order_type not in ("limit", "market"):
            raise ValueError(f"Unknown order type: {order_type}")
        self._venue = venue
        self._auth_present = auth_present
        self.max_retries = max_retries
        self.backoff_sec = backoff_sec
        self.price_buffer_cents = price_buffer_cents
        self.order_type = order_type
        self._sleep = sleep

    @property
    def auth_present(self) -> bool:
        return self._auth_present

    @classmethod
    def from_config(cls, venue: VenueClient | None, cfg: Config, auth_present: bool) -> OrderExecutor:
        return cls(
            venue=venue,
            auth_present=auth_present,
            max_retries=cfg.max_retries,
            backoff_sec=cfg.retry_backoff_sec,
            price_buffer_cents=cfg.price_buffer_cents,
            order_type=cfg.order_type,
        )

    def _order_kwargs(self, side: Side, count: int, limit_price: int) -> dict:
        if self.order_type == "market":
            return {"type": "market", "buy_max_cost": count * limit_price}
        price_field = "yes_price" if side is Side.ABOVE else "no_price"
        return {"type": "limit", price_field: limit_price}

    def _recorder(
        self,
        attempts: list[OrderAttempt],
        ticker: str,
        side: Side,
        contract_count: int,
        price_cents: int,
        attempt_number: int,
    ) -> Callable[..., None]:
        """Bind the per-attempt fields; the returned callable appends one OrderAttempt."""
        def record(outcome: AttemptOutcome, **extra) -> None:
            attempts.append(OrderAttempt(
                ticker=ticker,
                side=side,
                contract_count=contract_count,
                price_cents=price_cents,
                attempt_number=attempt_number,
                outcome=outcome,
                order_type=self.order_type,
                **extra,
            ))
        return record

    def execute(self, ticker: str, side: Side, contract_count: int, price_cents: int) -> OrderOutcome:
        """
        Submit the order. Returns an OrderOutcome in a terminal status;
        transport and venue errors never escape.
        """
        if contract_count < 1:
            raise ValueError(f"contract_count must be >= 1, got {contract_count}")

        state = ExecState.UNAUTHENTICATED
        if not self._auth_present or self._venue is None:
            transition_to(state, ExecState.NO_CREDENTIALS)
            logger.info("No credentials, not submitting %s %s x%d", ticker, side.value, contract_count)
            return OrderOutcome(status=OutcomeStatus.NO_CREDENTIALS, error="credentials not configured")

        limit_price = protective_price(price_cents, self.price_buffer_cents)
        kwargs = self._order_kwargs(side, contract_count, limit_price)
        attempts: list[OrderAttempt] = []
        max_attempts = self.max_retries + 1
        last_error: str | None = None

        for attempt_number in range(1, max_attempts + 1):
            state = transition_to(state, ExecState.SIGNING)
            record = self._recorder(attempts, ticker, side, contract_count, limit_price, attempt_number)
            try:
                response = self._venue.place_order(
                    ticker=ticker, side=side.value, count=contract_count, **kwargs,
                )
            except SigningError as e:
                transition_to(state, ExecState.SIGNING_FAILED)
                trade_log.error("Order signing failed for %s: %s", ticker, e)
                return OrderOutcome(
                    status=OutcomeStatus.SIGNING_FAILED, attempts=tuple(attempts), error=str(e),
                )
            except httpx.HTTPStatusError as e:
                last_error = f"HTTP {e.response.status_code}: {e.response.text[:200]}"
                record(AttemptOutcome.REJECTED, status_code=e.response.status_code, error=last_error)
            except httpx.TimeoutException as e:
                last_error = f"timeout: {e}"
                record(AttemptOutcome.TIMEOUT, error=last_error)
            except httpx.TransportError as e:
                last_error = f"network error: {e}"
                record(AttemptOutcome.NETWORK_ERROR, error=last_error)
            else:
                state = transition_to(state, ExecState.SUBMITTED)
                order = (response or {}).get("order") or response or {}
                order_id = order.get("order_id")
                status = str(order.get("status") or "").lower()
                if status in _DEAD_ORDER_STATUSES:
                    last_error = f"order {order_id} {status} by venue"
                    record(AttemptOutcome.REJECTED, order_id=order_id, status_code=200, error=last_error)
                    transition_to(state, ExecState.REJECTED)
                    trade_log.warning("Order rejected by venue: %s %s (%s)", ticker, side.value, status)
                    return OrderOutcome(
                        status=OutcomeStatus.REJECTED,
                        attempts=tuple(attempts),
                        order_id=order_id,
                        error=last_error,
                    )
                record(AttemptOutcome.FILLED, order_id=order_id, status_code=200)
                transition_to(state, ExecState.FILLED)
                logger.info(
                    "Order placed: %s %s x%d @ %dc (order_id=%s, attempt %d)",
                    ticker, side.value, contract_count, limit_price, order_id, attempt_number,
                )
                return OrderOutcome(status=OutcomeStatus.FILLED, attempts=tuple(attempts), order_id=order_id)

            state = transition_to(state, ExecState.SUBMITTED)
            if attempt_number < max_attempts:
                state = transition_to(state, ExecState.RETRYING)
                trade_log.warning(
                    "Order failed, retrying (%d/%d) in %.1fs: %s",
                    attempt_number, self.max_retries, self.backoff_sec, last_error,
                )
                self._sleep(self.backoff_sec)

        transition_to(state, ExecState.EXHAUSTED)
        trade_log.error("Order exhausted after %d attempts: %s", len(attempts), last_error)
        return OrderOutcome(status=OutcomeStatus.EXHAUSTED, attempts=tuple(attempts), error=last_error)
