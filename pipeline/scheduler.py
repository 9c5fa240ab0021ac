"""
Wall-clock scheduler. Fires the trading cycle once per hour at a fixed minute.

Polls at a short interval rather than sleeping until the trigger so that
clock adjustments and suspend/resume cannot skip an hour. The fired marker
is set before the cycle runs: a cycle that crashes still counts as fired,
so an hour never trades twice.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from monitor.logger import get_trade_logger
from state.fired_marker import FiredMarker, InMemoryFiredMarker, hour_key

logger = logging.getLogger(__name__)
trade_log = get_trade_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def next_trigger_time(now: datetime, minute: int) -> datetime:
    """First time strictly after `now` whose minute is `minute` (seconds zeroed)."""
    candidate = now.replace(minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(hours=1)
    return candidate


class HourlyScheduler:
    """
    Usage:
        scheduler = HourlyScheduler(lambda: run_cycle(deps), run_at_minute=50)
        scheduler.run_forever()   # until stop()
    """

    def __init__(
        self,
        cycle: Callable[[], Any],
        run_at_minute: int = 50,
        marker: FiredMarker | None = None,
        poll_interval_sec: float = 1.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not 0 <= run_at_minute <= 59:
            raise ValueError(f"run_at_minute must be 0-59, got {run_at_minute}")
        self._cycle = cycle
        self.run_at_minute = run_at_minute
        self._marker = marker if marker is not None else InMemoryFiredMarker()
        self.poll_interval_sec = poll_interval_sec
        self._clock = clock
        self._stop = threading.Event()
        self.fired_count = 0

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def poll(self, now: datetime | None = None) -> bool:
        """
        Check the clock once. Runs the cycle and returns True when this is the
        trigger minute of an hour that has not fired yet.
        """
        now = now or self._clock()
        if now.minute != self.run_at_minute:
            return False
        key = hour_key(now)
        if self._marker.has_fired(key):
            return False

        self._marker.mark_fired(key)
        self.fired_count += 1
        trade_log.info("Trigger %s:%02d reached, running cycle", key, self.run_at_minute)
        try:
            self._cycle()
        except Exception as e:
            trade_log.exception("Cycle for %s raised: %s", key, e)
        return True

    def run_forever(self) -> None:
        """Poll until stop() is called."""
        logger.info(
            "Scheduler started, next run at %s",
            next_trigger_time(self._clock(), self.run_at_minute).isoformat(),
        )
        while not self._stop.is_set():
            if self.poll():
                logger.info(
                    "Next run at %s",
                    next_trigger_time(self._clock(), self.run_at_minute).isoformat(),
                )
            self._stop.wait(self.poll_interval_sec)
        logger.info("Scheduler stopped after %d cycle(s)", self.fired_count)

    def stop(self) -> None:
        self._stop.set()
