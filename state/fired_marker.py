"""
Per-hour fired marker. Records which hour keys (YYYY-MM-DDTHH, UTC) already
ran a cycle so the scheduler fires at most once per hour.

InMemoryFiredMarker is lost on restart; SqliteFiredMarker persists across
restarts so a crash-and-restart inside the trigger minute does not trade twice.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS fired_hours (
    hour_key TEXT PRIMARY KEY,
    fired_at REAL NOT NULL
);
"""


def hour_key(now: datetime) -> str:
    """Hour key in UTC, e.g. '2026-01-31T21'. Naive datetimes are taken as UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H")


@runtime_checkable
class FiredMarker(Protocol):
    """Remembers which hour keys have fired."""

    def has_fired(self, key: str) -> bool: ...

    def mark_fired(self, key: str) -> None: ...

    def close(self) -> None: ...


class InMemoryFiredMarker:
    """Keeps only the last fired key; the scheduler only ever asks about the current hour."""

    def __init__(self) -> None:
        self._last_key: str | None = None

    def has_fired(self, key: str) -> bool:
        return self._last_key == key

    def mark_fired(self, key: str) -> None:
        self._last_key = key

    def close(self) -> None:
        pass


class SqliteFiredMarker:
    """
    SQLite-backed marker. Thread-safe for single-writer usage.

    Usage:
        marker = SqliteFiredMarker("state.db")
        if not marker.has_fired(key):
            marker.mark_fired(key)
    """

    def __init__(self, db_path: str | Path, retain_hours: int = 24 * 7) -> None:
        self._db_path = str(db_path)
        self._retain_sec = retain_hours * 3600
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA busy_timeout=5000")
        return self._conn

    def _init_db(self) -> None:
        conn = self._get_conn()
        conn.executescript(_SCHEMA)
        conn.commit()

    def has_fired(self, key: str) -> bool:
        with self._lock:
            row = self._get_conn().execute(
                "SELECT 1 FROM fired_hours WHERE hour_key = ?", (key,)
            ).fetchone()
        return row is not None

    def mark_fired(self, key: str) -> None:
        """Persist the key. Atomic; old keys beyond the retention window are pruned."""
        now = time.time()
        with self._lock:
            conn = self._get_conn()
            conn.execute(
                "INSERT OR REPLACE INTO fired_hours (hour_key, fired_at) VALUES (?, ?)",
                (key, now),
            )
            conn.execute("DELETE FROM fired_hours WHERE fired_at < ?", (now - self._retain_sec,))
            conn.commit()
        logger.debug("Fired marker saved: %s", key)

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None


def build_fired_marker(db_path: str = "") -> FiredMarker:
    """SQLite marker when a path is configured, in-memory otherwise."""
    if db_path:
        return SqliteFiredMarker(db_path)
    return InMemoryFiredMarker()
