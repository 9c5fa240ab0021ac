"""
Collaborator protocols consumed by the trading cycle.

KalshiClient satisfies VenueClient and CoinbaseClient satisfies
MarketDataSource; any other venue or price feed with the same signatures
plugs in with zero changes to scanner/executor/pipeline code.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from scanner.models import Candle


@runtime_checkable
class VenueClient(Protocol):
    """Listings, orderbook, order submission and balance on the binary venue."""

    def get_all_markets(self, series_ticker: str | None = None, status: str = "open") -> list[dict]:
        """Raw open market dicts for the series."""
        ...

    def get_orderbook(self, ticker: str) -> dict:
        """Raw orderbook payload for one ticker."""
        ...

    def place_order(
        self,
        ticker: str,
        side: str,
        count: int,
        type: str = "limit",
        **kwargs,
    ) -> dict:
        """Submit one order. Raises on non-2xx or transport failure."""
        ...

    def get_balance(self) -> float:
        """Get account balance in dollars."""
        ...


@runtime_checkable
class MarketDataSource(Protocol):
    """Reference price and candle history for the underlying."""

    def get_spot_price(self) -> float:
        ...

    def get_ticker_price(self) -> float:
        ...

    def get_candles(self, granularity: int = 60, limit: int = 30) -> list[Candle]:
        ...
