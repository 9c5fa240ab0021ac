"""
Coinbase public market data: spot price, exchange ticker, 1-minute candles.
No authentication required.
"""

from __future__ import annotations

import logging

import httpx

from scanner.models import Candle

logger = logging.getLogger(__name__)

_TIMEOUT = 5.0


class CoinbaseClient:
    """Reference-price source for one product (default BTC-USD)."""

    def __init__(
        self,
        base_url: str = "https://api.coinbase.com/v2",
        exchange_url: str = "https://api.exchange.coinbase.com",
        product_id: str = "BTC-USD",
        timeout: float = _TIMEOUT,
        http: httpx.Client | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._exchange_url = exchange_url.rstrip("/")
        self.product_id = product_id
        self._http = http or httpx.Client(timeout=timeout, headers={"Accept": "application/json"})

    def _get(self, url: str, **kwargs):
        resp = self._http.get(url, **kwargs)
        resp.raise_for_status()
        return resp.json()

    def get_spot_price(self) -> float:
        """Current spot price from the consumer API."""
        data = self._get(f"{self._base_url}/prices/{self.product_id}/spot")
        try:
            return float(data["data"]["amount"])
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed Coinbase spot payload: {data!r}") from e

    def get_ticker(self) -> dict:
        """Exchange ticker: price, bid, ask, volume (floats) and time (ISO string)."""
        data = self._get(f"{self._exchange_url}/products/{self.product_id}/ticker")
        try:
            return {
                "price": float(data["price"]),
                "bid": float(data.get("bid") or 0.0),
                "ask": float(data.get("ask") or 0.0),
                "volume": float(data.get("volume") or 0.0),
                "time": data.get("time"),
            }
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed Coinbase ticker payload: {data!r}") from e

    def get_ticker_price(self) -> float:
        return self.get_ticker()["price"]

    def get_candles(self, granularity: int = 60, limit: int = 30) -> list[Candle]:
        """
        Most recent `limit` candles in chronological order.

        The exchange returns rows newest-first as [time, low, high, open, close, volume].
        """
        rows = self._get(
            f"{self._exchange_url}/products/{self.product_id}/candles",
            params={"granularity": granularity},
        )
        candles = []
        for row in (rows or [])[:limit]:
            try:
                t, low, high, open_, close, volume = row[:6]
                candles.append(Candle(
                    time=float(t),
                    open=float(open_),
                    high=float(high),
                    low=float(low),
                    close=float(close),
                    volume=float(volume),
                ))
            except (TypeError, ValueError) as e:
                logger.debug("Skipping malformed candle %r: %s", row, e)
        candles.reverse()
        return candles

    def close(self) -> None:
        self._http.close()
