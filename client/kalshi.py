"""
Kalshi REST API v2 client. Market discovery, orderbook fetching, order placement.

Kalshi API docs: https://trading-api.readme.io/reference
All prices are in cents (1-99). Markets and orderbooks are returned as raw
dicts; parsing lives in scanner.selector and scanner.indicators.
"""

from __future__ import annotations

import json
import logging
import random
import time
from urllib.parse import urlparse

import httpx

from client.kalshi_auth import KalshiAuth, SigningError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0
_MAX_READS_PER_SEC = 10  # stay well under 20/sec limit
_PAGE_DELAY_SEC = 1.0 / _MAX_READS_PER_SEC
_MAX_PAGES = 20
_429_MAX_RETRIES = 3
_429_BACKOFF_SEC = 5.0
_429_JITTER_FRAC = 0.15


def validate_cents(price: int, context: str = "price") -> int:
    """Fail-fast on prices outside the venue's 1-99 cent range."""
    if not isinstance(price, int) or price < 1 or price > 99:
        raise ValueError(f"Kalshi {context} out of range: {price!r} (must be 1-99 cents)")
    return price


class KalshiClient:
    """
    Kalshi REST API v2 client.

    Reads (markets, orderbook) work without credentials; when auth is
    present every request is signed. Balance and orders require auth.

    Order submission never retries here: retry policy belongs to the
    executor, and a duplicated POST is a duplicated order.
    """

    @property
    def platform_name(self) -> str:
        return "kalshi"

    def __init__(
        self,
        auth: KalshiAuth | None,
        host: str = "https://api.elections.kalshi.com/trade-api/v2",
        timeout: float = DEFAULT_TIMEOUT,
        order_timeout: float = DEFAULT_TIMEOUT,
        http: httpx.Client | None = None,
    ) -> None:
        self._auth = auth
        self._host = host.rstrip("/")
        self._order_timeout = order_timeout
        self._http = http or httpx.Client(timeout=timeout)
        self._rate_limited_until: dict[str, float] = {}

    @property
    def has_auth(self) -> bool:
        return self._auth is not None

    def _headers(self, method: str, url: str, body: str, signed: bool) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if body:
            headers["Content-Type"] = "application/json"
        if self._auth is None:
            if signed:
                raise SigningError("Kalshi credentials not configured")
            return headers
        # Sign with the full URL path (e.g. /trade-api/v2/markets), no query string
        full_path = urlparse(url).path
        headers.update(self._auth.sign_request(method, full_path, body=body))
        return headers

    def _request(
        self,
        method: str,
        path: str,
        signed: bool = False,
        retry_429: bool = True,
        json_body: dict | None = None,
        **kwargs,
    ) -> httpx.Response:
        """
        Send a request and return the response. Raises httpx.HTTPStatusError on
        non-2xx, httpx.TimeoutException / TransportError on transport failure and
        SigningError when the request cannot be signed. Retries on 429 when allowed.
        """
        url = f"{self._host}{path}"
        body = json.dumps(json_body, separators=(",", ":")) if json_body is not None else ""
        cooldown_key = f"{method}:{path}"

        now = time.time()
        blocked_until = self._rate_limited_until.get(cooldown_key, 0.0)
        if retry_429 and blocked_until > now:
            wait = blocked_until - now
            logger.debug("Kalshi cooldown active on %s %s, sleeping %.1fs", method, path, wait)
            time.sleep(wait)

        attempts = _429_MAX_RETRIES + 1 if retry_429 else 1
        for attempt in range(attempts):
            headers = self._headers(method, url, body, signed)
            if body:
                kwargs["content"] = body
            resp = self._http.request(method, url, headers=headers, **kwargs)
            if resp.status_code != 429 or attempt == attempts - 1:
                break

            # 429 Too Many Requests: back off and retry
            retry_after = 0.0
            raw_retry_after = resp.headers.get("Retry-After")
            if raw_retry_after:
                try:
                    retry_after = max(0.0, float(raw_retry_after))
                except ValueError:
                    retry_after = 0.0
            wait = max(retry_after, _429_BACKOFF_SEC * (2 ** attempt))
            wait *= 1.0 + random.uniform(-_429_JITTER_FRAC, _429_JITTER_FRAC)
            wait = max(0.5, wait)
            self._rate_limited_until[cooldown_key] = time.time() + wait
            logger.warning(
                "Kalshi 429 rate limited on %s %s (attempt %d/%d, waiting %.1fs)",
                method, path, attempt + 1, attempts, wait,
            )
            time.sleep(wait)

        if resp.status_code != 429:
            self._rate_limited_until.pop(cooldown_key, None)
        resp.raise_for_status()
        return resp

    # -- Market Discovery --

    def get_markets(
        self,
        series_ticker: str | None = None,
        status: str = "open",
        limit: int = 200,
        cursor: str | None = None,
    ) -> tuple[list[dict], str | None]:
        """Fetch one page of markets. Returns (markets, next_cursor)."""
        params: dict = {"limit": limit, "status": status}
        if series_ticker:
            params["series_ticker"] = series_ticker
        if cursor:
            params["cursor"] = cursor

        data = self._request("GET", "/markets", params=params).json()
        next_cursor = data.get("cursor") or None
        return list(data.get("markets") or []), next_cursor

    def get_all_markets(self, series_ticker: str | None = None, status: str = "open") -> list[dict]:
        """Fetch all markets with pagination. Rate-limited to stay under API limits."""
        all_markets: list[dict] = []
        cursor = None
        page = 0
        while page < _MAX_PAGES:
            markets, cursor = self.get_markets(series_ticker=series_ticker, status=status, cursor=cursor)
            all_markets.extend(markets)
            page += 1
            if not cursor or not markets:
                break
            time.sleep(_PAGE_DELAY_SEC)
        logger.debug("Fetched %d Kalshi markets in %d pages", len(all_markets), page)
        return all_markets

    # -- Orderbook --

    def get_orderbook(self, ticker: str) -> dict:
        """
        Raw orderbook for one ticker: {"orderbook": {"yes": [[cents, qty], ...], "no": [...]}}.
        Both arrays are resting bids.
        """
        return self._request("GET", f"/markets/{ticker}/orderbook").json()

    # -- Orders --

    def place_order(
        self,
        ticker: str,
        side: str,
        count: int,
        type: str = "limit",
        action: str = "buy",
        yes_price: int | None = None,
        no_price: int | None = None,
        buy_max_cost: int | None = None,
    ) -> dict:
        """
        Submit a single order. One HTTP attempt; errors propagate to the caller.

        Args:
            ticker: Market ticker
            side: "yes" or "no"
            count: Number of contracts (>= 1)
            type: "limit" or "market"
            action: "buy" or "sell"
            yes_price / no_price: Limit price in cents (1-99)
            buy_max_cost: Market orders only, total spend cap in cents
        """
        if count < 1:
            raise ValueError(f"Order count must be >= 1, got {count}")
        body: dict = {
            "ticker": ticker,
            "side": side,
            "action": action,
            "count": count,
            "type": type,
        }
        if yes_price is not None:
            body["yes_price"] = validate_cents(yes_price, "yes_price")
        if no_price is not None:
            body["no_price"] = validate_cents(no_price, "no_price")
        if buy_max_cost is not None:
            body["buy_max_cost"] = buy_max_cost

        resp = self._request(
            "POST", "/portfolio/orders",
            signed=True, retry_429=False, json_body=body, timeout=self._order_timeout,
        )
        return resp.json()

    # -- Account --

    def get_balance(self) -> float:
        """Get account balance in dollars."""
        data = self._request("GET", "/portfolio/balance", signed=True).json()
        return data.get("balance", 0) / 100.0  # cents -> dollars

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._http.close()
