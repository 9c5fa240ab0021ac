"""
Configuration loaded from environment variables. Fail-fast on invalid values.

Defaults are inert: without Kalshi credentials the bot runs observe-only and
never places an order.
"""

from typing import Literal

from pydantic_settings import BaseSettings
from pydantic import Field, model_validator


class Config(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "frozen": True, "extra": "ignore"}

    # Kalshi credentials (both required to trade; empty = observe-only)
    kalshi_api_key_id: str = ""
    kalshi_private_key_path: str = ""
    kalshi_host: str = "https://api.elections.kalshi.com/trade-api/v2"
    kalshi_series_ticker: str = "KXBTCD"
    # Older venue variant signs timestamp + method + path + body
    kalshi_sign_body: bool = False

    # Reference price source
    coinbase_base_url: str = "https://api.coinbase.com/v2"
    coinbase_exchange_url: str = "https://api.exchange.coinbase.com"
    product_id: str = "BTC-USD"
    candle_granularity_sec: int = Field(default=60, gt=0)
    candle_limit: int = Field(default=30, ge=1, le=300)

    # Risk gate
    min_confidence: float = Field(default=50.0, ge=0.0, le=100.0)
    # Skip coin flips: reference price within $X of the strike
    min_strike_distance_usd: float = Field(default=20.0, ge=0.0)
    # High-minus-low range over the volatility window, as % of price
    max_volatility_pct: float = Field(default=0.8, gt=0.0)
    volatility_window_candles: int = Field(default=5, ge=1)
    # Asks at or above this leave too little upside
    max_execution_price_cents: int = Field(default=95, ge=2, le=100)
    # Confidence minus ask price, in points. None disables the edge veto.
    min_edge: float | None = None

    # Sizing
    position_size_pct: float = Field(default=10.0, gt=0.0, le=100.0)
    min_contracts: int = Field(default=1, ge=1)
    max_contracts: int = Field(default=100, ge=1)

    # Execution
    max_retries: int = Field(default=2, ge=0, le=10)
    retry_backoff_sec: float = Field(default=0.5, ge=0.0)
    price_buffer_cents: int = Field(default=1, ge=0, le=10)
    order_type: Literal["limit", "market"] = "limit"
    order_timeout_sec: float = Field(default=5.0, gt=0)
    fetch_timeout_sec: float = Field(default=5.0, gt=0)

    # Scheduling
    run_at_minute: int = Field(default=50, ge=0, le=59)
    poll_interval_sec: float = Field(default=1.0, gt=0, lt=60)
    # Empty = in-memory marker (lost on restart)
    fired_marker_db: str = ""

    # Logging / notification
    log_level: str = "INFO"
    trade_log_file: str = "trades.log"
    notify_webhook: str = ""

    @model_validator(mode="after")
    def _contract_bounds(self) -> "Config":
        if self.min_contracts > self.max_contracts:
            raise ValueError(
                f"min_contracts ({self.min_contracts}) exceeds max_contracts ({self.max_contracts})"
            )
        return self


def has_credentials(cfg: Config) -> bool:
    """True when both the key id and the private key path are configured."""
    return bool(cfg.kalshi_api_key_id and cfg.kalshi_private_key_path)


def load_config() -> Config:
    """Load and validate config from environment. Raises on invalid values."""
    return Config()
