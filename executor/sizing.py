"""
Position sizing: a fixed fraction of balance with hard contract caps.
"""

from __future__ import annotations

import logging
import math

logger = logging.getLogger(__name__)


def compute_contract_count(
    balance_usd: float | None,
    price_cents: int,
    position_size_pct: float = 10.0,
    min_contracts: int = 1,
    max_contracts: int = 100,
) -> int:
    """
    Contracts affordable with position_size_pct of the balance at price_cents,
    clamped to [min_contracts, max_contracts].

    Unknown balance (fetch failed or observe-only) sizes at min_contracts.
    """
    if balance_usd is None or price_cents <= 0:
        return min_contracts

    budget = balance_usd * position_size_pct / 100.0
    affordable = math.floor(budget / (price_cents / 100.0))
    count = max(min_contracts, min(max_contracts, affordable))
    logger.debug(
        "Sizing: balance=$%.2f pct=%.1f%% price=%dc -> %d contracts",
        balance_usd, position_size_pct, price_cents, count,
    )
    return count
