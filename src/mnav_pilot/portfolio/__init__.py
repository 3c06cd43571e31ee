"""
Portfolio module for the treasury portfolio monitor.

Provides valuation of configured holdings into position-level analytics.
"""

from mnav_pilot.portfolio.valuation import (
    REQUIRED_SYMBOLS,
    find_missing_prices,
    get_positions_needing_rebalance,
    value_portfolio,
    value_positions,
)

__all__ = [
    "REQUIRED_SYMBOLS",
    "find_missing_prices",
    "get_positions_needing_rebalance",
    "value_portfolio",
    "value_positions",
]
