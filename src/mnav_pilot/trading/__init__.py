"""
Rebalance planning module for the treasury portfolio monitor.

Generates advisory buy/sell recommendations. No execution occurs.
"""

from mnav_pilot.trading.rebalance import (
    calculate_plan_summary,
    plan_rebalance,
)

__all__ = [
    "calculate_plan_summary",
    "plan_rebalance",
]
