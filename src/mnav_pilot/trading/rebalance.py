"""
Rebalance recommendations for drifted positions.

This module turns a portfolio snapshot into buy/sell recommendations that
would bring each flagged position back to its target allocation.
All recommendations are advisory and require human review; nothing is executed.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from mnav_pilot.models import (
    PortfolioSnapshot,
    Position,
    RebalanceAction,
    RebalancePlan,
    RebalancePriority,
    RebalanceRecommendation,
)


# Positions drifted by more than this are corrected first.
HIGH_PRIORITY_DRIFT = Decimal("0.10")


def recommend_for_position(
    position: Position,
    total_value: Decimal,
    high_priority_drift: Decimal = HIGH_PRIORITY_DRIFT,
) -> RebalanceRecommendation:
    """
    Build the recommendation that restores one position to target.

    Args:
        position: A position flagged for rebalancing
        total_value: Total portfolio value
        high_priority_drift: |drift| above which priority is HIGH

    Returns:
        RebalanceRecommendation for the position
    """
    target_value = total_value * position.target_allocation
    delta = target_value - position.value

    if position.price > Decimal("0"):
        shares = abs(delta) / position.price
    else:
        shares = Decimal("0")

    if abs(position.drift) > high_priority_drift:
        priority = RebalancePriority.HIGH
    else:
        priority = RebalancePriority.MEDIUM

    return RebalanceRecommendation(
        symbol=position.symbol,
        action=RebalanceAction.BUY if delta > Decimal("0") else RebalanceAction.SELL,
        current_value=position.value,
        target_value=target_value,
        difference=abs(delta),
        shares=shares,
        priority=priority,
    )


def sort_recommendations(
    recommendations: list[RebalanceRecommendation],
) -> list[RebalanceRecommendation]:
    """
    Order recommendations: HIGH priority first, then largest dollar difference.
    """
    return sorted(
        recommendations,
        key=lambda r: (r.priority != RebalancePriority.HIGH, -r.difference),
    )


def plan_rebalance(
    snapshot: PortfolioSnapshot,
    high_priority_drift: Decimal = HIGH_PRIORITY_DRIFT,
    as_of: Optional[datetime] = None,
) -> RebalancePlan:
    """
    Generate rebalance recommendations for every flagged position.

    Args:
        snapshot: Current portfolio snapshot
        high_priority_drift: |drift| above which priority is HIGH
        as_of: Plan timestamp (defaults to now)

    Returns:
        RebalancePlan with recommendations in execution-priority order
    """
    recommendations = [
        recommend_for_position(p, snapshot.total_value, high_priority_drift)
        for p in snapshot.positions
        if p.needs_rebalance
    ]

    return RebalancePlan(
        recommendations=tuple(sort_recommendations(recommendations)),
        total_value=snapshot.total_value,
        timestamp=as_of or datetime.now(),
    )


def calculate_plan_summary(plan: RebalancePlan) -> dict:
    """
    Calculate summary statistics for a rebalance plan.

    Args:
        plan: Rebalance plan

    Returns:
        Dictionary with buy/sell counts and dollar totals
    """
    buys = [r for r in plan.recommendations if r.action == RebalanceAction.BUY]
    sells = [r for r in plan.recommendations if r.action == RebalanceAction.SELL]

    return {
        "total_recommendations": len(plan.recommendations),
        "buy_count": len(buys),
        "sell_count": len(sells),
        "total_buy_value": sum((r.difference for r in buys), Decimal("0")),
        "total_sell_value": sum((r.difference for r in sells), Decimal("0")),
        "high_priority": sum(
            1 for r in plan.recommendations if r.priority == RebalancePriority.HIGH
        ),
    }
