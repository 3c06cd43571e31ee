"""
Tests for rebalance planning functionality.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from mnav_pilot.models import (
    Holding,
    PortfolioSnapshot,
    Position,
    RebalanceAction,
    RebalancePriority,
)
from mnav_pilot.portfolio import value_portfolio
from mnav_pilot.trading import calculate_plan_summary, plan_rebalance
from mnav_pilot.trading.rebalance import recommend_for_position, sort_recommendations


def make_position(symbol, price, value, target, actual, needs_rebalance=True) -> Position:
    return Position(
        symbol=symbol,
        quantity=Decimal(value) / Decimal(price) if Decimal(price) else Decimal("0"),
        price=Decimal(price),
        value=Decimal(value),
        target_allocation=Decimal(target),
        actual_allocation=Decimal(actual),
        drift=Decimal(actual) - Decimal(target),
        needs_rebalance=needs_rebalance,
    )


class TestPlanRebalance:
    """Tests for the plan_rebalance function."""

    def test_overweight_btc_plan(self, sample_snapshot):
        plan = plan_rebalance(sample_snapshot)

        assert plan.needs_rebalance
        assert plan.total_value == Decimal("104000")
        btc, mstr = plan.recommendations

        assert btc.symbol == "BTC"
        assert btc.action == RebalanceAction.SELL
        assert btc.target_value == Decimal("62400")
        assert btc.difference == Decimal("37600")
        assert btc.shares == Decimal("0.376")
        assert btc.priority == RebalancePriority.HIGH

        assert mstr.symbol == "MSTR"
        assert mstr.action == RebalanceAction.BUY
        assert mstr.difference == Decimal("37600")
        assert mstr.shares == Decimal("94")
        assert mstr.priority == RebalancePriority.HIGH

    def test_balanced_portfolio_has_no_recommendations(self, sample_holdings, balanced_prices):
        snapshot = value_portfolio(sample_holdings, balanced_prices, Decimal("0.10")).snapshot

        plan = plan_rebalance(snapshot)

        assert not plan.needs_rebalance
        assert plan.recommendations == ()

    def test_only_flagged_positions(self):
        snapshot = PortfolioSnapshot(
            total_value=Decimal("1000"),
            positions=(
                make_position("BTC", "100", "800", "0.5", "0.8"),
                make_position("MSTR", "10", "200", "0.5", "0.2", needs_rebalance=False),
            ),
            timestamp=datetime(2026, 1, 1),
        )

        plan = plan_rebalance(snapshot)

        assert [r.symbol for r in plan.recommendations] == ["BTC"]

    def test_plan_timestamp(self, sample_snapshot, as_of):
        assert plan_rebalance(sample_snapshot, as_of=as_of).timestamp == as_of


class TestRecommendForPosition:

    def test_zero_price_gives_zero_shares(self):
        position = make_position("STRD", "0", "0", "0.2", "0")

        rec = recommend_for_position(position, Decimal("1000"))

        assert rec.action == RebalanceAction.BUY
        assert rec.difference == Decimal("200.0")
        assert rec.shares == Decimal("0")

    @pytest.mark.parametrize(
        "actual,expected",
        [
            ("0.65", RebalancePriority.MEDIUM),   # drift 0.05
            ("0.70", RebalancePriority.MEDIUM),   # drift 0.10 (not above)
            ("0.75", RebalancePriority.HIGH),     # drift 0.15
        ],
    )
    def test_priority(self, actual, expected):
        value = Decimal(actual) * Decimal("1000")
        position = make_position("BTC", "100", value, "0.6", actual)

        rec = recommend_for_position(position, Decimal("1000"))

        assert rec.priority == expected
        assert rec.action == RebalanceAction.SELL


class TestSortRecommendations:

    def test_high_priority_first_then_largest_difference(self):
        positions = [
            make_position("A", "10", "300", "0.25", "0.30"),   # medium, diff 50
            make_position("B", "10", "100", "0.25", "0.10"),   # high, diff 150
            make_position("C", "10", "350", "0.25", "0.35"),   # medium, diff 100
            make_position("D", "10", "250", "0.50", "0.25"),   # high, diff 250
        ]
        recs = [recommend_for_position(p, Decimal("1000")) for p in positions]

        ordered = sort_recommendations(recs)

        assert [r.symbol for r in ordered] == ["D", "B", "C", "A"]


class TestPlanSummary:

    def test_summary(self, sample_snapshot):
        summary = calculate_plan_summary(plan_rebalance(sample_snapshot))

        assert summary["total_recommendations"] == 2
        assert summary["buy_count"] == 1
        assert summary["sell_count"] == 1
        assert summary["total_buy_value"] == Decimal("37600")
        assert summary["high_priority"] == 2

    def test_empty_plan(self):
        holdings = (
            Holding(symbol="BTC", quantity=Decimal("1"), target_allocation=Decimal("1")),
            Holding(symbol="MSTR", quantity=Decimal("0"), target_allocation=Decimal("0")),
        )
        snapshot = value_portfolio(holdings, {"BTC": 1, "MSTR": 1}, Decimal("0.1")).snapshot

        summary = calculate_plan_summary(plan_rebalance(snapshot))

        assert summary["total_recommendations"] == 0
        assert summary["total_sell_value"] == Decimal("0")
