"""
Portfolio valuation and allocation calculations.

This module values configured holdings at current prices, computing
position values, actual allocations and drift from target allocations.
Valuation is a pure function of its inputs.
"""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional

from mnav_pilot.models import (
    Holding,
    Position,
    PortfolioSnapshot,
    ValuationResult,
)


logger = logging.getLogger(__name__)

# Without these the mNAV and total-value figures are meaningless.
REQUIRED_SYMBOLS = ("BTC", "MSTR")


def to_price(raw: Any) -> Optional[Decimal]:
    """
    Normalize a raw price into a Decimal.

    Args:
        raw: float, int, str, Decimal or None

    Returns:
        Decimal price, or None if the price is unavailable or unusable
    """
    if raw is None:
        return None
    try:
        price = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite() or price < Decimal("0"):
        return None
    return price


def find_missing_prices(
    prices: Mapping[str, Any],
    required_symbols: Iterable[str] = REQUIRED_SYMBOLS,
) -> list[str]:
    """
    List required symbols whose price is absent or null.

    Args:
        prices: Price map by symbol
        required_symbols: Symbols that must be priced

    Returns:
        Missing symbols in the order given
    """
    return [s for s in required_symbols if to_price(prices.get(s)) is None]


def value_positions(
    holdings: Iterable[Holding],
    prices: Mapping[str, Any],
    rebalance_trigger: Decimal,
) -> tuple[Decimal, tuple[Position, ...]]:
    """
    Value holdings and compute allocation and drift.

    A holding with no price is valued at 0. Allocations are only computed
    when the total value is positive; otherwise every allocation is 0.

    Args:
        holdings: Configured holdings
        prices: Price map by symbol (values may be None)
        rebalance_trigger: Drift fraction beyond which a position needs rebalancing

    Returns:
        Tuple of (total_value, positions)
    """
    priced = []
    for holding in holdings:
        price = to_price(prices.get(holding.symbol))
        if price is None:
            price = Decimal("0")
        priced.append((holding, price, price * holding.quantity))

    total_value = sum((value for _, _, value in priced), Decimal("0"))

    positions = []
    for holding, price, value in priced:
        if total_value > Decimal("0"):
            actual_allocation = value / total_value
        else:
            actual_allocation = Decimal("0")

        drift = actual_allocation - holding.target_allocation

        positions.append(
            Position(
                symbol=holding.symbol,
                quantity=holding.quantity,
                price=price,
                value=value,
                target_allocation=holding.target_allocation,
                actual_allocation=actual_allocation,
                drift=drift,
                needs_rebalance=abs(drift) > rebalance_trigger,
            )
        )

    return total_value, tuple(positions)


def value_portfolio(
    holdings: Iterable[Holding],
    prices: Mapping[str, Any],
    rebalance_trigger: Decimal,
    required_symbols: Iterable[str] = REQUIRED_SYMBOLS,
    as_of: Optional[datetime] = None,
) -> ValuationResult:
    """
    Create a complete portfolio snapshot.

    Args:
        holdings: Configured holdings
        prices: Price map by symbol (values may be None)
        rebalance_trigger: Drift fraction beyond which a position needs rebalancing
        required_symbols: Symbols whose price must be available
        as_of: Snapshot timestamp (defaults to now)

    Returns:
        ValuationResult carrying the snapshot, or an error naming the
        missing symbols when a required price is unavailable
    """
    missing = find_missing_prices(prices, required_symbols)
    if missing:
        logger.warning("Valuation refused, missing prices for %s", ", ".join(missing))
        return ValuationResult(
            error=f"Missing price data for: {', '.join(missing)}",
            missing_symbols=tuple(missing),
        )

    total_value, positions = value_positions(holdings, prices, rebalance_trigger)

    snapshot = PortfolioSnapshot(
        total_value=total_value,
        positions=positions,
        timestamp=as_of or datetime.now(),
    )
    return ValuationResult(snapshot=snapshot)


def allocation_total(snapshot: PortfolioSnapshot) -> Decimal:
    """Sum of actual allocations across positions."""
    return sum((p.actual_allocation for p in snapshot.positions), Decimal("0"))


def get_positions_needing_rebalance(snapshot: PortfolioSnapshot) -> list[Position]:
    """
    Get positions whose drift exceeds the rebalance trigger.

    Returns:
        Positions sorted by drift magnitude descending
    """
    flagged = [p for p in snapshot.positions if p.needs_rebalance]
    flagged.sort(key=lambda p: abs(p.drift), reverse=True)
    return flagged
