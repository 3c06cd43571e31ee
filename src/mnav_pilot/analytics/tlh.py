"""
Tax-loss harvesting detection for the treasury portfolio monitor.

This module identifies purchase lots trading below their cost basis,
estimates the tax saved by realizing each loss, and ranks the
opportunities.

Note: tax rates are fixed estimates. This module does NOT implement:
- Wash-sale rule enforcement
- State taxes or loss carryforward tracking
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Mapping

from mnav_pilot.models import HarvestOpportunity, TaxLot
from mnav_pilot.portfolio.valuation import to_price


SHORT_TERM_RATE = Decimal("0.37")  # Ordinary income rate (max)
LONG_TERM_RATE = Decimal("0.20")

LONG_TERM_DAYS = 365


def is_long_term(days_held: int) -> bool:
    """Lots held more than a year are long-term."""
    return days_held > LONG_TERM_DAYS


def calculate_priority(
    gain_loss: Decimal,
    days_held: int,
    gain_loss_pct: Decimal,
) -> Decimal:
    """
    Score a harvesting opportunity; higher is better.

    Larger losses score higher (capped at 50). Short-term losses add 20
    since they offset income taxed at the higher rate. Deep percentage losses
    add 15 (below -20%) or 10 (below -10%). Short-term lots past day 300
    add 25 because they are about to become long-term.

    Args:
        gain_loss: Dollar loss (negative)
        days_held: Days since purchase
        gain_loss_pct: Loss in percent of cost basis (negative)

    Returns:
        Priority score
    """
    priority = min(abs(gain_loss) / Decimal("1000"), Decimal("50"))

    short_term = not is_long_term(days_held)
    if short_term:
        priority += Decimal("20")

    if gain_loss_pct < Decimal("-20"):
        priority += Decimal("15")
    elif gain_loss_pct < Decimal("-10"):
        priority += Decimal("10")

    if short_term and days_held > 300:
        priority += Decimal("25")

    return priority


def analyze_harvesting_opportunities(
    lots: Iterable[TaxLot],
    prices: Mapping[str, Any],
    as_of: date,
) -> list[HarvestOpportunity]:
    """
    Find lots with unrealized losses.

    Lots without a current price, or with no loss, are skipped.

    Args:
        lots: Purchase lots
        prices: Current prices by symbol
        as_of: Valuation date for holding periods

    Returns:
        Opportunities sorted by priority (highest first)
    """
    opportunities = []

    for lot in lots:
        current_price = to_price(prices.get(lot.symbol))
        if not current_price:
            continue

        current_value = current_price * lot.shares
        cost_basis_total = lot.total_cost
        gain_loss = current_value - cost_basis_total

        if gain_loss >= Decimal("0"):
            continue

        if cost_basis_total != Decimal("0"):
            gain_loss_pct = gain_loss / cost_basis_total * Decimal("100")
        else:
            gain_loss_pct = Decimal("0")

        days_held = (as_of - lot.purchase_date).days
        long_term = is_long_term(days_held)
        rate = LONG_TERM_RATE if long_term else SHORT_TERM_RATE

        opportunities.append(
            HarvestOpportunity(
                lot=lot,
                current_price=current_price,
                current_value=current_value,
                cost_basis_total=cost_basis_total,
                gain_loss=gain_loss,
                gain_loss_pct=gain_loss_pct,
                days_held=days_held,
                is_long_term=long_term,
                potential_tax_savings=abs(gain_loss) * rate,
                priority=calculate_priority(gain_loss, days_held, gain_loss_pct),
                days_to_long_term=LONG_TERM_DAYS - days_held,
            )
        )

    opportunities.sort(key=lambda o: o.priority, reverse=True)

    return opportunities


def generate_harvest_alerts(
    lots: Iterable[TaxLot],
    prices: Mapping[str, Any],
    as_of: date,
    min_loss: Decimal = Decimal("500"),
    min_loss_pct: Decimal = Decimal("5"),
    urgent_days_to_long_term: int = 30,
) -> list[HarvestOpportunity]:
    """
    Filter opportunities to those worth acting on.

    Args:
        lots: Purchase lots
        prices: Current prices by symbol
        as_of: Valuation date
        min_loss: Minimum dollar loss
        min_loss_pct: Minimum loss in percent of cost basis
        urgent_days_to_long_term: Short-term lots this close to a year are urgent

    Returns:
        Qualifying opportunities, priority order, with ``urgent`` set
    """
    alerts = []
    for opp in analyze_harvesting_opportunities(lots, prices, as_of):
        if abs(opp.gain_loss) < min_loss or abs(opp.gain_loss_pct) < min_loss_pct:
            continue

        urgent = (
            not opp.is_long_term
            and opp.days_to_long_term <= urgent_days_to_long_term
        )
        if urgent:
            opp = replace(opp, urgent=True)
        alerts.append(opp)

    return alerts


def summarize_harvest(opportunities: list[HarvestOpportunity]) -> dict:
    """
    Generate summary totals for harvesting opportunities.

    Args:
        opportunities: Harvest opportunities

    Returns:
        Dictionary with loss and savings totals split by holding period
    """
    short_term = [o for o in opportunities if not o.is_long_term]
    long_term = [o for o in opportunities if o.is_long_term]

    return {
        "opportunity_count": len(opportunities),
        "total_loss": sum((abs(o.gain_loss) for o in opportunities), Decimal("0")),
        "short_term_loss": sum((abs(o.gain_loss) for o in short_term), Decimal("0")),
        "long_term_loss": sum((abs(o.gain_loss) for o in long_term), Decimal("0")),
        "total_tax_savings": sum(
            (o.potential_tax_savings for o in opportunities), Decimal("0")
        ),
        "urgent_count": sum(1 for o in opportunities if o.urgent),
        "symbols": sorted({o.lot.symbol for o in opportunities}),
    }
