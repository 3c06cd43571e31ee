"""
mNAV valuation signal.

mNAV is the ratio of MSTR's market capitalization to the market value of
its disclosed BTC holdings. A ratio above ``mnav_high`` flags the equity as
overvalued relative to its reserve asset, below ``mnav_low`` as undervalued.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Optional

from mnav_pilot.config import Thresholds, TreasuryData
from mnav_pilot.models import MnavAnalysis, MnavResult, MnavStatus
from mnav_pilot.portfolio.valuation import to_price


logger = logging.getLogger(__name__)


def classify_mnav(mnav: Decimal, mnav_high: Decimal, mnav_low: Decimal) -> MnavStatus:
    """Map an mNAV ratio onto a valuation status."""
    if mnav > mnav_high:
        return MnavStatus.OVERVALUED
    if mnav < mnav_low:
        return MnavStatus.UNDERVALUED
    return MnavStatus.NORMAL


def calculate_mnav(
    btc_price: Any,
    mstr_price: Any,
    treasury: TreasuryData,
    thresholds: Thresholds,
    as_of: Optional[datetime] = None,
) -> MnavResult:
    """
    Calculate mNAV from current prices and treasury figures.

    Args:
        btc_price: Current BTC price (None if unavailable)
        mstr_price: Current MSTR price (None if unavailable)
        treasury: BTC holdings and shares outstanding
        thresholds: mNAV high/low thresholds
        as_of: Analysis timestamp (defaults to now)

    Returns:
        MnavResult with the analysis, or an error naming the missing prices
    """
    btc = to_price(btc_price)
    mstr = to_price(mstr_price)

    missing = [s for s, p in (("BTC", btc), ("MSTR", mstr)) if p is None]
    if missing:
        logger.warning("mNAV refused, missing prices for %s", ", ".join(missing))
        return MnavResult(
            error=f"Missing price data for: {', '.join(missing)}",
            missing_symbols=tuple(missing),
        )

    market_cap = mstr * treasury.shares_outstanding
    holdings_value = btc * treasury.btc_holdings

    if holdings_value > Decimal("0"):
        mnav = market_cap / holdings_value
    else:
        mnav = Decimal("0")

    analysis = MnavAnalysis(
        mnav=mnav,
        mstr_market_cap=market_cap,
        btc_holdings_value=holdings_value,
        btc_price=btc,
        mstr_price=mstr,
        btc_holdings=treasury.btc_holdings,
        shares_outstanding=treasury.shares_outstanding,
        status=classify_mnav(mnav, thresholds.mnav_high, thresholds.mnav_low),
        mnav_high=thresholds.mnav_high,
        mnav_low=thresholds.mnav_low,
        timestamp=as_of or datetime.now(),
    )
    return MnavResult(analysis=analysis)


def calculate_mnav_from_prices(
    prices: Mapping[str, Any],
    treasury: TreasuryData,
    thresholds: Thresholds,
    as_of: Optional[datetime] = None,
) -> MnavResult:
    """Calculate mNAV from a price map keyed by symbol."""
    return calculate_mnav(prices.get("BTC"), prices.get("MSTR"), treasury, thresholds, as_of)
