"""
Analytics module for the treasury portfolio monitor.

Provides drift alerting and trend analysis, the mNAV valuation signal,
and tax-loss harvesting detection.
"""

from mnav_pilot.analytics.drift import (
    DriftCheckResult,
    DriftMonitor,
    calculate_drift_trend,
    classify_severity,
)
from mnav_pilot.analytics.mnav import (
    calculate_mnav,
    calculate_mnav_from_prices,
)
from mnav_pilot.analytics.tlh import (
    analyze_harvesting_opportunities,
    generate_harvest_alerts,
    summarize_harvest,
)

__all__ = [
    "DriftCheckResult",
    "DriftMonitor",
    "calculate_drift_trend",
    "classify_severity",
    "calculate_mnav",
    "calculate_mnav_from_prices",
    "analyze_harvesting_opportunities",
    "generate_harvest_alerts",
    "summarize_harvest",
]
