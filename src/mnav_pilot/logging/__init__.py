"""
Decision logging module for the treasury portfolio monitor.

Provides append-only decision logging for audit and reproducibility.
"""

from mnav_pilot.logging.decision_log import (
    DecimalEncoder,
    DecisionLogger,
)

__all__ = [
    "DecimalEncoder",
    "DecisionLogger",
]
