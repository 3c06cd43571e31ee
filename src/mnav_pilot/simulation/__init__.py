"""
Simulation module for the treasury portfolio monitor.

Provides Monte Carlo path simulation and projection statistics.
"""

from mnav_pilot.simulation.engine import (
    ASSET_PARAMS,
    AssetParams,
    BoxMullerSource,
    NormalSource,
    NumpyNormalSource,
    simulate_paths,
)
from mnav_pilot.simulation.metrics import (
    ProjectionOutcome,
    MEDIAN_MODES,
    ProjectionResult,
    aggregate_paths,
    run_projection,
)

__all__ = [
    "ASSET_PARAMS",
    "AssetParams",
    "BoxMullerSource",
    "NormalSource",
    "NumpyNormalSource",
    "simulate_paths",
    "ProjectionOutcome",
    "MEDIAN_MODES",
    "ProjectionResult",
    "aggregate_paths",
    "run_projection",
]
