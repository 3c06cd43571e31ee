"""
Projection statistics from simulated paths.

Reduces Monte Carlo paths into:
- Per-month percentile bands (nearest-rank, not interpolated)
- Mean / median / min / max at every month
- End-of-horizon probability of loss, of doubling and of a 5x outcome
- The distribution of per-path compound annual growth rates (CAGR)
"""

import json
import math
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from mnav_pilot.config import SimulationSettings
from mnav_pilot.models import (
    CagrStatistics,
    FinalStatistics,
    MonthStatistics,
    SimulationPath,
    ValuationResult,
    percentile_label,
)
from mnav_pilot.simulation.engine import (
    AssetParams,
    NormalSource,
    NumpyNormalSource,
    simulate_paths,
)


DEFAULT_CONFIDENCE = (0.05, 0.25, 0.50, 0.75, 0.95)

# "middle_index" takes sorted[n // 2], matching historical reports;
# "average" is the textbook median.
MEDIAN_MODES = ("middle_index", "average")


@dataclass(frozen=True)
class ProjectionResult:
    """Container for a Monte Carlo projection."""

    initial_value: float
    years: int
    simulations: int
    statistics: tuple[MonthStatistics, ...]
    final_stats: FinalStatistics
    cagr_stats: CagrStatistics
    timestamp: datetime

    def at_month(self, month: int) -> MonthStatistics:
        return self.statistics[month]

    def at_year(self, year: int) -> Optional[MonthStatistics]:
        """Statistics at the end of a given year, if within the horizon."""
        month = year * 12
        if month < len(self.statistics):
            return self.statistics[month]
        return None

    def to_dataframe(self) -> pd.DataFrame:
        """One row per month with mean, median, min, max and percentile columns."""
        rows = []
        for stats in self.statistics:
            row = {
                "month": stats.month,
                "year": stats.year,
                "mean": stats.mean,
                "median": stats.median,
                "min": stats.min,
                "max": stats.max,
            }
            row.update(stats.percentiles)
            rows.append(row)
        return pd.DataFrame(rows).set_index("month")

    def year_bands(self, years: Sequence[int] = (1, 3, 5, 10)) -> pd.DataFrame:
        """Percentile columns at the end of each requested year inside the horizon."""
        months = [y * 12 for y in years if 0 < y <= self.years]
        labels = list(self.statistics[0].percentiles)
        table = self.to_dataframe().loc[months, labels]
        table.index = pd.Index([m // 12 for m in months], name="year")
        return table

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        return {
            "initial_value": self.initial_value,
            "years": self.years,
            "simulations": self.simulations,
            "statistics": [
                {**asdict(s), "year": s.year} for s in self.statistics
            ],
            "final_stats": asdict(self.final_stats),
            "cagr_stats": asdict(self.cagr_stats),
            "timestamp": self.timestamp.isoformat(),
        }

    def to_json(self, path: Path) -> None:
        """Save the projection to a JSON file."""
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)


@dataclass(frozen=True)
class ProjectionOutcome:
    """A projection result, or the reason none could be produced."""
    result: Optional[ProjectionResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def nearest_rank(sorted_values: np.ndarray, level: float) -> float:
    """
    Percentile by nearest rank: ``sorted_values[floor(level * n)]``.

    The index is clamped to the last element so that level 1.0 is the max.
    """
    n = len(sorted_values)
    index = min(int(math.floor(level * n)), n - 1)
    return float(sorted_values[index])


def median_of(sorted_values: np.ndarray, mode: str = "middle_index") -> float:
    """
    Median of an ascending array.

    Args:
        sorted_values: Values sorted ascending
        mode: "middle_index" returns ``sorted_values[n // 2]``;
            "average" averages the two middle values for even n

    Raises:
        ValueError: On an unknown mode
    """
    if mode not in MEDIAN_MODES:
        raise ValueError(f"Unknown median mode: {mode}")

    n = len(sorted_values)
    if mode == "average" and n % 2 == 0:
        return float((sorted_values[n // 2 - 1] + sorted_values[n // 2]) / 2)
    return float(sorted_values[n // 2])


def summarize_month(
    month: int,
    values: np.ndarray,
    confidence: Sequence[float] = DEFAULT_CONFIDENCE,
    median_mode: str = "middle_index",
) -> MonthStatistics:
    """
    Cross-path statistics for one month.

    Args:
        month: Month index
        values: That month's value from every path
        confidence: Percentile levels to report
        median_mode: See ``median_of``

    Returns:
        MonthStatistics for the month
    """
    ordered = np.sort(values)
    return MonthStatistics(
        month=month,
        mean=float(ordered.mean()),
        median=median_of(ordered, median_mode),
        min=float(ordered[0]),
        max=float(ordered[-1]),
        percentiles={
            percentile_label(level): nearest_rank(ordered, level) for level in confidence
        },
    )


def calculate_final_stats(
    final_values: np.ndarray,
    initial_value: float,
    median_mode: str = "middle_index",
) -> FinalStatistics:
    """
    End-of-horizon statistics and probability metrics.

    Probabilities are 0 when the initial value is not positive.
    """
    ordered = np.sort(final_values)
    n = len(ordered)

    if initial_value > 0:
        prob_loss = float(np.count_nonzero(ordered < initial_value)) / n
        prob_double = float(np.count_nonzero(ordered >= initial_value * 2)) / n
        prob_5x = float(np.count_nonzero(ordered >= initial_value * 5)) / n
    else:
        prob_loss = prob_double = prob_5x = 0.0

    return FinalStatistics(
        mean=float(ordered.mean()),
        median=median_of(ordered, median_mode),
        min=float(ordered[0]),
        max=float(ordered[-1]),
        prob_loss=prob_loss,
        prob_double=prob_double,
        prob_5x=prob_5x,
    )


def calculate_cagr_stats(
    final_values: np.ndarray,
    initial_value: float,
    years: int,
    median_mode: str = "middle_index",
) -> CagrStatistics:
    """
    Summarize per-path CAGR ``(final / initial) ** (1 / years) - 1``.

    With a zero horizon or a non-positive initial value every CAGR is 0.
    """
    if years > 0 and initial_value > 0:
        cagrs = np.power(final_values / initial_value, 1.0 / years) - 1.0
    else:
        cagrs = np.zeros(len(final_values))

    ordered = np.sort(cagrs)
    return CagrStatistics(
        mean=float(ordered.mean()),
        median=median_of(ordered, median_mode),
        min=float(ordered[0]),
        max=float(ordered[-1]),
    )


def aggregate_paths(
    paths: Sequence[SimulationPath],
    initial_value: float,
    years: int,
    confidence: Sequence[float] = DEFAULT_CONFIDENCE,
    median_mode: str = "middle_index",
    as_of: Optional[datetime] = None,
) -> ProjectionResult:
    """
    Reduce simulated paths into projection statistics.

    Args:
        paths: Simulated paths, all of length ``years * 12 + 1``
        initial_value: Portfolio value at month 0
        years: Projection horizon in years
        confidence: Percentile levels reported at every month
        median_mode: See ``median_of``
        as_of: Result timestamp (defaults to now)

    Returns:
        ProjectionResult

    Raises:
        ValueError: If there are no paths or path lengths disagree with years
    """
    if not paths:
        raise ValueError("No paths provided for aggregation")

    months = years * 12
    if any(len(p) != months + 1 for p in paths):
        raise ValueError(f"Every path must have {months + 1} points")

    matrix = np.array([[pt.value for pt in p.points] for p in paths], dtype=float)

    statistics = tuple(
        summarize_month(month, matrix[:, month], confidence, median_mode)
        for month in range(months + 1)
    )

    final_values = matrix[:, -1]

    return ProjectionResult(
        initial_value=float(initial_value),
        years=years,
        simulations=len(paths),
        statistics=statistics,
        final_stats=calculate_final_stats(final_values, initial_value, median_mode),
        cagr_stats=calculate_cagr_stats(final_values, initial_value, years, median_mode),
        timestamp=as_of or datetime.now(),
    )


def run_projection(
    valuation: ValuationResult,
    settings: SimulationSettings = SimulationSettings(),
    source: Optional[NormalSource] = None,
    asset_params: Optional[dict[str, AssetParams]] = None,
    median_mode: str = "middle_index",
    max_workers: Optional[int] = None,
) -> ProjectionOutcome:
    """
    Simulate and aggregate a projection for a valued portfolio.

    Args:
        valuation: Result of ``value_portfolio``; an error result is passed through
        settings: Simulation count, horizon, percentile levels and seed
        source: Normal source (defaults to a numpy source seeded from settings)
        asset_params: Parameter table (defaults to ASSET_PARAMS)
        median_mode: See ``median_of``
        max_workers: Thread pool size for running paths

    Returns:
        ProjectionOutcome carrying the result or the valuation error
    """
    if not valuation.ok:
        return ProjectionOutcome(error=valuation.error)

    snapshot = valuation.snapshot
    if source is None:
        source = NumpyNormalSource(settings.seed)

    paths = simulate_paths(
        snapshot.positions,
        years=settings.years,
        simulations=settings.simulations,
        source=source,
        asset_params=asset_params,
        max_workers=max_workers,
    )

    result = aggregate_paths(
        paths,
        initial_value=float(snapshot.total_value),
        years=settings.years,
        confidence=settings.confidence,
        median_mode=median_mode,
    )
    return ProjectionOutcome(result=result)
