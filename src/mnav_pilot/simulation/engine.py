"""
Monte Carlo path simulation for portfolio value projections.

Each position follows an independent monthly random walk with fixed
per-asset parameters (mean annual return, annual volatility and a floor on
the annual-equivalent return). Runs are independent of one another and each
draws from its own normal source, so a seeded simulation gives the same
paths whether runs execute sequentially or on a thread pool.
"""

import logging
import math
import random
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

import numpy as np

from mnav_pilot.models import PathPoint, Position, SimulationPath


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssetParams:
    """
    Return assumptions for one asset (annual figures).

    Attributes:
        mean_return: Expected annual return
        volatility: Annual volatility
        min_return: Annual return floor; the monthly floor is min_return / 12
    """
    mean_return: float
    volatility: float
    min_return: float

    @property
    def monthly_mean(self) -> float:
        return self.mean_return / 12

    @property
    def monthly_volatility(self) -> float:
        return self.volatility / math.sqrt(12)

    @property
    def monthly_floor(self) -> float:
        return self.min_return / 12


# Fixed assumptions, not estimated from price history.
ASSET_PARAMS: dict[str, AssetParams] = {
    "BTC": AssetParams(mean_return=0.40, volatility=0.80, min_return=-0.80),
    "MSTR": AssetParams(mean_return=0.50, volatility=1.00, min_return=-0.90),
    "STRD": AssetParams(mean_return=0.20, volatility=0.50, min_return=-0.50),
}
DEFAULT_ASSET_PARAMS = AssetParams(mean_return=0.08, volatility=0.20, min_return=-0.40)


def params_for(
    symbol: str,
    asset_params: Optional[Mapping[str, AssetParams]] = None,
    default: AssetParams = DEFAULT_ASSET_PARAMS,
) -> AssetParams:
    """Look up an asset's parameters, falling back to the default bucket."""
    table = ASSET_PARAMS if asset_params is None else asset_params
    return table.get(symbol.upper(), default)


class NormalSource(ABC):
    """
    A stream of independent standard-normal draws.

    ``spawn`` derives independent child streams, one per simulation run, so
    runs never share generator state.
    """

    @abstractmethod
    def standard_normal(self, shape: tuple[int, ...]) -> np.ndarray:
        """Draw an array of standard-normal variates in C order."""
        pass

    @abstractmethod
    def spawn(self, n: int) -> list["NormalSource"]:
        """Create ``n`` independent child sources."""
        pass


class NumpyNormalSource(NormalSource):
    """
    Normal source backed by numpy's PCG64 generator.

    Children are derived through ``SeedSequence.spawn`` and are therefore
    statistically independent and reproducible from the root seed.
    """

    def __init__(self, seed: Optional[int | np.random.SeedSequence] = None):
        if isinstance(seed, np.random.SeedSequence):
            self._seed_sequence = seed
        else:
            self._seed_sequence = np.random.SeedSequence(seed)
        self._generator = np.random.default_rng(self._seed_sequence)

    def standard_normal(self, shape: tuple[int, ...]) -> np.ndarray:
        return self._generator.standard_normal(shape)

    def spawn(self, n: int) -> list[NormalSource]:
        return [NumpyNormalSource(child) for child in self._seed_sequence.spawn(n)]


class BoxMullerSource(NormalSource):
    """
    Normal source using the Box-Muller transform over uniform draws.

    Args:
        seed: Seed for the underlying ``random.Random`` uniform stream
    """

    def __init__(self, seed: Optional[int] = None):
        self._uniform = random.Random(seed)

    def _draw(self) -> float:
        # 1 - u keeps u1 in (0, 1] so the log is finite.
        u1 = 1.0 - self._uniform.random()
        u2 = self._uniform.random()
        return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)

    def standard_normal(self, shape: tuple[int, ...]) -> np.ndarray:
        count = int(np.prod(shape)) if shape else 1
        return np.array([self._draw() for _ in range(count)], dtype=float).reshape(shape)

    def spawn(self, n: int) -> list[NormalSource]:
        return [BoxMullerSource(self._uniform.getrandbits(64)) for _ in range(n)]


def simulate_path(
    start_values: np.ndarray,
    params: Sequence[AssetParams],
    months: int,
    source: NormalSource,
) -> SimulationPath:
    """
    Run a single simulation path.

    For each month and each position: ``r = mean/12 + vol/sqrt(12) * z``,
    floored at ``min_return/12``, then ``value *= 1 + r``. The path point for
    a month is the sum of all position values.

    Args:
        start_values: Current value of each position
        params: Asset parameters aligned with ``start_values``
        months: Number of monthly steps
        source: Normal source for this run

    Returns:
        SimulationPath with ``months + 1`` points
    """
    initial_total = float(start_values.sum())
    if months == 0:
        return SimulationPath(points=(PathPoint(month=0, value=initial_total),))

    means = np.array([p.monthly_mean for p in params], dtype=float)
    vols = np.array([p.monthly_volatility for p in params], dtype=float)
    floors = np.array([p.monthly_floor for p in params], dtype=float)

    z = source.standard_normal((months, len(params)))
    returns = np.maximum(means + vols * z, floors)
    values = start_values * np.cumprod(1.0 + returns, axis=0)
    totals = values.sum(axis=1)

    points = [PathPoint(month=0, value=initial_total)]
    points.extend(
        PathPoint(month=month, value=float(total))
        for month, total in enumerate(totals, start=1)
    )
    return SimulationPath(points=tuple(points))


def simulate_paths(
    positions: Sequence[Position],
    years: int,
    simulations: int,
    source: NormalSource,
    asset_params: Optional[Mapping[str, AssetParams]] = None,
    max_workers: Optional[int] = None,
) -> list[SimulationPath]:
    """
    Run a full Monte Carlo simulation.

    Args:
        positions: Valued positions; their current values seed every run
        years: Projection horizon in years
        simulations: Number of independent runs
        source: Root normal source, spawned into one child per run
        asset_params: Parameter table (defaults to ASSET_PARAMS)
        max_workers: Run on a thread pool of this size when greater than 1

    Returns:
        One path per run, in run order

    Raises:
        ValueError: If years is negative or simulations is less than 1
    """
    if years < 0:
        raise ValueError(f"years must be >= 0, got {years}")
    if simulations < 1:
        raise ValueError(f"simulations must be >= 1, got {simulations}")

    months = years * 12
    start_values = np.array([float(p.value) for p in positions], dtype=float)
    params = [params_for(p.symbol, asset_params) for p in positions]
    run_sources = source.spawn(simulations)

    logger.info(
        "Running %d simulations over %d years (%d positions)",
        simulations, years, len(positions),
    )

    def run(run_source: NormalSource) -> SimulationPath:
        return simulate_path(start_values, params, months, run_source)

    if max_workers and max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return list(pool.map(run, run_sources))

    return [run(s) for s in run_sources]
