"""
Tests for Monte Carlo simulation and projection statistics.
"""

import json
from datetime import datetime
from decimal import Decimal

import numpy as np
import pandas as pd
import pytest

from mnav_pilot.config import SimulationSettings
from mnav_pilot.models import (
    Holding,
    PathPoint,
    SimulationPath,
    ValuationResult,
)
from mnav_pilot.portfolio import value_portfolio
from mnav_pilot.simulation import (
    AssetParams,
    BoxMullerSource,
    NumpyNormalSource,
    aggregate_paths,
    run_projection,
    simulate_paths,
)
from mnav_pilot.simulation.engine import DEFAULT_ASSET_PARAMS, params_for
from mnav_pilot.simulation.metrics import (
    calculate_cagr_stats,
    calculate_final_stats,
    median_of,
    nearest_rank,
)

from conftest import ConstantNormalSource


def path_of(*values: float) -> SimulationPath:
    return SimulationPath(
        points=tuple(PathPoint(month=i, value=v) for i, v in enumerate(values))
    )


class TestAssetParams:

    def test_monthly_conversion(self):
        params = AssetParams(mean_return=0.12, volatility=0.24, min_return=-0.6)
        assert params.monthly_mean == pytest.approx(0.01)
        assert params.monthly_volatility == pytest.approx(0.24 / np.sqrt(12))
        assert params.monthly_floor == pytest.approx(-0.05)

    def test_lookup_falls_back_to_default(self):
        assert params_for("btc").mean_return == 0.40
        assert params_for("MSTR").volatility == 1.00
        assert params_for("XYZ") == DEFAULT_ASSET_PARAMS


class TestSimulatePaths:
    """Tests for the simulate_paths function."""

    def test_path_length(self, sample_snapshot):
        paths = simulate_paths(
            sample_snapshot.positions, years=2, simulations=5, source=NumpyNormalSource(1)
        )

        assert len(paths) == 5
        assert all(len(p) == 25 for p in paths)
        assert all(p.points[0].value == pytest.approx(104000.0) for p in paths)

    def test_zero_years(self, sample_snapshot):
        paths = simulate_paths(
            sample_snapshot.positions, years=0, simulations=1, source=NumpyNormalSource(1)
        )

        assert len(paths) == 1
        assert paths[0].points == (PathPoint(month=0, value=104000.0),)

    def test_zero_draws_grow_at_mean(self, sample_snapshot, zero_source):
        paths = simulate_paths(
            sample_snapshot.positions, years=1, simulations=3, source=zero_source
        )

        expected = 100000 * (1 + 0.40 / 12) ** 12 + 4000 * (1 + 0.50 / 12) ** 12
        for path in paths:
            assert path.final_value == pytest.approx(expected)
        assert paths[0].value_at(1) == pytest.approx(
            100000 * (1 + 0.40 / 12) + 4000 * (1 + 0.50 / 12)
        )

    def test_returns_floored(self, sample_snapshot):
        crash = ConstantNormalSource(-100.0)

        path = simulate_paths(
            sample_snapshot.positions, years=1, simulations=1, source=crash
        )[0]

        expected = 100000 * (1 - 0.80 / 12) ** 12 + 4000 * (1 - 0.90 / 12) ** 12
        assert path.final_value == pytest.approx(expected)
        assert path.final_value > 0

    def test_seeded_runs_are_reproducible(self, sample_snapshot):
        first = simulate_paths(
            sample_snapshot.positions, years=1, simulations=20, source=NumpyNormalSource(42)
        )
        second = simulate_paths(
            sample_snapshot.positions, years=1, simulations=20, source=NumpyNormalSource(42)
        )

        assert first == second

    def test_thread_pool_matches_sequential(self, sample_snapshot):
        sequential = simulate_paths(
            sample_snapshot.positions, years=1, simulations=20, source=NumpyNormalSource(7)
        )
        pooled = simulate_paths(
            sample_snapshot.positions,
            years=1,
            simulations=20,
            source=NumpyNormalSource(7),
            max_workers=4,
        )

        assert sequential == pooled

    def test_runs_are_independent(self, sample_snapshot):
        paths = simulate_paths(
            sample_snapshot.positions, years=1, simulations=10, source=NumpyNormalSource(3)
        )
        finals = {p.final_value for p in paths}
        assert len(finals) == 10

    def test_mean_monthly_return_converges(self):
        """With a floor far below any draw, monthly returns match mean/12 and vol/sqrt(12)."""
        params = {"BTC": AssetParams(mean_return=0.40, volatility=0.40, min_return=-10.8)}
        snapshot = value_portfolio(
            (
                Holding(symbol="BTC", quantity=Decimal("1"), target_allocation=Decimal("1")),
                Holding(symbol="MSTR", quantity=Decimal("0"), target_allocation=Decimal("0")),
            ),
            {"BTC": 100.0, "MSTR": 1.0},
            Decimal("0.1"),
        ).snapshot
        btc_only = tuple(p for p in snapshot.positions if p.symbol == "BTC")

        paths = simulate_paths(
            btc_only,
            years=1,
            simulations=2000,
            source=NumpyNormalSource(11),
            asset_params=params,
        )

        values = np.array([[pt.value for pt in p.points] for p in paths])
        monthly_returns = values[:, 1:] / values[:, :-1] - 1
        assert monthly_returns.mean() == pytest.approx(0.40 / 12, abs=0.01)
        assert monthly_returns.std() == pytest.approx(0.40 / np.sqrt(12), rel=0.05)

    def test_box_muller_source(self, sample_snapshot):
        first = simulate_paths(
            sample_snapshot.positions, years=1, simulations=5, source=BoxMullerSource(5)
        )
        second = simulate_paths(
            sample_snapshot.positions, years=1, simulations=5, source=BoxMullerSource(5)
        )
        assert first == second

    def test_box_muller_draws_are_standard_normal(self):
        draws = BoxMullerSource(9).standard_normal((20000,))
        assert draws.mean() == pytest.approx(0.0, abs=0.05)
        assert draws.std() == pytest.approx(1.0, abs=0.05)

    @pytest.mark.parametrize("years,simulations", [(-1, 10), (1, 0)])
    def test_invalid_arguments(self, sample_snapshot, years, simulations):
        with pytest.raises(ValueError):
            simulate_paths(
                sample_snapshot.positions,
                years=years,
                simulations=simulations,
                source=NumpyNormalSource(1),
            )


class TestStatistics:

    def test_nearest_rank(self):
        values = np.arange(1, 11, dtype=float)
        assert nearest_rank(values, 0.05) == 1.0
        assert nearest_rank(values, 0.25) == 3.0
        assert nearest_rank(values, 0.50) == 6.0
        assert nearest_rank(values, 0.95) == 10.0
        assert nearest_rank(values, 1.0) == 10.0

    def test_median_modes(self):
        even = np.array([1.0, 2.0, 3.0, 4.0])
        odd = np.array([1.0, 2.0, 3.0])

        assert median_of(even) == 3.0
        assert median_of(even, "average") == 2.5
        assert median_of(odd) == 2.0
        assert median_of(odd, "average") == 2.0

    def test_unknown_median_mode(self):
        with pytest.raises(ValueError):
            median_of(np.array([1.0]), "mode")

    def test_probability_metrics(self):
        stats = calculate_final_stats(np.array([50.0, 150.0, 200.0, 600.0]), 100.0)

        assert stats.prob_loss == 0.25
        assert stats.prob_double == 0.5
        assert stats.prob_5x == 0.25
        assert stats.min == 50.0
        assert stats.max == 600.0
        assert stats.mean == 250.0

    def test_probabilities_zero_without_initial_value(self):
        stats = calculate_final_stats(np.array([0.0, 0.0]), 0.0)
        assert (stats.prob_loss, stats.prob_double, stats.prob_5x) == (0.0, 0.0, 0.0)

    def test_cagr(self):
        cagr = calculate_cagr_stats(np.array([400.0, 100.0]), 100.0, years=2)
        assert cagr.max == pytest.approx(1.0)
        assert cagr.min == pytest.approx(0.0)
        assert cagr.mean == pytest.approx(0.5)

    def test_cagr_zero_horizon(self):
        cagr = calculate_cagr_stats(np.array([100.0]), 100.0, years=0)
        assert (cagr.mean, cagr.median, cagr.min, cagr.max) == (0.0, 0.0, 0.0, 0.0)


class TestAggregatePaths:
    """Tests for the aggregate_paths function."""

    def test_month_statistics(self):
        paths = [path_of(*([100.0] * 12 + [v])) for v in (80.0, 90.0, 110.0, 130.0)]

        result = aggregate_paths(paths, initial_value=100.0, years=1)

        final = result.at_month(12)
        assert final.mean == pytest.approx(102.5)
        assert final.median == 110.0
        assert final.min == 80.0
        assert final.max == 130.0
        assert final.p5 == 80.0
        assert final.p50 == 110.0
        assert final.p95 == 130.0
        assert result.at_year(1) is final
        assert result.at_year(2) is None

    def test_percentiles_ordered(self, sample_snapshot):
        paths = simulate_paths(
            sample_snapshot.positions, years=2, simulations=200, source=NumpyNormalSource(5)
        )

        result = aggregate_paths(paths, 104000.0, years=2)

        for stats in result.statistics:
            assert stats.min <= stats.p5 <= stats.p25 <= stats.p50
            assert stats.p50 <= stats.p75 <= stats.p95 <= stats.max

    def test_custom_confidence_levels(self):
        paths = [path_of(*([100.0] * 13)) for _ in range(3)]
        result = aggregate_paths(paths, 100.0, years=1, confidence=(0.1, 0.9))
        assert set(result.at_month(0).percentiles) == {"p10", "p90"}
        assert result.at_month(0).percentile(0.9) == 100.0

    def test_empty_paths(self):
        with pytest.raises(ValueError):
            aggregate_paths([], 100.0, years=1)

    def test_wrong_path_length(self):
        with pytest.raises(ValueError):
            aggregate_paths([path_of(100.0, 110.0)], 100.0, years=1)

    def test_to_dataframe(self):
        paths = [path_of(*([100.0] * 13)) for _ in range(3)]

        df = aggregate_paths(paths, 100.0, years=1).to_dataframe()

        assert isinstance(df, pd.DataFrame)
        assert df.index.name == "month"
        assert len(df) == 13
        assert {"mean", "median", "p5", "p95", "year"} <= set(df.columns)
        assert df.loc[12, "year"] == 1.0

    def test_year_bands(self):
        paths = [path_of(*([100.0 + m for m in range(37)])) for _ in range(3)]

        bands = aggregate_paths(paths, 100.0, years=3).year_bands()

        assert bands.index.name == "year"
        assert list(bands.index) == [1, 3]
        assert list(bands.columns) == ["p5", "p25", "p50", "p75", "p95"]
        assert bands.loc[3, "p50"] == 136.0

    def test_to_json(self, tmp_path):
        paths = [path_of(*([100.0] * 13)) for _ in range(2)]
        result = aggregate_paths(paths, 100.0, years=1, as_of=datetime(2026, 1, 1))

        output = tmp_path / "projection.json"
        result.to_json(output)

        data = json.loads(output.read_text())
        assert data["simulations"] == 2
        assert len(data["statistics"]) == 13
        assert data["timestamp"] == "2026-01-01T00:00:00"


class TestRunProjection:
    """Tests for the run_projection function."""

    def test_zero_year_single_run(self, sample_holdings, sample_prices):
        valuation = value_portfolio(sample_holdings, sample_prices, Decimal("0.1"))

        outcome = run_projection(valuation, SimulationSettings(simulations=1, years=0))

        assert outcome.ok
        result = outcome.result
        assert len(result.statistics) == 1
        assert result.final_stats.median == pytest.approx(104000.0)
        assert result.final_stats.prob_loss == 0.0
        assert result.cagr_stats.mean == 0.0

    def test_seeded_projection_reproducible(self, sample_holdings, sample_prices):
        valuation = value_portfolio(sample_holdings, sample_prices, Decimal("0.1"))
        settings = SimulationSettings(simulations=50, years=2, seed=123)

        first = run_projection(valuation, settings).result
        second = run_projection(valuation, settings, max_workers=3).result

        assert first.statistics == second.statistics
        assert first.final_stats == second.final_stats

    def test_deterministic_growth(self, sample_holdings, sample_prices, zero_source):
        valuation = value_portfolio(sample_holdings, sample_prices, Decimal("0.1"))

        result = run_projection(
            valuation, SimulationSettings(simulations=4, years=1), source=zero_source
        ).result

        expected = 100000 * (1 + 0.40 / 12) ** 12 + 4000 * (1 + 0.50 / 12) ** 12
        assert result.final_stats.mean == pytest.approx(expected)
        assert result.final_stats.prob_loss == 0.0
        assert result.cagr_stats.mean == pytest.approx(expected / 104000.0 - 1)

    def test_valuation_error_passes_through(self):
        outcome = run_projection(ValuationResult(error="Missing price data for: BTC"))

        assert not outcome.ok
        assert outcome.result is None
        assert outcome.error == "Missing price data for: BTC"
