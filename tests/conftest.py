"""
Pytest fixtures for the treasury portfolio monitor tests.

Provides common test data and utilities used across test modules.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal

import numpy as np
import pytest

from mnav_pilot.config import AlertSettings, Thresholds, TreasuryData
from mnav_pilot.data import InMemoryAlertStore, InMemoryDriftHistoryStore
from mnav_pilot.models import Holding, TaxLot
from mnav_pilot.portfolio import value_portfolio
from mnav_pilot.simulation import NormalSource


@pytest.fixture
def sample_holdings() -> tuple[Holding, ...]:
    """BTC/MSTR portfolio targeting 60/40."""
    return (
        Holding(symbol="BTC", quantity=Decimal("1"), target_allocation=Decimal("0.6")),
        Holding(symbol="MSTR", quantity=Decimal("10"), target_allocation=Decimal("0.4")),
    )


@pytest.fixture
def sample_prices() -> dict[str, float]:
    """Prices that leave the portfolio heavily BTC-overweight (96/4)."""
    return {"BTC": 100000.0, "MSTR": 400.0}


@pytest.fixture
def balanced_prices() -> dict[str, float]:
    """Prices that put the portfolio exactly on its 60/40 target."""
    # BTC 60000, MSTR 10 * 4000 = 40000
    return {"BTC": 60000.0, "MSTR": 4000.0}


@pytest.fixture
def as_of() -> datetime:
    return datetime(2026, 3, 2, 9, 30)


@pytest.fixture
def sample_snapshot(sample_holdings, sample_prices, as_of):
    result = value_portfolio(
        sample_holdings, sample_prices, Decimal("0.10"), as_of=as_of
    )
    assert result.ok
    return result.snapshot


@pytest.fixture
def alert_settings() -> AlertSettings:
    return AlertSettings(
        warning=Decimal("0.05"),
        critical=Decimal("0.10"),
        cooldown=timedelta(minutes=240),
        max_alerts=100,
        history_days=30,
    )


@pytest.fixture
def treasury() -> TreasuryData:
    return TreasuryData(
        btc_holdings=Decimal("450000"),
        shares_outstanding=Decimal("180000000"),
    )


@pytest.fixture
def thresholds() -> Thresholds:
    return Thresholds()


class FakeClock:
    """Manually advanced clock for cooldown and retention tests."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock(as_of) -> FakeClock:
    return FakeClock(as_of)


@pytest.fixture
def alert_store() -> InMemoryAlertStore:
    return InMemoryAlertStore()


@pytest.fixture
def history_store() -> InMemoryDriftHistoryStore:
    return InMemoryDriftHistoryStore()


class ConstantNormalSource(NormalSource):
    """Normal source returning the same draw everywhere."""

    def __init__(self, value: float = 0.0):
        self.value = value

    def standard_normal(self, shape):
        return np.full(shape, self.value, dtype=float)

    def spawn(self, n):
        return [ConstantNormalSource(self.value) for _ in range(n)]


@pytest.fixture
def zero_source() -> ConstantNormalSource:
    return ConstantNormalSource(0.0)


@pytest.fixture
def sample_lots() -> list[TaxLot]:
    """Lots with a short-term loss, a long-term loss and a gain."""
    return [
        TaxLot(
            lot_id="lot-001",
            symbol="BTC",
            shares=Decimal("1"),
            cost_basis=Decimal("120000"),
            purchase_date=date(2026, 1, 1),
        ),
        TaxLot(
            lot_id="lot-002",
            symbol="MSTR",
            shares=Decimal("100"),
            cost_basis=Decimal("500"),
            purchase_date=date(2024, 6, 1),
        ),
        TaxLot(
            lot_id="lot-003",
            symbol="BTC",
            shares=Decimal("0.5"),
            cost_basis=Decimal("30000"),
            purchase_date=date(2023, 1, 1),
        ),
    ]
