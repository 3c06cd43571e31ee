"""
Core data models for the treasury portfolio monitor.

This module defines the fundamental data structures used throughout the system,
including holdings, valued positions, drift alerts, rebalance recommendations,
Monte Carlo projection results, mNAV analyses and tax lots.
Monetary amounts, quantities and allocation fractions use Decimal for
precision; simulation outputs use float.
"""

from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
import uuid


class AlertSeverity(Enum):
    """Drift alert severity levels."""
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class TrendDirection(Enum):
    """Direction of a symbol's drift over a lookback window."""
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"
    INSUFFICIENT_DATA = "insufficient_data"


class RebalanceAction(Enum):
    """Trade direction for a rebalance recommendation."""
    BUY = "BUY"
    SELL = "SELL"


class RebalancePriority(Enum):
    """Urgency tier for a rebalance recommendation."""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"


class MnavStatus(Enum):
    """Valuation signal derived from the mNAV ratio."""
    OVERVALUED = "OVERVALUED"
    UNDERVALUED = "UNDERVALUED"
    NORMAL = "NORMAL"


class ActionType(Enum):
    """Types of logged actions for the decision log."""
    CONFIG_LOADED = "CONFIG_LOADED"
    VALUATION_CALCULATED = "VALUATION_CALCULATED"
    MNAV_CALCULATED = "MNAV_CALCULATED"
    DRIFT_CHECKED = "DRIFT_CHECKED"
    ALERT_ACKNOWLEDGED = "ALERT_ACKNOWLEDGED"
    REBALANCE_PLANNED = "REBALANCE_PLANNED"
    PROJECTION_RUN = "PROJECTION_RUN"
    HARVEST_ANALYZED = "HARVEST_ANALYZED"


@dataclass(frozen=True)
class Holding:
    """
    A configured holding.

    Attributes:
        symbol: Ticker symbol (upper-case)
        quantity: Units held (coins or shares, fractional allowed)
        target_allocation: Target portfolio fraction (0-1)
    """
    symbol: str
    quantity: Decimal
    target_allocation: Decimal


@dataclass(frozen=True)
class Position:
    """
    A holding valued at a current price.

    Attributes:
        symbol: Ticker symbol
        quantity: Units held
        price: Price used for valuation (0 when unavailable)
        value: price * quantity
        target_allocation: Target portfolio fraction
        actual_allocation: value / total portfolio value
        drift: actual_allocation - target_allocation
        needs_rebalance: Whether |drift| exceeds the rebalance trigger
    """
    symbol: str
    quantity: Decimal
    price: Decimal
    value: Decimal
    target_allocation: Decimal
    actual_allocation: Decimal
    drift: Decimal
    needs_rebalance: bool

    @property
    def drift_percent(self) -> Decimal:
        """Drift expressed in percentage points."""
        return self.drift * Decimal("100")


@dataclass(frozen=True)
class PortfolioSnapshot:
    """
    Point-in-time valuation of the whole portfolio.

    Snapshots are rebuilt on every valuation call and never mutated.
    """
    total_value: Decimal
    positions: tuple[Position, ...]
    timestamp: datetime

    def get_position(self, symbol: str) -> Optional[Position]:
        """Look up a position by symbol."""
        symbol = symbol.upper()
        for position in self.positions:
            if position.symbol == symbol:
                return position
        return None


@dataclass(frozen=True)
class ValuationResult:
    """
    Outcome of a portfolio valuation.

    Exactly one of ``snapshot`` and ``error`` is set. A missing required
    price produces an error result rather than a valuation computed with zeros.
    """
    snapshot: Optional[PortfolioSnapshot] = None
    error: Optional[str] = None
    missing_symbols: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class Alert:
    """
    Drift alert for a single position.

    Alerts are created by the drift monitor, persisted through an alert store,
    and only ever mutated by acknowledgement.
    """
    id: str
    symbol: str
    severity: AlertSeverity
    drift: Decimal
    timestamp: datetime
    acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None
    actual_allocation: Decimal = Decimal("0")
    target_allocation: Decimal = Decimal("0")
    value: Decimal = Decimal("0")

    @classmethod
    def create(
        cls,
        position: Position,
        severity: AlertSeverity,
        timestamp: datetime,
    ) -> "Alert":
        """Factory method; ids are symbol, epoch millis and a random suffix."""
        millis = int(timestamp.timestamp() * 1000)
        return cls(
            id=f"{position.symbol}-{millis}-{uuid.uuid4().hex[:8]}",
            symbol=position.symbol,
            severity=severity,
            drift=position.drift,
            timestamp=timestamp,
            actual_allocation=position.actual_allocation,
            target_allocation=position.target_allocation,
            value=position.value,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "severity": self.severity.value,
            "drift": str(self.drift),
            "timestamp": self.timestamp.isoformat(),
            "acknowledged": self.acknowledged,
            "acknowledged_at": (
                self.acknowledged_at.isoformat() if self.acknowledged_at else None
            ),
            "actual_allocation": str(self.actual_allocation),
            "target_allocation": str(self.target_allocation),
            "value": str(self.value),
        }

    @classmethod
    def from_dict(cls, raw: dict) -> "Alert":
        acknowledged_at = raw.get("acknowledged_at")
        return cls(
            id=raw["id"],
            symbol=raw["symbol"],
            severity=AlertSeverity(raw["severity"]),
            drift=Decimal(str(raw["drift"])),
            timestamp=datetime.fromisoformat(raw["timestamp"]),
            acknowledged=bool(raw.get("acknowledged", False)),
            acknowledged_at=(
                datetime.fromisoformat(acknowledged_at) if acknowledged_at else None
            ),
            actual_allocation=Decimal(str(raw.get("actual_allocation", "0"))),
            target_allocation=Decimal(str(raw.get("target_allocation", "0"))),
            value=Decimal(str(raw.get("value", "0"))),
        )


@dataclass(frozen=True)
class DriftPoint:
    """Drift of one symbol at the time of a drift check."""
    symbol: str
    actual_allocation: Decimal
    target_allocation: Decimal
    drift: Decimal
    value: Decimal


@dataclass(frozen=True)
class DriftRecord:
    """
    One drift-history entry, written on every drift check.

    Attributes:
        timestamp: When the check ran
        positions: Per-symbol drift at that time
    """
    timestamp: datetime
    positions: tuple[DriftPoint, ...]

    @classmethod
    def from_snapshot(cls, snapshot: PortfolioSnapshot, timestamp: datetime) -> "DriftRecord":
        return cls(
            timestamp=timestamp,
            positions=tuple(
                DriftPoint(
                    symbol=p.symbol,
                    actual_allocation=p.actual_allocation,
                    target_allocation=p.target_allocation,
                    drift=p.drift,
                    value=p.value,
                )
                for p in snapshot.positions
            ),
        )

    def drift_for(self, symbol: str) -> Optional[Decimal]:
        for point in self.positions:
            if point.symbol == symbol:
                return point.drift
        return None

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "positions": [
                {
                    "symbol": p.symbol,
                    "actual_allocation": str(p.actual_allocation),
                    "target_allocation": str(p.target_allocation),
                    "drift": str(p.drift),
                    "value": str(p.value),
                }
                for p in self.positions
            ],
        }

    @classmethod
    def from_dict(cls, raw: dict) -> "DriftRecord":
        return cls(
            timestamp=datetime.fromisoformat(raw["timestamp"]),
            positions=tuple(
                DriftPoint(
                    symbol=p["symbol"],
                    actual_allocation=Decimal(str(p["actual_allocation"])),
                    target_allocation=Decimal(str(p["target_allocation"])),
                    drift=Decimal(str(p["drift"])),
                    value=Decimal(str(p["value"])),
                )
                for p in raw.get("positions", [])
            ),
        )


@dataclass(frozen=True)
class DriftTrend:
    """
    Net drift movement of a symbol over a lookback window.

    Attributes:
        symbol: Ticker symbol
        trend: Direction, or INSUFFICIENT_DATA with fewer than 2 points
        data_points: Number of history entries in the window
        change: last_drift - first_drift (None when insufficient)
        first_drift: Earliest drift in the window
        last_drift: Latest drift in the window
    """
    symbol: str
    trend: TrendDirection
    data_points: int
    change: Optional[Decimal] = None
    first_drift: Optional[Decimal] = None
    last_drift: Optional[Decimal] = None

    @property
    def change_percent(self) -> Optional[Decimal]:
        if self.change is None:
            return None
        return self.change * Decimal("100")


@dataclass(frozen=True)
class RebalanceRecommendation:
    """
    Proposed correction for one drifted position.

    Recommendations are advisory; nothing is executed.
    """
    symbol: str
    action: RebalanceAction
    current_value: Decimal
    target_value: Decimal
    difference: Decimal
    shares: Decimal
    priority: RebalancePriority


@dataclass(frozen=True)
class RebalancePlan:
    """Ordered rebalance recommendations for a snapshot."""
    recommendations: tuple[RebalanceRecommendation, ...]
    total_value: Decimal
    timestamp: datetime

    @property
    def needs_rebalance(self) -> bool:
        return len(self.recommendations) > 0


@dataclass(frozen=True)
class PathPoint:
    """Total simulated portfolio value at a month index."""
    month: int
    value: float


@dataclass(frozen=True)
class SimulationPath:
    """One simulated trajectory, month 0 through years * 12."""
    points: tuple[PathPoint, ...]

    @property
    def final_value(self) -> float:
        return self.points[-1].value

    def value_at(self, month: int) -> float:
        return self.points[month].value

    def __len__(self) -> int:
        return len(self.points)


@dataclass(frozen=True)
class MonthStatistics:
    """Cross-path statistics at one month index."""
    month: int
    mean: float
    median: float
    min: float
    max: float
    percentiles: dict[str, float] = field(default_factory=dict)

    @property
    def year(self) -> float:
        return self.month / 12

    def percentile(self, level: float) -> float:
        """Look up a percentile band, e.g. ``percentile(0.05)`` for p5."""
        return self.percentiles[percentile_label(level)]

    @property
    def p5(self) -> float:
        return self.percentiles["p5"]

    @property
    def p25(self) -> float:
        return self.percentiles["p25"]

    @property
    def p50(self) -> float:
        return self.percentiles["p50"]

    @property
    def p75(self) -> float:
        return self.percentiles["p75"]

    @property
    def p95(self) -> float:
        return self.percentiles["p95"]


def percentile_label(level: float) -> str:
    """Band name for a confidence level: 0.05 -> 'p5'."""
    return f"p{round(level * 100)}"


@dataclass(frozen=True)
class FinalStatistics:
    """End-of-horizon value distribution and probability metrics."""
    mean: float
    median: float
    min: float
    max: float
    prob_loss: float
    prob_double: float
    prob_5x: float


@dataclass(frozen=True)
class CagrStatistics:
    """Summary of per-path compound annual growth rates."""
    mean: float
    median: float
    min: float
    max: float


@dataclass(frozen=True)
class MnavAnalysis:
    """
    mNAV valuation signal.

    Attributes:
        mnav: MSTR market cap / value of BTC holdings
        mstr_market_cap: mstr_price * shares_outstanding
        btc_holdings_value: btc_price * btc_holdings
        status: OVERVALUED above mnav_high, UNDERVALUED below mnav_low
    """
    mnav: Decimal
    mstr_market_cap: Decimal
    btc_holdings_value: Decimal
    btc_price: Decimal
    mstr_price: Decimal
    btc_holdings: Decimal
    shares_outstanding: Decimal
    status: MnavStatus
    mnav_high: Decimal
    mnav_low: Decimal
    timestamp: datetime


@dataclass(frozen=True)
class MnavResult:
    """Outcome of an mNAV calculation (analysis or error)."""
    analysis: Optional[MnavAnalysis] = None
    error: Optional[str] = None
    missing_symbols: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class TaxLot:
    """
    Represents a single purchase lot.

    Attributes:
        lot_id: Unique identifier for this lot
        symbol: Ticker symbol
        shares: Units purchased
        cost_basis: Per-unit cost basis
        purchase_date: Date the lot was acquired
        account: Account label
        notes: Free-form notes
    """
    lot_id: str
    symbol: str
    shares: Decimal
    cost_basis: Decimal
    purchase_date: date
    account: str = "default"
    notes: str = ""

    @classmethod
    def create(
        cls,
        symbol: str,
        shares: Decimal,
        cost_basis: Decimal,
        purchase_date: date,
        account: str = "default",
        notes: str = "",
    ) -> "TaxLot":
        """Factory method to create a new TaxLot with auto-generated ID."""
        return cls(
            lot_id=str(uuid.uuid4()),
            symbol=symbol.upper(),
            shares=shares,
            cost_basis=cost_basis,
            purchase_date=purchase_date,
            account=account,
            notes=notes,
        )

    @property
    def total_cost(self) -> Decimal:
        """Total cost basis for this lot (shares * cost_basis)."""
        return self.shares * self.cost_basis

    def to_dict(self) -> dict:
        record = asdict(self)
        record["shares"] = str(self.shares)
        record["cost_basis"] = str(self.cost_basis)
        record["purchase_date"] = self.purchase_date.isoformat()
        return record

    @classmethod
    def from_dict(cls, raw: dict) -> "TaxLot":
        return cls(
            lot_id=str(raw["lot_id"]),
            symbol=str(raw["symbol"]).upper(),
            shares=Decimal(str(raw["shares"])),
            cost_basis=Decimal(str(raw["cost_basis"])),
            purchase_date=date.fromisoformat(str(raw["purchase_date"])),
            account=raw.get("account", "default"),
            notes=raw.get("notes", ""),
        )


@dataclass(frozen=True)
class HarvestOpportunity:
    """
    A lot trading below its cost basis.

    Attributes:
        lot: The underlying tax lot
        current_price: Price used for valuation
        current_value: shares * current_price
        cost_basis_total: shares * cost_basis
        gain_loss: current_value - cost_basis_total (negative)
        gain_loss_pct: gain_loss as percent of cost basis (negative)
        days_held: Days since purchase
        is_long_term: Held more than 365 days
        potential_tax_savings: |gain_loss| * applicable rate
        priority: Ranking score, higher is a better opportunity
        urgent: Short-term lot close to turning long-term
        days_to_long_term: Days until the lot becomes long-term
    """
    lot: TaxLot
    current_price: Decimal
    current_value: Decimal
    cost_basis_total: Decimal
    gain_loss: Decimal
    gain_loss_pct: Decimal
    days_held: int
    is_long_term: bool
    potential_tax_savings: Decimal
    priority: Decimal
    urgent: bool = False
    days_to_long_term: int = 0


@dataclass
class DecisionLogEntry:
    """
    Entry for the append-only decision log.

    Attributes:
        timestamp: When the action occurred
        action_type: Type of action
        details: JSON-serializable details dictionary
    """
    timestamp: datetime
    action_type: ActionType
    details: dict

    @classmethod
    def create(
        cls,
        action_type: ActionType,
        details: dict,
    ) -> "DecisionLogEntry":
        """Factory method with auto-generated timestamp."""
        return cls(
            timestamp=datetime.now(),
            action_type=action_type,
            details=details,
        )
