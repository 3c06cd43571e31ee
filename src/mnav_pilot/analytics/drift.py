"""
Drift alerting and drift trend analysis.

This module classifies position drift into alert severities, suppresses
repeat alerts inside a cooldown window, and keeps a rolling drift history
used to report whether a symbol's drift is increasing, decreasing or stable.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional

from mnav_pilot.config import AlertSettings
from mnav_pilot.data.stores import AlertStore, DriftHistoryStore
from mnav_pilot.models import (
    Alert,
    AlertSeverity,
    DriftRecord,
    DriftTrend,
    PortfolioSnapshot,
    Position,
    TrendDirection,
)


logger = logging.getLogger(__name__)

# Drift moves smaller than one percentage point count as stable.
TREND_EPSILON = Decimal("0.01")


def classify_severity(
    abs_drift: Decimal,
    warning: Decimal,
    critical: Decimal,
) -> Optional[AlertSeverity]:
    """
    Map an absolute drift onto an alert severity.

    Args:
        abs_drift: |actual - target| allocation
        warning: Warning threshold (inclusive)
        critical: Critical threshold (inclusive)

    Returns:
        CRITICAL, WARNING, or None when below both thresholds
    """
    if abs_drift >= critical:
        return AlertSeverity.CRITICAL
    if abs_drift >= warning:
        return AlertSeverity.WARNING
    return None


def is_cooling_down(
    existing: list[Alert],
    symbol: str,
    severity: AlertSeverity,
    now: datetime,
    cooldown: timedelta,
) -> bool:
    """Whether an alert for this symbol and severity was raised within the cooldown."""
    return any(
        a.symbol == symbol
        and a.severity == severity
        and now - a.timestamp < cooldown
        for a in existing
    )


def calculate_drift_trend(
    history: list[DriftRecord],
    symbol: str,
    since: datetime,
) -> DriftTrend:
    """
    Compute the net drift change of a symbol since a point in time.

    Args:
        history: Drift records, oldest first
        symbol: Symbol to analyze
        since: Only records strictly after this time are used

    Returns:
        DriftTrend; INSUFFICIENT_DATA when fewer than 2 points are available
    """
    symbol = symbol.upper()
    drifts = []
    for record in history:
        if record.timestamp <= since:
            continue
        drift = record.drift_for(symbol)
        if drift is not None:
            drifts.append(drift)

    if len(drifts) < 2:
        return DriftTrend(
            symbol=symbol,
            trend=TrendDirection.INSUFFICIENT_DATA,
            data_points=len(drifts),
        )

    first, last = drifts[0], drifts[-1]
    change = last - first

    if abs(change) < TREND_EPSILON:
        trend = TrendDirection.STABLE
    elif change > Decimal("0"):
        trend = TrendDirection.INCREASING
    else:
        trend = TrendDirection.DECREASING

    return DriftTrend(
        symbol=symbol,
        trend=trend,
        data_points=len(drifts),
        change=change,
        first_drift=first,
        last_drift=last,
    )


@dataclass(frozen=True)
class DriftCheckResult:
    """
    Outcome of a drift check.

    Attributes:
        snapshot: The snapshot that was checked
        alerts: Newly emitted alerts (these go to notification)
        suppressed: Alerts withheld by the cooldown
    """
    snapshot: PortfolioSnapshot
    alerts: tuple[Alert, ...]
    suppressed: tuple[Alert, ...] = ()


class DriftMonitor:
    """
    Stateful drift alerting over injected stores.

    The monitor holds no state of its own beyond its configuration; the alert
    log and drift history live in the stores it is given.
    """

    def __init__(
        self,
        settings: AlertSettings,
        alert_store: AlertStore,
        history_store: DriftHistoryStore,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize the monitor.

        Args:
            settings: Thresholds, cooldown and retention
            alert_store: Where alerts are appended and trimmed
            history_store: Where drift records are appended and trimmed
            clock: Source of the current time
        """
        self.settings = settings
        self.alert_store = alert_store
        self.history_store = history_store
        self.clock = clock

    def classify(self, position: Position) -> Optional[AlertSeverity]:
        return classify_severity(
            abs(position.drift), self.settings.warning, self.settings.critical
        )

    def record_history(self, snapshot: PortfolioSnapshot, now: datetime) -> list[DriftRecord]:
        """Append a drift record and trim history to the retention window."""
        cutoff = now - timedelta(days=self.settings.history_days)
        return self.history_store.append_and_trim(
            DriftRecord.from_snapshot(snapshot, now), cutoff
        )

    def check(self, snapshot: PortfolioSnapshot) -> DriftCheckResult:
        """
        Check every position for drift alerts.

        Records the snapshot in drift history, classifies each position, and
        emits alerts that are not suppressed by the cooldown. Emitted alerts
        are appended to the alert log in one update, which also trims the log.

        Args:
            snapshot: Current portfolio snapshot

        Returns:
            DriftCheckResult with new and suppressed alerts
        """
        now = self.clock()
        existing = self.alert_store.load()

        self.record_history(snapshot, now)

        emitted: list[Alert] = []
        suppressed: list[Alert] = []

        for position in snapshot.positions:
            severity = self.classify(position)
            if severity is None:
                continue

            alert = Alert.create(position, severity, now)
            if is_cooling_down(existing, position.symbol, severity, now, self.settings.cooldown):
                logger.debug(
                    "Suppressing %s alert for %s (cooldown)", severity.value, position.symbol
                )
                suppressed.append(alert)
                continue

            emitted.append(alert)

        if emitted:
            self.alert_store.append_and_trim(emitted, self.settings.max_alerts)
            logger.info(
                "Raised %d drift alert(s): %s",
                len(emitted),
                ", ".join(f"{a.symbol}/{a.severity.value}" for a in emitted),
            )

        return DriftCheckResult(
            snapshot=snapshot,
            alerts=tuple(emitted),
            suppressed=tuple(suppressed),
        )

    def active_alerts(self) -> list[Alert]:
        """Get unacknowledged alerts."""
        return [a for a in self.alert_store.load() if not a.acknowledged]

    def acknowledge(self, alert_id: str) -> Optional[Alert]:
        """
        Acknowledge an alert.

        Args:
            alert_id: Alert identifier

        Returns:
            The updated alert, or None if no alert has that id
        """
        alerts = self.alert_store.load()
        for i, alert in enumerate(alerts):
            if alert.id == alert_id:
                updated = replace(alert, acknowledged=True, acknowledged_at=self.clock())
                alerts[i] = updated
                self.alert_store.save(alerts)
                return updated
        return None

    def drift_trend(self, symbol: str, days: int = 7) -> DriftTrend:
        """
        Get the drift trend for a symbol over the last ``days`` days.

        Args:
            symbol: Symbol to analyze
            days: Lookback window in days

        Returns:
            DriftTrend for the window
        """
        since = self.clock() - timedelta(days=days)
        return calculate_drift_trend(self.history_store.load(), symbol, since)


def summarize_alerts(alerts: list[Alert]) -> dict:
    """
    Generate summary counts for a list of alerts.

    Args:
        alerts: Alerts to summarize

    Returns:
        Dictionary with counts by severity and the symbols involved
    """
    return {
        "total_alerts": len(alerts),
        "critical": sum(1 for a in alerts if a.severity == AlertSeverity.CRITICAL),
        "warning": sum(1 for a in alerts if a.severity == AlertSeverity.WARNING),
        "unacknowledged": sum(1 for a in alerts if not a.acknowledged),
        "symbols": sorted({a.symbol for a in alerts}),
        "max_absolute_drift": max(
            (abs(a.drift) for a in alerts),
            default=Decimal("0"),
        ),
    }
