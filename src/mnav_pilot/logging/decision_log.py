"""
Append-only decision logging for the treasury portfolio monitor.

Every valuation, drift check, rebalance plan and projection is logged with a
timestamp and its key figures to support auditability.
"""

import json
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from mnav_pilot.config import MonitorConfig
from mnav_pilot.models import (
    ActionType,
    Alert,
    DecisionLogEntry,
    HarvestOpportunity,
    MnavAnalysis,
    PortfolioSnapshot,
    RebalancePlan,
)


class DecisionLogger:
    """
    Append-only decision logger.

    Writes all decisions to a JSONL file for audit purposes.
    Each line is a complete JSON object representing one action.
    """

    def __init__(self, log_path: str | Path):
        """
        Initialize the decision logger.

        Args:
            log_path: Path to the log file (will be created if not exists)
        """
        self.log_path = Path(log_path)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, entry: DecisionLogEntry) -> None:
        """
        Write a decision log entry.

        Args:
            entry: DecisionLogEntry to write
        """
        record = {
            "timestamp": entry.timestamp.isoformat(),
            "action_type": entry.action_type.value,
            "details": entry.details,
        }

        with open(self.log_path, "a") as f:
            f.write(json.dumps(record, cls=DecimalEncoder) + "\n")

    def _log(self, action_type: ActionType, details: dict) -> None:
        self.log(DecisionLogEntry.create(action_type=action_type, details=details))

    def log_config_loaded(self, config: MonitorConfig, config_path: Optional[str]) -> None:
        self._log(
            ActionType.CONFIG_LOADED,
            {
                "config_path": config_path,
                "holdings": [h.symbol for h in config.holdings],
                "rebalance_trigger": config.thresholds.rebalance_trigger,
                "alert_thresholds": {
                    "warning": config.alerts.warning,
                    "critical": config.alerts.critical,
                },
            },
        )

    def log_valuation_calculated(self, snapshot: PortfolioSnapshot) -> None:
        """
        Log portfolio valuation.

        Args:
            snapshot: Portfolio snapshot
        """
        self._log(
            ActionType.VALUATION_CALCULATED,
            {
                "total_value": snapshot.total_value,
                "num_positions": len(snapshot.positions),
                "needs_rebalance": [p.symbol for p in snapshot.positions if p.needs_rebalance],
            },
        )

    def log_mnav_calculated(self, analysis: MnavAnalysis) -> None:
        self._log(
            ActionType.MNAV_CALCULATED,
            {
                "mnav": analysis.mnav,
                "status": analysis.status,
                "btc_price": analysis.btc_price,
                "mstr_price": analysis.mstr_price,
            },
        )

    def log_drift_checked(
        self,
        snapshot: PortfolioSnapshot,
        alerts: list[Alert],
        suppressed: int,
    ) -> None:
        """
        Log a drift check.

        Args:
            snapshot: Snapshot that was checked
            alerts: Newly emitted alerts
            suppressed: Number of alerts held back by the cooldown
        """
        self._log(
            ActionType.DRIFT_CHECKED,
            {
                "total_value": snapshot.total_value,
                "max_drift": max(
                    (abs(p.drift) for p in snapshot.positions),
                    default=Decimal("0"),
                ),
                "alerts_emitted": [a.id for a in alerts],
                "alerts_suppressed": suppressed,
            },
        )

    def log_alert_acknowledged(self, alert: Alert) -> None:
        self._log(
            ActionType.ALERT_ACKNOWLEDGED,
            {"alert_id": alert.id, "symbol": alert.symbol, "severity": alert.severity},
        )

    def log_rebalance_planned(self, plan: RebalancePlan) -> None:
        """
        Log rebalance plan generation.

        Args:
            plan: Rebalance plan
        """
        from mnav_pilot.trading.rebalance import calculate_plan_summary

        self._log(ActionType.REBALANCE_PLANNED, calculate_plan_summary(plan))

    def log_projection_run(self, result: Any) -> None:
        """
        Log a Monte Carlo projection.

        Args:
            result: ProjectionResult
        """
        self._log(
            ActionType.PROJECTION_RUN,
            {
                "initial_value": result.initial_value,
                "years": result.years,
                "simulations": result.simulations,
                "final_median": result.final_stats.median,
                "prob_loss": result.final_stats.prob_loss,
            },
        )

    def log_harvest_analyzed(self, opportunities: list[HarvestOpportunity]) -> None:
        from mnav_pilot.analytics.tlh import summarize_harvest

        self._log(ActionType.HARVEST_ANALYZED, summarize_harvest(opportunities))

    def read_log(self) -> list[DecisionLogEntry]:
        """
        Read all entries from the log file.

        Returns:
            List of DecisionLogEntry objects
        """
        if not self.log_path.exists():
            return []

        entries = []
        with open(self.log_path, "r") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                record = json.loads(line)
                entries.append(
                    DecisionLogEntry(
                        timestamp=datetime.fromisoformat(record["timestamp"]),
                        action_type=ActionType(record["action_type"]),
                        details=record.get("details", {}),
                    )
                )

        return entries

    def filter_by_action_type(
        self,
        action_type: ActionType,
    ) -> list[DecisionLogEntry]:
        """
        Get log entries of a specific action type.

        Args:
            action_type: Action type to filter by

        Returns:
            Filtered list of entries
        """
        return [e for e in self.read_log() if e.action_type == action_type]


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal, date and Enum types."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        return super().default(obj)
