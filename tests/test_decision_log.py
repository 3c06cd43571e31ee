"""
Tests for the append-only decision log.
"""

import json
from decimal import Decimal

from mnav_pilot.analytics import DriftMonitor
from mnav_pilot.config import MonitorConfig
from mnav_pilot.logging import DecimalEncoder, DecisionLogger
from mnav_pilot.models import ActionType, AlertSeverity
from mnav_pilot.trading import plan_rebalance


class TestDecisionLogger:
    """Tests for DecisionLogger."""

    def test_creates_parent_directory(self, tmp_path):
        logger = DecisionLogger(tmp_path / "nested" / "decision_log.jsonl")
        assert logger.log_path.parent.exists()

    def test_empty_log(self, tmp_path):
        assert DecisionLogger(tmp_path / "log.jsonl").read_log() == []

    def test_valuation_entry(self, tmp_path, sample_snapshot):
        logger = DecisionLogger(tmp_path / "log.jsonl")

        logger.log_valuation_calculated(sample_snapshot)

        entries = logger.read_log()
        assert len(entries) == 1
        assert entries[0].action_type == ActionType.VALUATION_CALCULATED
        assert Decimal(entries[0].details["total_value"]) == Decimal("104000")
        assert entries[0].details["needs_rebalance"] == ["BTC", "MSTR"]

    def test_one_json_object_per_line(self, tmp_path, sample_snapshot):
        path = tmp_path / "log.jsonl"
        logger = DecisionLogger(path)

        logger.log_config_loaded(MonitorConfig(), None)
        logger.log_rebalance_planned(plan_rebalance(sample_snapshot))

        lines = path.read_text().splitlines()
        assert len(lines) == 2
        assert json.loads(lines[1])["details"]["sell_count"] == 1

    def test_drift_check_entry(
        self, tmp_path, sample_snapshot, alert_settings, alert_store, history_store, clock
    ):
        logger = DecisionLogger(tmp_path / "log.jsonl")
        monitor = DriftMonitor(alert_settings, alert_store, history_store, clock=clock)
        result = monitor.check(sample_snapshot)

        logger.log_drift_checked(sample_snapshot, list(result.alerts), len(result.suppressed))
        logger.log_alert_acknowledged(result.alerts[0])

        checked = logger.filter_by_action_type(ActionType.DRIFT_CHECKED)
        assert len(checked) == 1
        assert checked[0].details["alerts_emitted"] == [a.id for a in result.alerts]
        assert checked[0].details["alerts_suppressed"] == 0

        acked = logger.filter_by_action_type(ActionType.ALERT_ACKNOWLEDGED)
        assert acked[0].details["severity"] == AlertSeverity.CRITICAL.value


class TestDecimalEncoder:

    def test_encodes_domain_types(self, as_of):
        encoded = json.dumps(
            {"amount": Decimal("1.50"), "when": as_of, "level": AlertSeverity.WARNING},
            cls=DecimalEncoder,
        )
        assert json.loads(encoded) == {
            "amount": "1.50",
            "when": as_of.isoformat(),
            "level": "warning",
        }
