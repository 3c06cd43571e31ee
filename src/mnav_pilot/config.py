"""
Configuration loading and management for the treasury portfolio monitor.

This module handles loading the monitor configuration from a YAML file and
validating it once, at the boundary, into an explicit ``MonitorConfig``.
Every field has a default; ``MonitorConfig()`` is the single default
construction path and a missing configuration file yields exactly that.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

import yaml

from mnav_pilot.models import Holding


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path("config.yaml")


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""
    pass


@dataclass(frozen=True)
class TreasuryData:
    """
    Disclosed treasury figures used for the mNAV ratio.

    Attributes:
        btc_holdings: BTC held on the company balance sheet
        shares_outstanding: Company shares outstanding
    """
    btc_holdings: Decimal = Decimal("450000")
    shares_outstanding: Decimal = Decimal("180000000")


@dataclass(frozen=True)
class Thresholds:
    """
    Valuation and allocation thresholds.

    Attributes:
        mnav_high: mNAV above this is flagged OVERVALUED
        mnav_low: mNAV below this is flagged UNDERVALUED
        drift_trigger: Drift fraction worth reporting; shown by the check
            command alongside the alert thresholds, not used to classify alerts
        rebalance_trigger: Drift fraction beyond which a position needs rebalancing
    """
    mnav_high: Decimal = Decimal("2.5")
    mnav_low: Decimal = Decimal("0.85")
    drift_trigger: Decimal = Decimal("0.05")
    rebalance_trigger: Decimal = Decimal("0.10")


@dataclass(frozen=True)
class AlertSettings:
    """
    Drift alert configuration.

    Attributes:
        warning: |drift| at or above this raises a warning
        critical: |drift| at or above this raises a critical alert
        cooldown: Minimum time before re-alerting the same symbol and severity
        max_alerts: Number of most recent alerts retained
        history_days: Retention window for drift history
        enabled: Whether new alerts are sent to the webhook
        webhook: Webhook URL for notifications
    """
    warning: Decimal = Decimal("0.05")
    critical: Decimal = Decimal("0.10")
    cooldown: timedelta = timedelta(minutes=240)
    max_alerts: int = 100
    history_days: int = 30
    enabled: bool = False
    webhook: Optional[str] = None


@dataclass(frozen=True)
class SimulationSettings:
    """
    Monte Carlo defaults.

    Attributes:
        simulations: Number of independent runs
        years: Projection horizon in years
        confidence: Percentile levels reported per month
        seed: Optional seed for reproducible runs
    """
    simulations: int = 1000
    years: int = 10
    confidence: tuple[float, ...] = (0.05, 0.25, 0.50, 0.75, 0.95)
    seed: Optional[int] = None


@dataclass(frozen=True)
class MonitorConfig:
    """Complete, validated monitor configuration."""
    holdings: tuple[Holding, ...] = ()
    treasury: TreasuryData = field(default_factory=TreasuryData)
    thresholds: Thresholds = field(default_factory=Thresholds)
    alerts: AlertSettings = field(default_factory=AlertSettings)
    simulation: SimulationSettings = field(default_factory=SimulationSettings)
    data_dir: str = "data"


def load_config(config_path: str | Path | None = None) -> MonitorConfig:
    """
    Load the monitor configuration from a YAML file.

    Args:
        config_path: Path to the YAML file (defaults to ./config.yaml)

    Returns:
        MonitorConfig with validated settings. If no file exists at the
        default location the built-in defaults are returned.

    Raises:
        ConfigurationError: If the file cannot be loaded or is invalid
    """
    explicit = config_path is not None
    config_path = Path(config_path) if explicit else DEFAULT_CONFIG_FILE

    if not config_path.exists():
        if explicit:
            raise ConfigurationError(f"Configuration file not found: {config_path}")
        logger.warning("%s not found, using defaults", config_path)
        return MonitorConfig()

    try:
        with open(config_path, "r") as f:
            raw_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file: {e}")

    return parse_config(raw_config)


def parse_config(raw: dict[str, Any]) -> MonitorConfig:
    """
    Parse and validate a raw configuration dictionary into MonitorConfig.

    Args:
        raw: Dictionary loaded from YAML

    Returns:
        Validated MonitorConfig

    Raises:
        ConfigurationError: If fields are missing or invalid
    """
    if not isinstance(raw, dict):
        raise ConfigurationError("Configuration root must be a mapping")

    holdings = _parse_holdings(raw.get("holdings", []))

    treasury_raw = _section(raw, "treasury")
    defaults = TreasuryData()
    treasury = TreasuryData(
        btc_holdings=_parse_decimal(
            treasury_raw.get("btc_holdings", defaults.btc_holdings),
            "treasury.btc_holdings",
            min_val=Decimal("0"),
        ),
        shares_outstanding=_parse_decimal(
            treasury_raw.get("shares_outstanding", defaults.shares_outstanding),
            "treasury.shares_outstanding",
            min_val=Decimal("0"),
        ),
    )

    thresholds_raw = _section(raw, "thresholds")
    defaults = Thresholds()
    thresholds = Thresholds(
        mnav_high=_parse_decimal(
            thresholds_raw.get("mnav_high", defaults.mnav_high),
            "thresholds.mnav_high",
            min_val=Decimal("0"),
        ),
        mnav_low=_parse_decimal(
            thresholds_raw.get("mnav_low", defaults.mnav_low),
            "thresholds.mnav_low",
            min_val=Decimal("0"),
        ),
        drift_trigger=_parse_fraction(
            thresholds_raw.get("drift_trigger", defaults.drift_trigger),
            "thresholds.drift_trigger",
        ),
        rebalance_trigger=_parse_fraction(
            thresholds_raw.get("rebalance_trigger", defaults.rebalance_trigger),
            "thresholds.rebalance_trigger",
        ),
    )
    if thresholds.mnav_low > thresholds.mnav_high:
        raise ConfigurationError(
            f"thresholds.mnav_low ({thresholds.mnav_low}) must not exceed "
            f"thresholds.mnav_high ({thresholds.mnav_high})"
        )

    alerts_raw = _section(raw, "alerts")
    defaults = AlertSettings()
    cooldown_minutes = _parse_int(
        alerts_raw.get("cooldown_minutes", int(defaults.cooldown.total_seconds() // 60)),
        "alerts.cooldown_minutes",
        min_val=0,
    )
    webhook = alerts_raw.get("webhook", defaults.webhook)
    alerts = AlertSettings(
        warning=_parse_fraction(alerts_raw.get("warning", defaults.warning), "alerts.warning"),
        critical=_parse_fraction(alerts_raw.get("critical", defaults.critical), "alerts.critical"),
        cooldown=timedelta(minutes=cooldown_minutes),
        max_alerts=_parse_int(
            alerts_raw.get("max_alerts", defaults.max_alerts), "alerts.max_alerts", min_val=1
        ),
        history_days=_parse_int(
            alerts_raw.get("history_days", defaults.history_days), "alerts.history_days", min_val=1
        ),
        enabled=_parse_bool(alerts_raw.get("enabled", defaults.enabled), "alerts.enabled"),
        webhook=str(webhook) if webhook else None,
    )
    if alerts.warning > alerts.critical:
        raise ConfigurationError(
            f"alerts.warning ({alerts.warning}) must not exceed "
            f"alerts.critical ({alerts.critical})"
        )

    simulation_raw = _section(raw, "simulation")
    defaults = SimulationSettings()
    confidence_raw = simulation_raw.get("confidence", list(defaults.confidence))
    if not isinstance(confidence_raw, list) or not confidence_raw:
        raise ConfigurationError("simulation.confidence must be a non-empty list")
    confidence = tuple(
        float(_parse_fraction(level, "simulation.confidence")) for level in confidence_raw
    )
    seed = simulation_raw.get("seed", defaults.seed)
    simulation = SimulationSettings(
        simulations=_parse_int(
            simulation_raw.get("simulations", defaults.simulations),
            "simulation.simulations",
            min_val=1,
        ),
        years=_parse_int(simulation_raw.get("years", defaults.years), "simulation.years", min_val=0),
        confidence=tuple(sorted(confidence)),
        seed=_parse_int(seed, "simulation.seed", min_val=0) if seed is not None else None,
    )

    return MonitorConfig(
        holdings=holdings,
        treasury=treasury,
        thresholds=thresholds,
        alerts=alerts,
        simulation=simulation,
        data_dir=str(raw.get("data_dir", "data")),
    )


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"{name} must be a mapping")
    return value


def _parse_holdings(raw_holdings: Any) -> tuple[Holding, ...]:
    """
    Parse the holdings list.

    Each entry needs a symbol and a quantity (``shares`` is accepted as an
    alias); target_allocation defaults to 0.

    Raises:
        ConfigurationError: If an entry is malformed or a symbol repeats
    """
    if not isinstance(raw_holdings, list):
        raise ConfigurationError("holdings must be a list")

    holdings = []
    seen: set[str] = set()
    for i, entry in enumerate(raw_holdings):
        if not isinstance(entry, dict) or not entry.get("symbol"):
            raise ConfigurationError(f"holdings[{i}] must have a symbol")

        symbol = str(entry["symbol"]).upper().strip()
        if symbol in seen:
            raise ConfigurationError(f"Duplicate holding symbol: {symbol}")
        seen.add(symbol)

        quantity = entry.get("quantity", entry.get("shares", 0))
        holdings.append(
            Holding(
                symbol=symbol,
                quantity=_parse_decimal(quantity, f"holdings[{i}].quantity", min_val=Decimal("0")),
                target_allocation=_parse_fraction(
                    entry.get("target_allocation", 0), f"holdings[{i}].target_allocation"
                ),
            )
        )

    return tuple(holdings)


def _parse_decimal(
    value: Any,
    field_name: str,
    min_val: Decimal | None = None,
    max_val: Decimal | None = None,
) -> Decimal:
    """
    Parse a decimal value with optional range validation.

    Args:
        value: The value to parse
        field_name: Name of the field for error messages
        min_val: Minimum allowed value (inclusive)
        max_val: Maximum allowed value (inclusive)

    Returns:
        Parsed Decimal

    Raises:
        ConfigurationError: If the value is invalid or out of range
    """
    try:
        decimal_value = Decimal(str(value))
    except Exception:
        raise ConfigurationError(f"Invalid decimal value for {field_name}: {value}")

    if not decimal_value.is_finite():
        raise ConfigurationError(f"Invalid decimal value for {field_name}: {value}")

    if min_val is not None and decimal_value < min_val:
        raise ConfigurationError(
            f"{field_name} must be >= {min_val}, got {decimal_value}"
        )

    if max_val is not None and decimal_value > max_val:
        raise ConfigurationError(
            f"{field_name} must be <= {max_val}, got {decimal_value}"
        )

    return decimal_value


def _parse_fraction(value: Any, field_name: str) -> Decimal:
    """Parse a decimal in [0, 1]."""
    return _parse_decimal(value, field_name, min_val=Decimal("0"), max_val=Decimal("1"))


def _parse_int(value: Any, field_name: str, min_val: int | None = None) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid integer value for {field_name}: {value}")
    try:
        int_value = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid integer value for {field_name}: {value}")

    if int_value != value and not (isinstance(value, str) and value.strip() == str(int_value)):
        raise ConfigurationError(f"Invalid integer value for {field_name}: {value}")

    if min_val is not None and int_value < min_val:
        raise ConfigurationError(f"{field_name} must be >= {min_val}, got {int_value}")

    return int_value


def _parse_bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(f"{field_name} must be true or false, got {value!r}")
    return value


def write_config(config: MonitorConfig, output_path: str | Path) -> None:
    """
    Write a MonitorConfig to a YAML file.

    Args:
        config: The configuration to write
        output_path: Path to write the YAML file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = {
        "holdings": [
            {
                "symbol": h.symbol,
                "quantity": str(h.quantity),
                "target_allocation": str(h.target_allocation),
            }
            for h in config.holdings
        ],
        "treasury": {
            "btc_holdings": str(config.treasury.btc_holdings),
            "shares_outstanding": str(config.treasury.shares_outstanding),
        },
        "thresholds": {
            "mnav_high": str(config.thresholds.mnav_high),
            "mnav_low": str(config.thresholds.mnav_low),
            "drift_trigger": str(config.thresholds.drift_trigger),
            "rebalance_trigger": str(config.thresholds.rebalance_trigger),
        },
        "alerts": {
            "warning": str(config.alerts.warning),
            "critical": str(config.alerts.critical),
            "cooldown_minutes": int(config.alerts.cooldown.total_seconds() // 60),
            "max_alerts": config.alerts.max_alerts,
            "history_days": config.alerts.history_days,
            "enabled": config.alerts.enabled,
            "webhook": config.alerts.webhook,
        },
        "simulation": {
            "simulations": config.simulation.simulations,
            "years": config.simulation.years,
            "confidence": list(config.simulation.confidence),
            "seed": config.simulation.seed,
        },
        "data_dir": config.data_dir,
    }

    with open(output_path, "w") as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)
