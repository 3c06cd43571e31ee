"""
Persistence for alerts, drift history and tax lots.

The analytics code never touches the filesystem; it is handed a store.
Each store has an in-memory implementation (used in tests and one-off runs)
and a JSON-file implementation (used by the CLI). Writes go through
``append_and_trim`` so that appending and retention trimming happen as a
single read-modify-write.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, TypeVar

from mnav_pilot.models import Alert, DriftRecord, TaxLot


logger = logging.getLogger(__name__)

T = TypeVar("T")

ALERTS_FILE = "drift-alerts.json"
DRIFT_HISTORY_FILE = "drift-history.json"
TAX_LOTS_FILE = "tax-lots.json"


class StoreError(Exception):
    """Raised when a store file exists but cannot be read."""
    pass


class AlertStore(ABC):
    """Bounded, time-ordered log of drift alerts."""

    @abstractmethod
    def load(self) -> list[Alert]:
        """Return all retained alerts, oldest first."""
        pass

    @abstractmethod
    def append_and_trim(self, alerts: Iterable[Alert], max_alerts: int) -> list[Alert]:
        """
        Append alerts and keep only the most recent ``max_alerts``.

        Returns:
            The retained alert log after the update
        """
        pass

    @abstractmethod
    def save(self, alerts: list[Alert]) -> None:
        """Replace the alert log (used for acknowledgement)."""
        pass


class DriftHistoryStore(ABC):
    """Append-only drift history bounded by a retention window."""

    @abstractmethod
    def load(self) -> list[DriftRecord]:
        """Return retained drift records, oldest first."""
        pass

    @abstractmethod
    def append_and_trim(self, record: DriftRecord, cutoff: datetime) -> list[DriftRecord]:
        """
        Append a record and drop every record at or before ``cutoff``.

        Returns:
            The retained history after the update
        """
        pass


class TaxLotStore(ABC):
    """Purchase lots used for tax-loss harvesting analysis."""

    @abstractmethod
    def load(self) -> list[TaxLot]:
        pass

    @abstractmethod
    def add(self, lot: TaxLot) -> TaxLot:
        pass


class InMemoryAlertStore(AlertStore):

    def __init__(self, alerts: Iterable[Alert] = ()):
        self._alerts = list(alerts)

    def load(self) -> list[Alert]:
        return list(self._alerts)

    def append_and_trim(self, alerts: Iterable[Alert], max_alerts: int) -> list[Alert]:
        self._alerts = (self._alerts + list(alerts))[-max_alerts:]
        return list(self._alerts)

    def save(self, alerts: list[Alert]) -> None:
        self._alerts = list(alerts)


class InMemoryDriftHistoryStore(DriftHistoryStore):

    def __init__(self, records: Iterable[DriftRecord] = ()):
        self._records = list(records)

    def load(self) -> list[DriftRecord]:
        return list(self._records)

    def append_and_trim(self, record: DriftRecord, cutoff: datetime) -> list[DriftRecord]:
        self._records = [r for r in self._records + [record] if r.timestamp > cutoff]
        return list(self._records)


class InMemoryTaxLotStore(TaxLotStore):

    def __init__(self, lots: Iterable[TaxLot] = ()):
        self._lots = list(lots)

    def load(self) -> list[TaxLot]:
        return list(self._lots)

    def add(self, lot: TaxLot) -> TaxLot:
        self._lots.append(lot)
        return lot


class JsonListFile:
    """
    A JSON file holding a list of records.

    Writes go to a temporary file in the same directory which is then moved
    over the target, so readers never see a partially written file.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def read(self, parse: Callable[[dict], T]) -> list[T]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, "r") as f:
                raw = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise StoreError(f"Cannot read {self.path}: {e}")

        if not isinstance(raw, list):
            raise StoreError(f"Expected a JSON list in {self.path}")

        try:
            return [parse(item) for item in raw]
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Malformed record in {self.path}: {e}")

    def write(self, records: list[dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(records, f, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


class JsonAlertStore(AlertStore):

    def __init__(self, path: str | Path):
        self._file = JsonListFile(path)

    def load(self) -> list[Alert]:
        return self._file.read(Alert.from_dict)

    def append_and_trim(self, alerts: Iterable[Alert], max_alerts: int) -> list[Alert]:
        retained = (self.load() + list(alerts))[-max_alerts:]
        self.save(retained)
        return retained

    def save(self, alerts: list[Alert]) -> None:
        self._file.write([a.to_dict() for a in alerts])


class JsonDriftHistoryStore(DriftHistoryStore):

    def __init__(self, path: str | Path):
        self._file = JsonListFile(path)

    def load(self) -> list[DriftRecord]:
        return self._file.read(DriftRecord.from_dict)

    def append_and_trim(self, record: DriftRecord, cutoff: datetime) -> list[DriftRecord]:
        retained = [r for r in self.load() + [record] if r.timestamp > cutoff]
        self._file.write([r.to_dict() for r in retained])
        return retained


class JsonTaxLotStore(TaxLotStore):

    def __init__(self, path: str | Path):
        self._file = JsonListFile(path)

    def load(self) -> list[TaxLot]:
        return self._file.read(TaxLot.from_dict)

    def add(self, lot: TaxLot) -> TaxLot:
        lots = self.load()
        lots.append(lot)
        self._file.write([l.to_dict() for l in lots])
        logger.info("Added lot %s (%s %s @ %s)", lot.lot_id, lot.shares, lot.symbol, lot.cost_basis)
        return lot


def open_json_stores(data_dir: str | Path) -> tuple[JsonAlertStore, JsonDriftHistoryStore, JsonTaxLotStore]:
    """
    Create the JSON-file stores under a data directory.

    Args:
        data_dir: Directory holding the store files

    Returns:
        Tuple of (alert_store, drift_history_store, tax_lot_store)
    """
    data_dir = Path(data_dir)
    return (
        JsonAlertStore(data_dir / ALERTS_FILE),
        JsonDriftHistoryStore(data_dir / DRIFT_HISTORY_FILE),
        JsonTaxLotStore(data_dir / TAX_LOTS_FILE),
    )
