"""
Data module for the treasury portfolio monitor.

Provides persistence stores for alerts, drift history and tax lots.
"""

from mnav_pilot.data.stores import (
    AlertStore,
    DriftHistoryStore,
    InMemoryAlertStore,
    InMemoryDriftHistoryStore,
    InMemoryTaxLotStore,
    JsonAlertStore,
    JsonDriftHistoryStore,
    JsonTaxLotStore,
    StoreError,
    TaxLotStore,
    open_json_stores,
)

__all__ = [
    "AlertStore",
    "DriftHistoryStore",
    "InMemoryAlertStore",
    "InMemoryDriftHistoryStore",
    "InMemoryTaxLotStore",
    "JsonAlertStore",
    "JsonDriftHistoryStore",
    "JsonTaxLotStore",
    "StoreError",
    "TaxLotStore",
    "open_json_stores",
]
