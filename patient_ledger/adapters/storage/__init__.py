"""Storage adapters for Patient Ledger.

This module contains storage adapters that implement the KeyValueStorePort
interface for persisting the serialized patient collections.
"""

from patient_ledger.adapters.storage.duckdb_adapter import DuckDBKeyValueStore
from patient_ledger.adapters.storage.memory_adapter import InMemoryKeyValueStore

__all__ = ["DuckDBKeyValueStore", "InMemoryKeyValueStore"]
