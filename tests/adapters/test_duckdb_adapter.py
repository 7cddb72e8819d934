"""Tests for the DuckDB key-value storage adapter.

These tests run against real DuckDB databases (in-memory and file-based);
fault handling is exercised by patching the connection.
"""

from unittest.mock import MagicMock, patch

import pytest

from patient_ledger.adapters.storage.duckdb_adapter import DuckDBKeyValueStore
from patient_ledger.domain.ports import StorageError
from patient_ledger.domain.services import PatientRepository
from patient_ledger.infrastructure.config_manager import StorageConfig


@pytest.fixture
def duckdb_store():
    store = DuckDBKeyValueStore()
    yield store
    store.close()


class TestDuckDBKeyValueStore:
    """Test suite for DuckDBKeyValueStore."""

    def test_defaults_to_in_memory(self, duckdb_store):
        assert duckdb_store.db_path == ":memory:"
        assert duckdb_store.namespace == "patient_data"

    def test_initialize_schema(self, duckdb_store):
        result = duckdb_store.initialize_schema()
        assert result.is_success()

    def test_get_missing_key(self, duckdb_store):
        assert duckdb_store.get_string("patients") is None

    def test_set_get_overwrite(self, duckdb_store):
        duckdb_store.set_string("patients", "[]")
        duckdb_store.set_string("patients", '[{"x": 1}]')
        assert duckdb_store.get_string("patients") == '[{"x": 1}]'

    def test_remove(self, duckdb_store):
        duckdb_store.set_string("patients", "[]")
        duckdb_store.remove("patients")
        assert duckdb_store.get_string("patients") is None

    def test_remove_missing_key_is_not_an_error(self, duckdb_store):
        duckdb_store.remove("never-written")

    def test_namespaces_are_isolated(self, tmp_path):
        db_path = str(tmp_path / "ledger.duckdb")
        first = DuckDBKeyValueStore(db_path=db_path, namespace="ward_a")
        first.set_string("patients", "A")
        first.close()

        second = DuckDBKeyValueStore(db_path=db_path, namespace="ward_b")
        assert second.get_string("patients") is None
        second.set_string("patients", "B")
        second.close()

        reopened = DuckDBKeyValueStore(db_path=db_path, namespace="ward_a")
        assert reopened.get_string("patients") == "A"
        reopened.close()

    def test_data_survives_reopen(self, tmp_path, make_patient):
        db_path = str(tmp_path / "ledger.duckdb")
        patients = [make_patient("P001"), make_patient("P002")]

        with DuckDBKeyValueStore(db_path=db_path) as store:
            PatientRepository(store).save(patients)

        with DuckDBKeyValueStore(db_path=db_path) as store:
            assert PatientRepository(store).load() == patients

    def test_storage_config_is_used(self, tmp_path):
        config = StorageConfig(backend="duckdb", db_path=str(tmp_path / "cfg.duckdb"), namespace="clinic")
        store = DuckDBKeyValueStore(storage_config=config)
        assert store.db_path == str(tmp_path / "cfg.duckdb")
        assert store.namespace == "clinic"
        store.close()

    def test_rejects_foreign_backend_config(self):
        with pytest.raises(StorageError):
            DuckDBKeyValueStore(storage_config=StorageConfig(backend="memory"))

    def test_rejects_missing_directory(self, tmp_path):
        with pytest.raises(StorageError) as exc_info:
            DuckDBKeyValueStore(db_path=str(tmp_path / "missing" / "ledger.duckdb"))
        assert exc_info.value.operation == "__init__"

    def test_query_failure_raises_storage_error(self, duckdb_store):
        broken = MagicMock()
        broken.execute.side_effect = RuntimeError("io failure")
        with patch.object(duckdb_store, "_get_connection", return_value=broken):
            with pytest.raises(StorageError) as exc_info:
                duckdb_store.set_string("patients", "[]")
        assert exc_info.value.operation == "set"
        assert exc_info.value.details["key"] == "patients"

    def test_connect_failure_reported_by_initialize_schema(self):
        store = DuckDBKeyValueStore()
        with patch("patient_ledger.adapters.storage.duckdb_adapter.duckdb.connect",
                   side_effect=RuntimeError("cannot open")):
            result = store.initialize_schema()
        assert result.is_failure()
        assert result.error_type == "StorageError"

    def test_close_is_idempotent(self, duckdb_store):
        duckdb_store.set_string("k", "v")
        duckdb_store.close()
        duckdb_store.close()
