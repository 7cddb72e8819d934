"""Tests for backend and state store wiring."""

from unittest.mock import patch

import pytest

from patient_ledger.adapters.storage import DuckDBKeyValueStore, InMemoryKeyValueStore
from patient_ledger.domain.models import PatientRecord
from patient_ledger.domain.ports import Result, StorageError
from patient_ledger.domain.services import KEY_MEDICAL_UPDATES, KEY_PATIENTS, PatientRepository
from patient_ledger.infrastructure.config_manager import StorageConfig
from patient_ledger.main import create_key_value_store, create_patient_store


class TestCreateKeyValueStore:
    """Test backend selection."""

    def test_memory_backend(self):
        assert isinstance(create_key_value_store(StorageConfig(backend="memory")), InMemoryKeyValueStore)

    def test_duckdb_backend(self, tmp_path):
        config = StorageConfig(backend="duckdb", db_path=str(tmp_path / "ledger.duckdb"))
        store = create_key_value_store(config)
        try:
            assert isinstance(store, DuckDBKeyValueStore)
            assert store.get_string("patients") is None
        finally:
            store.close()

    def test_schema_failure_raises(self):
        failure = Result.failure_result("disk full", error_type="StorageError")
        with patch.object(DuckDBKeyValueStore, "initialize_schema", return_value=failure):
            with pytest.raises(StorageError, match="disk full"):
                create_key_value_store(StorageConfig(backend="duckdb", db_path=":memory:"))


class TestCreatePatientStore:
    """Test state store assembly."""

    def test_empty_injected_backend_is_used(self):
        backend = InMemoryKeyValueStore()
        assert len(backend) == 0
        with patch("patient_ledger.main.create_key_value_store") as factory:
            store = create_patient_store(backend, seed_sample_data=True)
            try:
                assert store.flush(timeout=5)
            finally:
                store.close()
        factory.assert_not_called()

    def test_sample_data_is_flushed_to_injected_backend(self):
        backend = InMemoryKeyValueStore()
        store = create_patient_store(backend, seed_sample_data=True)
        try:
            assert store.flush(timeout=5)
            assert store.get_total_patient_count() == 3
        finally:
            store.close()

        assert sorted(backend.keys()) == [KEY_MEDICAL_UPDATES, KEY_PATIENTS]
        assert len(PatientRepository(backend).load()) == 3
        assert len(PatientRepository(backend).load_updates()) == 2

    def test_edits_reach_injected_backend(self):
        backend = InMemoryKeyValueStore()
        store = create_patient_store(backend, seed_sample_data=False)
        try:
            assert store.wait_until_loaded(timeout=5)
            assert store.get_total_patient_count() == 0
            store.add_patient(PatientRecord(patient_id="P900", name="Injected"))
        finally:
            store.close()

        assert [p.patient_id for p in PatientRepository(backend).load()] == ["P900"]

    def test_backend_created_when_none_given(self):
        backend = InMemoryKeyValueStore()
        with patch("patient_ledger.main.create_key_value_store", return_value=backend) as factory:
            store = create_patient_store(seed_sample_data=False)
            store.close()
        factory.assert_called_once_with()
