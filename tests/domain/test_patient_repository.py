"""Unit tests for PatientRepository.

These tests verify the persisted JSON layout, round-tripping through the
key-value store, and that every persistence fault turns into an empty result
instead of an exception.
"""

import json
from datetime import datetime, timezone
from unittest.mock import Mock, patch

import pytest
from pydantic import TypeAdapter
from pydantic_core import PydanticSerializationError

from patient_ledger.adapters.storage import InMemoryKeyValueStore
from patient_ledger.domain.models import MedicalUpdate, PatientHistoryEntry, UpdateType
from patient_ledger.domain.ports import KeyValueStorePort, SerializationError, StorageError
from patient_ledger.domain.services import (
    KEY_MEDICAL_UPDATES,
    KEY_PATIENTS,
    LoadStatus,
    PatientRepository,
)


@pytest.fixture
def updates():
    return {
        "P001": [
            MedicalUpdate(
                patient_id="P001",
                update_type=UpdateType.ASSESSMENT,
                notes="Vitals stable",
                author_fingerprint="doc1",
                timestamp=datetime(2024, 3, 1, 9, 0, 0, 1000, tzinfo=timezone.utc),
            ),
            MedicalUpdate(
                patient_id="P001",
                update_type=UpdateType.VITALS,
                notes="BP 120/80",
                author_fingerprint="nurse2",
                timestamp=datetime(2024, 3, 1, 9, 5, tzinfo=timezone.utc),
            ),
        ]
    }


@pytest.fixture
def failing_store():
    store = Mock(spec=KeyValueStorePort)
    store.get_string.side_effect = StorageError("disk gone", operation="get")
    store.set_string.side_effect = StorageError("disk gone", operation="set")
    store.remove.side_effect = StorageError("disk gone", operation="remove")
    return store


class TestPatientRepositoryPatients:
    """Saving and loading the patient list."""

    def test_round_trip(self, repository, make_patient):
        entry = PatientHistoryEntry(
            text="Transferred",
            author_fingerprint="doc7",
            timestamp=datetime(2024, 3, 1, 7, 30, 0, 456000, tzinfo=timezone.utc),
        )
        patients = [
            make_patient("P001", history_entries=[entry], version=4),
            make_patient("P002", allergies=[], current_medications=["A", "B"]),
        ]
        repository.save(patients)
        assert repository.load() == patients

    def test_persisted_layout(self, kv_store, repository, make_patient):
        repository.save([make_patient("P001", id="internal-1")])
        data = json.loads(kv_store.get_string(KEY_PATIENTS))
        assert isinstance(data, list)
        assert data[0]["id"] == "internal-1"
        assert data[0]["patientId"] == "P001"
        assert data[0]["lastModified"] == "2024-03-01T07:00:00.123Z"

    def test_reads_previously_persisted_payload(self, kv_store, repository):
        kv_store.set_string(KEY_PATIENTS, json.dumps([{
            "id": "6f1c",
            "patientId": "P123456",
            "name": "Ahmed Al-Rashid",
            "age": 34,
            "gender": "Male",
            "bloodType": "O+",
            "allergies": ["Penicillin"],
            "currentMedications": ["Metformin"],
            "medicalHistory": "Type 2 Diabetes",
            "presentingComplaint": "Chest pain",
            "treatment": "Oxygen therapy",
            "status": "STABLE",
            "priority": "MEDIUM",
            "location": "Ward A, Bed 3",
            "authorFingerprint": "doc001",
            "lastModified": "2024-02-10T14:03:22.517Z",
            "version": 2,
            "historyEntries": [
                {"text": "Admitted", "authorFingerprint": "doc001", "timestamp": "2024-02-10T14:00:00.000Z"}
            ],
        }]))

        [patient] = repository.load()
        assert patient.id == "6f1c"
        assert patient.version == 2
        assert patient.last_modified == datetime(2024, 2, 10, 14, 3, 22, 517000, tzinfo=timezone.utc)
        assert patient.history_entries[0].text == "Admitted"

    def test_load_absent_returns_empty(self, repository):
        outcome = repository.load_result()
        assert outcome.status == LoadStatus.ABSENT
        assert outcome.value == []
        assert repository.load() == []

    def test_load_malformed_json_returns_empty(self, kv_store, repository):
        kv_store.set_string(KEY_PATIENTS, "{not json")
        assert repository.load() == []
        outcome = repository.load_result()
        assert outcome.status == LoadStatus.CORRUPT
        assert outcome.is_corrupt
        assert outcome.error

    def test_load_schema_mismatch_returns_empty(self, kv_store, repository):
        kv_store.set_string(KEY_PATIENTS, json.dumps([{"name": "no patient id"}]))
        assert repository.load_result().status == LoadStatus.CORRUPT
        assert repository.load() == []

    def test_save_empty_list_loads_as_loaded_empty(self, repository):
        repository.save([])
        outcome = repository.load_result()
        assert outcome.status == LoadStatus.LOADED
        assert outcome.value == []

    def test_save_fault_is_swallowed(self, failing_store, make_patient, caplog):
        repository = PatientRepository(failing_store)
        repository.save([make_patient()])
        assert "Error saving patients" in caplog.text

    def test_load_fault_is_swallowed(self, failing_store):
        repository = PatientRepository(failing_store)
        assert repository.load() == []
        assert repository.load_result().status == LoadStatus.CORRUPT

    def test_unreadable_payload_is_logged_as_serialization_error(self, kv_store, repository, caplog):
        kv_store.set_string(KEY_PATIENTS, "{not json")
        repository.load_result()

        [record] = [r for r in caplog.records if r.exc_info]
        assert isinstance(record.exc_info[1], SerializationError)
        assert record.exc_info[1].key == KEY_PATIENTS

    def test_encode_fault_is_logged_as_serialization_error(self, kv_store, repository, make_patient, caplog):
        with patch.object(TypeAdapter, "dump_json", side_effect=PydanticSerializationError("boom")):
            repository.save([make_patient()])

        assert kv_store.get_string(KEY_PATIENTS) is None
        [record] = [r for r in caplog.records if r.exc_info]
        assert isinstance(record.exc_info[1], SerializationError)

    def test_legacy_records_with_blank_id_or_negative_age_still_load(self, kv_store, repository):
        kv_store.set_string(KEY_PATIENTS, json.dumps([
            {"id": "a1", "patientId": "", "name": "Unregistered", "age": 30},
            {"id": "b2", "patientId": "P200", "name": "Typo Age", "age": -4},
        ]))

        outcome = repository.load_result()
        assert outcome.status == LoadStatus.LOADED
        assert [p.id for p in outcome.value] == ["a1", "b2"]
        assert outcome.value[0].patient_id == ""
        assert outcome.value[1].age == -4


class TestPatientRepositoryUpdates:
    """Saving and loading the medical-update map."""

    def test_round_trip(self, repository, updates):
        repository.save_updates(updates)
        assert repository.load_updates() == updates

    def test_persisted_layout(self, kv_store, repository, updates):
        repository.save_updates(updates)
        data = json.loads(kv_store.get_string(KEY_MEDICAL_UPDATES))
        assert list(data) == ["P001"]
        assert data["P001"][0]["updateType"] == "ASSESSMENT"
        assert data["P001"][0]["timestamp"] == "2024-03-01T09:00:00.001Z"

    def test_load_absent_returns_empty(self, repository):
        assert repository.load_updates() == {}
        assert repository.load_updates_result().status == LoadStatus.ABSENT

    def test_load_malformed_json_returns_empty(self, kv_store, repository):
        kv_store.set_string(KEY_MEDICAL_UPDATES, "[1, 2")
        assert repository.load_updates() == {}
        assert repository.load_updates_result().status == LoadStatus.CORRUPT

    def test_wrong_shape_returns_empty(self, kv_store, repository):
        kv_store.set_string(KEY_MEDICAL_UPDATES, json.dumps(["not", "a", "map"]))
        assert repository.load_updates() == {}

    def test_keys_are_independent(self, kv_store, repository, make_patient, updates):
        repository.save([make_patient()])
        kv_store.set_string(KEY_MEDICAL_UPDATES, "garbage")
        assert len(repository.load()) == 1
        assert repository.load_updates() == {}

    def test_save_fault_is_swallowed(self, failing_store, updates, caplog):
        PatientRepository(failing_store).save_updates(updates)
        assert "Error saving medical updates" in caplog.text


class TestPatientRepositoryClear:
    """Removing both keys."""

    def test_clear_removes_both_keys(self, kv_store, repository, make_patient, updates):
        kv_store.set_string("unrelated", "keep me")
        repository.save([make_patient()])
        repository.save_updates(updates)

        repository.clear()

        assert kv_store.get_string(KEY_PATIENTS) is None
        assert kv_store.get_string(KEY_MEDICAL_UPDATES) is None
        assert kv_store.get_string("unrelated") == "keep me"

    def test_clear_on_empty_store(self, repository):
        repository.clear()
        assert repository.load() == []

    def test_clear_attempts_both_keys_despite_faults(self, failing_store):
        PatientRepository(failing_store).clear()
        assert failing_store.remove.call_count == 2

    def test_works_with_any_port_implementation(self, make_patient):
        store = InMemoryKeyValueStore({KEY_PATIENTS: "[]"})
        repository = PatientRepository(store)
        assert repository.store is store
        assert repository.load_result().status == LoadStatus.LOADED
