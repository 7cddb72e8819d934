"""Shared fixtures for the patient ledger test suite."""

from datetime import datetime, timedelta, timezone

import pytest

from patient_ledger.adapters.storage import InMemoryKeyValueStore
from patient_ledger.domain.models import PatientRecord, PatientStatus, Priority
from patient_ledger.domain.services import PatientRepository, PatientStateStore


class FakeClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime = datetime(2024, 3, 1, 8, 0, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        self.current = self.current + timedelta(seconds=1)
        return self.current


@pytest.fixture
def kv_store():
    """Empty in-memory key-value store."""
    return InMemoryKeyValueStore()


@pytest.fixture
def repository(kv_store):
    return PatientRepository(kv_store)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_patient():
    """Factory for patient records with sensible defaults."""
    def _make(patient_id: str = "P001", **overrides) -> PatientRecord:
        data = {
            "patient_id": patient_id,
            "name": f"Patient {patient_id}",
            "age": 40,
            "gender": "Female",
            "blood_type": "AB+",
            "allergies": ["Latex"],
            "current_medications": ["Ibuprofen"],
            "status": PatientStatus.STABLE,
            "priority": Priority.MEDIUM,
            "location": "Ward B",
            "author_fingerprint": "doc100",
            "last_modified": datetime(2024, 3, 1, 7, 0, 0, 123000, tzinfo=timezone.utc),
        }
        data.update(overrides)
        return PatientRecord(**data)
    return _make


@pytest.fixture
def state_store(repository, clock):
    """Loaded state store without sample data."""
    store = PatientStateStore(repository, seed_sample_data=False, clock=clock)
    assert store.wait_until_loaded(timeout=5)
    yield store
    store.close(timeout=5)
