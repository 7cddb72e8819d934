"""Patient Repository.

Serializes the patient list and the medical-update map to and from a
KeyValueStorePort as JSON. Owns no business logic.

Error Handling:
    - Encoding and decoding faults are raised as SerializationError, backend
      faults arrive as StorageError. Both are caught here, logged, and turned
      into an empty result. Nothing propagates to the caller.
    - Stored records are validated leniently (STORED_DATA_CONTEXT) so one
      legacy record with a blank patientId or negative age does not make the
      whole collection unreadable.
    - load_result()/load_updates_result() additionally report whether the
      key was absent, loaded, or present but unreadable.

Architecture:
    - Depends only on the KeyValueStorePort abstraction (injected)
    - Two fixed keys in one store: "patients" and "medical_updates"
    - pydantic TypeAdapters handle the camelCase JSON and timestamp layout
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, List, Mapping, Optional, Sequence, TypeVar

from pydantic import TypeAdapter

from patient_ledger.domain.models import STORED_DATA_CONTEXT, MedicalUpdate, PatientRecord
from patient_ledger.domain.ports import KeyValueStorePort, SerializationError

logger = logging.getLogger(__name__)

T = TypeVar('T')

KEY_PATIENTS = "patients"
KEY_MEDICAL_UPDATES = "medical_updates"

_patients_adapter = TypeAdapter(List[PatientRecord])
_updates_adapter = TypeAdapter(Dict[str, List[MedicalUpdate]])


def _encode(adapter: TypeAdapter, key: str, value: Any) -> str:
    try:
        return adapter.dump_json(value, by_alias=True).decode("utf-8")
    except ValueError as e:
        raise SerializationError(f"Cannot encode '{key}': {str(e)}", key=key) from e


def _decode(adapter: TypeAdapter, key: str, payload: str) -> Any:
    try:
        return adapter.validate_json(payload, context=STORED_DATA_CONTEXT)
    except ValueError as e:
        raise SerializationError(f"Stored '{key}' is unreadable: {str(e)}", key=key) from e


class LoadStatus(str, Enum):
    """Outcome of reading one key from the store."""
    ABSENT = "absent"
    LOADED = "loaded"
    CORRUPT = "corrupt"


@dataclass(frozen=True)
class LoadOutcome(Generic[T]):
    """Value read from the store plus how it was obtained.

    Attributes:
        status: ABSENT (key missing), LOADED, or CORRUPT (unreadable)
        value: Decoded value; empty when status is not LOADED
        error: Error message when status is CORRUPT
    """

    status: LoadStatus
    value: T
    error: Optional[str] = None

    @property
    def is_corrupt(self) -> bool:
        return self.status == LoadStatus.CORRUPT


class PatientRepository:
    """Reads and writes the two persisted collections.

    Parameters:
        store: Key-value backend the collections are written to

    Example Usage:
        ```python
        repository = PatientRepository(InMemoryKeyValueStore())
        repository.save(patients)
        assert repository.load() == patients
        ```
    """

    def __init__(self, store: KeyValueStorePort):
        self._store = store

    @property
    def store(self) -> KeyValueStorePort:
        return self._store

    def save(self, patients: Sequence[PatientRecord]) -> None:
        """Overwrite the stored patient list. Faults are logged, not raised."""
        try:
            payload = _encode(_patients_adapter, KEY_PATIENTS, list(patients))
            self._store.set_string(KEY_PATIENTS, payload)
            logger.debug(f"Saved {len(patients)} patients to storage")
        except Exception as e:
            logger.error(f"Error saving patients: {str(e)}", exc_info=True)

    def load(self) -> List[PatientRecord]:
        """Stored patient list, or an empty list if absent or unreadable."""
        return self.load_result().value

    def load_result(self) -> LoadOutcome[List[PatientRecord]]:
        """Stored patient list together with its LoadStatus."""
        try:
            payload = self._store.get_string(KEY_PATIENTS)
            if payload is None:
                return LoadOutcome(LoadStatus.ABSENT, [])
            patients = _decode(_patients_adapter, KEY_PATIENTS, payload)
            logger.debug(f"Loaded {len(patients)} patients from storage")
            return LoadOutcome(LoadStatus.LOADED, patients)
        except Exception as e:
            logger.error(f"Error loading patients: {str(e)}", exc_info=True)
            return LoadOutcome(LoadStatus.CORRUPT, [], error=str(e))

    def save_updates(self, updates: Mapping[str, Sequence[MedicalUpdate]]) -> None:
        """Overwrite the stored medical-update map. Faults are logged, not raised."""
        try:
            snapshot = {patient_id: list(entries) for patient_id, entries in updates.items()}
            payload = _encode(_updates_adapter, KEY_MEDICAL_UPDATES, snapshot)
            self._store.set_string(KEY_MEDICAL_UPDATES, payload)
            logger.debug(f"Saved medical updates for {len(snapshot)} patients to storage")
        except Exception as e:
            logger.error(f"Error saving medical updates: {str(e)}", exc_info=True)

    def load_updates(self) -> Dict[str, List[MedicalUpdate]]:
        """Stored medical-update map, or an empty dict if absent or unreadable."""
        return self.load_updates_result().value

    def load_updates_result(self) -> LoadOutcome[Dict[str, List[MedicalUpdate]]]:
        """Stored medical-update map together with its LoadStatus."""
        try:
            payload = self._store.get_string(KEY_MEDICAL_UPDATES)
            if payload is None:
                return LoadOutcome(LoadStatus.ABSENT, {})
            updates = _decode(_updates_adapter, KEY_MEDICAL_UPDATES, payload)
            logger.debug(f"Loaded medical updates for {len(updates)} patients from storage")
            return LoadOutcome(LoadStatus.LOADED, updates)
        except Exception as e:
            logger.error(f"Error loading medical updates: {str(e)}", exc_info=True)
            return LoadOutcome(LoadStatus.CORRUPT, {}, error=str(e))

    def clear(self) -> None:
        """Remove both keys. Each removal is attempted even if the other fails."""
        for key in (KEY_PATIENTS, KEY_MEDICAL_UPDATES):
            try:
                self._store.remove(key)
            except Exception as e:
                logger.error(f"Error removing '{key}' from storage: {str(e)}", exc_info=True)
        logger.info("Cleared all patient data from storage")
