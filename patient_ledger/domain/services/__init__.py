"""Domain Services.

This package contains the repository that maps the patient collections onto a
key-value store and the observable state store built on top of it.
"""

from patient_ledger.domain.services.patient_repository import (
    KEY_MEDICAL_UPDATES,
    KEY_PATIENTS,
    LoadOutcome,
    LoadStatus,
    PatientRepository,
)
from patient_ledger.domain.services.patient_state_store import PatientStateStore

__all__ = [
    'KEY_MEDICAL_UPDATES',
    'KEY_PATIENTS',
    'LoadOutcome',
    'LoadStatus',
    'PatientRepository',
    'PatientStateStore',
]
