"""Domain layer for Patient Ledger.

This module contains the patient record models, the storage port and the
services built on top of it. All domain models are pure Python with no
external dependencies beyond Pydantic.
"""

from .models import (
    PatientRecord,
    PatientHistoryEntry,
    MedicalUpdate,
    PatientStatus,
    Priority,
    UpdateType,
)

__all__ = [
    "PatientRecord",
    "PatientHistoryEntry",
    "MedicalUpdate",
    "PatientStatus",
    "Priority",
    "UpdateType",
]
