"""Built-in demo data seeded on first run."""

from datetime import datetime, timedelta
from typing import Dict, List, Optional

from patient_ledger.domain.models import (
    MedicalUpdate,
    PatientRecord,
    PatientStatus,
    Priority,
    UpdateType,
    truncate_to_millis,
    utc_now,
)


def sample_patients(now: Optional[datetime] = None) -> List[PatientRecord]:
    """Three demo patients covering the STABLE, CRITICAL and TREATED states."""
    now = truncate_to_millis(now) if now else utc_now()
    return [
        PatientRecord(
            patient_id="P123456",
            name="Ahmed Al-Rashid",
            age=34,
            gender="Male",
            blood_type="O+",
            allergies=["Penicillin"],
            current_medications=["Metformin"],
            medical_history="Type 2 Diabetes",
            presenting_complaint="Chest pain, shortness of breath",
            treatment="Oxygen therapy, cardiac monitoring",
            status=PatientStatus.STABLE,
            priority=Priority.MEDIUM,
            location="Ward A, Bed 3",
            author_fingerprint="doc001",
            last_modified=now,
        ),
        PatientRecord(
            patient_id="P789012",
            name="Fatima Hassan",
            age=28,
            gender="Female",
            blood_type="A-",
            medical_history="Previous C-section",
            presenting_complaint="Severe abdominal pain",
            treatment="Pain management, IV fluids",
            status=PatientStatus.CRITICAL,
            priority=Priority.HIGH,
            location="Emergency Room",
            author_fingerprint="doc002",
            last_modified=now,
        ),
        PatientRecord(
            patient_id="P345678",
            name="Omar Khalil",
            age=45,
            gender="Male",
            blood_type="B+",
            allergies=["Aspirin"],
            current_medications=["Lisinopril", "Atorvastatin"],
            medical_history="Hypertension, High cholesterol",
            presenting_complaint="Routine check-up",
            treatment="Medication review completed",
            status=PatientStatus.TREATED,
            priority=Priority.LOW,
            location="Outpatient",
            author_fingerprint="doc001",
            last_modified=now,
        ),
    ]


def sample_medical_updates(now: Optional[datetime] = None) -> Dict[str, List[MedicalUpdate]]:
    """One update each for the first two demo patients."""
    now = truncate_to_millis(now) if now else utc_now()
    return {
        "P123456": [
            MedicalUpdate(
                patient_id="P123456",
                update_type=UpdateType.ASSESSMENT,
                notes="Patient responding well to treatment. Vitals stable.",
                author_fingerprint="doc001",
                timestamp=now - timedelta(hours=1),
            )
        ],
        "P789012": [
            MedicalUpdate(
                patient_id="P789012",
                update_type=UpdateType.STATUS_CHANGE,
                notes="Moved to critical care. Continuous monitoring required.",
                author_fingerprint="doc002",
                timestamp=now - timedelta(minutes=30),
            )
        ],
    }
