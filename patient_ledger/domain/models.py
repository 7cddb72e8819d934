"""Patient Record Schema Definitions.

This module defines the domain models tracked by the ledger: patient records,
their free-text history entries and standalone medical updates.

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Models are immutable (frozen); changes produce copies via model_copy()
    - Python attributes are snake_case, the persisted JSON is camelCase
    - Timestamps are UTC with millisecond precision so they survive the
      fixed textual encoding unchanged
"""

import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Annotated, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel

# Persisted date layout: yyyy-MM-ddTHH:mm:ss.SSSZ with a literal "Z"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

# Validation context for records read back from storage. Older records may
# carry a blank patientId or a negative age; they are loaded as-is instead of
# failing the whole collection.
STORED_DATA_CONTEXT = {"stored_data": True}


def _is_stored_data(info: ValidationInfo) -> bool:
    return bool(info.context and info.context.get("stored_data"))


def truncate_to_millis(value: datetime) -> datetime:
    """Normalize a datetime to timezone-aware UTC with millisecond precision.

    Naive datetimes are interpreted as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def utc_now() -> datetime:
    """Current time as a millisecond-precision UTC datetime."""
    return truncate_to_millis(datetime.now(timezone.utc))


def format_timestamp(value: datetime) -> str:
    """Encode a datetime as yyyy-MM-ddTHH:mm:ss.SSSZ.

    Parameters:
        value: Datetime to encode (naive values are treated as UTC)

    Returns:
        str: Encoded timestamp, e.g. "2024-03-01T08:15:30.250Z"
    """
    value = truncate_to_millis(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_timestamp(value) -> datetime:
    """Decode a persisted timestamp into a UTC datetime.

    Accepts the fixed textual form, any ISO-8601 string, or a datetime.

    Raises:
        ValueError: If the value cannot be interpreted as a timestamp
    """
    if isinstance(value, datetime):
        return truncate_to_millis(value)
    if not isinstance(value, str):
        raise ValueError(f"Unsupported timestamp value: {value!r}")

    try:
        parsed = datetime.strptime(value, TIMESTAMP_FORMAT)
    except ValueError:
        # ISO-8601 with an explicit offset or without fractional seconds
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return truncate_to_millis(parsed)


Timestamp = Annotated[
    datetime,
    BeforeValidator(parse_timestamp),
    PlainSerializer(format_timestamp, return_type=str, when_used="json"),
]


class PatientStatus(str, Enum):
    """Clinical status of a tracked patient."""
    STABLE = "STABLE"
    SERIOUS = "SERIOUS"
    CRITICAL = "CRITICAL"
    TREATED = "TREATED"
    DISCHARGED = "DISCHARGED"


class Priority(str, Enum):
    """Triage priority."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class UpdateType(str, Enum):
    """Kind of clinical note carried by a MedicalUpdate."""
    ASSESSMENT = "ASSESSMENT"
    STATUS_CHANGE = "STATUS_CHANGE"
    TREATMENT = "TREATMENT"
    MEDICATION = "MEDICATION"
    VITALS = "VITALS"
    NOTE = "NOTE"


class LedgerModel(BaseModel):
    """Base configuration shared by every persisted model."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class PatientHistoryEntry(LedgerModel):
    """A free-text comment appended to a patient record.

    Parameters:
        text: Comment body
        author_fingerprint: Identity of the author
        timestamp: When the comment was written
    """

    text: str = Field(..., description="Comment body")
    author_fingerprint: str = Field("", description="Identity of the author")
    timestamp: Timestamp = Field(default_factory=utc_now, description="When the comment was written")


class PatientRecord(LedgerModel):
    """One tracked patient's clinical and administrative data.

    Two identities coexist: ``id`` is the internal identity generated on
    creation, ``patient_id`` is the business identifier shown to clinicians.
    Lookups accept either (see ``matches``).

    Parameters:
        id: Internal identity (UUID4 string by default)
        patient_id: External/business identity
        name: Patient display name
        age: Age in years
        gender: Free-text gender
        blood_type: Blood group, e.g. "O+"
        allergies: Known allergies, in entry order
        current_medications: Current medications, in entry order
        medical_history: Relevant past history
        presenting_complaint: Reason for presentation
        treatment: Treatment given so far
        status: Clinical status
        priority: Triage priority
        location: Ward, bed or area
        author_fingerprint: Identity of the last/originating editor
        last_modified: Refreshed on every mutating update
        version: Incremented by one on every mutating update
        history_entries: Append-only comment log
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Internal identity")
    patient_id: str = Field(..., description="External/business identity")
    name: str = Field(..., description="Patient display name")
    age: int = Field(0, description="Age in years")
    gender: str = Field("", description="Gender")
    blood_type: str = Field("", description="Blood group")
    allergies: list[str] = Field(default_factory=list, description="Known allergies")
    current_medications: list[str] = Field(default_factory=list, description="Current medications")
    medical_history: str = Field("", description="Relevant past history")
    presenting_complaint: str = Field("", description="Reason for presentation")
    treatment: str = Field("", description="Treatment given so far")
    status: PatientStatus = Field(PatientStatus.STABLE, description="Clinical status")
    priority: Priority = Field(Priority.MEDIUM, description="Triage priority")
    location: str = Field("", description="Ward, bed or area")
    author_fingerprint: str = Field("", description="Identity of the last/originating editor")
    last_modified: Timestamp = Field(default_factory=utc_now, description="Last modification time")
    version: int = Field(1, ge=0, description="Monotonic revision counter")
    history_entries: list[PatientHistoryEntry] = Field(
        default_factory=list,
        description="Append-only comment log"
    )

    @field_validator("patient_id")
    @classmethod
    def validate_patient_id(cls, v: str, info: ValidationInfo) -> str:
        """Reject blank business identifiers on new records."""
        v_stripped = v.strip()
        if not v_stripped and not _is_stored_data(info):
            raise ValueError("patient_id cannot be empty or whitespace only")
        return v_stripped

    @field_validator("age")
    @classmethod
    def validate_age(cls, v: int, info: ValidationInfo) -> int:
        """Reject negative ages on new records."""
        if v < 0 and not _is_stored_data(info):
            raise ValueError("age cannot be negative")
        return v

    def matches(self, identifier: str) -> bool:
        """True if ``identifier`` is either this record's patient_id or id."""
        return self.patient_id == identifier or self.id == identifier

    def with_history_entry(self, entry: PatientHistoryEntry) -> 'PatientRecord':
        """Return a copy with ``entry`` appended to the history."""
        return self.model_copy(update={"history_entries": [*self.history_entries, entry]})

    def next_revision(self, now: datetime, previous: Optional['PatientRecord'] = None) -> 'PatientRecord':
        """Return a copy stamped as the revision following ``previous``.

        The version becomes ``previous.version + 1`` and ``last_modified``
        becomes ``now``, pushed forward by one millisecond when ``now`` does
        not come after the previous stamp.

        Parameters:
            now: Current time
            previous: The stored revision being replaced (defaults to self)
        """
        previous = previous or self
        stamp = truncate_to_millis(now)
        if stamp <= previous.last_modified:
            stamp = previous.last_modified + timedelta(milliseconds=1)
        return self.model_copy(update={"last_modified": stamp, "version": previous.version + 1})


class MedicalUpdate(LedgerModel):
    """A timestamped clinical note tied to one patient.

    Parameters:
        patient_id: Business identity of the patient the note belongs to
        update_type: Kind of note
        notes: Note body
        author_fingerprint: Identity of the author
        timestamp: When the note was written
    """

    patient_id: str = Field(..., description="Patient business identity")
    update_type: UpdateType = Field(UpdateType.NOTE, description="Kind of note")
    notes: str = Field("", description="Note body")
    author_fingerprint: str = Field("", description="Identity of the author")
    timestamp: Timestamp = Field(default_factory=utc_now, description="When the note was written")
