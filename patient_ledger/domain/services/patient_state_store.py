"""Patient State Store.

In-memory authoritative state for the patient ledger: the patient list, the
per-patient medical-update map, the current selection and a loading flag.
Every value is an Observable, so late subscribers immediately receive the
current state.

Concurrency:
    - Mutations are serialized by a re-entrant lock and applied synchronously;
      observers are notified while the lock is held, in mutation order
    - After each mutation the changed collection(s) are resaved in full on a
      single background worker (fire-and-forget, FIFO)
    - Saves receive immutable snapshots taken at mutation time, so a slow
      save never observes a later mutation

Lifecycle:
    - Initial load runs once on the worker; is_loading is True meanwhile
    - An empty patient list on load seeds the built-in sample data
    - flush() waits for queued saves, close() flushes and stops the worker
"""

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime
from threading import Event, RLock
from typing import Callable, Dict, List, Optional, Set

from patient_ledger.domain.models import (
    MedicalUpdate,
    PatientHistoryEntry,
    PatientRecord,
    PatientStatus,
    Priority,
    utc_now,
)
from patient_ledger.domain.observable import Observable
from patient_ledger.domain.ports import PatientLedgerError
from patient_ledger.domain.sample_data import sample_medical_updates, sample_patients
from patient_ledger.domain.services.patient_repository import LoadStatus, PatientRepository

logger = logging.getLogger(__name__)

UpdatesMap = Dict[str, List[MedicalUpdate]]


class PatientStateStore:
    """Observable patient state backed by a PatientRepository.

    Parameters:
        repository: Repository used for the initial load and every resave
        seed_sample_data: Seed demo data when the stored patient list is empty
        clock: Source of "now" for modification stamps (UTC)
        autoload: Start the initial load on construction

    Example Usage:
        ```python
        store = PatientStateStore(PatientRepository(InMemoryKeyValueStore()))
        store.wait_until_loaded()
        store.patients.subscribe(render)
        store.add_history_entry("P123456", "Reassessed, pain 3/10", "doc001")
        store.close()
        ```
    """

    def __init__(
        self,
        repository: PatientRepository,
        seed_sample_data: bool = True,
        clock: Callable[[], datetime] = utc_now,
        autoload: bool = True,
    ):
        self._repository = repository
        self._seed_sample_data = seed_sample_data
        self._clock = clock
        self._lock = RLock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="patient-store-io")
        self._pending: Set[Future] = set()
        self._loaded = Event()
        self._load_future: Optional[Future] = None
        self._closed = False

        self.patients: Observable[List[PatientRecord]] = Observable([], name="patients")
        self.medical_updates: Observable[UpdatesMap] = Observable({}, name="medical_updates")
        self.selected_patient: Observable[Optional[PatientRecord]] = Observable(None, name="selected_patient")
        self.is_loading: Observable[bool] = Observable(False, name="is_loading")
        self.load_status: Optional[LoadStatus] = None

        if autoload:
            self.start()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> Future:
        """Start the initial load (idempotent).

        Returns:
            Future that completes once the loaded or seeded state is in place
        """
        with self._lock:
            self._ensure_open()
            if self._load_future is None:
                self.is_loading.set(True)
                self._load_future = self._submit(self._load_from_storage)
            return self._load_future

    def wait_until_loaded(self, timeout: Optional[float] = None) -> bool:
        """Block until the initial load finished.

        Returns:
            bool: False if the timeout expired first
        """
        return self._loaded.wait(timeout)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for the initial load and every queued save.

        Returns:
            bool: False if some work was still running when the timeout expired
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            # Saves queued by the work being awaited (e.g. seeding) are picked up on the next pass
            with self._lock:
                pending = [f for f in self._pending if not f.done()]
            if not pending:
                return True
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            _, not_done = wait(pending, timeout=remaining)
            if not_done:
                return False

    def close(self, timeout: Optional[float] = None) -> None:
        """Flush queued saves and stop the background worker."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        if not self.flush(timeout):
            logger.warning("Closing patient store with saves still in flight")
        self._executor.shutdown(wait=True)
        logger.debug("Patient store closed")

    def __enter__(self) -> 'PatientStateStore':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _ensure_open(self) -> None:
        if self._closed:
            raise PatientLedgerError("Patient store is closed")

    def _submit(self, fn, *args) -> Future:
        future = self._executor.submit(fn, *args)
        self._pending.add(future)
        future.add_done_callback(self._discard_pending)
        return future

    def _discard_pending(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    # ------------------------------------------------------------------
    # Load / save
    # ------------------------------------------------------------------

    def _load_from_storage(self) -> None:
        try:
            patients_outcome = self._repository.load_result()
            updates_outcome = self._repository.load_updates_result()

            with self._lock:
                self.load_status = patients_outcome.status
                if patients_outcome.is_corrupt or updates_outcome.is_corrupt:
                    logger.warning(
                        f"Stored patient data is unreadable "
                        f"(patients={patients_outcome.status.value}, "
                        f"medical_updates={updates_outcome.status.value})"
                    )

                if patients_outcome.value:
                    self.patients.set(list(patients_outcome.value))
                    self.medical_updates.set(dict(updates_outcome.value))
                    logger.info(f"Loaded {len(patients_outcome.value)} patients from storage")
                elif self._seed_sample_data:
                    self._load_sample_data()
                else:
                    self.patients.set([])
                    self.medical_updates.set({})
        finally:
            self.is_loading.set(False)
            self._loaded.set()

    def _load_sample_data(self) -> None:
        now = self._clock()
        self.patients.set(sample_patients(now))
        self.medical_updates.set(sample_medical_updates(now))
        logger.info("No stored patients found, seeded sample data")
        self._schedule_save(patients=True, updates=True)

    def _schedule_save(self, patients: bool = False, updates: bool = False) -> None:
        patients_snapshot = list(self.patients.value) if patients else None
        updates_snapshot = (
            {key: list(entries) for key, entries in self.medical_updates.value.items()}
            if updates else None
        )
        self._submit(self._persist, patients_snapshot, updates_snapshot)

    def _persist(
        self,
        patients: Optional[List[PatientRecord]],
        updates: Optional[UpdatesMap],
    ) -> None:
        if patients is not None:
            self._repository.save(patients)
        if updates is not None:
            self._repository.save_updates(updates)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_patient(self, patient: PatientRecord) -> None:
        self.selected_patient.set(patient)

    def clear_selection(self) -> None:
        self.selected_patient.set(None)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_patient(self, patient: PatientRecord) -> None:
        """Append a patient. Duplicate patient_ids are permitted."""
        with self._lock:
            self._ensure_open()
            current = self.patients.value
            if any(p.patient_id == patient.patient_id for p in current):
                logger.warning(f"Adding duplicate patient_id {patient.patient_id}")
            self.patients.set([*current, patient])
            self._schedule_save(patients=True)

    def update_patient(self, patient: PatientRecord) -> Optional[PatientRecord]:
        """Replace the record whose id equals ``patient.id``.

        The stored copy gets version = previous version + 1 and a fresh
        last_modified, whatever the caller put on ``patient``. The patient
        list is resaved even when nothing matched.

        Returns:
            The stored revision, or None if no record matched
        """
        with self._lock:
            self._ensure_open()
            now = self._clock()
            stored: Optional[PatientRecord] = None
            replaced: List[PatientRecord] = []
            for existing in self.patients.value:
                if existing.id == patient.id:
                    stored = patient.next_revision(now, previous=existing)
                    replaced.append(stored)
                else:
                    replaced.append(existing)

            if stored is None:
                logger.debug(f"update_patient: no record with id {patient.id}")
            self.patients.set(replaced)
            self._schedule_save(patients=True)
            return stored

    def add_history_entry(
        self,
        patient_id: str,
        text: str,
        author_fingerprint: str = "",
    ) -> Optional[PatientRecord]:
        """Append a comment to the patient matching ``patient_id`` (or id).

        Routed through update_patient, so the record's version and
        last_modified advance too. Unknown ids are ignored.

        Returns:
            The stored revision, or None if no patient matched
        """
        with self._lock:
            self._ensure_open()
            patient = next((p for p in self.patients.value if p.matches(patient_id)), None)
            if patient is None:
                logger.debug(f"add_history_entry: unknown patient {patient_id}")
                return None

            entry = PatientHistoryEntry(
                text=text,
                author_fingerprint=author_fingerprint,
                timestamp=self._clock(),
            )
            return self.update_patient(patient.with_history_entry(entry))

    def add_medical_update(self, update: MedicalUpdate) -> None:
        """Append ``update`` to the list keyed by its patient_id."""
        with self._lock:
            self._ensure_open()
            current = self.medical_updates.value
            entries = current.get(update.patient_id, [])
            self.medical_updates.set({**current, update.patient_id: [*entries, update]})
            self._schedule_save(updates=True)

    def delete_patient(self, patient_id: str) -> bool:
        """Remove every patient matching ``patient_id`` (or id).

        Medical updates keyed by ``patient_id`` and by the patient_id of every
        removed record are dropped as well. The selection is cleared if it
        pointed at a removed patient.

        Returns:
            bool: True if at least one record was removed
        """
        with self._lock:
            self._ensure_open()
            current = self.patients.value
            removed = [p for p in current if p.matches(patient_id)]
            self.patients.set([p for p in current if not p.matches(patient_id)])

            stale_keys = {patient_id} | {p.patient_id for p in removed}
            self.medical_updates.set({
                key: entries
                for key, entries in self.medical_updates.value.items()
                if key not in stale_keys
            })

            selected = self.selected_patient.value
            if selected is not None and selected.matches(patient_id):
                self.clear_selection()

            if removed:
                logger.info(f"Deleted patient {patient_id} ({len(removed)} record(s))")
            self._schedule_save(patients=True, updates=True)
            return bool(removed)

    def clear_all_data(self) -> None:
        """Empty the in-memory state and remove both persisted collections."""
        with self._lock:
            self._ensure_open()
            self.patients.set([])
            self.medical_updates.set({})
            self.clear_selection()
            self._submit(self._repository.clear)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_patient_by_id(self, patient_id: str) -> Optional[PatientRecord]:
        """Look up by patient_id, falling back to the internal id."""
        patients = self.patients.value
        for patient in patients:
            if patient.patient_id == patient_id:
                return patient
        return next((p for p in patients if p.id == patient_id), None)

    def get_medical_updates_for_patient(self, patient_id: str) -> List[MedicalUpdate]:
        return list(self.medical_updates.value.get(patient_id, []))

    def get_total_patient_count(self) -> int:
        return len(self.patients.value)

    def get_critical_patients_count(self) -> int:
        return sum(1 for p in self.patients.value if p.status == PatientStatus.CRITICAL)

    def get_patients_by_status(self, status: PatientStatus) -> List[PatientRecord]:
        return [p for p in self.patients.value if p.status == status]

    def get_patients_by_priority(self, priority: Priority) -> List[PatientRecord]:
        return [p for p in self.patients.value if p.priority == priority]
