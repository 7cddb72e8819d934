"""Command Line Interface for the Patient Ledger.

This module provides a CLI using Typer for inspecting and editing the
persisted patient collections through the same state store the application
uses, so every edit follows the version/timestamp rules and is resaved.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from patient_ledger import __version__
from patient_ledger.domain.models import (
    MedicalUpdate,
    PatientRecord,
    PatientStatus,
    Priority,
    UpdateType,
    format_timestamp,
)
from patient_ledger.domain.services import PatientRepository, PatientStateStore
from patient_ledger.infrastructure.config_manager import StorageConfig
from patient_ledger.infrastructure.logging_config import setup_logging
from patient_ledger.infrastructure.settings import settings
from patient_ledger.main import create_key_value_store, create_patient_store

app = typer.Typer(
    name="patient-ledger",
    help="Patient Ledger: patient records and medical updates",
    add_completion=False
)
console = Console()

STATUS_STYLES = {
    PatientStatus.CRITICAL: "bold red",
    PatientStatus.SERIOUS: "yellow",
    PatientStatus.STABLE: "green",
    PatientStatus.TREATED: "cyan",
    PatientStatus.DISCHARGED: "dim",
}


@contextmanager
def open_store(ctx: typer.Context) -> Iterator[PatientStateStore]:
    """Open the configured store, wait for the initial load, flush on exit."""
    storage_config: StorageConfig = ctx.obj or settings.storage_config
    try:
        backend = create_key_value_store(storage_config)
    except Exception as e:
        console.print(f"[red]✗[/red] Failed to initialize storage: {str(e)}")
        raise typer.Exit(code=1)

    store = create_patient_store(backend)
    try:
        store.wait_until_loaded()
        yield store
    finally:
        store.close(timeout=settings.save_timeout)
        backend.close()


def _require_patient(store: PatientStateStore, patient_id: str) -> PatientRecord:
    patient = store.get_patient_by_id(patient_id)
    if patient is None:
        console.print(f"[red]✗[/red] Unknown patient: {patient_id}")
        raise typer.Exit(code=1)
    return patient


def _status_text(status: PatientStatus) -> str:
    style = STATUS_STYLES.get(status, "")
    return f"[{style}]{status.value}[/{style}]" if style else status.value


def _patients_table(patients: List[PatientRecord]) -> Table:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Patient ID", style="cyan")
    table.add_column("Name")
    table.add_column("Age", justify="right")
    table.add_column("Status")
    table.add_column("Priority")
    table.add_column("Location")
    table.add_column("Version", justify="right")
    table.add_column("Last modified")
    for patient in patients:
        table.add_row(
            patient.patient_id,
            patient.name,
            str(patient.age),
            _status_text(patient.status),
            patient.priority.value,
            patient.location,
            str(patient.version),
            format_timestamp(patient.last_modified),
        )
    return table


@app.command("list")
def list_patients(
    ctx: typer.Context,
    status: Optional[PatientStatus] = typer.Option(None, "--status", "-s", help="Only patients with this status"),
    priority: Optional[Priority] = typer.Option(None, "--priority", "-p", help="Only patients with this priority"),
) -> None:
    """List patients, optionally filtered by status and priority."""
    with open_store(ctx) as store:
        patients = store.get_patients_by_status(status) if status else list(store.patients.value)
        if priority:
            patients = [p for p in patients if p.priority == priority]

    if not patients:
        console.print("[dim]No patients found[/dim]")
        return
    console.print(_patients_table(patients))


@app.command()
def show(
    ctx: typer.Context,
    patient_id: str = typer.Argument(..., help="Patient ID (business or internal id)"),
) -> None:
    """Show one patient with history entries and medical updates."""
    with open_store(ctx) as store:
        patient = _require_patient(store, patient_id)
        updates = store.get_medical_updates_for_patient(patient.patient_id)

    console.print(f"\n[bold blue]{patient.name}[/bold blue] ({patient.patient_id})")
    details = Table(show_header=False, box=None, padding=(0, 2))
    details.add_row("Internal id:", patient.id)
    details.add_row("Age / gender:", f"{patient.age} / {patient.gender}")
    details.add_row("Blood type:", patient.blood_type)
    details.add_row("Allergies:", ", ".join(patient.allergies) or "-")
    details.add_row("Medications:", ", ".join(patient.current_medications) or "-")
    details.add_row("History:", patient.medical_history)
    details.add_row("Complaint:", patient.presenting_complaint)
    details.add_row("Treatment:", patient.treatment)
    details.add_row("Status:", _status_text(patient.status))
    details.add_row("Priority:", patient.priority.value)
    details.add_row("Location:", patient.location)
    details.add_row("Author:", patient.author_fingerprint)
    details.add_row("Version:", str(patient.version))
    details.add_row("Last modified:", format_timestamp(patient.last_modified))
    console.print(details)

    if patient.history_entries:
        console.print("\n[bold]History entries:[/bold]")
        for entry in patient.history_entries:
            console.print(f"  {format_timestamp(entry.timestamp)} [dim]{entry.author_fingerprint}[/dim] {entry.text}")

    if updates:
        console.print("\n[bold]Medical updates:[/bold]")
        for update in updates:
            console.print(
                f"  {format_timestamp(update.timestamp)} [cyan]{update.update_type.value}[/cyan] "
                f"[dim]{update.author_fingerprint}[/dim] {update.notes}"
            )


@app.command()
def add(
    ctx: typer.Context,
    patient_id: str = typer.Option(..., "--patient-id", help="Business patient identifier"),
    name: str = typer.Option(..., "--name", help="Patient name"),
    age: int = typer.Option(0, "--age", min=0),
    gender: str = typer.Option("", "--gender"),
    blood_type: str = typer.Option("", "--blood-type"),
    allergies: Optional[List[str]] = typer.Option(None, "--allergy", help="Repeat for several allergies"),
    medications: Optional[List[str]] = typer.Option(None, "--medication", help="Repeat for several medications"),
    medical_history: str = typer.Option("", "--history"),
    complaint: str = typer.Option("", "--complaint"),
    treatment: str = typer.Option("", "--treatment"),
    status: PatientStatus = typer.Option(PatientStatus.STABLE, "--status"),
    priority: Priority = typer.Option(Priority.MEDIUM, "--priority"),
    location: str = typer.Option("", "--location"),
    author: str = typer.Option("", "--author", help="Author fingerprint"),
) -> None:
    """Add a patient record."""
    patient = PatientRecord(
        patient_id=patient_id,
        name=name,
        age=age,
        gender=gender,
        blood_type=blood_type,
        allergies=allergies or [],
        current_medications=medications or [],
        medical_history=medical_history,
        presenting_complaint=complaint,
        treatment=treatment,
        status=status,
        priority=priority,
        location=location,
        author_fingerprint=author,
    )
    with open_store(ctx) as store:
        if store.get_patient_by_id(patient.patient_id) is not None:
            console.print(f"[yellow]⚠[/yellow] Patient ID {patient.patient_id} already exists, adding duplicate")
        store.add_patient(patient)
    console.print(f"[green]✓[/green] Added patient {patient.patient_id} ({patient.id})")


@app.command("set-status")
def set_status(
    ctx: typer.Context,
    patient_id: str = typer.Argument(..., help="Patient ID"),
    status: PatientStatus = typer.Argument(..., help="New status"),
    author: Optional[str] = typer.Option(None, "--author", help="Author fingerprint"),
) -> None:
    """Change a patient's status."""
    with open_store(ctx) as store:
        patient = _require_patient(store, patient_id)
        changes = {"status": status}
        if author is not None:
            changes["author_fingerprint"] = author
        stored = store.update_patient(patient.model_copy(update=changes))
    console.print(f"[green]✓[/green] {stored.patient_id} is now {_status_text(stored.status)} (version {stored.version})")


@app.command()
def note(
    ctx: typer.Context,
    patient_id: str = typer.Argument(..., help="Patient ID"),
    text: str = typer.Argument(..., help="Comment text"),
    author: str = typer.Option("", "--author", help="Author fingerprint"),
) -> None:
    """Append a history entry to a patient record."""
    with open_store(ctx) as store:
        stored = store.add_history_entry(patient_id, text, author)
    if stored is None:
        console.print(f"[red]✗[/red] Unknown patient: {patient_id}")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] Added history entry to {stored.patient_id} (version {stored.version})")


@app.command("log-update")
def log_update(
    ctx: typer.Context,
    patient_id: str = typer.Argument(..., help="Patient ID"),
    update_type: UpdateType = typer.Argument(..., help="Kind of update"),
    notes: str = typer.Argument(..., help="Update notes"),
    author: str = typer.Option("", "--author", help="Author fingerprint"),
) -> None:
    """Record a medical update for a patient."""
    with open_store(ctx) as store:
        patient = _require_patient(store, patient_id)
        store.add_medical_update(MedicalUpdate(
            patient_id=patient.patient_id,
            update_type=update_type,
            notes=notes,
            author_fingerprint=author,
        ))
        count = len(store.get_medical_updates_for_patient(patient.patient_id))
    console.print(f"[green]✓[/green] Logged {update_type.value} for {patient.patient_id} ({count} update(s))")


@app.command()
def delete(
    ctx: typer.Context,
    patient_id: str = typer.Argument(..., help="Patient ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a patient and all of their medical updates."""
    if not yes:
        typer.confirm(f"Delete patient {patient_id} and all their medical updates?", abort=True)
    with open_store(ctx) as store:
        removed = store.delete_patient(patient_id)
    if not removed:
        console.print(f"[red]✗[/red] Unknown patient: {patient_id}")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] Deleted patient {patient_id}")


@app.command()
def stats(ctx: typer.Context) -> None:
    """Show patient counts by status and priority."""
    with open_store(ctx) as store:
        total = store.get_total_patient_count()
        critical = store.get_critical_patients_count()
        by_status = {status: len(store.get_patients_by_status(status)) for status in PatientStatus}
        by_priority = {priority: len(store.get_patients_by_priority(priority)) for priority in Priority}

    summary_table = Table(show_header=False, box=None, padding=(0, 2))
    summary_table.add_row("Total patients:", f"[bold]{total}[/bold]")
    summary_table.add_row("Critical:", f"[red]{critical}[/red]" if critical else str(critical))
    for status, count in by_status.items():
        summary_table.add_row(f"{status.value}:", str(count))
    for priority, count in by_priority.items():
        summary_table.add_row(f"Priority {priority.value}:", str(count))
    console.print(summary_table)


@app.command()
def clear(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Remove all persisted patient data."""
    if not yes:
        typer.confirm("Remove all stored patients and medical updates?", abort=True)
    storage_config: StorageConfig = ctx.obj or settings.storage_config
    backend = create_key_value_store(storage_config)
    try:
        PatientRepository(backend).clear()
    finally:
        backend.close()
    console.print("[green]✓[/green] Cleared all patient data")


@app.command()
def info(ctx: typer.Context) -> None:
    """Display configuration information."""
    storage_config: StorageConfig = ctx.obj or settings.storage_config
    info_table = Table(show_header=False, box=None, padding=(0, 2))
    info_table.add_row("Application:", settings.app_name)
    info_table.add_row("Storage backend:", storage_config.backend)
    if storage_config.backend == "duckdb":
        info_table.add_row("Database path:", storage_config.db_path or ":memory:")
    info_table.add_row("Namespace:", storage_config.namespace)
    info_table.add_row("Seed sample data:", "Enabled" if settings.seed_sample_data else "Disabled")
    console.print(info_table)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"Patient Ledger v{__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    db_path: Optional[Path] = typer.Option(None, "--db-path", help="DuckDB file holding the patient data"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version information"
    ),
) -> None:
    """Patient Ledger: patient records and medical updates."""
    setup_logging(use_json=settings.log_json, log_level="DEBUG" if verbose else settings.log_level)
    if db_path is not None:
        try:
            ctx.obj = StorageConfig(backend="duckdb", db_path=str(db_path), namespace=settings.storage_config.namespace)
        except ValueError as e:
            console.print(f"[red]✗[/red] Invalid --db-path: {str(e)}")
            raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
